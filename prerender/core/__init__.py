"""
Core Pipeline Logic
===================

Components:
- server: Preview server process supervision
- queue: Render task scheduling under a concurrency ceiling
- rendering: Per-page rendering and HTML post-processing
- artifacts: Sitemap, robots.txt and edge worker generation
"""
