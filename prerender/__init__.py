"""
SSG Pre-Renderer
================

Static-site pre-rendering pipeline for client-rendered applications.

This package provides:
- YAML pipeline configuration assembly with validation
- Preview server process supervision
- Bounded-concurrency page rendering with Playwright
- Sitemap, robots.txt and edge worker generation
"""

__version__ = "1.0.0"
__author__ = "SSG Pre-Renderer Team"
