"""
Rendering Module
===============

Browser-driven page capture and HTML post-processing.

Components:
- page_renderer: Playwright navigation, readiness detection and capture
- html_processing: Preload hint injection and output formatting
"""
