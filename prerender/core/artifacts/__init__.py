"""
Site Artifacts
==============

Crawler and edge-routing files derived from the pipeline configuration.
"""
