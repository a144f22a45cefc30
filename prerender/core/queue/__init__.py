"""
Render Queue
============

Task expansion and bounded-concurrency execution.
"""
