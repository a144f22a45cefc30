"""
Test Utilities
==============

Playwright doubles and canned documents shared by the test suite.
"""
