"""
Preview Server
==============

Subprocess supervision for the application's preview server.
"""
