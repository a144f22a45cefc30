"""
Configuration Management
=======================

Environment-based settings and YAML pipeline configuration.

Components:
- settings: Process settings (paths, preview command, log level) via Pydantic Settings
- logging: Structured logging configuration
- loader: Pipeline configuration assembly from YAML sources
"""
