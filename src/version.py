"""Operator version, exported on integreatly_version_info."""

__version__ = "0.1.0"
