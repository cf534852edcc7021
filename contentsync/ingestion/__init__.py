"""
ContentSync Ingestion Module
============================

Source adapters and fetch helpers.

This module handles:
- RSS/Atom platform news feeds
- OAuth client-credentials catalog and clip APIs with token caching
- API-key secondary catalog and built-in demo releases
- Markup stripping and excerpt generation
"""
