"""Hearth shared libraries.

This package contains reusable components:
- common: configuration and text normalization
- caching: Redis client and the tenant response cache
- firebase / firestore: Firebase app setup and tenant document helpers
- memory: per-user interaction history
"""
