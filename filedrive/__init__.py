"""
FileDrive - Backend-agnostic file storage with an HTTP serving layer.

This package provides:
- A uniform storage driver contract with in-memory and local filesystem drivers
- Signed, time-limited URLs for private files
- A FastAPI file server with visibility checks and ETag caching
"""

__version__ = "1.0.0"
__author__ = "FileDrive Team"
