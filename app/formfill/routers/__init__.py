"""
Routers package for FastAPI endpoints.

Organized by domain:
- catalog: Model catalog with display prices
- schemas: Bundled form schemas
- sessions: Form sessions, processing runs and form edits
- upload: Document upload into a session
"""

from . import catalog, schemas, sessions, upload

__all__ = ["catalog", "schemas", "sessions", "upload"]
