"""
Crowslist Backend — Application Package
=========================================

What: The campus classifieds API: accounts restricted to an institutional
      email domain, listings, and profiles.

Layers:

    ┌─────────────────────────────────────┐
    │  Routes (routes/)                   │  HTTP only: parse, call, respond
    ├─────────────────────────────────────┤
    │  Services (services/)               │  auth, verification, listings,
    │                                     │  profiles, sessions, image files
    ├─────────────────────────────────────┤
    │  Models & Schemas                   │  SQLAlchemy tables / pydantic I/O
    ├─────────────────────────────────────┤
    │  Database (database.py)             │  one gateway, SQLite or PostgreSQL
    └─────────────────────────────────────┘
"""

__version__ = "1.0.0"
