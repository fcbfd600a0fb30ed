"""
Vistagram Backend — Application Package
=========================================

What: Image-sharing social backend (accounts, posts, likes, shares) plus a
      scheduled job that keeps the catalogue populated with synthetic content.
Who:  Imported by uvicorn (`vistagram.main:app`), Alembic, and pytest.

Layering:
    ┌─────────────────────────────────────┐
    │  Routes + auth dependencies (HTTP)  │  ← status codes, cookies, headers
    ├─────────────────────────────────────┤
    │  Services                           │  ← tokens, sessions, scheduling, seeding
    ├─────────────────────────────────────┤
    │  Models & Schemas                   │  ← SQLAlchemy ORM + Pydantic contracts
    ├─────────────────────────────────────┤
    │  Database                           │  ← async sessions
    └─────────────────────────────────────┘
"""

__version__ = "1.0.0"
