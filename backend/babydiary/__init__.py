"""
Baby Diary Backend — Application Package Initializer
====================================================

What: Marks the `babydiary` directory as a Python package.
Who:  Used by uvicorn (`babydiary.main:app`), Alembic, and pytest.

Architecture Note:
    The backend is layered:

    ┌─────────────────────────────────────┐
    │           Routes (API Layer)        │  ← HTTP concerns, envelopes
    ├─────────────────────────────────────┤
    │   Dependencies (Permission Chain)   │  ← auth → family → ownership
    ├─────────────────────────────────────┤
    │         Services (Business Logic)   │  ← one transaction per operation
    ├─────────────────────────────────────┤
    │       Models & Schemas (Data)       │  ← SQLAlchemy ORM + Pydantic
    ├─────────────────────────────────────┤
    │        Database (Persistence)       │  ← Async SQLAlchemy sessions
    └─────────────────────────────────────┘

    Services never touch the HTTP request. They receive the session and the
    resolved caller context explicitly, so each layer can be tested alone.
"""

__version__ = "1.0.0"
