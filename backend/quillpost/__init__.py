"""
Quillpost Backend — Application Package Initializer
====================================================

What: Marks the `quillpost` directory as a Python package.
Who:  Imported by uvicorn, Alembic, pytest and the editor-side auto-save client.

Architecture Note:
    The backend follows the same layered layout on every path:

    ┌─────────────────────────────────────┐
    │           Routes (API Layer)        │  ← HTTP concerns only
    ├─────────────────────────────────────┤
    │   Services (Conversion, Drafts,     │  ← Format conversion, draft
    │   Auto-Save)                        │    persistence, auto-save
    ├─────────────────────────────────────┤
    │       Models & Schemas (Data)       │  ← SQLAlchemy ORM + Pydantic
    ├─────────────────────────────────────┤
    │        Database (Persistence)       │  ← DatabaseContext sessions
    └─────────────────────────────────────┘

    The auto-save controller runs next to the editor surface and reaches the
    routes through `DraftApiClient`, with a local file store underneath it.
"""

__version__ = "1.0.0"
