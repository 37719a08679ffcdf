"""Infrastructure layer - External dependencies and implementations.

This layer contains:
- Tabular store backends (in-memory, SQLAlchemy)
- Per-sheet locking
- Repositories mapping rows to domain entities
- Password hashing

The infrastructure layer implements interfaces consumed by the domain
services.
"""
