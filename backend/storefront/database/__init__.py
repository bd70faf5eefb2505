"""
Database package initialization.

The package follows a modular structure:
- base: declarative base and common mixins
- connection: async engine and session management
- models: SQLAlchemy ORM models for all entities
"""

# Import submodules explicitly when needed to avoid circular dependencies
__all__ = []
