"""
Declarative base and shared column mixins for storefront tables.
"""

from datetime import datetime

from sqlalchemy import DateTime, Integer, func
from sqlalchemy.ext.asyncio import AsyncAttrs
from sqlalchemy.orm import DeclarativeBase, Mapped, declared_attr, mapped_column


class Base(AsyncAttrs, DeclarativeBase):
    """Metadata root for every mapped class."""

    __abstract__ = True

    def __repr__(self) -> str:
        keys = [
            f"{column.name}={getattr(self, column.key)!r}"
            for column in self.__table__.primary_key.columns
            if getattr(self, column.key, None) is not None
        ]
        return f"<{type(self).__name__}({', '.join(keys) or 'transient'})>"


class IntegerIdMixin:
    @declared_attr
    def id(cls) -> Mapped[int]:
        return mapped_column(Integer, primary_key=True, autoincrement=True)


class TimestampMixin:
    """``created_at`` and ``updated_at`` filled in by the database."""

    @declared_attr
    def created_at(cls) -> Mapped[datetime]:
        return mapped_column(
            DateTime(timezone=True),
            nullable=False,
            server_default=func.now(),
        )

    @declared_attr
    def updated_at(cls) -> Mapped[datetime]:
        return mapped_column(
            DateTime(timezone=True),
            nullable=False,
            server_default=func.now(),
            onupdate=func.now(),
        )


class BaseModel(Base, IntegerIdMixin, TimestampMixin):
    """
    Abstract parent of the storefront tables.

    Example:
        class Category(BaseModel):
            __tablename__ = "categories"

            name: Mapped[str] = mapped_column(String(100), unique=True)
    """

    __abstract__ = True

    # Fetch server-side timestamps during flush; async sessions cannot lazy-load
    __mapper_args__ = {"eager_defaults": True}
