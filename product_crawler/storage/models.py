"""
SQLAlchemy models for persisted product URLs.
"""

from __future__ import annotations

from sqlalchemy import Integer, String, Text
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    pass


class ProductURL(Base):
    """
    One discovered product detail page. ``url`` is globally unique; rows are
    never updated or deleted by the crawler.
    """

    __tablename__ = "product_urls"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    domain: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        index=True,
    )

    url: Mapped[str] = mapped_column(
        Text,
        nullable=False,
        unique=True,
    )
