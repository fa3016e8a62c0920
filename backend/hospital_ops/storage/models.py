"""SQLAlchemy models for the durable key-value store."""

from sqlalchemy import String, Text
from sqlalchemy.orm import Mapped, mapped_column

from hospital_ops.database import Base, TimestampMixin


class StorageEntry(TimestampMixin, Base):
    """One string-valued entry, addressed by key.

    Mirrors browser local storage: values are opaque strings (JSON documents
    in practice) and writing a key replaces the previous value.
    """

    __tablename__ = "storage_entries"

    key: Mapped[str] = mapped_column(String(255), primary_key=True)
    value: Mapped[str] = mapped_column(Text, nullable=False)
