"""SQLAlchemy models for the durable document store."""

from datetime import datetime, timezone

from sqlalchemy import DateTime, Index, String, Text
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    pass


class Document(Base):
    """One top-level document (``trips/{id}`` or ``codes/{code}``) stored as JSON."""

    __tablename__ = "documents"

    key: Mapped[str] = mapped_column(String(256), primary_key=True)
    collection: Mapped[str] = mapped_column(String(64), nullable=False)
    body_json: Mapped[str] = mapped_column(Text, nullable=False, default="null")
    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=lambda: datetime.now(timezone.utc)
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    __table_args__ = (Index("idx_documents_collection", "collection"),)

    def __repr__(self) -> str:
        return f"<Document {self.key}>"
