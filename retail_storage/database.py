from datetime import datetime

from sqlalchemy import JSON, DateTime, Index, String, Text
from sqlalchemy.ext.asyncio import AsyncEngine, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from retail_storage.models import EntityKind, TABLE_NAMES


# All row classes share this base so Base.metadata tracks every table
class Base(DeclarativeBase):
    pass


class EntityRow:
    """
    Columns shared by every entity table.

    Mirrors a partition/row-keyed table: the two keys form the primary key,
    ETag holds the concurrency token and the type-specific fields live in a
    JSON property bag.
    """

    partition_key: Mapped[str] = mapped_column("PartitionKey", String(255), primary_key=True)
    row_key: Mapped[str] = mapped_column("RowKey", String(255), primary_key=True)
    etag: Mapped[str] = mapped_column("ETag", String(64))
    timestamp: Mapped[datetime] = mapped_column("Timestamp", DateTime)
    properties: Mapped[dict] = mapped_column("Properties", JSON)


class CustomerRow(EntityRow, Base):
    __tablename__ = TABLE_NAMES[EntityKind.CUSTOMER]


class ProductRow(EntityRow, Base):
    __tablename__ = TABLE_NAMES[EntityKind.PRODUCT]


class OrderRow(EntityRow, Base):
    __tablename__ = TABLE_NAMES[EntityKind.ORDER]


ROW_TYPES: dict[EntityKind, type[EntityRow]] = {
    EntityKind.CUSTOMER: CustomerRow,
    EntityKind.PRODUCT: ProductRow,
    EntityKind.ORDER: OrderRow,
}


class QueueMessageRow(Base):
    """One pending message; receiving a message deletes its row."""

    __tablename__ = "QueueMessages"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    queue_name: Mapped[str] = mapped_column(String(63))
    content: Mapped[str] = mapped_column(Text)
    inserted_at: Mapped[datetime] = mapped_column(DateTime)

    __table_args__ = (Index("ix_queue_messages_queue_id", "queue_name", "id"),)


def create_engine(database_url: str) -> AsyncEngine:
    """Create the async engine (connection pool) for a database URL."""
    return create_async_engine(database_url)


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker:
    # expire_on_commit=False: rows stay readable after commit
    return async_sessionmaker(bind=engine, expire_on_commit=False, autoflush=False)
