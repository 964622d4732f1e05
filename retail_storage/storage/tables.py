"""
Entity table store.

This module persists entities in one SQL table per kind. Writes are
conditional on the ETag column, which gives the same optimistic concurrency
contract a partition/row-keyed cloud table offers.
"""
import uuid

from sqlalchemy import delete, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncEngine, async_sessionmaker

from retail_storage.database import Base, ROW_TYPES
from retail_storage.models import ENTITY_TYPES, EntityKind, StorageEntity, table_name_for
from retail_storage.storage.exceptions import ConcurrencyConflictError, DuplicateKeyError
from retail_storage.utils.datetime import utc_now
from retail_storage.utils.ids import generate_row_key


def new_etag() -> str:
    """Generate a fresh opaque concurrency token."""
    return f'W/"{uuid.uuid4().hex}"'


class EntityTableStore:
    """
    SQL-backed table store.

    Every successful write assigns a new ETag. Callers must hand back the
    ETag they read; the store never compares anything but equality.
    """

    def __init__(self, engine: AsyncEngine, session_factory: async_sessionmaker):
        self.engine = engine
        self.session_factory = session_factory

    async def create_tables(self) -> list[str]:
        """
        Create every entity table that does not exist yet.

        Returns:
            Names of the provisioned tables
        """
        tables = [row_type.__table__ for row_type in ROW_TYPES.values()]
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all, tables=tables, checkfirst=True)
        return [table.name for table in tables]

    def _to_entity(self, kind: EntityKind, row) -> StorageEntity:
        return ENTITY_TYPES[kind].from_properties(
            row.partition_key,
            row.row_key,
            row.properties or {},
            etag=row.etag,
            timestamp=row.timestamp,
        )

    async def query(self, kind: EntityKind) -> list[StorageEntity]:
        row_type = ROW_TYPES[kind]
        async with self.session_factory() as session:
            result = await session.execute(select(row_type))
            return [self._to_entity(kind, row) for row in result.scalars().all()]

    async def get(self, kind: EntityKind, partition_key: str, row_key: str) -> StorageEntity | None:
        row_type = ROW_TYPES[kind]
        async with self.session_factory() as session:
            row = await session.get(row_type, (partition_key, row_key))
            if row is None:
                return None
            return self._to_entity(kind, row)

    async def insert(self, entity: StorageEntity) -> StorageEntity:
        """
        Insert a new row.

        Raises:
            DuplicateKeyError: If the (partition, row) key already exists
        """
        if not entity.row_key or not entity.row_key.strip():
            entity = entity.model_copy(update={"row_key": generate_row_key()})

        etag = new_etag()
        timestamp = utc_now()
        row = ROW_TYPES[entity.kind](
            partition_key=entity.partition_key,
            row_key=entity.row_key,
            etag=etag,
            timestamp=timestamp,
            properties=entity.to_properties(),
        )

        async with self.session_factory() as session:
            session.add(row)
            try:
                await session.commit()
            except IntegrityError as e:
                await session.rollback()
                raise DuplicateKeyError(
                    table_name_for(entity.kind), entity.partition_key, entity.row_key
                ) from e

        return entity.model_copy(update={"etag": etag, "timestamp": timestamp})

    async def replace(self, entity: StorageEntity) -> StorageEntity:
        """
        Replace a row if its stored ETag still equals entity.etag.

        Raises:
            ConcurrencyConflictError: If the row changed or vanished since it was read
        """
        row_type = ROW_TYPES[entity.kind]
        etag = new_etag()
        timestamp = utc_now()

        statement = (
            update(row_type)
            .where(
                row_type.partition_key == entity.partition_key,
                row_type.row_key == entity.row_key,
                row_type.etag == entity.etag,
            )
            .values(
                {
                    row_type.etag: etag,
                    row_type.timestamp: timestamp,
                    row_type.properties: entity.to_properties(),
                }
            )
            .execution_options(synchronize_session=False)
        )

        async with self.session_factory() as session:
            result = await session.execute(statement)
            await session.commit()

        if result.rowcount == 0:
            raise ConcurrencyConflictError(table_name_for(entity.kind), entity.row_key)

        return entity.model_copy(update={"etag": etag, "timestamp": timestamp})

    async def delete(self, kind: EntityKind, partition_key: str, row_key: str) -> None:
        """Delete a row; a missing row is not an error."""
        row_type = ROW_TYPES[kind]
        statement = delete(row_type).where(
            row_type.partition_key == partition_key,
            row_type.row_key == row_key,
        )
        async with self.session_factory() as session:
            await session.execute(statement)
            await session.commit()
