"""
Message queue store.

Messages are rows in a single SQL table keyed by queue name. Receiving a
message deletes it, so each message is handed out once per successful
receive.
"""
from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncEngine, async_sessionmaker

from retail_storage.database import Base, QueueMessageRow
from retail_storage.utils.datetime import utc_now


class QueueStore:
    """SQL-backed FIFO queues."""

    def __init__(self, engine: AsyncEngine, session_factory: async_sessionmaker):
        self.engine = engine
        self.session_factory = session_factory

    async def create_queues(self, queue_names: list[str]) -> list[str]:
        """
        Create the message table backing every queue.

        Args:
            queue_names: Queues that will be used

        Returns:
            The queue names, now ready for use
        """
        async with self.engine.begin() as conn:
            await conn.run_sync(
                Base.metadata.create_all,
                tables=[QueueMessageRow.__table__],
                checkfirst=True,
            )
        return list(queue_names)

    async def send(self, queue_name: str, content: str) -> None:
        async with self.session_factory() as session:
            session.add(
                QueueMessageRow(queue_name=queue_name, content=content, inserted_at=utc_now())
            )
            await session.commit()

    async def receive(self, queue_name: str) -> str | None:
        """
        Pop the oldest message of a queue.

        Another receiver may take the same head message first; the delete
        row count tells which receiver won, and the loser moves on to the
        next message.

        Returns:
            Message content, or None when the queue is empty
        """
        while True:
            async with self.session_factory() as session:
                result = await session.execute(
                    select(QueueMessageRow)
                    .where(QueueMessageRow.queue_name == queue_name)
                    .order_by(QueueMessageRow.id)
                    .limit(1)
                )
                message = result.scalars().first()
                if message is None:
                    return None

                deleted = await session.execute(
                    delete(QueueMessageRow)
                    .where(QueueMessageRow.id == message.id)
                    .execution_options(synchronize_session=False)
                )
                await session.commit()

            if deleted.rowcount == 1:
                return message.content
