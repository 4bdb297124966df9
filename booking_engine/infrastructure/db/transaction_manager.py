from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from sqlalchemy.ext.asyncio import AsyncSession

from booking_engine.application.interfaces.transaction_manager import TransactionManager


class SQLAlchemyTransactionManager(TransactionManager):
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    @asynccontextmanager
    async def start(self) -> AsyncIterator[None]:
        if self._session.in_nested_transaction():
            yield
            return
        if not self._session.in_transaction():
            async with self._session.begin():
                yield
            return

        # Reads before start() autobegin a transaction; the writes commit with it.
        try:
            yield
        except BaseException:
            await self._session.rollback()
            raise
        await self._session.commit()
