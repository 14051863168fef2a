from sqlmodel.ext.asyncio.session import AsyncSession
from src.app.services.unit_of_work import UnitOfWork


class SqlAlchemyUnitOfWork(UnitOfWork):
    """
    Commit/rollback over the AsyncSession shared by a use case's repositories

    Leaving the context discards anything still uncommitted.
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    async def commit(self):
        await self.session.commit()

    async def rollback(self):
        # Nothing to discard after a commit or before the first statement
        if self.session.in_transaction():
            await self.session.rollback()
