from __future__ import annotations

from typing import AsyncIterator

from fastapi import Request
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker


def get_sessionmaker(request: Request) -> async_sessionmaker[AsyncSession]:
    """Return the sessionmaker stored on the FastAPI app state."""

    return request.app.state.sessionmaker


async def get_db(request: Request) -> AsyncIterator[AsyncSession]:
    """Provide a request-scoped async database session."""

    async with get_sessionmaker(request)() as session:
        yield session
