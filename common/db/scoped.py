"""
Operation-scoped database sessions.

``get_session()`` acquires a connection for one repository call and releases
it straight away, so services never pin a connection while they wait on the
queue, Redis or anything else. ``transaction()`` widens the scope so several
repository calls commit or roll back together.

See also:
    - common/db/context.py: context variables and @readonly / @transactional
"""

import time
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from sqlalchemy.ext.asyncio import AsyncSession

from common.core.otel_axiom_exporter import get_logger
from common.db.session import AsyncSessionLocal, AsyncSessionLocalReadonly
from common.db.context import (
    get_current_session,
    set_current_session,
    reset_current_session,
    is_readonly_forced,
)

logger = get_logger(__name__)


def _session_factory(readonly: bool):
    if readonly:
        return AsyncSessionLocalReadonly
    return AsyncSessionLocal


@asynccontextmanager
async def transaction(readonly: bool = False) -> AsyncGenerator[AsyncSession, None]:
    """
    Explicit transaction boundary.

    Every ``get_session()`` call inside shares this session. Commits on
    success (unless readonly), rolls back and re-raises on exception.
    Nested ``transaction()`` calls join the outer one.
    """
    effective_readonly = readonly or is_readonly_forced()
    existing = get_current_session(readonly=effective_readonly)
    if existing is not None:
        yield existing
        return

    start = time.perf_counter()
    async with _session_factory(effective_readonly)() as session:
        logger.debug(
            f"Transaction session acquire: {(time.perf_counter() - start) * 1000:.2f}ms, readonly={effective_readonly}"
        )

        token = set_current_session(session, readonly=effective_readonly)
        try:
            yield session
            if not effective_readonly:
                await session.commit()
        except Exception as e:
            logger.error(f"Transaction rollback due to: {e}")
            await session.rollback()
            raise
        finally:
            reset_current_session(token, readonly=effective_readonly)


@asynccontextmanager
async def get_session(readonly: bool = False) -> AsyncGenerator[AsyncSession, None]:
    """
    Session for a single DB operation.

    Reuses the enclosing ``transaction()`` session when there is one (and
    leaves committing to it). Otherwise acquires a fresh session, commits
    and releases it when the block exits.
    """
    effective_readonly = readonly or is_readonly_forced()
    existing = get_current_session(readonly=effective_readonly)

    if existing is not None:
        yield existing
        return

    start = time.perf_counter()
    async with _session_factory(effective_readonly)() as session:
        logger.debug(
            f"Operation session acquire: {(time.perf_counter() - start) * 1000:.2f}ms, readonly={effective_readonly}"
        )
        try:
            yield session
            if not effective_readonly:
                await session.commit()
        except Exception as e:
            logger.error(f"Operation rollback due to: {e}")
            await session.rollback()
            raise
