"""
Database session context.

Repositories never hold a session of their own. They ask ``get_session()``
for one, and these context variables decide whether that call joins an
enclosing ``transaction()`` or opens a short-lived session.

    async with transaction():
        invoice = await invoice_repo.create(ctx, invoice_create)
        await line_repo.add_lines(ctx, invoice.id, lines)  # same session

    @readonly
    async def build_overview(...):
        ...  # every repository call uses the read session factory
"""

from contextvars import ContextVar
from functools import wraps
from typing import Optional, Callable, TypeVar, ParamSpec

from sqlalchemy.ext.asyncio import AsyncSession

_write_session: ContextVar[Optional[AsyncSession]] = ContextVar(
    "db_write_session", default=None
)
_read_session: ContextVar[Optional[AsyncSession]] = ContextVar(
    "db_read_session", default=None
)
_force_readonly: ContextVar[bool] = ContextVar("db_force_readonly", default=False)


def is_readonly_forced() -> bool:
    return _force_readonly.get()


def get_current_session(readonly: bool = False) -> Optional[AsyncSession]:
    """Session of the enclosing transaction, or None outside of one."""
    if readonly or is_readonly_forced():
        return _read_session.get()
    return _write_session.get()


def set_current_session(session: AsyncSession, readonly: bool = False) -> object:
    if readonly:
        return _read_session.set(session)
    return _write_session.set(session)


def reset_current_session(token: object, readonly: bool = False) -> None:
    if readonly:
        _read_session.reset(token)
    else:
        _write_session.reset(token)


def in_transaction(readonly: bool = False) -> bool:
    return get_current_session(readonly=readonly) is not None


P = ParamSpec("P")
T = TypeVar("T")


def readonly(func: Callable[P, T]) -> Callable[P, T]:
    """Force every DB operation in the decorated call chain onto the read session."""

    @wraps(func)
    async def wrapper(*args: P.args, **kwargs: P.kwargs) -> T:
        token = _force_readonly.set(True)
        try:
            return await func(*args, **kwargs)
        finally:
            _force_readonly.reset(token)

    return wrapper


def transactional(func: Callable[P, T]) -> Callable[P, T]:
    """
    Run the decorated coroutine inside one ``transaction()``.

    Commits when it returns, rolls back when it raises.
    """

    @wraps(func)
    async def wrapper(*args: P.args, **kwargs: P.kwargs) -> T:
        from common.db.scoped import transaction as tx  # noqa: PLC0415

        async with tx():
            return await func(*args, **kwargs)

    return wrapper
