"""
Bounded execution of storage work.

Wraps an engine operation so that a caller-supplied timeout or a lost database
connection surfaces as StorageUnavailableError with the session rolled back.
"""

import asyncio
from collections.abc import Awaitable
from typing import TypeVar

from sqlalchemy.exc import InterfaceError, OperationalError
from sqlalchemy.ext.asyncio import AsyncSession

from mathmind.services.errors import StorageUnavailableError

T = TypeVar("T")


async def run_bounded(session: AsyncSession, operation: Awaitable[T], timeout: float | None) -> T:
    """
    Await operation, failing with StorageUnavailableError after timeout seconds.

    Any other exception rolls the session back and propagates unchanged, so a
    rejected submission never leaves a half-applied unit of work behind.

    Args:
        session: Session the operation runs in
        operation: Awaitable doing the storage work
        timeout: Seconds to wait, or None for no bound

    Raises:
        StorageUnavailableError: On timeout or connectivity failure
    """
    try:
        return await asyncio.wait_for(operation, timeout)
    except asyncio.TimeoutError as e:
        await session.rollback()
        raise StorageUnavailableError(f"Storage did not respond within {timeout}s") from e
    except (OperationalError, InterfaceError) as e:
        await session.rollback()
        raise StorageUnavailableError(f"Storage unavailable: {e.orig or e}") from e
    except Exception:
        await session.rollback()
        raise
