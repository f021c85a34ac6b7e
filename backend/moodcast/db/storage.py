from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from ..core.errors import StorageUnavailable


@asynccontextmanager
async def storage_call(operation: str, timeout: float | None = None) -> AsyncIterator[None]:
    """Bound a storage round-trip in time and translate driver failures.

    IntegrityError passes through untouched so callers can treat it as a
    write conflict. Cancellation is never converted.
    """
    try:
        async with asyncio.timeout(timeout):
            yield
    except IntegrityError:
        raise
    except (SQLAlchemyError, OSError, TimeoutError) as exc:
        raise StorageUnavailable(f"{operation} failed: {exc}") from exc
