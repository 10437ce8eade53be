"""
Database utilities and transaction management.
"""

import contextlib
import sys
from typing import AsyncGenerator

from asgiref.sync import sync_to_async
from django.db import transaction


@contextlib.asynccontextmanager
async def async_transaction() -> AsyncGenerator[None, None]:
    """
    Async context manager for database transactions.

    The atomic block is entered and exited through thread-sensitive
    ``sync_to_async`` so it binds to the same connection the repositories use.

    Usage:
        async with async_transaction():
            # Database operations
            pass
    """
    atomic = transaction.atomic()
    await sync_to_async(atomic.__enter__)()
    try:
        yield
    except BaseException:
        exc_type, exc_value, tb = sys.exc_info()
        await sync_to_async(atomic.__exit__)(exc_type, exc_value, tb)
        raise
    else:
        await sync_to_async(atomic.__exit__)(None, None, None)
