from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager

from sqlalchemy.exc import InterfaceError, OperationalError


class StorageUnavailable(Exception):
    """The backing store could not be reached or failed mid-operation.

    Safe to retry: every store operation is either a read or an
    idempotent merge.
    """


@contextmanager
def storage_errors(operation: str) -> Iterator[None]:
    """Re-raise connectivity failures from the driver as StorageUnavailable.

    Integrity and programming errors are bugs, not outages, and pass
    through untouched.
    """
    try:
        yield
    except (OperationalError, InterfaceError, OSError) as exc:
        raise StorageUnavailable(f"{operation} failed: {exc}") from exc
