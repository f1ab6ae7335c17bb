"""SQL toolkit factory.

:func:`get_sql_toolkit` is the single entry point for consumer code: a
lazily created, thread-safe singleton.  Connector worker threads and the
event loop share it, hence the lock.
"""

from __future__ import annotations

import threading
from collections.abc import Callable

from ._protocols import SqlToolkit

_lock = threading.Lock()
_instance: SqlToolkit | None = None
_factory_fn: Callable[[], SqlToolkit] | None = None


def register_implementation(factory_fn: Callable[[], SqlToolkit]) -> None:
    """Use *factory_fn* to build the toolkit instead of the SQLGlot default."""
    global _factory_fn, _instance
    with _lock:
        _factory_fn = factory_fn
        _instance = None


def get_sql_toolkit() -> SqlToolkit:
    """Return the active :class:`SqlToolkit` singleton."""
    global _instance
    if _instance is not None:
        return _instance

    with _lock:
        if _instance is not None:
            return _instance

        if _factory_fn is not None:
            _instance = _factory_fn()
        else:
            from .impl.sqlglot_impl import SqlGlotToolkit

            _instance = SqlGlotToolkit()

        return _instance


def reset_toolkit() -> None:
    """Reset the singleton.  **For testing only.**"""
    global _instance, _factory_fn
    with _lock:
        _instance = None
        _factory_fn = None
