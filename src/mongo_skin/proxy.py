"""
LazyProxy - deferred binding of a handle to its native driver object.

Client, database and collection handles can be created and used before
any connection exists. The first operation on an unresolved handle
starts a single open; every operation issued until the open completes
is queued and dispatched in issue order once the native object is
available.
"""

from __future__ import annotations

import asyncio
import enum
import functools
import inspect
import logging
import types
from collections import deque
from dataclasses import dataclass
from typing import Any, Mapping

from .types import ConnectionOpenFailed

logger = logging.getLogger(__name__)

__all__ = ["ConnectionState", "LazyProxy", "PendingOperation"]


class ConnectionState(enum.Enum):
    """Binding state of a LazyProxy. Only moves forward, except on a failed open."""

    UNRESOLVED = "unresolved"
    RESOLVING = "resolving"
    RESOLVED = "resolved"


@dataclass
class PendingOperation:
    """
    An operation issued while the native object was not yet available.

    Attributes:
        method: Native method to call, or None to just receive the native object.
        args: Positional arguments for the call.
        kwargs: Keyword arguments for the call.
        future: Completed with the call's result or error.
    """

    method: str | None
    args: tuple[Any, ...]
    kwargs: dict[str, Any]
    future: asyncio.Future[Any]


def _transfer(future: asyncio.Future[Any], task: asyncio.Future[Any]) -> None:
    if future.done():
        if not task.cancelled():
            task.exception()
        return
    if task.cancelled():
        future.cancel()
    elif task.exception() is not None:
        future.set_exception(task.exception())
    else:
        future.set_result(task.result())


class LazyProxy:
    """
    Base class for handles that bind to a native driver object on demand.

    Subclasses implement ``_open()`` to produce the native object and call
    ``_dispatch()`` to run native methods against it.

    Per-instance extensions can be attached with ``_extend()``. They are
    looked up before the class attributes, so an extension may replace a
    built-in method of the same name on that one instance.
    """

    __slots__ = ("_extensions", "_native", "_state", "_pending", "_resolver")

    def __init__(self) -> None:
        self._extensions: dict[str, Any] = {}
        self._native: Any = None
        self._state = ConnectionState.UNRESOLVED
        self._pending: deque[PendingOperation] = deque()
        self._resolver: asyncio.Task[None] | None = None

    def __getattribute__(self, name: str) -> Any:
        if not name.startswith("_"):
            extensions = object.__getattribute__(self, "_extensions")
            if name in extensions:
                return extensions[name]
        return object.__getattribute__(self, name)

    @property
    def state(self) -> ConnectionState:
        """Get the current binding state."""
        return self._state

    @property
    def is_open(self) -> bool:
        """Check if the native object has been resolved."""
        return self._state is ConnectionState.RESOLVED

    @property
    def extensions(self) -> Mapping[str, Any]:
        """Get a read-only view of the attached extensions."""
        return types.MappingProxyType(self._extensions)

    def _extend(self, extensions: Mapping[str, Any]) -> None:
        """
        Attach extensions to this instance.

        Plain functions are bound so they receive this handle as their first
        argument. Other values are stored as-is.

        Raises:
            ValueError: If a name starts with an underscore.
        """
        for name, value in extensions.items():
            if name.startswith("_"):
                raise ValueError(f"Cannot bind private name {name!r}")
            if inspect.isfunction(value):
                value = types.MethodType(value, self)
            self._extensions[name] = value

    async def _open(self) -> Any:
        """Produce the native object. Implemented by subclasses."""
        raise NotImplementedError

    async def open(self) -> Any:
        """
        Resolve and return the native object.

        Concurrent callers share one in-flight open.

        Raises:
            ConnectionOpenFailed: If the native object could not be opened.
        """
        if self._state is ConnectionState.RESOLVED:
            return self._native
        return await self._defer(None, (), {})

    async def _dispatch(self, method: str, *args: Any, **kwargs: Any) -> Any:
        """
        Call a native method, opening first if needed.

        Awaitable results are awaited, so callers always get the final value.
        """
        if self._state is not ConnectionState.RESOLVED:
            return await self._defer(method, args, kwargs)

        result = getattr(self._native, method)(*args, **kwargs)
        if inspect.isawaitable(result):
            result = await result
        return result

    def _defer(
        self,
        method: str | None,
        args: tuple[Any, ...],
        kwargs: dict[str, Any],
    ) -> asyncio.Future[Any]:
        loop = asyncio.get_running_loop()
        future = loop.create_future()
        self._pending.append(PendingOperation(method, args, kwargs, future))

        if self._state is ConnectionState.UNRESOLVED:
            self._state = ConnectionState.RESOLVING
            logger.debug("Opening %r", self)
            self._resolver = loop.create_task(self._resolve())
        return future

    async def _resolve(self) -> None:
        try:
            native = await self._open()
        except asyncio.CancelledError:
            self._state = ConnectionState.UNRESOLVED
            while self._pending:
                self._pending.popleft().future.cancel()
            raise
        except Exception as e:
            self._state = ConnectionState.UNRESOLVED
            logger.debug("Failed to open %r: %s", self, e)
            while self._pending:
                self._fail(self._pending.popleft(), e)
            return

        self._native = native
        self._state = ConnectionState.RESOLVED
        logger.debug("Opened %r, dispatching %d pending operation(s)", self, len(self._pending))
        while self._pending:
            self._settle(self._pending.popleft())

    def _fail(self, operation: PendingOperation, error: Exception) -> None:
        if operation.future.done():
            return
        if isinstance(error, ConnectionOpenFailed):
            operation.future.set_exception(error)
            return
        failure = ConnectionOpenFailed(f"Failed to open {self!r}: {error}")
        failure.__cause__ = error
        operation.future.set_exception(failure)

    def _settle(self, operation: PendingOperation) -> None:
        future = operation.future
        if future.done():
            return
        if operation.method is None:
            future.set_result(self._native)
            return

        try:
            result = getattr(self._native, operation.method)(*operation.args, **operation.kwargs)
        except Exception as e:
            future.set_exception(e)
            return

        if inspect.isawaitable(result):
            task = asyncio.ensure_future(result)
            task.add_done_callback(functools.partial(_transfer, future))
        else:
            future.set_result(result)
