"""
Change Stream Module.

Emulates a push stream over the change feed by polling. Each cycle opens one
consistent read, captures the current checkpoint together with the changes
since the cursor, emits the (projected) changes and advances the cursor.
"""

import asyncio
import contextlib
import logging
from datetime import datetime
from enum import Enum
from typing import Any, AsyncIterator, Dict, List, Optional, Sequence, Tuple

from cdc_client.model.events import ChangeEvent, ChangeIdentifier
from cdc_client.selector.projection import apply_governing_selector
from cdc_client.selector.selectors import EntitySelector
from cdc_client.transport.base import CDCTransport

logger = logging.getLogger(__name__)


class StreamState(str, Enum):
    """Poll loop states."""
    IDLE = "idle"
    QUERYING = "querying"
    DRAINING = "draining"
    ADVANCING = "advancing"
    SLEEPING = "sleeping"
    CANCELLED = "cancelled"
    FAILED = "failed"


class ChangeStream:
    """
    Unbounded, cancellable sequence of change events.

    Iterate with ``async for``. The stream owns its cursor; ``cursor`` is a
    snapshot that may be read at any time, e.g. to persist a checkpoint.
    Errors from the transport end the stream and are raised to the consumer;
    nothing is retried.

    Example:
        >>> stream = client.stream(await client.current())
        >>> async for event in stream:
        ...     handle(event)
        ...     save_checkpoint(stream.cursor)
    """

    def __init__(
        self,
        transport: CDCTransport,
        selectors: Sequence[EntitySelector],
        start: ChangeIdentifier,
        poll_interval: float = 1.0,
        name: str = "cdc-stream",
    ):
        if start is None:
            raise ValueError("start cursor is required")
        if poll_interval < 0:
            raise ValueError("poll_interval must be non-negative")

        self._transport = transport
        self._selectors: Tuple[EntitySelector, ...] = tuple(selectors)
        self._wire_selectors: List[Dict[str, Any]] = [s.as_map() for s in self._selectors]
        self._poll_interval = poll_interval
        self._name = name

        self._cursor = start
        self._state = StreamState.IDLE
        self._cancel_requested = asyncio.Event()
        self._iterator: Optional[AsyncIterator[ChangeEvent]] = None
        self._step_done = asyncio.Event()
        self._step_done.set()
        self._stats = {
            "cycles": 0,
            "idle_cycles": 0,
            "events_emitted": 0,
            "started_at": None,
            "last_event_at": None,
        }

    @property
    def cursor(self) -> ChangeIdentifier:
        """Identifier of the last emitted event, or the last idle checkpoint."""
        return self._cursor

    @property
    def state(self) -> StreamState:
        return self._state

    @property
    def cancelled(self) -> bool:
        return self._cancel_requested.is_set()

    @property
    def stats(self) -> Dict[str, Any]:
        """Get stream statistics."""
        return {
            **self._stats,
            "state": self._state.value,
            "cursor": self._cursor.id,
        }

    def cancel(self) -> None:
        """Request cancellation; the stream ends at its next check point."""
        if not self._cancel_requested.is_set():
            logger.info(f"Cancellation requested for stream {self._name}")
        self._cancel_requested.set()

    def __aiter__(self) -> "ChangeStream":
        return self

    async def __anext__(self) -> ChangeEvent:
        if self._iterator is None:
            self._iterator = self._run()
        self._step_done.clear()
        try:
            return await self._iterator.__anext__()
        finally:
            self._step_done.set()

    async def aclose(self) -> None:
        """
        Cancel the stream and release the underlying iterator.

        Safe to call from a task other than the consumer: a step in flight
        observes the cancellation and ends before the iterator is closed.
        """
        self.cancel()
        await self._step_done.wait()
        if self._iterator is not None:
            await self._iterator.aclose()
        if self._state not in (StreamState.FAILED, StreamState.CANCELLED):
            self._state = StreamState.CANCELLED

    async def _read_cycle(self) -> Tuple[ChangeIdentifier, List[ChangeEvent]]:
        async with self._transport.consistent_read() as read:
            current = await read.current_id()
            changes = await read.changes_since(self._cursor, self._wire_selectors)
        return current, changes

    async def _read_unless_cancelled(
        self,
    ) -> Optional[Tuple[ChangeIdentifier, List[ChangeEvent]]]:
        """Run one read cycle, abandoning it if cancellation is requested first."""
        read_task = asyncio.ensure_future(self._read_cycle())
        cancel_wait = asyncio.ensure_future(self._cancel_requested.wait())
        try:
            await asyncio.wait({read_task, cancel_wait}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            cancel_wait.cancel()
            if not read_task.done():
                read_task.cancel()
                with contextlib.suppress(asyncio.CancelledError):
                    await read_task

        if read_task.cancelled():
            return None
        return read_task.result()

    async def _sleep(self) -> None:
        if self._poll_interval <= 0:
            # still yield to the loop so cancellation can be observed
            await asyncio.sleep(0)
            return
        try:
            await asyncio.wait_for(self._cancel_requested.wait(), timeout=self._poll_interval)
        except asyncio.TimeoutError:
            pass

    def _finish_cancelled(self) -> None:
        self._state = StreamState.CANCELLED
        logger.info(f"Stream {self._name} cancelled at cursor {self._cursor}")

    async def _run(self) -> AsyncIterator[ChangeEvent]:
        self._stats["started_at"] = datetime.utcnow()
        logger.info(f"Starting stream {self._name} from {self._cursor}")

        try:
            while not self.cancelled:
                self._state = StreamState.QUERYING
                self._stats["cycles"] += 1
                logger.debug(f"Stream {self._name} querying changes since {self._cursor}")

                result = await self._read_unless_cancelled()
                if result is None:
                    break
                current, changes = result

                self._state = StreamState.DRAINING
                for change in changes:
                    if self.cancelled:
                        break
                    event = apply_governing_selector(self._selectors, change)
                    self._cursor = change.id
                    self._stats["events_emitted"] += 1
                    self._stats["last_event_at"] = datetime.utcnow()
                    yield event
                    self._state = StreamState.DRAINING

                if self.cancelled:
                    break

                if not changes:
                    self._state = StreamState.ADVANCING
                    self._stats["idle_cycles"] += 1
                    self._cursor = current
                    logger.debug(f"Stream {self._name} idle, cursor advanced to {current}")

                self._state = StreamState.SLEEPING
                await self._sleep()

        except (asyncio.CancelledError, GeneratorExit):
            self._finish_cancelled()
            raise
        except Exception as e:
            self._state = StreamState.FAILED
            logger.error(f"Stream {self._name} failed at cursor {self._cursor}: {e}")
            raise

        self._finish_cancelled()
