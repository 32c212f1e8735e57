"""Server-Sent Events emission for the agent loop.

Each observation becomes one ``data: <json>\\n\\n`` unit. After the terminal
event the emitter writes the ``data: [DONE]`` marker and releases the channel.
"""

import asyncio
import json
import logging

from .events import StreamEvent
from .exceptions import ChannelClosedError

logger = logging.getLogger(__name__)

END_OF_STREAM = "data: [DONE]\n\n"


def encode_event(event: StreamEvent) -> str:
    """Encode one event as a complete SSE unit."""
    return f"data: {json.dumps(event.to_payload(), ensure_ascii=False, default=str)}\n\n"


class QueueChannel:
    """Outbound channel backed by an asyncio queue.

    The request task writes encoded units with ``send``; the HTTP response
    iterates the channel until it is closed.
    """

    _CLOSED = object()

    def __init__(self):
        self.queue: asyncio.Queue = asyncio.Queue()
        self.closed = False

    async def send(self, unit: str) -> None:
        if self.closed:
            raise ChannelClosedError("Output channel is closed")
        self.queue.put_nowait(unit)

    def close(self) -> None:
        if not self.closed:
            self.closed = True
            self.queue.put_nowait(self._CLOSED)

    def __aiter__(self):
        return self

    async def __anext__(self) -> str:
        unit = await self.queue.get()
        if unit is self._CLOSED:
            raise StopAsyncIteration
        return unit


class EventEmitter:
    """Writes observations to an output channel in the order they are emitted.

    The channel needs ``async send(unit)``, ``close()`` and a ``closed`` flag.
    """

    def __init__(self, channel):
        self.channel = channel
        self._failed = False
        self.count = 0

    @property
    def closed(self) -> bool:
        return self._failed or self.channel.closed

    async def _write(self, unit: str) -> None:
        if self.closed:
            raise ChannelClosedError("Event stream already closed")
        try:
            await self.channel.send(unit)
        except Exception as e:
            # A failed write is never retried
            self._failed = True
            logger.info(f"STREAM: emission failed: {e}")
            if isinstance(e, ChannelClosedError):
                raise
            raise ChannelClosedError(str(e)) from e

    async def emit(self, event: StreamEvent) -> None:
        await self._write(encode_event(event))
        self.count += 1

    async def close(self) -> None:
        """Write the end-of-stream marker and release the channel."""
        if self.closed:
            self.channel.close()
            return
        try:
            await self._write(END_OF_STREAM)
        finally:
            self.channel.close()
