"""
Channel Consumer
================

WebSocket subscriber for one topic served by the stream bridge.

This module provides the ChannelConsumer class which:
    - Connects to a topic's WebSocket URL
    - Parses each message with a supplied parser
    - Hands parsed messages to a supplied async handler
    - Handles reconnection with a fixed backoff
    - Exposes metrics for health monitoring

and two factories wiring ExtractorNode to the image and unlock topics.

Design Rules:
    - Parse failures are logged and counted, never fatal
    - Handler failures are logged, the channel keeps consuming
    - Reconnects automatically on disconnect
    - Frame writes run on worker threads so the event loop never blocks
"""

import asyncio
import functools
import json
import logging
import time
from typing import Any, Awaitable, Callable, Optional, Set, Union

import websockets
from pydantic import ValidationError
from websockets.exceptions import (
    ConnectionClosedError,
    ConnectionClosedOK,
)

from frame_extractor.extractor.node import ExtractorNode
from frame_extractor.models.input import ImageMessage, UnlockMessage
from frame_extractor.stream.frame import Frame


logger = logging.getLogger(__name__)


RawMessage = Union[str, bytes]
Parser = Callable[[RawMessage], Any]
Handler = Callable[[Any], Awaitable[None]]


class MessageParseError(Exception):
    """Raised by parsers when a message does not match the topic schema."""
    pass


class ChannelMetrics:
    """Metrics for ChannelConsumer observability."""

    __slots__ = (
        "messages_received",
        "reconnect_count",
        "parse_errors",
        "handler_errors",
        "last_message_time",
    )

    def __init__(self) -> None:
        self.messages_received: int = 0
        self.reconnect_count: int = 0
        self.parse_errors: int = 0
        self.handler_errors: int = 0
        self.last_message_time: float = 0.0

    def to_dict(self) -> dict:
        """Export metrics as dict."""
        return {
            "messages_received": self.messages_received,
            "reconnect_count": self.reconnect_count,
            "parse_errors": self.parse_errors,
            "handler_errors": self.handler_errors,
            "last_message_time": self.last_message_time,
        }


class ChannelConsumer:
    """
    WebSocket consumer for one topic.

    Attributes:
        name: Label used in logs and metrics
        url: WebSocket URL to connect to
        connected: Whether currently connected
        metrics: Operational metrics

    Example:
        consumer = ChannelConsumer(
            name="image",
            url="ws://localhost:9090/topics/camera/image",
            parser=parse_image_message,
            handler=on_frame,
        )

        task = asyncio.create_task(consumer.run())

        # Later, stop gracefully
        await consumer.stop()
        await task
    """

    def __init__(
        self,
        name: str,
        url: str,
        parser: Parser,
        handler: Handler,
        reconnect_backoff_ms: int = 500,
        max_reconnect_attempts: int = 0,
    ) -> None:
        """
        Initialize channel consumer.

        Args:
            name: Label for logs and metrics
            url: WebSocket URL of the topic
            parser: Turns a raw message into a handler argument;
                raises MessageParseError on invalid input
            handler: Awaited once per parsed message
            reconnect_backoff_ms: Backoff between reconnect attempts
            max_reconnect_attempts: Max attempts (0 = unlimited)
        """
        self.name = name
        self.url = url
        self.parser = parser
        self.handler = handler
        self.reconnect_backoff_ms = reconnect_backoff_ms
        self.max_reconnect_attempts = max_reconnect_attempts

        # State
        self._websocket: Optional[Any] = None
        self._connected: bool = False
        self._running: bool = False
        self._stop_event: asyncio.Event = asyncio.Event()

        # Metrics
        self.metrics = ChannelMetrics()

    @property
    def connected(self) -> bool:
        """Whether currently connected to the topic."""
        return self._connected

    async def run(self) -> None:
        """
        Start consuming messages.

        Runs indefinitely, reconnecting on disconnect.
        Call stop() to terminate gracefully.
        """
        self._running = True
        self._stop_event.clear()

        logger.info(f"[{self.name}] consumer starting, connecting to {self.url}")

        while self._running:
            try:
                await self._connect_and_consume()
            except Exception as e:
                if not self._running:
                    break

                logger.error(f"[{self.name}] connection error: {e}")
                self._connected = False

                if (
                    self.max_reconnect_attempts > 0
                    and self.metrics.reconnect_count >= self.max_reconnect_attempts
                ):
                    logger.error(
                        f"[{self.name}] max reconnect attempts "
                        f"({self.max_reconnect_attempts}) exceeded"
                    )
                    break

                self.metrics.reconnect_count += 1
                backoff_sec = self.reconnect_backoff_ms / 1000.0
                logger.info(
                    f"[{self.name}] reconnecting in {backoff_sec:.1f}s "
                    f"(attempt {self.metrics.reconnect_count})"
                )

                try:
                    await asyncio.wait_for(
                        self._stop_event.wait(),
                        timeout=backoff_sec,
                    )
                    break
                except asyncio.TimeoutError:
                    pass

        self._running = False
        logger.info(f"[{self.name}] consumer stopped")

    async def stop(self) -> None:
        """
        Stop consuming gracefully.

        Signals the run loop to exit and closes the connection.
        """
        logger.info(f"[{self.name}] consumer stopping...")
        self._running = False
        self._stop_event.set()

        if self._websocket is not None:
            try:
                await self._websocket.close()
            except Exception as e:
                logger.warning(f"[{self.name}] error closing connection: {e}")

        self._connected = False

    async def dispatch(self, raw: RawMessage) -> bool:
        """
        Parse one raw message and hand it to the handler.

        Returns:
            True if the handler ran without error
        """
        self.metrics.messages_received += 1
        self.metrics.last_message_time = time.time()

        try:
            message = self.parser(raw)
        except MessageParseError as e:
            self.metrics.parse_errors += 1
            logger.error(f"[{self.name}] invalid message: {e}")
            return False

        try:
            await self.handler(message)
        except Exception as e:
            self.metrics.handler_errors += 1
            logger.exception(f"[{self.name}] handler failed: {e}")
            return False

        return True

    async def _connect_and_consume(self) -> None:
        """Connect to the WebSocket and consume messages until disconnect."""
        async with websockets.connect(
            self.url,
            ping_interval=20,
            ping_timeout=10,
            close_timeout=5,
            max_size=None,
        ) as ws:
            self._websocket = ws
            self._connected = True
            logger.info(f"[{self.name}] connected: {self.url}")

            try:
                async for raw in ws:
                    if not self._running:
                        break
                    await self.dispatch(raw)

            except ConnectionClosedOK:
                logger.info(f"[{self.name}] connection closed normally")
            except ConnectionClosedError as e:
                logger.warning(f"[{self.name}] connection closed with error: {e}")
                raise
            finally:
                self._connected = False
                self._websocket = None


# =============================================================================
# Topic Parsers
# =============================================================================

def make_image_parser(topic: str) -> Callable[[RawMessage], Frame]:
    """Parser turning image topic messages into Frames."""

    def parse(raw: RawMessage) -> Frame:
        received_at = time.time()
        try:
            message = ImageMessage.model_validate_json(raw)
        except ValidationError as e:
            raise MessageParseError(f"invalid image message: {e}") from e
        return message.to_frame(topic=topic, received_at=received_at)

    return parse


def parse_unlock_message(raw: RawMessage) -> UnlockMessage:
    """
    Parse an unlock topic message.

    Any arrival counts as an unlock, so malformed payloads are accepted
    as an empty signal.
    """
    try:
        data = json.loads(raw)
    except (json.JSONDecodeError, UnicodeDecodeError):
        return UnlockMessage()

    if isinstance(data, dict):
        try:
            return UnlockMessage.model_validate(data)
        except ValidationError:
            return UnlockMessage()
    return UnlockMessage()


# =============================================================================
# Node Wiring
# =============================================================================

class FrameDispatcher:
    """
    Async handler running ExtractorNode frame handling on worker threads.

    The admission decision is awaited in order for each frame; the write
    that follows is scheduled in the background so the next decision is
    not held up by disk I/O.
    """

    def __init__(self, node: ExtractorNode) -> None:
        self.node = node
        self._writes: Set[asyncio.Task] = set()

    @property
    def pending_writes(self) -> int:
        return len(self._writes)

    async def __call__(self, frame: Frame) -> None:
        pending = await asyncio.to_thread(self.node.evaluate, frame)
        if pending is None:
            return

        task = asyncio.create_task(
            asyncio.to_thread(self.node.persist, pending),
            name=f"write_{pending.sequence}",
        )
        self._writes.add(task)
        task.add_done_callback(
            functools.partial(self._write_done, pending.sequence)
        )

    def _write_done(self, sequence: int, task: asyncio.Task) -> None:
        self._writes.discard(task)
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            self.node.record_write_error(sequence, error)

    async def drain(self) -> None:
        """Wait for all scheduled writes to finish."""
        if self._writes:
            await asyncio.gather(*list(self._writes), return_exceptions=True)


def create_image_consumer(
    node: ExtractorNode,
    url: str,
    topic: str,
    reconnect_backoff_ms: int = 500,
    max_reconnect_attempts: int = 0,
) -> ChannelConsumer:
    """Consumer delivering image topic frames to the node."""
    return ChannelConsumer(
        name="image",
        url=url,
        parser=make_image_parser(topic),
        handler=FrameDispatcher(node),
        reconnect_backoff_ms=reconnect_backoff_ms,
        max_reconnect_attempts=max_reconnect_attempts,
    )


def create_unlock_consumer(
    node: ExtractorNode,
    url: str,
    reconnect_backoff_ms: int = 500,
    max_reconnect_attempts: int = 0,
) -> ChannelConsumer:
    """Consumer delivering unlock signals to the node."""

    async def on_unlock(message: UnlockMessage) -> None:
        node.handle_unlock(message)

    return ChannelConsumer(
        name="unlock",
        url=url,
        parser=parse_unlock_message,
        handler=on_unlock,
        reconnect_backoff_ms=reconnect_backoff_ms,
        max_reconnect_attempts=max_reconnect_attempts,
    )
