"""
Channel Consumer Tests
======================

Message dispatch without a live WebSocket connection.
"""

import asyncio
import base64
import json
import logging

import pytest

from frame_extractor.extractor import ExtractorNode, FrameGate, ImageFilePersister
from frame_extractor.stream.consumer import (
    ChannelConsumer,
    FrameDispatcher,
    MessageParseError,
    create_image_consumer,
    create_unlock_consumer,
    make_image_parser,
    parse_unlock_message,
)


def image_json(data: bytes, encoding: str = "mono8", width: int = 10, height: int = 10) -> str:
    return json.dumps({
        "seq": 1,
        "width": width,
        "height": height,
        "encoding": encoding,
        "data": base64.b64encode(data).decode(),
    })


class FailingWritePersister:
    """Persister whose write raises instead of returning a SaveResult."""

    def prepare(self, frame):
        return frame.data

    def write(self, payload, sequence):
        raise RuntimeError("disk vanished")

    def save(self, frame, sequence):
        return self.write(self.prepare(frame), sequence)

    def close(self):
        pass


class BrokenSocket:
    async def close(self):
        raise RuntimeError("transport already torn down")


def make_node(tmp_path, clock, key_lock=False):
    return ExtractorNode(
        gate=FrameGate(min_interval=0.0, lock_mode_enabled=key_lock, clock=clock),
        persister=ImageFilePersister(str(tmp_path / "f%02d.raw")),
    )


class TestParsers:

    def test_image_parser_builds_frame(self):
        frame = make_image_parser("/camera/image")(image_json(b"\x01\x02"))

        assert frame.data == b"\x01\x02"
        assert frame.topic == "/camera/image"
        assert frame.stamp > 0

    def test_image_parser_rejects_bad_json(self):
        with pytest.raises(MessageParseError):
            make_image_parser("/image")("{not json")

    def test_unlock_parser_accepts_anything(self):
        assert parse_unlock_message('{"data": 1}').data == 1
        assert parse_unlock_message("garbage").data == 0
        assert parse_unlock_message(b"\xff\xfe").data == 0
        assert parse_unlock_message("[1, 2]").data == 0


class TestDispatch:

    def test_frames_written_in_order(self, tmp_path, clock):
        node = make_node(tmp_path, clock)
        consumer = create_image_consumer(node, url="ws://unused", topic="/image")

        async def run():
            for _ in range(3):
                assert await consumer.dispatch(image_json(bytes(100)))
            await consumer.handler.drain()

        asyncio.run(run())

        assert sorted(p.name for p in tmp_path.iterdir()) == ["f00.raw", "f01.raw", "f02.raw"]
        assert consumer.metrics.messages_received == 3
        assert node.metrics.frames_saved == 3

    def test_parse_error_counted(self, tmp_path, clock):
        node = make_node(tmp_path, clock)
        consumer = create_image_consumer(node, url="ws://unused", topic="/image")

        ok = asyncio.run(consumer.dispatch("not json"))

        assert ok is False
        assert consumer.metrics.parse_errors == 1
        assert node.metrics.frames_received == 0

    def test_unlock_channel_releases_lock(self, tmp_path, clock):
        node = make_node(tmp_path, clock, key_lock=True)
        images = create_image_consumer(node, url="ws://unused", topic="/image")
        unlocks = create_unlock_consumer(node, url="ws://unused")

        async def run():
            await images.dispatch(image_json(bytes(100)))
            await images.dispatch(image_json(bytes(100)))
            await unlocks.dispatch('{"data": 1}')
            await images.dispatch(image_json(bytes(100)))
            await images.handler.drain()

        asyncio.run(run())

        assert sorted(p.name for p in tmp_path.iterdir()) == ["f00.raw", "f01.raw"]
        assert node.metrics.unlocks_received == 1

    def test_handler_error_does_not_stop_channel(self):
        calls = []

        async def handler(message):
            calls.append(message)
            if len(calls) == 1:
                raise RuntimeError("boom")

        consumer = ChannelConsumer(
            name="test",
            url="ws://unused",
            parser=lambda raw: raw,
            handler=handler,
        )

        async def run():
            return [await consumer.dispatch("a"), await consumer.dispatch("b")]

        assert asyncio.run(run()) == [False, True]
        assert consumer.metrics.handler_errors == 1

    def test_raising_write_is_logged_and_counted(self, clock, caplog):
        node = ExtractorNode(
            gate=FrameGate(min_interval=0.0, clock=clock),
            persister=FailingWritePersister(),
        )
        dispatcher = FrameDispatcher(node)
        frame = make_image_parser("/image")(image_json(bytes(100)))

        async def run():
            await dispatcher(frame)
            await dispatcher.drain()

        with caplog.at_level(logging.ERROR):
            asyncio.run(run())

        assert node.metrics.frames_admitted == 1
        assert node.metrics.frames_saved == 0
        assert node.metrics.save_failures == 1
        assert dispatcher.pending_writes == 0
        assert "Failed to save frame 0: disk vanished" in caplog.text

    def test_dispatcher_tracks_no_pending_writes_for_rejected(self, tmp_path, clock):
        node = ExtractorNode(
            gate=FrameGate(min_interval=5.0, clock=clock),
            persister=ImageFilePersister(str(tmp_path / "f%d.raw")),
        )
        dispatcher = FrameDispatcher(node)
        frame = make_image_parser("/image")(image_json(bytes(100)))

        asyncio.run(dispatcher(frame))

        assert dispatcher.pending_writes == 0
        assert node.metrics.frames_rejected == 1


class TestRunLoop:

    def test_gives_up_after_max_reconnects(self, tmp_path, clock):
        node = make_node(tmp_path, clock)
        consumer = create_unlock_consumer(
            node,
            url="ws://127.0.0.1:9/unreachable",
            reconnect_backoff_ms=100,
            max_reconnect_attempts=2,
        )

        asyncio.run(asyncio.wait_for(consumer.run(), timeout=30))

        assert consumer.metrics.reconnect_count == 2
        assert not consumer.connected

    def test_stop_survives_close_error(self):
        consumer = ChannelConsumer(
            name="test",
            url="ws://unused",
            parser=lambda raw: raw,
            handler=lambda message: asyncio.sleep(0),
        )
        consumer._websocket = BrokenSocket()
        consumer._connected = True

        asyncio.run(consumer.stop())

        assert not consumer.connected
