"""
Bootstrap Tests
===============

Command-line parsing, node construction and the status API.
"""

from fastapi.testclient import TestClient

from frame_extractor.config import Settings
from frame_extractor.extractor import ImageFilePersister, VideoPersister
from frame_extractor.main import (
    apply_args,
    create_app,
    create_consumers,
    create_node,
    parse_args,
)


class TestCommandLine:

    def test_transport_and_remappings(self):
        args = parse_args(["compressed", "image:=/camera/image_raw", "--port", "9001"])

        assert args.transport == "compressed"
        assert args.remappings == {"image": "/camera/image_raw"}
        assert args.port == 9001

    def test_defaults(self):
        args = parse_args([])

        assert args.transport is None
        assert args.remappings == {}

    def test_apply_args(self):
        args = parse_args(["compressed", "--host", "0.0.0.0"])

        settings = apply_args(Settings(), args)

        assert settings.stream.transport == "compressed"
        assert settings.server.host == "0.0.0.0"


class TestFactories:

    def test_image_node(self):
        node = create_node(Settings())

        assert isinstance(node.persister, ImageFilePersister)
        assert node.gate.min_interval == 0.1
        assert node.gate.lock_mode_enabled is False

    def test_video_node_with_key_lock(self):
        settings = Settings.model_validate({
            "extractor": {"key_lock": True, "sec_per_frame": 0.5},
            "output": {"mode": "video"},
        })

        node = create_node(settings)

        assert isinstance(node.persister, VideoPersister)
        assert node.persister.fps == 2
        assert node.gate.lock_mode_enabled is True

    def test_consumers_use_remapped_topics(self):
        settings = Settings.model_validate({
            "stream": {"base_url": "ws://bridge:9090/topics", "transport": "compressed"},
        })
        node = create_node(settings)

        image, unlock = create_consumers(node, settings, {"image": "/cam/image_raw"})

        assert image.url == "ws://bridge:9090/topics/cam/image_raw/compressed"
        assert unlock.url == "ws://bridge:9090/topics/key_topic"


class TestStatusApi:
    """Endpoints served before the lifespan has started any consumers."""

    def test_root(self):
        client = TestClient(create_app(Settings()))

        body = client.get("/").json()

        assert body["filename_format"] == "frame%04i.jpg"
        assert body["output_mode"] == "image"

    def test_health(self):
        client = TestClient(create_app(Settings()))

        assert client.get("/health").json()["status"] == "healthy"

    def test_not_ready_without_consumers(self):
        client = TestClient(create_app(Settings()))

        assert client.get("/ready").status_code == 503

    def test_unlock_before_start(self):
        client = TestClient(create_app(Settings()))

        assert client.post("/unlock").status_code == 503

    def test_metrics_with_node(self):
        app = create_app(Settings())
        app.state.node = create_node(Settings())
        client = TestClient(app)

        client.post("/unlock")
        body = client.get("/metrics").json()

        assert body["gate"]["sequence_counter"] == 0
        assert body["node"]["unlocks_received"] == 1
        assert body["channels"] == {}
