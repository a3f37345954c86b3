"""
frame_extractor Main Application
================================

Process bootstrap for the frame extractor.

Subscribes to the image topic and the unlock topic, feeds both into an
ExtractorNode, and serves a small status API.

Endpoints:
    GET  /         - Service information
    GET  /health   - Liveness probe (is process alive?)
    GET  /ready    - Readiness probe (image topic connected?)
    GET  /metrics  - Gate state, node counters and channel metrics
    POST /unlock   - Release the key lock locally

Usage:
    extract-images image:=/camera/image_raw
    extract-images compressed image:=/camera/image_raw --config config.yaml
"""

import argparse
import asyncio
import logging
import sys
import time
from contextlib import asynccontextmanager
from typing import AsyncIterator, List, Optional, Sequence

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from frame_extractor import config
from frame_extractor.config import Settings, load_config, setup_logging
from frame_extractor.extractor import ExtractorNode, FrameGate, create_persister
from frame_extractor.stream.consumer import (
    ChannelConsumer,
    create_image_consumer,
    create_unlock_consumer,
)
from frame_extractor.stream.topics import parse_remappings, resolve_topic, topic_url


logger = logging.getLogger(__name__)


# =============================================================================
# Node Factory
# =============================================================================

def create_node(settings: Settings) -> ExtractorNode:
    """Build the gate and the configured persister."""
    gate = FrameGate(
        min_interval=settings.extractor.sec_per_frame,
        lock_mode_enabled=settings.extractor.key_lock,
    )
    persister = create_persister(
        mode=settings.output.mode,
        filename_format=settings.extractor.filename_format,
        sec_per_frame=settings.extractor.sec_per_frame,
        video_path=settings.output.video_path,
        video_fourcc=settings.output.video_fourcc,
    )
    logger.info(f"Initialized sec per frame to {settings.extractor.sec_per_frame:f}")
    return ExtractorNode(gate=gate, persister=persister)


def create_consumers(
    node: ExtractorNode,
    settings: Settings,
    remappings: Optional[dict] = None,
) -> List[ChannelConsumer]:
    """Build the image and unlock topic consumers."""
    stream = settings.stream
    remappings = remappings or {}

    image_topic = resolve_topic(stream.image_topic, stream.namespace, remappings)
    unlock_topic = resolve_topic(stream.unlock_topic, stream.namespace, remappings)

    logger.info(
        f"Subscribing to {image_topic} ({stream.transport}), "
        f"unlock on {unlock_topic}"
    )

    return [
        create_image_consumer(
            node,
            url=topic_url(stream.base_url, image_topic, stream.transport),
            topic=image_topic,
            reconnect_backoff_ms=stream.reconnect_backoff_ms,
            max_reconnect_attempts=stream.max_reconnect_attempts,
        ),
        create_unlock_consumer(
            node,
            url=topic_url(stream.base_url, unlock_topic),
            reconnect_backoff_ms=stream.reconnect_backoff_ms,
            max_reconnect_attempts=stream.max_reconnect_attempts,
        ),
    ]


# =============================================================================
# FastAPI Application
# =============================================================================

def create_app(
    settings: Settings,
    remappings: Optional[dict] = None,
) -> FastAPI:
    """
    Create the status application.

    The node and consumers are created in the lifespan, so building the
    app has no side effects.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        app.state.startup_time = time.time()
        logger.info(f"Starting {settings.agent.name} {settings.agent.version}")

        node = create_node(settings)
        consumers = create_consumers(node, settings, remappings)
        tasks = [
            asyncio.create_task(consumer.run(), name=f"{consumer.name}_consumer")
            for consumer in consumers
        ]

        app.state.node = node
        app.state.consumers = consumers

        yield

        logger.info("Shutting down gracefully...")

        for consumer in consumers:
            await consumer.stop()

        for task in tasks:
            try:
                await asyncio.wait_for(task, timeout=5.0)
            except asyncio.TimeoutError:
                task.cancel()
                try:
                    await task
                except asyncio.CancelledError:
                    pass

        for consumer in consumers:
            drain = getattr(consumer.handler, "drain", None)
            if drain is not None:
                await drain()

        node.close()
        logger.info("Shutdown complete")

    app = FastAPI(
        title="frame_extractor",
        description="Rate-limited frame extraction from an image topic",
        version=settings.agent.version,
        lifespan=lifespan,
    )
    app.state.node = None
    app.state.consumers = []
    app.state.startup_time = time.time()

    @app.get("/")
    async def root() -> JSONResponse:
        """Service information endpoint."""
        return JSONResponse({
            "service": settings.agent.name,
            "version": settings.agent.version,
            "status": "running",
            "filename_format": settings.extractor.filename_format,
            "sec_per_frame": settings.extractor.sec_per_frame,
            "key_lock": settings.extractor.key_lock,
            "output_mode": settings.output.mode,
        })

    @app.get("/health")
    async def health(request: Request) -> JSONResponse:
        """Liveness probe. Always 200 while the process runs."""
        return JSONResponse({
            "status": "healthy",
            "uptime_seconds": round(time.time() - request.app.state.startup_time, 1),
        })

    @app.get("/ready")
    async def ready(request: Request) -> JSONResponse:
        """Readiness probe. 200 once the image topic is connected."""
        consumers = request.app.state.consumers
        connected = {consumer.name: consumer.connected for consumer in consumers}

        if connected.get("image"):
            return JSONResponse({"status": "ready", "connected": connected})
        return JSONResponse(
            {"status": "not_ready", "connected": connected},
            status_code=503,
        )

    @app.get("/metrics")
    async def metrics(request: Request) -> JSONResponse:
        """Gate state, node counters and channel metrics."""
        node: Optional[ExtractorNode] = request.app.state.node
        payload: dict = {
            "uptime_seconds": round(time.time() - request.app.state.startup_time, 1),
        }

        if node is not None:
            state = node.gate.snapshot()
            payload["gate"] = {
                "sequence_counter": state.sequence_counter,
                "locked": state.locked,
                "lock_mode_enabled": state.lock_mode_enabled,
                "last_save_time": state.last_save_time,
            }
            payload["node"] = node.metrics.to_dict()

        payload["channels"] = {
            consumer.name: {
                "connected": consumer.connected,
                **consumer.metrics.to_dict(),
            }
            for consumer in request.app.state.consumers
        }

        return JSONResponse(payload)

    @app.post("/unlock")
    async def unlock(request: Request) -> JSONResponse:
        """Release the key lock, same as a message on the unlock topic."""
        node: Optional[ExtractorNode] = request.app.state.node
        if node is None:
            return JSONResponse({"error": "Node not started"}, status_code=503)
        node.handle_unlock()
        return JSONResponse({"status": "unlocked"})

    return app


# =============================================================================
# Main Entry Point
# =============================================================================

def parse_args(argv: Sequence[str]) -> argparse.Namespace:
    """Parse command-line arguments, pulling out name:=target remappings."""
    remappings, rest = parse_remappings(argv)

    parser = argparse.ArgumentParser(
        prog="extract-images",
        description="Save a rate-limited subset of frames from an image topic.",
        epilog="Typical usage: extract-images image:=<image topic> [transport]",
    )
    parser.add_argument(
        "transport",
        nargs="?",
        default=None,
        help="Image transport: raw (default) or compressed",
    )
    parser.add_argument("--config", default=None, help="Path to config.yaml")
    parser.add_argument("--host", default=None, help="Status server bind host")
    parser.add_argument("--port", type=int, default=None, help="Status server port")

    args = parser.parse_args(rest)
    args.remappings = remappings
    return args


def apply_args(settings: Settings, args: argparse.Namespace) -> Settings:
    """Overlay command-line arguments on loaded settings."""
    stream = settings.stream
    server = settings.server

    if args.transport is not None:
        stream = stream.model_validate({**stream.model_dump(), "transport": args.transport})
    if args.host is not None:
        server = server.model_copy(update={"host": args.host})
    if args.port is not None:
        server = server.model_copy(update={"port": args.port})

    return settings.model_copy(update={"stream": stream, "server": server})


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Command-line entry point."""
    import uvicorn

    args = parse_args(sys.argv[1:] if argv is None else argv)

    settings = load_config(args.config) if args.config else config.settings
    settings = apply_args(settings, args)
    setup_logging(settings)

    image_topic = resolve_topic(
        settings.stream.image_topic,
        settings.stream.namespace,
        args.remappings,
    )
    if image_topic == resolve_topic(settings.stream.image_topic, settings.stream.namespace):
        logger.warning(
            "extract_images: image has not been remapped! Typical command-line usage:\n"
            "\t$ extract-images image:=<image topic> [transport]"
        )

    app = create_app(settings, args.remappings)
    uvicorn.run(
        app,
        host=settings.server.host,
        port=settings.server.port,
        log_level=settings.logging.level.lower(),
    )
    return 0


if __name__ == "__main__":
    sys.exit(main())
