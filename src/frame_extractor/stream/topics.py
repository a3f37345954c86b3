"""
Topic name resolution.

Topic names follow the usual graph-name rules:
    - "/a/b" is absolute
    - "a/b" is resolved against the node namespace
    - "name:=target" command-line arguments remap a resolved name

Each topic is served by the stream bridge at "{base_url}{topic}".
"""

import logging
from typing import Dict, List, Mapping, Optional, Sequence, Tuple


logger = logging.getLogger(__name__)


REMAP_SEPARATOR = ":="

TRANSPORTS = ("raw", "compressed")


def parse_remappings(argv: Sequence[str]) -> Tuple[Dict[str, str], List[str]]:
    """
    Split "name:=target" remapping arguments from the rest.

    Returns:
        (remappings, remaining arguments)
    """
    remaps: Dict[str, str] = {}
    rest: List[str] = []

    for arg in argv:
        if REMAP_SEPARATOR in arg:
            name, target = arg.split(REMAP_SEPARATOR, 1)
            if not name or not target:
                raise ValueError(f"Invalid remapping: {arg!r}")
            remaps[name] = target
        else:
            rest.append(arg)

    return remaps, rest


def _join(namespace: str, name: str) -> str:
    if name.startswith("/"):
        resolved = name
    else:
        resolved = namespace.rstrip("/") + "/" + name
    if not resolved.startswith("/"):
        resolved = "/" + resolved
    # Collapse duplicate separators and drop any trailing one
    parts = [part for part in resolved.split("/") if part]
    return "/" + "/".join(parts)


def resolve_topic(
    name: str,
    namespace: str = "/",
    remappings: Optional[Mapping[str, str]] = None,
) -> str:
    """
    Resolve a topic name to an absolute, remapped name.

    Remapping keys and targets are themselves resolved against the
    namespace, so "image:=/camera/image" and "/image:=/camera/image" are
    equivalent in the root namespace.
    """
    if not name:
        raise ValueError("Topic name must not be empty")

    resolved = _join(namespace, name)

    for source, target in (remappings or {}).items():
        if _join(namespace, source) == resolved:
            return _join(namespace, target)

    return resolved


def topic_url(base_url: str, topic: str, transport: str = "raw") -> str:
    """
    WebSocket URL serving a topic.

    The "compressed" transport subscribes to the "/compressed" sub-topic.
    """
    if transport not in TRANSPORTS:
        raise ValueError(
            f"Unknown transport {transport!r}, expected one of {TRANSPORTS}"
        )

    path = topic if transport == "raw" else f"{topic}/compressed"
    return base_url.rstrip("/") + path
