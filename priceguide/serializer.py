"""Serialization utilities for the Redis store adapter.

Values cross the network boundary as strings (the pool is created with
``decode_responses=True``). This module turns arbitrary cache payloads into
those strings and back, so the coalescing and SWR engines never look at
payload shape.

Supported Formats:
    - JSON: Human-readable, the default
    - msgpack: Binary, base64-wrapped for storage in a string value

Special Type Handling:
    - datetime/date/time: Converted to ISO format strings
    - Decimal: Converted to float
    - UUID: Converted to string
    - dataclass instances: Converted with dataclasses.asdict
    - set: Converted to list

Compression:
    - gzip, applied only when the encoded payload exceeds a threshold
    - Recorded in a short tag prefix, so readers need no flag

Usage:
    from priceguide.serializer import dumps, loads

    raw = dumps({"grade": 10, "scrapedAt": datetime.now()})
    value = loads(raw)
"""

import base64
import dataclasses
import gzip
import json
import logging
from datetime import date, datetime, time
from decimal import Decimal
from enum import Enum
from typing import Any, Union
from uuid import UUID

import msgpack

from priceguide.errors import CacheSerializationError

logger = logging.getLogger(__name__)


class SerializationFormat(str, Enum):
    """Supported serialization formats."""
    JSON = "json"
    MSGPACK = "msgpack"


DEFAULT_COMPRESSION_LEVEL = 6  # gzip compression level (0-9)
DEFAULT_COMPRESSION_THRESHOLD = 1024  # Compress if larger than 1KB

# Tags for binary payloads; JSON text can never start with these
TAG_MSGPACK = "mp:"
TAG_GZIP_JSON = "gz:"
TAG_GZIP_MSGPACK = "gzmp:"


# ============================================================================
# Type Conversion
# ============================================================================


def _to_primitive(obj: Any) -> Any:
    """
    Convert special types to JSON/msgpack-friendly primitives.

    Args:
        obj: Object the encoder could not handle

    Returns:
        Serializable representation

    Raises:
        TypeError: If object type is not supported
    """
    if isinstance(obj, (datetime, date, time)):
        return obj.isoformat()

    if isinstance(obj, Decimal):
        return float(obj)

    if isinstance(obj, UUID):
        return str(obj)

    if isinstance(obj, Enum):
        return obj.value

    if dataclasses.is_dataclass(obj) and not isinstance(obj, type):
        return dataclasses.asdict(obj)

    if isinstance(obj, (set, frozenset)):
        return list(obj)

    raise TypeError(f"Object of type {type(obj).__name__} is not serializable")


# ============================================================================
# Format Codecs
# ============================================================================


def serialize_json(data: Any) -> bytes:
    """Serialize data to compact UTF-8 JSON bytes."""
    return json.dumps(data, default=_to_primitive, separators=(",", ":")).encode("utf-8")


def deserialize_json(data: bytes) -> Any:
    """Deserialize JSON bytes."""
    return json.loads(data.decode("utf-8"))


def serialize_msgpack(data: Any) -> bytes:
    """Serialize data to msgpack bytes."""
    return msgpack.packb(data, default=_to_primitive, use_bin_type=True)


def deserialize_msgpack(data: bytes) -> Any:
    """Deserialize msgpack bytes."""
    return msgpack.unpackb(data, raw=False)


def compress_data(data: bytes, level: int = DEFAULT_COMPRESSION_LEVEL) -> bytes:
    """Compress bytes with gzip."""
    return gzip.compress(data, compresslevel=level)


def decompress_data(data: bytes) -> bytes:
    """Decompress gzip bytes."""
    return gzip.decompress(data)


# ============================================================================
# High-Level API
# ============================================================================


def dumps(
    data: Any,
    format: str = "json",
    compress: bool = False,
    compression_threshold: int = DEFAULT_COMPRESSION_THRESHOLD,
) -> str:
    """
    Serialize a cache payload to the string stored in Redis.

    Plain JSON is stored as-is. msgpack output and compressed output are
    binary, so they are base64-encoded behind a short format tag.

    Args:
        data: Python object to serialize
        format: "json" or "msgpack"
        compress: Whether to gzip payloads above the threshold
        compression_threshold: Size in bytes above which to compress

    Returns:
        String safe to store with a decode_responses=True client

    Raises:
        CacheSerializationError: If the format is unknown or encoding fails

    Examples:
        >>> dumps({"grade": 10})
        '{"grade":10}'

        >>> dumps({"grade": 10}, format="msgpack").startswith("mp:")
        True
    """
    format = format.lower()
    if format not in (SerializationFormat.JSON, SerializationFormat.MSGPACK):
        raise CacheSerializationError(f"Invalid format: {format}. Use 'json' or 'msgpack'")

    try:
        if format == SerializationFormat.JSON:
            encoded = serialize_json(data)
        else:
            encoded = serialize_msgpack(data)
    except (TypeError, ValueError, OverflowError) as e:
        logger.error(f"Serialization failed: {e}", exc_info=True)
        raise CacheSerializationError(f"Failed to serialize data: {e}") from e

    is_msgpack = format == SerializationFormat.MSGPACK

    if compress and len(encoded) > compression_threshold:
        compressed = compress_data(encoded)
        logger.debug(
            f"Compressed: {len(encoded)} -> {len(compressed)} bytes "
            f"({100 * len(compressed) / len(encoded):.1f}%)"
        )
        tag = TAG_GZIP_MSGPACK if is_msgpack else TAG_GZIP_JSON
        return tag + base64.b64encode(compressed).decode("ascii")

    if is_msgpack:
        return TAG_MSGPACK + base64.b64encode(encoded).decode("ascii")
    return encoded.decode("utf-8")


def loads(raw: Union[str, bytes]) -> Any:
    """
    Deserialize a string read from Redis.

    The format is taken from the tag prefix written by dumps(); untagged
    values are plain JSON.

    Args:
        raw: Value returned by the store

    Returns:
        Deserialized Python object

    Raises:
        CacheSerializationError: If the payload cannot be decoded
    """
    try:
        if isinstance(raw, bytes):
            raw = raw.decode("utf-8")

        if raw.startswith(TAG_GZIP_MSGPACK):
            data = decompress_data(base64.b64decode(raw[len(TAG_GZIP_MSGPACK):]))
            return deserialize_msgpack(data)
        if raw.startswith(TAG_GZIP_JSON):
            data = decompress_data(base64.b64decode(raw[len(TAG_GZIP_JSON):]))
            return deserialize_json(data)
        if raw.startswith(TAG_MSGPACK):
            return deserialize_msgpack(base64.b64decode(raw[len(TAG_MSGPACK):]))
        return deserialize_json(raw.encode("utf-8"))

    except (ValueError, TypeError, OSError, EOFError, msgpack.UnpackException) as e:
        logger.error(f"Deserialization failed: {e}", exc_info=True)
        raise CacheSerializationError(f"Failed to deserialize data: {e}") from e
