"""
Chunk Codec
===========

Splits an encoded payload into transport-sized pieces and joins them back.

Rules:
    - split(x, n) yields ceil(len(x) / n) chunks
    - every chunk is exactly n long except possibly the last
    - join(split(x, n)) == x, order preserved, nothing lost
"""

import base64
import math
from typing import Iterable, List


def split(payload: str, max_chunk_size: int) -> List[str]:
    """
    Split a string into consecutive chunks of at most max_chunk_size.

    Args:
        payload: Encoded payload
        max_chunk_size: Maximum characters per chunk (>= 1)

    Returns:
        Chunks in payload order

    Raises:
        ValueError: If max_chunk_size < 1
    """
    if max_chunk_size <= 0:
        raise ValueError(f"max_chunk_size must be >= 1, got {max_chunk_size}")
    return [payload[i:i + max_chunk_size] for i in range(0, len(payload), max_chunk_size)]


def join(chunks: Iterable[str]) -> str:
    """Concatenate chunks left to right."""
    return "".join(chunks)


def chunk_count(payload_length: int, max_chunk_size: int) -> int:
    """Number of chunks split() produces for a payload length."""
    if max_chunk_size <= 0:
        raise ValueError(f"max_chunk_size must be >= 1, got {max_chunk_size}")
    return math.ceil(payload_length / max_chunk_size)


def to_data_uri(data: bytes, content_type: str) -> str:
    """Encode bytes as a base64 data URI."""
    return f"data:{content_type};base64,{base64.b64encode(data).decode('ascii')}"


def strip_data_uri_prefix(data_uri: str) -> str:
    """
    Drop the "data:<type>;base64," prefix of a data URI.

    Strings without a comma are returned unchanged.
    """
    return data_uri[data_uri.find(",") + 1:]
