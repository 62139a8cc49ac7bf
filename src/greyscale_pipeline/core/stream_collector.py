"""Materialise an incrementally delivered byte stream into one buffer."""

import asyncio
from collections.abc import AsyncIterable, Iterable
from typing import Any, List, Optional, Union

from .exceptions import SourceReadError

Chunk = Union[bytes, bytearray, memoryview, str]

# Chunk size requested from streaming bodies that expose iter_chunks()
DEFAULT_CHUNK_SIZE = 64 * 1024


def _as_bytes(chunk: Chunk) -> bytes:
    if isinstance(chunk, bytes):
        return chunk
    if isinstance(chunk, (bytearray, memoryview)):
        return bytes(chunk)
    if isinstance(chunk, str):
        return chunk.encode("utf-8")
    raise TypeError(f"unsupported chunk type: {type(chunk).__name__}")


def _iterate(source: Any, chunk_size: int) -> Any:
    """Pick the chunk iterator a source offers."""
    if hasattr(source, "iter_chunks"):
        # aiobotocore StreamingBody and friends
        return source.iter_chunks(chunk_size)
    if isinstance(source, (AsyncIterable, Iterable)) and not isinstance(
        source, (bytes, bytearray, memoryview, str)
    ):
        return source
    raise TypeError(f"unsupported byte source: {type(source).__name__}")


async def collect_stream(source: Optional[Any], chunk_size: int = DEFAULT_CHUNK_SIZE) -> bytes:
    """
    Drain a byte source into a single ``bytes`` object.

    Chunks are concatenated strictly in the order they are delivered. An
    absent source (``None``) yields ``b""``; rejecting empty payloads is the
    decoder's job.

    Args:
        source: ``None``, an async iterable of chunks, a synchronous iterable
            of chunks, or a streaming body exposing ``iter_chunks()``
        chunk_size: Chunk size requested from ``iter_chunks()`` sources

    Returns:
        All delivered bytes

    Raises:
        SourceReadError: If the source signals an error while being drained
    """
    if source is None:
        return b""

    chunks: List[bytes] = []
    try:
        iterator = _iterate(source, chunk_size)
        if isinstance(iterator, AsyncIterable):
            async for chunk in iterator:
                chunks.append(_as_bytes(chunk))
        else:
            for chunk in iterator:
                chunks.append(_as_bytes(chunk))
    except asyncio.CancelledError:
        raise
    except Exception as exc:  # noqa: BLE001
        raise SourceReadError(f"reading source stream failed: {exc}") from exc

    return b"".join(chunks)


def collect(source: Optional[Any], chunk_size: int = DEFAULT_CHUNK_SIZE) -> bytes:
    """Blocking wrapper around :func:`collect_stream` for synchronous callers."""
    return asyncio.run(collect_stream(source, chunk_size))
