# src/greyscale_pipeline/core/error_handling.py

import functools
import logging
from contextlib import contextmanager
from typing import Iterator, Optional, Type

from botocore.exceptions import ClientError as BotocoreClientError
from PIL import UnidentifiedImageError as PILUnidentifiedImageError

from .exceptions import GreyscalePipelineError


def describe_error(exc: BaseException) -> str:
    """
    Render an exception as a single log-friendly line.

    Storage client errors are reduced to their service error code and message,
    image library errors keep their own text.
    """
    if isinstance(exc, BotocoreClientError):
        error = exc.response.get("Error", {})
        code = error.get("Code", "Unknown")
        message = error.get("Message") or str(exc)
        return f"{code}: {message}"
    if isinstance(exc, PILUnidentifiedImageError):
        return f"unrecognised image data ({exc})"
    text = str(exc)
    return f"{type(exc).__name__}: {text}" if text else type(exc).__name__


@contextmanager
def translate_errors(
    error_cls: Type[GreyscalePipelineError],
    action: str,
    subject: Optional[str] = None,
) -> Iterator[None]:
    """
    Context manager that converts foreign exceptions into ``error_cls``.

    Pipeline errors pass through untouched so the stage that raised them first
    is the one reported.

    Args:
        error_cls: Pipeline error type raised for any other exception
        action: Short description of the guarded operation, e.g. "download"
        subject: Object name or locator included in the message
    """
    try:
        yield
    except GreyscalePipelineError:
        raise
    except Exception as exc:  # noqa: BLE001
        target = f" '{subject}'" if subject else ""
        raise error_cls(f"{action}{target} failed: {describe_error(exc)}") from exc


def with_error_handling(error_cls: Type[GreyscalePipelineError], action: str):
    """
    Decorator form of :func:`translate_errors` for coroutine functions.

    The wrapped coroutine's failures are logged at debug level with the
    traceback before being translated; the orchestrator logs the final error.
    """

    def decorator(func):
        @functools.wraps(func)
        async def wrapper(*args, **kwargs):
            logger = logging.getLogger(func.__module__ + "." + func.__name__)
            try:
                with translate_errors(error_cls, action):
                    return await func(*args, **kwargs)
            except GreyscalePipelineError as e:
                logger.debug(f"Error in '{func.__name__}': {e}", exc_info=True)
                raise

        return wrapper

    return decorator
