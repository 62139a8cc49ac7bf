"""Core utilities and shared components for the greyscale pipeline."""

from .image_utils import (
    decode_image,
    encode_image,
    greyscale,
    object_name_from_url,
    output_object_name,
)
from .logging_config import get_logger, setup_logger
from .exceptions import (
    GreyscalePipelineError,
    ConfigurationError,
    InputError,
    SourceReadError,
    DecodeError,
    EncodeError,
    PublishError,
)
from .models import Notification, PipelineConfig, RunOutcome
from .stream_collector import collect, collect_stream
from .services import GreyscalePipeline, Stage

__all__ = [
    "PipelineConfig",
    "Notification",
    "RunOutcome",
    "GreyscalePipeline",
    "Stage",
    "collect",
    "collect_stream",
    "decode_image",
    "encode_image",
    "greyscale",
    "object_name_from_url",
    "output_object_name",
    "setup_logger",
    "get_logger",
    "GreyscalePipelineError",
    "ConfigurationError",
    "InputError",
    "SourceReadError",
    "DecodeError",
    "EncodeError",
    "PublishError",
]
