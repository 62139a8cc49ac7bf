"""Pipeline orchestration: one notification in, one processed object out."""

import asyncio
import time
import uuid
from enum import Enum
from typing import Any, Optional

from .error_handling import describe_error, translate_errors
from .exceptions import GreyscalePipelineError, InputError, PublishError, SourceReadError
from .image_utils import (
    decode_image,
    describe_image,
    encode_image,
    greyscale,
    object_name_from_url,
    output_object_name,
)
from .models import Notification, PipelineConfig, RunOutcome
from .observability import LogContext, MetricsCollector, StructuredLogger, timed_stage
from .protocols import DestinationStorageProtocol, LoggerProtocol, SourceStorageProtocol
from .stream_collector import collect_stream


class Stage(str, Enum):
    """States a run moves through, in order."""

    RESOLVE_IDENTITY = "resolve_identity"
    FETCH = "fetch"
    COLLECT = "collect"
    DECODE = "decode"
    TRANSFORM = "transform"
    ENCODE = "encode"
    PUBLISH = "publish"
    DONE = "done"


class GreyscalePipeline:
    """
    Request-scoped image pipeline.

    ``run`` resolves the source object from a notification, fetches and
    buffers its bytes, decodes the image, converts it to greyscale, re-encodes
    it and writes it to the destination container under a prefixed name.

    Every failure is caught at this boundary, logged once with the source
    object's identity and reported as a failed :class:`RunOutcome`. Nothing is
    retried. With ``config.raise_on_failure`` the error is re-raised after
    logging so a host can retry or dead-letter the notification.
    """

    def __init__(
        self,
        config: PipelineConfig,
        source_storage: SourceStorageProtocol,
        destination_storage: Optional[DestinationStorageProtocol] = None,
        logger: Optional[LoggerProtocol] = None,
        metrics_collector: Optional[MetricsCollector] = None,
    ):
        self._config = config
        self._source = source_storage
        self._destination = destination_storage or source_storage  # type: ignore[assignment]
        self._logger = logger or StructuredLogger("pipeline")
        self._metrics_collector = metrics_collector

    @property
    def config(self) -> PipelineConfig:
        return self._config

    async def run(self, event: Any) -> RunOutcome:
        """Process one notification and report the outcome."""
        start_time = time.time()
        correlation_id = _correlation_id(event)
        log_context = LogContext(
            correlation_id=correlation_id,
            operation="process_image",
            component="greyscale_pipeline",
        )
        outcome = RunOutcome(correlation_id=correlation_id)
        stage = Stage.RESOLVE_IDENTITY

        self._logger.info("Event received", log_context)

        try:
            with timed_stage(stage.value, self._metrics_collector):
                with translate_errors(InputError, "reading notification"):
                    notification = Notification.from_event(event)
                if not notification.source_url:
                    raise InputError("missing URL")
                outcome.source_url = notification.source_url
                log_context = log_context.with_metadata(source_url=outcome.source_url)
                outcome.blob_name = object_name_from_url(notification.source_url)
            log_context = log_context.with_metadata(blob_name=outcome.blob_name)
            self._logger.info(f"Blob name: {outcome.blob_name}", log_context)

            stage = Stage.FETCH
            with timed_stage(stage.value, self._metrics_collector):
                with translate_errors(SourceReadError, "fetching", outcome.blob_name):
                    container = await self._source.resolve_container(
                        self._config.source_container
                    )
                    source_object = await self._source.resolve_object(
                        container, outcome.blob_name
                    )
                    byte_source = await self._source.open_read_stream(source_object)

            stage = Stage.COLLECT
            with timed_stage(stage.value, self._metrics_collector):
                image_bytes = await collect_stream(byte_source)
            self._logger.debug(
                "Source bytes collected", log_context.with_operation(stage.value),
                size=len(image_bytes),
            )

            stage = Stage.DECODE
            with timed_stage(stage.value, self._metrics_collector):
                image = decode_image(image_bytes)
            self._logger.info("Loaded image", log_context, **describe_image(image))

            stage = Stage.TRANSFORM
            with timed_stage(stage.value, self._metrics_collector):
                greyscale(image)
            self._logger.info("Converted to greyscale", log_context)

            stage = Stage.ENCODE
            with timed_stage(stage.value, self._metrics_collector):
                processed_bytes = encode_image(
                    image, self._config.output_format, self._config.jpeg_quality
                )
            outcome.output_size = len(processed_bytes)
            self._logger.info(
                "Processed image buffer ready", log_context, size=outcome.output_size
            )

            stage = Stage.PUBLISH
            outcome.dest_name = output_object_name(
                outcome.blob_name, self._config.output_prefix
            )
            log_context = log_context.with_metadata(dest_name=outcome.dest_name)
            with timed_stage(stage.value, self._metrics_collector):
                await self._publish(outcome.dest_name, processed_bytes, log_context)

            stage = Stage.DONE
            outcome.success = True
            outcome.processing_time = time.time() - start_time
            self._logger.info(
                f"Processed image uploaded to: {outcome.dest_name}",
                log_context,
                processing_time_ms=round(outcome.processing_time * 1000, 2),
            )

        except Exception as e:  # noqa: BLE001
            outcome.success = False
            outcome.failed_stage = stage.value
            outcome.error_type = type(e).__name__
            outcome.error = str(e) if isinstance(e, GreyscalePipelineError) else describe_error(e)
            outcome.processing_time = time.time() - start_time

            self._logger.error(
                f"Failed to process image: {outcome.error}",
                log_context.with_operation(stage.value),
                error_type=outcome.error_type,
            )
            if self._config.raise_on_failure:
                raise

        return outcome

    async def _publish(self, dest_name: str, data: bytes, log_context: LogContext) -> None:
        with translate_errors(PublishError, "publishing", dest_name):
            container = await self._destination.resolve_container(
                self._config.destination_container
            )
            if await self._destination.create_container_if_absent(container):
                self._logger.info(f"Created container: {container.name}", log_context)
            await self._destination.write_object(
                container, dest_name, data, self._config.output_format
            )

    def run_sync(self, event: Any) -> RunOutcome:
        """Blocking wrapper around :meth:`run`."""
        return asyncio.run(self.run(event))


def _correlation_id(event: Any) -> str:
    event_id = None
    if isinstance(event, Notification):
        event_id = event.id
    elif isinstance(event, dict):
        event_id = event.get("id")
    return str(event_id) if event_id else str(uuid.uuid4())
