"""Event entry points: one pipeline run per blob-created notification."""

import asyncio
from typing import Any, Callable, Iterable, List, Optional

from .core import (
    GreyscalePipelineError,
    InputError,
    PipelineConfig,
    RunOutcome,
    get_logger,
    object_name_from_url,
)
from .core.error_handling import describe_error
from .core.models import Notification
from .core.observability import MetricsCollector
from .core.protocols import LoggerProtocol
from .factories import PipelineFactory, StorageFactory

# config -> storage adapter owned by a single run (entered and closed by it)
StorageFactoryFn = Callable[[PipelineConfig], Any]


async def handle_event(
    event: Any,
    config: Optional[PipelineConfig] = None,
    storage: Optional[Any] = None,
    logger: Optional[LoggerProtocol] = None,
    metrics_collector: Optional[MetricsCollector] = None,
    storage_factory: Optional[StorageFactoryFn] = None,
) -> RunOutcome:
    """
    Run the pipeline for one notification.

    Args:
        event: Notification payload, e.g. ``{"data": {"url": "..."}}``
        config: Pipeline configuration (defaults to :meth:`PipelineConfig.from_env`)
        storage: Storage adapter shared with the caller; its lifecycle is
            left to the caller
        logger: Logger for run checkpoints
        metrics_collector: Collector receiving per-stage timings
        storage_factory: Builds a storage adapter for this run only; used when
            ``storage`` is not given (defaults to the S3 adapter)

    Returns:
        The run's outcome. Failures are reported here, not raised, unless
        ``config.raise_on_failure`` is set.

    Raises:
        ConfigurationError: If no config is given and the environment is
            incomplete, or the storage connection string is invalid
    """
    config = config or PipelineConfig.from_env()

    if storage is not None:
        pipeline = PipelineFactory.create_pipeline(
            config, storage, logger=logger, metrics_collector=metrics_collector
        )
        return await pipeline.run(event)

    factory = storage_factory or StorageFactory.create_storage
    async with factory(config) as owned_storage:
        pipeline = PipelineFactory.create_pipeline(
            config, owned_storage, logger=logger, metrics_collector=metrics_collector
        )
        return await pipeline.run(event)


async def handle_events(
    events: Iterable[Any],
    config: Optional[PipelineConfig] = None,
    storage: Optional[Any] = None,
    logger: Optional[LoggerProtocol] = None,
    metrics_collector: Optional[MetricsCollector] = None,
    storage_factory: Optional[StorageFactoryFn] = None,
) -> List[RunOutcome]:
    """
    Run the pipeline for several notifications concurrently.

    Runs share nothing but the storage service; each one yields only while
    waiting on storage I/O. Outcomes are returned in event order.
    """
    config = config or PipelineConfig.from_env()
    events = list(events)

    tasks = [
        handle_event(
            event,
            config,
            storage=storage,
            logger=logger,
            metrics_collector=metrics_collector,
            storage_factory=storage_factory,
        )
        for event in events
    ]
    results = await asyncio.gather(*tasks, return_exceptions=True)

    outcomes: List[RunOutcome] = []
    for event, result in zip(events, results):
        if isinstance(result, BaseException):
            if isinstance(result, asyncio.CancelledError):
                raise result
            outcome = _escaped_outcome(event, result)
            get_logger("handler").error(
                f"Run for '{outcome.blob_name or outcome.source_url}' raised: {outcome.error}"
            )
            outcomes.append(outcome)
        else:
            outcomes.append(result)
    return outcomes


def process_event(
    event: Any,
    config: Optional[PipelineConfig] = None,
    storage: Optional[Any] = None,
) -> RunOutcome:
    """
    Blocking entry point for synchronous hosts.

    This is the synchronous wrapper that runs :func:`handle_event` in a new
    event loop.
    """
    return asyncio.run(handle_event(event, config, storage=storage))


def _escaped_outcome(event: Any, error: BaseException) -> RunOutcome:
    """Failed outcome for a run that raised, identified as far as the event allows."""
    outcome = RunOutcome(
        success=False,
        error=str(error) if isinstance(error, GreyscalePipelineError) else describe_error(error),
        error_type=type(error).__name__,
    )
    try:
        notification = Notification.from_event(event)
    except Exception:  # noqa: BLE001
        return outcome
    outcome.correlation_id = notification.id or ""
    outcome.source_url = notification.source_url or ""
    if outcome.source_url:
        try:
            outcome.blob_name = object_name_from_url(outcome.source_url)
        except InputError:
            pass
    return outcome
