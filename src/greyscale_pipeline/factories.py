"""Factory functions for creating configured pipeline instances."""

import logging
from typing import Any, Optional

from botocore.config import Config

from .core.models import PipelineConfig
from .core.observability import MetricsCollector, StructuredLogger
from .core.protocols import DestinationStorageProtocol, LoggerProtocol, SourceStorageProtocol
from .core.services import GreyscalePipeline
from .storage.s3 import S3ObjectStorage


class StorageFactory:
    """Factory for creating storage adapter instances."""

    @staticmethod
    def create_storage(config: PipelineConfig, **kwargs: Any) -> S3ObjectStorage:
        """Create an S3 storage adapter from the config's connection string."""
        client_config = kwargs.pop("client_config", None) or Config(
            connect_timeout=10, read_timeout=60
        )
        return S3ObjectStorage(
            config.source_storage_credential, client_config=client_config, **kwargs
        )


class PipelineFactory:
    """Factory for creating the complete processing pipeline."""

    @staticmethod
    def create_pipeline(
        config: PipelineConfig,
        source_storage: SourceStorageProtocol,
        destination_storage: Optional[DestinationStorageProtocol] = None,
        logger: Optional[LoggerProtocol] = None,
        metrics_collector: Optional[MetricsCollector] = None,
    ) -> GreyscalePipeline:
        """Create a pipeline wired to the given storage collaborators."""
        if logger is None:
            # Debug pipelines log through their own child so the level stays per config
            if config.debug:
                logger = StructuredLogger("pipeline.debug", level=logging.DEBUG)
            else:
                logger = StructuredLogger("pipeline")

        return GreyscalePipeline(
            config=config,
            source_storage=source_storage,
            destination_storage=destination_storage,
            logger=logger,
            metrics_collector=metrics_collector,
        )
