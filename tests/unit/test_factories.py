"""Tests for the storage and pipeline factories."""

import logging
from unittest.mock import MagicMock

import pytest
from botocore.config import Config

from greyscale_pipeline.core.exceptions import ConfigurationError
from greyscale_pipeline.core.models import PipelineConfig
from greyscale_pipeline.core.observability import MetricsCollector, StructuredLogger
from greyscale_pipeline.core.services import GreyscalePipeline
from greyscale_pipeline.factories import PipelineFactory, StorageFactory
from greyscale_pipeline.storage.s3 import S3ObjectStorage
from greyscale_pipeline.testing.fakes import FakeLogger, FakeObjectStorage


def _config(**overrides):
    values = {
        "source_storage_credential": "AccessKeyId=AKIA;SecretAccessKey=secret;Region=eu-west-1",
        "source_container": "images",
        "destination_container": "processed",
    }
    values.update(overrides)
    return PipelineConfig.load(**values)


class TestStorageFactory:
    def test_creates_s3_storage_with_default_timeouts(self):
        storage = StorageFactory.create_storage(_config(), session=MagicMock())

        assert isinstance(storage, S3ObjectStorage)
        assert storage.settings.region == "eu-west-1"
        assert isinstance(storage._client_config, Config)
        assert storage._client_config.connect_timeout == 10
        assert storage._client_config.read_timeout == 60

    def test_custom_client_config(self):
        client_config = Config(retries={"max_attempts": 1})

        storage = StorageFactory.create_storage(
            _config(), session=MagicMock(), client_config=client_config
        )

        assert storage._client_config is client_config

    def test_invalid_connection_string(self):
        with pytest.raises(ConfigurationError):
            StorageFactory.create_storage(_config(source_storage_credential="Region=eu-west-1"))


class TestPipelineFactory:
    def test_creates_pipeline(self):
        storage = FakeObjectStorage()
        logger = FakeLogger()
        collector = MetricsCollector()

        pipeline = PipelineFactory.create_pipeline(
            _config(), storage, logger=logger, metrics_collector=collector
        )

        assert isinstance(pipeline, GreyscalePipeline)
        assert pipeline.config.destination_container == "processed"
        assert pipeline._source is storage
        assert pipeline._destination is storage
        assert pipeline._logger is logger
        assert pipeline._metrics_collector is collector

    def test_separate_destination(self):
        source = FakeObjectStorage()
        destination = FakeObjectStorage()

        pipeline = PipelineFactory.create_pipeline(_config(), source, destination)

        assert pipeline._destination is destination

    def test_default_logger(self):
        pipeline = PipelineFactory.create_pipeline(_config(), FakeObjectStorage())
        assert isinstance(pipeline._logger, StructuredLogger)

    def test_debug_enables_debug_logging(self):
        pipeline = PipelineFactory.create_pipeline(_config(debug=True), FakeObjectStorage())
        assert pipeline._logger.logger.level == logging.DEBUG

    def test_debug_level_is_kept_per_config(self):
        debug_pipeline = PipelineFactory.create_pipeline(_config(debug=True), FakeObjectStorage())
        plain_pipeline = PipelineFactory.create_pipeline(_config(), FakeObjectStorage())
        later_debug_pipeline = PipelineFactory.create_pipeline(
            _config(debug=True), FakeObjectStorage()
        )

        assert debug_pipeline._logger.logger.level == logging.DEBUG
        assert later_debug_pipeline._logger.logger.level == logging.DEBUG
        assert plain_pipeline._logger.logger is not debug_pipeline._logger.logger
        assert plain_pipeline._logger.logger.level == logging.NOTSET
