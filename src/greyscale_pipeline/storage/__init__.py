"""Storage adapters for the greyscale pipeline."""

from .s3 import S3ObjectStorage, StorageSettings, parse_connection_string

__all__ = [
    "S3ObjectStorage",
    "StorageSettings",
    "parse_connection_string",
]
