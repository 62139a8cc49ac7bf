"""Testing utilities and fakes for the greyscale pipeline."""

from .fakes import (
    FakeByteStream,
    FakeContainer,
    FakeLogger,
    FakeObjectStorage,
    StoredObject,
    blob_url,
    create_test_image,
    setup_test_storage_environment,
)

__all__ = [
    "FakeByteStream",
    "FakeContainer",
    "FakeLogger",
    "FakeObjectStorage",
    "StoredObject",
    "blob_url",
    "create_test_image",
    "setup_test_storage_environment",
]
