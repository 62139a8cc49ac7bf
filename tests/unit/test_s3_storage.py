"""Unit tests for the S3 storage adapter."""

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest
from botocore.exceptions import ClientError

from greyscale_pipeline.core.exceptions import ConfigurationError, PublishError, SourceReadError
from greyscale_pipeline.core.protocols import (
    ContainerHandle,
    DestinationStorageProtocol,
    ObjectHandle,
    SourceStorageProtocol,
)
from greyscale_pipeline.core.stream_collector import collect_stream
from greyscale_pipeline.storage.s3 import S3ObjectStorage, parse_connection_string

CONNECTION = "AccessKeyId=AKIA;SecretAccessKey=secret;Region=eu-west-1;EndpointUrl=http://localhost:9000"


def _client_error(code, operation="Operation"):
    return ClientError({"Error": {"Code": code, "Message": f"{code} message"}}, operation)


def _session(client):
    client_cm = MagicMock()
    client_cm.__aenter__.return_value = client
    client_cm.__aexit__.return_value = False
    session = MagicMock()
    session.client.return_value = client_cm
    return session, client_cm


def _storage(client, connection=CONNECTION):
    session, client_cm = _session(client)
    return S3ObjectStorage(connection, session=session), session, client_cm


class FakeBody:
    def __init__(self, data):
        self._data = data

    async def iter_chunks(self, chunk_size=1024):
        for offset in range(0, len(self._data), chunk_size):
            yield self._data[offset : offset + chunk_size]


class TestParseConnectionString:
    """Tests for parse_connection_string."""

    def test_full_string(self):
        settings = parse_connection_string(
            "AccessKeyId=AKIA;SecretAccessKey=secret;SessionToken=tok;"
            "Region=eu-west-1;EndpointUrl=http://localhost:9000"
        )

        assert settings.access_key_id == "AKIA"
        assert settings.secret_access_key == "secret"
        assert settings.endpoint_url == "http://localhost:9000"
        assert settings.session_kwargs() == {
            "region_name": "eu-west-1",
            "aws_access_key_id": "AKIA",
            "aws_secret_access_key": "secret",
            "aws_session_token": "tok",
        }

    def test_keys_are_case_insensitive_and_whitespace_tolerant(self):
        settings = parse_connection_string(" accesskeyid = a ; SECRETACCESSKEY=b ; ")
        assert settings.access_key_id == "a"
        assert settings.secret_access_key == "b"

    def test_value_may_contain_equals(self):
        settings = parse_connection_string("AccessKeyId=a;SecretAccessKey=abc==")
        assert settings.secret_access_key == "abc=="

    def test_default_credentials(self):
        settings = parse_connection_string("UseDefaultCredentials=true;Region=us-east-1")
        assert settings.use_default_credentials is True
        assert settings.session_kwargs() == {"region_name": "us-east-1"}

    def test_profile(self):
        settings = parse_connection_string("Profile=dev")
        assert settings.session_kwargs() == {"profile_name": "dev"}

    def test_unknown_keys_ignored(self):
        settings = parse_connection_string("AccountName=legacy;Profile=dev")
        assert settings.profile == "dev"

    @pytest.mark.parametrize(
        "connection",
        [
            "",
            "   ",
            "AccessKeyId",
            "=value;Profile=dev",
            "AccessKeyId=a",
            "Region=eu-west-1",
        ],
    )
    def test_invalid(self, connection):
        with pytest.raises(ConfigurationError):
            parse_connection_string(connection)


class TestS3ObjectStorage:
    """Tests for S3ObjectStorage."""

    def test_implements_protocols(self):
        storage, _, _ = _storage(AsyncMock())
        assert isinstance(storage, SourceStorageProtocol)
        assert isinstance(storage, DestinationStorageProtocol)

    def test_invalid_connection_string(self):
        with pytest.raises(ConfigurationError):
            S3ObjectStorage("nonsense")

    def test_client_uses_endpoint(self):
        storage, session, _ = _storage(AsyncMock())

        async def run():
            async with storage:
                pass

        asyncio.run(run())

        session.client.assert_called_once_with("s3", endpoint_url="http://localhost:9000")

    def test_client_closed_on_exit(self):
        storage, _, client_cm = _storage(AsyncMock())

        async def run():
            async with storage:
                pass

        asyncio.run(run())

        client_cm.__aexit__.assert_awaited_once()

    def test_resolve_handles_without_network(self):
        client = AsyncMock()
        storage, session, _ = _storage(client)

        async def run():
            container = await storage.resolve_container("images")
            return container, await storage.resolve_object(container, "cat.png")

        container, obj = asyncio.run(run())

        assert container == ContainerHandle("images")
        assert obj == ObjectHandle(container=container, name="cat.png")
        assert obj.locator == "images/cat.png"
        session.client.assert_not_called()

    def test_open_read_stream(self):
        client = AsyncMock()
        client.get_object.return_value = {"Body": FakeBody(b"image-bytes")}
        storage, _, _ = _storage(client)
        obj = ObjectHandle(ContainerHandle("images"), "cat.png")

        async def run():
            async with storage:
                stream = await storage.open_read_stream(obj)
                return await collect_stream(stream)

        assert asyncio.run(run()) == b"image-bytes"
        client.get_object.assert_awaited_once_with(Bucket="images", Key="cat.png")

    def test_open_read_stream_missing_object(self):
        client = AsyncMock()
        client.get_object.side_effect = _client_error("NoSuchKey", "GetObject")
        storage, _, _ = _storage(client)
        obj = ObjectHandle(ContainerHandle("images"), "ghost.png")

        with pytest.raises(SourceReadError, match="NoSuchKey"):
            asyncio.run(storage.open_read_stream(obj))

    def test_create_container_exists(self):
        client = AsyncMock()
        storage, _, _ = _storage(client)

        created = asyncio.run(storage.create_container_if_absent(ContainerHandle("out")))

        assert created is False
        client.create_bucket.assert_not_awaited()

    def test_create_container_missing(self):
        client = AsyncMock()
        client.head_bucket.side_effect = _client_error("404", "HeadBucket")
        storage, _, _ = _storage(client)

        created = asyncio.run(storage.create_container_if_absent(ContainerHandle("out")))

        assert created is True
        client.create_bucket.assert_awaited_once_with(
            Bucket="out",
            CreateBucketConfiguration={"LocationConstraint": "eu-west-1"},
        )

    def test_create_container_us_east_1_has_no_location(self):
        client = AsyncMock()
        client.head_bucket.side_effect = _client_error("NoSuchBucket", "HeadBucket")
        storage, _, _ = _storage(client, "UseDefaultCredentials=true;Region=us-east-1")

        asyncio.run(storage.create_container_if_absent(ContainerHandle("out")))

        client.create_bucket.assert_awaited_once_with(Bucket="out")

    def test_create_container_race_is_not_an_error(self):
        client = AsyncMock()
        client.head_bucket.side_effect = _client_error("404", "HeadBucket")
        client.create_bucket.side_effect = _client_error("BucketAlreadyOwnedByYou", "CreateBucket")
        storage, _, _ = _storage(client)

        created = asyncio.run(storage.create_container_if_absent(ContainerHandle("out")))

        assert created is False

    def test_create_container_owned_by_someone_else(self):
        client = AsyncMock()
        client.head_bucket.side_effect = _client_error("404", "HeadBucket")
        client.create_bucket.side_effect = _client_error("BucketAlreadyExists", "CreateBucket")
        storage, _, _ = _storage(client)

        with pytest.raises(PublishError, match="BucketAlreadyExists"):
            asyncio.run(storage.create_container_if_absent(ContainerHandle("out")))

    def test_create_container_access_denied(self):
        client = AsyncMock()
        client.head_bucket.side_effect = _client_error("403", "HeadBucket")
        storage, _, _ = _storage(client)

        with pytest.raises(PublishError, match="403"):
            asyncio.run(storage.create_container_if_absent(ContainerHandle("out")))

        client.create_bucket.assert_not_awaited()

    def test_write_object(self):
        client = AsyncMock()
        storage, _, _ = _storage(client)

        asyncio.run(
            storage.write_object(ContainerHandle("out"), "processed-cat.png", b"jpeg", "image/jpeg")
        )

        client.put_object.assert_awaited_once_with(
            Bucket="out", Key="processed-cat.png", Body=b"jpeg", ContentType="image/jpeg"
        )

    def test_write_object_failure(self):
        client = AsyncMock()
        client.put_object.side_effect = _client_error("SlowDown", "PutObject")
        storage, _, _ = _storage(client)

        with pytest.raises(PublishError, match="upload failed: SlowDown"):
            asyncio.run(storage.write_object(ContainerHandle("out"), "k", b"", "image/jpeg"))

        assert client.put_object.await_count == 1

    def test_concurrent_first_use_opens_one_client(self):
        opened = []
        closed = []

        class SlowClientContext:
            async def __aenter__(self):
                await asyncio.sleep(0.01)
                client = AsyncMock()
                client.get_object.return_value = {"Body": FakeBody(b"image-bytes")}
                opened.append(client)
                return client

            async def __aexit__(self, exc_type, exc_val, exc_tb):
                closed.append(self)
                return False

        session = MagicMock()
        session.client.side_effect = lambda *args, **kwargs: SlowClientContext()
        storage = S3ObjectStorage(CONNECTION, session=session)
        obj = ObjectHandle(ContainerHandle("images"), "cat.png")

        async def run():
            clients = await asyncio.gather(*(storage._get_client() for _ in range(4)))
            bodies = await asyncio.gather(*(storage.open_read_stream(obj) for _ in range(3)))
            await storage.close()
            return clients, bodies

        clients, bodies = asyncio.run(run())

        assert len(opened) == 1
        assert len(closed) == 1
        assert all(client is opened[0] for client in clients)
        assert len(bodies) == 3
        assert session.client.call_count == 1
