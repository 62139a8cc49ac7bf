"""Object storage adapter for S3-compatible services, built on aioboto3."""

import asyncio
from contextlib import AsyncExitStack
from dataclasses import dataclass
from typing import Any, Dict, Optional

import aioboto3
from botocore.config import Config
from botocore.exceptions import ClientError

from ..core.error_handling import with_error_handling
from ..core.exceptions import ConfigurationError, PublishError, SourceReadError
from ..core.logging_config import get_logger
from ..core.protocols import ContainerHandle, ObjectHandle

# Connection string key -> attribute of StorageSettings
_CONNECTION_KEYS = {
    "accesskeyid": "access_key_id",
    "secretaccesskey": "secret_access_key",
    "sessiontoken": "session_token",
    "region": "region",
    "endpointurl": "endpoint_url",
    "profile": "profile",
    "usedefaultcredentials": "use_default_credentials",
}

_MISSING_BUCKET_CODES = ("404", "NoSuchBucket", "NotFound")


@dataclass(frozen=True)
class StorageSettings:
    """Parsed storage connection string."""

    access_key_id: Optional[str] = None
    secret_access_key: Optional[str] = None
    session_token: Optional[str] = None
    region: Optional[str] = None
    endpoint_url: Optional[str] = None
    profile: Optional[str] = None
    use_default_credentials: bool = False

    def session_kwargs(self) -> Dict[str, Any]:
        kwargs: Dict[str, Any] = {}
        if self.region:
            kwargs["region_name"] = self.region
        if self.profile:
            kwargs["profile_name"] = self.profile
        if not self.use_default_credentials and self.access_key_id:
            kwargs["aws_access_key_id"] = self.access_key_id
            kwargs["aws_secret_access_key"] = self.secret_access_key
            if self.session_token:
                kwargs["aws_session_token"] = self.session_token
        return kwargs


def parse_connection_string(connection_string: str) -> StorageSettings:
    """
    Parse a ``Key=Value;Key=Value`` storage connection string.

    Recognised keys (case-insensitive): AccessKeyId, SecretAccessKey,
    SessionToken, Region, EndpointUrl, Profile, UseDefaultCredentials.
    Unknown keys are ignored with a warning.

    Raises:
        ConfigurationError: If the string is empty or malformed, or carries an
            access key without its secret
    """
    logger = get_logger("storage")
    if not connection_string or not connection_string.strip():
        raise ConfigurationError("Storage connection string is empty")

    values: Dict[str, Any] = {}
    for part in connection_string.split(";"):
        part = part.strip()
        if not part:
            continue
        key, sep, value = part.partition("=")
        if not sep or not key.strip():
            raise ConfigurationError(f"Malformed connection string segment: {key.strip()!r}")
        attribute = _CONNECTION_KEYS.get(key.strip().lower())
        if attribute is None:
            logger.warning(f"Ignoring unknown connection string key: {key.strip()}")
            continue
        values[attribute] = value.strip()

    if "use_default_credentials" in values:
        values["use_default_credentials"] = values["use_default_credentials"].lower() in (
            "1",
            "true",
            "yes",
        )

    settings = StorageSettings(**values)
    if settings.access_key_id and not settings.secret_access_key:
        raise ConfigurationError("Connection string has AccessKeyId but no SecretAccessKey")
    if not (settings.access_key_id or settings.profile or settings.use_default_credentials):
        raise ConfigurationError(
            "Connection string must set AccessKeyId/SecretAccessKey, Profile "
            "or UseDefaultCredentials=true"
        )
    return settings


def _error_code(exc: ClientError) -> str:
    return str(exc.response.get("Error", {}).get("Code", ""))


class S3ObjectStorage:
    """
    Source and destination storage backed by one S3 client.

    Use as an async context manager; the underlying client is opened once on
    first use, even when several runs share the adapter, and closed on exit. Object bodies returned by
    :meth:`open_read_stream` must be drained before the context exits.
    """

    def __init__(
        self,
        connection_string: str,
        session: Optional[aioboto3.Session] = None,
        client_config: Optional[Config] = None,
    ):
        self._settings = parse_connection_string(connection_string)
        self._session = session or aioboto3.Session(**self._settings.session_kwargs())
        self._client_config = client_config
        self._exit_stack: Optional[AsyncExitStack] = None
        self._client: Any = None
        self._client_lock = asyncio.Lock()
        self._logger = get_logger("storage")

    @property
    def settings(self) -> StorageSettings:
        return self._settings

    async def __aenter__(self) -> "S3ObjectStorage":
        await self._get_client()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    async def _get_client(self) -> Any:
        if self._client is not None:
            return self._client
        async with self._client_lock:
            # Another run may have opened the client while this one waited
            if self._client is None:
                client_kwargs: Dict[str, Any] = {}
                if self._settings.endpoint_url:
                    client_kwargs["endpoint_url"] = self._settings.endpoint_url
                if self._client_config is not None:
                    client_kwargs["config"] = self._client_config
                exit_stack = AsyncExitStack()
                self._client = await exit_stack.enter_async_context(
                    self._session.client("s3", **client_kwargs)  # type: ignore[reportUnknownMemberType]
                )
                self._exit_stack = exit_stack
        return self._client

    async def close(self) -> None:
        if self._exit_stack is not None:
            await self._exit_stack.aclose()
        self._exit_stack = None
        self._client = None

    async def resolve_container(self, name: str) -> ContainerHandle:
        return ContainerHandle(name=name)

    async def resolve_object(self, container: ContainerHandle, name: str) -> ObjectHandle:
        return ObjectHandle(container=container, name=name)

    @with_error_handling(SourceReadError, "download")
    async def open_read_stream(self, obj: ObjectHandle) -> Optional[Any]:
        client = await self._get_client()
        self._logger.debug(f"Downloading s3://{obj.container.name}/{obj.name}")
        response = await client.get_object(Bucket=obj.container.name, Key=obj.name)
        return response.get("Body")

    @with_error_handling(PublishError, "create container")
    async def create_container_if_absent(self, container: ContainerHandle) -> bool:
        client = await self._get_client()
        try:
            await client.head_bucket(Bucket=container.name)
            return False
        except ClientError as e:
            if _error_code(e) not in _MISSING_BUCKET_CODES:
                raise

        create_kwargs: Dict[str, Any] = {"Bucket": container.name}
        if self._settings.region and self._settings.region != "us-east-1":
            create_kwargs["CreateBucketConfiguration"] = {
                "LocationConstraint": self._settings.region
            }
        try:
            await client.create_bucket(**create_kwargs)
        except ClientError as e:
            # Another run created it between our head and create calls
            if _error_code(e) == "BucketAlreadyOwnedByYou":
                return False
            raise
        self._logger.debug(f"Created bucket {container.name}")
        return True

    @with_error_handling(PublishError, "upload")
    async def write_object(
        self, container: ContainerHandle, name: str, data: bytes, content_type: str
    ) -> None:
        client = await self._get_client()
        self._logger.debug(f"Uploading to s3://{container.name}/{name}")
        await client.put_object(
            Bucket=container.name,
            Key=name,
            Body=data,
            ContentType=content_type,
        )
