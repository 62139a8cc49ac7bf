"""Shared data models for the greyscale pipeline."""

import os
from typing import Any, Dict, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from .exceptions import ConfigurationError

JPEG_MIME_TYPE = "image/jpeg"
PNG_MIME_TYPE = "image/png"
SUPPORTED_OUTPUT_FORMATS = (JPEG_MIME_TYPE, PNG_MIME_TYPE)

DEFAULT_OUTPUT_PREFIX = "processed-"

# Environment variable backing each PipelineConfig field.
ENV_VARS = {
    "source_storage_credential": "STORAGE_CONNECTION_STRING",
    "source_container": "BLOB_CONTAINER_NAME",
    "destination_container": "PROCESSED_BLOB_CONTAINER_NAME",
    "output_prefix": "PROCESSED_BLOB_PREFIX",
    "output_format": "OUTPUT_MIME_TYPE",
    "jpeg_quality": "JPEG_QUALITY",
    "raise_on_failure": "RAISE_ON_FAILURE",
    "debug": "DEBUG",
}


class PipelineConfig(BaseModel):
    """Configuration for a pipeline run.

    Validated once at construction; use :meth:`load` or :meth:`from_env` to
    get a single :class:`ConfigurationError` instead of pydantic's error.
    """

    model_config = ConfigDict(frozen=True)

    source_storage_credential: str = Field(min_length=1, repr=False)
    source_container: str = Field(min_length=1)
    destination_container: str = Field(min_length=1)
    output_prefix: str = DEFAULT_OUTPUT_PREFIX
    output_format: str = JPEG_MIME_TYPE
    jpeg_quality: int = Field(default=95, ge=1, le=100)
    raise_on_failure: bool = False
    debug: bool = False

    @field_validator("source_storage_credential", "source_container", "destination_container")
    @classmethod
    def _not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("must not be blank")
        return value

    @field_validator("output_format")
    @classmethod
    def _supported_format(cls, value: str) -> str:
        value = value.lower()
        if value not in SUPPORTED_OUTPUT_FORMATS:
            raise ValueError(
                f"unsupported output format {value!r}, expected one of {SUPPORTED_OUTPUT_FORMATS}"
            )
        return value

    @classmethod
    def load(cls, **values: Any) -> "PipelineConfig":
        """Build a config, folding every validation problem into one error."""
        try:
            return cls(**values)
        except ValidationError as exc:
            problems = "; ".join(
                f"{'.'.join(str(part) for part in error['loc']) or 'config'}: {error['msg']}"
                for error in exc.errors()
            )
            raise ConfigurationError(f"Invalid pipeline configuration: {problems}") from exc

    @classmethod
    def from_env(
        cls, environ: Optional[Mapping[str, str]] = None, **overrides: Any
    ) -> "PipelineConfig":
        """
        Build a config from environment variables.

        Args:
            environ: Mapping to read instead of ``os.environ``
            **overrides: Field values taking precedence over the environment

        Raises:
            ConfigurationError: If a required value is missing or invalid
        """
        environ = os.environ if environ is None else environ
        values: Dict[str, Any] = {}
        for field_name, env_var in ENV_VARS.items():
            if env_var in environ:
                values[field_name] = environ[env_var]
        # Required fields are always passed so a missing one is reported by name
        for field_name in ("source_storage_credential", "source_container", "destination_container"):
            values.setdefault(field_name, "")
        values.update(overrides)
        return cls.load(**values)


class NotificationData(BaseModel):
    """Payload of a blob-created notification."""

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    url: Optional[str] = None
    content_type: Optional[str] = Field(default=None, alias="contentType")
    content_length: Optional[int] = Field(default=None, alias="contentLength")


class Notification(BaseModel):
    """Event announcing a newly created source object."""

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    id: Optional[str] = None
    subject: Optional[str] = None
    event_type: Optional[str] = Field(default=None, alias="eventType")
    event_time: Optional[str] = Field(default=None, alias="eventTime")
    data: NotificationData = Field(default_factory=NotificationData)

    @property
    def source_url(self) -> Optional[str]:
        return self.data.url

    @classmethod
    def from_event(cls, event: Any) -> "Notification":
        """Coerce a raw event (mapping, model or None) into a Notification."""
        if isinstance(event, Notification):
            return event
        if event is None:
            return cls()
        if isinstance(event, Mapping):
            payload = dict(event)
            if not isinstance(payload.get("data"), Mapping):
                payload["data"] = {}
            return cls.model_validate(payload)
        raise TypeError(f"Unsupported event type: {type(event).__name__}")


class RunOutcome(BaseModel):
    """Terminal state of one pipeline run."""

    source_url: str = ""
    blob_name: str = ""
    dest_name: str = ""
    success: bool = False
    error: str = ""
    error_type: str = ""
    failed_stage: str = ""
    output_size: int = 0
    processing_time: float = 0.0
    correlation_id: str = ""

    @property
    def failed(self) -> bool:
        return not self.success
