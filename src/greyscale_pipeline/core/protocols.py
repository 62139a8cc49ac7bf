"""Protocol definitions for dependency injection and testability."""

from dataclasses import dataclass
from typing import Any, Optional, Protocol, runtime_checkable


@dataclass(frozen=True)
class ContainerHandle:
    """Reference to a storage container (bucket)."""

    name: str


@dataclass(frozen=True)
class ObjectHandle:
    """Reference to an object inside a container."""

    container: ContainerHandle
    name: str

    @property
    def locator(self) -> str:
        return f"{self.container.name}/{self.name}"


@runtime_checkable
class SourceStorageProtocol(Protocol):
    """Read side of the object store."""

    async def resolve_container(self, name: str) -> ContainerHandle:
        """Resolve a container by name."""
        ...

    async def resolve_object(self, container: ContainerHandle, name: str) -> ObjectHandle:
        """Resolve an object inside a container."""
        ...

    async def open_read_stream(self, obj: ObjectHandle) -> Optional[Any]:
        """Open the object's body as a byte source (None when there is no body)."""
        ...


@runtime_checkable
class DestinationStorageProtocol(Protocol):
    """Write side of the object store."""

    async def resolve_container(self, name: str) -> ContainerHandle:
        """Resolve a container by name."""
        ...

    async def create_container_if_absent(self, container: ContainerHandle) -> bool:
        """Create the container unless it exists; True if this call created it."""
        ...

    async def write_object(
        self, container: ContainerHandle, name: str, data: bytes, content_type: str
    ) -> None:
        """Write (and overwrite) an object."""
        ...


class LoggerProtocol(Protocol):
    """Protocol for logging operations."""

    def debug(self, message: str, context: Any = None, **kwargs: Any) -> None:
        """Log debug message."""
        ...

    def info(self, message: str, context: Any = None, **kwargs: Any) -> None:
        """Log info message."""
        ...

    def warning(self, message: str, context: Any = None, **kwargs: Any) -> None:
        """Log warning message."""
        ...

    def error(self, message: str, context: Any = None, **kwargs: Any) -> None:
        """Log error message."""
        ...
