"""Capability interfaces of the hosted backend.

The core flows reach authentication, the relational record store and the
object store only through these three abstract classes.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Optional

from humanoidhub.core.result import Result

# Called with (bytes_sent, total_bytes) while an object is being written
ProgressCallback = Callable[[int, int], None]

Row = dict[str, Any]


@dataclass(frozen=True)
class CurrentUser:
    """Identity of the authenticated caller."""

    id: str
    email: Optional[str] = None
    display_name: Optional[str] = None

    @property
    def owner_name(self) -> str:
        """Qualifier used in owner-qualified model names."""
        return self.display_name or self.id


class FilterOp(str, Enum):
    """Predicates understood by every record store."""

    EQ = "eq"
    CONTAINS = "cs"  # array column holds every listed value
    IN = "in"  # column equals any listed value


@dataclass(frozen=True)
class Filter:
    column: str
    op: FilterOp
    value: Any


@dataclass(frozen=True)
class Order:
    column: str
    ascending: bool


@dataclass(frozen=True)
class PageRange:
    offset: int
    limit: int

    @property
    def last(self) -> int:
        """Inclusive index of the last row in the range."""
        return self.offset + self.limit - 1


@dataclass(frozen=True)
class ObjectEntry:
    """One object listed under a prefix."""

    key: str
    size: int


class AuthCapability(ABC):
    """Resolves a bearer credential to the calling user."""

    @abstractmethod
    async def get_current_user(self, token: Optional[str]) -> Optional[CurrentUser]:
        """Return the user owning ``token``, or None when it is missing or invalid."""
        pass


class ObjectStoreCapability(ABC):
    """Abstract base class for object stores."""

    @abstractmethod
    async def put_object(
        self,
        key: str,
        payload: bytes,
        on_progress: Optional[ProgressCallback] = None,
        content_type: str = "application/octet-stream",
    ) -> Result[str]:
        """Write ``payload`` under ``key``, reporting progress as bytes move.

        Returns:
            Ok with the stored key, or Err describing the transport failure
        """
        pass

    @abstractmethod
    async def list_objects(self, prefix: str) -> Result[list[ObjectEntry]]:
        """List every object whose key starts with ``prefix + "/"``."""
        pass

    @abstractmethod
    async def get_object(self, key: str) -> Result[bytes]:
        """Read one object."""
        pass

    @abstractmethod
    def get_backend_name(self) -> str:
        """Return backend identifier."""
        pass


class RecordStoreCapability(ABC):
    """Abstract base class for relational record stores."""

    @abstractmethod
    async def insert(self, table: str, fields: Row) -> Result[Row]:
        """Insert one row and return it as stored (with id and timestamps)."""
        pass

    @abstractmethod
    async def query(
        self,
        table: str,
        filters: tuple[Filter, ...] = (),
        order: Optional[Order] = None,
        page_range: Optional[PageRange] = None,
    ) -> Result[list[Row]]:
        """Return the rows matching every filter, ordered and sliced."""
        pass

    @abstractmethod
    async def count(self, table: str, filters: tuple[Filter, ...] = ()) -> Result[int]:
        """Return the number of rows matching every filter."""
        pass

    @abstractmethod
    async def update(self, table: str, filters: tuple[Filter, ...], fields: Row) -> Result[list[Row]]:
        """Apply ``fields`` to the matching rows and return them."""
        pass

    @abstractmethod
    def get_backend_name(self) -> str:
        """Return backend identifier."""
        pass
