"""
Discriminated success/failure outcome for public operations.

Every public repository and ORM operation returns an ``ORMResult``: either
``Ok(value)`` or ``Err(error)`` where ``error`` is an ``ORMError`` subclass.
Both are frozen dataclasses, so results compose with structural pattern
matching:

Example:
    >>> match await repo.find(item_id):
    ...     case Ok(None):
    ...         print("no such item")
    ...     case Ok(item):
    ...         print(item.name)
    ...     case Err(DuplicateEntryError() as error):
    ...         print(f"duplicate: {error.field}")
    ...     case Err(error):
    ...         print(f"failed: {error}")
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, Generic, NoReturn, TypeAlias, TypeVar

from sqliteorm.exceptions import ORMError

T = TypeVar("T")
U = TypeVar("U")


@dataclass(frozen=True)
class Ok(Generic[T]):
    """Successful outcome carrying ``value``."""

    value: T

    @property
    def is_ok(self) -> bool:
        return True

    @property
    def error(self) -> None:
        return None

    def unwrap(self) -> T:
        """Return the value."""
        return self.value

    def unwrap_or(self, default: Any) -> T:
        return self.value

    def map(self, transform: Callable[[T], U]) -> Ok[U]:
        """Apply ``transform`` to the value."""
        return Ok(transform(self.value))


@dataclass(frozen=True)
class Err:
    """Failed outcome carrying a typed ``ORMError``."""

    error: ORMError

    @property
    def is_ok(self) -> bool:
        return False

    @property
    def value(self) -> None:
        return None

    def unwrap(self) -> NoReturn:
        """Raise the contained error."""
        raise self.error

    def unwrap_or(self, default: U) -> U:
        return default

    def map(self, transform: Callable[[Any], Any]) -> Err:
        return self


ORMResult: TypeAlias = Ok[T] | Err


__all__ = ["Ok", "Err", "ORMResult"]
