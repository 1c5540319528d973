from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

if TYPE_CHECKING:  # pragma: no cover
    from accounts.models import AccountRow


class RowInsertError(RuntimeError):
    """Raised when a single account row cannot be stored."""


class AccountRepository(ABC):
    """
    Abstract account store.

    The importer owns batching and error reporting. Implementations insert one
    row per call and raise RowInsertError on failure.
    """

    @abstractmethod
    def insert(self, row: AccountRow) -> dict:
        """Insert `row` and return the stored record, including server-assigned fields."""
        raise NotImplementedError
