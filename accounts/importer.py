import logging
from dataclasses import dataclass
from typing import Any, Iterable, List, Tuple

from accounts.models import AccountRow
from accounts.repository_base import AccountRepository, RowInsertError

logger = logging.getLogger(__name__)


class ImportValidationError(ValueError):
    pass


@dataclass(frozen=True)
class ImportResult:
    inserted_count: int
    failed_count: int = 0

    @property
    def message(self) -> str:
        return f"{self.inserted_count} records imported successfully!"


def parse_import_request(body: Any) -> Tuple[str, List[Any]]:
    """Return (referenceid, rows) from an import request body."""
    if not isinstance(body, dict):
        raise ImportValidationError("Missing referenceid or data.")

    referenceid = body.get("referenceid")
    data = body.get("data")
    if not referenceid or not isinstance(data, list) or not data:
        raise ImportValidationError("Missing referenceid or data.")

    return referenceid, data


def import_accounts(rows: Iterable[Any], repository: AccountRepository) -> ImportResult:
    """Insert rows one by one.

    A failed row is logged and skipped; it never aborts the batch. Rows that
    went in before a failure stay in.
    """
    inserted = 0
    failed = 0

    for index, payload in enumerate(rows):
        try:
            repository.insert(AccountRow.from_payload(payload))
        except RowInsertError as e:
            failed += 1
            logger.error("Failed to insert account row %d: %s", index, e)
            continue
        inserted += 1

    return ImportResult(inserted_count=inserted, failed_count=failed)
