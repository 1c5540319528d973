# accounts/sqlite_repository.py

from __future__ import annotations

import logging
import sqlite3
import threading
from datetime import datetime, UTC
from pathlib import Path
from typing import List, Optional

from accounts.models import AccountRow
from accounts.repository_base import AccountRepository, RowInsertError

logger = logging.getLogger(__name__)

COLUMNS = (
    "referenceid",
    "manager",
    "tsm",
    "companyname",
    "contactperson",
    "contactnumber",
    "emailaddress",
    "typeclient",
    "address",
    "deliveryaddress",
    "area",
    "status",
)

_CREATE_TABLE_SQL = """\
CREATE TABLE IF NOT EXISTS accounts (
    id              INTEGER PRIMARY KEY AUTOINCREMENT,
    referenceid     TEXT NOT NULL,
    manager         TEXT,
    tsm             TEXT,
    companyname     TEXT,
    contactperson   TEXT,
    contactnumber   TEXT,
    emailaddress    TEXT,
    typeclient      TEXT,
    address         TEXT,
    deliveryaddress TEXT,
    area            TEXT,
    status          TEXT,
    date_created    TEXT NOT NULL
);
"""

_INSERT_SQL = (
    f"INSERT INTO accounts ({', '.join(COLUMNS)}, date_created) "
    f"VALUES ({', '.join('?' for _ in COLUMNS)}, ?)"
)


class SqliteAccountRepository(AccountRepository):
    """
    SQLite-backed account store.

    One connection is opened per process and shared across requests; writes are
    serialized with a lock. Each row is committed on its own, so a failed row
    never rolls back rows inserted before it.
    """

    def __init__(self, db_path: str | Path) -> None:
        self._db_path = Path(db_path)
        self._io_lock = threading.Lock()
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._conn = sqlite3.connect(str(self._db_path), check_same_thread=False)
        self._conn.row_factory = sqlite3.Row

    def ensure_schema(self) -> None:
        with self._io_lock:
            self._conn.execute(_CREATE_TABLE_SQL)
            self._conn.commit()
        logger.info("Accounts table ready at %s", self._db_path)

    def insert(self, row: AccountRow) -> dict:
        values = [getattr(row, column) for column in COLUMNS]
        date_created = datetime.now(UTC).isoformat()

        try:
            with self._io_lock:
                cursor = self._conn.execute(_INSERT_SQL, (*values, date_created))
                self._conn.commit()
        except (sqlite3.Error, OverflowError) as e:
            raise RowInsertError(f"Failed to add account: {e}") from e

        return {"id": cursor.lastrowid, **row.to_dict(), "date_created": date_created}

    def list_accounts(self, referenceid: Optional[str] = None) -> List[dict]:
        query = "SELECT * FROM accounts"
        params: tuple = ()
        if referenceid is not None:
            query += " WHERE referenceid = ?"
            params = (referenceid,)
        query += " ORDER BY id"

        with self._io_lock:
            rows = self._conn.execute(query, params).fetchall()
        return [dict(r) for r in rows]

    def close(self) -> None:
        with self._io_lock:
            self._conn.close()
