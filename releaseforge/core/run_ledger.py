"""Append-only, hash-chained run ledger backed by SQLite.

Every build-task and release state transition of a run is appended here,
so an operator can reconstruct what happened on every platform after
the fact.

Design:
- Append-only: only ``append()`` writes; no update, no delete.
- Hash-chained: each entry includes the SHA-256 of the previous entry.
- WAL journal mode for concurrent readers.
- A lock serializes appends from parallel build workers.
"""

from __future__ import annotations

import sqlite3
import threading
from datetime import datetime
from pathlib import Path

from releaseforge.core.hasher import compute_entry_hash
from releaseforge.models.ledger import LedgerEntry

_CREATE_LEDGER = """
CREATE TABLE IF NOT EXISTS run_ledger (
    id                  INTEGER PRIMARY KEY AUTOINCREMENT,
    entry_id            TEXT NOT NULL UNIQUE,
    run_id              TEXT NOT NULL,
    subject             TEXT NOT NULL,
    state_transition    TEXT NOT NULL,
    timestamp_utc       TEXT NOT NULL,
    version             TEXT NOT NULL DEFAULT '',
    detail              TEXT NOT NULL DEFAULT '',
    previous_entry_hash TEXT NOT NULL DEFAULT '',
    entry_hash          TEXT NOT NULL UNIQUE
);
"""

_CREATE_IDX_RUN = """
CREATE INDEX IF NOT EXISTS idx_run_id ON run_ledger(run_id, id);
"""


class LedgerIntegrityError(RuntimeError):
    """Raised when the hash chain is broken."""


class RunLedger:
    """Append-only, hash-chained run ledger.

    Parameters
    ----------
    db_path:
        Path to the SQLite database file. Created if it does not exist.
    """

    def __init__(self, db_path: Path) -> None:
        self._db_path = Path(db_path)
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._lock = threading.Lock()
        self._init_schema()

    @property
    def db_path(self) -> Path:
        return self._db_path

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(str(self._db_path), check_same_thread=False)
        conn.execute("PRAGMA journal_mode=WAL")
        return conn

    def _init_schema(self) -> None:
        with self._connect() as conn:
            conn.execute(_CREATE_LEDGER)
            conn.execute(_CREATE_IDX_RUN)
            conn.commit()

    # ------------------------------------------------------------------
    # Core: append-only write
    # ------------------------------------------------------------------

    def append(self, entry: LedgerEntry) -> LedgerEntry:
        """Append an entry, computing the hash chain link.

        Returns the entry with ``previous_entry_hash`` and ``entry_hash`` set.
        """
        with self._lock:
            previous_hash = self._get_latest_hash(entry.run_id)
            entry_dict = entry.model_dump(mode="json")
            entry_dict["previous_entry_hash"] = previous_hash
            entry_dict["entry_hash"] = ""
            sealed = entry.model_copy(
                update={
                    "previous_entry_hash": previous_hash,
                    "entry_hash": compute_entry_hash(entry_dict),
                }
            )
            self._insert(sealed)
        return sealed

    def record(
        self,
        run_id: str,
        subject: str,
        from_state: str,
        to_state: str,
        *,
        version: str = "",
        detail: str = "",
    ) -> LedgerEntry:
        """Convenience wrapper: append a ``from->to`` transition."""
        return self.append(
            LedgerEntry(
                run_id=run_id,
                subject=subject,
                state_transition=f"{from_state}->{to_state}",
                version=version,
                detail=detail,
            )
        )

    def _insert(self, entry: LedgerEntry) -> None:
        with self._connect() as conn:
            conn.execute(
                """
                INSERT INTO run_ledger
                    (entry_id, run_id, subject, state_transition, timestamp_utc,
                     version, detail, previous_entry_hash, entry_hash)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    entry.entry_id,
                    entry.run_id,
                    entry.subject,
                    entry.state_transition,
                    entry.timestamp_utc.isoformat(),
                    entry.version,
                    entry.detail,
                    entry.previous_entry_hash,
                    entry.entry_hash,
                ),
            )
            conn.commit()

    def _get_latest_hash(self, run_id: str) -> str:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT entry_hash FROM run_ledger WHERE run_id = ? ORDER BY id DESC LIMIT 1",
                (run_id,),
            ).fetchone()
        return row[0] if row else ""

    # ------------------------------------------------------------------
    # Query methods (read-only)
    # ------------------------------------------------------------------

    def get_run_entries(self, run_id: str) -> list[LedgerEntry]:
        """Return all ledger entries for a run, ordered chronologically."""
        with self._connect() as conn:
            rows = conn.execute(
                "SELECT * FROM run_ledger WHERE run_id = ? ORDER BY id ASC",
                (run_id,),
            ).fetchall()
        return [self._row_to_entry(row) for row in rows]

    def get_subject_history(self, run_id: str, subject: str) -> list[LedgerEntry]:
        """Return the entries for one platform (or the release) in a run."""
        return [e for e in self.get_run_entries(run_id) if e.subject == subject]

    def get_all_run_ids(self) -> list[str]:
        """Return all distinct run_ids, most recent first."""
        with self._connect() as conn:
            rows = conn.execute(
                "SELECT run_id, MAX(id) AS last FROM run_ledger "
                "GROUP BY run_id ORDER BY last DESC"
            ).fetchall()
        return [row[0] for row in rows]

    # ------------------------------------------------------------------
    # Chain verification
    # ------------------------------------------------------------------

    def verify_chain(self, run_id: str) -> bool:
        """Verify the hash chain for a run.

        Returns True if valid, raises ``LedgerIntegrityError`` otherwise.
        """
        prev_hash = ""
        for entry in self.get_run_entries(run_id):
            if entry.previous_entry_hash != prev_hash:
                raise LedgerIntegrityError(
                    f"Chain broken at entry {entry.entry_id}: "
                    f"expected previous_hash={prev_hash!r}, "
                    f"got {entry.previous_entry_hash!r}"
                )
            expected_hash = compute_entry_hash(entry.model_dump(mode="json"))
            if entry.entry_hash != expected_hash:
                raise LedgerIntegrityError(
                    f"Tampered entry {entry.entry_id}: "
                    f"expected hash={expected_hash!r}, got {entry.entry_hash!r}"
                )
            prev_hash = entry.entry_hash
        return True

    @staticmethod
    def _row_to_entry(row: tuple) -> LedgerEntry:
        (
            _id,
            entry_id,
            run_id,
            subject,
            state_transition,
            timestamp_utc,
            version,
            detail,
            previous_entry_hash,
            entry_hash,
        ) = row
        return LedgerEntry(
            entry_id=entry_id,
            run_id=run_id,
            subject=subject,
            state_transition=state_transition,
            timestamp_utc=datetime.fromisoformat(timestamp_utc),
            version=version,
            detail=detail,
            previous_entry_hash=previous_entry_hash,
            entry_hash=entry_hash,
        )
