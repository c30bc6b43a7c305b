"""
SQLite-based local evidence store.

This module provides LocalEvidenceStore, a SQLite-based backend
suitable for development and single-user scenarios.
"""

from __future__ import annotations

import json
import os
import sqlite3
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from accord.storage.base import EvidenceStore, generate_evidence_id


class LocalEvidenceStore(EvidenceStore):
    """
    SQLite-based evidence store.

    Attributes:
        db_path: Path to the SQLite database file
    """

    def __init__(self, db_path: str = "~/.accord/evidence.db") -> None:
        """
        Initialize the local evidence store.

        Creates the database directory and file if they don't exist,
        and initializes the database schema.

        Args:
            db_path: Path to the SQLite database file.
                     Supports ~ for home directory.
        """
        self.db_path = os.path.expanduser(db_path)

        db_dir = os.path.dirname(self.db_path)
        if db_dir:
            Path(db_dir).mkdir(parents=True, exist_ok=True)

        self._init_db()

    def _get_connection(self) -> sqlite3.Connection:
        """Get a database connection."""
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        return conn

    def _init_db(self) -> None:
        """Initialize database schema."""
        conn = self._get_connection()
        cursor = conn.cursor()

        cursor.execute("""
            CREATE TABLE IF NOT EXISTS evidence (
                id TEXT PRIMARY KEY,
                scan_type TEXT NOT NULL,
                created_at TEXT NOT NULL,
                context TEXT,
                payload TEXT NOT NULL
            )
        """)
        cursor.execute("""
            CREATE INDEX IF NOT EXISTS idx_evidence_type
            ON evidence(scan_type, created_at)
        """)

        conn.commit()
        conn.close()

    def _uri(self, evidence_id: str) -> str:
        return f"sqlite://{self.db_path}#{evidence_id}"

    def store_scan_results(
        self,
        scan_type: str,
        payload: dict[str, Any],
        context: dict[str, Any] | None = None,
    ) -> str:
        """Store a scan result and return its sqlite:// URI."""
        evidence_id = generate_evidence_id(scan_type)
        created_at = datetime.now(timezone.utc).isoformat()

        conn = self._get_connection()
        try:
            conn.execute(
                "INSERT INTO evidence (id, scan_type, created_at, context, payload) "
                "VALUES (?, ?, ?, ?, ?)",
                (
                    evidence_id,
                    scan_type,
                    created_at,
                    json.dumps(context or {}, default=str),
                    json.dumps(payload, default=str),
                ),
            )
            conn.commit()
        finally:
            conn.close()

        return self._uri(evidence_id)

    def get_scan_results(self, evidence_id: str) -> dict[str, Any] | None:
        """Retrieve a stored record by id."""
        conn = self._get_connection()
        cursor = conn.cursor()

        cursor.execute("SELECT * FROM evidence WHERE id = ?", (evidence_id,))
        row = cursor.fetchone()
        conn.close()

        if row is None:
            return None

        return {
            "id": row["id"],
            "scan_type": row["scan_type"],
            "created_at": row["created_at"],
            "context": json.loads(row["context"] or "{}"),
            "payload": json.loads(row["payload"]),
            "uri": self._uri(row["id"]),
        }

    def list_scan_results(
        self, scan_type: str | None = None, limit: int = 10
    ) -> list[dict[str, Any]]:
        """List recent record summaries."""
        conn = self._get_connection()
        cursor = conn.cursor()

        if scan_type:
            cursor.execute(
                "SELECT id, scan_type, created_at FROM evidence WHERE scan_type = ? "
                "ORDER BY created_at DESC, id DESC LIMIT ?",
                (scan_type, limit),
            )
        else:
            cursor.execute(
                "SELECT id, scan_type, created_at FROM evidence "
                "ORDER BY created_at DESC, id DESC LIMIT ?",
                (limit,),
            )

        results = [
            {
                "id": row["id"],
                "scan_type": row["scan_type"],
                "created_at": row["created_at"],
                "uri": self._uri(row["id"]),
            }
            for row in cursor.fetchall()
        ]
        conn.close()

        return results

    def delete_scan_results(self, evidence_id: str) -> bool:
        """
        Delete a stored record.

        Returns:
            True if a record was deleted
        """
        conn = self._get_connection()
        try:
            cursor = conn.execute("DELETE FROM evidence WHERE id = ?", (evidence_id,))
            conn.commit()
            return cursor.rowcount > 0
        finally:
            conn.close()
