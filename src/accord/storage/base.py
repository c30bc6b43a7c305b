"""
Abstract base class for evidence stores.

This module defines the EvidenceStore interface that all evidence
backends must follow, along with the evidence id generator.
"""

from __future__ import annotations

import uuid
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Any


def generate_evidence_id(scan_type: str) -> str:
    """
    Generate a sortable evidence id.

    Returns:
        Evidence id in format {scan_type}-YYYYMMDD-HHMMSS-{8 hex chars}
    """
    timestamp = datetime.now(timezone.utc).strftime("%Y%m%d-%H%M%S")
    return f"{scan_type}-{timestamp}-{uuid.uuid4().hex[:8]}"


class EvidenceStore(ABC):
    """
    Abstract base class for evidence storage implementations.

    Evidence records are immutable JSON documents grouped by scan type.
    """

    @abstractmethod
    def store_scan_results(
        self,
        scan_type: str,
        payload: dict[str, Any],
        context: dict[str, Any] | None = None,
    ) -> str:
        """
        Persist a scan result.

        Args:
            scan_type: Kind of scan, e.g. "assessment"
            payload: JSON-serializable result document
            context: Additional metadata stored alongside the payload

        Returns:
            URI locating the stored evidence
        """
        pass

    @abstractmethod
    def get_scan_results(self, evidence_id: str) -> dict[str, Any] | None:
        """
        Retrieve a stored record.

        Args:
            evidence_id: Id returned in the stored URI

        Returns:
            Record with id, scan_type, created_at, context and payload,
            or None if not found
        """
        pass

    @abstractmethod
    def list_scan_results(
        self, scan_type: str | None = None, limit: int = 10
    ) -> list[dict[str, Any]]:
        """
        List recent records, most recent first.

        Args:
            scan_type: Only records of this scan type
            limit: Maximum number of records

        Returns:
            Record summaries (id, scan_type, created_at, uri)
        """
        pass
