"""
Azure Blob Storage based evidence store.

This module provides AzureBlobEvidenceStore, which stores each scan result
as a JSON blob named {prefix}/evidence/{evidence_id}.json.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from typing import Any

try:
    from azure.core.exceptions import HttpResponseError, ResourceNotFoundError
    from azure.identity import DefaultAzureCredential
    from azure.storage.blob import ContainerClient, ContentSettings

    AZURE_AVAILABLE = True
except ImportError:
    AZURE_AVAILABLE = False

from accord.storage.base import EvidenceStore, generate_evidence_id

logger = logging.getLogger(__name__)


class AzureBlobEvidenceStore(EvidenceStore):
    """
    Evidence store writing one immutable JSON blob per record.

    Blobs are uploaded with overwrite disabled, so an id is never reused.
    Listing relies on evidence ids sorting by their embedded timestamp.
    """

    def __init__(
        self,
        account_name: str,
        container: str,
        prefix: str = "accord",
        credential: Any = None,
        connection_string: str | None = None,
    ) -> None:
        """
        Args:
            account_name: Storage account holding the evidence container
            container: Evidence container name
            prefix: Path prefix for evidence blobs
            credential: azure.identity credential; DefaultAzureCredential
                when neither this nor connection_string is given
            connection_string: Account connection string, used instead of
                account_name and credential when set

        Raises:
            ImportError: If azure-storage-blob is not installed
        """
        if not AZURE_AVAILABLE:
            raise ImportError(
                "AzureBlobEvidenceStore needs the Azure storage SDK: "
                "pip install azure-storage-blob azure-identity"
            )

        self.account_name = account_name
        self.container_name = container
        self.prefix = prefix.rstrip("/")
        self._credential = credential
        self._connection_string = connection_string
        self._container: Any = None

    def _get_container_client(self) -> Any:
        """Build the container client on first use."""
        if self._container is None:
            if self._connection_string:
                self._container = ContainerClient.from_connection_string(
                    self._connection_string, self.container_name
                )
            else:
                self._container = ContainerClient(
                    f"https://{self.account_name}.blob.core.windows.net",
                    self.container_name,
                    credential=self._credential or DefaultAzureCredential(),
                )
        return self._container

    def _blob_name(self, evidence_id: str) -> str:
        return f"{self.prefix}/evidence/{evidence_id}.json"

    def _access_denied(self, e: Exception) -> bool:
        return getattr(e, "status_code", None) == 403 or "AuthorizationFailure" in str(e)

    def store_scan_results(
        self,
        scan_type: str,
        payload: dict[str, Any],
        context: dict[str, Any] | None = None,
    ) -> str:
        """Upload a scan result and return the blob URL."""
        evidence_id = generate_evidence_id(scan_type)
        blob_name = self._blob_name(evidence_id)
        record = {
            "id": evidence_id,
            "scan_type": scan_type,
            "created_at": datetime.now(timezone.utc).isoformat(),
            "context": context or {},
            "payload": payload,
        }

        blob = self._get_container_client().get_blob_client(blob_name)
        try:
            blob.upload_blob(
                json.dumps(record, indent=2, default=str),
                overwrite=False,
                content_settings=ContentSettings(content_type="application/json"),
            )
        except HttpResponseError as e:
            if self._access_denied(e):
                raise PermissionError(
                    f"Access denied when writing to "
                    f"{self.account_name}/{self.container_name}/{blob_name}"
                ) from e
            raise

        logger.info(f"Stored {scan_type} evidence at {blob.url}")
        return blob.url

    def get_scan_results(self, evidence_id: str) -> dict[str, Any] | None:
        """Download a stored record, or None if it does not exist."""
        blob_name = self._blob_name(evidence_id)
        blob = self._get_container_client().get_blob_client(blob_name)

        try:
            content = blob.download_blob().readall()
        except ResourceNotFoundError:
            return None
        except HttpResponseError as e:
            if self._access_denied(e):
                raise PermissionError(
                    f"Access denied when reading "
                    f"{self.account_name}/{self.container_name}/{blob_name}"
                ) from e
            raise

        if isinstance(content, bytes):
            content = content.decode("utf-8")
        record = json.loads(content)
        record["uri"] = blob.url
        return record

    def list_scan_results(
        self, scan_type: str | None = None, limit: int = 10
    ) -> list[dict[str, Any]]:
        """List recent records by blob name (ids sort by timestamp)."""
        starts_with = f"{self.prefix}/evidence/"
        if scan_type:
            starts_with += f"{scan_type}-"

        container = self._get_container_client()
        names = sorted(
            (b.name for b in container.list_blobs(name_starts_with=starts_with)),
            reverse=True,
        )

        results = []
        for name in names[:limit]:
            evidence_id = name.rsplit("/", 1)[-1].removesuffix(".json")
            results.append(
                {
                    "id": evidence_id,
                    "scan_type": scan_type or evidence_id.split("-", 1)[0],
                    "uri": container.get_blob_client(name).url,
                }
            )
        return results
