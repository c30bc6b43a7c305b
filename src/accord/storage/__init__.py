"""
Evidence stores for Accord.

This package provides implementations for persisting assessment evidence:

- LocalEvidenceStore: SQLite-based storage for development and single-user scenarios
- AzureBlobEvidenceStore: Azure Blob storage for Azure deployments

Use the get_evidence_store() factory function to get the appropriate backend.
"""

from accord.storage.azure_blob import AZURE_AVAILABLE as _AZURE_AVAILABLE
from accord.storage.azure_blob import AzureBlobEvidenceStore
from accord.storage.base import EvidenceStore, generate_evidence_id
from accord.storage.local import LocalEvidenceStore


def get_evidence_store(backend: str = "local", **kwargs) -> EvidenceStore | None:
    """
    Factory function to get the appropriate evidence store.

    Args:
        backend: Backend type. Supported values:
            - "none": no evidence storage (returns None)
            - "local": SQLite-based local storage
            - "azure", "blob", "azure_blob": Azure Blob Storage
        **kwargs: Backend-specific configuration options

    Returns:
        Configured EvidenceStore instance, or None for "none"

    Raises:
        ValueError: If backend type is unknown
        ImportError: If required SDK is not installed

    Examples:
        # Local storage with custom path
        store = get_evidence_store("local", db_path="/tmp/evidence.db")

        # Azure Blob Storage
        store = get_evidence_store("azure_blob", account_name="myaccount",
                                   container="evidence")
    """
    backend = backend.lower()

    if backend == "none":
        return None

    elif backend == "local":
        return LocalEvidenceStore(**kwargs)

    elif backend in ("azure", "blob", "azure_blob"):
        if not _AZURE_AVAILABLE:
            raise ImportError(
                "azure-storage-blob is required for Azure Blob evidence storage. "
                "Install with: pip install azure-storage-blob"
            )
        return AzureBlobEvidenceStore(**kwargs)

    else:
        raise ValueError(
            f"Unknown evidence backend: {backend}. "
            "Supported backends: 'none', 'local', 'azure_blob'"
        )


def list_available_backends() -> list[str]:
    """
    List available evidence backends.

    Returns:
        List of available backend names
    """
    backends = ["none", "local"]
    if _AZURE_AVAILABLE:
        backends.append("azure_blob")
    return backends


__all__ = [
    # Base
    "EvidenceStore",
    "generate_evidence_id",
    # Implementations
    "LocalEvidenceStore",
    "AzureBlobEvidenceStore",
    # Factory
    "get_evidence_store",
    "list_available_backends",
]
