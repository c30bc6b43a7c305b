"""
Control catalog retrieval for Accord.

Provides the CatalogCache (TTL cache with retry, offline fallback and
refresh coalescing), the OSCAL catalog readers and the retry policy.
"""

from accord.catalog.cache import CacheStats, CatalogCache
from accord.catalog.loader import (
    CATALOG_FILE_NAME,
    CatalogError,
    CatalogReader,
    DataIntegrityError,
    FileCatalogReader,
    RemoteCatalogReader,
    TransientFetchError,
    parse_catalog,
)
from accord.catalog.retry import RetryPolicy

__all__ = [
    # Cache
    "CacheStats",
    "CatalogCache",
    # Loading
    "CATALOG_FILE_NAME",
    "CatalogError",
    "CatalogReader",
    "DataIntegrityError",
    "FileCatalogReader",
    "RemoteCatalogReader",
    "TransientFetchError",
    "parse_catalog",
    # Retry
    "RetryPolicy",
]
