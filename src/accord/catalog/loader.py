"""
Control catalog loading for Accord.

Parses OSCAL catalog documents (NIST SP 800-53 rev5) and reads them from
a remote HTTP source or from a local fallback file.
"""

from __future__ import annotations

import json
import logging
import socket
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any
from urllib.error import HTTPError, URLError
from urllib.request import Request, urlopen

from accord.models import (
    Catalog,
    Control,
    ControlGroup,
    ControlPart,
    normalize_control_id,
)

logger = logging.getLogger(__name__)

CATALOG_FILE_NAME = "NIST_SP-800-53_rev5_catalog.json"
USER_AGENT = "accord/1.0"

_RETRYABLE_HTTP_CODES = {408, 425, 429, 500, 502, 503, 504}


class CatalogError(Exception):
    """Base exception for catalog retrieval failures."""

    def __init__(self, message: str, source: str | None = None):
        self.source = source
        prefix = f"{source}: " if source else ""
        super().__init__(f"{prefix}{message}")


class TransientFetchError(CatalogError):
    """Raised when a fetch failed in a way that may succeed on retry."""

    pass


class DataIntegrityError(CatalogError):
    """Raised when a catalog payload is malformed."""

    pass


def parse_catalog(data: Any, source: str | None = None) -> Catalog:
    """
    Build a Catalog from a decoded OSCAL catalog document.

    Args:
        data: Decoded JSON document ({"catalog": {...}})
        source: Where the document came from, used in error messages

    Returns:
        Parsed Catalog

    Raises:
        DataIntegrityError: If the document does not follow the schema
    """
    if not isinstance(data, dict) or not isinstance(data.get("catalog"), dict):
        raise DataIntegrityError("Document has no 'catalog' object", source)

    catalog = data["catalog"]
    metadata = catalog.get("metadata") or {}
    if not isinstance(metadata, dict):
        raise DataIntegrityError("Catalog 'metadata' must be an object", source)

    raw_groups = catalog.get("groups")
    if not isinstance(raw_groups, list):
        raise DataIntegrityError("Catalog 'groups' must be a list", source)

    groups: list[ControlGroup] = []
    for raw_group in raw_groups:
        if not isinstance(raw_group, dict) or not raw_group.get("id"):
            raise DataIntegrityError("Every group requires an 'id'", source)
        family = str(raw_group["id"]).upper()
        controls = tuple(
            _parse_control(c, family, source) for c in raw_group.get("controls") or []
        )
        groups.append(
            ControlGroup(
                id=str(raw_group["id"]),
                title=str(raw_group.get("title", "")),
                controls=controls,
            )
        )

    return Catalog(
        version=str(metadata.get("version") or "Unknown"),
        groups=groups,
        title=str(metadata.get("title", "")),
        last_modified=str(metadata.get("last-modified", "")),
    )


def _parse_control(raw: Any, family: str, source: str | None) -> Control:
    if not isinstance(raw, dict) or not raw.get("id"):
        raise DataIntegrityError(f"Control in group {family} has no 'id'", source)

    params: dict[str, str] = {}
    for param in raw.get("params") or []:
        if isinstance(param, dict) and param.get("id"):
            params[str(param["id"])] = str(param.get("label", ""))

    return Control(
        id=normalize_control_id(str(raw["id"])),
        title=str(raw.get("title", "")),
        family=family,
        control_class=str(raw.get("class", "")),
        parts=tuple(_parse_part(p, source) for p in raw.get("parts") or []),
        enhancements=tuple(
            _parse_control(c, family, source) for c in raw.get("controls") or []
        ),
        params=params,
    )


def _parse_part(raw: Any, source: str | None) -> ControlPart:
    if not isinstance(raw, dict):
        raise DataIntegrityError("Control part must be an object", source)
    return ControlPart(
        name=str(raw.get("name", "")),
        prose=str(raw.get("prose", "")),
        id=str(raw.get("id", "")),
        parts=tuple(_parse_part(p, source) for p in raw.get("parts") or []),
    )


def _decode(payload: bytes | str, source: str) -> Catalog:
    try:
        if isinstance(payload, bytes):
            payload = payload.decode("utf-8")
        data = json.loads(payload)
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        raise DataIntegrityError(f"Invalid JSON: {e}", source) from e
    return parse_catalog(data, source)


class CatalogReader(ABC):
    """Source of a catalog document."""

    @property
    @abstractmethod
    def location(self) -> str:
        """URL or path of the source, for logging."""
        pass

    @abstractmethod
    def read(self, timeout: float) -> Catalog:
        """
        Read and parse the catalog.

        Args:
            timeout: Per-attempt timeout in seconds

        Raises:
            TransientFetchError: On retryable failures
            DataIntegrityError: On malformed payloads
            CatalogError: On any other failure
        """
        pass


class RemoteCatalogReader(CatalogReader):
    """Fetches the catalog over HTTP(S)."""

    def __init__(self, base_url: str, file_name: str = CATALOG_FILE_NAME) -> None:
        self.url = f"{base_url.rstrip('/')}/{file_name}"

    @property
    def location(self) -> str:
        return self.url

    def read(self, timeout: float) -> Catalog:
        request = Request(
            self.url,
            headers={"User-Agent": USER_AGENT, "Accept": "application/json"},
        )
        try:
            with urlopen(request, timeout=timeout) as response:
                payload = response.read()
        except HTTPError as e:
            if e.code in _RETRYABLE_HTTP_CODES:
                raise TransientFetchError(f"HTTP {e.code}", self.url) from e
            raise CatalogError(f"HTTP {e.code}", self.url) from e
        except (URLError, TimeoutError, socket.timeout, ConnectionError) as e:
            raise TransientFetchError(str(e), self.url) from e

        logger.debug(f"Fetched {len(payload)} bytes from {self.url}")
        return _decode(payload, self.url)


class FileCatalogReader(CatalogReader):
    """Reads the catalog from a local file with the remote schema."""

    def __init__(self, path: str) -> None:
        self.path = Path(path).expanduser()

    @property
    def location(self) -> str:
        return str(self.path)

    def read(self, timeout: float) -> Catalog:
        try:
            payload = self.path.read_text(encoding="utf-8")
        except FileNotFoundError as e:
            raise CatalogError("Fallback file not found", str(self.path)) from e
        except OSError as e:
            raise CatalogError(f"Cannot read fallback file: {e}", str(self.path)) from e
        return _decode(payload, str(self.path))
