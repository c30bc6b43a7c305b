"""
Pytest configuration and fixtures for Accord tests.

This module provides common fixtures used across unit and integration tests.
"""

from __future__ import annotations

import json
import threading
import time
from typing import Any, Callable

import pytest

from accord.catalog import (
    CatalogCache,
    CatalogReader,
    RetryPolicy,
    TransientFetchError,
    parse_catalog,
)
from accord.cloud import InMemoryResourceProvider, ResourceDescriptor, RoleAssignment
from accord.config import CatalogOptions
from accord.models import (
    Catalog,
    ComplianceStatus,
    Finding,
    FindingType,
    Scope,
    Severity,
)

SUBSCRIPTION_ID = "00000000-0000-0000-0000-000000000001"
SUBSCRIPTION_SCOPE = f"/subscriptions/{SUBSCRIPTION_ID}"
STORAGE_TYPE = "Microsoft.Storage/storageAccounts"
KEYVAULT_TYPE = "Microsoft.KeyVault/vaults"


def resource_id(group: str, provider_type: str, name: str) -> str:
    return f"{SUBSCRIPTION_SCOPE}/resourceGroups/{group}/providers/{provider_type}/{name}"


class FakeCatalogReader(CatalogReader):
    """
    CatalogReader serving a document from memory.

    errors are raised by successive reads before the document is served;
    fail_with makes every read fail. on_read runs at the start of each read.
    """

    def __init__(
        self,
        document: dict[str, Any] | None = None,
        errors: list[Exception] | None = None,
        fail_with: Exception | None = None,
        delay: float = 0.0,
        location: str = "memory://catalog",
        on_read: Callable[[], Any] | None = None,
    ):
        self.document = document
        self.errors = list(errors or [])
        self.fail_with = fail_with
        self.delay = delay
        self.calls = 0
        self._location = location
        self.on_read = on_read
        self._lock = threading.Lock()

    @property
    def location(self) -> str:
        return self._location

    def read(self, timeout: float) -> Catalog:
        if self.on_read is not None:
            self.on_read()
        with self._lock:
            self.calls += 1
            error = self.errors.pop(0) if self.errors else self.fail_with
        if self.delay:
            time.sleep(self.delay)
        if error is not None:
            raise error
        return parse_catalog(self.document, self.location)


# Sample data fixtures


@pytest.fixture
def catalog_document() -> dict[str, Any]:
    """Return a small OSCAL catalog document."""
    return {
        "catalog": {
            "uuid": "9cd8ca7d-0b35-4b8b-9d31-5d5f0e0c2d1a",
            "metadata": {
                "title": "NIST Special Publication 800-53 Revision 5",
                "version": "5.1.1",
                "last-modified": "2023-12-04T14:49:47.000000-05:00",
            },
            "groups": [
                {
                    "id": "ac",
                    "title": "Access Control",
                    "controls": [
                        {
                            "id": "ac-2",
                            "title": "Account Management",
                            "class": "SP800-53",
                            "params": [{"id": "ac-02_odp.01", "label": "prerequisites"}],
                            "parts": [
                                {
                                    "name": "statement",
                                    "id": "ac-2_smt",
                                    "parts": [
                                        {
                                            "name": "item",
                                            "id": "ac-2_smt.a",
                                            "prose": "Define and document the types of accounts allowed.",
                                        }
                                    ],
                                },
                                {
                                    "name": "guidance",
                                    "prose": "Examples of system account types include individual and shared.",
                                },
                            ],
                            "controls": [
                                {
                                    "id": "ac-2.1",
                                    "title": "Automated System Account Management",
                                }
                            ],
                        },
                        {
                            "id": "ac-3",
                            "title": "Access Enforcement",
                            "parts": [
                                {
                                    "name": "statement",
                                    "prose": "Enforce approved authorizations for logical access.",
                                },
                                {
                                    "name": "assessment-objective",
                                    "prose": "approved authorizations are enforced.",
                                },
                            ],
                        },
                        {"id": "ac-5", "title": "Separation of Duties"},
                        {"id": "ac-6", "title": "Least Privilege"},
                    ],
                },
                {
                    "id": "au",
                    "title": "Audit and Accountability",
                    "controls": [
                        {"id": "au-6", "title": "Audit Record Review, Analysis, and Reporting"}
                    ],
                },
                {
                    "id": "sc",
                    "title": "System and Communications Protection",
                    "controls": [
                        {"id": "sc-7", "title": "Boundary Protection"},
                        {
                            "id": "sc-8",
                            "title": "Transmission Confidentiality and Integrity",
                        },
                        {"id": "sc-28", "title": "Protection of Information at Rest"},
                    ],
                },
            ],
        }
    }


@pytest.fixture
def catalog_file(tmp_path, catalog_document) -> str:
    """Write the sample catalog to a file and return its path."""
    path = tmp_path / "catalog.json"
    path.write_text(json.dumps(catalog_document), encoding="utf-8")
    return str(path)


@pytest.fixture
def catalog(catalog_document) -> Catalog:
    """Return the parsed sample catalog."""
    return parse_catalog(catalog_document, "fixture")


@pytest.fixture
def fast_retry() -> RetryPolicy:
    """Retry policy without backoff delays."""
    return RetryPolicy(max_attempts=3, base_delay=0, max_delay=0, jitter=0)


@pytest.fixture
def catalog_cache(catalog_document, fast_retry) -> CatalogCache:
    """Catalog cache serving the sample catalog from memory."""
    return CatalogCache(
        options=CatalogOptions(enable_offline_fallback=False),
        remote=FakeCatalogReader(catalog_document),
        retry_policy=fast_retry,
        sleep=lambda seconds: None,
    )


@pytest.fixture
def failing_catalog_cache(fast_retry) -> CatalogCache:
    """Catalog cache whose remote source and fallback are unavailable."""
    return CatalogCache(
        options=CatalogOptions(enable_offline_fallback=False),
        remote=FakeCatalogReader(fail_with=TransientFetchError("HTTP 503")),
        retry_policy=fast_retry,
        sleep=lambda seconds: None,
    )


@pytest.fixture
def scope() -> Scope:
    """Return the subscription scope used across tests."""
    return Scope(subscription_id=SUBSCRIPTION_ID, name="Test Subscription")


@pytest.fixture
def compliant_storage() -> tuple[ResourceDescriptor, dict[str, Any]]:
    """Return a storage account that passes every storage rule."""
    descriptor = ResourceDescriptor(
        id=resource_id("rg-app", STORAGE_TYPE, "stcompliant"),
        name="stcompliant",
        type=STORAGE_TYPE,
        location="eastus",
        resource_group="rg-app",
        tags={"owner": "platform", "environment": "prod"},
    )
    properties = {
        "supportsHttpsTrafficOnly": True,
        "minimumTlsVersion": "TLS1_2",
        "networkAcls": {"defaultAction": "Deny"},
        "encryption": {
            "keySource": "Microsoft.Storage",
            "services": {"blob": {"enabled": True}, "file": {"enabled": True}},
        },
        "sku": {"name": "Standard_GRS"},
        "tags": {"owner": "platform", "environment": "prod"},
    }
    return descriptor, properties


@pytest.fixture
def noncompliant_storage() -> tuple[ResourceDescriptor, dict[str, Any]]:
    """Return a storage account that fails the transport rules."""
    descriptor = ResourceDescriptor(
        id=resource_id("rg-app", STORAGE_TYPE, "stlegacy"),
        name="stlegacy",
        type=STORAGE_TYPE,
        location="eastus",
        resource_group="rg-app",
    )
    properties = {
        "supportsHttpsTrafficOnly": False,
        "minimumTlsVersion": "TLS1_0",
        "networkAcls": {"defaultAction": "Allow"},
        "encryption": {"services": {"blob": {"enabled": False}}},
        "sku": {"name": "Standard_LRS"},
    }
    return descriptor, properties


@pytest.fixture
def role_assignments() -> list[RoleAssignment]:
    """Return role assignments at subscription and resource group scope."""
    return [
        RoleAssignment(
            id=f"{SUBSCRIPTION_SCOPE}/providers/Microsoft.Authorization/roleAssignments/ra-1",
            principal_id="user-admin",
            principal_type="User",
            role_name="Owner",
            scope=SUBSCRIPTION_SCOPE,
        ),
        RoleAssignment(
            id=f"{SUBSCRIPTION_SCOPE}/resourceGroups/rg-app/providers/Microsoft.Authorization/roleAssignments/ra-2",
            principal_id="user-dev",
            principal_type="User",
            role_name="Contributor",
            scope=f"{SUBSCRIPTION_SCOPE}/resourceGroups/rg-app",
        ),
        RoleAssignment(
            id=f"{SUBSCRIPTION_SCOPE}/providers/Microsoft.Authorization/roleAssignments/ra-3",
            principal_id="sp-reader",
            principal_type="ServicePrincipal",
            role_name="Reader",
            scope=SUBSCRIPTION_SCOPE,
        ),
    ]


@pytest.fixture
def memory_provider(
    compliant_storage, noncompliant_storage, role_assignments
) -> InMemoryResourceProvider:
    """In-memory provider with two storage accounts and role assignments."""
    provider = InMemoryResourceProvider(role_assignments=role_assignments)
    for descriptor, properties in (compliant_storage, noncompliant_storage):
        provider.add_resource(descriptor, properties)
    return provider


@pytest.fixture
def make_finding():
    """Factory for findings with overridable fields."""

    def _make(**overrides: Any) -> Finding:
        values: dict[str, Any] = {
            "id": "finding-1",
            "resource_id": resource_id("rg-app", STORAGE_TYPE, "stlegacy"),
            "resource_type": STORAGE_TYPE,
            "finding_type": FindingType.CONFIGURATION,
            "severity": Severity.HIGH,
            "compliance_status": ComplianceStatus.NON_COMPLIANT,
            "title": "Storage account does not require HTTPS traffic",
            "description": "Secure transfer is disabled",
            "recommendation": "Enable secure transfer required on the storage account.",
            "affected_controls": frozenset({"SC-8"}),
        }
        values.update(overrides)
        return Finding(**values)

    return _make


@pytest.fixture
def reader_factory():
    """Return the FakeCatalogReader class for tests that configure failures."""
    return FakeCatalogReader
