"""
In-memory resource provider.

Serves resources, properties and role assignments from dictionaries.
Used for dry runs against exported environment snapshots and in tests,
where failures can be injected per operation or per resource.
"""

from __future__ import annotations

import copy
import threading
from typing import Any

from accord.cloud.base import (
    CloudProviderError,
    NotFoundError,
    ResourceDescriptor,
    ResourceProvider,
    RoleAssignment,
)
from accord.models import Scope


class InMemoryResourceProvider(ResourceProvider):
    """
    Dictionary backed ResourceProvider.

    Attributes:
        resources: Resource descriptors served by list_resources
        properties: Property documents keyed by resource id
        role_assignments: Role assignments served by get_role_assignments
        call_counts: Number of calls per operation name
    """

    def __init__(
        self,
        resources: list[ResourceDescriptor] | None = None,
        properties: dict[str, dict[str, Any]] | None = None,
        role_assignments: list[RoleAssignment] | None = None,
    ) -> None:
        self.resources = list(resources or [])
        self.properties = dict(properties or {})
        self.role_assignments = list(role_assignments or [])
        self.call_counts: dict[str, int] = {}
        self._failures: dict[str, CloudProviderError] = {}
        self._lock = threading.Lock()

    @property
    def provider_name(self) -> str:
        return "memory"

    def add_resource(
        self,
        resource: ResourceDescriptor,
        properties: dict[str, Any] | None = None,
    ) -> None:
        """Register a resource and, optionally, its property document."""
        self.resources.append(resource)
        if properties is not None:
            self.properties[resource.id] = properties

    def fail(self, operation: str, error: CloudProviderError) -> None:
        """
        Make an operation raise an error.

        Args:
            operation: "list_resources", "get_role_assignments" or a
                resource id for get_resource_properties
            error: Error to raise
        """
        self._failures[operation] = error

    def clear_failures(self) -> None:
        self._failures.clear()

    def _record(self, operation: str) -> None:
        with self._lock:
            self.call_counts[operation] = self.call_counts.get(operation, 0) + 1

    def list_resources(self, scope: Scope) -> list[ResourceDescriptor]:
        self._record("list_resources")
        if "list_resources" in self._failures:
            raise self._failures["list_resources"]
        if scope.resource_group:
            wanted = scope.resource_group.lower()
            return [r for r in self.resources if r.resource_group.lower() == wanted]
        return list(self.resources)

    def get_resource_properties(self, resource_id: str) -> dict[str, Any]:
        self._record("get_resource_properties")
        if resource_id in self._failures:
            raise self._failures[resource_id]
        if resource_id not in self.properties:
            raise NotFoundError(f"Resource not found: {resource_id}", resource_id)
        return copy.deepcopy(self.properties[resource_id])

    def get_role_assignments(self, scope: Scope) -> list[RoleAssignment]:
        self._record("get_role_assignments")
        if "get_role_assignments" in self._failures:
            raise self._failures["get_role_assignments"]
        prefix = scope.path.lower()
        return [
            a
            for a in self.role_assignments
            if a.scope.lower().startswith(prefix) or prefix.startswith(a.scope.lower())
        ]
