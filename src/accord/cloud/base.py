"""
Base classes for the cloud resource provider abstraction.

This module defines the ResourceProvider interface the control checkers
query, the descriptors it returns, and the error taxonomy every provider
implementation maps its SDK failures onto.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from accord.models import Scope


# Exceptions


class CloudProviderError(Exception):
    """Base exception for cloud provider errors."""

    def __init__(self, message: str, resource_id: str | None = None):
        self.resource_id = resource_id
        super().__init__(message)


class TransientProviderError(CloudProviderError):
    """Raised on network failures, throttling and timeouts."""

    pass


class AuthorizationError(CloudProviderError):
    """Raised when the caller lacks permission (403-equivalent)."""

    pass


class NotFoundError(CloudProviderError):
    """Raised when an expected resource or setting is absent (404-equivalent)."""

    pass


class UnexpectedError(CloudProviderError):
    """Raised for any other provider failure."""

    pass


class ConfigurationError(CloudProviderError):
    """Raised when provider or application configuration is invalid."""

    pass


# Data classes


@dataclass(frozen=True)
class ResourceDescriptor:
    """
    Minimal description of a cloud resource returned by a listing.

    Attributes:
        id: Fully qualified resource id
        name: Resource name
        type: Provider resource type, e.g. Microsoft.Storage/storageAccounts
        location: Region
        resource_group: Owning resource group
        tags: Resource tags
    """

    id: str
    name: str
    type: str
    location: str = ""
    resource_group: str = ""
    tags: dict[str, str] = field(default_factory=dict)

    def is_type(self, resource_type: str) -> bool:
        """Case-insensitive resource type comparison."""
        return self.type.lower() == resource_type.lower()

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "type": self.type,
            "location": self.location,
            "resource_group": self.resource_group,
            "tags": dict(self.tags),
        }


@dataclass(frozen=True)
class RoleAssignment:
    """
    A role granted to a principal at a scope.

    Attributes:
        id: Assignment id
        principal_id: Object id of the principal
        principal_type: User, Group, ServicePrincipal, ...
        role_name: Role display name (e.g. "Owner")
        scope: Scope path the role is granted at
        role_definition_id: Role definition resource id
        created_on: When the assignment was created
    """

    id: str
    principal_id: str
    role_name: str
    scope: str
    principal_type: str = ""
    role_definition_id: str = ""
    created_on: datetime | None = None

    @property
    def scope_type(self) -> str:
        """Classify the scope path as management_group, subscription, ..."""
        scope = self.scope.lower()
        if "/providers/microsoft.management/managementgroups/" in scope:
            return "management_group"
        if "/resourcegroups/" in scope:
            if "/providers/" in scope.split("/resourcegroups/", 1)[1]:
                return "resource"
            return "resource_group"
        if scope.startswith("/subscriptions/"):
            return "subscription"
        return "unknown"


# Abstract base class


class ResourceProvider(ABC):
    """
    Read-only view of a cloud environment.

    Implementations must raise only CloudProviderError subclasses so that
    checkers can distinguish meaningful outcomes (authorization failure,
    absent configuration) from transient failures.
    """

    @property
    @abstractmethod
    def provider_name(self) -> str:
        """Short provider identifier, e.g. "azure"."""
        pass

    @abstractmethod
    def list_resources(self, scope: Scope) -> list[ResourceDescriptor]:
        """
        List resources within a scope.

        Args:
            scope: Scan boundary

        Returns:
            Resource descriptors in the scope

        Raises:
            CloudProviderError: On any provider failure
        """
        pass

    @abstractmethod
    def get_resource_properties(self, resource_id: str) -> dict[str, Any]:
        """
        Fetch the full property document of a resource.

        Args:
            resource_id: Fully qualified resource id

        Returns:
            Property dictionary (the provider's "properties" payload merged
            with top level fields such as sku, identity and kind)

        Raises:
            NotFoundError: If the resource or setting does not exist
            AuthorizationError: If access is denied
            TransientProviderError: On network failure or timeout
        """
        pass

    @abstractmethod
    def get_role_assignments(self, scope: Scope) -> list[RoleAssignment]:
        """
        List role assignments visible at a scope.

        Raises:
            CloudProviderError: On any provider failure
        """
        pass

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(provider={self.provider_name})"
