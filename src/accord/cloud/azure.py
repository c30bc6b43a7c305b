"""
Microsoft Azure resource provider for Accord.

Reads resources, resource properties and role assignments through the
Azure management SDK and maps SDK failures onto the provider error
taxonomy. All API calls are read-only.
"""

from __future__ import annotations

import logging
from typing import Any

from accord.cloud.base import (
    AuthorizationError,
    CloudProviderError,
    ConfigurationError,
    NotFoundError,
    ResourceDescriptor,
    ResourceProvider,
    RoleAssignment,
    TransientProviderError,
    UnexpectedError,
)
from accord.models import Scope

# Optional Azure imports
try:
    from azure.core.exceptions import (
        ClientAuthenticationError,
        HttpResponseError,
        ResourceNotFoundError,
        ServiceRequestError,
        ServiceResponseError,
    )
    from azure.identity import DefaultAzureCredential
    from azure.mgmt.authorization import AuthorizationManagementClient
    from azure.mgmt.resource import ResourceManagementClient

    AZURE_AVAILABLE = True
except ImportError:
    AZURE_AVAILABLE = False

logger = logging.getLogger(__name__)

_TRANSIENT_STATUS_CODES = {408, 429, 500, 502, 503, 504}


class AzureResourceProvider(ResourceProvider):
    """
    Azure implementation of ResourceProvider.

    Accepts a ready credential object; when none is given the default
    credential chain (environment, managed identity, CLI) is used.
    """

    def __init__(
        self,
        subscription_id: str,
        credential: Any | None = None,
        timeout_seconds: int = 30,
        **kwargs: Any,
    ) -> None:
        """
        Initialize the Azure provider.

        Args:
            subscription_id: Azure subscription ID to read from
            credential: Optional Azure credential object
            timeout_seconds: Per-request connection and read timeout
            **kwargs: Extra keyword arguments passed to the SDK clients

        Raises:
            ImportError: If the Azure SDK is not installed
            ConfigurationError: If subscription_id is empty
        """
        if not AZURE_AVAILABLE:
            raise ImportError(
                "azure SDK is required for AzureResourceProvider. Install with: "
                "pip install azure-identity azure-mgmt-resource azure-mgmt-authorization"
            )
        if not subscription_id:
            raise ConfigurationError("Azure subscription_id is required")

        self._subscription_id = subscription_id
        self._credential = credential or DefaultAzureCredential()
        self._timeout = timeout_seconds
        self._client_kwargs = kwargs
        self._clients: dict[str, Any] = {}
        self._api_versions: dict[str, str] = {}
        self._role_names: dict[str, str] = {}

    @property
    def provider_name(self) -> str:
        return "azure"

    @property
    def subscription_id(self) -> str:
        return self._subscription_id

    @classmethod
    def is_available(cls) -> bool:
        """Check if the Azure SDK is installed."""
        return AZURE_AVAILABLE

    @classmethod
    def get_required_packages(cls) -> list[str]:
        return [
            "azure-core",
            "azure-identity",
            "azure-mgmt-resource",
            "azure-mgmt-authorization",
        ]

    def _get_resource_client(self) -> Any:
        """Get or create Resource Management client."""
        if "resource" not in self._clients:
            self._clients["resource"] = ResourceManagementClient(
                credential=self._credential,
                subscription_id=self._subscription_id,
                connection_timeout=self._timeout,
                read_timeout=self._timeout,
                **self._client_kwargs,
            )
        return self._clients["resource"]

    def _get_authorization_client(self) -> Any:
        """Get or create Authorization Management client."""
        if "authorization" not in self._clients:
            self._clients["authorization"] = AuthorizationManagementClient(
                credential=self._credential,
                subscription_id=self._subscription_id,
                connection_timeout=self._timeout,
                read_timeout=self._timeout,
                **self._client_kwargs,
            )
        return self._clients["authorization"]

    def _map_error(self, error: Exception, resource_id: str | None = None) -> CloudProviderError:
        """
        Translate an SDK exception into the provider error taxonomy.

        Args:
            error: Exception raised by the Azure SDK
            resource_id: Resource the call targeted, if any

        Returns:
            Matching CloudProviderError subclass instance
        """
        if isinstance(error, CloudProviderError):
            return error
        if isinstance(error, ClientAuthenticationError):
            return AuthorizationError(f"Authentication failed: {error}", resource_id)
        if isinstance(error, ResourceNotFoundError):
            return NotFoundError(f"Resource not found: {error}", resource_id)
        if isinstance(error, (ServiceRequestError, ServiceResponseError, TimeoutError)):
            return TransientProviderError(f"Azure request failed: {error}", resource_id)
        if isinstance(error, HttpResponseError):
            status = getattr(error, "status_code", None)
            if status in (401, 403):
                return AuthorizationError(f"Access denied ({status}): {error}", resource_id)
            if status == 404:
                return NotFoundError(f"Resource not found: {error}", resource_id)
            if status in _TRANSIENT_STATUS_CODES:
                return TransientProviderError(
                    f"Azure returned {status}: {error}", resource_id
                )
        return UnexpectedError(f"Unexpected Azure error: {error}", resource_id)

    def list_resources(self, scope: Scope) -> list[ResourceDescriptor]:
        client = self._get_resource_client()
        try:
            if scope.resource_group:
                pager = client.resources.list_by_resource_group(scope.resource_group)
            else:
                pager = client.resources.list()
            resources = [self._to_descriptor(r) for r in pager]
        except Exception as e:
            raise self._map_error(e) from e

        logger.debug(f"Listed {len(resources)} resources in {scope}")
        return resources

    def get_resource_properties(self, resource_id: str) -> dict[str, Any]:
        client = self._get_resource_client()
        try:
            api_version = self._resolve_api_version(resource_id)
            resource = client.resources.get_by_id(resource_id, api_version)
        except Exception as e:
            raise self._map_error(e, resource_id) from e

        if resource is None:
            raise NotFoundError(f"Resource not found: {resource_id}", resource_id)

        data = resource.as_dict()
        properties = dict(data.get("properties") or {})
        for key in ("sku", "kind", "identity", "tags", "location"):
            if data.get(key) is not None:
                properties.setdefault(key, data[key])
        return properties

    def get_role_assignments(self, scope: Scope) -> list[RoleAssignment]:
        client = self._get_authorization_client()
        assignments: list[RoleAssignment] = []
        try:
            for assignment in client.role_assignments.list_for_scope(scope.path):
                role_definition_id = assignment.role_definition_id or ""
                assignments.append(
                    RoleAssignment(
                        id=assignment.id,
                        principal_id=assignment.principal_id or "",
                        principal_type=str(assignment.principal_type or ""),
                        role_name=self._resolve_role_name(role_definition_id),
                        role_definition_id=role_definition_id,
                        scope=assignment.scope or "",
                        created_on=assignment.created_on,
                    )
                )
        except Exception as e:
            raise self._map_error(e) from e
        return assignments

    def _resolve_role_name(self, role_definition_id: str) -> str:
        """Look up (and cache) the display name of a role definition."""
        if not role_definition_id:
            return ""
        if role_definition_id not in self._role_names:
            client = self._get_authorization_client()
            try:
                definition = client.role_definitions.get_by_id(role_definition_id)
                self._role_names[role_definition_id] = definition.role_name or ""
            except HttpResponseError as e:
                # Fall back to the definition GUID when the name is not readable
                logger.debug(f"Could not resolve role {role_definition_id}: {e}")
                self._role_names[role_definition_id] = role_definition_id.split("/")[-1]
        return self._role_names[role_definition_id]

    def _resolve_api_version(self, resource_id: str) -> str:
        """Find the newest stable API version for the resource's type."""
        namespace, resource_type = _split_resource_type(resource_id)
        key = f"{namespace}/{resource_type}".lower()
        if key in self._api_versions:
            return self._api_versions[key]

        provider = self._get_resource_client().providers.get(namespace)
        for rt in provider.resource_types or []:
            if rt.resource_type.lower() == resource_type.lower():
                versions = list(rt.api_versions or [])
                stable = [v for v in versions if "preview" not in v]
                if stable or versions:
                    self._api_versions[key] = (stable or versions)[0]
                    return self._api_versions[key]

        raise NotFoundError(
            f"No API version registered for {namespace}/{resource_type}", resource_id
        )

    def _to_descriptor(self, resource: Any) -> ResourceDescriptor:
        resource_id = resource.id or ""
        return ResourceDescriptor(
            id=resource_id,
            name=resource.name or "",
            type=resource.type or "",
            location=resource.location or "",
            resource_group=_resource_group_from_id(resource_id),
            tags=dict(resource.tags or {}),
        )


def _resource_group_from_id(resource_id: str) -> str:
    parts = resource_id.split("/")
    for i, part in enumerate(parts):
        if part.lower() == "resourcegroups" and i + 1 < len(parts):
            return parts[i + 1]
    return ""


def _split_resource_type(resource_id: str) -> tuple[str, str]:
    """
    Extract provider namespace and (possibly nested) type from an id.

    "/subscriptions/s/resourceGroups/rg/providers/Microsoft.Sql/servers/a/databases/b"
    yields ("Microsoft.Sql", "servers/databases").
    """
    parts = resource_id.strip("/").split("/")
    lowered = [p.lower() for p in parts]
    if "providers" not in lowered:
        raise NotFoundError(f"Not a provider resource id: {resource_id}", resource_id)
    index = len(lowered) - 1 - lowered[::-1].index("providers")
    namespace = parts[index + 1] if index + 1 < len(parts) else ""
    remainder = parts[index + 2:]
    type_segments = remainder[0::2]
    return namespace, "/".join(type_segments)
