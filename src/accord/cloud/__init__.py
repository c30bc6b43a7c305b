"""
Cloud provider abstraction for Accord.

Control checkers read the environment through the ResourceProvider
interface. Supported implementations:

- azure: Microsoft Azure (requires azure-identity, azure-mgmt-resource,
  azure-mgmt-authorization)
- memory: dictionary backed provider for dry runs and tests

Use get_resource_provider() to create a provider by name.
"""

from __future__ import annotations

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
from accord.cloud.memory import InMemoryResourceProvider


def get_resource_provider(provider: str, **kwargs: Any) -> ResourceProvider:
    """
    Create a resource provider by name.

    Args:
        provider: Provider name ("azure" or "memory")
        **kwargs: Provider-specific arguments

    Returns:
        ResourceProvider instance

    Raises:
        ConfigurationError: If the provider name is unknown
        ImportError: If the provider's SDK is not installed
    """
    name = provider.lower()
    if name == "azure":
        from accord.cloud.azure import AzureResourceProvider

        return AzureResourceProvider(**kwargs)
    if name == "memory":
        return InMemoryResourceProvider(**kwargs)
    raise ConfigurationError(
        f"Unknown resource provider: {provider}. Supported providers: azure, memory"
    )


def list_available_providers() -> list[str]:
    """List provider names whose dependencies are installed."""
    from accord.cloud.azure import AzureResourceProvider

    providers = ["memory"]
    if AzureResourceProvider.is_available():
        providers.append("azure")
    return providers


__all__ = [
    # Exceptions
    "AuthorizationError",
    "CloudProviderError",
    "ConfigurationError",
    "NotFoundError",
    "TransientProviderError",
    "UnexpectedError",
    # Data classes
    "ResourceDescriptor",
    "RoleAssignment",
    # Providers
    "ResourceProvider",
    "InMemoryResourceProvider",
    # Factory
    "get_resource_provider",
    "list_available_providers",
]
