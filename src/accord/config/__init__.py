"""
Configuration management for Accord.

Provides configuration classes and utilities for catalog retrieval,
orchestration, evidence storage and logging settings.
"""

from accord.config.settings import (
    DEFAULT_CATALOG_BASE_URL,
    AccordConfiguration,
    CatalogOptions,
    EvidenceOptions,
    LoggingOptions,
    OrchestratorOptions,
    create_default_config,
    load_config_from_env,
)

__all__ = [
    "DEFAULT_CATALOG_BASE_URL",
    "AccordConfiguration",
    "CatalogOptions",
    "EvidenceOptions",
    "LoggingOptions",
    "OrchestratorOptions",
    "create_default_config",
    "load_config_from_env",
]
