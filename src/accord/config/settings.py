"""
Assessment configuration for Accord.

Defines configuration dataclasses for catalog retrieval, orchestration,
evidence storage and logging, with loading from JSON/YAML files and
environment variables.
"""

from __future__ import annotations

import json
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from accord.cloud.base import ConfigurationError

DEFAULT_CATALOG_BASE_URL = (
    "https://raw.githubusercontent.com/usnistgov/oscal-content/main/"
    "nist.gov/SP800-53/rev5/json"
)

EVIDENCE_BACKENDS = ("none", "local", "azure_blob")
LOG_FORMATS = ("human", "json")


@dataclass
class CatalogOptions:
    """Configuration for control catalog retrieval."""

    base_url: str = DEFAULT_CATALOG_BASE_URL
    target_version: str = "rev5"
    timeout_seconds: float = 30
    cache_duration_hours: float = 24
    sliding_ttl_hours: float | None = None  # Defaults to a quarter of the cache duration
    max_retry_attempts: int = 3
    retry_delay_seconds: float = 2
    max_retry_delay_seconds: float = 30
    retry_jitter_seconds: float = 0.5
    failure_cache_seconds: float = 60  # How long a failed refresh is reused
    enable_offline_fallback: bool = True
    offline_fallback_path: str = ""

    @property
    def effective_sliding_ttl_hours(self) -> float:
        if self.sliding_ttl_hours is not None:
            return self.sliding_ttl_hours
        return self.cache_duration_hours / 4

    def validate(self) -> list[str]:
        """Return a list of configuration problems (empty when valid)."""
        errors: list[str] = []
        if not self.base_url:
            errors.append("catalog.base_url is required")
        if self.timeout_seconds <= 0:
            errors.append("catalog.timeout_seconds must be positive")
        if self.cache_duration_hours <= 0:
            errors.append("catalog.cache_duration_hours must be positive")
        if self.max_retry_attempts < 1:
            errors.append("catalog.max_retry_attempts must be at least 1")
        if self.failure_cache_seconds < 0:
            errors.append("catalog.failure_cache_seconds cannot be negative")
        return errors

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "base_url": self.base_url,
            "target_version": self.target_version,
            "timeout_seconds": self.timeout_seconds,
            "cache_duration_hours": self.cache_duration_hours,
            "sliding_ttl_hours": self.sliding_ttl_hours,
            "max_retry_attempts": self.max_retry_attempts,
            "retry_delay_seconds": self.retry_delay_seconds,
            "max_retry_delay_seconds": self.max_retry_delay_seconds,
            "retry_jitter_seconds": self.retry_jitter_seconds,
            "failure_cache_seconds": self.failure_cache_seconds,
            "enable_offline_fallback": self.enable_offline_fallback,
            "offline_fallback_path": self.offline_fallback_path,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> CatalogOptions:
        """Create from dictionary."""
        return cls(
            base_url=data.get("base_url", DEFAULT_CATALOG_BASE_URL),
            target_version=data.get("target_version", "rev5"),
            timeout_seconds=data.get("timeout_seconds", 30),
            cache_duration_hours=data.get("cache_duration_hours", 24),
            sliding_ttl_hours=data.get("sliding_ttl_hours"),
            max_retry_attempts=data.get("max_retry_attempts", 3),
            retry_delay_seconds=data.get("retry_delay_seconds", 2),
            max_retry_delay_seconds=data.get("max_retry_delay_seconds", 30),
            retry_jitter_seconds=data.get("retry_jitter_seconds", 0.5),
            failure_cache_seconds=data.get("failure_cache_seconds", 60),
            enable_offline_fallback=data.get("enable_offline_fallback", True),
            offline_fallback_path=data.get("offline_fallback_path", ""),
        )


@dataclass
class OrchestratorOptions:
    """Configuration for the scan orchestrator."""

    max_workers: int = 1  # 1 runs phases sequentially in declared order
    enabled_phases: list[str] = field(default_factory=list)  # Empty means all

    def is_phase_enabled(self, domain: str) -> bool:
        return not self.enabled_phases or domain in self.enabled_phases

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "max_workers": self.max_workers,
            "enabled_phases": list(self.enabled_phases),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> OrchestratorOptions:
        """Create from dictionary."""
        return cls(
            max_workers=data.get("max_workers", 1),
            enabled_phases=list(data.get("enabled_phases", [])),
        )


@dataclass
class EvidenceOptions:
    """Configuration for evidence storage."""

    backend: str = "none"  # none, local, azure_blob
    db_path: str = "~/.accord/evidence.db"
    account_name: str = ""
    container: str = ""
    prefix: str = "accord"

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "backend": self.backend,
            "db_path": self.db_path,
            "account_name": self.account_name,
            "container": self.container,
            "prefix": self.prefix,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> EvidenceOptions:
        """Create from dictionary."""
        return cls(
            backend=data.get("backend", "none"),
            db_path=data.get("db_path", "~/.accord/evidence.db"),
            account_name=data.get("account_name", ""),
            container=data.get("container", ""),
            prefix=data.get("prefix", "accord"),
        )


@dataclass
class LoggingOptions:
    """Configuration for logging output."""

    level: str = "INFO"
    format: str = "human"  # human, json

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {"level": self.level, "format": self.format}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> LoggingOptions:
        """Create from dictionary."""
        return cls(
            level=data.get("level", "INFO"),
            format=data.get("format", "human"),
        )


@dataclass
class AccordConfiguration:
    """
    Complete assessment configuration.

    This is the main configuration class that contains all settings
    for running Accord assessments.
    """

    name: str = "default"
    description: str = ""
    catalog: CatalogOptions = field(default_factory=CatalogOptions)
    orchestrator: OrchestratorOptions = field(default_factory=OrchestratorOptions)
    evidence: EvidenceOptions = field(default_factory=EvidenceOptions)
    logging: LoggingOptions = field(default_factory=LoggingOptions)

    def validate(self) -> list[str]:
        """Return a list of configuration problems (empty when valid)."""
        errors = self.catalog.validate()
        if self.orchestrator.max_workers < 1:
            errors.append("orchestrator.max_workers must be at least 1")
        if self.evidence.backend not in EVIDENCE_BACKENDS:
            errors.append(
                f"evidence.backend must be one of {', '.join(EVIDENCE_BACKENDS)}"
            )
        if self.evidence.backend == "azure_blob" and not (
            self.evidence.account_name and self.evidence.container
        ):
            errors.append("evidence.account_name and evidence.container are required")
        if self.logging.format not in LOG_FORMATS:
            errors.append(f"logging.format must be one of {', '.join(LOG_FORMATS)}")
        return errors

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "name": self.name,
            "description": self.description,
            "catalog": self.catalog.to_dict(),
            "orchestrator": self.orchestrator.to_dict(),
            "evidence": self.evidence.to_dict(),
            "logging": self.logging.to_dict(),
        }

    def to_json(self, indent: int = 2) -> str:
        """Convert to JSON string."""
        return json.dumps(self.to_dict(), indent=indent)

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> AccordConfiguration:
        """Create from dictionary."""
        data = data or {}
        if not isinstance(data, dict):
            raise ConfigurationError("Configuration document must be a mapping")
        return cls(
            name=data.get("name", "default"),
            description=data.get("description", ""),
            catalog=CatalogOptions.from_dict(data.get("catalog") or {}),
            orchestrator=OrchestratorOptions.from_dict(data.get("orchestrator") or {}),
            evidence=EvidenceOptions.from_dict(data.get("evidence") or {}),
            logging=LoggingOptions.from_dict(data.get("logging") or {}),
        )

    @classmethod
    def from_json(cls, json_str: str) -> AccordConfiguration:
        """Create from JSON string."""
        return cls.from_dict(json.loads(json_str))

    @classmethod
    def from_file(cls, path: str) -> AccordConfiguration:
        """
        Load configuration from a JSON or YAML file.

        Raises:
            ConfigurationError: If the file cannot be read or parsed
        """
        path = os.path.expanduser(path)
        try:
            with open(path, "r", encoding="utf-8") as f:
                if path.endswith(".json"):
                    return cls.from_dict(json.load(f))
                return cls.from_dict(yaml.safe_load(f))
        except FileNotFoundError as e:
            raise ConfigurationError(f"Configuration file not found: {path}") from e
        except (json.JSONDecodeError, yaml.YAMLError) as e:
            raise ConfigurationError(f"Invalid configuration file {path}: {e}") from e

    def save(self, path: str) -> None:
        """Save configuration to a JSON or YAML file."""
        path = os.path.expanduser(path)
        Path(path).parent.mkdir(parents=True, exist_ok=True)

        with open(path, "w", encoding="utf-8") as f:
            if path.endswith(".json"):
                json.dump(self.to_dict(), f, indent=2)
            else:
                yaml.safe_dump(self.to_dict(), f, default_flow_style=False)


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if not value:
        return default
    try:
        return int(value)
    except ValueError as e:
        raise ConfigurationError(f"{name} must be an integer, got {value!r}") from e


def _env_float(name: str, default: float) -> float:
    value = os.getenv(name)
    if not value:
        return default
    try:
        return float(value)
    except ValueError as e:
        raise ConfigurationError(f"{name} must be a number, got {value!r}") from e


def load_config_from_env() -> AccordConfiguration:
    """
    Load configuration from environment variables.

    Environment variables:
        ACCORD_CONFIG_FILE: Path to configuration file
        ACCORD_CATALOG_URL: Base URL of the remote catalog
        ACCORD_CATALOG_FALLBACK: Path to the offline catalog copy
        ACCORD_CATALOG_TIMEOUT: Per-attempt fetch timeout in seconds
        ACCORD_MAX_RETRIES: Maximum catalog fetch attempts
        ACCORD_MAX_WORKERS: Phases run concurrently (1 = sequential)
        ACCORD_EVIDENCE_BACKEND: Evidence backend (none, local, azure_blob)
        ACCORD_LOG_LEVEL: Log level
        ACCORD_LOG_FORMAT: Log format (human, json)

    Returns:
        AccordConfiguration instance
    """
    config_file = os.getenv("ACCORD_CONFIG_FILE")
    if config_file and os.path.exists(config_file):
        return AccordConfiguration.from_file(config_file)

    config = AccordConfiguration()

    # Catalog
    config.catalog.base_url = os.getenv("ACCORD_CATALOG_URL", config.catalog.base_url)
    fallback = os.getenv("ACCORD_CATALOG_FALLBACK")
    if fallback:
        config.catalog.offline_fallback_path = fallback
    config.catalog.timeout_seconds = _env_float(
        "ACCORD_CATALOG_TIMEOUT", config.catalog.timeout_seconds
    )
    config.catalog.max_retry_attempts = _env_int(
        "ACCORD_MAX_RETRIES", config.catalog.max_retry_attempts
    )

    # Orchestrator
    config.orchestrator.max_workers = _env_int(
        "ACCORD_MAX_WORKERS", config.orchestrator.max_workers
    )

    # Evidence
    config.evidence.backend = os.getenv("ACCORD_EVIDENCE_BACKEND", "none")

    # Logging
    config.logging.level = os.getenv("ACCORD_LOG_LEVEL", "INFO")
    config.logging.format = os.getenv("ACCORD_LOG_FORMAT", "human")

    return config


def create_default_config() -> AccordConfiguration:
    """
    Create a default assessment configuration.

    Returns:
        AccordConfiguration with sensible defaults
    """
    return AccordConfiguration(
        name="default",
        description="Default Accord configuration",
        catalog=CatalogOptions(),
        orchestrator=OrchestratorOptions(max_workers=1),
        evidence=EvidenceOptions(backend="local"),
        logging=LoggingOptions(level="INFO", format="human"),
    )
