"""
Configuration module for Ernesto.

Loads configuration from environment variables. Every setting has a default
so the controller can run in-cluster with no configuration at all.
"""

import os
from dataclasses import dataclass
from typing import Optional


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None or value == "":
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


@dataclass
class StoreConfig:
    """Cluster API configuration for the watched resource type."""

    namespace: str = "tacos"
    group: str = "0x42.in"
    version: str = "v1alpha1"
    plural: str = "githubrepositories"
    kubeconfig: Optional[str] = None  # None means in-cluster config

    @classmethod
    def from_env(cls):
        """Load from environment variables."""
        return cls(
            namespace=os.getenv("ERNESTO_NAMESPACE", "tacos"),
            group=os.getenv("RESOURCE_GROUP", "0x42.in"),
            version=os.getenv("RESOURCE_VERSION", "v1alpha1"),
            plural=os.getenv("RESOURCE_PLURAL", "githubrepositories"),
            kubeconfig=os.getenv("KUBECONFIG") or None,
        )


@dataclass
class RetryConfig:
    """Retry-on-conflict policy for status updates."""

    steps: int = 5
    base_delay: float = 0.01  # seconds
    factor: float = 1.0
    jitter: float = 0.1  # ±10% jitter

    def __post_init__(self):
        if self.steps < 1:
            raise ValueError("RETRY_STEPS must be at least 1")
        if self.base_delay < 0 or self.factor < 0 or self.jitter < 0:
            raise ValueError("Retry delays, factor and jitter must be non-negative")

    @classmethod
    def from_env(cls):
        """Load from environment variables."""
        return cls(
            steps=int(os.getenv("RETRY_STEPS", "5")),
            base_delay=float(os.getenv("RETRY_BASE_DELAY", "0.01")),
            factor=float(os.getenv("RETRY_FACTOR", "1.0")),
            jitter=float(os.getenv("RETRY_JITTER", "0.1")),
        )


@dataclass
class ResolverConfig:
    """Remote repository access configuration."""

    timeout: float = 30.0  # seconds

    @classmethod
    def from_env(cls):
        """Load from environment variables."""
        return cls(timeout=float(os.getenv("RESOLVER_TIMEOUT", "30")))


@dataclass
class ReconcilerConfig:
    """Reconciliation loop configuration."""

    poll_interval: float = 10.0  # seconds
    annotation_prefix: str = "ernesto.0x42.in/"
    max_concurrent_workers: int = 0  # 0 = unbounded
    skip_overlapping_ticks: bool = True
    skip_invalid_records: bool = False

    def __post_init__(self):
        if self.poll_interval <= 0:
            raise ValueError("POLL_INTERVAL must be positive")
        if self.max_concurrent_workers < 0:
            raise ValueError("MAX_CONCURRENT_WORKERS must not be negative")

    @classmethod
    def from_env(cls):
        """Load from environment variables."""
        return cls(
            poll_interval=float(os.getenv("POLL_INTERVAL", "10")),
            annotation_prefix=os.getenv("ANNOTATION_PREFIX", "ernesto.0x42.in/"),
            max_concurrent_workers=int(os.getenv("MAX_CONCURRENT_WORKERS", "0")),
            skip_overlapping_ticks=_env_bool("SKIP_OVERLAPPING_TICKS", True),
            skip_invalid_records=_env_bool("SKIP_INVALID_RECORDS", False),
        )


@dataclass
class Config:
    """Main configuration object."""

    store: StoreConfig
    reconciler: ReconcilerConfig
    retry: RetryConfig
    resolver: ResolverConfig
    log_level: str = "INFO"

    @classmethod
    def from_env(cls):
        """Load all configuration from environment variables."""
        return cls(
            store=StoreConfig.from_env(),
            reconciler=ReconcilerConfig.from_env(),
            retry=RetryConfig.from_env(),
            resolver=ResolverConfig.from_env(),
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
        )

    @classmethod
    def default(cls):
        """Return default configuration."""
        return cls(
            store=StoreConfig(),
            reconciler=ReconcilerConfig(),
            retry=RetryConfig(),
            resolver=ResolverConfig(),
        )


# Global config instance
config: Optional[Config] = None


def load_config() -> Config:
    """Load configuration (singleton pattern)."""
    global config
    if config is None:
        config = Config.from_env()
    return config


def get_config() -> Config:
    """Get the current configuration."""
    if config is None:
        return load_config()
    return config


def reset_config() -> None:
    """Reset configuration (mainly for testing)."""
    global config
    config = None
