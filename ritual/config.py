"""
Configuration management for Ritual.

All configuration is done via environment variables - no config files inside containers.
This module provides typed configuration classes with validation.

Invariants:
    - All settings have sensible defaults for local development
    - Production deployments MUST set JWT_SECRET explicitly
    - Secrets are never logged or exposed in error messages

How to change safely:
    - Add new settings with defaults that maintain backward compatibility
    - Keep the signing secret out of log_config()
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from enum import Enum

logger = logging.getLogger(__name__)

DEV_JWT_SECRET = "a-secure-secret-for-dev"


class KvBackend(Enum):
    """Supported key-value store backends."""

    MEMORY = "memory"
    SQLITE = "sqlite"


@dataclass(frozen=True)
class AuthConfig:
    """Token and password hashing configuration.

    Attributes:
        jwt_secret: Process-wide HMAC secret used to sign bearer tokens
        jwt_algorithm: JWS algorithm for signing
        token_ttl_days: Lifetime of an issued token
        password_schemes: passlib scheme names, first one hashes new passwords
    """

    jwt_secret: str = DEV_JWT_SECRET
    jwt_algorithm: str = "HS256"
    token_ttl_days: int = 7
    password_schemes: tuple[str, ...] = ("pbkdf2_sha256",)

    @classmethod
    def from_env(cls) -> AuthConfig:
        """Load configuration from environment variables."""
        schemes = os.getenv("PASSWORD_SCHEMES", "pbkdf2_sha256")
        return cls(
            jwt_secret=os.getenv("JWT_SECRET", DEV_JWT_SECRET),
            jwt_algorithm=os.getenv("JWT_ALGORITHM", "HS256"),
            token_ttl_days=int(os.getenv("TOKEN_TTL_DAYS", "7")),
            password_schemes=tuple(s.strip() for s in schemes.split(",") if s.strip()),
        )


@dataclass(frozen=True)
class StoreConfig:
    """Key-value store configuration.

    Attributes:
        backend: Which KV backend to use
        data_dir: Directory for the SQLite database file
        db_file: SQLite database file name inside data_dir
        wal_mode: SQLite WAL mode enabled
        busy_timeout_ms: SQLite busy timeout in milliseconds
    """

    backend: KvBackend = KvBackend.MEMORY
    data_dir: str = "./data"
    db_file: str = "ritual.db"
    wal_mode: bool = True
    busy_timeout_ms: int = 5000

    @classmethod
    def from_env(cls) -> StoreConfig:
        """Load configuration from environment variables.

        Raises:
            ValueError: If KV_BACKEND names an unknown backend.
        """
        backend_str = os.getenv("KV_BACKEND", "memory").lower()
        try:
            backend = KvBackend(backend_str)
        except ValueError:
            raise ValueError(f"Invalid KV_BACKEND '{backend_str}'. Must be one of: memory, sqlite")

        return cls(
            backend=backend,
            data_dir=os.getenv("DATA_DIR", "./data"),
            db_file=os.getenv("KV_DB_FILE", "ritual.db"),
            wal_mode=os.getenv("SQLITE_WAL_MODE", "true").lower() == "true",
            busy_timeout_ms=int(os.getenv("SQLITE_BUSY_TIMEOUT_MS", "5000")),
        )


@dataclass(frozen=True)
class ObservabilityConfig:
    """Logging configuration.

    Attributes:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
        log_format: Log format (json, text)
    """

    log_level: str = "INFO"
    log_format: str = "json"

    @classmethod
    def from_env(cls) -> ObservabilityConfig:
        """Load configuration from environment variables."""
        return cls(
            log_level=os.getenv("LOG_LEVEL", "INFO"),
            log_format=os.getenv("LOG_FORMAT", "json"),
        )


@dataclass
class ServerConfig:
    """Complete server configuration.

    HTTP bind settings live in ritual.api.config, next to the FastAPI app.

    Attributes:
        auth: Token and password configuration
        store: Key-value store configuration
        observability: Logging configuration
    """

    auth: AuthConfig = field(default_factory=AuthConfig)
    store: StoreConfig = field(default_factory=StoreConfig)
    observability: ObservabilityConfig = field(default_factory=ObservabilityConfig)

    @classmethod
    def from_env(cls) -> ServerConfig:
        """Load complete configuration from environment variables.

        Returns:
            ServerConfig with all sections populated from environment.

        Raises:
            ValueError: If required configuration is missing or invalid.
        """
        config = cls(
            auth=AuthConfig.from_env(),
            store=StoreConfig.from_env(),
            observability=ObservabilityConfig.from_env(),
        )

        config.validate()
        return config

    def validate(self) -> None:
        """Validate configuration consistency.

        Raises:
            ValueError: If configuration is invalid.
        """
        if not self.auth.jwt_secret:
            raise ValueError("JWT_SECRET must not be empty")
        if self.auth.token_ttl_days <= 0:
            raise ValueError("TOKEN_TTL_DAYS must be positive")
        if not self.auth.password_schemes:
            raise ValueError("PASSWORD_SCHEMES must name at least one passlib scheme")

        if self.auth.jwt_secret == DEV_JWT_SECRET:
            logger.warning("JWT_SECRET is not set; using the development secret")

        if self.store.backend == KvBackend.SQLITE:
            if not self.store.db_file:
                raise ValueError("KV_DB_FILE is required when KV_BACKEND=sqlite")
            if not os.path.exists(self.store.data_dir):
                logger.warning(
                    f"Data directory does not exist: {self.store.data_dir}. "
                    "It will be created on first write."
                )

    def log_config(self) -> None:
        """Log configuration (redacting secrets)."""
        logger.info(
            "Server configuration loaded",
            extra={
                "kv_backend": self.store.backend.value,
                "data_dir": self.store.data_dir
                if self.store.backend == KvBackend.SQLITE
                else None,
                "jwt_algorithm": self.auth.jwt_algorithm,
                "token_ttl_days": self.auth.token_ttl_days,
                "password_schemes": list(self.auth.password_schemes),
                "log_level": self.observability.log_level,
            },
        )
