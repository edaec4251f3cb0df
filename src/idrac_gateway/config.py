from __future__ import annotations

import os
import secrets
from collections.abc import Mapping
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field, field_validator

from idrac_gateway.errors import ConfigError

DEFAULT_DATABASE_PATH = "./data/idrac.db"
SESSION_MAX_AGE_S = 24 * 60 * 60

_TRUE_VALUES = {"1", "true", "yes", "on"}


class NetworkConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    bind_host: str = Field(default="0.0.0.0")
    port: int = Field(default=8080, ge=1, le=65535)


class DatabaseConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    path: Path = Field(default=Path(DEFAULT_DATABASE_PATH))


class IdracConfig(BaseModel):
    """Management controller endpoint and the Basic auth credentials used on every call."""

    model_config = ConfigDict(frozen=True)

    host: str = Field(min_length=1, description="Base URL, e.g. https://10.0.0.5")
    username: str = Field(min_length=1)
    password: str = Field(min_length=1)
    timeout_s: float = Field(default=30.0, gt=0)
    verify_tls: bool = Field(
        default=False,
        description=(
            "iDRAC ships with a self-signed certificate, so TLS verification is off "
            "unless explicitly enabled for this one destination."
        ),
    )

    @field_validator("host")
    @classmethod
    def _strip_trailing_slash(cls, v: str) -> str:
        return v.strip().rstrip("/")


class SessionConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    secret_key: str = Field(default_factory=lambda: secrets.token_urlsafe(32), repr=False)
    cookie_name: str = Field(default="idrac_session")
    cookie_secure: bool = Field(default=False)
    max_age_s: int = Field(default=SESSION_MAX_AGE_S, ge=1)


class LoggingConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    level: str = Field(default="INFO")
    file: Path | None = Field(default=None, description="Optional rotating log file")
    max_size_mb: int = Field(
        default=10, ge=1, description="Max size of a log file in MB before rolling."
    )
    backup_count: int = Field(default=5, ge=1, description="Number of log archives to keep.")

    @field_validator("level")
    @classmethod
    def _upper_level(cls, v: str) -> str:
        return v.strip().upper() or "INFO"


class GatewayConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    network: NetworkConfig = Field(default_factory=NetworkConfig)
    database: DatabaseConfig = Field(default_factory=DatabaseConfig)
    idrac: IdracConfig
    session: SessionConfig = Field(default_factory=SessionConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)


def _require(env: Mapping[str, str], name: str) -> str:
    raw = (env.get(name) or "").strip()
    if not raw:
        raise ConfigError(f"{name} environment variable not set")
    return raw


def _flag(raw: str | None) -> bool | None:
    if raw is None or not raw.strip():
        return None
    return raw.strip().lower() in _TRUE_VALUES


def load_gateway_config(environ: Mapping[str, str] | None = None) -> GatewayConfig:
    """Build the process configuration from environment variables.

    - IDRAC_HOST, IDRAC_USERNAME and IDRAC_PASSWORD are required.
    - Everything else falls back to defaults.
    - Validation is performed by Pydantic.
    """

    env = os.environ if environ is None else environ

    idrac: dict[str, object] = {
        "host": _require(env, "IDRAC_HOST"),
        "username": _require(env, "IDRAC_USERNAME"),
        "password": _require(env, "IDRAC_PASSWORD"),
    }
    if env.get("IDRAC_TIMEOUT"):
        idrac["timeout_s"] = env["IDRAC_TIMEOUT"]
    verify_tls = _flag(env.get("IDRAC_VERIFY_TLS"))
    if verify_tls is not None:
        idrac["verify_tls"] = verify_tls

    network: dict[str, object] = {}
    if env.get("BIND_HOST"):
        network["bind_host"] = env["BIND_HOST"]
    if env.get("PORT"):
        network["port"] = env["PORT"]

    session: dict[str, object] = {}
    if (env.get("SESSION_SECRET") or "").strip():
        session["secret_key"] = env["SESSION_SECRET"].strip()
    cookie_secure = _flag(env.get("SESSION_COOKIE_SECURE"))
    if cookie_secure is not None:
        session["cookie_secure"] = cookie_secure

    logging_cfg: dict[str, object] = {}
    if env.get("LOG_LEVEL"):
        logging_cfg["level"] = env["LOG_LEVEL"]
    if env.get("LOG_FILE"):
        logging_cfg["file"] = env["LOG_FILE"]

    raw = {
        "network": network,
        "database": {"path": env.get("DATABASE_PATH") or DEFAULT_DATABASE_PATH},
        "idrac": idrac,
        "session": session,
        "logging": logging_cfg,
    }
    return GatewayConfig.model_validate(raw)
