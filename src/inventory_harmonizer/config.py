"""
Configuration management for inventory-harmonizer.

Loads settings from environment variables or a YAML file.
Validates all settings and provides typed access.
"""

import os
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from ._types import SOURCE_ORDER, SourceId
from .exceptions import ConfigError
from .policy import CompliancePolicy


class SourceApiConfig(BaseModel):
    """Connection settings for one source tool's API."""

    base_url: Optional[str] = Field(default=None, description="API base URL")
    api_token: Optional[str] = Field(default=None, description="Bearer token / API key")

    @field_validator('base_url')
    @classmethod
    def validate_base_url(cls, v):
        if v and not v.startswith(('http://', 'https://')):
            raise ValueError('base_url must start with http:// or https://')
        return v.rstrip('/') if v else None

    @property
    def is_configured(self) -> bool:
        return bool(self.base_url and self.api_token)

    model_config = ConfigDict(extra='forbid')


class HarmonizerConfig(BaseModel):
    """Inventory harmonizer configuration."""

    # ========================================================================
    # Storage
    # ========================================================================

    state_dir: Path = Field(
        default=Path('/var/lib/inventory-harmonizer'),
        description="State directory for the reconciliation database"
    )
    sync_log_retention: int = Field(
        default=100,
        ge=1,
        description="Number of sync log entries to keep"
    )

    # ========================================================================
    # Sources
    # ========================================================================

    request_timeout: int = Field(
        default=30,
        ge=5,
        le=300,
        description="Per-request timeout for source APIs (seconds)"
    )
    sources: Dict[SourceId, SourceApiConfig] = Field(
        default_factory=dict,
        description="API settings per source"
    )

    # ========================================================================
    # Policy
    # ========================================================================

    policy_rules: Optional[List[Dict[str, Any]]] = Field(
        default=None,
        description="Workstation policy table; built-in rules when unset"
    )

    # ========================================================================
    # Logging
    # ========================================================================

    log_level: str = Field(
        default="INFO",
        description="Log level"
    )

    # ========================================================================
    # Validators
    # ========================================================================

    @field_validator('log_level')
    @classmethod
    def validate_log_level(cls, v):
        v = v.upper()
        if v not in ['DEBUG', 'INFO', 'WARNING', 'ERROR']:
            raise ValueError('log_level must be DEBUG, INFO, WARNING, or ERROR')
        return v

    @field_validator('policy_rules')
    @classmethod
    def validate_policy_rules(cls, v):
        if v is not None:
            try:
                CompliancePolicy.from_dicts(v)
            except ConfigError as e:
                raise ValueError(str(e)) from e
        return v

    # ========================================================================
    # Parsed Properties
    # ========================================================================

    @property
    def db_path(self) -> Path:
        """SQLite database path."""
        return self.state_dir / 'harmonizer.db'

    def source(self, source: SourceId) -> SourceApiConfig:
        return self.sources.get(source) or SourceApiConfig()

    model_config = ConfigDict(
        validate_assignment=True,
        extra='forbid'
    )


def _env_prefix(source: SourceId) -> str:
    return source.value.upper().replace('-', '_')


def _build(data: Mapping[str, Any], origin: str) -> HarmonizerConfig:
    try:
        return HarmonizerConfig(**data)
    except ValidationError as e:
        raise ConfigError(f"Invalid configuration from {origin}: {e}") from e


def load_config(environ: Optional[Mapping[str, str]] = None) -> HarmonizerConfig:
    """
    Load configuration from environment variables.

    Per-source API settings come from <SOURCE>_BASE_URL and
    <SOURCE>_API_TOKEN, e.g. XDR_BASE_URL, ZERO_TRUST_NETWORK_API_TOKEN.

    Returns:
        HarmonizerConfig: Validated configuration

    Raises:
        ConfigError: If settings are invalid
    """
    env = os.environ if environ is None else environ

    sources = {}
    for source in SOURCE_ORDER:
        prefix = _env_prefix(source)
        base_url = env.get(f'{prefix}_BASE_URL') or None
        api_token = env.get(f'{prefix}_API_TOKEN') or None
        if base_url or api_token:
            sources[source] = {'base_url': base_url, 'api_token': api_token}

    try:
        config_dict = {
            'state_dir': Path(env.get('HARMONIZER_STATE_DIR', '/var/lib/inventory-harmonizer')),
            'sync_log_retention': int(env.get('HARMONIZER_SYNC_LOG_RETENTION', '100')),
            'request_timeout': int(env.get('HARMONIZER_REQUEST_TIMEOUT', '30')),
            'log_level': env.get('HARMONIZER_LOG_LEVEL', 'INFO'),
            'sources': sources,
        }
    except ValueError as e:
        raise ConfigError(f"Invalid numeric setting in environment: {e}") from e

    return _build(config_dict, 'environment')


def load_config_file(path: Path) -> HarmonizerConfig:
    """
    Load configuration from a YAML file.

    Example:
        state_dir: /srv/harmonizer
        request_timeout: 20
        sources:
          xdr:
            base_url: https://api.xdr.example.com
            api_token: secret
        policy_rules:
          - name: workstation
            family: "exa(?![a-z])"
            pattern: "exa-[a-z]{2,8}-\\d{3}"
            required_sources: [vulnerability-mgmt, xdr]
    """
    path = Path(path)
    try:
        with open(path) as f:
            data = yaml.safe_load(f) or {}
    except OSError as e:
        raise ConfigError(f"Cannot read config file {path}: {e}") from e
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}: {e}") from e

    if not isinstance(data, dict):
        raise ConfigError(f"Config file {path} must contain a mapping")

    return _build(data, str(path))


def build_policy(config: HarmonizerConfig) -> CompliancePolicy:
    """Compliance policy for this configuration."""
    if config.policy_rules is None:
        return CompliancePolicy()
    return CompliancePolicy.from_dicts(config.policy_rules)
