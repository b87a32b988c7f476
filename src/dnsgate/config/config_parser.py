"""Configuration parsing for dnsgate.

Brief:
  Reads the YAML config file and validates it into typed pydantic models.
  Every key is optional; a missing config file section falls back to the
  defaults below, and running without any config file at all is supported.

Inputs:
  - YAML config paths or already-parsed mappings

Outputs:
  - DnsgateConfig instances
"""

from __future__ import annotations

from typing import Any, Dict, Optional

import yaml
from pydantic import BaseModel, Field, ValidationError

from ..servers.transports.doh_json import DEFAULT_RESOLVER_URL


class ConfigError(ValueError):
    """Brief: The configuration file could not be read or is invalid."""

    pass


class ListenConfig(BaseModel):
    """Brief: UDP listener address.

    Inputs:
      - host: listen address (default 0.0.0.0).
      - port: listen port (default 5353; 0 picks a free port).
    """

    host: str = "0.0.0.0"
    port: int = Field(default=5353, ge=0, le=65535)

    class Config:
        extra = "forbid"


class UpstreamConfig(BaseModel):
    """Brief: External JSON resolver used for whitelisted names.

    Inputs:
      - url: resolver endpoint (default https://dns.google.com/resolve).
      - timeout_ms: per-request timeout in milliseconds.
      - verify: verify TLS certificates.
      - headers: extra HTTP headers sent with every request.
    """

    url: str = DEFAULT_RESOLVER_URL
    timeout_ms: int = Field(default=2000, gt=0)
    verify: bool = True
    headers: Dict[str, str] = Field(default_factory=dict)

    class Config:
        extra = "forbid"


class DnsgateConfig(BaseModel):
    """Brief: Top-level dnsgate configuration.

    Inputs:
      - listen: ListenConfig mapping.
      - records_file: local records file loaded once at startup.
      - whitelist_file: whitelist re-read on every local miss.
      - denied_log: de-duplicated log of denied names.
      - answer_ttl: TTL on every answer record.
      - upstream: UpstreamConfig mapping.
      - logging: mapping passed to dnsgate.config.logging_config.init_logging.

    Outputs:
      - DnsgateConfig instance with defaults filled in.

    Example:
      >>> DnsgateConfig().listen.port
      5353
    """

    listen: ListenConfig = Field(default_factory=ListenConfig)
    records_file: str = "dns_records.txt"
    whitelist_file: str = "whitelist.txt"
    denied_log: str = "denied.log"
    answer_ttl: int = Field(default=3600, ge=0)
    upstream: UpstreamConfig = Field(default_factory=UpstreamConfig)
    logging: Dict[str, Any] = Field(default_factory=dict)

    class Config:
        extra = "forbid"


def _drop_null_sections(raw: Dict[str, Any]) -> Dict[str, Any]:
    """Brief: Treat keys present with an empty YAML value as omitted.

    Inputs:
      - raw: parsed YAML mapping.

    Outputs:
      - dict: copy without None-valued keys, e.g. 'listen:' with no body.
    """
    return {k: v for k, v in raw.items() if v is not None}


def build_config(raw: Optional[Dict[str, Any]]) -> DnsgateConfig:
    """
    Brief: Validate a parsed config mapping.

    Inputs:
      - raw: mapping loaded from YAML (None means all defaults).

    Outputs:
      - DnsgateConfig

    Raises ConfigError when raw is not a mapping or fails validation.
    """
    if raw is None:
        raw = {}
    if not isinstance(raw, dict):
        raise ConfigError("config root must be a mapping")
    try:
        return DnsgateConfig(**_drop_null_sections(raw))
    except ValidationError as exc:
        raise ConfigError(f"Invalid configuration: {exc}") from exc


def parse_config_file(config_path: Optional[str]) -> DnsgateConfig:
    """
    Brief: Read and validate a YAML config file.

    Inputs:
      - config_path: path to the YAML file, or None for the built-in defaults.

    Outputs:
      - DnsgateConfig

    Raises ConfigError on unreadable files, YAML syntax errors, or invalid
    values.

    Example:
      >>> parse_config_file(None).records_file
      'dns_records.txt'
    """
    if config_path is None:
        return build_config({})
    try:
        with open(config_path, "r", encoding="utf-8") as f:
            raw = yaml.safe_load(f)
    except OSError as exc:
        raise ConfigError(f"Cannot read config {config_path}: {exc}") from exc
    except yaml.YAMLError as exc:
        raise ConfigError(f"Cannot parse config {config_path}: {exc}") from exc
    return build_config(raw)
