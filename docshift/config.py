"""Configuration loader for the conversion engine, CLI and server."""

import os
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

import yaml

from .errors import IOFailure, MalformedInput

CONFIG_ENV_VAR = "DOCSHIFT_CONFIG"


@dataclass
class ImageConfig:
    directory: Optional[str] = None  # loader/sink root; defaults to the file's directory
    embed_in_html: bool = False  # write HTML images as data: URIs instead of through the sink
    fetch_remote: bool = False  # resolve http(s) image references with requests
    timeout: int = 30


@dataclass
class ServerConfig:
    host: str = "127.0.0.1"
    port: int = 8080
    max_upload_mb: int = 32


@dataclass
class LoggingConfig:
    level: str = "WARNING"
    format: str = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


@dataclass
class Config:
    images: ImageConfig = field(default_factory=ImageConfig)
    server: ServerConfig = field(default_factory=ServerConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)


def _merge_defaults(data: Dict[str, Any], defaults: Dict[str, Any]) -> Dict[str, Any]:
    merged = defaults.copy()
    merged.update({k: v for k, v in data.items() if v is not None and k in defaults})
    return merged


def load_config(path: Optional[str] = None) -> Config:
    """
    Load YAML config into a typed Config.

    With no path, the DOCSHIFT_CONFIG environment variable is consulted;
    if that is unset too, defaults are returned.
    """
    path = path or os.environ.get(CONFIG_ENV_VAR)
    if not path:
        return Config()

    try:
        with open(path, "r", encoding="utf-8") as f:
            raw = yaml.safe_load(f) or {}
    except FileNotFoundError as exc:
        raise IOFailure(f"Config file not found: {path}") from exc
    except OSError as exc:
        raise IOFailure(f"Failed to read config {path}: {exc}") from exc
    except yaml.YAMLError as exc:
        raise MalformedInput(f"Invalid YAML in {path}: {exc}") from exc

    if not isinstance(raw, dict):
        raise MalformedInput(f"Config {path} must be a mapping, got {type(raw).__name__}")

    image_defaults = {"directory": None, "embed_in_html": False, "fetch_remote": False, "timeout": 30}
    server_defaults = {"host": "127.0.0.1", "port": 8080, "max_upload_mb": 32}
    logging_defaults = {"level": "WARNING", "format": LoggingConfig.format}

    image_cfg = ImageConfig(**_merge_defaults(raw.get("images") or {}, image_defaults))
    server_cfg = ServerConfig(**_merge_defaults(raw.get("server") or {}, server_defaults))
    logging_cfg = LoggingConfig(**_merge_defaults(raw.get("logging") or {}, logging_defaults))

    return Config(images=image_cfg, server=server_cfg, logging=logging_cfg)
