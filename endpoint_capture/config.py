"""Configuration for endpoint capture and specification generation.

Every options class can be built from ``None`` (defaults), an instance of
itself, or a plain dict as found in a YAML config file. Unknown dict keys are
ignored so assignment rules can pass extra hints through.
"""

import logging
from collections.abc import Callable
from dataclasses import dataclass, field, fields, replace
from pathlib import Path
from typing import Any, TypeVar

import yaml

from .utils.formatting import DEFAULT_TIMESTAMP_FORMAT
from .utils.redaction import DEFAULT_SENSITIVE_FIELDS, DEFAULT_SENSITIVE_HEADERS

logger = logging.getLogger(__name__)

T = TypeVar("T")


def _from_dict(cls: type[T], data: dict[str, Any]) -> T:
    known = {f.name for f in fields(cls)}  # type: ignore[arg-type]
    return cls(**{key: value for key, value in data.items() if key in known})


@dataclass
class SpecOptions:
    """Options for a single specification document."""

    title: str = "API Collection"
    description: str = "Auto-generated from endpoint capture"
    version: str = "1.0.0"
    base_url: str = "http://localhost:3000"
    contact_name: str | None = None
    contact_email: str | None = None
    contact_url: str | None = None
    license_name: str | None = None
    license_url: str | None = None
    include_examples: bool = True
    include_schemas: bool = True
    group_by_path: bool = True
    auto_save: bool = True
    single_file_mode: bool = True
    detect_changes: bool = True
    output_dir: str = "openapi-specs"
    collection_name: str | None = None

    @classmethod
    def build(cls, options: "SpecOptions | dict | None" = None, **overrides: Any) -> "SpecOptions":
        """Build options from an instance, a dict or defaults, then apply overrides."""
        if options is None:
            base = cls()
        elif isinstance(options, dict):
            base = _from_dict(cls, options)
        else:
            base = options
        known = {f.name for f in fields(cls)}
        return replace(base, **{k: v for k, v in overrides.items() if k in known})


@dataclass
class CollectionRules:
    """Rules deciding which collections receive a captured call."""

    default_collection: str = "Main API"
    version_based: bool = False
    method_based: bool = False
    path_based: bool = False
    status_based: bool = False
    environment_based: bool = False
    environment: str | None = None
    custom: Callable[[Any], Any] | None = None

    @classmethod
    def build(cls, rules: "CollectionRules | dict | None" = None) -> "CollectionRules":
        """Build rules from an instance, a dict or defaults."""
        if rules is None:
            return cls()
        if isinstance(rules, dict):
            return _from_dict(cls, rules)
        return rules


@dataclass
class ManagerOptions:
    """Options for the collection manager."""

    base_dir: str = "./openapi-specs"
    auto_backup: bool = False
    max_backups: int = 5
    single_file_mode: bool = True
    detect_changes: bool = True
    storage: dict[str, Any] | str | None = None
    default_collection_options: dict[str, Any] = field(default_factory=dict)
    collection_rules: CollectionRules = field(default_factory=CollectionRules)

    @classmethod
    def build(cls, options: "ManagerOptions | dict | None" = None) -> "ManagerOptions":
        """Build options from an instance, a dict or defaults."""
        if options is None:
            return cls()
        if isinstance(options, ManagerOptions):
            return options
        built = _from_dict(cls, options)
        built.collection_rules = CollectionRules.build(options.get("collection_rules"))
        built.default_collection_options = dict(options.get("default_collection_options") or {})
        return built

    def spec_options(self, name: str, overrides: dict[str, Any] | None = None) -> SpecOptions:
        """Resolve the SpecOptions for a collection of the given name."""
        data: dict[str, Any] = {
            "single_file_mode": self.single_file_mode,
            "detect_changes": self.detect_changes,
            **self.default_collection_options,
            **(overrides or {}),
        }
        data.setdefault("title", name)
        data["collection_name"] = name
        return SpecOptions.build(data)


@dataclass
class CaptureConfig:
    """Options for capturing request/response data."""

    capture_request_body: bool = True
    capture_response_body: bool = True
    capture_headers: bool = True
    capture_query_params: bool = True
    capture_path_params: bool = True
    capture_cookies: bool = True
    capture_timing: bool = True
    max_body_size: int = 1024 * 1024
    sensitive_headers: list[str] = field(default_factory=lambda: list(DEFAULT_SENSITIVE_HEADERS))
    sensitive_fields: list[str] = field(default_factory=lambda: list(DEFAULT_SENSITIVE_FIELDS))
    timestamp_format: str = DEFAULT_TIMESTAMP_FORMAT
    generate_openapi_spec: bool = True
    openapi: ManagerOptions = field(default_factory=ManagerOptions)

    @classmethod
    def build(cls, config: "CaptureConfig | dict | None" = None) -> "CaptureConfig":
        """Build config from an instance, a dict or defaults."""
        if config is None:
            return cls()
        if isinstance(config, CaptureConfig):
            return config
        built = _from_dict(cls, config)
        built.openapi = ManagerOptions.build(config.get("openapi"))
        return built


DEFAULT_CONFIG: dict[str, Any] = {
    "capture": {
        "max_body_size": 1024 * 1024,
        "sensitive_headers": list(DEFAULT_SENSITIVE_HEADERS),
        "sensitive_fields": list(DEFAULT_SENSITIVE_FIELDS),
    },
    "openapi": {
        "base_dir": "./openapi-specs",
        "single_file_mode": True,
        "detect_changes": True,
        "default_collection_options": {
            "version": "1.0.0",
        },
        "collection_rules": {
            "default_collection": "API Documentation",
        },
    },
}


def load_config(config_path: Path | None = None) -> CaptureConfig:
    """Load capture configuration from a YAML file, falling back to defaults.

    The file has a ``capture`` section (CaptureConfig fields) and an
    ``openapi`` section (ManagerOptions fields). Missing keys are filled in
    from DEFAULT_CONFIG.
    """
    config: dict[str, Any] = {}
    if config_path is not None:
        try:
            with config_path.open() as f:
                config = yaml.safe_load(f) or {}
            logger.info("Loaded capture configuration from %s", config_path)
        except FileNotFoundError:
            logger.warning("Config file not found: %s. Using defaults.", config_path)
        except yaml.YAMLError:
            logger.exception("Error parsing capture configuration")
            config = {}

    for key, value in DEFAULT_CONFIG.items():
        if key not in config or not isinstance(config[key], dict):
            config[key] = dict(value)
        else:
            for subkey, subvalue in value.items():
                config[key].setdefault(subkey, subvalue)

    return CaptureConfig.build({**config["capture"], "openapi": config["openapi"]})
