"""Prepper-backed configuration loader for lingoscan."""

from __future__ import annotations

import os
from functools import lru_cache
from pathlib import Path
from typing import Any, Literal, Mapping, Sequence

from dotenv import dotenv_values
from prepper import (
    Field,
    IoError,
    SchemaError,
    SchemaModel,
    ValidationError,
    model_validator,
)
from prepper.config import ConfigInstance
from prepper.loaders import _parse_file, _path_to_source, discover_file_paths
from prepper.merge import merge_layer
from prepper.provenance import ProvenanceRecorder

from .errors import ConfigurationError
from .sources import split_source_list
from .structures import DEFAULT_ATTRIBUTES, ScanOptions

APP_NAME = "Lingoscan"


class LingoscanConfig(SchemaModel):
    """Schema describing all supported configuration options."""

    LINGOSCAN_MODE: Literal["translate", "extract"] = Field(
        default="translate",
        description="Engine mode: translate pages in place or extract a catalog.",
    )
    LINGOSCAN_ENABLED: bool = Field(
        default=True,
        description="Persisted on/off switch for translation mode.",
    )
    LINGOSCAN_DICTIONARY_SOURCES: str = Field(
        default="",
        description="Comma- or newline-separated dictionary URLs or paths, tried in order.",
    )
    LINGOSCAN_ATTRIBUTES: str = Field(
        default=",".join(DEFAULT_ATTRIBUTES),
        description="Attributes eligible for translation and extraction.",
    )
    LINGOSCAN_MIN_LENGTH: int = Field(default=2)
    LINGOSCAN_MAX_LENGTH: int = Field(default=800)
    LINGOSCAN_MAX_NODES: int = Field(default=250_000)
    LINGOSCAN_MAX_DEPTH: int = Field(default=12)
    LINGOSCAN_INCLUDE_HIDDEN: bool = Field(default=True)
    LINGOSCAN_SUBSTRING_MIN_LENGTH: int = Field(default=6)
    LINGOSCAN_FETCH_TIMEOUT: float = Field(default=10.0)
    LINGOSCAN_DEBUG: bool = Field(default=False)

    @model_validator(mode="before")
    def _normalise_mode(data: Any) -> Any:
        if isinstance(data, dict):
            raw_value = data.get("LINGOSCAN_MODE")
            if isinstance(raw_value, str):
                normalized = raw_value.strip().lower()
                synonyms = {
                    "translation": "translate",
                    "extraction": "extract",
                    "extractor": "extract",
                }
                normalized = synonyms.get(normalized, normalized)
                if normalized not in {"translate", "extract"}:
                    normalized = "translate"
                data["LINGOSCAN_MODE"] = normalized
        return data


@lru_cache(maxsize=1)
def _load_config_instance(app_dir: Path | None = None) -> ConfigInstance:
    """Load configuration layers once and cache the immutable instance."""

    base_dir = app_dir or Path.cwd()
    try:
        provenance = ProvenanceRecorder()
        combined = _load_discovered_yaml(app_dir=base_dir, provenance=provenance)
        _merge_env_sources(
            combined,
            provenance=provenance,
            app_dir=base_dir,
            schema=LingoscanConfig,
        )

        model = LingoscanConfig.validate(combined, provenance=provenance)
        _validate_scan_settings(model)

        return ConfigInstance(
            model=model,
            provenance=provenance,
            env_prefix=None,
            schema_cls=LingoscanConfig,
        )
    except IoError as exc:
        raise ConfigurationError(
            f"Configuration files could not be read: {exc}"
        ) from exc
    except SchemaError as exc:
        raise ConfigurationError(f"Configuration schema error: {exc}") from exc
    except ValidationError as exc:
        issues = _format_validation_errors(exc.to_dict())
        raise ConfigurationError(issues) from exc


def _load_discovered_yaml(
    *,
    app_dir: Path,
    provenance: ProvenanceRecorder,
) -> dict[str, Any]:
    """Load YAML configuration files using Prepper's discovery rules."""

    result: dict[str, Any] = {}
    discovered = discover_file_paths(
        APP_NAME,
        "yaml",
        app_dir=app_dir,
        extra_paths=None,
    )
    for path, label in discovered:
        parsed = _parse_file(path, "yaml")
        if not isinstance(parsed, Mapping):
            raise IoError(
                f"Invalid configuration file {path}: expected a mapping at the root."
            )
        source = _path_to_source(label, "yaml", path)
        merge_layer(result, parsed, provenance=provenance, source=source, layer="file")
    return result


def _merge_env_sources(
    target: dict[str, Any],
    *,
    provenance: ProvenanceRecorder,
    app_dir: Path,
    schema: type[SchemaModel],
) -> None:
    """Merge .env and process environment variables into the target mapping."""

    allowed = set(schema.__field_infos__.keys())

    def merge_values(values: Mapping[str, str], *, source_prefix: str) -> None:
        for key, value in sorted(values.items()):
            if value is None:
                continue
            if key not in allowed:
                continue
            merge_layer(
                target,
                {key: value},
                provenance=provenance,
                source=f"env:{source_prefix}:{key}",
                layer="env",
            )

    dotenv_path = app_dir / ".env"
    if dotenv_path.exists():
        dotenv_content = dotenv_values(dotenv_path)
        merge_values(
            {k: v for k, v in dotenv_content.items() if v is not None},
            source_prefix=".env",
        )

    merge_values(
        {k: v for k, v in os.environ.items() if isinstance(v, str)},
        source_prefix="process",
    )


def _validate_scan_settings(settings: LingoscanConfig) -> None:
    errors: list[str] = []

    if settings.LINGOSCAN_MIN_LENGTH < 1:
        errors.append("LINGOSCAN_MIN_LENGTH must be at least 1.")
    if settings.LINGOSCAN_MAX_LENGTH < settings.LINGOSCAN_MIN_LENGTH:
        errors.append("LINGOSCAN_MAX_LENGTH must not be smaller than LINGOSCAN_MIN_LENGTH.")
    for name in ("LINGOSCAN_MAX_NODES", "LINGOSCAN_SUBSTRING_MIN_LENGTH"):
        if getattr(settings, name) < 1:
            errors.append(f"{name} must be a positive number.")
    if settings.LINGOSCAN_MAX_DEPTH < 0:
        errors.append("LINGOSCAN_MAX_DEPTH must not be negative.")
    if settings.LINGOSCAN_FETCH_TIMEOUT <= 0:
        errors.append("LINGOSCAN_FETCH_TIMEOUT must be greater than zero.")
    if not split_source_list(settings.LINGOSCAN_ATTRIBUTES):
        errors.append("LINGOSCAN_ATTRIBUTES must name at least one attribute.")

    if errors:
        bullet_list = "\n".join(f"- {message}" for message in errors)
        raise ConfigurationError(
            "Configuration validation errors detected:\n" + bullet_list
        )


def _format_validation_errors(entries: Sequence[dict[str, Any]]) -> str:
    details: list[str] = []
    for entry in entries:
        path = entry.get("path") or []
        if isinstance(path, (list, tuple)):
            location = ".".join(str(part) for part in path if part not in {None, ""})
        else:
            location = str(path)
        message = str(entry.get("message") or entry.get("msg") or "Invalid value")
        source = entry.get("source")
        origin = f" (source: {source})" if source else ""
        prefix = f"{location}: " if location else ""
        details.append(f"- {prefix}{message}{origin}")
    return "Configuration validation errors detected:\n" + "\n".join(details)


def get_config(app_dir: Path | None = None) -> ConfigInstance:
    """Return the immutable configuration instance."""

    return _load_config_instance(app_dir=app_dir)


def get_settings(app_dir: Path | None = None) -> LingoscanConfig:
    """Return the validated schema model for typed access."""

    return get_config(app_dir=app_dir).model()


def options_from_settings(settings: Any) -> ScanOptions:
    """Translate validated settings into engine scan options."""

    attributes = tuple(
        name.lower() for name in split_source_list(settings.LINGOSCAN_ATTRIBUTES)
    )
    return ScanOptions(
        attributes=attributes,
        min_length=int(settings.LINGOSCAN_MIN_LENGTH),
        max_length=int(settings.LINGOSCAN_MAX_LENGTH),
        include_hidden=bool(settings.LINGOSCAN_INCLUDE_HIDDEN),
        max_nodes=int(settings.LINGOSCAN_MAX_NODES),
        max_depth=int(settings.LINGOSCAN_MAX_DEPTH),
        substring_min_length=int(settings.LINGOSCAN_SUBSTRING_MIN_LENGTH),
    )


def dictionary_sources_from_settings(settings: Any) -> list[str]:
    return split_source_list(settings.LINGOSCAN_DICTIONARY_SOURCES)
