from __future__ import annotations

from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Any
import hashlib

import yaml

CONFIG_DIR = Path(__file__).resolve().parents[1] / "config"


def compute_reference_hash() -> str:
    """Compute hash of all YAML config files.

    Returns a SHA-256 hash of all YAML config files in the config directory.
    Stored on every snapshot so a summary can be traced back to the
    classifier tables that were active when the snapshot was captured.

    Returns:
        Hexadecimal hash string
    """
    config_files = sorted(CONFIG_DIR.glob("*.yaml"))
    hasher = hashlib.sha256()
    for f in config_files:
        hasher.update(f.read_bytes())
    return hasher.hexdigest()


def _load_yaml(path: Path) -> dict[str, Any]:
    if not path.exists():
        return {}
    with path.open("r", encoding="utf-8") as handle:
        data = yaml.safe_load(handle) or {}
    if not isinstance(data, dict):
        raise ValueError(f"Config file must be a mapping: {path}")
    return data


def _normalize_extension(ext: str) -> str:
    ext = ext.strip().lower()
    if ext and not ext.startswith("."):
        ext = f".{ext}"
    return ext


def _build_type_table(
    entries: dict[str, Any], *, normalize_key=lambda key: key
) -> dict[str, tuple[str, str]]:
    table: dict[str, tuple[str, str]] = {}
    for key, data in entries.items():
        if not isinstance(data, dict):
            raise ValueError(f"File type entry must be a mapping: {key}")
        type_label = str(data.get("type") or "").strip()
        if not type_label:
            raise ValueError(f"File type entry '{key}' has no type")
        display = str(data.get("display") or type_label)
        table[normalize_key(str(key))] = (type_label, display)
    return table


@dataclass(frozen=True)
class Config:
    extension_types: dict[str, tuple[str, str]]
    file_name_types: dict[str, tuple[str, str]]
    mime_display: dict[str, str]
    should_ignore: frozenset[str]
    expand_zip: bool

    @property
    def max_extension_parts(self) -> int:
        """Largest number of dotted parts among configured extensions."""
        if not self.extension_types:
            return 1
        return max(ext.count(".") for ext in self.extension_types)


def _build_config(file_types: dict[str, Any], gather: dict[str, Any]) -> Config:
    return Config(
        extension_types=_build_type_table(
            file_types.get("extensions") or {}, normalize_key=_normalize_extension
        ),
        file_name_types=_build_type_table(file_types.get("file_names") or {}),
        mime_display=dict(file_types.get("mime_display") or {}),
        should_ignore=frozenset(gather.get("should_ignore") or []),
        expand_zip=bool(gather.get("expand_zip", True)),
    )


@lru_cache(maxsize=1)
def get_config() -> Config:
    file_types_config = _load_yaml(CONFIG_DIR / "file_types.yaml")
    gather_config = _load_yaml(CONFIG_DIR / "gather.yaml")
    return _build_config(file_types_config, gather_config)


def get_minimal_config() -> Config:
    return _build_config({}, {})


def load_config(config_dir: Path) -> Config:
    """Load config from a directory other than the packaged one."""
    return _build_config(
        _load_yaml(config_dir / "file_types.yaml"),
        _load_yaml(config_dir / "gather.yaml"),
    )
