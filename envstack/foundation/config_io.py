"""Locate and load envstack YAML configuration.

Resolution order:

1. an explicit path argument (one file, no overlay)
2. the `ENVSTACK_CONFIG` environment variable (one file, no overlay)
3. `envstack.yml` at the repo root, with `envstack.local.yml` deep-merged on top
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml

CONFIG_ENV_VAR = "ENVSTACK_CONFIG"
BASE_CONFIG_NAME = "envstack.yml"
LOCAL_OVERLAY_NAME = "envstack.local.yml"
REPO_ROOT_MARKERS = (BASE_CONFIG_NAME, "pyproject.toml", ".git")


@dataclass(frozen=True)
class ConfigSources:
    mode: str
    paths: tuple[str, ...]
    repo_root: str | None = None


def find_repo_root(start: str | os.PathLike[str] | None = None) -> str:
    origin = Path(start or os.getcwd()).resolve()
    if origin.is_file():
        origin = origin.parent

    for candidate in (origin, *origin.parents):
        if any((candidate / marker).exists() for marker in REPO_ROOT_MARKERS):
            return str(candidate)

    raise FileNotFoundError(
        f"Cannot locate repo root: searched from {origin} for {', '.join(REPO_ROOT_MARKERS)}"
    )


def _read_mapping(path: str) -> dict[str, Any]:
    try:
        with open(path, "r", encoding="utf-8") as handle:
            payload = yaml.safe_load(handle)
    except yaml.YAMLError as exc:
        raise ValueError(f"Invalid YAML in {path}: {exc}") from exc

    if payload is None:
        return {}
    if not isinstance(payload, Mapping):
        raise ValueError(f"Config file must contain a YAML mapping: {path}")
    return dict(payload)


def merge_overlay(base: Any, overlay: Any, *, path: str = "") -> Any:
    """Overlay wins for scalars; mappings merge key by key; lists are replaced wholesale."""

    if base is None or overlay is None:
        return overlay

    def _mismatch(kind: str) -> ValueError:
        return ValueError(
            f"Invalid config overlay merge at {path or '<root>'}: "
            f"base is {kind} but overlay is {type(overlay).__name__}"
        )

    if isinstance(base, Mapping):
        if not isinstance(overlay, Mapping):
            raise _mismatch("mapping")
        merged = dict(base)
        for key, value in overlay.items():
            child_path = f"{path}.{key}" if path else str(key)
            merged[key] = merge_overlay(base.get(key), value, path=child_path)
        return merged

    if isinstance(base, (list, tuple)):
        if not isinstance(overlay, (list, tuple)):
            raise _mismatch("list")
        return list(overlay)

    if isinstance(overlay, (Mapping, list, tuple)):
        raise _mismatch(type(base).__name__)
    return overlay


def resolve_config_sources(
    config_path: str | os.PathLike[str] | None = None,
    *,
    env_var: str = CONFIG_ENV_VAR,
    start_dir: str | os.PathLike[str] | None = None,
) -> ConfigSources:
    if config_path is not None and str(config_path).strip():
        return ConfigSources(mode="explicit", paths=(_expand(str(config_path)),))

    from_env = os.environ.get(env_var, "").strip() if env_var else ""
    if from_env:
        return ConfigSources(mode="env", paths=(_expand(from_env),))

    repo_root = find_repo_root(start_dir)
    base_path = os.path.join(repo_root, BASE_CONFIG_NAME)
    if not os.path.exists(base_path):
        raise FileNotFoundError(f"Missing base config file: {base_path}")

    overlay_path = os.path.join(repo_root, LOCAL_OVERLAY_NAME)
    if os.path.exists(overlay_path):
        return ConfigSources(mode="base+local", paths=(base_path, overlay_path), repo_root=repo_root)
    return ConfigSources(mode="base", paths=(base_path,), repo_root=repo_root)


def _expand(raw: str) -> str:
    return os.path.abspath(os.path.expandvars(os.path.expanduser(raw.strip())))


def load_config(
    config_path: str | os.PathLike[str] | None = None,
    *,
    env_var: str = CONFIG_ENV_VAR,
    start_dir: str | os.PathLike[str] | None = None,
) -> tuple[dict[str, Any], dict[str, Any]]:
    """Return (raw_mapping, load_metadata) for the resolved config file(s)."""

    sources = resolve_config_sources(config_path, env_var=env_var, start_dir=start_dir)

    cfg: dict[str, Any] = {}
    for path in sources.paths:
        cfg = merge_overlay(cfg, _read_mapping(path))

    meta = {
        "mode": sources.mode,
        "paths": list(sources.paths),
        "env_var": env_var,
        "repo_root": sources.repo_root,
    }
    return cfg, meta
