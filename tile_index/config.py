from __future__ import annotations

import copy
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from tile_index.modes import IndexMode, resolve_mode


DEFAULT_CONFIG_PATH = "config/params.yaml"

DEFAULTS: Dict[str, Any] = {
    "index": {"scene_mode": None, "tileset_mode": None},
    "transport": {"timeout_s": 10.0, "user_agent": "tile-index/1.0", "root": None},
    "logging": {"level": "INFO"},
    "server": {"host": "0.0.0.0", "port": 8000},
}


def load_config(path: Optional[str] = None) -> Dict[str, Any]:
    """
    Load YAML settings and merge them over DEFAULTS one section at a time.
    A missing file yields the defaults.
    """
    cfg = copy.deepcopy(DEFAULTS)
    p = Path(path or DEFAULT_CONFIG_PATH)
    if not p.exists():
        return cfg
    with p.open("r") as f:
        loaded = yaml.safe_load(f) or {}
    if not isinstance(loaded, dict):
        raise ValueError(f"{p}: top level must be a mapping")
    for section, values in loaded.items():
        if isinstance(values, dict) and isinstance(cfg.get(section), dict):
            cfg[section].update(values)
        else:
            cfg[section] = values
    return cfg


def transport_kwargs(cfg: Dict[str, Any]) -> Dict[str, Any]:
    """default_fetcher() keyword arguments from the transport section."""
    t = cfg.get("transport", {})
    return {
        "timeout": float(t.get("timeout_s", DEFAULTS["transport"]["timeout_s"])),
        "user_agent": t.get("user_agent"),
        "root": t.get("root"),
    }


def mode_from_config(mode: Any, cfg: Dict[str, Any]) -> IndexMode:
    """Resolve a requested mode (possibly 'default') against the index section."""
    idx = cfg.get("index", {})
    return resolve_mode(mode, scene_mode=idx.get("scene_mode"), tileset_mode=idx.get("tileset_mode"))
