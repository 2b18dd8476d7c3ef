import copy
import os
from pathlib import Path

import yaml

from .errors import ProfileNotFound
from .log import log_debug, log_warn

PACKAGE_DIR = Path(__file__).resolve().parent
PROFILES_DIR = PACKAGE_DIR / "profiles"

DEFAULT_CONFIG = {
    "export": {
        "scope": "all",
        "markdown_style": "legacy",
        "include_thoughts": True,
        "format": "md",
    },
    "labels": {"user": "User", "model": "Gemini", "thoughts": "Thought Process"},
    "html": {"lang": "ja", "title": "Gemini Export"},
    "output": {
        "enabled": True,
        "dir": "outputs/gemini_exports",
        "filename": "gemini_{scope}_{time}.{ext}",
    },
    "clip": {"enabled": True},
    "time_format": "%Y%m%d_%H%M%S",
}

# JS-style date tokens accepted in config files
_TOKEN_MAP = {
    "yyyy": "%Y", "MM": "%m", "dd": "%d",
    "HH": "%H", "mm": "%M", "ss": "%S",
}


def get_config_paths(cwd: Path = None) -> dict:
    """Candidate locations for the user's config.yaml, plus the shipped defaults."""
    base_dir = cwd or Path.cwd()
    appdata = os.environ.get("APPDATA")
    appdata_path = Path(appdata) / "gemini-chat-export" / "config.yaml" if appdata else None
    return {
        "local": base_dir / "config.yaml",
        "appdata": appdata_path,
        "default": PACKAGE_DIR / "config.default.yaml",
    }


def deep_merge(target: dict, source: dict) -> dict:
    for k, v in source.items():
        if k in target and isinstance(target[k], dict) and isinstance(v, dict):
            deep_merge(target[k], v)
        else:
            target[k] = v
    return target


def _normalize(d):
    if isinstance(d, dict):
        return {k: _normalize(v) for k, v in d.items()}
    if isinstance(d, list):
        return [_normalize(i) for i in d]
    if isinstance(d, str) and d.lower() in ("true", "false"):
        return d.lower() == "true"
    return d


def load_yaml_file(path: Path) -> dict:
    if not path or not path.exists():
        return {}
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except (OSError, yaml.YAMLError) as e:
        log_warn(f"Failed to load {path.name}: {e}")
        return {}
    if not isinstance(data, dict):
        log_warn(f"Ignoring {path.name}: top level is not a mapping")
        return {}
    return _normalize(data)


def translate_time_format(fmt: str) -> str:
    for js_tok, py_tok in _TOKEN_MAP.items():
        fmt = fmt.replace(js_tok, py_tok)
    return fmt


def load_config(paths: dict = None) -> dict:
    """Load defaults, then the shipped config.default.yaml, then the user's config.yaml."""
    paths = paths or get_config_paths()
    config = copy.deepcopy(DEFAULT_CONFIG)
    deep_merge(config, load_yaml_file(paths["default"]))

    # Priority: Local > AppData
    if paths["local"].exists():
        log_debug(f"Using config {paths['local']}")
        deep_merge(config, load_yaml_file(paths["local"]))
    elif paths["appdata"] and paths["appdata"].exists():
        log_debug(f"Using config {paths['appdata']}")
        deep_merge(config, load_yaml_file(paths["appdata"]))

    config["time_format"] = translate_time_format(str(config["time_format"]))
    return config


def load_profile(name: str = "gemini", profiles_dir: Path = PROFILES_DIR) -> dict:
    """Load a page profile (selectors for one chat site) from profiles/<name>.yaml."""
    path = profiles_dir / f"{name}.yaml"
    if not path.exists():
        raise ProfileNotFound(f"No page profile named {name!r} in {profiles_dir}")
    profile = load_yaml_file(path)
    if not profile.get("selectors"):
        raise ProfileNotFound(f"Profile {path.name} defines no selectors")
    return profile
