"""
Configuration — loads settings from .symboledit.yaml, environment variables,
and built-in defaults (in that priority order: CLI args > env > YAML > defaults).
"""

import logging
import os

import yaml

logger = logging.getLogger(__name__)


_DEFAULTS = {
    "verify_edits": True,
    "attach_doc_comments": True,
    "remove_call_sites": False,
    "normalize_line_endings": True,
    "metrics_enabled": False,
    "metrics_dir": ".symboledit",
    "log_file": "",
    "batch_jobs": 4,
    "languages": {},
}

# Config file search locations
_CONFIG_FILENAMES = [".symboledit.yaml", ".symboledit.yml"]


def _find_config_file(explicit_path: str | None = None) -> str | None:
    """Find the config file. Checks explicit path, CWD, then user home."""
    if explicit_path:
        if os.path.isfile(explicit_path):
            return explicit_path
        logger.warning("[SymbolEdit] Config file not found: %s", explicit_path)
        return None

    # Search CWD first, then home directory
    search_dirs = [os.getcwd(), os.path.expanduser("~")]
    for d in search_dirs:
        for name in _CONFIG_FILENAMES:
            path = os.path.join(d, name)
            if os.path.isfile(path):
                return path
    return None


def _load_yaml(path: str) -> dict:
    """Load YAML file, returns empty dict on failure."""
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except (OSError, yaml.YAMLError) as exc:
        logger.warning("[SymbolEdit] Ignoring unreadable config %s: %s", path, exc)
        return {}
    return data if isinstance(data, dict) else {}


class Config:
    """Editor configuration.

    Settings are resolved in priority order:
    1. CLI arguments (handled by caller)
    2. Environment variables
    3. .symboledit.yaml config file
    4. Built-in defaults
    """

    def __init__(self, yaml_data: dict | None = None):
        yd = yaml_data or {}

        # Helper: env var > yaml > default
        def _get(env_key: str, yaml_key: str, default, cast=str):
            env_val = os.getenv(env_key)
            if env_val is not None:
                return cast(env_val)
            yaml_val = yd.get(yaml_key)
            if yaml_val is not None:
                return cast(yaml_val)
            return default

        def _get_bool(env_key: str, yaml_key: str, default: bool) -> bool:
            env_val = os.getenv(env_key)
            if env_val is not None:
                return env_val.lower() in ("1", "true", "yes", "on")
            yaml_val = yd.get(yaml_key)
            if yaml_val is not None:
                return bool(yaml_val)
            return default

        # Pipeline behaviour
        self.VERIFY_EDITS = _get_bool("SYMBOLEDIT_VERIFY", "verify_edits",
                                      _DEFAULTS["verify_edits"])
        self.ATTACH_DOC_COMMENTS = _get_bool("SYMBOLEDIT_ATTACH_DOCS",
                                             "attach_doc_comments",
                                             _DEFAULTS["attach_doc_comments"])
        self.REMOVE_CALL_SITES = _get_bool("SYMBOLEDIT_REMOVE_CALL_SITES",
                                           "remove_call_sites",
                                           _DEFAULTS["remove_call_sites"])
        self.NORMALIZE_LINE_ENDINGS = _get_bool("SYMBOLEDIT_NORMALIZE_EOL",
                                                "normalize_line_endings",
                                                _DEFAULTS["normalize_line_endings"])

        # Metrics
        self.METRICS_ENABLED = _get_bool("SYMBOLEDIT_METRICS", "metrics_enabled",
                                         _DEFAULTS["metrics_enabled"])
        self.METRICS_DIR = _get("SYMBOLEDIT_METRICS_DIR", "metrics_dir",
                                _DEFAULTS["metrics_dir"])

        # Logging
        self.LOG_FILE = _get("SYMBOLEDIT_LOG_FILE", "log_file",
                             _DEFAULTS["log_file"])

        # Batch command parallelism
        self.BATCH_JOBS = _get("SYMBOLEDIT_BATCH_JOBS", "batch_jobs",
                               _DEFAULTS["batch_jobs"], cast=int)

        # Extension → language overrides
        self.LANGUAGE_OVERRIDES: dict[str, str] = {}
        languages_section = yd.get("languages", _DEFAULTS["languages"])
        if isinstance(languages_section, dict):
            for ext, lang in languages_section.items():
                self.LANGUAGE_OVERRIDES[str(ext)] = str(lang)

    @classmethod
    def load(cls, config_path: str | None = None) -> "Config":
        """Load config from YAML file (if found) + env vars + defaults."""
        path = _find_config_file(config_path)
        yaml_data = _load_yaml(path) if path else {}
        return cls(yaml_data)
