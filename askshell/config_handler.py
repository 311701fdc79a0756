# --- API DOCUMENTATION for askshell/config_handler.py ---
#
# **Purpose:** Loads the layered JSONC configuration (packaged defaults plus
# the user's overrides), exposes the fixed set of user-settable keys and
# builds the immutable AppSettings snapshot handed to the pipeline.
#
# **Public Functions:**
#
# def load_jsonc_file(filepath: str) -> Optional[Dict[str, Any]]
# def save_json_file(filepath: str, data: Dict[str, Any]) -> bool
# def merge_configs(base: dict, override: dict) -> dict
# def get_config_dir() -> str
#
# **Public Classes:**
#
# class ConfigStore:
#     get(key) -> str, set(key, value), describe(), get_path(dotted, default)
#
# class AppSettings:
#     Frozen snapshot of everything the pipeline reads; built with
#     AppSettings.from_store(store).
#
# **Key Global Constants/Variables:**
# - SETTABLE_KEYS: user-facing key name -> dotted path inside the config dict.
#
# --- END API DOCUMENTATION ---

# askshell/config_handler.py

import os
import sys
import json
import re
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple

from askshell.risk_classifier import RiskRule, SafetyLevel, build_rule_table

# --- Module-specific logger ---
logger = logging.getLogger(__name__)

PACKAGE_DIR = os.path.dirname(os.path.abspath(__file__))
DEFAULT_CONFIG_PATH = os.path.join(PACKAGE_DIR, "config", "default_config.json")
USER_CONFIG_FILENAME = "user_config.json"
CONFIG_DIR_ENV_VAR = "ASKSHELL_CONFIG_DIR"

SETTABLE_KEYS = {
    "DEFAULT_MODEL": "ollama.model",
    "OLLAMA_API_URL": "ollama.host",
    "TEMPERATURE": "ollama.temperature",
    "SAFETY_LEVEL": "safety.safety_level",
    "AUTO_CONFIRM": "safety.auto_confirm",
    "HISTORY_ENABLED": "history.enabled",
    "MAX_HISTORY": "history.max_entries",
    "VERBOSE": "ui.verbose",
}

_BOOLEAN_KEYS = {"AUTO_CONFIRM", "HISTORY_ENABLED", "VERBOSE"}
_GENERATE_ENDPOINT_SUFFIX = "/api/generate"


class UnknownConfigKeyError(KeyError):
    """Raised when a key outside SETTABLE_KEYS is read or written."""

    def __init__(self, key: str):
        super().__init__(key)
        self.key = key

    def __str__(self):
        valid = ", ".join(SETTABLE_KEYS)
        return f"Unknown configuration key '{self.key}'. Valid keys: {valid}"


class InvalidConfigValueError(ValueError):
    """Raised when a settable key is given a value it cannot hold."""


def load_jsonc_file(filepath: str) -> Optional[Dict[str, Any]]:
    """
    Loads a JSON file that may contain single-line (//) and multi-line (/* */) comments.

    Args:
        filepath (str): The full path to the .jsonc or .json file.

    Returns:
        Optional[Dict[str, Any]]: A dictionary with the file's contents,
                                  or None if the file is not found or cannot be parsed.
    """
    if not os.path.exists(filepath):
        logger.info(f"Configuration file not found at: {filepath}")
        return None

    try:
        with open(filepath, 'r', encoding='utf-8') as f:
            file_content = f.read()

        # Strings are matched first so that "http://..." values survive comment stripping.
        comment_pattern = re.compile(r'("(?:\\.|[^"\\])*")|//.*?$|/\*.*?\*/', re.DOTALL | re.MULTILINE)
        content_without_comments = comment_pattern.sub(lambda m: m.group(1) or '', file_content)

        loaded = json.loads(content_without_comments)
        if not isinstance(loaded, dict):
            logger.error(f"Configuration file {filepath} does not contain a JSON object.")
            return None
        return loaded

    except json.JSONDecodeError as e:
        logger.error(f"Error decoding JSON from {filepath}: {e}", exc_info=True)
        print(f"❌ Error: Could not parse the configuration file at {filepath}. Please check for syntax errors.", file=sys.stderr)
        return None
    except IOError as e:
        logger.error(f"Error reading file {filepath}: {e}", exc_info=True)
        print(f"❌ Error: Could not read the file at {filepath}.", file=sys.stderr)
        return None


def save_json_file(filepath: str, data: Dict[str, Any]) -> bool:
    """
    Saves a dictionary to a file in standard JSON format.

    Args:
        filepath (str): The full path where the file will be saved.
        data (Dict[str, Any]): The dictionary data to save.

    Returns:
        bool: True if saving was successful, False otherwise.
    """
    try:
        os.makedirs(os.path.dirname(filepath), exist_ok=True)
        with open(filepath, 'w', encoding='utf-8') as f:
            json.dump(data, f, indent=2, sort_keys=True)
        logger.info(f"Successfully saved configuration to {filepath}")
        return True
    except IOError as e:
        logger.error(f"Error saving data to {filepath}: {e}", exc_info=True)
        print(f"❌ Error: Could not write to the file at {filepath}.", file=sys.stderr)
        return False
    except TypeError as e:
        logger.error(f"Data for {filepath} is not serializable: {e}", exc_info=True)
        print("❌ Error: The data provided could not be converted to JSON.", file=sys.stderr)
        return False


def merge_configs(base: dict, override: dict) -> dict:
    """Recursively merges override into a copy of base."""
    merged = base.copy()
    for key, value in override.items():
        if isinstance(value, dict) and key in merged and isinstance(merged[key], dict):
            merged[key] = merge_configs(merged[key], value)
        else:
            merged[key] = value
    return merged


def get_config_dir() -> str:
    """Resolves the per-user configuration directory."""
    explicit = os.environ.get(CONFIG_DIR_ENV_VAR)
    if explicit:
        return os.path.abspath(os.path.expanduser(explicit))
    xdg_home = os.environ.get("XDG_CONFIG_HOME") or os.path.join(os.path.expanduser("~"), ".config")
    return os.path.join(xdg_home, "askshell")


def _get_nested(config_dict: dict, key_path: str, default: Any = None) -> Any:
    value = config_dict
    for part in key_path.split('.'):
        if isinstance(value, dict) and part in value:
            value = value[part]
        else:
            return default
    return value


def _set_nested(config_dict: dict, key_path: str, new_value: Any) -> None:
    keys = key_path.split('.')
    d = config_dict
    for key in keys[:-1]:
        if key in d and not isinstance(d[key], dict):
            raise InvalidConfigValueError(f"Path conflict: '{key}' is not a section.")
        d = d.setdefault(key, {})
    d[keys[-1]] = new_value


def _to_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    normalized = str(value).strip().lower()
    if normalized == "true":
        return True
    if normalized == "false":
        return False
    raise InvalidConfigValueError(f"Expected true or false, got '{value}'.")


def normalize_host(url: str) -> str:
    """Accepts either the server base URL or the full generate endpoint."""
    host = str(url).strip().rstrip('/')
    if host.endswith(_GENERATE_ENDPOINT_SUFFIX):
        host = host[: -len(_GENERATE_ENDPOINT_SUFFIX)]
    return host


def _format_value(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


class ConfigStore:
    """Key/value view over the merged default and user configuration."""

    def __init__(self, default_config_path: str = DEFAULT_CONFIG_PATH, user_config_path: Optional[str] = None):
        self.default_config_path = default_config_path
        self.user_config_path = user_config_path or os.path.join(get_config_dir(), USER_CONFIG_FILENAME)
        self._defaults: Dict[str, Any] = {}
        self._user: Dict[str, Any] = {}
        self._config: Dict[str, Any] = {}
        self.load()

    def load(self):
        """Loads the packaged defaults and overlays the user configuration."""
        defaults = load_jsonc_file(self.default_config_path)
        if defaults is None:
            error_msg = f"Default configuration file not found or failed to parse at '{self.default_config_path}'."
            logger.critical(error_msg)
            raise FileNotFoundError(error_msg)
        self._defaults = defaults
        logger.info(f"Successfully loaded base configuration from {self.default_config_path}")

        self._user = load_jsonc_file(self.user_config_path) or {}
        if self._user:
            logger.info(f"Loaded and merged user configuration from {self.user_config_path}")
        self._config = merge_configs(self._defaults, self._user)

    @staticmethod
    def _resolve_key(key: str) -> str:
        normalized = key.strip().upper()
        if normalized not in SETTABLE_KEYS:
            raise UnknownConfigKeyError(key)
        return normalized

    def get_path(self, key_path: str, default: Any = None) -> Any:
        """Reads any value by dotted path, e.g. 'ollama.request_timeout_seconds'."""
        return _get_nested(self._config, key_path, default)

    def get(self, key: str) -> str:
        normalized = self._resolve_key(key)
        return _format_value(_get_nested(self._config, SETTABLE_KEYS[normalized], ""))

    def set(self, key: str, value: str) -> None:
        """Validates, applies and persists a settable key in the user layer."""
        normalized = self._resolve_key(key)
        coerced = self._coerce(normalized, value)

        _set_nested(self._user, SETTABLE_KEYS[normalized], coerced)
        if not save_json_file(self.user_config_path, self._user):
            raise IOError(f"Could not write {self.user_config_path}")
        self._config = merge_configs(self._defaults, self._user)
        logger.info(f"Configuration updated: {normalized} = {coerced!r}")

    def describe(self) -> List[Tuple[str, str]]:
        return [(key, self.get(key)) for key in SETTABLE_KEYS]

    @staticmethod
    def _coerce(key: str, value: Any) -> Any:
        if key in _BOOLEAN_KEYS:
            return _to_bool(value)
        if key == "TEMPERATURE":
            try:
                temperature = float(value)
            except (TypeError, ValueError):
                raise InvalidConfigValueError(f"TEMPERATURE must be a number, got '{value}'.") from None
            if not 0.0 <= temperature <= 2.0:
                raise InvalidConfigValueError("TEMPERATURE must be between 0 and 2.")
            return temperature
        if key == "MAX_HISTORY":
            try:
                max_history = int(str(value).strip())
            except ValueError:
                raise InvalidConfigValueError(f"MAX_HISTORY must be an integer, got '{value}'.") from None
            if max_history <= 0:
                raise InvalidConfigValueError("MAX_HISTORY must be a positive integer.")
            return max_history
        if key == "SAFETY_LEVEL":
            try:
                return SafetyLevel.parse(str(value)).label
            except ValueError as e:
                raise InvalidConfigValueError(str(e)) from None
        if key == "OLLAMA_API_URL":
            return normalize_host(value)
        text = str(value).strip()
        if not text:
            raise InvalidConfigValueError(f"{key} cannot be empty.")
        return text


@dataclass(frozen=True)
class AppSettings:
    """Everything the pipeline reads, resolved once per invocation."""

    model: str
    host: str
    temperature: float
    max_tokens: int
    top_k: int
    top_p: float
    request_timeout: float
    ping_timeout: float
    safety_level: SafetyLevel
    auto_confirm: bool
    history_enabled: bool
    max_history: int
    history_path: str
    context_history_entries: int
    directory_listing_limit: int
    verbose: bool
    shell: str
    extra_rules: Tuple[dict, ...] = ()

    def risk_rules(self) -> Tuple[RiskRule, ...]:
        """Built-in rule table plus the rules configured under safety.extra_rules."""
        return build_rule_table(self.extra_rules)

    @classmethod
    def from_store(cls, store: ConfigStore) -> "AppSettings":
        """
        Raises:
            ValueError: a hand-edited value cannot be converted (InvalidConfigValueError
                for booleans). An unknown safety level falls back to medium instead.
        """
        get = store.get_path
        history_filename = get("history.filename", "history.txt")
        history_path = os.path.join(os.path.dirname(store.user_config_path), history_filename)
        try:
            safety_level = SafetyLevel.parse(str(get("safety.safety_level", "medium")))
        except ValueError:
            logger.warning("Invalid safety level in configuration; falling back to medium.")
            safety_level = SafetyLevel.MEDIUM

        return cls(
            model=str(get("ollama.model", "llama3.2")),
            host=normalize_host(get("ollama.host", "http://localhost:11434")),
            temperature=float(get("ollama.temperature", 0.7)),
            max_tokens=int(get("ollama.max_tokens", 256)),
            top_k=int(get("ollama.top_k", 40)),
            top_p=float(get("ollama.top_p", 0.9)),
            request_timeout=float(get("ollama.request_timeout_seconds", 30)),
            ping_timeout=float(get("ollama.ping_timeout_seconds", 5)),
            safety_level=safety_level,
            auto_confirm=_to_bool(get("safety.auto_confirm", False)),
            history_enabled=_to_bool(get("history.enabled", True)),
            max_history=max(1, int(get("history.max_entries", 100))),
            history_path=history_path,
            context_history_entries=max(0, int(get("context.history_entries", 5))),
            directory_listing_limit=max(0, int(get("context.directory_listing_limit", 10))),
            verbose=_to_bool(get("ui.verbose", False)),
            shell=get("execution.shell") or os.environ.get("SHELL") or "/bin/sh",
            extra_rules=tuple(r for r in get("safety.extra_rules", []) or [] if isinstance(r, dict)),
        )
