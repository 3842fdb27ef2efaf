# compliance_copilot/boot/load_settings.py

import os
import yaml
import argparse
import logging
from typing import Dict, Any, Optional

_log = logging.getLogger(__name__)

SETTINGS_ENV_VAR = "COMPLIANCE_COPILOT_SETTINGS"


class AppConfigLoader:
    """
    Singleton-style settings loader.

    - Loads the base YAML from settings/agent-settings.yaml
      (or the path in $COMPLIANCE_COPILOT_SETTINGS)
    - Exposes a copy via get_config()
    - Applies CLI arg overrides via merge_with_args()
    """
    _instance = None
    _config: Optional[Dict[str, Any]] = None

    def __new__(cls) -> "AppConfigLoader":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __init__(self) -> None:
        # Load once per process
        if self._config is None:
            _log.info("Initializing application settings.")
            self._load_from_yaml()

    @classmethod
    def reset(cls) -> None:
        """Forget the cached settings so the next instance reloads them."""
        cls._instance = None
        cls._config = None

    # ──────────────────────────────────────────────────────────────────────────
    # Internal loading
    # ──────────────────────────────────────────────────────────────────────────
    def _settings_path(self) -> str:
        override = os.getenv(SETTINGS_ENV_VAR)
        if override:
            return override
        # project_root = repo root (one level up from compliance_copilot/boot/)
        project_root = os.path.abspath(os.path.join(os.path.dirname(__file__), "..", ".."))
        return os.path.join(project_root, "settings", "agent-settings.yaml")

    def _load_from_yaml(self) -> None:
        """
        Resolve the settings path and parse the YAML file into memory.
        """
        settings_path = self._settings_path()

        try:
            with open(settings_path, "r", encoding="utf-8") as fh:
                loaded = yaml.safe_load(fh) or {}
            if not isinstance(loaded, dict):
                _log.error("Settings file %s must contain a mapping; ignoring it.", settings_path)
                loaded = {}
            type(self)._config = loaded
            _log.info("Settings loaded from %s", settings_path)
        except FileNotFoundError:
            _log.warning("Settings file not found at %s. Using empty defaults.", settings_path)
            type(self)._config = {}
        except yaml.YAMLError as exc:
            _log.error("Failed to parse settings: %s", exc, exc_info=True)
            type(self)._config = {}

    # ──────────────────────────────────────────────────────────────────────────
    # Public API
    # ──────────────────────────────────────────────────────────────────────────
    def get_config(self) -> Dict[str, Any]:
        """
        Return a copy of the loaded settings (sections copied one level deep).
        """
        _log.debug("Providing a copy of the loaded settings.")
        return {
            key: dict(value) if isinstance(value, dict) else value
            for key, value in (self._config or {}).items()
        }

    def merge_with_args(self, args: argparse.Namespace) -> Dict[str, Any]:
        """
        Merge CLI flags into the loaded configuration.
        CLI always takes precedence over YAML.

        Returns a new merged dict (does not mutate the internal cache).
        """
        _log.info("Merging CLI arguments into settings.")
        cfg = self.get_config()

        # Agent overrides (model selection)
        agent_cfg = cfg.setdefault("agent", {})
        if getattr(args, "model", None) is not None:
            agent_cfg["llm_model"] = args.model
        if getattr(args, "timeout", None) is not None:
            agent_cfg["request_timeout"] = args.timeout

        # Session overrides (document scope)
        session_cfg = cfg.setdefault("session", {})
        if getattr(args, "scope", None) is not None:
            session_cfg["default_scope"] = args.scope

        # Logging overrides
        log_cfg = cfg.setdefault("logging", {})
        # Verbose flag bumps level to DEBUG
        if getattr(args, "verbose", False) or getattr(args, "debug", False):
            log_cfg["level"] = "DEBUG"

        _log.info("Settings merge complete.")
        return cfg
