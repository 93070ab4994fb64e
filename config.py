"""
Configuration Management System for Clinical Summary Tables

This module provides centralized configuration management for the table engine,
including statistical defaults, table display settings and logging configuration.

Usage:
    from config import CONFIG

    # Access config
    print(CONFIG.get('analysis.confidence_level'))

    # Update config (runtime)
    CONFIG.update('table.footnote_marks', 'letters')

    # Get with default
    value = CONFIG.get('some.nested.key', default='default_value')
"""

import copy
import json
import os
from typing import Any, Optional, Dict
import warnings


class ConfigManager:
    """
    Centralized configuration management with hierarchical key access.

    Supports:
    - Nested dictionary access with dot notation
    - Default values and fallbacks
    - Environment variable overrides
    - Config validation
    - Runtime updates
    """

    def __init__(self, config_dict: Optional[Dict] = None, env_prefix: str = "SUMTAB_"):
        """
        Create a ConfigManager populated with the given configuration or the module defaults and apply environment variable overrides.

        Parameters:
            config_dict (dict | None): Optional initial configuration dictionary to use instead of the built-in defaults.
            env_prefix (str): Prefix identifying environment variables that override configuration values.
        """
        self._config = config_dict or self._get_default_config()
        self._env_prefix = env_prefix
        self._load_env_overrides()

    @staticmethod
    def _get_default_config() -> Dict[str, Any]:
        """
        Provide the default nested configuration used by the engine.

        Returns:
            Dict[str, Any]: A dictionary with the default configuration sections
            ('analysis', 'table', 'logging').
        """
        return {

            # ========== ANALYSIS SETTINGS ==========
            "analysis": {
                # Confidence level for Clopper-Pearson and odds ratio intervals
                "confidence_level": 0.95,

                # Categorical summaries
                "missing_category_label": "Missing",

                # Continuous summaries
                "unit_format": "{label} ({unit})",
                "continuous_labels": {
                    "n": "n",
                    "mean_sd": "Mean (SD)",
                    "median": "Median",
                    "range": "Min - Max",
                },

                # Response summaries
                "overall_label": "Overall",
                "event_values": [1, True, "Y", "Yes"],
            },

            # ========== TABLE & DISPLAY SETTINGS ==========
            "table": {
                "missing_text": "-",
                "footnote_marks": "numeric",  # 'numeric', 'letters'
                "pct_decimals": 1,
                "continuous_decimals": 1,
                "default_alignment": "center",
                "stub_alignment": "left",
                "header_n_format": "{group} (N={n})",
            },

            # ========== LOGGING SETTINGS ==========
            "logging": {
                "enabled": True,
                "level": "INFO",  # DEBUG, INFO, WARNING, ERROR, CRITICAL
                "format": "[%(asctime)s] [%(levelname)s] %(name)s: %(message)s",
                "date_format": "%Y-%m-%d %H:%M:%S",

                # File Logging
                "file_enabled": False,
                "log_dir": "logs",
                "log_file": "summary_tables.log",
                "max_log_size": 10485760,  # 10MB in bytes
                "backup_count": 5,

                # Console Logging
                "console_enabled": True,
                "console_level": "WARNING",

                # What to Log
                "log_data_operations": True,
                "log_analysis_operations": True,
                "log_performance": True,  # Timing information
            },
        }

    def _load_env_overrides(self) -> None:
        """
        Apply configuration overrides from environment variables that start with the configured prefix.

        Environment variables must follow the form SUMTAB_<SECTION>_<KEY>=value; the portion after the prefix is
        lowercased and split on underscores, the first segment naming the section and the remaining segments joined
        with underscores to form the key (e.g., SUMTAB_TABLE_MISSING_TEXT -> table.missing_text). The raw string is
        coerced to the type of the existing default. Overrides that cannot be applied emit a warning and are skipped;
        values that apply but fail validate() are kept and reported with a warning.
        """
        for key, value in os.environ.items():
            if key.startswith(self._env_prefix):
                # SUMTAB_TABLE_MISSING_TEXT -> ['table', 'missing', 'text']
                parts = key[len(self._env_prefix):].lower().split('_')

                if len(parts) < 2:
                    continue

                section = parts[0]
                key_name = '_'.join(parts[1:])
                dotted = f"{section}.{key_name}"

                try:
                    self.update(dotted, self._coerce(value, self.get(dotted)))
                except (KeyError, ValueError, TypeError) as e:
                    warnings.warn(f"Failed to set env override {key}={value}: {e}", stacklevel=2)

        is_valid, errors = self.validate()
        if not is_valid:
            for err in errors:
                warnings.warn(f"Invalid configuration after env overrides: {err}", stacklevel=2)

    @staticmethod
    def _coerce(raw: str, current: Any) -> Any:
        """
        Convert an environment string to the type of the value it replaces.

        Raises:
            ValueError: If the string cannot be interpreted as the target type.
        """
        if isinstance(current, bool):
            lowered = raw.strip().lower()
            if lowered in ("1", "true", "yes", "on"):
                return True
            if lowered in ("0", "false", "no", "off"):
                return False
            raise ValueError(f"'{raw}' is not a boolean")
        if isinstance(current, int):
            return int(raw)
        if isinstance(current, float):
            return float(raw)
        if isinstance(current, (dict, list)):
            return json.loads(raw)
        return raw

    def get(self, key: str, default: Any = None) -> Any:
        """
        Retrieve a configuration value using a dot-separated key path.

        Parameters:
            key (str): Dot-separated path to a nested configuration value (e.g., "logging.level").
            default: Value to return if the specified path does not exist.

        Returns:
            The configuration value at the given path, or `default` if the path is not found.
        """
        keys = key.split('.')
        value = self._config

        for k in keys:
            if isinstance(value, dict) and k in value:
                value = value[k]
            else:
                return default

        return value

    def update(self, key: str, value: Any) -> None:
        """
        Set an existing configuration value identified by a dot-separated path.

        Parameters:
            key (str): Dot-separated path to an existing configuration entry (e.g., "logging.level").
            value (Any): Value to assign to the configuration entry.

        Raises:
            KeyError: If any intermediate path segment or the final key does not exist in the configuration.
        """
        keys = key.split('.')
        config = self._config

        # Navigate to parent key
        for k in keys[:-1]:
            if not isinstance(config, dict) or k not in config:
                raise KeyError(f"Config path '{'.'.join(keys[:-1])}' does not exist")
            config = config[k]

        final_key = keys[-1]
        if final_key not in config:
            raise KeyError(f"Config key '{key}' does not exist")

        config[final_key] = value

    def get_section(self, section: str) -> Dict[str, Any]:
        """
        Return a deep copy of a top-level configuration section.
        """
        result = self.get(section, {})
        return copy.deepcopy(result) if isinstance(result, dict) else result

    def validate(self) -> tuple[bool, list[str]]:
        """
        Validate key configuration constraints and collect any violations.

        Checks:
        - `analysis.confidence_level` lies strictly between 0 and 1.
        - `table.footnote_marks` is one of `['numeric', 'letters']`.
        - `table.default_alignment` and `table.stub_alignment` are valid alignments.
        - `table.pct_decimals` and `table.continuous_decimals` are non-negative integers.
        - `logging.level` is one of `['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']`.

        Returns:
            tuple: (is_valid, errors) where `errors` is a list of human-readable error messages.
        """
        errors = []

        confidence = self.get('analysis.confidence_level')
        if not isinstance(confidence, (int, float)) or not (0 < confidence < 1):
            errors.append("analysis.confidence_level must be between 0 and 1")

        valid_marks = ['numeric', 'letters']
        if self.get('table.footnote_marks') not in valid_marks:
            errors.append(f"table.footnote_marks must be one of {valid_marks}")

        valid_align = ['left', 'center', 'right']
        for key in ('table.default_alignment', 'table.stub_alignment'):
            if self.get(key) not in valid_align:
                errors.append(f"{key} must be one of {valid_align}")

        for key in ('table.pct_decimals', 'table.continuous_decimals'):
            decimals = self.get(key)
            if not isinstance(decimals, int) or isinstance(decimals, bool) or decimals < 0:
                errors.append(f"{key} must be a non-negative integer")

        valid_levels = ['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']
        if self.get('logging.level') not in valid_levels:
            errors.append(f"logging.level must be one of {valid_levels}")

        return len(errors) == 0, errors

    def __repr__(self) -> str:
        return f"ConfigManager({len(self._config)} sections)"


# Global config instance
CONFIG = ConfigManager()
