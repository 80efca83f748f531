"""Configuration management for the wheel tracker.

This module provides configuration loading, validation, and management
for the wheel tracker: database location, risk thresholds used by the
calculators, and CLI output options.
"""

import logging
import os
from pathlib import Path
from typing import Any, Optional

import yaml

from src.calc.risk import RiskThresholds
from src.constants import (
    ASSIGNMENT_WINDOW_DAYS,
    EXPIRATION_WARNING_DAYS,
    IMPLAUSIBLE_RETURN_PCT,
    NEAR_MONEY_THRESHOLD,
)

from .exceptions import ConfigurationError

logger = logging.getLogger(__name__)

DEFAULT_DB_PATH = "~/.wheel_tracker/wheel.db"

_TRUE_VALUES = ("1", "true", "yes", "on")


def _env_flag(name: str, fallback: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return bool(fallback)
    return value.strip().lower() in _TRUE_VALUES


class WheelTrackerConfig:
    """Configuration for the wheel tracker.

    Manages configuration from files, environment variables, and defaults.

    Attributes:
        db_path: SQLite database path
        implausible_return_pct: Annualized ROO (%) flagged as a likely typo
        near_money_threshold: |moneyness| below which assignment risk is flagged
        assignment_window_days: DTE at or below which assignment is offered
        expiration_warning_days: DTE at or below which a short leg is flagged
        verbose: Enable verbose logging
        json_output: Output in JSON format
    """

    def __init__(
        self,
        db_path: str = DEFAULT_DB_PATH,
        implausible_return_pct: float = IMPLAUSIBLE_RETURN_PCT,
        near_money_threshold: float = NEAR_MONEY_THRESHOLD,
        assignment_window_days: int = ASSIGNMENT_WINDOW_DAYS,
        expiration_warning_days: int = EXPIRATION_WARNING_DAYS,
        verbose: bool = False,
        json_output: bool = False,
    ):
        """Initialize configuration.

        Args:
            db_path: SQLite database path
            implausible_return_pct: Annualized ROO (%) flagged as a likely typo
            near_money_threshold: |moneyness| below which assignment risk is flagged
            assignment_window_days: DTE at or below which assignment is offered
            expiration_warning_days: DTE at or below which a short leg is flagged
            verbose: Enable verbose logging
            json_output: Output in JSON format

        Example:
            >>> config = WheelTrackerConfig(
            ...     db_path="/tmp/wheel.db",
            ...     implausible_return_pct=150.0
            ... )
        """
        self.db_path = db_path
        self.implausible_return_pct = implausible_return_pct
        self.near_money_threshold = near_money_threshold
        self.assignment_window_days = assignment_window_days
        self.expiration_warning_days = expiration_warning_days
        self.verbose = verbose
        self.json_output = json_output

        self._validate()

    def _validate(self):
        """Validate configuration values.

        Raises:
            ConfigurationError: If configuration is invalid
        """
        if not self.db_path or not str(self.db_path).strip():
            raise ConfigurationError("db_path cannot be empty")

        if self.implausible_return_pct <= 0:
            raise ConfigurationError("implausible_return_pct must be positive")

        if not 0 < self.near_money_threshold < 1:
            raise ConfigurationError("near_money_threshold must be between 0 and 1")

        if self.assignment_window_days < 0 or self.assignment_window_days > 30:
            raise ConfigurationError("assignment_window_days must be between 0 and 30")

        if self.expiration_warning_days < 0 or self.expiration_warning_days > 60:
            raise ConfigurationError("expiration_warning_days must be between 0 and 60")

    @classmethod
    def get_default_config_path(cls) -> Path:
        """Get default configuration file path.

        Returns:
            Path to default config file (~/.wheel_tracker/config.yaml)
        """
        return Path.home() / ".wheel_tracker" / "config.yaml"

    @classmethod
    def load_from_file(cls, path: Optional[Path] = None) -> "WheelTrackerConfig":
        """Load configuration from YAML file.

        If the file doesn't exist, returns default configuration.
        Merges file configuration with environment variable overrides.

        Args:
            path: Optional path to config file (default: ~/.wheel_tracker/config.yaml)

        Returns:
            Configuration instance

        Raises:
            ConfigurationError: If configuration file is invalid
        """
        config_path = path or cls.get_default_config_path()

        config_dict: dict[str, Any] = {}

        if config_path.exists():
            try:
                with open(config_path) as f:
                    file_config = yaml.safe_load(f)
                    if file_config:
                        config_dict = file_config
                logger.debug(f"Loaded configuration from {config_path}")
            except yaml.YAMLError as e:
                raise ConfigurationError(
                    f"Invalid YAML in configuration file: {e}"
                ) from e
            except OSError as e:
                raise ConfigurationError(
                    f"Failed to load configuration file: {e}"
                ) from e
            if not isinstance(config_dict, dict):
                raise ConfigurationError("Configuration file must contain a mapping")
        else:
            logger.debug(f"Configuration file not found at {config_path}, using defaults")

        return cls.merge_with_defaults(config_dict)

    @classmethod
    def merge_with_defaults(cls, config_dict: dict[str, Any]) -> "WheelTrackerConfig":
        """Merge configuration dictionary with defaults and environment variables.

        Precedence order (highest to lowest):
        1. Environment variables
        2. Config file values
        3. Default values

        Args:
            config_dict: Configuration dictionary from file

        Returns:
            Configuration instance

        Raises:
            ConfigurationError: If configuration is invalid

        Example:
            >>> config = WheelTrackerConfig.merge_with_defaults({
            ...     "risk": {"near_money_threshold": 0.05}
            ... })
        """
        storage_config = config_dict.get("storage") or {}
        risk_config = config_dict.get("risk") or {}
        cli_config = config_dict.get("cli") or {}

        try:
            db_path = os.getenv("WHEEL_DB_PATH", storage_config.get("db_path", DEFAULT_DB_PATH))
            implausible_return_pct = float(
                os.getenv(
                    "WHEEL_IMPLAUSIBLE_RETURN_PCT",
                    risk_config.get("implausible_return_pct", IMPLAUSIBLE_RETURN_PCT),
                )
            )
            near_money_threshold = float(
                os.getenv(
                    "WHEEL_NEAR_MONEY_THRESHOLD",
                    risk_config.get("near_money_threshold", NEAR_MONEY_THRESHOLD),
                )
            )
            assignment_window_days = int(
                os.getenv(
                    "WHEEL_ASSIGNMENT_WINDOW_DAYS",
                    risk_config.get("assignment_window_days", ASSIGNMENT_WINDOW_DAYS),
                )
            )
            expiration_warning_days = int(
                os.getenv(
                    "WHEEL_EXPIRATION_WARNING_DAYS",
                    risk_config.get("expiration_warning_days", EXPIRATION_WARNING_DAYS),
                )
            )
        except (TypeError, ValueError) as e:
            raise ConfigurationError(f"Invalid configuration value: {e}") from e

        verbose = _env_flag("WHEEL_VERBOSE", cli_config.get("verbose", False))
        json_output = _env_flag("WHEEL_JSON_OUTPUT", cli_config.get("json_output", False))

        return cls(
            db_path=db_path,
            implausible_return_pct=implausible_return_pct,
            near_money_threshold=near_money_threshold,
            assignment_window_days=assignment_window_days,
            expiration_warning_days=expiration_warning_days,
            verbose=verbose,
            json_output=json_output,
        )

    def risk_thresholds(self) -> RiskThresholds:
        """Risk thresholds for the strategy calculators."""
        return RiskThresholds(
            implausible_return_pct=self.implausible_return_pct,
            near_money_threshold=self.near_money_threshold,
            expiration_warning_days=self.expiration_warning_days,
        )

    def save_to_file(self, path: Optional[Path] = None):
        """Save configuration to YAML file.

        Args:
            path: Optional path to save to (default: ~/.wheel_tracker/config.yaml)

        Raises:
            ConfigurationError: If save fails
        """
        config_path = path or self.get_default_config_path()

        try:
            config_path.parent.mkdir(parents=True, exist_ok=True)
            with open(config_path, "w") as f:
                yaml.dump(self.to_dict(), f, default_flow_style=False)
            logger.info(f"Configuration saved to {config_path}")
        except OSError as e:
            raise ConfigurationError(f"Failed to save configuration: {e}") from e

    def to_dict(self) -> dict[str, Any]:
        """Convert configuration to the nested file structure.

        Returns:
            Configuration as dictionary
        """
        return {
            "storage": {
                "db_path": self.db_path,
            },
            "risk": {
                "implausible_return_pct": self.implausible_return_pct,
                "near_money_threshold": self.near_money_threshold,
                "assignment_window_days": self.assignment_window_days,
                "expiration_warning_days": self.expiration_warning_days,
            },
            "cli": {
                "verbose": self.verbose,
                "json_output": self.json_output,
            },
        }

    def __repr__(self) -> str:
        """String representation of configuration."""
        return (
            f"WheelTrackerConfig("
            f"db_path={self.db_path!r}, "
            f"implausible_return_pct={self.implausible_return_pct}, "
            f"near_money_threshold={self.near_money_threshold}, "
            f"assignment_window_days={self.assignment_window_days}, "
            f"expiration_warning_days={self.expiration_warning_days}, "
            f"verbose={self.verbose}, "
            f"json_output={self.json_output}"
            ")"
        )


def load_config(config_path: Optional[Path] = None) -> WheelTrackerConfig:
    """Load configuration from file or defaults.

    Args:
        config_path: Optional path to config file

    Returns:
        Configuration instance

    Example:
        >>> from src.wheel.config import load_config
        >>> config = load_config()
        >>> print(config.db_path)
    """
    return WheelTrackerConfig.load_from_file(config_path)
