#!/usr/bin/env python3
"""
Configuration Manager for Depot Registry Cleaner

This module handles loading and managing configuration from config.yaml
and environment variables.
"""

import logging
import math
import os
import re
from datetime import timedelta
from typing import Any, Dict, List, Optional

import yaml

from depot_cleaner.logging_utils import resolve_log_level


class ConfigValidationError(Exception):
    """Raised when configuration validation fails"""


DEFAULT_EXCLUDED_TAGS = ["latest", "stable", "production"]
MAX_DAYS_OLD = timedelta.max.days


def validate_days_old(days_old: Any) -> float:
    """Validate an age cutoff in days.

    Args:
        days_old: Value to validate (int, float or numeric string such as "30", "1.5" or "1e3")

    Returns:
        The cutoff as a number

    Raises:
        ConfigValidationError: If the value is not a finite number between 0 and MAX_DAYS_OLD
    """
    message = f"days-old must be a non-negative number of at most {MAX_DAYS_OLD}, got: {days_old!r}"
    if isinstance(days_old, bool):
        raise ConfigValidationError(message)
    if isinstance(days_old, str):
        try:
            days_old = int(days_old)
        except ValueError:
            try:
                days_old = float(days_old)
            except ValueError:
                raise ConfigValidationError(message)
    if not isinstance(days_old, (int, float)) or not math.isfinite(days_old):
        raise ConfigValidationError(message)
    if days_old < 0 or days_old > MAX_DAYS_OLD:
        raise ConfigValidationError(message)
    return days_old


class ConfigManager:
    """Manages configuration for the Depot registry cleaner project"""

    def __init__(self, config_file: str = None, validate: bool = True):
        """Initialize ConfigManager

        Args:
            config_file: Path to configuration YAML file (defaults to config.yaml or CONFIG_FILE env var)
            validate: If True, validate configuration on initialization
        """
        # Allow override via environment variable for containerized deployments
        if config_file is None:
            config_file = os.environ.get("CONFIG_FILE", "config.yaml")
        self.config_file = config_file
        self.config = self._load_config()

        if validate:
            self.validate_config()

    def _load_config(self) -> Dict[str, Any]:
        """Load configuration from YAML file with defaults"""
        default_config = {
            "depot": {"api_url": "https://api.depot.dev", "timeout": 30, "page_size": 100},
            "retention": {"days_old": 30, "excluded_tags": list(DEFAULT_EXCLUDED_TAGS)},
            "retry": {
                "max_retries": 3,
                "initial_delay": 1.0,
                "max_delay": 60.0,
                "exponential_base": 2.0,
                "jitter": True,
            },
            "reports": {"output_dir": "reports", "deletion_plan": "deletion-plan.json", "timestamp": False},
            "security": {"require_confirmation": False},
            "logging": {"level": "INFO"},
        }

        try:
            if os.path.exists(self.config_file):
                with open(self.config_file, "r") as f:
                    user_config = yaml.safe_load(f) or {}
                return self._merge_config(default_config, user_config)
            else:
                logging.debug(f"Config file {self.config_file} not found, using defaults")
                return default_config
        except (OSError, yaml.YAMLError) as e:
            logging.error(f"Error loading config file: {e}")
            return default_config

    def _merge_config(self, default: Dict[str, Any], user: Dict[str, Any]) -> Dict[str, Any]:
        """Recursively merge user config with defaults"""
        result = default.copy()
        for key, value in user.items():
            if key in result and isinstance(result[key], dict) and isinstance(value, dict):
                result[key] = self._merge_config(result[key], value)
            else:
                result[key] = value
        return result

    # Depot API configuration
    def get_api_url(self) -> str:
        """Get Depot API base URL from environment or config"""
        url = os.environ.get("DEPOT_API_URL") or self.config["depot"]["api_url"]
        return url.rstrip("/") if url else url

    def get_token(self) -> Optional[str]:
        """Get the Depot bearer token.

        Priority order:
        1. DEPOT_TOKEN environment variable
        2. config.yaml depot.token field
        """
        return os.environ.get("DEPOT_TOKEN") or self.config["depot"].get("token")

    def get_timeout(self) -> int:
        """Get per-request HTTP timeout in seconds"""
        try:
            return int(self.config["depot"].get("timeout", 30))
        except (TypeError, ValueError):
            return 30

    def get_page_size(self) -> int:
        """Get listing page size (env DEPOT_PAGE_SIZE overrides config)"""
        value = os.environ.get("DEPOT_PAGE_SIZE") or self.config["depot"].get("page_size", 100)
        try:
            return int(value)
        except (TypeError, ValueError):
            return 100

    # Retention configuration
    def get_days_old(self) -> Any:
        """Get default age cutoff in days (env DAYS_OLD overrides config)"""
        return os.environ.get("DAYS_OLD") or self.config["retention"].get("days_old", 30)

    def get_excluded_tags(self) -> List[str]:
        """Get exclusion rules.

        EXCLUDED_TAGS (comma separated) replaces the configured list when set.
        Entries are either "tagName" or "projectId:tagName".
        """
        env_value = os.environ.get("EXCLUDED_TAGS")
        if env_value is not None:
            return [t.strip() for t in env_value.split(",") if t.strip()]
        tags = self.config["retention"].get("excluded_tags") or []
        return [str(t).strip() for t in tags if str(t).strip()]

    # Retry configuration
    def get_max_retries(self) -> int:
        """Get maximum number of retries for API calls"""
        try:
            return int(self.config.get("retry", {}).get("max_retries", 3))
        except (TypeError, ValueError):
            return 3

    def get_retry_initial_delay(self) -> float:
        """Get initial retry delay in seconds"""
        try:
            return float(self.config.get("retry", {}).get("initial_delay", 1.0))
        except (TypeError, ValueError):
            return 1.0

    def get_retry_max_delay(self) -> float:
        """Get maximum retry delay in seconds"""
        try:
            return float(self.config.get("retry", {}).get("max_delay", 60.0))
        except (TypeError, ValueError):
            return 60.0

    def get_retry_exponential_base(self) -> float:
        """Get exponential backoff base"""
        try:
            return float(self.config.get("retry", {}).get("exponential_base", 2.0))
        except (TypeError, ValueError):
            return 2.0

    def get_retry_jitter(self) -> bool:
        """Get whether to add jitter to retry delays"""
        return bool(self.config.get("retry", {}).get("jitter", True))

    def get_retry_settings(self) -> Dict[str, Any]:
        """Retry settings shaped as retry_with_backoff keyword arguments"""
        return {
            "max_retries": self.get_max_retries(),
            "initial_delay": self.get_retry_initial_delay(),
            "max_delay": self.get_retry_max_delay(),
            "exponential_base": self.get_retry_exponential_base(),
            "jitter": self.get_retry_jitter(),
        }

    # Reports
    def get_output_dir(self) -> str:
        """Get output directory for reports"""
        return self.config["reports"].get("output_dir", "reports")

    def get_deletion_plan_path(self) -> str:
        """Default path of the JSON deletion plan report"""
        return os.path.join(self.get_output_dir(), self.config["reports"].get("deletion_plan", "deletion-plan.json"))

    def timestamp_reports(self) -> bool:
        """Whether report file names get a run timestamp appended"""
        return bool(self.config["reports"].get("timestamp", False))

    # Logging
    def get_log_level(self) -> str:
        """Get log level name (env LOG_LEVEL overrides config)"""
        return os.environ.get("LOG_LEVEL") or str(self.config.get("logging", {}).get("level", "INFO"))

    # Security
    def requires_confirmation(self) -> bool:
        return bool(self.config.get("security", {}).get("require_confirmation", False))

    def validate_config(self) -> None:
        """Validate configuration values

        Raises:
            ConfigValidationError: If configuration is invalid
        """
        errors = []
        warnings = []

        api_url = self.get_api_url()
        if not api_url or not api_url.strip():
            errors.append("depot.api_url is required and cannot be empty")
        elif not self._is_valid_api_url(api_url):
            errors.append(f"depot.api_url '{api_url}' is invalid (expected format: https://hostname[:port])")
        elif api_url.startswith("http://"):
            warnings.append(f"depot.api_url '{api_url}' is not using HTTPS, the token will be sent in clear text")

        timeout = self.config["depot"].get("timeout", 30)
        if not isinstance(timeout, int) or isinstance(timeout, bool) or timeout < 1:
            errors.append(f"depot.timeout must be a positive integer (seconds), got: {timeout}")

        page_size = self.get_page_size()
        if page_size < 1:
            errors.append(f"depot.page_size must be a positive integer, got: {page_size}")
        elif page_size > 1000:
            warnings.append(f"depot.page_size is very high ({page_size}), the API may cap it")

        try:
            validate_days_old(self.get_days_old())
        except ConfigValidationError as e:
            errors.append(f"retention.{e}")

        excluded = self.config["retention"].get("excluded_tags")
        if excluded is not None and not isinstance(excluded, list):
            errors.append(f"retention.excluded_tags must be a list of strings, got: {type(excluded).__name__}")

        max_retries = self.get_max_retries()
        if max_retries < 0:
            errors.append(f"retry.max_retries must be a non-negative integer, got: {max_retries}")
        elif max_retries > 10:
            warnings.append(f"max_retries is very high ({max_retries}), operations may take a long time")

        initial_delay = self.get_retry_initial_delay()
        if initial_delay < 0:
            errors.append(f"retry.initial_delay must be a non-negative number, got: {initial_delay}")

        max_delay = self.get_retry_max_delay()
        if max_delay < 0:
            errors.append(f"retry.max_delay must be a non-negative number, got: {max_delay}")
        elif max_delay < initial_delay:
            errors.append(f"retry.max_delay ({max_delay}) must be >= retry.initial_delay ({initial_delay})")

        exponential_base = self.get_retry_exponential_base()
        if exponential_base < 1.0:
            errors.append(f"retry.exponential_base must be >= 1.0, got: {exponential_base}")

        try:
            resolve_log_level(self.get_log_level())
        except ValueError as e:
            errors.append(f"logging.level: {e}")

        for warning in warnings:
            logging.warning(f"Configuration warning: {warning}")

        if errors:
            error_msg = "Configuration validation failed:\n  " + "\n  ".join(errors)
            logging.error(error_msg)
            raise ConfigValidationError(error_msg)

    def _is_valid_api_url(self, url: str) -> bool:
        """Validate API URL format"""
        pattern = r"^https?://[a-zA-Z0-9]([a-zA-Z0-9\-\.]*[a-zA-Z0-9])?(:[0-9]{1,5})?(/.*)?$"
        return bool(re.match(pattern, url))

    def print_config(self):
        """Print current configuration"""
        print("Current Configuration:")
        print(f"  Depot API URL: {self.get_api_url()}")
        print(f"  Timeout: {self.get_timeout()}")
        print(f"  Page Size: {self.get_page_size()}")
        print(f"  Days Old: {self.get_days_old()}")
        print(f"  Excluded Tags: {', '.join(self.get_excluded_tags()) or 'None'}")
        print(f"  Output Directory: {self.get_output_dir()}")
        print(f"  Timestamped Reports: {self.timestamp_reports()}")
        print(f"  Require Confirmation: {self.requires_confirmation()}")
        print(f"  Log Level: {self.get_log_level()}")

        token = self.get_token()
        if token:
            print(f"  Depot Token: {'*' * len(token)}")
        else:
            print("  Depot Token: Not set")


# Global config manager instance
# Validation can be disabled by setting SKIP_CONFIG_VALIDATION=true environment variable
config_manager = ConfigManager(
    validate=os.environ.get("SKIP_CONFIG_VALIDATION", "").lower() not in ("true", "1", "yes")
)
