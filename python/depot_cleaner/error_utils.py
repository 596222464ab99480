"""
Error message utilities for providing actionable guidance to users.

This module provides functions to create helpful error messages with
suggested fixes and troubleshooting steps.
"""

from typing import List, Optional, Dict, Any
from enum import Enum


class ErrorCategory(Enum):
    """Categories of errors for better error handling"""
    CONNECTION = "connection"
    AUTHENTICATION = "authentication"
    CONFIGURATION = "configuration"
    PERMISSION = "permission"
    RESOURCE = "resource"
    NETWORK = "network"
    TIMEOUT = "timeout"
    UNKNOWN = "unknown"


class ActionableError(Exception):
    """Exception with actionable guidance for users"""

    def __init__(self, message: str, category: ErrorCategory = ErrorCategory.UNKNOWN,
                 suggestions: Optional[List[str]] = None, details: Optional[Dict[str, Any]] = None):
        """Initialize actionable error

        Args:
            message: Primary error message
            category: Error category for classification
            suggestions: List of suggested fixes
            details: Additional context information
        """
        self.message = message
        self.category = category
        self.suggestions = suggestions or []
        self.details = details or {}
        super().__init__(self.format_message())

    def format_message(self) -> str:
        """Format the complete error message with suggestions"""
        lines = [f"❌ {self.message}"]

        if self.suggestions:
            lines.append("\n💡 Suggested fixes:")
            for i, suggestion in enumerate(self.suggestions, 1):
                lines.append(f"   {i}. {suggestion}")

        if self.details:
            lines.append("\n📋 Additional details:")
            for key, value in self.details.items():
                lines.append(f"   {key}: {value}")

        return "\n".join(lines)


def create_depot_connection_error(api_url: str, error: Exception) -> ActionableError:
    """Create actionable error for Depot API connection failures"""
    error_str = str(error).lower()

    suggestions = [
        f"Verify the Depot API URL is correct: {api_url}",
        "Check network connectivity to the Depot API",
        "Verify proxy and firewall rules allow outbound HTTPS",
    ]

    if "timeout" in error_str or "timed out" in error_str:
        suggestions.insert(1, "Increase depot.timeout in config.yaml")

    if "name resolution" in error_str or "dns" in error_str:
        suggestions.insert(1, "Verify DNS resolution for the API hostname")

    return ActionableError(
        message=f"Failed to connect to the Depot API at {api_url}",
        category=ErrorCategory.CONNECTION,
        suggestions=suggestions,
        details={
            "api_url": api_url,
            "error_type": type(error).__name__,
            "error_message": str(error)
        }
    )


def create_depot_auth_error(api_url: str, error: Optional[Exception] = None) -> ActionableError:
    """Create actionable error for a missing or rejected Depot token"""
    suggestions = [
        "Set the DEPOT_TOKEN environment variable",
        "Or set depot.token in config.yaml",
        "Verify the token has not been revoked in the Depot dashboard",
        "Use an organization token if processing every project",
    ]

    details = {"api_url": api_url}
    if error is not None:
        details["error_type"] = type(error).__name__
        details["error_message"] = str(error)

    return ActionableError(
        message=f"Not authenticated against the Depot API at {api_url}",
        category=ErrorCategory.AUTHENTICATION,
        suggestions=suggestions,
        details=details
    )


def create_config_error(field: str, value: Any, reason: str) -> ActionableError:
    """Create actionable error for configuration validation failures"""
    suggestions = [
        f"Check the '{field}' value in config.yaml",
        "Verify the value matches the expected format",
        "Check the config-example.yaml for correct format",
    ]

    if "days" in field.lower():
        suggestions.insert(1, "The age cutoff must be a non-negative number of days")
    elif "url" in field.lower():
        suggestions.insert(1, "URL should be in format: https://hostname[:port]")
    elif "timeout" in field.lower() or "delay" in field.lower():
        suggestions.insert(1, "Time values must be positive numbers")

    return ActionableError(
        message=f"Configuration error: Invalid value for '{field}'",
        category=ErrorCategory.CONFIGURATION,
        suggestions=suggestions,
        details={
            "field": field,
            "value": value,
            "reason": reason
        }
    )
