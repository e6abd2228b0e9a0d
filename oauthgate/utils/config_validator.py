#!/usr/bin/env python3
"""
Configuration Validation

Validates environment configuration on startup and provides helpful error messages.
"""
import os
from typing import Dict, List, Tuple, Any, Optional

from oauthgate.utils.logger import get_logger

logger = get_logger("config")

# =============================================================================
# CONFIGURATION SCHEMA
# =============================================================================

CONFIG_SCHEMA = {
    # Optional - with defaults
    "LOG_LEVEL": {"type": str, "default": "INFO", "valid": ["DEBUG", "INFO", "WARNING", "ERROR"]},
    "LOG_TO_FILE": {"type": bool, "default": False},
    "LOG_TO_CONSOLE": {"type": bool, "default": True},
    "DISCORD_REDIRECT_URI": {"type": str, "default": "http://localhost/redirect"},
    "DISCORD_SCOPE": {"type": str, "default": "identify"},
    "DISCORD_API_TIMEOUT": {"type": int, "default": 10, "min": 1, "max": 120},
    "STATE_STRING_TYPE": {"type": str, "default": "hex", "valid": ["hex", "base64"]},
    "STATE_REVERSE_DECODE": {"type": bool, "default": True},

    # Required for the OAuth flow
    "DISCORD_CLIENT_ID": {"type": str, "required_for": ["discord_auth"]},
    "DISCORD_CLIENT_SECRET": {"type": str, "required_for": ["discord_auth"]},
    "STATE_ENCRYPTION_KEYS": {"type": str, "required_for": ["discord_auth"], "min_length": 32},
    "FLASK_SECRET_KEY": {"type": str, "required_for": ["auth_server"], "min_length": 16},
}

# =============================================================================
# VALIDATION
# =============================================================================

class ConfigValidator:
    """Validates configuration on startup."""

    def __init__(self, environ: Optional[Dict[str, str]] = None):
        self.environ = os.environ if environ is None else environ
        self.errors: List[str] = []
        self.warnings: List[str] = []
        self.validated_config: Dict[str, Any] = {}

    def validate(self, required_features: Optional[List[str]] = None) -> Tuple[bool, Dict[str, Any]]:
        """
        Validate all configuration.

        Args:
            required_features: List of features that must be configured

        Returns:
            (is_valid, validated_config)
        """
        required_features = required_features or []

        for key, schema in CONFIG_SCHEMA.items():
            value = self.environ.get(key)
            required_for = schema.get("required_for", [])

            if not value:
                if any(feature in required_features for feature in required_for):
                    self.errors.append(
                        f"{key} is required for features: {', '.join(required_for)}"
                    )
                elif "default" in schema:
                    self.validated_config[key] = schema["default"]
                else:
                    self.validated_config[key] = None
                continue

            try:
                if schema["type"] == bool:
                    value = value.lower() in ("true", "1", "yes", "on")
                elif schema["type"] == int:
                    value = int(value)
                else:
                    value = str(value)
            except (ValueError, TypeError):
                self.errors.append(f"{key}: Invalid type, expected {schema['type'].__name__}")
                continue

            if schema["type"] == int:
                if "min" in schema and value < schema["min"]:
                    self.errors.append(f"{key}: Value {value} is below minimum {schema['min']}")
                    continue
                if "max" in schema and value > schema["max"]:
                    self.errors.append(f"{key}: Value {value} is above maximum {schema['max']}")
                    continue

            if schema["type"] == str and "min_length" in schema:
                # Key lists are comma separated; every key must satisfy the length
                parts = value.split(",") if key == "STATE_ENCRYPTION_KEYS" else [value]
                short = [p for p in parts if len(p.strip()) < schema["min_length"]]
                if short:
                    self.errors.append(f"{key}: Length is below minimum {schema['min_length']}")
                    continue

            if "valid" in schema and value not in schema["valid"]:
                self.errors.append(f"{key}: Value '{value}' not in valid values: {schema['valid']}")
                continue

            self.validated_config[key] = value

        if not self.validated_config.get("STATE_ENCRYPTION_KEYS"):
            self.warnings.append("STATE_ENCRYPTION_KEYS not set, using the development key")

        for error in self.errors:
            logger.error(f"Config validation error: {error}")

        for warning in self.warnings:
            logger.warning(f"Config validation warning: {warning}")

        if not self.errors:
            logger.info("Configuration validated successfully", extra={
                "warnings": len(self.warnings),
                "validated_keys": len(self.validated_config),
            })

        return len(self.errors) == 0, self.validated_config

    def get_summary(self) -> Dict[str, Any]:
        """Get validation summary."""
        return {
            "valid": len(self.errors) == 0,
            "errors": self.errors,
            "warnings": self.warnings,
            "validated_keys": len(self.validated_config),
        }


def validate_config(
    required_features: Optional[List[str]] = None,
    environ: Optional[Dict[str, str]] = None,
) -> Tuple[bool, Dict[str, Any]]:
    """
    Validate configuration on startup.

    Args:
        required_features: List of features that must be configured
        environ: Mapping to read instead of os.environ

    Returns:
        (is_valid, validated_config)
    """
    validator = ConfigValidator(environ)
    return validator.validate(required_features)
