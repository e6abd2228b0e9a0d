"""Utility modules for the oauthgate package."""
from oauthgate.utils.logger import (
    get_logger,
    setup_logger,
)
from oauthgate.utils.config_validator import (
    validate_config,
)

__all__ = [
    "get_logger",
    "setup_logger",
    "validate_config",
]
