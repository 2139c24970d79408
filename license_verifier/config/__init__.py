"""Configuration models and loading."""

from .pydantic_config import (
    APIConfig,
    BatchConfig,
    ConfigurationManager,
    OutputConfig,
    VerifierConfig,
    format_config_error,
)

__all__ = [
    "APIConfig",
    "BatchConfig",
    "ConfigurationManager",
    "OutputConfig",
    "VerifierConfig",
    "format_config_error",
]
