"""
Pydantic-based configuration system for the Business License Verifier.

Configuration is grouped into batch processing, API credentials and output
settings. Values come from a TOML or JSON file, environment variables for
the API credentials, and command-line overrides, in increasing priority.
"""

import json
import logging
import math
import os
import warnings
from pathlib import Path
from typing import Any, Dict, List, Literal, Mapping, Optional

import toml
from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    SecretStr,
    ValidationError,
    field_validator,
)

from license_verifier.utils.error_handler import ConfigurationError

logger = logging.getLogger(__name__)

DEFAULT_REQUEST_INTERVAL_MS = 1000
DEFAULT_MAX_CONCURRENT = 5
DEFAULT_BATCH_SIZE = 10

PLACEHOLDER_KEYS = (
    "your-baidu-api-key-here",
    "your-baidu-secret-key-here",
)


class BatchConfig(BaseModel):
    """Batch processing, pacing and retry settings."""

    model_config = ConfigDict(frozen=True)

    request_interval: float = Field(
        default=DEFAULT_REQUEST_INTERVAL_MS / 1000,
        ge=0.0,
        le=3600.0,
        description="Pause between batches in seconds",
    )
    max_concurrent: int = Field(
        default=DEFAULT_MAX_CONCURRENT,
        ge=1,
        le=100,
        description="Maximum concurrent API requests",
    )
    batch_size: int = Field(
        default=DEFAULT_BATCH_SIZE,
        ge=1,
        le=10000,
        description="Items processed per batch",
    )
    max_retries: int = Field(
        default=3,
        ge=0,
        le=10,
        description="Retry attempts per item after the first failure",
    )
    retry_delay: float = Field(
        default=1.0,
        gt=0.0,
        le=300.0,
        description="Initial retry backoff in seconds",
    )
    item_timeout: Optional[float] = Field(
        default=None,
        gt=0.0,
        description="Timeout in seconds for a single worker attempt (None = no limit)",
    )

    @field_validator("max_concurrent")
    @classmethod
    def validate_max_concurrent(cls, v):
        """Warn when concurrency is likely to trip the API's QPS limit."""
        if v > 20:
            warnings.warn(
                f"High concurrency ({v}) will likely exceed the API's QPS quota "
                f"and cause rate limiting. Consider using 2-10.",
                UserWarning,
            )
        return v

    @classmethod
    def from_preferences(cls, preferences: Optional[Mapping[str, Any]]) -> "BatchConfig":
        """
        Build a config from launcher-style string preferences.

        Accepts ``requestInterval`` (milliseconds), ``maxConcurrent`` and
        ``batchSize`` (snake_case keys are accepted too). Missing, non-numeric
        or non-positive values are replaced by the defaults instead of
        producing zero or negative batch sizes.
        """
        preferences = preferences or {}

        def lookup(camel: str, snake: str) -> Any:
            if camel in preferences:
                return preferences[camel]
            return preferences.get(snake)

        interval_ms = _parse_number(
            lookup("requestInterval", "request_interval_ms"),
            DEFAULT_REQUEST_INTERVAL_MS,
            "requestInterval",
            allow_zero=True,
        )
        max_concurrent = _parse_number(
            lookup("maxConcurrent", "max_concurrent"),
            DEFAULT_MAX_CONCURRENT,
            "maxConcurrent",
            integer=True,
        )
        batch_size = _parse_number(
            lookup("batchSize", "batch_size"),
            DEFAULT_BATCH_SIZE,
            "batchSize",
            integer=True,
        )

        try:
            return cls(
                request_interval=interval_ms / 1000,
                max_concurrent=max_concurrent,
                batch_size=batch_size,
            )
        except ValidationError as e:
            raise ConfigurationError(format_config_error(e)) from e


def _parse_number(
    value: Any,
    default: float,
    name: str,
    allow_zero: bool = False,
    integer: bool = False,
) -> float:
    """Parse a preference value, falling back to the default when invalid."""
    if value is None or (isinstance(value, str) and not value.strip()):
        return default

    try:
        number = float(str(value).strip())
    except ValueError:
        logger.warning(f"Invalid {name} value {value!r}, using default {default}")
        return default

    if not math.isfinite(number):
        logger.warning(f"Invalid {name} value {value!r}, using default {default}")
        return default

    if integer:
        # Fractions truncate toward zero, so "0.5" counts as non-positive
        number = int(number)

    if number < 0 or (number == 0 and not allow_zero):
        logger.warning(f"Non-positive {name} value {value!r}, using default {default}")
        return default

    return number


class APIConfig(BaseModel):
    """Baidu AI Cloud credentials with secure key handling."""

    api_key: Optional[SecretStr] = Field(default=None, description="Baidu API key")
    secret_key: Optional[SecretStr] = Field(
        default=None, description="Baidu secret key"
    )
    timeout: float = Field(
        default=30.0,
        gt=0.0,
        le=300.0,
        description="HTTP request timeout in seconds",
    )

    @field_validator("api_key", "secret_key", mode="before")
    @classmethod
    def validate_key_format(cls, v, info):
        """Reject placeholder credentials."""
        if v is None or v == "":
            return None

        key_str = v.get_secret_value() if isinstance(v, SecretStr) else str(v)

        if key_str in PLACEHOLDER_KEYS:
            raise ValueError(
                f"Please replace the placeholder {info.field_name} with your "
                f"actual Baidu AI Cloud credential."
            )

        if len(key_str) < 8:
            warnings.warn(
                f"Baidu {info.field_name} appears to be very short. "
                f"Please verify it is a valid credential.",
                UserWarning,
            )

        return SecretStr(key_str)


class OutputConfig(BaseModel):
    """Export settings."""

    formats: List[Literal["markdown", "excel"]] = Field(
        default_factory=list,
        description="Export formats (empty = no export)",
    )
    directory: Path = Field(
        default=Path("exports"), description="Directory for exported files"
    )
    include_raw_data: bool = Field(
        default=False, description="Include raw result data in exports"
    )

    @field_validator("directory", mode="before")
    @classmethod
    def validate_directory(cls, v):
        """Ensure the export directory is a Path object."""
        if isinstance(v, str):
            return Path(v).expanduser()
        return v


class VerifierConfig(BaseModel):
    """Main configuration model."""

    batch: BatchConfig = Field(default_factory=BatchConfig)
    api: APIConfig = Field(default_factory=APIConfig)
    output: OutputConfig = Field(default_factory=OutputConfig)


class ConfigurationManager:
    """Manages loading and validation of configuration from multiple sources."""

    def __init__(self, config_path: Optional[Path] = None):
        """
        Initialize configuration manager.

        Args:
            config_path: Optional path to configuration file (TOML or JSON)

        Raises:
            ConfigurationError: If the file is missing or values are invalid
        """
        self._config: Optional[VerifierConfig] = None
        self._load_configuration(config_path)

    def _get_default_config_paths(self) -> List[Path]:
        """Get list of default configuration file paths to try."""
        cwd = Path.cwd()
        return [
            cwd / "license_verifier.toml",
            cwd / "license_verifier.json",
            Path.home() / ".config" / "license_verifier" / "config.toml",
        ]

    def _load_configuration(self, config_path: Optional[Path] = None) -> None:
        """Load configuration from file or use defaults."""
        config_data: Dict[str, Any] = {}

        if config_path:
            config_data = self._load_config_file(Path(config_path))
        else:
            for path in self._get_default_config_paths():
                if path.exists():
                    logger.info(f"Loading configuration from {path}")
                    config_data = self._load_config_file(path)
                    break

        self._load_api_keys_from_env(config_data)
        self._config = self._build(config_data)

    def _load_config_file(self, config_path: Path) -> Dict[str, Any]:
        """Load configuration from TOML or JSON file."""
        if not config_path.exists():
            raise ConfigurationError(
                format_config_error(
                    FileNotFoundError(2, "No such file", str(config_path))
                )
            )

        suffix = config_path.suffix.lower()
        if suffix not in (".toml", ".json"):
            raise ConfigurationError(
                f"Unsupported configuration file format: {config_path.suffix}"
            )

        try:
            if suffix == ".toml":
                return toml.load(config_path)
            with open(config_path, "r", encoding="utf-8") as f:
                return json.load(f)
        except (toml.TomlDecodeError, json.JSONDecodeError, OSError) as e:
            raise ConfigurationError(
                f"Failed to load configuration from {config_path}: {e}"
            ) from e

    def _load_api_keys_from_env(self, config_data: Dict[str, Any]) -> None:
        """Load API credentials from environment variables as fallback."""
        api_section = config_data.setdefault("api", {})

        api_key = os.getenv("BAIDU_API_KEY")
        secret_key = os.getenv("BAIDU_SECRET_KEY")

        if api_key and not api_section.get("api_key"):
            api_section["api_key"] = api_key
        if secret_key and not api_section.get("secret_key"):
            api_section["secret_key"] = secret_key

    @staticmethod
    def _build(config_data: Dict[str, Any]) -> VerifierConfig:
        try:
            return VerifierConfig(**config_data)
        except ValidationError as e:
            raise ConfigurationError(format_config_error(e)) from e

    def update_from_cli_args(self, args: Dict[str, Any]) -> None:
        """Update configuration from command-line arguments (None = not given)."""
        if not self._config:
            raise RuntimeError("Configuration not loaded")

        config_dict = self._config.model_dump()

        for key in ("batch_size", "max_concurrent", "request_interval", "max_retries"):
            if args.get(key) is not None:
                config_dict["batch"][key] = args[key]

        if args.get("formats"):
            config_dict["output"]["formats"] = args["formats"]
        if args.get("output_dir"):
            config_dict["output"]["directory"] = args["output_dir"]
        if args.get("include_raw"):
            config_dict["output"]["include_raw_data"] = True

        self._config = self._build(config_dict)

    @property
    def config(self) -> VerifierConfig:
        """Get the current configuration."""
        if not self._config:
            raise RuntimeError("Configuration not loaded")
        return self._config

    def get_credentials(self) -> tuple[str, str]:
        """
        Return the (api_key, secret_key) pair as plain strings.

        Raises:
            ConfigurationError: If either credential is missing
        """
        api = self.config.api
        if not api.api_key or not api.secret_key:
            raise ConfigurationError(
                "Baidu API credentials are missing. Set BAIDU_API_KEY and "
                "BAIDU_SECRET_KEY or add them to the [api] section of the "
                "configuration file."
            )
        return api.api_key.get_secret_value(), api.secret_key.get_secret_value()

    def has_credentials(self) -> bool:
        api = self.config.api
        return bool(api.api_key and api.secret_key)

    @staticmethod
    def create_sample_config(output_path: Path, format: str = "toml") -> None:
        """Create a sample configuration file."""
        sample_config = {
            "batch": {
                "request_interval": 1.0,
                "max_concurrent": 5,
                "batch_size": 10,
                "max_retries": 3,
                "retry_delay": 1.0,
            },
            "api": {
                "timeout": 30.0,
                # Credentials should be added manually and not committed
                "api_key": "your-baidu-api-key-here",
                "secret_key": "your-baidu-secret-key-here",
            },
            "output": {
                "formats": ["markdown"],
                "directory": "exports",
                "include_raw_data": False,
            },
        }

        if format.lower() == "toml":
            with open(output_path, "w", encoding="utf-8") as f:
                toml.dump(sample_config, f)
        elif format.lower() == "json":
            with open(output_path, "w", encoding="utf-8") as f:
                json.dump(sample_config, f, indent=2)
        else:
            raise ValueError(f"Unsupported format: {format}")


class ConfigurationErrorFormatter:
    """Formats Pydantic validation errors into user-friendly messages."""

    @staticmethod
    def format_validation_error(error: ValidationError) -> str:
        """
        Convert Pydantic ValidationError into a user-friendly error message.

        Args:
            error: Pydantic ValidationError instance

        Returns:
            Formatted error message with helpful guidance
        """
        error_messages = []

        for error_detail in error.errors():
            location = ConfigurationErrorFormatter._format_error_location(
                error_detail["loc"]
            )
            error_messages.append(
                ConfigurationErrorFormatter._format_by_error_type(
                    location,
                    error_detail["type"],
                    error_detail,
                    error_detail.get("input", "N/A"),
                )
            )

        header = "Configuration Validation Failed:\n"
        separator = "-" * 60 + "\n"
        footer = (
            "\n\nTips:\n"
            "* Check the configuration file format (TOML or JSON)\n"
            "* Verify API credentials are not placeholder values\n"
            "* Use 'license-verifier create-config' to generate a sample file"
        )

        return header + separator + "\n".join(error_messages) + footer

    @staticmethod
    def _format_error_location(location: tuple) -> str:
        """Format the error location path."""
        if not location:
            return "Configuration"

        path_parts = []
        for part in location:
            if isinstance(part, str):
                path_parts.append(part)
            else:
                path_parts.append(f"[{part}]")

        return " -> ".join(path_parts)

    @staticmethod
    def _format_by_error_type(
        location: str, error_type: str, error_detail: dict, input_value
    ) -> str:
        """Format error message based on Pydantic error type."""
        if error_type == "missing":
            return f"x {location}: Required field is missing"

        if error_type in (
            "greater_than_equal",
            "less_than_equal",
            "greater_than",
            "less_than",
        ):
            ctx = error_detail.get("ctx", {})
            limit = next(iter(ctx.values()), "limit") if ctx else "limit"
            operator = {
                "greater_than_equal": ">=",
                "less_than_equal": "<=",
                "greater_than": ">",
                "less_than": "<",
            }[error_type]
            return f"x {location}: Value must be {operator} {limit} (got: {input_value})"

        if error_type == "literal_error":
            expected = error_detail.get("ctx", {}).get("expected", "valid option")
            return f"x {location}: Must be one of {expected} (got: {input_value})"

        msg = error_detail.get("msg", "Invalid configuration value")
        return f"x {location}: {msg} (got: {input_value})"


def format_config_error(error: Exception) -> str:
    """
    Format any configuration-related error into a user-friendly message.

    Args:
        error: Exception that occurred during configuration

    Returns:
        Formatted error message
    """
    if isinstance(error, ValidationError):
        return ConfigurationErrorFormatter.format_validation_error(error)

    if isinstance(error, FileNotFoundError):
        return (
            f"Configuration File Not Found:\n"
            f"x Could not find configuration file: {error.filename}\n\n"
            f"Solutions:\n"
            f"* Create a configuration file using: license-verifier create-config\n"
            f"* Use default configuration by omitting the --config parameter"
        )

    return f"Unexpected Configuration Error:\nx {error}"
