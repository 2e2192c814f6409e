#!/usr/bin/env python3
"""
Configuration management for the article extractor.

This module centralizes all configuration loading, validation, and management.
It handles environment variables, the optional secrets file, and the optional
strategies.yaml file that carries the retrieval strategy table and the
extraction scoring calibration.
"""

from os import environ, path, access, R_OK
from typing import Dict, Any, List, Optional
from logging import getLogger, basicConfig, StreamHandler, INFO, DEBUG, WARNING, ERROR
import sys
import yaml
from dotenv import load_dotenv

def _setup_global_logger():
    """Setup a single global logger for the entire application.

    Environment Variables:
        LOG_LEVEL: Set log level (DEBUG, INFO, WARNING, ERROR) - defaults to INFO
        LOG_TIMESTAMPS: Enable/disable timestamps in logs (true/false) - defaults to true

    The logger outputs to stdout with line buffering for real-time logging.
    All modules should use get_logger() to create module-specific loggers that inherit this configuration.
    """
    level_str = environ.get("LOG_LEVEL", "INFO").upper()
    level_map = {
        "DEBUG": DEBUG,
        "INFO": INFO,
        "WARNING": WARNING,
        "ERROR": ERROR
    }
    level = level_map.get(level_str, INFO)

    show_timestamps = environ.get("LOG_TIMESTAMPS", "true").lower() != "false"

    if show_timestamps:
        log_format = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    else:
        log_format = '%(name)s - %(levelname)s - %(message)s'

    basicConfig(
        level=level,
        format=log_format,
        handlers=[StreamHandler(sys.stdout)],
        force=True  # Force reconfiguration if already configured
    )

    # Reduce Azure SDK verbosity unless explicitly overridden
    azure_level = level_map.get(environ.get("AZURE_LOG_LEVEL", "WARNING").upper(), WARNING)
    for name in ("azure", "azure.core", "azure.monitor"):
        getLogger(name).setLevel(azure_level)

    return getLogger("ArticleExtractor")

def get_logger(name: str):
    """Get a module-specific logger with the unified configuration.

    Args:
        name: The logger name (e.g., "fetcher", "extractor", "classifier")

    Returns:
        A logger named "ArticleExtractor.{name}"
    """
    return getLogger(f"ArticleExtractor.{name}")

# Create single global logger instance
logger = _setup_global_logger()

DEFAULT_FAILURE_HINT = "Try again later, or open the original article in a new window."


class Config:
    """Configuration manager for the article extractor.

    Values are loaded from, in order of precedence:
    1. YAML secrets file (if SECRETS_FILE environment variable is set)
    2. .env file (if present)
    3. Environment variables
    4. strategies.yaml (strategy table, scoring weights, extraction thresholds)

    Example strategies.yaml:
    ```yaml
    strategies:
      - name: cors.lol
        template: "https://api.cors.lol/?url={url}"
      - name: jina-reader
        template: "https://r.jina.ai/{raw_url}"
    scoring:
      paragraph: 80
      sentence_cap: 40
    extraction:
      min_candidate_text: 200
    ```
    """

    def __init__(self):
        """Initialize configuration with environment variables and validation."""
        self._load_environment()
        self._validate_and_set_config()
        self._load_strategy_config()

    def _load_environment(self):
        """Load environment variables from .env file and secrets file if present."""
        dotenv_path = path.join(path.dirname(path.abspath(__file__)), '.env')
        if path.exists(dotenv_path):
            load_dotenv(dotenv_path)
            logger.info(f"Loaded environment variables from {dotenv_path}")

        self._load_secrets_file()

    def _validate_positive_int(self, env_var: str, default: int, min_val: int = 1) -> int:
        """Validate and parse a positive integer environment variable."""
        try:
            value = int(environ.get(env_var, str(default)))
            if value < min_val:
                logger.warning(f"{env_var} must be at least {min_val}, using default {default}")
                return default
            return value
        except (ValueError, TypeError):
            logger.warning(f"Invalid {env_var} value, using default {default}")
            return default

    def _validate_bool(self, env_var: str, default: bool) -> bool:
        raw = environ.get(env_var)
        if raw is None:
            return default
        return raw.strip().lower() in ("1", "true", "yes", "on")

    def _validate_and_set_config(self):
        """Validate and set all configuration values."""
        self.USER_AGENT = environ.get(
            "USER_AGENT",
            "Mozilla/5.0 (compatible; ArticleExtractor/1.0)",
        )

        # Race timing (milliseconds)
        self.ATTEMPT_TIMEOUT_MS = self._validate_positive_int("ATTEMPT_TIMEOUT_MS", 8000, 100)
        self.OVERALL_DEADLINE_MS = self._validate_positive_int("OVERALL_DEADLINE_MS", 12000, 100)
        if self.ATTEMPT_TIMEOUT_MS > self.OVERALL_DEADLINE_MS:
            logger.info(
                "ATTEMPT_TIMEOUT_MS (%s) exceeds OVERALL_DEADLINE_MS (%s); the deadline will cut attempts short",
                self.ATTEMPT_TIMEOUT_MS,
                self.OVERALL_DEADLINE_MS,
            )

        # Post-processing policy
        self.STRIP_IMAGES = self._validate_bool("STRIP_IMAGES", True)

        engine = environ.get("MARKDOWN_ENGINE", "lite").strip().lower()
        if engine not in ("lite", "markdown"):
            logger.warning(f"Unknown MARKDOWN_ENGINE '{engine}', using 'lite'")
            engine = "lite"
        self.MARKDOWN_ENGINE = engine

        self.HTML_PARSER = environ.get("HTML_PARSER", "html.parser").strip() or "html.parser"
        self.FAILURE_HINT = environ.get("FAILURE_HINT", DEFAULT_FAILURE_HINT)

        base_dir = path.dirname(path.abspath(__file__))
        self.STRATEGIES_CONFIG_PATH = environ.get(
            "STRATEGIES_CONFIG_PATH", path.join(base_dir, "strategies.yaml")
        )

    def _load_secrets_file(self):
        """Load environment variable overrides from a YAML secrets file.

        Expected YAML formats (both supported):
        ```yaml
        # Preferred: top-level mapping
        APPLICATIONINSIGHTS_CONNECTION_STRING: "InstrumentationKey=..."

        # Backward-compatible: nested under `environment`
        # environment:
        #   APPLICATIONINSIGHTS_CONNECTION_STRING: "InstrumentationKey=..."
        ```
        """
        secrets_file_path = environ.get("SECRETS_FILE")
        if not secrets_file_path:
            logger.debug("SECRETS_FILE not set; relying on environment/.env")
            return

        secrets_config = self._safe_read_yaml(secrets_file_path, 2 * 1024 * 1024, 'secrets')
        if secrets_config is None:
            return
        if not isinstance(secrets_config, dict):
            logger.warning(f"Secrets file {secrets_file_path} must be a YAML mapping at the top level")
            return

        env_vars = secrets_config
        if isinstance(secrets_config.get('environment'), dict):
            env_vars = secrets_config['environment']
            logger.debug(f"Using 'environment' section from secrets file {secrets_file_path}")

        secrets_loaded = 0
        for key, value in env_vars.items():
            if isinstance(key, str) and value is not None:
                environ[key] = str(value)
                secrets_loaded += 1
            else:
                logger.warning(f"Skipping invalid environment variable in secrets file: {key}")

        logger.info(f"Loaded {secrets_loaded} environment variables from secrets file {secrets_file_path}")

    def _safe_read_yaml(self, file_path: str, max_size: int, kind: str) -> Any | None:
        """Safely read a YAML file with consistent validation.

        Args:
            file_path: Path to the YAML file
            max_size: Maximum allowed file size in bytes
            kind: Short label for logging context (e.g. 'secrets', 'strategies')

        Returns:
            Parsed YAML (mapping/list/primitive) or None on failure.
        """
        try:
            if not path.isfile(file_path):
                logger.debug(f"{kind.capitalize()} file not found at {file_path}")
                return None
            if not access(file_path, R_OK):
                logger.error(f"No read permission for {kind} file at {file_path}")
                return None
            size = path.getsize(file_path)
            if size > max_size:
                logger.error(f"{kind.capitalize()} file too large: {size} bytes (limit: {max_size} bytes)")
                return None
            with open(file_path, 'r') as f:
                data = yaml.safe_load(f)
            if not data:
                logger.warning(f"Empty or invalid YAML in {kind} file {file_path}")
                return None
            return data
        except yaml.YAMLError as e:
            logger.error(f"Error parsing YAML in {kind} file {file_path}: {e}")
        except OSError as e:
            logger.error(f"Error loading {kind} file {file_path}: {e}")
        return None

    def _load_strategy_config(self) -> None:
        """Populate STRATEGY_ENTRIES, SCORING_OVERRIDES and EXTRACTION_OVERRIDES.

        Any failure results in empty values, which callers treat as "use the
        built-in defaults".
        """
        self.STRATEGY_ENTRIES: List[Dict[str, str]] = []
        self.SCORING_OVERRIDES: Dict[str, float] = {}
        self.EXTRACTION_OVERRIDES: Dict[str, int] = {}

        data = self._safe_read_yaml(self.STRATEGIES_CONFIG_PATH, 1024 * 1024, 'strategies')
        if not isinstance(data, dict):
            if data is not None:
                logger.warning(f"{self.STRATEGIES_CONFIG_PATH} must be a YAML mapping; using defaults")
            return

        strategies_section = data.get('strategies')
        if isinstance(strategies_section, list):
            for entry in strategies_section:
                if (
                    isinstance(entry, dict)
                    and isinstance(entry.get('name'), str)
                    and isinstance(entry.get('template'), str)
                    and entry['name'].strip()
                    and entry['template'].strip()
                ):
                    self.STRATEGY_ENTRIES.append({
                        'name': entry['name'].strip(),
                        'template': entry['template'].strip(),
                    })
                else:
                    logger.warning(f"Skipping invalid strategy entry: {entry}")
        elif strategies_section is not None:
            logger.warning("'strategies' must be a list of {name, template} mappings")

        self.SCORING_OVERRIDES = self._numeric_section(data.get('scoring'), 'scoring', float)
        self.EXTRACTION_OVERRIDES = self._numeric_section(data.get('extraction'), 'extraction', int)

        logger.info(
            "Loaded %d strategies, %d scoring overrides, %d extraction overrides from %s",
            len(self.STRATEGY_ENTRIES),
            len(self.SCORING_OVERRIDES),
            len(self.EXTRACTION_OVERRIDES),
            self.STRATEGIES_CONFIG_PATH,
        )

    def _numeric_section(self, section: Any, label: str, cast) -> Dict[str, Any]:
        if section is None:
            return {}
        if not isinstance(section, dict):
            logger.warning(f"'{label}' section must be a mapping; ignoring")
            return {}
        values = {}
        for key, raw in section.items():
            try:
                values[str(key)] = cast(raw)
            except (TypeError, ValueError):
                logger.warning(f"Invalid {label}.{key} value '{raw}'; ignoring")
        return values

    def reload_strategy_config(self, config_path: Optional[str] = None):
        """Reload the strategy table and scoring calibration from disk."""
        if config_path:
            self.STRATEGIES_CONFIG_PATH = config_path
        logger.info("Reloading strategy configuration")
        self._load_strategy_config()

    def get_config_summary(self) -> Dict[str, Any]:
        """Get a summary of current configuration for logging/debugging."""
        return {
            "attempt_timeout_ms": self.ATTEMPT_TIMEOUT_MS,
            "overall_deadline_ms": self.OVERALL_DEADLINE_MS,
            "strip_images": self.STRIP_IMAGES,
            "markdown_engine": self.MARKDOWN_ENGINE,
            "html_parser": self.HTML_PARSER,
            "strategy_count": len(self.STRATEGY_ENTRIES),
            "scoring_overrides": dict(self.SCORING_OVERRIDES),
            "extraction_overrides": dict(self.EXTRACTION_OVERRIDES),
            "secrets_file_configured": bool(environ.get("SECRETS_FILE")),
        }

# Global configuration instance
config = Config()
