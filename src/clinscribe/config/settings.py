"""
Configuration management for the clinscribe pipeline.
"""

import logging
import os
from dataclasses import asdict, dataclass, field, fields
from typing import Any, Dict, List, Optional
import yaml

logger = logging.getLogger(__name__)


@dataclass
class CaptureConfig:
    """Audio capture configuration."""
    sample_rate: int = 16000
    channels: int = 1
    echo_cancellation: bool = True
    noise_suppression: bool = True
    segment_interval_ms: int = 20000
    policy: str = "delta"  # delta, cumulative
    backend: str = "sounddevice"  # sounddevice, mock
    device: Optional[str] = None  # sounddevice device name/index, None = system default


@dataclass
class ReasoningConfig:
    """External reasoning service configuration."""
    provider: str = "gemini"  # gemini, gemini_sdk, mock
    model: str = "gemini-2.5-flash"
    temperature: float = 0.0
    timeout_seconds: float = 60.0
    max_output_tokens: int = 8192


@dataclass
class PipelineConfig:
    """Stage behaviour configuration."""
    default_language: str = "English"
    context_max_utterances: int = 6
    context_max_chars: int = 1200
    max_latin_ratio: float = 0.25
    silence_rms_threshold: float = 200.0
    dictionary_path: str = "./config/dictionary.yaml"
    protocols_path: str = "./config/protocols.yaml"


@dataclass
class SecurityConfig:
    """Audit logging configuration."""
    enable_audit_logging: bool = True
    audit_log_path: Optional[str] = None  # None = audit entries go to the regular log only


_SECTIONS = {
    'capture': CaptureConfig,
    'reasoning': ReasoningConfig,
    'pipeline': PipelineConfig,
    'security': SecurityConfig,
}


class Settings:
    """Main configuration class."""

    def __init__(self, config_path: Optional[str] = None):
        self.config_path = config_path or os.getenv("CLINSCRIBE_CONFIG", "./config/config.yaml")

        # Default configurations
        self.capture = CaptureConfig()
        self.reasoning = ReasoningConfig()
        self.pipeline = PipelineConfig()
        self.security = SecurityConfig()

        # Application settings
        self.app_name = "clinscribe"
        self.log_level = os.getenv("LOG_LEVEL", "INFO")
        self.log_file: Optional[str] = os.getenv("LOG_FILE")

        # API Keys and Secrets (from environment variables)
        self.gemini_api_key = os.getenv("GEMINI_API_KEY")

        # Load configuration from file if it exists
        self._load_config()

        # Environment wins over the file
        if os.getenv("CLINSCRIBE_PROVIDER"):
            self.reasoning.provider = os.environ["CLINSCRIBE_PROVIDER"]

    @classmethod
    def from_dict(cls, config_dict: Dict[str, Any]) -> "Settings":
        """Build settings from a dictionary, ignoring any config file."""
        settings = cls(config_path=os.devnull)
        settings._update_from_dict(config_dict)
        return settings

    def _load_config(self):
        """Load configuration from YAML file."""
        if not os.path.isfile(self.config_path):
            return

        try:
            with open(self.config_path, 'r') as f:
                config_data = yaml.safe_load(f)
        except (OSError, yaml.YAMLError) as e:
            logger.warning(f"Could not load config file {self.config_path}: {e}")
            return

        if config_data:
            self._update_from_dict(config_data)

    def _update_from_dict(self, config_dict: Dict[str, Any]):
        """Update configuration from dictionary."""
        for section, values in config_dict.items():
            if section in _SECTIONS and isinstance(values, dict):
                config_obj = getattr(self, section)
                known = {f.name for f in fields(config_obj)}
                for key, value in values.items():
                    if key in known:
                        setattr(config_obj, key, value)
                    else:
                        logger.warning(f"Unknown setting {section}.{key} ignored")
            elif hasattr(self, section):
                # Set application-level configuration
                setattr(self, section, values)

    def to_dict(self) -> Dict[str, Any]:
        config_dict: Dict[str, Any] = {name: asdict(getattr(self, name)) for name in _SECTIONS}
        config_dict.update({
            'app_name': self.app_name,
            'log_level': self.log_level,
            'log_file': self.log_file,
        })
        return config_dict

    def save_config(self, path: Optional[str] = None):
        """Save current configuration to YAML file."""
        save_path = path or self.config_path
        directory = os.path.dirname(save_path)
        if directory:
            os.makedirs(directory, exist_ok=True)

        with open(save_path, 'w') as f:
            yaml.dump(self.to_dict(), f, default_flow_style=False, indent=2)

    def validate(self) -> List[str]:
        """Validate configuration settings; returns the list of problems found."""
        errors = []

        if self.reasoning.provider in ("gemini", "gemini_sdk") and not self.gemini_api_key:
            errors.append("GEMINI_API_KEY is required for the Gemini reasoning provider")

        if self.capture.policy not in ("delta", "cumulative"):
            errors.append(f"Unknown segment policy: {self.capture.policy}")

        if self.capture.backend not in ("sounddevice", "mock"):
            errors.append(f"Unknown capture backend: {self.capture.backend}")

        if self.capture.segment_interval_ms <= 0:
            errors.append("capture.segment_interval_ms must be positive")

        if not 0.0 <= self.pipeline.max_latin_ratio <= 1.0:
            errors.append("pipeline.max_latin_ratio must be between 0 and 1")

        for error in errors:
            logger.error(f"Configuration error: {error}")

        return errors


def configure_logging(settings: Settings) -> None:
    """Install the root logging configuration."""
    handlers: List[logging.Handler] = [logging.StreamHandler()]
    if settings.log_file:
        directory = os.path.dirname(settings.log_file)
        if directory:
            os.makedirs(directory, exist_ok=True)
        handlers.append(logging.FileHandler(settings.log_file))

    logging.basicConfig(
        level=getattr(logging, str(settings.log_level).upper(), logging.INFO),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=handlers,
    )
