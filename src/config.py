"""
AppConfig: Immutable application configuration.

This module contains ONLY static configuration that doesn't change during execution.
Runtime state belongs in PipelineState (see state.py), the HistoryStore
(see history.py) and ChatSession (see assistant.py).

Design principles:
- Frozen dataclasses prevent accidental mutation
- Configuration loaded once at startup
- Environment variables can override config file values
- No global mutable state
"""

import os
import json
from dataclasses import dataclass, field
from typing import FrozenSet

from logging_utils import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class PathConfig:
    """Immutable path configuration."""
    root_dir: str
    src_dir: str
    inputs_dir: str
    data_dir: str
    logs_dir: str
    store_path: str

    @classmethod
    def from_defaults(cls, root_dir: str | None = None) -> "PathConfig":
        """Create PathConfig with default paths based on root directory."""
        src_dir = os.path.dirname(os.path.abspath(__file__))
        if root_dir is None:
            root_dir = os.path.dirname(src_dir)

        data_dir = os.path.join(root_dir, "data")
        return cls(
            root_dir=root_dir,
            src_dir=src_dir,
            inputs_dir=os.path.join(root_dir, "inputs"),
            data_dir=data_dir,
            logs_dir=os.path.join(root_dir, "logs"),
            store_path=os.path.join(data_dir, "structura_store.json"),
        )


@dataclass(frozen=True)
class LLMConfig:
    """Immutable LLM configuration."""
    base_url: str
    analysis_model: str
    chat_model: str
    simulation_model: str
    speech_model: str = "gpt-4o-mini-tts"
    speech_voice: str = "alloy"
    temperature: float = 0.7
    max_retries: int = 1
    timeout: float = 120.0

    @classmethod
    def from_env(cls) -> "LLMConfig":
        """Create LLMConfig from environment variables."""
        analysis_model = os.environ.get("ANALYSIS_MODEL_NAME") or "google/gemini-1.5-pro-latest"
        return cls(
            base_url=os.environ.get("OPENAI_BASE_URL") or "https://openrouter.ai/api/v1",
            analysis_model=analysis_model,
            chat_model=os.environ.get("CHAT_MODEL_NAME") or analysis_model,
            simulation_model=os.environ.get("SIMULATION_MODEL_NAME") or analysis_model,
            speech_model=os.environ.get("SPEECH_MODEL_NAME") or "gpt-4o-mini-tts",
            speech_voice=os.environ.get("SPEECH_VOICE", "alloy"),
            temperature=float(os.environ.get("LLM_TEMPERATURE", "0.7")),
            max_retries=int(os.environ.get("LLM_MAX_RETRIES", "1")),
            timeout=float(os.environ.get("LLM_TIMEOUT", "120")),
        )


@dataclass(frozen=True)
class EngineeringConstants:
    """Immutable enumerations accepted by the design and education operations."""

    building_codes: FrozenSet[str] = field(default_factory=lambda: frozenset({
        "ACI", "BS", "UPC",
    }))

    explanation_levels: FrozenSet[str] = field(default_factory=lambda: frozenset({
        "beginner", "intermediate", "advanced",
    }))

    # Helper methods for string formatting (for prompts and error messages)
    def building_codes_str(self) -> str:
        return ", ".join(sorted(self.building_codes))

    def explanation_levels_str(self) -> str:
        return ", ".join(sorted(self.explanation_levels))


@dataclass(frozen=True)
class AppConfig:
    """
    Complete immutable application configuration.

    This is the single source of truth for all static configuration.
    Create once at startup and pass to functions that need it.
    """
    paths: PathConfig
    llm: LLMConfig
    engineering: EngineeringConstants = EngineeringConstants()

    # Model output language and user-facing fallbacks
    response_language: str = "Arabic"
    chat_error_message: str = "عذراً، لقد واجهت خطأ. يرجى المحاولة مرة أخرى في وقت لاحق."
    not_specified_marker: str = "غير محدد"

    # History persistence
    history_slot: str = "analysisHistory"

    # Input validation (enforced by the CLI and HTTP layers)
    min_description_length: int = 10


def load_config(config_path: str | None = None) -> AppConfig:
    """
    Load configuration from JSON file and environment variables.

    Priority: Environment variables > Config file > Defaults

    Args:
        config_path: Path to JSON config file. If None, uses default location.

    Returns:
        Immutable AppConfig instance.
    """
    paths = PathConfig.from_defaults()

    if config_path is None:
        config_path = os.path.join(paths.inputs_dir, "structura_config.json")

    config_data = {}
    if os.path.exists(config_path):
        try:
            with open(config_path, 'r', encoding='utf-8') as f:
                config_data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.warning(f"Failed to load config from {config_path}: {e}")

    # Set environment variables from config (env vars take priority)
    _set_env_if_not_exists("OPENAI_API_KEY", config_data.get("OPENAI_API_KEY", ""))
    _set_env_if_not_exists("OPENAI_BASE_URL", config_data.get("OPENAI_BASE_URL", ""))
    _set_env_if_not_exists("ANALYSIS_MODEL_NAME", config_data.get("ANALYSIS_MODEL_NAME", ""))
    _set_env_if_not_exists("CHAT_MODEL_NAME", config_data.get("CHAT_MODEL_NAME", ""))
    _set_env_if_not_exists("SIMULATION_MODEL_NAME", config_data.get("SIMULATION_MODEL_NAME", ""))
    _set_env_if_not_exists("SPEECH_MODEL_NAME", config_data.get("SPEECH_MODEL_NAME", ""))

    store_path = config_data.get("store_path", paths.store_path)
    if store_path != paths.store_path:
        paths = PathConfig(
            root_dir=paths.root_dir,
            src_dir=paths.src_dir,
            inputs_dir=paths.inputs_dir,
            data_dir=os.path.dirname(os.path.abspath(store_path)),
            logs_dir=paths.logs_dir,
            store_path=store_path,
        )

    defaults = AppConfig(paths=paths, llm=LLMConfig.from_env())

    return AppConfig(
        paths=paths,
        llm=defaults.llm,
        response_language=config_data.get("response_language", defaults.response_language),
        chat_error_message=config_data.get("chat_error_message", defaults.chat_error_message),
        not_specified_marker=config_data.get("not_specified_marker", defaults.not_specified_marker),
        history_slot=config_data.get("history_slot", defaults.history_slot),
        min_description_length=config_data.get("min_description_length", defaults.min_description_length),
    )


def _set_env_if_not_exists(key: str, value: str) -> None:
    """Set environment variable only if not already set and value is non-empty."""
    if key not in os.environ or not os.environ[key]:
        if value:
            os.environ[key] = value


def ensure_directories(config: AppConfig) -> None:
    """Ensure all required directories exist."""
    directories = [
        config.paths.data_dir,
        config.paths.logs_dir,
    ]
    for directory in directories:
        if not os.path.exists(directory):
            os.makedirs(directory)
            logger.info(f"Created directory: {directory}")
