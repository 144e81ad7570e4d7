"""Server configuration via environment variables."""

from __future__ import annotations

import os

from pydantic import BaseModel, Field, field_validator


def _resolve_tracing_enabled(flag_value: str, tracking_uri: str) -> bool:
    """Derive tracing_enabled from env vars.

    - ``SANDBOX_TRACING_ENABLED=false`` → always disabled (explicit opt-out).
    - Anything else → enabled when ``MLFLOW_TRACKING_URI`` is non-empty.
    """
    if flag_value.lower() == "false":
        return False
    return bool(tracking_uri)


class ServerConfig(BaseModel):
    """Runtime configuration resolved from environment."""

    debounce_ms: int = Field(default=500)
    max_operations: int = Field(default=250_000)
    max_call_depth: int = Field(default=64)
    entry_component: str = Field(default="MyComposition")
    default_width: int = Field(default=1920)
    default_height: int = Field(default=1080)
    default_fps: int = Field(default=30)
    default_duration_frames: int = Field(default=90)
    max_render_frames: int = Field(default=120)
    tracing_enabled: bool = Field(default=False)
    mlflow_tracking_uri: str = Field(default="")
    mlflow_experiment_name: str = Field(default="remotion-sandbox-mcp")

    @field_validator(
        "debounce_ms",
        "max_operations",
        "max_call_depth",
        "default_width",
        "default_height",
        "default_fps",
        "default_duration_frames",
        "max_render_frames",
    )
    @classmethod
    def validate_positive_ints(cls, value: int) -> int:
        if value < 1:
            raise ValueError("Configuration values must be >= 1")
        return value

    @field_validator("entry_component")
    @classmethod
    def validate_entry_component(cls, value: str) -> str:
        name = value.strip()
        if not name.isidentifier():
            raise ValueError(f"entry_component must be a valid identifier, got '{value}'")
        return name

    @property
    def debounce_seconds(self) -> float:
        return self.debounce_ms / 1000

    @classmethod
    def from_env(cls) -> ServerConfig:
        """Build config from environment variables."""
        return cls(
            debounce_ms=int(os.getenv("SANDBOX_DEBOUNCE_MS", "500")),
            max_operations=int(os.getenv("SANDBOX_MAX_OPERATIONS", "250000")),
            max_call_depth=int(os.getenv("SANDBOX_MAX_CALL_DEPTH", "64")),
            entry_component=os.getenv("SANDBOX_ENTRY_COMPONENT", "MyComposition"),
            default_width=int(os.getenv("SANDBOX_DEFAULT_WIDTH", "1920")),
            default_height=int(os.getenv("SANDBOX_DEFAULT_HEIGHT", "1080")),
            default_fps=int(os.getenv("SANDBOX_DEFAULT_FPS", "30")),
            default_duration_frames=int(os.getenv("SANDBOX_DEFAULT_DURATION_FRAMES", "90")),
            max_render_frames=int(os.getenv("SANDBOX_MAX_RENDER_FRAMES", "120")),
            tracing_enabled=_resolve_tracing_enabled(
                os.getenv("SANDBOX_TRACING_ENABLED", ""),
                os.getenv("MLFLOW_TRACKING_URI", ""),
            ),
            mlflow_tracking_uri=os.getenv("MLFLOW_TRACKING_URI", ""),
            mlflow_experiment_name=os.getenv("MLFLOW_EXPERIMENT_NAME", "remotion-sandbox-mcp"),
        )


# Singleton, initialised on first access.
_config: ServerConfig | None = None


def get_config() -> ServerConfig:
    """Return the global config singleton, creating it on first access.

    Loads ``~/.config/remotion-sandbox-mcp/.env`` before reading env vars.
    Process environment always takes precedence over the config file.
    """
    global _config
    if _config is None:
        import logging

        from .dotenv import load_dotenv

        injected = load_dotenv()
        if injected:
            logger = logging.getLogger(__name__)
            logger.info(
                "Loaded %d var(s) from config: %s",
                len(injected),
                ", ".join(injected.keys()),
            )
        _config = ServerConfig.from_env()
    return _config


def update_config(**overrides: object) -> ServerConfig:
    """Patch the live config."""
    global _config
    cfg = get_config()
    data = cfg.model_dump()
    data.update({k: v for k, v in overrides.items() if v is not None})
    _config = ServerConfig(**data)
    return _config


def reset_config() -> None:
    """Drop the singleton so the next ``get_config()`` re-reads the environment."""
    global _config
    _config = None
