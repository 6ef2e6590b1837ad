"""Configuration and process-wide engine access for dashsync.

Explicit construction (``SyncEngine(SyncContext(...))``) is preferred; the
global accessors exist for hosts that want a single shared engine.
"""

from __future__ import annotations

import math
import os
import threading
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Any

from dashsync.errors import ConfigurationError

if TYPE_CHECKING:
    from dashsync.events.bus import SyncEngine

ENV_PREFIX = "DASHSYNC_"
TRUE_VALUES = ("1", "true", "yes", "on")


@dataclass
class SyncContext:
    """Engine configuration."""

    # Periodic emission
    refresh_interval_ms: int = 30_000
    metrics_interval_ms: int = 5_000
    auto_refresh: bool = False

    # Instrumentation
    refresh_window_s: float = 60.0

    # Logging
    log_level: str = "INFO"
    log_json: bool = False
    log_dir: Path | None = None

    def __post_init__(self):
        if self.refresh_interval_ms <= 0:
            raise ConfigurationError("refresh_interval_ms must be > 0")
        if self.metrics_interval_ms <= 0:
            raise ConfigurationError("metrics_interval_ms must be > 0")
        if not math.isfinite(self.refresh_window_s) or self.refresh_window_s <= 0:
            raise ConfigurationError("refresh_window_s must be a finite number > 0")

    @classmethod
    def from_env(cls, base_dir: Path | None = None) -> SyncContext:
        """Load configuration from config/sync.env and DASHSYNC_* variables.

        Environment variables override values from the file.

        Args:
            base_dir: Directory holding config/sync.env (cwd if not provided)

        Returns:
            SyncContext instance
        """
        if base_dir is None:
            base_dir = Path(os.environ.get(f"{ENV_PREFIX}BASE_DIR", Path.cwd()))

        values = cls._load_env_file(base_dir / "config" / "sync.env")
        values.update(
            {k: v for k, v in os.environ.items() if k.startswith(ENV_PREFIX)}
        )

        log_dir = values.get(f"{ENV_PREFIX}LOG_DIR")
        return cls(
            refresh_interval_ms=_int(values, "REFRESH_INTERVAL_MS", 30_000),
            metrics_interval_ms=_int(values, "METRICS_INTERVAL_MS", 5_000),
            auto_refresh=_bool(values, "AUTO_REFRESH", False),
            refresh_window_s=_float(values, "REFRESH_WINDOW_S", 60.0),
            log_level=values.get(f"{ENV_PREFIX}LOG_LEVEL", "INFO").upper(),
            log_json=_bool(values, "LOG_JSON", False),
            log_dir=Path(log_dir) if log_dir else None,
        )

    @staticmethod
    def _load_env_file(env_file: Path) -> dict[str, str]:
        """Load a KEY=value env file."""
        if not env_file.exists():
            return {}

        values: dict[str, str] = {}
        for line in env_file.read_text().splitlines():
            line = line.strip()
            if not line or line.startswith("#"):
                continue
            if line.startswith("export "):
                line = line[7:]
            if "=" in line:
                key, value = line.split("=", 1)
                values[key.strip()] = value.strip().strip('"').strip("'")

        return values

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["log_dir"] = str(self.log_dir) if self.log_dir else None
        return data


def _int(values: dict[str, str], name: str, default: int) -> int:
    raw = values.get(f"{ENV_PREFIX}{name}")
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise ConfigurationError(f"{ENV_PREFIX}{name} must be an integer, got {raw!r}") from None


def _float(values: dict[str, str], name: str, default: float) -> float:
    raw = values.get(f"{ENV_PREFIX}{name}")
    if raw is None or raw == "":
        return default
    try:
        return float(raw)
    except ValueError:
        raise ConfigurationError(f"{ENV_PREFIX}{name} must be a number, got {raw!r}") from None


def _bool(values: dict[str, str], name: str, default: bool) -> bool:
    raw = values.get(f"{ENV_PREFIX}{name}")
    if raw is None or raw == "":
        return default
    return raw.lower() in TRUE_VALUES


# Global engine instance
_engine: SyncEngine | None = None
_engine_lock = threading.Lock()


def get_context() -> SyncContext:
    """Get the global engine's context (loaded from the environment)."""
    return get_engine().context


def get_engine() -> SyncEngine:
    """Get or create the global engine instance."""
    global _engine
    with _engine_lock:
        if _engine is None:
            from dashsync.events.bus import SyncEngine

            _engine = SyncEngine(SyncContext.from_env())
        return _engine


def reset_engine() -> None:
    """Dispose and drop the global engine (for testing)."""
    global _engine
    with _engine_lock:
        if _engine is not None:
            _engine.dispose()
        _engine = None
