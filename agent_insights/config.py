"""Agent Insights Configuration."""
import os
from pathlib import Path


def _env_bool(name: str, default: bool = False) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None:
        return default
    try:
        return int(value)
    except ValueError:
        return default


def _env_path(name: str, default: Path) -> Path:
    value = os.getenv(name)
    if not value:
        return default
    return Path(value).expanduser()


HOME_DIR = Path(os.getenv("HOME") or os.getenv("USERPROFILE") or ".").expanduser()

# Agent log roots
CLAUDE_ROOT = _env_path("AGENT_INSIGHTS_CLAUDE_ROOT", HOME_DIR / ".claude" / "projects")
CODEX_ROOT = _env_path("AGENT_INSIGHTS_CODEX_ROOT", HOME_DIR / ".codex" / "sessions")
GEMINI_ROOT = _env_path("AGENT_INSIGHTS_GEMINI_ROOT", HOME_DIR / ".gemini" / "tmp")

# Cache database
DB_PATH = _env_path("AGENT_INSIGHTS_DB_PATH", HOME_DIR / ".agent-insights" / "cache.db")

# Observability
OTEL_ENABLED = _env_bool("AGENT_INSIGHTS_OTEL_ENABLED", False)
OTEL_ENDPOINT = os.getenv("AGENT_INSIGHTS_OTEL_ENDPOINT", "http://localhost:4318")
OTEL_SERVICE_NAME = os.getenv("AGENT_INSIGHTS_OTEL_SERVICE_NAME", "agent-insights")
PROM_PORT = _env_int("AGENT_INSIGHTS_PROM_PORT", 9464)

# Startup + live updates
STARTUP_SCAN_ENABLED = _env_bool("AGENT_INSIGHTS_STARTUP_SCAN", True)
WATCHER_ENABLED = _env_bool("AGENT_INSIGHTS_WATCHER_ENABLED", True)
SUBSCRIBER_QUEUE_SIZE = max(1, _env_int("AGENT_INSIGHTS_SUBSCRIBER_QUEUE_SIZE", 100))

# Server settings
HOST = os.getenv("AGENT_INSIGHTS_HOST", "127.0.0.1")
PORT = _env_int("AGENT_INSIGHTS_PORT", 3001)

# CORS
FRONTEND_ORIGIN = os.getenv("AGENT_INSIGHTS_FRONTEND_ORIGIN", "http://localhost:5173")
