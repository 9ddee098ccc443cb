from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional


ROOT_DIR = Path(__file__).resolve().parents[1]
ENV_PATH = ROOT_DIR / ".env"

PERIOD_COUNT = 3
DEFAULT_JWT_SECRET = "fallback-secret"
DEFAULT_CORS_ORIGINS = ["http://localhost:3000", "http://127.0.0.1:3000"]

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Settings:
    db_path: Path = Path("data/product_dashboard.db")
    jwt_secret: str = DEFAULT_JWT_SECRET
    jwt_expires_hours: int = 24
    cors_origins: List[str] = field(default_factory=lambda: list(DEFAULT_CORS_ORIGINS))
    max_upload_bytes: int = 10 * 1024 * 1024
    log_level: str = "INFO"


def load_local_env(path: Path = ENV_PATH) -> None:
    if not path.exists():
        return
    for raw in path.read_text(encoding="utf-8").splitlines():
        line = raw.strip()
        if not line or line.startswith("#") or "=" not in line:
            continue
        key, value = line.split("=", 1)
        key = key.strip()
        if not key:
            continue
        value = value.strip().strip("\"").strip("'")
        os.environ.setdefault(key, value)


def _parse_cors_origins(raw: Optional[str]) -> List[str]:
    if raw is None:
        return list(DEFAULT_CORS_ORIGINS)
    value = raw.strip() or "*"
    if value == "*":
        return ["*"]
    return [v.strip() for v in value.split(",") if v.strip()]


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError:
        logger.warning("Ignoring non-integer %s=%r, using %s", name, raw, default)
        return default


def load_settings(env_path: Optional[Path] = ENV_PATH) -> Settings:
    if env_path is not None:
        load_local_env(env_path)

    secret = os.getenv("JWT_SECRET", "").strip() or DEFAULT_JWT_SECRET
    if secret == DEFAULT_JWT_SECRET:
        logger.warning("JWT_SECRET is not configured; using the fallback secret")

    return Settings(
        db_path=Path(os.getenv("DASHBOARD_DB_PATH", "data/product_dashboard.db")),
        jwt_secret=secret,
        jwt_expires_hours=max(1, _env_int("JWT_EXPIRES_HOURS", 24)),
        cors_origins=_parse_cors_origins(os.getenv("BACKEND_CORS_ORIGINS")),
        max_upload_bytes=max(1, _env_int("MAX_UPLOAD_BYTES", 10 * 1024 * 1024)),
        log_level=(os.getenv("DASHBOARD_LOG_LEVEL", "INFO").strip().upper() or "INFO"),
    )
