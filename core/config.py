from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv


class ConfigurationError(Exception):
    """Raised when the spreadsheet id or the service-account credentials are missing."""


def _env_int(name: str, default: int) -> int:
    try:
        return int(os.getenv(name, default))
    except (TypeError, ValueError):
        return default


def _env_float(name: str, default: float) -> float:
    try:
        return float(os.getenv(name, default))
    except (TypeError, ValueError):
        return default


@dataclass(frozen=True)
class Settings:
    spreadsheet_id: str = ""
    credentials_path: str = ""
    credentials_json: str = ""
    port: int = 8787
    cors_origins: List[str] = field(default_factory=lambda: ["*"])
    default_territory: str = "RJ"
    catalog_range: str = "catalogo!A:Z"
    meta_cell: str = "_meta!B1"
    fetch_timeout: float = 15.0
    fetch_max_retries: int = 3
    log_level: str = "INFO"

    @property
    def credentials_file_exists(self) -> bool:
        return bool(self.credentials_path) and Path(self.credentials_path).is_file()

    def validate(self) -> None:
        if not self.spreadsheet_id:
            raise ConfigurationError("SPREADSHEET_ID is not set")
        if self.credentials_json:
            return
        if not self.credentials_path:
            raise ConfigurationError("GOOGLE_APPLICATION_CREDENTIALS is not set")
        if not self.credentials_file_exists:
            raise ConfigurationError(f"Credentials file not found: {self.credentials_path}")


def load_settings(env_file: Optional[str] = None) -> Settings:
    load_dotenv(env_file)
    origins = [o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",") if o.strip()]
    return Settings(
        spreadsheet_id=os.getenv("SPREADSHEET_ID", "").strip(),
        credentials_path=os.getenv("GOOGLE_APPLICATION_CREDENTIALS", "").strip(),
        credentials_json=os.getenv("GOOGLE_SERVICE_ACCOUNT_JSON", "").strip(),
        port=_env_int("PORT", 8787),
        cors_origins=origins or ["*"],
        default_territory=os.getenv("DEFAULT_TERRITORY", "RJ").strip() or "RJ",
        catalog_range=os.getenv("CATALOG_RANGE", "catalogo!A:Z").strip() or "catalogo!A:Z",
        meta_cell=os.getenv("META_CELL", "_meta!B1").strip() or "_meta!B1",
        fetch_timeout=_env_float("FETCH_TIMEOUT", 15.0),
        fetch_max_retries=max(1, _env_int("FETCH_MAX_RETRIES", 3)),
        log_level=os.getenv("LOG_LEVEL", "INFO").strip().upper() or "INFO",
    )


def configure_logging(level: str = "INFO") -> None:
    root = logging.getLogger()
    if any(getattr(h, "_dashboard_handler", False) for h in root.handlers):
        root.setLevel(level)
        return
    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s"))
    handler._dashboard_handler = True  # type: ignore[attr-defined]
    root.addHandler(handler)
    root.setLevel(level)
