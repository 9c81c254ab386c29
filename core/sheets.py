from __future__ import annotations

import json
import logging
import random
import socket
import time
from typing import Any, Callable, List, Optional, Protocol

import httplib2
from google.auth.exceptions import GoogleAuthError
from google.oauth2.service_account import Credentials
from googleapiclient.discovery import build
from googleapiclient.errors import Error as GoogleApiClientError
from googleapiclient.errors import HttpError

from core.config import Settings
from core.parsers import as_str


logger = logging.getLogger(__name__)

SCOPES = [
    "https://www.googleapis.com/auth/spreadsheets.readonly",
    "https://www.googleapis.com/auth/drive.metadata.readonly",
]
RETRYABLE_STATUS = {429, 500, 502, 503, 504}
INITIAL_BACKOFF = 0.5

RawSheet = List[List[Any]]


class SheetSourceError(Exception):
    """Transport failure while reading from the spreadsheet service."""


class SheetSource(Protocol):
    def fetch_range(self, a1_range: str) -> RawSheet: ...

    def fetch_last_modified(self) -> Optional[str]: ...


def execute_with_retry(func: Callable[[], Any], operation: str, max_retries: int = 3) -> Any:
    """Run an API call with backoff on retryable failures.

    Every transport failure surfaces as ``SheetSourceError``.
    """
    for attempt in range(max_retries):
        try:
            return func()
        except HttpError as exc:
            status = getattr(exc.resp, "status", None)
            if status not in RETRYABLE_STATUS or attempt == max_retries - 1:
                raise SheetSourceError(f"{operation} failed: HTTP {status}") from exc
            reason = f"HTTP {status}"
        except (TimeoutError, socket.timeout) as exc:
            if attempt == max_retries - 1:
                raise SheetSourceError(f"{operation} timed out") from exc
            reason = "timeout"
        except httplib2.ServerNotFoundError as exc:
            # DNS lookups fail transiently
            if attempt == max_retries - 1:
                raise SheetSourceError(f"{operation} failed: {exc}") from exc
            reason = "server not found"
        except (GoogleAuthError, GoogleApiClientError, httplib2.HttpLib2Error, OSError) as exc:
            raise SheetSourceError(f"{operation} failed: {exc}") from exc
        wait = INITIAL_BACKOFF * (2**attempt) + random.random() * 0.1
        logger.warning("%s: %s (attempt %d/%d), retrying in %.2fs", operation, reason, attempt + 1, max_retries, wait)
        time.sleep(wait)
    raise SheetSourceError(f"{operation} failed")


class GoogleSheetSource:
    """Read-only access to one spreadsheet through the Sheets and Drive APIs."""

    def __init__(self, settings: Settings):
        settings.validate()
        self.settings = settings
        self._sheets = None
        self._drive = None

    def _credentials(self) -> Credentials:
        if self.settings.credentials_json:
            info = json.loads(self.settings.credentials_json)
            return Credentials.from_service_account_info(info, scopes=SCOPES)
        return Credentials.from_service_account_file(self.settings.credentials_path, scopes=SCOPES)

    def _services(self):
        if self._sheets is None or self._drive is None:
            creds = self._credentials()
            self._sheets = build("sheets", "v4", credentials=creds, cache_discovery=False)
            self._drive = build("drive", "v3", credentials=creds, cache_discovery=False)
        return self._sheets, self._drive

    def fetch_range(self, a1_range: str) -> RawSheet:
        sheets, _ = self._services()
        request = sheets.spreadsheets().values().get(spreadsheetId=self.settings.spreadsheet_id, range=a1_range)
        result = execute_with_retry(request.execute, f"fetch_range({a1_range})", self.settings.fetch_max_retries)
        return result.get("values") or []

    def fetch_last_modified(self) -> Optional[str]:
        _, drive = self._services()
        request = drive.files().get(
            fileId=self.settings.spreadsheet_id,
            fields="modifiedTime",
            supportsAllDrives=True,
        )
        result = execute_with_retry(request.execute, "fetch_last_modified", self.settings.fetch_max_retries)
        return result.get("modifiedTime")


def fetch_meta_label(source: SheetSource, cell: str = "_meta!B1") -> Optional[str]:
    """Curated "last updated" text kept in a single cell, returned as written."""
    values = source.fetch_range(cell)
    if not values or not values[0]:
        return None
    return as_str(values[0][0]) or None
