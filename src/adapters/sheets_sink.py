"""Google Sheets sink adapter.

Implements the core TabularSinkPort on the first tab of an existing
spreadsheet. The destination is the spreadsheet id; the service account in
the credentials file must have edit access to it.
"""

from __future__ import annotations

import logging
from typing import Any, Optional, Sequence

from google.auth.exceptions import GoogleAuthError
from google.oauth2 import service_account
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError

from adapters.row_formatting import HEADER, record_to_row
from core.errors import SinkWriteError
from core.models import ParsedRecord

LOGGER = logging.getLogger(__name__)

SCOPES = ["https://www.googleapis.com/auth/spreadsheets"]
LAST_COLUMN = chr(ord("A") + len(HEADER) - 1)


def build_sheets_service(credentials_path: str) -> Any:
    """Create a Sheets v4 client from a service-account key file."""

    credentials = service_account.Credentials.from_service_account_file(credentials_path, scopes=SCOPES)
    return build("sheets", "v4", credentials=credentials, cache_discovery=False)


def a1_range(sheet_name: str, cells: str) -> str:
    """Return an A1 range, quoting the sheet name as the API requires."""

    escaped = sheet_name.replace("'", "''")
    return f"'{escaped}'!{cells}"


class GoogleSheetsSink:
    """Spreadsheet writer that satisfies the TabularSinkPort contract."""

    def __init__(
        self,
        service: Any = None,
        credentials_path: Optional[str] = None,
        sheet_name: Optional[str] = None,
    ) -> None:
        if service is None and not credentials_path:
            raise ValueError("GoogleSheetsSink needs a service or a credentials_path")
        self._service = service
        self._credentials_path = credentials_path
        self._sheet_name = sheet_name

    def write(self, records: Sequence[ParsedRecord], destination: str, append: bool = False) -> None:
        """Write records to the spreadsheet ``destination``.

        Create mode clears the tab and writes header plus rows. Append mode
        adds the header only when row 1 is empty, then appends the rows.
        """

        try:
            self._write(records, destination, append)
        except (HttpError, GoogleAuthError, OSError, ValueError) as error:
            raise SinkWriteError(f"Cannot write to spreadsheet {destination}: {error}") from error

    def _write(self, records: Sequence[ParsedRecord], spreadsheet_id: str, append: bool) -> None:
        service = self._get_service()
        sheet_name = self._resolve_sheet_name(service, spreadsheet_id)
        values = service.spreadsheets().values()
        rows = [record_to_row(record) for record in records]

        if append:
            response = values.get(
                spreadsheetId=spreadsheet_id,
                range=a1_range(sheet_name, f"A1:{LAST_COLUMN}1"),
            ).execute()
            if not response.get("values"):
                LOGGER.info("Sheet %s is empty, adding headers", sheet_name)
                rows.insert(0, list(HEADER))
        else:
            values.clear(spreadsheetId=spreadsheet_id, range=a1_range(sheet_name, "A:Z"), body={}).execute()
            rows.insert(0, list(HEADER))

        if not rows:
            return

        response = values.append(
            spreadsheetId=spreadsheet_id,
            range=a1_range(sheet_name, f"A:{LAST_COLUMN}"),
            valueInputOption="RAW",
            insertDataOption="INSERT_ROWS",
            body={"values": rows},
        ).execute()
        updated_range = response.get("updates", {}).get("updatedRange")
        LOGGER.info("Appended %s rows to Google Sheets (%s)", len(rows), updated_range)

    def _get_service(self) -> Any:
        if self._service is None:
            self._service = build_sheets_service(self._credentials_path)
        return self._service

    def _resolve_sheet_name(self, service: Any, spreadsheet_id: str) -> str:
        if self._sheet_name:
            return self._sheet_name
        response = service.spreadsheets().get(spreadsheetId=spreadsheet_id).execute()
        sheets = response.get("sheets") or []
        if not sheets:
            raise ValueError("No sheets found in spreadsheet")
        self._sheet_name = sheets[0]["properties"]["title"]
        LOGGER.info("Auto-detected sheet name: %s", self._sheet_name)
        return self._sheet_name
