"""
Google OAuth hand-off and Drive export.
"""

from __future__ import annotations

import io
import json
import logging
import time
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional, Protocol

import httplib2
from google.auth.exceptions import RefreshError, TransportError
from google.oauth2.credentials import Credentials
from google_auth_oauthlib.flow import Flow
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError
from googleapiclient.http import MediaIoBaseUpload

from eventboard.errors import DriveAuthError, DriveExportError, OAuthExchangeError
from eventboard.session import DriveSession

logger = logging.getLogger(__name__)

SCOPES = [
    "https://www.googleapis.com/auth/drive.file",
    "https://www.googleapis.com/auth/userinfo.profile",
]
AUTH_URI = "https://accounts.google.com/o/oauth2/auth"
TOKEN_URI = "https://oauth2.googleapis.com/token"
FOLDER_MIME_TYPE = "application/vnd.google-apps.folder"


class DriveExporter(Protocol):
    def export(self, event_data: dict, token: Optional[dict]) -> str:
        ...


def export_file_name(event_data: dict, now_ms: Optional[int] = None) -> str:
    if now_ms is None:
        now_ms = int(time.time() * 1000)
    return f"{event_data.get('name') or 'event'}_{now_ms}.json"


def export_body(event_data: dict) -> bytes:
    return json.dumps(event_data, indent=2, ensure_ascii=False, default=str).encode(
        "utf-8"
    )


def token_from_credentials(creds: Credentials) -> dict:
    return {
        "token": creds.token,
        "refresh_token": creds.refresh_token,
        "token_uri": creds.token_uri or TOKEN_URI,
        "scopes": list(creds.scopes or SCOPES),
        "expiry": creds.expiry.isoformat() if creds.expiry else None,
    }


class GoogleOAuthClient:
    """Builds consent URLs and exchanges callback codes for tokens."""

    def __init__(self, client_id: str, client_secret: str, redirect_uri: str):
        self.client_id = client_id
        self.client_secret = client_secret
        self.redirect_uri = redirect_uri

    @property
    def client_config(self) -> dict:
        return {
            "web": {
                "client_id": self.client_id,
                "client_secret": self.client_secret,
                "auth_uri": AUTH_URI,
                "token_uri": TOKEN_URI,
                "redirect_uris": [self.redirect_uri],
            }
        }

    def _flow(self, state: Optional[str] = None) -> Flow:
        flow = Flow.from_client_config(self.client_config, scopes=SCOPES, state=state)
        flow.redirect_uri = self.redirect_uri
        return flow

    def authorization_url(self, session: DriveSession) -> str:
        flow = self._flow()
        url, state = flow.authorization_url(access_type="offline", prompt="consent")
        session.remember_oauth_handshake(state, getattr(flow, "code_verifier", None))
        return url

    def exchange_code(self, code: str, session: DriveSession) -> dict:
        state, verifier = session.pop_oauth_handshake()
        flow = self._flow(state=state)
        if verifier:
            flow.code_verifier = verifier
        try:
            flow.fetch_token(code=code)
        except Exception as exc:
            raise OAuthExchangeError(f"token exchange failed: {exc}") from exc
        token = token_from_credentials(flow.credentials)
        session.save_token(token)
        logger.info("Stored Google token for session %s", session.session_id)
        return token

    def credentials(self, token: dict) -> Credentials:
        expiry = None
        if token.get("expiry"):
            parsed = datetime.fromisoformat(token["expiry"])
            if parsed.tzinfo is not None:
                parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
            expiry = parsed
        return Credentials(
            token=token.get("token"),
            refresh_token=token.get("refresh_token"),
            token_uri=token.get("token_uri") or TOKEN_URI,
            client_id=self.client_id,
            client_secret=self.client_secret,
            scopes=token.get("scopes") or SCOPES,
            expiry=expiry,
        )


class GoogleDriveExporter:
    """
    Writes one JSON file per export into a fixed-name folder of the user's
    Drive. Re-exporting the same event creates another file.
    """

    def __init__(self, oauth: GoogleOAuthClient, folder_name: str = "Iftar Shondhane"):
        self.oauth = oauth
        self.folder_name = folder_name

    def _service(self, token: dict):
        creds = self.oauth.credentials(token)
        return build("drive", "v3", credentials=creds, cache_discovery=False)

    def _folder_query(self) -> str:
        escaped = self.folder_name.replace("\\", "\\\\").replace("'", "\\'")
        return (
            f"name = '{escaped}' and mimeType = '{FOLDER_MIME_TYPE}' "
            "and trashed = false"
        )

    def _find_or_create_folder(self, service) -> str:
        found = (
            service.files()
            .list(q=self._folder_query(), fields="files(id)", spaces="drive")
            .execute()
        )
        files = found.get("files") or []
        if files:
            return files[0]["id"]
        folder = (
            service.files()
            .create(
                body={"name": self.folder_name, "mimeType": FOLDER_MIME_TYPE},
                fields="id",
            )
            .execute()
        )
        logger.info("Created Drive folder %r", self.folder_name)
        return folder["id"]

    def export(self, event_data: dict, token: Optional[dict]) -> str:
        if not token:
            raise DriveAuthError("no Drive token in session")
        try:
            service = self._service(token)
            folder_id = self._find_or_create_folder(service)
            media = MediaIoBaseUpload(
                io.BytesIO(export_body(event_data)),
                mimetype="application/json",
                resumable=False,
            )
            created = (
                service.files()
                .create(
                    body={"name": export_file_name(event_data), "parents": [folder_id]},
                    media_body=media,
                    fields="id",
                )
                .execute()
            )
            return created["id"]
        except RefreshError as exc:
            raise DriveAuthError(f"token refresh failed: {exc}") from exc
        except HttpError as exc:
            if exc.resp is not None and exc.resp.status == 401:
                raise DriveAuthError(f"Drive rejected token: {exc}") from exc
            raise DriveExportError(f"Drive API error: {exc}") from exc
        except TransportError as exc:
            raise DriveExportError(f"Drive transport error: {exc}") from exc
        except (httplib2.HttpLib2Error, OSError) as exc:
            raise DriveExportError(f"Drive connection failed: {exc}") from exc
        except KeyError as exc:
            raise DriveExportError(f"malformed Drive response: missing {exc}") from exc


@dataclass
class InMemoryDriveExporter:
    """Test double. Set ``error`` to make every export raise it."""

    files: list = field(default_factory=list)
    error: Optional[Exception] = None

    def export(self, event_data: dict, token: Optional[dict]) -> str:
        if not token:
            raise DriveAuthError("no Drive token in session")
        if self.error is not None:
            raise self.error
        file_id = uuid.uuid4().hex
        self.files.append(
            {"id": file_id, "name": export_file_name(event_data), "data": dict(event_data)}
        )
        return file_id

    def reset(self) -> None:
        self.files.clear()
        self.error = None
