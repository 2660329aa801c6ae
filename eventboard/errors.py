"""
Error taxonomy for the event board.

Every error carries the HTTP status and the public message that the API
renders as ``{"error": message}``. The original exception, when there is
one, is chained with ``raise ... from``.
"""

from __future__ import annotations


class EventBoardError(Exception):
    status_code = 500
    message = "Internal server error"

    def __init__(self, detail: str | None = None, *, message: str | None = None):
        super().__init__(detail or message or self.message)
        if message:
            self.message = message


class PrimaryStoreError(EventBoardError):
    """The primary store rejected or failed a request."""


class BackupStoreError(EventBoardError):
    """The backup document store failed a request."""


class CacheStoreError(EventBoardError):
    """The local SQL cache failed a request."""

    message = "Failed to access local database"


class BackendUnavailableError(EventBoardError):
    """Neither the primary store nor the backup could serve a read."""

    status_code = 503
    message = "Failed to fetch events"


class DriveAuthError(EventBoardError):
    """No usable Drive token: never connected, expired or revoked."""

    status_code = 401
    message = "Not connected to Google Drive"


class DriveExportError(EventBoardError):
    status_code = 500
    message = "Failed to save to Drive"


class OAuthExchangeError(EventBoardError):
    message = "Authentication failed"


class InvalidDeleteSecretError(EventBoardError):
    status_code = 403
    message = "Incorrect password"


class TokenStoreError(EventBoardError):
    """The server-side OAuth token store could not be reached."""

    status_code = 503
    message = "Session store unavailable"
