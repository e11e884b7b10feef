"""
Google Calendar client used to book the requested visit or meeting.

Only event creation is needed. Access tokens come from a stored OAuth
refresh token and are cached until shortly before they expire.
"""

from datetime import timedelta
from typing import Any, Dict, Optional

import httpx

from app.config import settings
from app.logging import setup_logger
from app.services.types import CalendarEventRequest, CalendarResult
from app.utils import utcnow

GOOGLE_TOKEN_URL = "https://oauth2.googleapis.com/token"
CALENDAR_API_BASE_URL = "https://www.googleapis.com/calendar/v3"
REQUEST_TIMEOUT = 10.0
# Refresh this long before the reported expiry
TOKEN_EXPIRY_MARGIN = timedelta(seconds=60)


class GoogleCalendarError(Exception):
    """Raised when Google rejects a token or calendar request."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class GoogleCalendarService:
    def __init__(
        self,
        client_id: Optional[str] = None,
        client_secret: Optional[str] = None,
        refresh_token: Optional[str] = None,
        calendar_id: Optional[str] = None,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        self.logger = setup_logger(__name__)
        self.client_id = client_id or settings.GOOGLE_CLIENT_ID
        self.client_secret = client_secret or settings.GOOGLE_CLIENT_SECRET
        self.refresh_token = refresh_token or settings.GOOGLE_REFRESH_TOKEN
        self.calendar_id = calendar_id or settings.GOOGLE_CALENDAR_ID
        self._client = http_client or httpx.AsyncClient(
            timeout=httpx.Timeout(REQUEST_TIMEOUT)
        )
        self._access_token: Optional[str] = None
        self._token_expires_at = None

    @property
    def is_configured(self) -> bool:
        return bool(self.client_id and self.client_secret and self.refresh_token)

    async def close(self) -> None:
        await self._client.aclose()

    async def create_event(self, request: CalendarEventRequest) -> CalendarResult:
        """
        Create a calendar event for the requested slot.

        Args:
            request: Summary, description, local start time and optional attendee

        Returns:
            CalendarResult with ``ok`` False and the error text on failure
        """
        if not self.is_configured:
            self.logger.warning("Google Calendar is not configured, skipping event")
            return CalendarResult(ok=False, error="calendar not configured")

        end = request.start + timedelta(minutes=settings.CALENDAR_EVENT_MINUTES)
        event: Dict[str, Any] = {
            "summary": request.summary,
            "description": request.description,
            "start": {
                "dateTime": request.start.isoformat(),
                "timeZone": settings.CALENDAR_TIMEZONE,
            },
            "end": {
                "dateTime": end.isoformat(),
                "timeZone": settings.CALENDAR_TIMEZONE,
            },
            "reminders": {
                "useDefault": False,
                "overrides": [
                    {"method": "email", "minutes": 24 * 60},
                    {"method": "popup", "minutes": 60},
                ],
            },
        }
        if request.attendee:
            event["attendees"] = [{"email": request.attendee}]

        try:
            access_token = await self._get_access_token()
            response = await self._client.post(
                f"{CALENDAR_API_BASE_URL}/calendars/{self.calendar_id}/events",
                headers={"Authorization": f"Bearer {access_token}"},
                json=event,
            )
            if response.status_code >= 300:
                raise GoogleCalendarError(
                    f"Calendar API error: {response.text}", response.status_code
                )
            data = response.json()
        except (httpx.HTTPError, GoogleCalendarError, KeyError, ValueError) as e:
            self.logger.error(f"Failed to create calendar event: {e}")
            return CalendarResult(ok=False, error=str(e))

        self.logger.info(f"Created calendar event {data.get('id')}")
        return CalendarResult(
            ok=True, event_id=data.get("id"), event_link=data.get("htmlLink")
        )

    async def _get_access_token(self) -> str:
        if (
            self._access_token
            and self._token_expires_at
            and utcnow() < self._token_expires_at
        ):
            return self._access_token

        response = await self._client.post(
            GOOGLE_TOKEN_URL,
            data={
                "client_id": self.client_id,
                "client_secret": self.client_secret,
                "refresh_token": self.refresh_token,
                "grant_type": "refresh_token",
            },
        )
        if response.status_code != 200:
            raise GoogleCalendarError(
                f"Token refresh failed: {response.text}", response.status_code
            )

        data = response.json()
        self._access_token = data["access_token"]
        expires_in = int(data.get("expires_in", 3600))
        self._token_expires_at = (
            utcnow() + timedelta(seconds=expires_in) - TOKEN_EXPIRY_MARGIN
        )
        return self._access_token
