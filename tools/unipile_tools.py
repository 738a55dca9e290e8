"""Unipile email and calendar adapter.

Calls the Unipile REST API directly with requests (the official SDK is
JavaScript only). Every blocking call runs in a worker thread and is bounded
by the configured provider timeout.
"""
import asyncio
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import requests
from dateutil import parser as date_parser

from schemas.meeting import CalendarEvent, Email, EmailAddress
from settings import ProviderSettings
from tools.provider import ProviderError

logger = logging.getLogger(__name__)


def _parse_datetime(value: Any) -> Optional[datetime]:
    """Parse a provider timestamp.

    Calendar values arrive as an ISO string, {"date_time": ...} or {"date": ...}.
    Naive values are taken as UTC. Anything unparsable → None.
    """
    if isinstance(value, dict):
        value = value.get("date_time") or value.get("date")
    if not value:
        return None
    try:
        parsed = date_parser.isoparse(value)
    except (TypeError, ValueError):
        logger.debug("Unparsable provider timestamp: %r", value)
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _to_address(entry: Optional[Dict[str, Any]]) -> Optional[EmailAddress]:
    if not entry:
        return None
    email = entry.get("email") or entry.get("identifier")
    if not email:
        return None
    return EmailAddress(email=email, name=entry.get("name") or entry.get("display_name"))


def _to_email(item: Dict[str, Any]) -> Email:
    return Email(
        id=str(item.get("id", "")),
        subject=item.get("subject"),
        from_address=_to_address(item.get("from") or item.get("from_attendee")),
        to=[a for a in (_to_address(t) for t in item.get("to") or item.get("to_attendees") or []) if a],
        date=_parse_datetime(item.get("date")),
        body=item.get("body_plain") or item.get("body"),
    )


def _to_calendar_event(item: Dict[str, Any]) -> CalendarEvent:
    return CalendarEvent(
        id=str(item.get("id", "")),
        title=item.get("title") or item.get("summary"),
        start_time=_parse_datetime(item.get("start_time") or item.get("start")),
        end_time=_parse_datetime(item.get("end_time") or item.get("end")),
        attendees=[a for a in (_to_address(x) for x in item.get("attendees") or []) if a],
        description=item.get("description"),
        meeting_url=item.get("meeting_url"),
    )


class UnipileClient:
    """EmailProvider backed by one connected Unipile email account."""

    def __init__(self, settings: ProviderSettings):
        if not settings.configured:
            raise RuntimeError(
                "Unipile is not configured. Set UNIPILE_DSN, UNIPILE_API_KEY and UNIPILE_ACCOUNT_ID."
            )
        dsn = settings.dsn
        self.base_url = dsn if dsn.startswith("https://") else f"https://{dsn}"
        self.api_key = settings.api_key
        self.account_id = settings.account_id
        self.timeout = settings.timeout_seconds

    def _get(self, path: str, params: Dict[str, Any]) -> Dict[str, Any]:
        query = {"account_id": self.account_id}
        query.update({k: v for k, v in params.items() if v is not None})
        resp = requests.get(
            f"{self.base_url}{path}",
            headers={"X-API-KEY": self.api_key, "Accept": "application/json"},
            params=query,
            timeout=self.timeout,
        )
        resp.raise_for_status()
        return resp.json()

    async def _call(self, path: str, params: Dict[str, Any]) -> Dict[str, Any]:
        try:
            return await asyncio.wait_for(
                asyncio.to_thread(self._get, path, params), timeout=self.timeout
            )
        except asyncio.TimeoutError as exc:
            raise ProviderError(f"Unipile {path} timed out after {self.timeout}s") from exc
        except requests.RequestException as exc:
            raise ProviderError(f"Unipile {path} failed: {exc}") from exc
        except ValueError as exc:
            raise ProviderError(f"Unipile {path} returned invalid JSON") from exc

    async def get_emails(
        self,
        from_address: Optional[str] = None,
        to: Optional[str] = None,
        folder: Optional[str] = None,
        after: Optional[datetime] = None,
        limit: Optional[int] = None,
    ) -> List[Email]:
        data = await self._call(
            "/api/v1/emails",
            {
                "from": from_address,
                "to": to,
                "folder": folder,
                "after": after.isoformat() if after else None,
                "limit": limit,
            },
        )
        return [_to_email(item) for item in data.get("items", [])]

    async def get_email_thread(self, thread_id: str) -> List[Email]:
        data = await self._call("/api/v1/emails", {"thread_id": thread_id})
        return [_to_email(item) for item in data.get("items", [])]

    async def _primary_calendar_id(self) -> Optional[str]:
        data = await self._call("/api/v1/calendars", {})
        calendars = data.get("data") or data.get("items") or []
        primary = next((c for c in calendars if c.get("is_primary")), None)
        if primary is None and calendars:
            primary = calendars[0]
        return primary.get("id") if primary else None

    async def get_calendar_events(
        self, start: datetime, end: datetime, limit: int = 100
    ) -> List[CalendarEvent]:
        calendar_id = await self._primary_calendar_id()
        if not calendar_id:
            logger.info("No calendar found on Unipile account %s", self.account_id)
            return []
        data = await self._call(
            f"/api/v1/calendars/{calendar_id}/events",
            {"start": start.isoformat(), "end": end.isoformat(), "limit": limit},
        )
        return [_to_calendar_event(item) for item in data.get("data") or data.get("items") or []]
