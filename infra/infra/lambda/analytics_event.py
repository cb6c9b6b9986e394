"""
Analytics event model — reads the request body and normalizes one tracked event
into the row stored in analytics_events.
"""
import base64
import binascii
import json
from dataclasses import dataclass
from typing import Any, Optional

MAX_EVENT_NAME_LENGTH = 100

UNKNOWN = "unknown"

# Hoisted into their own columns, never kept in the properties blob
HOISTED_KEYS = ("session_id", "user_id")

COUNTRY_HEADERS = ("cf-ipcountry", "cloudfront-viewer-country")


class InvalidEvent(ValueError):
    pass


class InvalidProperties(ValueError):
    pass


@dataclass(frozen=True)
class ParseResult:
    """Outcome of reading a request body: either a decoded payload or an error."""

    payload: Any = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None


def parse_body(raw, is_base64: bool = False) -> ParseResult:
    if not raw:
        return ParseResult(error="empty body")

    if is_base64:
        try:
            raw = base64.b64decode(raw, validate=True)
        except (binascii.Error, ValueError) as e:
            return ParseResult(error=f"invalid base64 body: {e}")

    try:
        payload = json.loads(raw, parse_constant=_reject_constant)
    except ValueError as e:
        return ParseResult(error=f"invalid JSON body: {e}")

    # `null` cannot be destructured into event/properties
    if payload is None:
        return ParseResult(error="null body")

    return ParseResult(payload=payload)


def _reject_constant(name):
    # NaN, Infinity and -Infinity are not JSON
    raise ValueError(f"non-finite number {name}")


def get_header(headers, name: str, default=None):
    """Case-insensitive header lookup (HTTP API v2 lowercases, REST v1 does not)."""
    if not headers:
        return default
    wanted = name.lower()
    for key, value in headers.items():
        if key.lower() == wanted:
            return value
    return default


def _as_text(value) -> str:
    if isinstance(value, str):
        return value
    return json.dumps(value, separators=(",", ":"), allow_nan=False)


def _is_set(value) -> bool:
    # JS truthiness: empty objects and arrays count as set
    return value not in (None, "", 0, False)


def _utf16_length(text: str) -> int:
    # Browsers measure string length in UTF-16 code units
    return len(text.encode("utf-16-le", "surrogatepass")) // 2


@dataclass(frozen=True)
class AnalyticsEvent:
    event_name: str
    session_id: str
    user_id: Optional[str]
    properties: str
    user_agent: str
    country: str

    @classmethod
    def from_payload(cls, payload, headers=None) -> "AnalyticsEvent":
        if not isinstance(payload, dict):
            raise InvalidEvent("body is not a JSON object")

        event_name = payload.get("event")
        if not event_name or not isinstance(event_name, str) or _utf16_length(event_name) > MAX_EVENT_NAME_LENGTH:
            raise InvalidEvent("event must be a non-empty string of at most 100 UTF-16 code units")

        properties = payload.get("properties")
        if properties is None:
            properties = {}
        elif not isinstance(properties, dict):
            raise InvalidProperties("properties must be a JSON object")

        session_id = properties.get("session_id")
        user_id = properties.get("user_id")
        extra = {k: v for k, v in properties.items() if k not in HOISTED_KEYS}

        country = None
        for name in COUNTRY_HEADERS:
            country = get_header(headers, name)
            if country:
                break

        return cls(
            event_name=event_name,
            session_id=_as_text(session_id) if _is_set(session_id) else UNKNOWN,
            user_id=_as_text(user_id) if _is_set(user_id) else None,
            properties=json.dumps(extra, separators=(",", ":"), allow_nan=False),
            user_agent=get_header(headers, "user-agent") or "",
            country=country or UNKNOWN,
        )

    def as_row(self) -> tuple:
        return (
            self.event_name,
            self.session_id,
            self.user_id,
            self.properties,
            self.user_agent,
            self.country,
        )
