"""
Track handler — POST /api/track receives one client-side analytics event and
stores it as a single row. Failures other than a bad event name are logged and
answered with 204 so instrumentation never surfaces errors to the page.
"""
import json
import logging
import os
from functools import lru_cache

from analytics_event import AnalyticsEvent, InvalidEvent, InvalidProperties, get_header, parse_body
from rds_store import DatastoreNotConfigured, RdsDataStore, insert_event

logger = logging.getLogger()
logger.setLevel(os.environ.get("LOG_LEVEL", "INFO"))

ALLOWED_ORIGIN = os.environ.get("ALLOWED_ORIGIN", "https://scalefinder.studio")
DEV_ORIGIN_PREFIX = os.environ.get("DEV_ORIGIN_PREFIX", "http://localhost")

ALLOWED_METHODS = "POST, OPTIONS"


def cors_headers(origin) -> dict:
    origin = origin or ""
    allowed = origin == ALLOWED_ORIGIN or origin.startswith(DEV_ORIGIN_PREFIX)
    return {
        "Access-Control-Allow-Origin": origin if allowed else ALLOWED_ORIGIN,
        "Access-Control-Allow-Methods": ALLOWED_METHODS,
        "Access-Control-Allow-Headers": "Content-Type",
    }


def _json_response(status: int, payload: dict, headers: dict) -> dict:
    return {
        "statusCode": status,
        "headers": {**headers, "Content-Type": "application/json"},
        "body": json.dumps(payload, separators=(",", ":")),
    }


def _empty_response(status: int, headers: dict) -> dict:
    return {"statusCode": status, "headers": headers, "body": ""}


def _request_method(event) -> str:
    # HTTP API payload v2, then REST / payload v1
    http = (event.get("requestContext") or {}).get("http") or {}
    return (http.get("method") or event.get("httpMethod") or "").upper()


def handle_request(event, store) -> dict:
    headers = event.get("headers") or {}
    method = _request_method(event)
    cors = cors_headers(get_header(headers, "origin"))

    if method == "OPTIONS":
        return _empty_response(200, cors)

    if method != "POST":
        logger.warning(f"Rejected {method or 'unknown'} request")
        return _json_response(405, {"error": "Method not allowed"}, {**cors, "Allow": ALLOWED_METHODS})

    try:
        parsed = parse_body(event.get("body"), bool(event.get("isBase64Encoded")))
        if not parsed.ok:
            logger.error(f"Analytics error: {parsed.error}")
            return _empty_response(204, cors)

        try:
            tracked = AnalyticsEvent.from_payload(parsed.payload, headers)
        except InvalidEvent:
            return _json_response(400, {"error": "Invalid event"}, cors)
        except InvalidProperties:
            return _json_response(400, {"error": "Invalid properties"}, cors)

        logger.info(f"Tracking event: {tracked.event_name}")
        if store is None:
            raise DatastoreNotConfigured("no datastore bound to this invocation")
        insert_event(store, tracked)

        return _json_response(200, {"ok": True}, cors)
    except Exception:
        logger.exception("Analytics error")
        return _empty_response(204, cors)


@lru_cache(maxsize=1)
def _default_store():
    # One store per execution environment, reused across warm invocations
    return RdsDataStore.from_env()


def handler(event, context):
    store = None
    try:
        store = _default_store()
    except Exception as e:
        logger.error(f"Datastore unavailable: {e}")
    return handle_request(event, store)
