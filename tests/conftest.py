"""Shared fixtures for the track handler tests."""

import json

import pytest


class FakeStore:
    """Records statements instead of running them."""

    def __init__(self, fail_with=None):
        self.calls = []
        self.fail_with = fail_with

    def execute(self, statement, params):
        if self.fail_with is not None:
            raise self.fail_with
        self.calls.append((statement, dict(params)))
        return 1


@pytest.fixture
def store():
    return FakeStore()


@pytest.fixture
def failing_store():
    def _make(exc):
        return FakeStore(fail_with=exc)

    return _make


@pytest.fixture
def make_event():
    """Builds an HTTP API (payload v2) event."""

    def _make(method="POST", body=None, headers=None, raw_body=None, is_base64=False):
        if raw_body is None and body is not None:
            raw_body = json.dumps(body)
        return {
            "version": "2.0",
            "routeKey": f"{method} /api/track",
            "rawPath": "/api/track",
            "headers": headers if headers is not None else {"content-type": "application/json"},
            "requestContext": {"http": {"method": method, "path": "/api/track"}},
            "body": raw_body,
            "isBase64Encoded": is_base64,
        }

    return _make
