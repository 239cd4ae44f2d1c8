"""
Shared fixtures for the router test suite.

Requests are signed with a fixed secret at a fixed timestamp, and routers
are built with a clock frozen at that timestamp.
"""
import json
import os
import sys
from urllib.parse import urlencode

import pytest

# Add parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from slackrouter.signature import sign_headers
from slackrouter.transport import FORM_CONTENT_TYPE, HttpRequest

SECRET = "8f742231b10e8888abcd99yyyzzz85a5"
NOW = 1531420618


@pytest.fixture
def secret():
    return SECRET


@pytest.fixture
def now():
    return NOW


@pytest.fixture
def clock():
    return lambda: NOW


@pytest.fixture
def make_request():
    """Build an HttpRequest whose body is signed with SECRET at NOW."""
    def _make(body, secret=SECRET, timestamp=NOW, content_type="application/json",
              headers=None, signed=True):
        if isinstance(body, (dict, list)):
            body = json.dumps(body)
        request_headers = {"Content-Type": content_type}
        if signed:
            sign_headers(request_headers, secret, body, timestamp=timestamp)
        request_headers.update(headers or {})
        return HttpRequest.build(body=body, headers=request_headers)
    return _make


@pytest.fixture
def make_form_request(make_request):
    """Build a signed interaction request carrying `payload` as its form field."""
    def _make(payload, content_type=FORM_CONTENT_TYPE, **kwargs):
        if not isinstance(payload, str):
            payload = json.dumps(payload)
        return make_request(urlencode({"payload": payload}), content_type=content_type, **kwargs)
    return _make


@pytest.fixture
def events_router(clock):
    from slackrouter.eventrouter import Router
    return Router(signing_secret=SECRET, clock=clock)


@pytest.fixture
def interactions_router(clock):
    from slackrouter.interactionrouter import Router
    return Router(signing_secret=SECRET, clock=clock)


def callback_body(event, **extra):
    body = {
        "token": "XXYYZZ",
        "team_id": "T123ABC456",
        "api_app_id": "A123ABC456",
        "type": "event_callback",
        "event_id": "Ev123ABC456",
        "event_time": NOW,
        "event": event,
    }
    body.update(extra)
    return body


@pytest.fixture
def callback():
    """Wrap an inner event into an event_callback envelope."""
    return callback_body
