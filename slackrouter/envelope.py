# =============================================================================
# Envelope - Events API Outer Payload
# =============================================================================
# Every Events API request body is a JSON object whose "type" discriminates
# the outer envelope:
# - url_verification -> endpoint ownership handshake (echo the challenge)
# - event_callback   -> an application event nested under "event"
# - app_rate_limited -> Slack stopped delivering events for a minute
# Ref: https://api.slack.com/apis/connections/events-api
# =============================================================================

import json
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional, Union

from slackrouter.errors import EnvelopeParseError

logger = logging.getLogger(__name__)


class EnvelopeKind(str, Enum):
    """Outer envelope types sent by the Events API."""
    URL_VERIFICATION = "url_verification"
    CALLBACK_EVENT = "event_callback"
    APP_RATE_LIMITED = "app_rate_limited"


@dataclass
class Envelope:
    """
    Decoded Events API envelope.

    Attributes:
        type: Outer discriminant (see EnvelopeKind); unknown values are kept
        inner_type: "type" of the nested event for event_callback envelopes
        inner_event: The nested event object, as decoded from JSON
        challenge: Challenge string of url_verification envelopes
        team_id: Workspace the event belongs to
        api_app_id: App the event was delivered to
        event_id: Unique id of an event_callback delivery
        raw: The complete decoded body
    """
    type: str
    inner_type: str = ""
    inner_event: Dict[str, Any] = field(default_factory=dict)
    challenge: Optional[str] = None
    team_id: str = ""
    api_app_id: str = ""
    event_id: str = ""
    raw: Dict[str, Any] = field(default_factory=dict)

    @property
    def is_url_verification(self) -> bool:
        return self.type == EnvelopeKind.URL_VERIFICATION

    @property
    def is_callback_event(self) -> bool:
        return self.type == EnvelopeKind.CALLBACK_EVENT

    @property
    def is_app_rate_limited(self) -> bool:
        return self.type == EnvelopeKind.APP_RATE_LIMITED

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.type,
            "innerType": self.inner_type,
            "teamId": self.team_id,
            "apiAppId": self.api_app_id,
            "eventId": self.event_id,
        }


def decode_json_object(body: Union[bytes, str], what: str = "request body") -> Dict[str, Any]:
    """Decode `body` as a JSON object or raise EnvelopeParseError."""
    try:
        data = json.loads(body)
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        raise EnvelopeParseError(f"malformed {what}: {e}") from None
    if not isinstance(data, dict):
        raise EnvelopeParseError(f"malformed {what}: expected a JSON object")
    return data


def parse_envelope(body: Union[bytes, str]) -> Envelope:
    """
    Decode a raw Events API body into an Envelope.

    Raises:
        EnvelopeParseError: body is not JSON, has no "type", or a known
            envelope type lacks its required fields
    """
    data = decode_json_object(body, "envelope")

    outer_type = data.get("type")
    if not isinstance(outer_type, str) or not outer_type:
        raise EnvelopeParseError("malformed envelope: missing \"type\"")

    envelope = Envelope(
        type=outer_type,
        team_id=str(data.get("team_id") or ""),
        api_app_id=str(data.get("api_app_id") or ""),
        event_id=str(data.get("event_id") or ""),
        raw=data,
    )

    if outer_type == EnvelopeKind.URL_VERIFICATION:
        challenge = data.get("challenge")
        if not isinstance(challenge, str):
            raise EnvelopeParseError("malformed url_verification: missing \"challenge\"")
        envelope.challenge = challenge

    elif outer_type == EnvelopeKind.CALLBACK_EVENT:
        inner = data.get("event")
        if not isinstance(inner, dict):
            raise EnvelopeParseError("malformed event_callback: missing \"event\" object")
        inner_type = inner.get("type")
        if not isinstance(inner_type, str) or not inner_type:
            raise EnvelopeParseError("malformed event_callback: missing event \"type\"")
        envelope.inner_event = inner
        envelope.inner_type = inner_type

    return envelope
