# =============================================================================
# app_rate_limited envelopes
# =============================================================================
# Sent when an app exceeds 30,000 events per workspace per hour.
# Ref: https://api.slack.com/docs/rate-limits#rate-limits__events-api
#
# This envelope has no nested "event" object, so it is decoded from the raw
# body into its own shape instead of going through the generic envelope view.
# =============================================================================

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Union

from slackrouter.envelope import decode_json_object
from slackrouter.errors import EnvelopeParseError

logger = logging.getLogger(__name__)


@dataclass
class AppRateLimitedEvent:
    team_id: str
    minute_rate_limited: int
    api_app_id: str = ""
    token: str = ""
    raw: Dict[str, Any] = field(default_factory=dict, repr=False)


def parse(body: Union[bytes, str]) -> AppRateLimitedEvent:
    """Decode a raw app_rate_limited body.

    Raises:
        EnvelopeParseError: body is not an app_rate_limited object
    """
    data = decode_json_object(body, "app_rate_limited event")
    minute = data.get("minute_rate_limited")
    if isinstance(minute, bool) or not isinstance(minute, int):
        raise EnvelopeParseError("malformed app_rate_limited event: missing \"minute_rate_limited\"")
    return AppRateLimitedEvent(
        team_id=str(data.get("team_id") or ""),
        minute_rate_limited=minute,
        api_app_id=str(data.get("api_app_id") or ""),
        token=str(data.get("token") or ""),
        raw=data,
    )


def default_handler(event: AppRateLimitedEvent, context: Any = None) -> None:
    """Log the notification and otherwise ignore it."""
    logger.warning(
        f"Events API rate limited: team_id={event.team_id} "
        f"api_app_id={event.api_app_id} minute={event.minute_rate_limited}"
    )
