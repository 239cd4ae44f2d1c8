# =============================================================================
# app_mention events
# =============================================================================
# Ref: https://api.slack.com/events/app_mention
# =============================================================================

from dataclasses import dataclass, field
from typing import Any, Dict

from slackrouter.chain import FieldEquals, FieldRegexp


@dataclass
class AppMentionEvent:
    channel: str = ""
    user: str = ""
    text: str = ""
    ts: str = ""
    thread_ts: str = ""
    raw: Dict[str, Any] = field(default_factory=dict, repr=False)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AppMentionEvent":
        if not isinstance(data, dict):
            raise TypeError(f"expected an app_mention event object, got {type(data).__name__}")
        return cls(
            channel=data.get("channel") or "",
            user=data.get("user") or "",
            text=data.get("text") or "",
            ts=data.get("ts") or "",
            thread_ts=data.get("thread_ts") or "",
            raw=data,
        )


class InChannel(FieldEquals):
    """Matches mentions that happened in the given channel id."""
    field = "channel"


class TextRegexp(FieldRegexp):
    """Matches mentions whose text contains a match for the pattern."""
    field = "text"
