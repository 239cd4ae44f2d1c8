# =============================================================================
# message events
# =============================================================================
# Ref: https://api.slack.com/events/message
# =============================================================================

from dataclasses import dataclass, field
from typing import Any, Dict

from slackrouter.chain import FieldEquals, FieldRegexp


@dataclass
class MessageEvent:
    """A `message` event (any subtype)."""
    channel: str = ""
    user: str = ""
    text: str = ""
    subtype: str = ""
    ts: str = ""
    thread_ts: str = ""
    channel_type: str = ""
    bot_id: str = ""
    raw: Dict[str, Any] = field(default_factory=dict, repr=False)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "MessageEvent":
        if not isinstance(data, dict):
            raise TypeError(f"expected a message event object, got {type(data).__name__}")
        return cls(
            channel=data.get("channel") or "",
            user=data.get("user") or "",
            text=data.get("text") or "",
            subtype=data.get("subtype") or "",
            ts=data.get("ts") or "",
            thread_ts=data.get("thread_ts") or "",
            channel_type=data.get("channel_type") or "",
            bot_id=data.get("bot_id") or "",
            raw=data,
        )


class TextRegexp(FieldRegexp):
    """Matches messages whose text contains a match for the pattern."""
    field = "text"


class Channel(FieldEquals):
    """Matches messages posted to the given channel id."""
    field = "channel"


class SubType(FieldEquals):
    """Matches messages with the given subtype (e.g. "bot_message")."""
    field = "subtype"
