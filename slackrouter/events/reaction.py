# =============================================================================
# reaction_added / reaction_removed events
# =============================================================================
# Ref: https://api.slack.com/events/reaction_added
#      https://api.slack.com/events/reaction_removed
#
# Both events share one shape, so one view type and one set of predicates
# serve handlers registered for either.
# =============================================================================

from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from slackrouter.chain import FieldEquals, FieldRegexp


@dataclass
class ReactionItem:
    """The item a reaction was added to or removed from."""
    type: str = ""
    channel: str = ""
    ts: str = ""
    file: str = ""
    message_text: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ReactionItem":
        data = data if isinstance(data, dict) else {}
        message = data.get("message")
        text = message.get("text") if isinstance(message, dict) else None
        return cls(
            type=data.get("type") or "",
            channel=data.get("channel") or "",
            ts=data.get("ts") or "",
            file=data.get("file") or "",
            message_text=text if isinstance(text, str) else None,
        )


@dataclass
class ReactionEvent:
    type: str = ""
    user: str = ""
    reaction: str = ""
    item_user: str = ""
    event_ts: str = ""
    item: ReactionItem = field(default_factory=ReactionItem)
    raw: Dict[str, Any] = field(default_factory=dict, repr=False)

    @property
    def channel(self) -> str:
        return self.item.channel

    @property
    def message_text(self) -> Optional[str]:
        return self.item.message_text

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ReactionEvent":
        if not isinstance(data, dict):
            raise TypeError(f"expected a reaction event object, got {type(data).__name__}")
        return cls(
            type=data.get("type") or "",
            user=data.get("user") or "",
            reaction=data.get("reaction") or "",
            item_user=data.get("item_user") or "",
            event_ts=data.get("event_ts") or "",
            item=ReactionItem.from_dict(data.get("item")),
            raw=data,
        )


class Name(FieldEquals):
    """Matches reactions with the given emoji name (without colons)."""
    field = "reaction"


class Channel(FieldEquals):
    """Matches reactions to items in the given channel id."""
    field = "channel"


class MessageTextRegexp(FieldRegexp):
    """Matches reactions to messages whose text contains a match for the pattern.

    Reactions to items without an attached message never match.
    """
    field = "message_text"
