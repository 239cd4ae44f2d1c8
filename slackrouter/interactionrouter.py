# =============================================================================
# Interaction Router
# =============================================================================
# Dispatches interactivity requests (shortcuts, block actions, modal
# submissions ...) to registered handlers.
# Ref: https://api.slack.com/interactivity/handling#payloads
#
# Slack posts these as application/x-www-form-urlencoded with a single
# "payload" field holding the JSON callback.
#
# Usage:
#     router = Router(signing_secret=secret)
#
#     @router.interaction(InteractionType.BLOCK_ACTIONS, BlockAction("approve", "approve_button"))
#     def handle_approve(callback: InteractionCallback, context):
#         ...
# =============================================================================

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional
from urllib.parse import parse_qs

from slackrouter.chain import FieldEquals, Handler, Predicate, build
from slackrouter.dispatch import BaseRouter, Key, registry_key
from slackrouter.envelope import decode_json_object
from slackrouter.errors import EnvelopeParseError, HttpError
from slackrouter.transport import FORM_CONTENT_TYPE, HttpRequest, HttpResponse

logger = logging.getLogger(__name__)


class InteractionType(str, Enum):
    """Values of the callback "type" field."""
    SHORTCUT = "shortcut"
    MESSAGE_ACTION = "message_action"
    BLOCK_ACTIONS = "block_actions"
    BLOCK_SUGGESTION = "block_suggestion"
    VIEW_SUBMISSION = "view_submission"
    VIEW_CLOSED = "view_closed"
    INTERACTIVE_MESSAGE = "interactive_message"
    DIALOG_SUBMISSION = "dialog_submission"


# =============================================================================
# PAYLOAD
# =============================================================================

def _nested_id(data: Dict[str, Any], key: str) -> str:
    """Read `data[key]["id"]`, tolerating a missing or non-object value."""
    value = data.get(key)
    if isinstance(value, dict):
        return str(value.get("id") or "")
    return ""


@dataclass
class BlockActionItem:
    """One entry of the "actions" array of a block_actions callback."""
    action_id: str = ""
    block_id: str = ""
    type: str = ""
    value: str = ""
    action_ts: str = ""
    raw: Dict[str, Any] = field(default_factory=dict, repr=False)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "BlockActionItem":
        return cls(
            action_id=data.get("action_id") or "",
            block_id=data.get("block_id") or "",
            type=data.get("type") or "",
            value=data.get("value") or "",
            action_ts=data.get("action_ts") or "",
            raw=data,
        )


@dataclass
class InteractionCallback:
    """
    Decoded interaction payload.

    Attributes:
        type: Callback type (see InteractionType); unknown values are kept
        callback_id: Top-level callback_id, or the view's for modal callbacks
        channel_id: Channel the interaction happened in, if any
        block_actions: Parsed "actions" of block_actions callbacks
        raw: The complete decoded payload
    """
    type: str
    callback_id: str = ""
    trigger_id: str = ""
    team_id: str = ""
    user_id: str = ""
    channel_id: str = ""
    action_ts: str = ""
    response_url: str = ""
    view: Dict[str, Any] = field(default_factory=dict, repr=False)
    block_actions: List[BlockActionItem] = field(default_factory=list)
    raw: Dict[str, Any] = field(default_factory=dict, repr=False)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "InteractionCallback":
        callback_type = data.get("type")
        if not isinstance(callback_type, str) or not callback_type:
            raise EnvelopeParseError("malformed interaction payload: missing \"type\"")

        view = data.get("view") if isinstance(data.get("view"), dict) else {}
        callback_id = data.get("callback_id") or view.get("callback_id") or ""

        actions = data.get("actions")
        block_actions = []
        if callback_type == InteractionType.BLOCK_ACTIONS and isinstance(actions, list):
            block_actions = [BlockActionItem.from_dict(a) for a in actions if isinstance(a, dict)]

        return cls(
            type=callback_type,
            callback_id=str(callback_id),
            trigger_id=data.get("trigger_id") or "",
            team_id=_nested_id(data, "team"),
            user_id=_nested_id(data, "user"),
            channel_id=_nested_id(data, "channel"),
            action_ts=data.get("action_ts") or "",
            response_url=data.get("response_url") or "",
            view=view,
            block_actions=block_actions,
            raw=data,
        )


def find_block_action(
    callback: InteractionCallback, block_id: str, action_id: str
) -> Optional[BlockActionItem]:
    """Return the first block action with both ids matching, or None."""
    for action in callback.block_actions:
        if action.block_id == block_id and action.action_id == action_id:
            return action
    return None


def parse_payload(request: HttpRequest) -> InteractionCallback:
    """Decode the form-encoded body of an interaction request.

    Raises:
        HttpError: wrong Content-Type or missing payload field (400)
        EnvelopeParseError: the payload is not a JSON object with a "type"
    """
    if request.media_type != FORM_CONTENT_TYPE:
        raise HttpError(400, "unexpected Content-Type")

    try:
        raw = request.read_body()
    except (OSError, ValueError) as e:
        raise HttpError(400, f"failed to read request body: {e}") from e
    try:
        body = raw.decode("utf-8")
    except UnicodeDecodeError as e:
        raise EnvelopeParseError(f"malformed form body: {e}") from None

    form = parse_qs(body, keep_blank_values=True)
    payload = (form.get("payload") or [""])[0]
    if not payload:
        raise HttpError(400, "missing payload")

    return InteractionCallback.from_dict(decode_json_object(payload, "interaction payload"))


# =============================================================================
# PREDICATES
# =============================================================================

class Type(FieldEquals):
    """Matches callbacks of the given type."""
    field = "type"

    def __init__(self, expected: Key):
        super().__init__(registry_key(expected))


class CallbackID(FieldEquals):
    field = "callback_id"


class Channel(FieldEquals):
    """Matches interactions that happened in the given channel id."""
    field = "channel_id"


class BlockAction(Predicate):
    """Matches block_actions callbacks carrying the given block/action pair."""

    def __init__(self, block_id: str, action_id: str):
        self.block_id = block_id
        self.action_id = action_id

    def matches(self, payload: Any, context: Any) -> bool:
        return find_block_action(payload, self.block_id, self.action_id) is not None


# =============================================================================
# ROUTER
# =============================================================================

class Router(BaseRouter):
    """
    Router for interaction requests.

    Handlers receive an InteractionCallback. Resolution, NotInterested
    fall-through and the fallback behave as in the Events API router.
    """

    def on(self, interaction_type: Key, handler: Handler, *predicates: Predicate) -> Handler:
        """Register a handler for callbacks of `interaction_type`."""
        self._register(interaction_type, build(handler, *predicates))
        return handler

    def interaction(self, interaction_type: Key, *predicates: Predicate):
        def decorator(func: Handler) -> Handler:
            return self.on(interaction_type, func, *predicates)
        return decorator

    def _serve_http(self, request: HttpRequest, context: Any) -> HttpResponse:
        try:
            callback = parse_payload(request)
            logger.info(f"Received interaction type={callback.type} callback_id={callback.callback_id}")
            self._dispatch(callback.type, callback, context)
            return HttpResponse(status_code=200)
        except Exception as e:
            return self._respond_with_error(e)


def new_router(
    signing_secret: Optional[str] = None,
    insecure_skip_verification: bool = False,
    verbose_response: bool = False,
) -> Router:
    return Router(
        signing_secret=signing_secret,
        insecure_skip_verification=insecure_skip_verification,
        verbose_response=verbose_response,
    )
