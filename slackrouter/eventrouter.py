# =============================================================================
# Events API Router
# =============================================================================
# Dispatches Events API requests to registered handlers.
# Ref: https://api.slack.com/apis/connections/events-api
#
# Usage:
#     router = Router(signing_secret=os.environ["SLACK_SIGNING_SECRET"])
#
#     @router.message(message.TextRegexp(r"deploy"))
#     def handle_deploy(event: message.MessageEvent, context):
#         ...
#
#     router.on_reaction_added(handle_issue, reaction.Name("issue"), reaction.Channel("C123"))
#
#     lambda_handler = router.lambda_handler
# =============================================================================

import logging
from collections.abc import Mapping
from typing import Any, Callable, Optional

from slackrouter import events
from slackrouter.chain import Handler, Predicate, build
from slackrouter.dispatch import BaseRouter, Key
from slackrouter.envelope import Envelope, EnvelopeKind, parse_envelope
from slackrouter.errors import HttpError, is_not_interested
from slackrouter.events import appratelimited, urlverification
from slackrouter.events.appmention import AppMentionEvent
from slackrouter.events.message import MessageEvent
from slackrouter.events.reaction import ReactionEvent
from slackrouter.transport import HttpRequest, HttpResponse

logger = logging.getLogger(__name__)

RATE_LIMITED_ACK = "OK"


def _typed(view: Callable[[Any], Any], handler: Handler) -> Handler:
    """Adapt a handler of a typed inner event into an envelope handler."""
    def adapter(envelope: Envelope, context: Any = None) -> Any:
        try:
            payload = view(envelope.inner_event)
        except (TypeError, ValueError) as e:
            raise HttpError(400, str(e)) from e
        return handler(payload, context)

    adapter.__name__ = getattr(handler, "__name__", "handler")
    adapter.__doc__ = getattr(handler, "__doc__", None)
    return adapter


class Router(BaseRouter):
    """
    Router for Events API requests.

    Handlers may raise NotInterested to let the next handler (and finally the
    fallback) process the event, or HttpError to respond with a given status.
    Any other exception results in 500.

    When more than one handler is registered for an event type, the first
    registered takes precedence.
    """

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self._url_verification_handler: Handler = urlverification.default_handler
        self._app_rate_limited_handler: Handler = appratelimited.default_handler

    # =========================================================================
    # REGISTRATION
    # =========================================================================

    def on(self, event_type: Key, handler: Handler, *predicates: Predicate) -> Handler:
        """Register a handler that receives the whole Envelope for `event_type`.

        Prefer the event-specific `on_*` methods where one exists.
        """
        self._register(event_type, build(handler, *predicates))
        return handler

    def on_message(self, handler: Handler, *predicates: Predicate) -> Handler:
        """Register a handler for `message` events; predicates from `events.message`."""
        self.on(events.MESSAGE, _typed(MessageEvent.from_dict, build(handler, *predicates)))
        return handler

    def on_app_mention(self, handler: Handler, *predicates: Predicate) -> Handler:
        """Register a handler for `app_mention` events; predicates from `events.appmention`."""
        self.on(events.APP_MENTION, _typed(AppMentionEvent.from_dict, build(handler, *predicates)))
        return handler

    def on_reaction_added(self, handler: Handler, *predicates: Predicate) -> Handler:
        """Register a handler for `reaction_added` events; predicates from `events.reaction`."""
        self.on(events.REACTION_ADDED, _typed(ReactionEvent.from_dict, build(handler, *predicates)))
        return handler

    def on_reaction_removed(self, handler: Handler, *predicates: Predicate) -> Handler:
        """Register a handler for `reaction_removed` events; predicates from `events.reaction`."""
        self.on(events.REACTION_REMOVED, _typed(ReactionEvent.from_dict, build(handler, *predicates)))
        return handler

    def set_url_verification_handler(self, handler: Handler) -> None:
        """Replace the default challenge-echo handler.

        The handler receives a URLVerificationEvent and returns the mapping
        serialized as the JSON response body.
        """
        self._url_verification_handler = handler

    def set_app_rate_limited_handler(self, handler: Handler) -> None:
        """Replace the default handler, which logs app_rate_limited events."""
        self._app_rate_limited_handler = handler

    # Decorator forms

    def event(self, event_type: Key, *predicates: Predicate):
        def decorator(func: Handler) -> Handler:
            return self.on(event_type, func, *predicates)
        return decorator

    def message(self, *predicates: Predicate):
        def decorator(func: Handler) -> Handler:
            return self.on_message(func, *predicates)
        return decorator

    def app_mention(self, *predicates: Predicate):
        def decorator(func: Handler) -> Handler:
            return self.on_app_mention(func, *predicates)
        return decorator

    def reaction_added(self, *predicates: Predicate):
        def decorator(func: Handler) -> Handler:
            return self.on_reaction_added(func, *predicates)
        return decorator

    def reaction_removed(self, *predicates: Predicate):
        def decorator(func: Handler) -> Handler:
            return self.on_reaction_removed(func, *predicates)
        return decorator

    # =========================================================================
    # REQUEST HANDLING
    # =========================================================================

    def _serve_http(self, request: HttpRequest, context: Any) -> HttpResponse:
        try:
            body = request.read_body()
        except (OSError, ValueError) as e:
            return self._respond_with_error(HttpError(400, f"failed to read request body: {e}"))

        try:
            envelope = parse_envelope(body)
            logger.info(f"Received envelope type={envelope.type} inner_type={envelope.inner_type}")

            if envelope.type == EnvelopeKind.URL_VERIFICATION:
                return self._handle_url_verification(envelope, context)
            if envelope.type == EnvelopeKind.CALLBACK_EVENT:
                return self._handle_callback_event(envelope, context)
            if envelope.type == EnvelopeKind.APP_RATE_LIMITED:
                return self._handle_app_rate_limited(body, context)
            raise HttpError(400, f"unknown event type: {envelope.type}")
        except Exception as e:
            return self._respond_with_error(e)

    def _handle_url_verification(self, envelope: Envelope, context: Any) -> HttpResponse:
        event = urlverification.URLVerificationEvent.from_envelope(envelope)
        result = self._url_verification_handler(event, context)
        if not isinstance(result, Mapping):
            raise TypeError(
                f"url_verification handler must return a mapping, got {type(result).__name__}"
            )
        return HttpResponse.json(dict(result))

    def _handle_callback_event(self, envelope: Envelope, context: Any) -> HttpResponse:
        self._dispatch(envelope.inner_type, envelope, context)
        return HttpResponse(status_code=200)

    def _handle_app_rate_limited(self, body: bytes, context: Any) -> HttpResponse:
        event = appratelimited.parse(body)
        try:
            self._app_rate_limited_handler(event, context)
        except Exception as e:
            if not is_not_interested(e):
                raise
        return HttpResponse.text(RATE_LIMITED_ACK)


def new_router(
    signing_secret: Optional[str] = None,
    insecure_skip_verification: bool = False,
    verbose_response: bool = False,
) -> Router:
    """Convenience constructor mirroring `interactionrouter.new_router`."""
    return Router(
        signing_secret=signing_secret,
        insecure_skip_verification=insecure_skip_verification,
        verbose_response=verbose_response,
    )
