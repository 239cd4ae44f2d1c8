# =============================================================================
# Dispatch Core
# =============================================================================
# Shared by the Events API router and the interaction router:
# - construction-time validation of the signing configuration
# - an owned, append-only registry: key -> handlers in registration order
# - first-match-wins resolution with NotInterested fall-through and fallback
# - API Gateway entry point
#
# Registration is a setup-phase operation. Registries are not locked;
# registering handlers while requests are being served is not supported.
# =============================================================================

import logging
import time
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Union

from slackrouter.chain import Handler
from slackrouter.errors import HttpError, RouterConfigError, is_not_interested, respond_with_error
from slackrouter.signature import SigningMiddleware
from slackrouter.transport import HttpRequest, HttpResponse, MalformedEventError

logger = logging.getLogger(__name__)

Key = Union[str, Enum]


def registry_key(key: Key) -> str:
    """Registry keys are plain strings; str-based enums are reduced to their value."""
    if isinstance(key, Enum):
        return str(key.value)
    return str(key)


class BaseRouter:
    """
    Common router behaviour.

    Exactly one of `signing_secret` or `insecure_skip_verification` must be
    given. Skipping verification is meant for tests only.
    """

    def __init__(
        self,
        signing_secret: Optional[Union[str, bytes]] = None,
        insecure_skip_verification: bool = False,
        verbose_response: bool = False,
        clock: Callable[[], float] = time.time,
    ):
        if not signing_secret and not insecure_skip_verification:
            raise RouterConfigError(
                "signing_secret must be set, or you can ignore this by setting insecure_skip_verification"
            )
        if signing_secret and insecure_skip_verification:
            raise RouterConfigError("both signing_secret and insecure_skip_verification are given")

        self.verbose_response = verbose_response
        self._handlers: Dict[str, List[Handler]] = {}
        self._fallback: Optional[Handler] = None

        self._serve: Callable[[HttpRequest, Any], HttpResponse] = self._serve_http
        if not insecure_skip_verification:
            self._serve = SigningMiddleware(
                signing_secret,
                self._serve_http,
                verbose_response=verbose_response,
                clock=clock,
            )
        else:
            logger.warning(f"{type(self).__name__} created with signature verification disabled")

    # =========================================================================
    # REGISTRATION
    # =========================================================================

    def _register(self, key: Key, handler: Handler) -> None:
        self._handlers.setdefault(registry_key(key), []).append(handler)

    def set_fallback(self, handler: Optional[Handler]) -> None:
        """Set the handler called when no registered handler claims a payload.

        Setting it again replaces the previous fallback.
        """
        self._fallback = handler

    def handler_exists(self, key: Key) -> bool:
        return bool(self._handlers.get(registry_key(key)))

    def list_handlers(self) -> Dict[str, int]:
        """Number of handlers registered per key."""
        return {key: len(handlers) for key, handlers in self._handlers.items()}

    # =========================================================================
    # DISPATCH
    # =========================================================================

    def _dispatch(self, key: Key, payload: Any, context: Any) -> None:
        """
        Run the handlers registered for `key` until one does not decline.

        When all of them raise NotInterested (or none is registered), the
        fallback runs. A NotInterested from the fallback is swallowed: the
        payload was processed and nobody claimed it. Any other exception
        propagates and stops dispatch.
        """
        handlers = self._handlers.get(registry_key(key), [])
        for index, handler in enumerate(handlers):
            try:
                handler(payload, context)
                logger.info(f"Dispatched key={registry_key(key)} to handler #{index}")
                return
            except Exception as e:
                if not is_not_interested(e):
                    raise

        if self._fallback is None:
            logger.info(f"No handler claimed key={registry_key(key)} ({len(handlers)} registered)")
            return
        try:
            self._fallback(payload, context)
            logger.info(f"Dispatched key={registry_key(key)} to fallback")
        except Exception as e:
            if not is_not_interested(e):
                raise

    def _respond_with_error(self, exc: BaseException) -> HttpResponse:
        return respond_with_error(exc, self.verbose_response)

    # =========================================================================
    # ENTRY POINTS
    # =========================================================================

    def _serve_http(self, request: HttpRequest, context: Any) -> HttpResponse:
        raise NotImplementedError

    def serve(self, request: HttpRequest, context: Any = None) -> HttpResponse:
        """Process one request and return its single response.

        `context` is passed untouched to every predicate and handler.
        """
        return self._serve(request, context)

    __call__ = serve

    def lambda_handler(self, event: Dict[str, Any], context: Any = None) -> Dict[str, Any]:
        """API Gateway proxy entry point."""
        try:
            request = HttpRequest.from_api_gateway(event)
        except MalformedEventError as e:
            return self._respond_with_error(HttpError(400, str(e))).to_api_gateway()
        return self.serve(request, context).to_api_gateway()
