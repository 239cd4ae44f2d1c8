# =============================================================================
# Lambda Entry Point
# =============================================================================
# Maps API Gateway request paths to routers:
#   /slack/events        -> eventrouter.Router
#   /slack/interactions  -> interactionrouter.Router
#
# Usage (handler module of the function):
#     from slackrouter.app import build_api_handler
#     from slackrouter.deps import get_deps
#
#     events = eventrouter.Router(**get_deps().router_options())
#     events.on_message(handle_message)
#
#     lambda_handler = build_api_handler(events_router=events)
# =============================================================================

import logging
from typing import Any, Callable, Dict, Optional

from slackrouter.dispatch import BaseRouter
from slackrouter.transport import HttpRequest, HttpResponse, MalformedEventError

logger = logging.getLogger(__name__)

DEFAULT_EVENTS_PATH = "/slack/events"
DEFAULT_INTERACTIONS_PATH = "/slack/interactions"

LambdaHandler = Callable[[Dict[str, Any], Any], Dict[str, Any]]


def _normalize_path(path: str) -> str:
    return "/" + path.strip("/")


def build_api_handler(
    events_router: Optional[BaseRouter] = None,
    interactions_router: Optional[BaseRouter] = None,
    events_path: str = DEFAULT_EVENTS_PATH,
    interactions_path: str = DEFAULT_INTERACTIONS_PATH,
) -> LambdaHandler:
    """
    Create an API Gateway proxy handler serving both routers.

    Requests to an unknown path, or to a path whose router was not given,
    get 404. Trailing slashes are ignored when matching paths.

    Args:
        events_router: Router for Events API requests
        interactions_router: Router for interaction requests
        events_path: Path the Events API request URL points at
        interactions_path: Path the interactivity request URL points at

    Returns:
        lambda_handler(event, context)
    """
    routes = {
        _normalize_path(events_path): events_router,
        _normalize_path(interactions_path): interactions_router,
    }

    def lambda_handler(event: Dict[str, Any], context: Any = None) -> Dict[str, Any]:
        try:
            request = HttpRequest.from_api_gateway(event)
        except MalformedEventError as e:
            logger.warning(f"Rejected malformed API Gateway event: {e}")
            return HttpResponse(status_code=400).to_api_gateway()

        router = routes.get(_normalize_path(request.path))
        if router is None:
            logger.warning(f"No router for path={request.path} request_id={request.request_id}")
            return HttpResponse(status_code=404).to_api_gateway()

        logger.info(f"Routing {request.method} {request.path} to {type(router).__module__}")
        return router.serve(request, context).to_api_gateway()

    return lambda_handler
