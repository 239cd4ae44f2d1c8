# =============================================================================
# slackrouter - Slack Events API and Interactivity Router
# =============================================================================
# Verifies Slack request signatures and dispatches requests to handlers
# selected by payload type and predicates.
#
# Entry points:
# - eventrouter.Router        Events API requests (JSON body)
# - interactionrouter.Router  Interactivity requests (form body, "payload")
# - app.build_api_handler     API Gateway handler serving both
# =============================================================================

from slackrouter.chain import Predicate, Where, build
from slackrouter.errors import (
    HttpError,
    NotInterested,
    RouterConfigError,
    RouterError,
    VerificationError,
    respond_with_error,
)
from slackrouter.signature import SigningMiddleware, sign, verify
from slackrouter.transport import HttpRequest, HttpResponse

__version__ = "0.1.0"

__all__ = [
    "Predicate",
    "Where",
    "build",
    "HttpError",
    "NotInterested",
    "RouterConfigError",
    "RouterError",
    "VerificationError",
    "respond_with_error",
    "SigningMiddleware",
    "sign",
    "verify",
    "HttpRequest",
    "HttpResponse",
]
