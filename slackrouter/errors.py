# =============================================================================
# Router Errors
# =============================================================================
# Exceptions shared by the signature middleware and both routers, plus the
# translator that turns any of them into exactly one HTTP response.
#
# Handlers raise:
# - NotInterested  -> the router falls back to the next handler
# - HttpError(code) -> the router responds with that status
# - anything else   -> the router responds with 500
#
# Wrapping is done with `raise Outer(...) from inner`; classification walks
# the explicit __cause__ chain so wrapped errors keep their identity.
# =============================================================================

import logging
from http import HTTPStatus
from typing import Iterator, Optional, Type, TypeVar

from slackrouter.transport import HttpResponse

logger = logging.getLogger(__name__)

E = TypeVar("E", bound=BaseException)


class RouterError(Exception):
    """Base class for all errors raised by this package."""


class RouterConfigError(RouterError, ValueError):
    """Raised when a router or its settings are configured inconsistently."""


class NotInterested(RouterError):
    """A handler or predicate declines the payload; try the next handler."""

    def __init__(self, message: str = "not interested"):
        super().__init__(message)


class HttpError(RouterError):
    """Ask the router to respond with a specific HTTP status code."""

    def __init__(self, status_code: int, message: Optional[str] = None):
        self.status_code = int(status_code)
        self.message = message
        super().__init__(self.__str__())

    def __str__(self) -> str:
        try:
            phrase = HTTPStatus(self.status_code).phrase
        except ValueError:
            phrase = f"HTTP {self.status_code}"
        if self.message:
            return f"{self.message}: {phrase}"
        return phrase

    def __repr__(self) -> str:
        return f"HttpError({self.status_code}, {self.message!r})"


class EnvelopeParseError(HttpError):
    """The request body could not be decoded into the expected shape."""

    def __init__(self, message: str):
        super().__init__(HTTPStatus.BAD_REQUEST, message)


# =============================================================================
# VERIFICATION ERRORS
# =============================================================================

class VerificationError(RouterError):
    """Request signature verification failed."""
    status_code = HTTPStatus.INTERNAL_SERVER_ERROR


class MissingHeader(VerificationError):
    status_code = HTTPStatus.BAD_REQUEST

    def __init__(self, header: str):
        self.header = header
        super().__init__(f"missing {header} header")


class MalformedTimestamp(VerificationError):
    status_code = HTTPStatus.BAD_REQUEST


class StaleTimestamp(VerificationError):
    status_code = HTTPStatus.UNAUTHORIZED


class SignatureMismatch(VerificationError):
    status_code = HTTPStatus.UNAUTHORIZED


class BodyReadError(VerificationError):
    status_code = HTTPStatus.INTERNAL_SERVER_ERROR


# =============================================================================
# CLASSIFICATION
# =============================================================================

def iter_causes(exc: Optional[BaseException]) -> Iterator[BaseException]:
    """Yield `exc` followed by every exception it was explicitly raised from."""
    seen = set()
    while exc is not None and id(exc) not in seen:
        seen.add(id(exc))
        yield exc
        exc = exc.__cause__


def find_cause(exc: Optional[BaseException], kind: Type[E]) -> Optional[E]:
    """Return the first exception of type `kind` in the cause chain, if any."""
    for item in iter_causes(exc):
        if isinstance(item, kind):
            return item
    return None


def is_not_interested(exc: Optional[BaseException]) -> bool:
    return find_cause(exc, NotInterested) is not None


def error_message(exc: BaseException) -> str:
    """Join the messages of the whole cause chain, outermost first."""
    return ": ".join(str(item) or type(item).__name__ for item in iter_causes(exc))


def status_for(exc: BaseException) -> int:
    """Map an exception to the HTTP status code the router responds with."""
    http_error = find_cause(exc, HttpError)
    if http_error is not None:
        return http_error.status_code
    verification_error = find_cause(exc, VerificationError)
    if verification_error is not None:
        return int(verification_error.status_code)
    return int(HTTPStatus.INTERNAL_SERVER_ERROR)


def respond_with_error(exc: BaseException, verbose_response: bool = False) -> HttpResponse:
    """Build the single response for a failed request.

    Only the status code is exposed unless `verbose_response` is set, in
    which case the body carries the error messages (never a traceback).
    """
    status_code = status_for(exc)
    if status_code >= 500:
        logger.error(f"Request failed with {status_code}: {error_message(exc)}", exc_info=exc)
    else:
        logger.info(f"Request rejected with {status_code}: {error_message(exc)}")

    if verbose_response:
        return HttpResponse.text(error_message(exc), status_code)
    return HttpResponse(status_code=status_code)
