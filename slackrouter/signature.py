# =============================================================================
# Request Signature Verification
# =============================================================================
# Verifies that a request was sent by Slack.
# Ref: https://api.slack.com/authentication/verifying-requests-from-slack
#
# - HMAC-SHA256 over "v0:{timestamp}:{body}" keyed by the signing secret
# - Timing-safe comparison of the "v0=<hex>" signature
# - Replay protection: timestamps outside a 5 minute window are rejected
# - The body is hashed while it is buffered, then handed downstream intact
# =============================================================================

import hashlib
import hmac
import io
import logging
import re
import time
from typing import Any, BinaryIO, Callable, Dict, Optional, Union

from slackrouter.errors import (
    BodyReadError,
    MalformedTimestamp,
    MissingHeader,
    SignatureMismatch,
    StaleTimestamp,
    VerificationError,
    respond_with_error,
)
from slackrouter.transport import HttpRequest, HttpResponse

logger = logging.getLogger(__name__)

HEADER_TIMESTAMP = "X-Slack-Request-Timestamp"
HEADER_SIGNATURE = "X-Slack-Signature"

SIGNATURE_VERSION = "v0"

# Reject requests whose timestamp differs from local time by more than this
TIMESTAMP_TOLERANCE_SECONDS = 300

TIMESTAMP_PATTERN = re.compile(r"-?[0-9]+")

READ_CHUNK_SIZE = 64 * 1024

Secret = Union[str, bytes]
Clock = Callable[[], float]


def _secret_bytes(secret: Secret) -> bytes:
    return secret.encode("utf-8") if isinstance(secret, str) else bytes(secret)


def _body_bytes(body: Union[str, bytes]) -> bytes:
    return body.encode("utf-8") if isinstance(body, str) else bytes(body)


def sign(secret: Secret, timestamp: Union[int, str], body: Union[str, bytes]) -> str:
    """Compute the `v0=<hex>` signature Slack would send for this body."""
    digest = hmac.new(_secret_bytes(secret), digestmod=hashlib.sha256)
    digest.update(f"{SIGNATURE_VERSION}:{timestamp}:".encode("utf-8"))
    digest.update(_body_bytes(body))
    return f"{SIGNATURE_VERSION}={digest.hexdigest()}"


def sign_headers(
    headers: Dict[str, str],
    secret: Secret,
    body: Union[str, bytes],
    timestamp: Optional[int] = None,
) -> Dict[str, str]:
    """Add timestamp and signature headers for `body` to `headers` (in place)."""
    if timestamp is None:
        timestamp = int(time.time())
    headers[HEADER_TIMESTAMP] = str(timestamp)
    headers[HEADER_SIGNATURE] = sign(secret, timestamp, body)
    return headers


class VerificationContext:
    """
    Per-request verification state.

    Created from the request headers (which already rejects missing headers,
    malformed timestamps and stale timestamps), fed the body through
    `update()`, and finally checked with `ensure()`.
    """

    def __init__(self, secret: Secret, timestamp: str, signature: str):
        self.timestamp = timestamp
        self._signature = signature
        self._hash = hmac.new(_secret_bytes(secret), digestmod=hashlib.sha256)
        self._hash.update(f"{SIGNATURE_VERSION}:{timestamp}:".encode("utf-8"))

    @classmethod
    def create(
        cls,
        secret: Secret,
        timestamp: Optional[str],
        signature: Optional[str],
        now: Optional[float] = None,
    ) -> "VerificationContext":
        if not timestamp:
            raise MissingHeader(HEADER_TIMESTAMP)
        if not signature:
            raise MissingHeader(HEADER_SIGNATURE)

        # Plain ASCII digits only; int() alone would accept "1_000", " 1 " and non-ASCII digits
        if not TIMESTAMP_PATTERN.fullmatch(timestamp):
            raise MalformedTimestamp("timestamp is not an integer")
        declared = int(timestamp)

        current = int(time.time() if now is None else now)
        skew = abs(current - declared)
        if skew > TIMESTAMP_TOLERANCE_SECONDS:
            raise StaleTimestamp(
                f"timestamp is {skew}s away from now, max allowed: {TIMESTAMP_TOLERANCE_SECONDS}s"
            )
        return cls(secret, timestamp, signature.strip())

    @classmethod
    def from_headers(
        cls, headers: Dict[str, str], secret: Secret, now: Optional[float] = None
    ) -> "VerificationContext":
        norm = {k.lower(): v for k, v in headers.items()}
        return cls.create(
            secret,
            norm.get(HEADER_TIMESTAMP.lower()),
            norm.get(HEADER_SIGNATURE.lower()),
            now=now,
        )

    def update(self, chunk: bytes) -> None:
        self._hash.update(chunk)

    def ensure(self) -> None:
        expected = f"{SIGNATURE_VERSION}={self._hash.hexdigest()}"
        if not hmac.compare_digest(expected.encode("utf-8"), self._signature.encode("utf-8")):
            raise SignatureMismatch("signature mismatch")


def verify(
    secret: Secret,
    timestamp: Optional[str],
    body: Union[str, bytes],
    signature: Optional[str],
    now: Optional[float] = None,
) -> None:
    """Verify a signature over a complete body.

    Raises:
        MissingHeader, MalformedTimestamp, StaleTimestamp, SignatureMismatch
    """
    ctx = VerificationContext.create(secret, timestamp, signature, now=now)
    ctx.update(_body_bytes(body))
    ctx.ensure()


def tee_body(stream: BinaryIO, ctx: VerificationContext) -> bytes:
    """Read `stream` to the end, feeding every chunk to `ctx` and buffering it."""
    buffer = io.BytesIO()
    try:
        while True:
            chunk = stream.read(READ_CHUNK_SIZE)
            if not chunk:
                break
            ctx.update(chunk)
            buffer.write(chunk)
    except (OSError, ValueError) as e:
        raise BodyReadError(f"failed to read request body: {e}") from e
    return buffer.getvalue()


# =============================================================================
# MIDDLEWARE
# =============================================================================

class SigningMiddleware:
    """
    Wraps a request handler and verifies request signatures before calling it.

    Status codes on failure:
    - 400: missing header, malformed timestamp
    - 401: stale timestamp, signature mismatch
    - 500: the body could not be read

    With `verbose_response` the response body carries the reason. The secret,
    header values and signatures never appear in responses or logs.
    """

    def __init__(
        self,
        secret: Secret,
        handler: Callable[[HttpRequest, Any], HttpResponse],
        verbose_response: bool = False,
        clock: Clock = time.time,
    ):
        if not secret:
            raise ValueError("signing secret must not be empty")
        self._secret = _secret_bytes(secret)
        self.handler = handler
        self.verbose_response = verbose_response
        self.clock = clock

    def __call__(self, request: HttpRequest, context: Any = None) -> HttpResponse:
        try:
            ctx = VerificationContext.from_headers(request.headers, self._secret, now=self.clock())
            body = tee_body(request.body, ctx)
            ctx.ensure()
        except VerificationError as e:
            logger.warning(
                f"Signature verification failed ({type(e).__name__}) request_id={request.request_id}"
            )
            return respond_with_error(e, self.verbose_response)

        request.body = io.BytesIO(body)
        return self.handler(request, context)
