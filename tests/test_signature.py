#!/usr/bin/env python3
"""
Tests for request signature verification and the signing middleware.

Run with: pytest tests/test_signature.py -v
"""
import io

import pytest

from slackrouter.errors import (
    BodyReadError,
    MalformedTimestamp,
    MissingHeader,
    SignatureMismatch,
    StaleTimestamp,
)
from slackrouter.signature import (
    HEADER_SIGNATURE,
    HEADER_TIMESTAMP,
    SigningMiddleware,
    VerificationContext,
    sign,
    sign_headers,
    tee_body,
    verify,
)
from slackrouter.transport import HttpRequest, HttpResponse

from conftest import NOW, SECRET

# Example request from Slack's "Verifying requests from Slack" guide
SLACK_EXAMPLE_BODY = (
    "token=xyzz0WbapA4vBCDEFasx0q6G&team_id=T1DC2JH3J&team_domain=testteamnow"
    "&channel_id=G8PSS9T3V&channel_name=foobar&user_id=U2CERLKJA&user_name=roadrunner"
    "&command=%2Fwebhook-collect&text=&response_url=https%3A%2F%2Fhooks.slack.com%2F"
    "commands%2FT1DC2JH3J%2F397700885554%2F96rGlfmibIGlgcZRskXaIFfN"
    "&trigger_id=398738663015.47445629121.803a0bc887a14d10d2c447fce8b6703c"
)
SLACK_EXAMPLE_SIGNATURE = "v0=a2114d57b48eac39b9ad189dd8316235a7b4a8d21a10bd27519666489c69b503"


class BrokenStream(io.RawIOBase):
    def read(self, size=-1):
        raise OSError("connection reset")


class ClosedStream(io.RawIOBase):
    def read(self, size=-1):
        raise ValueError("I/O operation on closed file")


# =============================================================================
# TEST: Signing
# =============================================================================

class TestSign:
    """Tests for signature computation."""

    def test_matches_slack_example(self):
        assert sign(SECRET, NOW, SLACK_EXAMPLE_BODY) == SLACK_EXAMPLE_SIGNATURE
        print("✓ Signature matches Slack's documented example")

    def test_bytes_and_str_inputs_agree(self):
        assert sign(SECRET.encode(), str(NOW), SLACK_EXAMPLE_BODY.encode()) == SLACK_EXAMPLE_SIGNATURE

    def test_sign_headers(self):
        headers = sign_headers({"Content-Type": "application/json"}, SECRET, "{}", timestamp=NOW)

        assert headers[HEADER_TIMESTAMP] == str(NOW)
        assert headers[HEADER_SIGNATURE] == sign(SECRET, NOW, "{}")
        assert headers["Content-Type"] == "application/json"


# =============================================================================
# TEST: Verification
# =============================================================================

class TestVerify:
    """Tests for verify() and VerificationContext."""

    def test_round_trip(self):
        body = '{"type": "url_verification", "challenge": "abc"}'
        verify(SECRET, str(NOW), body, sign(SECRET, NOW, body), now=NOW)
        print("✓ Signed body verifies")

    def test_tampered_body_rejected(self):
        signature = sign(SECRET, NOW, '{"a": 1}')
        with pytest.raises(SignatureMismatch):
            verify(SECRET, str(NOW), '{"a": 2}', signature, now=NOW)

    def test_wrong_secret_rejected(self):
        signature = sign("another-secret", NOW, "{}")
        with pytest.raises(SignatureMismatch):
            verify(SECRET, str(NOW), "{}", signature, now=NOW)

    def test_missing_timestamp(self):
        with pytest.raises(MissingHeader) as exc_info:
            verify(SECRET, None, "{}", sign(SECRET, NOW, "{}"), now=NOW)
        assert exc_info.value.header == HEADER_TIMESTAMP

    def test_missing_signature(self):
        with pytest.raises(MissingHeader) as exc_info:
            verify(SECRET, str(NOW), "{}", "", now=NOW)
        assert exc_info.value.header == HEADER_SIGNATURE

    def test_missing_timestamp_reported_first(self):
        with pytest.raises(MissingHeader) as exc_info:
            verify(SECRET, None, "{}", None, now=NOW)
        assert exc_info.value.header == HEADER_TIMESTAMP

    def test_malformed_timestamp(self):
        with pytest.raises(MalformedTimestamp):
            verify(SECRET, "yesterday", "{}", "v0=00", now=NOW)

    @pytest.mark.parametrize("timestamp", [
        "1_531_420_618",
        " 1531420618",
        "1531420618\n",
        "+1531420618",
        "\uff11\uff15\uff13\uff11\uff14\uff12\uff10\uff16\uff11\uff18",
    ])
    def test_non_decimal_timestamp_is_malformed(self, timestamp):
        with pytest.raises(MalformedTimestamp):
            verify(SECRET, timestamp, "{}", sign(SECRET, timestamp, "{}"), now=NOW)

    def test_flipped_signature_byte_rejected(self):
        signature = sign(SECRET, NOW, "{}")
        flipped = signature[:-1] + ("0" if signature[-1] != "0" else "1")
        with pytest.raises(SignatureMismatch):
            verify(SECRET, str(NOW), "{}", flipped, now=NOW)

    def test_moved_timestamp_rejected(self):
        signature = sign(SECRET, NOW, "{}")
        with pytest.raises(SignatureMismatch):
            verify(SECRET, str(NOW - 60), "{}", signature, now=NOW)

    @pytest.mark.parametrize("skew", [0, 299, 300, -299, -300])
    def test_within_window_accepted(self, skew):
        ts = NOW - skew
        verify(SECRET, str(ts), "{}", sign(SECRET, ts, "{}"), now=NOW)

    @pytest.mark.parametrize("skew", [301, 3601, -301, -3601])
    def test_outside_window_stale(self, skew):
        ts = NOW - skew
        with pytest.raises(StaleTimestamp):
            verify(SECRET, str(ts), "{}", sign(SECRET, ts, "{}"), now=NOW)

    def test_stale_checked_before_signature(self):
        with pytest.raises(StaleTimestamp):
            verify(SECRET, str(NOW - 3601), "{}", "v0=bogus", now=NOW)

    def test_headers_matched_case_insensitively(self):
        headers = {
            "x-slack-request-timestamp": str(NOW),
            "X-SLACK-SIGNATURE": sign(SECRET, NOW, "{}"),
        }
        ctx = VerificationContext.from_headers(headers, SECRET, now=NOW)
        ctx.update(b"{}")
        ctx.ensure()

    def test_incremental_update(self):
        body = b'{"type": "event_callback", "event": {"type": "message"}}'
        ctx = VerificationContext.create(SECRET, str(NOW), sign(SECRET, NOW, body), now=NOW)
        for i in range(0, len(body), 7):
            ctx.update(body[i:i + 7])
        ctx.ensure()

    def test_tee_body_returns_full_body(self):
        body = b"x" * 200_000
        ctx = VerificationContext.create(SECRET, str(NOW), sign(SECRET, NOW, body), now=NOW)

        assert tee_body(io.BytesIO(body), ctx) == body
        ctx.ensure()

    def test_tee_body_read_failure(self):
        ctx = VerificationContext.create(SECRET, str(NOW), "v0=00", now=NOW)
        with pytest.raises(BodyReadError):
            tee_body(BrokenStream(), ctx)

    def test_tee_body_closed_stream(self):
        ctx = VerificationContext.create(SECRET, str(NOW), "v0=00", now=NOW)
        with pytest.raises(BodyReadError):
            tee_body(ClosedStream(), ctx)


# =============================================================================
# TEST: Middleware
# =============================================================================

class TestSigningMiddleware:
    """Tests for SigningMiddleware."""

    def _middleware(self, verbose=False):
        calls = []

        def handler(request, context):
            calls.append((request.read_body(), context))
            return HttpResponse.text("handled")

        middleware = SigningMiddleware(SECRET, handler, verbose_response=verbose, clock=lambda: NOW)
        return middleware, calls

    def test_valid_request_passes_body_downstream(self, make_request):
        middleware, calls = self._middleware()
        body = '{"type": "event_callback"}'

        response = middleware(make_request(body), context="ctx")

        assert response.status_code == 200
        assert response.text_body == "handled"
        assert calls == [(body.encode(), "ctx")]
        print("✓ Verified body reaches the handler unchanged")

    def test_missing_header_is_400(self, make_request):
        middleware, calls = self._middleware()

        response = middleware(make_request("{}", signed=False))

        assert response.status_code == 400
        assert response.body == b""
        assert calls == []

    def test_malformed_timestamp_is_400(self, make_request):
        middleware, calls = self._middleware()
        request = make_request("{}", headers={HEADER_TIMESTAMP: "abc"})

        assert middleware(request).status_code == 400
        assert calls == []

    def test_stale_timestamp_is_401(self, make_request):
        middleware, calls = self._middleware()

        response = middleware(make_request("{}", timestamp=NOW - 3601))

        assert response.status_code == 401
        assert calls == []

    def test_mismatch_is_401(self, make_request):
        middleware, calls = self._middleware()

        response = middleware(make_request("{}", secret="wrong-secret"))

        assert response.status_code == 401
        assert calls == []

    def test_verbose_mismatch_body(self, make_request):
        middleware, _ = self._middleware(verbose=True)

        response = middleware(make_request("{}", secret="wrong-secret"))

        assert response.status_code == 401
        assert response.text_body == "signature mismatch"
        assert SECRET not in response.text_body

    def test_verbose_missing_header_body(self, make_request):
        middleware, _ = self._middleware(verbose=True)

        response = middleware(make_request("{}", signed=False))

        assert response.text_body == f"missing {HEADER_TIMESTAMP} header"

    def test_body_read_failure_is_500(self):
        middleware, calls = self._middleware()
        request = HttpRequest(
            headers={HEADER_TIMESTAMP: str(NOW), HEADER_SIGNATURE: "v0=00"},
            body=BrokenStream(),
        )

        assert middleware(request).status_code == 500
        assert calls == []

    def test_closed_body_stream_is_500(self):
        middleware, calls = self._middleware()
        request = HttpRequest(
            headers=sign_headers({}, SECRET, "{}", timestamp=NOW),
            body=ClosedStream(),
        )

        response = middleware(request)

        assert response.status_code == 500
        assert calls == []

    def test_empty_secret_rejected(self):
        with pytest.raises(ValueError):
            SigningMiddleware("", lambda request, context: HttpResponse())
