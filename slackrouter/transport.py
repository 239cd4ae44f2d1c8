# =============================================================================
# Transport - Request/Response Containers and API Gateway Adapter
# =============================================================================
# The routers only see HttpRequest / HttpResponse. API Gateway HTTP API (v2)
# and REST API (v1) proxy events are converted at the edge.
# =============================================================================

import base64
import binascii
import io
import json
import logging
from dataclasses import dataclass, field
from typing import Any, BinaryIO, Dict, Optional, Union

logger = logging.getLogger(__name__)

FORM_CONTENT_TYPE = "application/x-www-form-urlencoded"


class MalformedEventError(ValueError):
    """An API Gateway event could not be converted into an HttpRequest."""


def _normalize_headers(headers: Optional[Dict[str, Any]]) -> Dict[str, str]:
    return {str(k).lower(): str(v) for k, v in (headers or {}).items() if v is not None}


@dataclass
class HttpRequest:
    """
    Transport-neutral inbound request.

    Attributes:
        method: HTTP method (upper case)
        path: Request path
        headers: Header map with lower-cased names
        body: Single-pass body stream; the signing middleware replaces it
              with a re-readable buffer after verification
        request_id: Host request identifier, used only for logging
    """
    method: str = "POST"
    path: str = "/"
    headers: Dict[str, str] = field(default_factory=dict)
    body: BinaryIO = field(default_factory=io.BytesIO)
    request_id: str = ""

    def __post_init__(self):
        self.method = self.method.upper()
        self.headers = _normalize_headers(self.headers)

    def header(self, name: str, default: str = "") -> str:
        return self.headers.get(name.lower(), default)

    @property
    def media_type(self) -> str:
        """Content-Type without parameters, lower-cased."""
        return self.header("content-type").split(";", 1)[0].strip().lower()

    def read_body(self) -> bytes:
        return self.body.read()

    @classmethod
    def build(
        cls,
        body: Union[bytes, str] = b"",
        headers: Optional[Dict[str, Any]] = None,
        method: str = "POST",
        path: str = "/",
    ) -> "HttpRequest":
        if isinstance(body, str):
            body = body.encode("utf-8")
        return cls(method=method, path=path, headers=headers or {}, body=io.BytesIO(body))

    @classmethod
    def from_api_gateway(cls, event: Dict[str, Any]) -> "HttpRequest":
        """Create a request from an API Gateway proxy event (v1 or v2)."""
        request_context = event.get("requestContext", {}) or {}
        http = request_context.get("http", {}) or {}

        method = http.get("method") or event.get("httpMethod") or "POST"
        path = event.get("rawPath") or http.get("path") or event.get("path") or "/"

        raw_body = event.get("body") or ""
        if event.get("isBase64Encoded"):
            try:
                body = base64.b64decode(raw_body, validate=True)
            except (binascii.Error, ValueError) as e:
                raise MalformedEventError(f"body is not valid base64: {e}") from e
        elif isinstance(raw_body, bytes):
            body = raw_body
        else:
            body = raw_body.encode("utf-8")

        return cls(
            method=method,
            path=path,
            headers=event.get("headers") or {},
            body=io.BytesIO(body),
            request_id=request_context.get("requestId", ""),
        )


@dataclass
class HttpResponse:
    """Transport-neutral outbound response."""
    status_code: int = 200
    body: bytes = b""
    headers: Dict[str, str] = field(default_factory=dict)

    @classmethod
    def text(cls, text: str, status_code: int = 200) -> "HttpResponse":
        return cls(
            status_code=status_code,
            body=text.encode("utf-8"),
            headers={"Content-Type": "text/plain; charset=utf-8"},
        )

    @classmethod
    def json(cls, data: Any, status_code: int = 200) -> "HttpResponse":
        return cls(
            status_code=status_code,
            body=json.dumps(data, ensure_ascii=False).encode("utf-8"),
            headers={"Content-Type": "application/json"},
        )

    @property
    def text_body(self) -> str:
        return self.body.decode("utf-8")

    def to_api_gateway(self) -> Dict[str, Any]:
        """Format as an API Gateway proxy response."""
        return {
            "statusCode": self.status_code,
            "headers": dict(self.headers),
            "body": self.body.decode("utf-8"),
            "isBase64Encoded": False,
        }
