# =============================================================================
# url_verification envelopes
# =============================================================================
# Slack proves endpoint ownership by sending a challenge the endpoint must
# echo back. Ref: https://api.slack.com/events/url_verification
# =============================================================================

from dataclasses import dataclass
from typing import Any, Dict

from slackrouter.envelope import Envelope


@dataclass
class URLVerificationEvent:
    challenge: str
    token: str = ""

    @classmethod
    def from_envelope(cls, envelope: Envelope) -> "URLVerificationEvent":
        return cls(
            challenge=envelope.challenge or "",
            token=envelope.raw.get("token") or "",
        )


def default_handler(event: URLVerificationEvent, context: Any = None) -> Dict[str, str]:
    """Echo the challenge back unchanged."""
    return {"challenge": event.challenge}
