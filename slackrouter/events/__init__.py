# =============================================================================
# Events API Event Types
# =============================================================================
# Typed views over inner event payloads and the predicates that filter them.
# One module per event family:
# - message           (message)
# - appmention        (app_mention)
# - reaction          (reaction_added, reaction_removed)
# - urlverification   (url_verification envelopes)
# - appratelimited    (app_rate_limited envelopes)
# =============================================================================

MESSAGE = "message"
APP_MENTION = "app_mention"
REACTION_ADDED = "reaction_added"
REACTION_REMOVED = "reaction_removed"

__all__ = [
    "MESSAGE",
    "APP_MENTION",
    "REACTION_ADDED",
    "REACTION_REMOVED",
]
