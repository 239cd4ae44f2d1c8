# =============================================================================
# Predicate-Filtered Handler Chain
# =============================================================================
# A handler is any callable `handler(payload, context) -> None`.
# Predicates decorate handlers: when a predicate does not match, the wrapped
# handler raises NotInterested and the router moves on to the next handler.
#
#     h = build(handle_deploy, Channel("C123"), TextRegexp(r"deploy"))
#
# Predicates are evaluated in the order given; the first one that fails
# short-circuits the rest of the chain.
# =============================================================================

import functools
import re
from typing import Any, Callable, Union

from slackrouter.errors import NotInterested

Handler = Callable[[Any, Any], Any]


class Predicate:
    """Decides whether a wrapped handler should run for a payload.

    Subclasses implement `matches()`; it must only inspect the payload.
    """

    def matches(self, payload: Any, context: Any) -> bool:
        raise NotImplementedError

    def wrap(self, handler: Handler) -> Handler:
        @functools.wraps(handler)
        def wrapped(payload: Any, context: Any = None) -> Any:
            if not self.matches(payload, context):
                raise NotInterested(f"{self!r} did not match")
            return handler(payload, context)
        return wrapped

    def __repr__(self) -> str:
        fields = ", ".join(f"{k}={v!r}" for k, v in vars(self).items())
        return f"{type(self).__name__}({fields})"


class Where(Predicate):
    """Adapts a plain `fn(payload) -> bool` into a Predicate."""

    def __init__(self, fn: Callable[[Any], bool]):
        self.fn = fn

    def matches(self, payload: Any, context: Any) -> bool:
        return bool(self.fn(payload))

    def __repr__(self) -> str:
        return f"Where({getattr(self.fn, '__name__', self.fn)!r})"


def build(handler: Handler, *predicates: Predicate) -> Handler:
    """Decorate `handler` so it only runs when every predicate matches."""
    for predicate in reversed(predicates):
        handler = predicate.wrap(handler)
    return handler


def compile_pattern(pattern: Union[str, re.Pattern]) -> re.Pattern:
    return pattern if isinstance(pattern, re.Pattern) else re.compile(pattern)


# =============================================================================
# FIELD PREDICATES
# =============================================================================
# Most predicates compare one attribute of the typed payload. These bases keep
# the per-event modules down to a line each.

class FieldEquals(Predicate):
    """True when `payload.<field>` equals `expected`."""
    field = ""

    def __init__(self, expected: str):
        self.expected = expected

    def value(self, payload: Any) -> Any:
        return getattr(payload, self.field, None)

    def matches(self, payload: Any, context: Any) -> bool:
        return self.value(payload) == self.expected


class FieldRegexp(Predicate):
    """True when `payload.<field>` is a string containing a match for `pattern`."""
    field = ""

    def __init__(self, pattern: Union[str, re.Pattern]):
        self.pattern = compile_pattern(pattern)

    def value(self, payload: Any) -> Any:
        return getattr(payload, self.field, None)

    def matches(self, payload: Any, context: Any) -> bool:
        text = self.value(payload)
        if not isinstance(text, str):
            return False
        return self.pattern.search(text) is not None
