"""Built-in matcher catalog."""

from codeviz.core.recognition.matchers import (
    error_handling,
    persistence,
    react_component,
    remote_call,
    state_click,
)
from codeviz.core.recognition.models import PatternMatcher


def default_matchers() -> list[PatternMatcher]:
    """The built-in matchers, in registration order."""
    return [state_click.MATCHER, remote_call.MATCHER, persistence.MATCHER, error_handling.MATCHER]


def optional_matchers() -> list[PatternMatcher]:
    """Matchers shipped but not registered unless asked for."""
    return [react_component.MATCHER]


__all__ = ["default_matchers", "optional_matchers"]
