"""
Pattern recognition: Find known code idioms in a syntax tree.

Components:
    - RecognitionEngine: single depth-first traversal, matcher registry,
      confidence threshold, conversion to RecognizedPattern
    - PatternMatcher: a pattern type plus its match/confidence functions
    - TraversalContext: immutable per-visit view (depth, ancestors, scope)

Built-in idioms:
    - state-action: state value updated from a click handler
    - api-call: fetch/axios request with success and error paths
    - database: SQL or ORM operation against a database client
    - error-handling: try/catch/finally, error boundaries, rejection listeners

Optional idioms (see optional_matchers, not registered by default):
    - react-component: function and class components, props, lifecycle

Custom matchers are plain functions:

    def match(node, context):
        if node.type == "debugger_statement":
            return [PatternMatch(type="debugger", root=node, involved=[node])]
        return []

    engine.register_matcher(PatternMatcher("debugger", match, lambda m: 0.9))
"""

from codeviz.core.recognition.engine import RecognitionEngine
from codeviz.core.recognition.matchers import default_matchers, optional_matchers
from codeviz.core.recognition.models import PatternMatch, PatternMatcher, TraversalContext

__all__ = [
    "RecognitionEngine",
    "default_matchers",
    "optional_matchers",
    "PatternMatch",
    "PatternMatcher",
    "TraversalContext",
]
