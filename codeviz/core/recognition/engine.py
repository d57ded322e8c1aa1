"""Pattern recognition: one shared traversal feeding a registry of matchers."""

from __future__ import annotations

import logging
from collections import defaultdict

from codeviz.config import DEFAULT_CONFIDENCE_THRESHOLD
from codeviz.core.exceptions import ConfigurationError
from codeviz.core.models import PatternComplexity, RecognizedPattern
from codeviz.core.recognition.builder import build_connections, build_nodes
from codeviz.core.recognition.matchers import default_matchers
from codeviz.core.recognition.models import PatternMatch, PatternMatcher, TraversalContext
from codeviz.languages.models import SyntaxNode, SyntaxTree

logger = logging.getLogger(__name__)

COMPLEX_NODE_COUNT = 5
COMPLEX_VARIABLE_COUNT = 6
COMPLEX_FUNCTION_COUNT = 3
CONTEXT_RADIUS = 50


class RecognitionEngine:
    """Finds known idioms in a syntax tree.

    Holds at most one matcher per pattern type; registering a type again
    replaces the previous matcher.
    """

    def __init__(
        self,
        matchers: list[PatternMatcher] | None = None,
        confidence_threshold: float = DEFAULT_CONFIDENCE_THRESHOLD,
    ) -> None:
        self._matchers: dict[str, PatternMatcher] = {}
        self._threshold = DEFAULT_CONFIDENCE_THRESHOLD
        self.set_confidence_threshold(confidence_threshold)
        for matcher in default_matchers() if matchers is None else matchers:
            self.register_matcher(matcher)

    @property
    def confidence_threshold(self) -> float:
        return self._threshold

    def set_confidence_threshold(self, threshold: float) -> None:
        if not 0 <= threshold <= 1:
            raise ConfigurationError("Confidence threshold must be between 0 and 1")
        self._threshold = threshold

    def register_matcher(self, matcher: PatternMatcher) -> None:
        self._matchers[matcher.pattern_type] = matcher

    def unregister_matcher(self, pattern_type: str) -> bool:
        """Remove a matcher. Returns False if none was registered."""
        return self._matchers.pop(pattern_type, None) is not None

    def registered_pattern_types(self) -> list[str]:
        return list(self._matchers)

    def recognize_patterns(self, tree: SyntaxTree, source: str | None = None) -> list[RecognizedPattern]:
        """Run every matcher over every node and keep matches above the threshold.

        Results are ordered by traversal position, then by matcher
        registration order.
        """
        if tree.is_empty:
            return []
        text = tree.source if source is None else source
        matchers = list(self._matchers.values())
        found: list[tuple[PatternMatcher, PatternMatch]] = []

        stack: list[tuple[SyntaxNode, TraversalContext]] = [
            (tree.root, TraversalContext(source=text))
        ]
        while stack:
            node, context = stack.pop()
            for matcher in matchers:
                try:
                    matches = list(matcher.match(node, context))
                except Exception:
                    logger.warning(
                        "Matcher %s failed on %s at line %d",
                        matcher.pattern_type,
                        node.type,
                        node.location.start_line,
                        exc_info=True,
                    )
                    continue
                found.extend((matcher, m) for m in matches)

            # Each child sees the declarations of the siblings before it.
            frames: list[tuple[SyntaxNode, TraversalContext]] = []
            child_context = context.descend(node)
            for child in node.children:
                frames.append((child, child_context))
                child_context = child_context.declare(child)
            stack.extend(reversed(frames))

        logger.debug("Traversal produced %d raw matches", len(found))

        sequences: dict[str, int] = defaultdict(int)
        patterns: list[RecognizedPattern] = []
        for matcher, match in found:
            try:
                score = round(float(matcher.confidence(match)), 6)
            except Exception:
                logger.warning("Scoring %s match failed", matcher.pattern_type, exc_info=True)
                continue
            if score < self._threshold:
                continue
            pattern_id = f"pattern-{match.type}-{sequences[match.type]}"
            try:
                pattern = self._to_pattern(pattern_id, match, min(max(score, 0.0), 1.0), text)
            except Exception:
                logger.warning("Dropping %s match that could not be converted", match.type, exc_info=True)
                continue
            sequences[match.type] += 1
            patterns.append(pattern)
        return patterns

    def _to_pattern(
        self, pattern_id: str, match: PatternMatch, score: float, text: str
    ) -> RecognizedPattern:
        nodes = build_nodes(pattern_id, match)
        connections = build_connections(pattern_id, match, nodes)
        root_id = next(
            node.id for node in nodes if node.properties.get("is_root")
        )
        location = match.root.location
        start = max(location.start - CONTEXT_RADIUS, 0)
        end = min(location.end + CONTEXT_RADIUS, len(text))

        complex_ = (
            len(match.involved) > COMPLEX_NODE_COUNT
            or len(match.variables) > COMPLEX_VARIABLE_COUNT
            or len(match.functions) > COMPLEX_FUNCTION_COUNT
        )
        return RecognizedPattern(
            id=pattern_id,
            type=match.type,
            confidence=score,
            complexity=PatternComplexity.COMPLEX if complex_ else PatternComplexity.SIMPLE,
            location=location,
            nodes=nodes,
            connections=connections,
            variables=list(match.variables),
            functions=list(match.functions),
            context=text[start:end],
            metadata={**match.metadata, "root_node_id": root_id},
        )
