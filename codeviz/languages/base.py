"""Protocol for parser backends."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from codeviz.languages.models import SyntaxTree


class SyntaxBackend(Protocol):
    """Protocol for general-purpose source-to-tree parsers."""

    def parse(self, text: str, grammar: str) -> SyntaxTree:
        """Parse text under a grammar, raising GrammarParseError on failure."""
        ...

    def supports(self, grammar: str) -> bool:
        """Check if this backend can parse the given grammar."""
        ...
