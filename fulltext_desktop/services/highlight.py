"""Excerpt selection and match markup for detailed search results."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence

from fulltext_desktop.foundation.analysis import Token

__all__ = [
    "ANSI_BOLD",
    "ANSI_RED",
    "ANSI_RESET",
    "DEFAULT_FRAGMENT_SIZE",
    "DEFAULT_MAX_FRAGMENTS",
    "Highlighter",
    "PLAIN_MARKERS",
    "COLOR_MARKERS",
]

ANSI_BOLD = "\x1b[1m"
ANSI_RED = "\x1b[31m"
ANSI_RESET = "\x1b[0m"

PLAIN_MARKERS = ("<B>", "</B>")
COLOR_MARKERS = (ANSI_RED, ANSI_RESET)

DEFAULT_FRAGMENT_SIZE = 100
DEFAULT_MAX_FRAGMENTS = 10


@dataclass(slots=True)
class _Fragment:
    start: int
    end: int
    spans: list[tuple[int, int]]

    @property
    def score(self) -> int:
        return len(self.spans)


class Highlighter:
    """Cuts text into fixed-size fragments on token boundaries and keeps the best."""

    def __init__(
        self,
        *,
        markers: tuple[str, str] = PLAIN_MARKERS,
        fragment_size: int = DEFAULT_FRAGMENT_SIZE,
    ) -> None:
        self.pre, self.post = markers
        self.fragment_size = fragment_size

    def best_fragments(
        self,
        text: str,
        tokens: Sequence[Token],
        spans: Sequence[tuple[int, int]],
        max_fragments: int = DEFAULT_MAX_FRAGMENTS,
    ) -> list[str]:
        """Return up to ``max_fragments`` marked-up excerpts, best first.

        Fragments without any matched span are dropped; adjacent winning
        fragments are merged into one excerpt.
        """

        if not text or not spans or max_fragments <= 0:
            return []
        fragments = self._fragments(text, tokens, sorted(set(spans)))
        scored = [fragment for fragment in fragments if fragment.score]
        best = sorted(scored, key=lambda fragment: (-fragment.score, fragment.start))[:max_fragments]
        merged = self._merge_contiguous(sorted(best, key=lambda fragment: fragment.start))
        merged.sort(key=lambda fragment: (-fragment.score, fragment.start))
        return [self._render(text, fragment) for fragment in merged]

    def _fragments(
        self, text: str, tokens: Sequence[Token], spans: list[tuple[int, int]]
    ) -> list[_Fragment]:
        fragments: list[_Fragment] = []
        start = 0
        for token in tokens:
            if token.end - start > self.fragment_size and token.start > start:
                fragments.append(_Fragment(start, token.start, []))
                start = token.start
        fragments.append(_Fragment(start, len(text), []))
        for span in spans:
            for fragment in fragments:
                if fragment.start <= span[0] < fragment.end:
                    fragment.spans.append(span)
                    break
        return fragments

    @staticmethod
    def _merge_contiguous(fragments: list[_Fragment]) -> list[_Fragment]:
        merged: list[_Fragment] = []
        for fragment in fragments:
            if merged and merged[-1].end == fragment.start:
                previous = merged[-1]
                merged[-1] = _Fragment(previous.start, fragment.end, previous.spans + fragment.spans)
            else:
                merged.append(fragment)
        return merged

    def _render(self, text: str, fragment: _Fragment) -> str:
        pieces: list[str] = []
        cursor = fragment.start
        for start, end in fragment.spans:
            if start < cursor:
                continue
            end = min(end, fragment.end)
            pieces.append(text[cursor:start])
            pieces.append(f"{self.pre}{text[start:end]}{self.post}")
            cursor = end
        pieces.append(text[cursor : fragment.end])
        return "".join(pieces).strip()
