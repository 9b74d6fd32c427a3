"""Fuzzy match engine for bookmark labels."""
import asyncio
import functools
from concurrent.futures import Executor
from dataclasses import dataclass, field
from typing import FrozenSet, List, Optional, Protocol, Sequence

from rapidfuzz import fuzz
from rapidfuzz.distance import Indel

from bookmark_picker.bookmarks_store import Candidate
from bookmark_picker.errors import EngineUnavailable

DEFAULT_MATCH_LIMIT = 100


@dataclass(frozen=True)
class Match:
    """A candidate that passed the filter, with its score."""
    candidate_id: int
    score: float
    positions: FrozenSet[int] = field(default_factory=frozenset)


class MatchEngine(Protocol):
    """Protocol for match engines to allow swapping the scorer."""

    def match(
        self,
        query: str,
        candidates: Sequence[Candidate],
        case_sensitive: bool,
        limit: int = DEFAULT_MATCH_LIMIT,
    ) -> List[Match]:
        """Match candidates against a query.

        Args:
            query: Search query string
            candidates: Candidates to filter and score
            case_sensitive: Whether case must match exactly
            limit: Maximum number of results to return

        Returns:
            Matching candidates with scores, in no guaranteed order
        """
        ...

    async def match_async(
        self,
        query: str,
        candidates: Sequence[Candidate],
        case_sensitive: bool,
        limit: int = DEFAULT_MATCH_LIMIT,
    ) -> List[Match]:
        """Run ``match`` without blocking the event loop."""
        ...


def is_smart_case(query: str) -> bool:
    """True if the query should be matched case-sensitively."""
    return any(c.isupper() for c in query)


class FuzzyMatchEngine:
    """Subsequence filter with rapidfuzz scoring.

    A candidate qualifies when every query character appears in its text in
    order. Scores are ``fuzz.WRatio`` scaled into ``[0, 1]``.
    """

    def __init__(self, executor: Optional[Executor] = None):
        """Initialize the engine.

        Args:
            executor: Worker pool for ``match_async``. Defaults to the loop's
                default executor.
        """
        self._executor = executor

    def _positions(self, query: str, text: str) -> Optional[FrozenSet[int]]:
        """Return the text positions aligned with the query, or None.

        Args:
            query: Normalized query
            text: Normalized candidate text

        Returns:
            Positions in ``text`` covered by the alignment, or None if the
            query is not a subsequence of the text
        """
        positions = set()
        for op in Indel.opcodes(query, text):
            if op.tag == "equal":
                positions.update(range(op.dest_start, op.dest_end))

        if len(positions) != len(query):
            return None
        return frozenset(positions)

    def match(
        self,
        query: str,
        candidates: Sequence[Candidate],
        case_sensitive: bool,
        limit: int = DEFAULT_MATCH_LIMIT,
    ) -> List[Match]:
        """Match candidates using subsequence filtering.

        An empty query matches every candidate with a zero score.

        Args:
            query: Search query string
            candidates: Candidates to filter and score
            case_sensitive: Whether case must match exactly
            limit: Maximum number of results to return

        Returns:
            Matches sorted by score (highest first), ties by candidate id
        """
        if limit <= 0:
            return []

        if not query:
            return [Match(candidate_id=c.id, score=0.0) for c in candidates[:limit]]

        needle = query if case_sensitive else query.lower()

        matches = []
        for candidate in candidates:
            haystack = candidate.text if case_sensitive else candidate.text.lower()
            positions = self._positions(needle, haystack)
            if positions is None:
                continue
            score = fuzz.WRatio(needle, haystack) / 100.0
            matches.append(Match(candidate_id=candidate.id, score=score, positions=positions))

        # Deterministic for a fixed candidate order; extra matches are dropped
        matches.sort(key=lambda m: (-m.score, m.candidate_id))

        return matches[:limit]

    async def match_async(
        self,
        query: str,
        candidates: Sequence[Candidate],
        case_sensitive: bool,
        limit: int = DEFAULT_MATCH_LIMIT,
    ) -> List[Match]:
        """Run ``match`` on a worker thread.

        Raises:
            EngineUnavailable: If the worker failed to produce a result
        """
        loop = asyncio.get_running_loop()
        job = functools.partial(self.match, query, list(candidates), case_sensitive, limit)

        try:
            return await loop.run_in_executor(self._executor, job)
        except Exception as e:
            raise EngineUnavailable(f"Match worker failed for query {query!r}: {e}") from e
