# app/scheduling/assignment.py

"""Consultant assignment strategies.

Each ``AssignmentStrategy`` member maps to exactly one resolver function in
``RESOLVERS``; the module refuses to import if a member has no resolver.
"""

import logging
import random
from dataclasses import dataclass
from typing import Callable, Dict, Optional, Sequence

from app.errors import InvalidRequestError, NoAvailableConsultantError
from app.schemas import AssignmentStrategy

logger = logging.getLogger(__name__)

# score removed when the winner only won on a tie-break
TIE_BREAK_PENALTY = 50


@dataclass(frozen=True)
class Candidate:
    """A consultant with remaining capacity at commit time."""

    consultant_id: int
    name: str
    remaining: int
    max_bookings: int
    same_day_load: int = 0
    total_load: int = 0

    @property
    def headroom(self) -> int:
        return round(100 * self.remaining / self.max_bookings)


@dataclass(frozen=True)
class Assignment:
    consultant_id: int
    consultant_name: str
    reason: str
    confidence_score: int


def _confidence(chosen: Candidate, candidates: Sequence[Candidate], tie_break: bool) -> int:
    if len(candidates) == 1:
        return 100
    score = chosen.headroom
    if tie_break:
        score -= TIE_BREAK_PENALTY
    return max(0, min(100, score))


def _rank(candidates: Sequence[Candidate], key: Callable, reason: str) -> Assignment:
    ranked = sorted(candidates, key=key)
    chosen = ranked[0]
    # runner-up tied on the primary key
    tie_break = len(ranked) > 1 and key(ranked[1])[0] == key(chosen)[0]
    return Assignment(
        chosen.consultant_id,
        chosen.name,
        reason,
        _confidence(chosen, ranked, tie_break),
    )


def _resolve_optimal(candidates, preferred_id, rng) -> Assignment:
    return _rank(
        candidates,
        key=lambda c: (c.same_day_load, c.total_load, c.consultant_id),
        reason="Fewest bookings that day, then fewest active bookings overall",
    )


def _resolve_balanced(candidates, preferred_id, rng) -> Assignment:
    return _rank(
        candidates,
        key=lambda c: (c.total_load, c.consultant_id),
        reason="Load balancing - fewest active bookings overall",
    )


def _resolve_random(candidates, preferred_id, rng) -> Assignment:
    chosen = rng.choice(list(candidates))
    score = 100 if len(candidates) == 1 else chosen.headroom // len(candidates)
    return Assignment(chosen.consultant_id, chosen.name, "Random choice among available consultants", score)


def _resolve_specific(candidates, preferred_id, rng) -> Assignment:
    if preferred_id is None:
        raise InvalidRequestError("The specific strategy needs a consultant_id")
    for candidate in candidates:
        if candidate.consultant_id == preferred_id:
            return Assignment(
                candidate.consultant_id,
                candidate.name,
                "Requested consultant",
                max(0, min(100, candidate.headroom)),
            )
    raise NoAvailableConsultantError(
        f"Consultant {preferred_id} has no remaining capacity for the selected time slot"
    )


RESOLVERS: Dict[AssignmentStrategy, Callable] = {
    AssignmentStrategy.optimal: _resolve_optimal,
    AssignmentStrategy.balanced: _resolve_balanced,
    AssignmentStrategy.random: _resolve_random,
    AssignmentStrategy.specific: _resolve_specific,
}

_missing = set(AssignmentStrategy) - set(RESOLVERS)
if _missing:
    raise RuntimeError(f"No resolver for strategies: {sorted(s.value for s in _missing)}")


class AssignmentResolver:
    def __init__(self, rng: Optional[random.Random] = None):
        self.rng = rng or random.Random()

    def resolve(
        self,
        strategy: AssignmentStrategy,
        candidates: Sequence[Candidate],
        preferred_id: Optional[int] = None,
    ) -> Assignment:
        strategy = AssignmentStrategy(strategy)
        if not candidates:
            raise NoAvailableConsultantError("No available consultants for the selected time slot")

        assignment = RESOLVERS[strategy](candidates, preferred_id, self.rng)
        logger.info(
            "Assigned consultant %s via %s (confidence %d, %d candidates)",
            assignment.consultant_id, strategy.value, assignment.confidence_score, len(candidates),
        )
        return assignment
