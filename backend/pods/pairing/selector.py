"""
Weighted minimal-repeat seat selection.

Seats are filled one at a time. Each remaining candidate gets a pairing
score (past shared tables with the people it would sit with), the score is
turned into a weight by exponential decay, boosted for participants who
were stuck at 3-seat tables, and one candidate is drawn by weighted random
sampling from the system CSPRNG.

This is a greedy heuristic: it never backtracks and does not search for a
globally optimal round, which keeps generation interactive for large pods.
"""

from collections.abc import Sequence

from pods.pairing import rng
from pods.pairing.history import PairingHistory
from pods.pairing.models import Participant
from pods.pairing.settings import FairnessBonus, PairingScoreMode

FLAT_UNDERSIZED_MULTIPLIER = 3.0
MAX_PROGRESSIVE_STEPS = 5  # 2**5 = 32x cap


def fairness_multiplier(participant_id: str, history: PairingHistory, bonus: FairnessBonus) -> float:
    """Weight boost for participants who sat at undersized tables."""
    if bonus == FairnessBonus.FLAT:
        return FLAT_UNDERSIZED_MULTIPLIER if participant_id in history.last_round_undersized else 1.0
    return float(2 ** min(history.undersized(participant_id), MAX_PROGRESSIVE_STEPS))


def pairing_scores(
    candidates: Sequence[Participant],
    committed: Sequence[Participant],
    history: PairingHistory,
    mode: PairingScoreMode,
) -> dict[str, int]:
    """Sum of past shared tables for each candidate.

    COMMITTED mode scores against the members already seated at the forming
    table. FULL_POOL mode also counts every other remaining candidate.
    """
    scores: dict[str, int] = {}
    for candidate in candidates:
        cid = candidate.participant_id
        score = sum(history.pairings(cid, member.participant_id) for member in committed)
        if mode == PairingScoreMode.FULL_POOL:
            score += sum(history.pairings(cid, other.participant_id) for other in candidates)
        scores[cid] = score
    return scores


def candidate_weights(
    candidates: Sequence[Participant],
    scores: dict[str, int],
    history: PairingHistory,
    bonus: FairnessBonus,
) -> list[float]:
    """Selection weight 2^-score times the fairness multiplier.

    Scores are shifted by the minimum so large histories never underflow;
    relative weights are identical to 2^-score.
    """
    low = min(scores.values())
    high = max(scores.values())
    weights = []
    for candidate in candidates:
        base = 1.0 if low == high else 2.0 ** -(scores[candidate.participant_id] - low)
        weights.append(base * fairness_multiplier(candidate.participant_id, history, bonus))
    return weights


def weighted_draw(candidates: Sequence[Participant], weights: Sequence[float]) -> Participant:
    if len(candidates) == 1:
        return candidates[0]
    target = rng.uniform(sum(weights))
    cumulative = 0.0
    for candidate, weight in zip(candidates, weights, strict=True):
        cumulative += weight
        if target < cumulative:
            return candidate
    return candidates[-1]


def select_participants(
    candidates: Sequence[Participant],
    committed: Sequence[Participant],
    count: int,
    history: PairingHistory,
    *,
    score_mode: PairingScoreMode = PairingScoreMode.FULL_POOL,
    fairness_bonus: FairnessBonus = FairnessBonus.PROGRESSIVE,
) -> list[Participant]:
    """Pick up to count candidates, biased against repeat pairings.

    Returns fewer than count when candidates run out. The candidates
    sequence is not modified; callers remove the returned participants.
    """
    remaining = list(candidates)
    selected: list[Participant] = []
    while len(selected) < count and remaining:
        seated = [*committed, *selected]
        scores = pairing_scores(remaining, seated, history, score_mode)
        weights = candidate_weights(remaining, scores, history, fairness_bonus)
        pick = weighted_draw(remaining, weights)
        selected.append(pick)
        remaining.remove(pick)
    return selected
