"""
scoring.py — response vectors, similarity, confidence and ranking.

Vector policy (OPTION_POSITION_SEVERITY): an answer scores by where it sits
in the option list, so later options score higher. Nothing guarantees the
model orders options by severity; this mapping needs review by someone with
clinical background before scores are read as anything more than relative.
"""

import math
from typing import List, Optional, Sequence

from assessment import config
from assessment.contradictions import find_contradictions
from assessment.models import DiagnosisMatch, QuestionResponse

OPTION_POSITION_SEVERITY = "option_position_severity"

# Score for open-ended ("Other") and unknown answers. Applied identically to
# the user vector and every reference vector.
NEUTRAL_VALUE = 0.5

CONFIDENCE_BASELINE = 50
CONFIDENCE_SIMILARITY_WEIGHT = 50

SPECIFICITY_WEIGHT  = 0.4
CONSISTENCY_WEIGHT  = 0.3
COMPLETENESS_WEIGHT = 0.3

HEDGE_PHRASES = ["not sure", "don't know", "dont know", "unsure", "maybe", "no idea"]


# ══════════════════════════════════════════════════════════════════════════════
#  VECTORIZER
# ══════════════════════════════════════════════════════════════════════════════

def vectorize(response: QuestionResponse, policy: str = OPTION_POSITION_SEVERITY) -> float:
    if policy != OPTION_POSITION_SEVERITY:
        raise ValueError(f"Unknown vector policy: {policy!r}")
    answer  = response.answer
    options = response.question_data.options
    if answer == config.OTHER_OPTION or answer not in options:
        return NEUTRAL_VALUE
    return (options.index(answer) + 1) / len(options)


def vectorize_responses(
    responses: Sequence[QuestionResponse],
    policy:    str = OPTION_POSITION_SEVERITY,
) -> List[float]:
    return [vectorize(r, policy) for r in responses]


# ══════════════════════════════════════════════════════════════════════════════
#  SIMILARITY + CONFIDENCE
# ══════════════════════════════════════════════════════════════════════════════

def cosine_similarity(vec1: Sequence[float], vec2: Sequence[float]) -> float:
    """
    Cosine similarity mapped from [-1, 1] onto [0, 1].

    Mismatched lengths, empty vectors and zero-magnitude vectors score 0.
    Vectors are never truncated to a common length.
    """
    if len(vec1) != len(vec2) or not vec1:
        return 0.0

    dot  = sum(a * b for a, b in zip(vec1, vec2))
    mag1 = math.sqrt(sum(a * a for a in vec1))
    mag2 = math.sqrt(sum(b * b for b in vec2))
    if mag1 == 0 or mag2 == 0:
        return 0.0

    cos = max(-1.0, min(1.0, dot / (mag1 * mag2)))
    return (cos + 1) / 2


def _clamp_percent(value: float) -> int:
    # Halves round up.
    return int(math.floor(min(max(value, 0), 100) + 0.5))


def _is_hedged(answer: str) -> bool:
    a = answer.strip().lower()
    return a == config.OTHER_OPTION.lower() or any(h in a for h in HEDGE_PHRASES)


def _specificity(responses: Sequence[QuestionResponse]) -> float:
    if not responses:
        return 0.0
    hedged = sum(1 for r in responses if _is_hedged(r.answer))
    return 1 - hedged / len(responses)


def _consistency(responses: Sequence[QuestionResponse]) -> float:
    if not responses:
        return 1.0
    return 1 - min(1.0, len(find_contradictions(responses)) / len(responses))


def _completeness(responses: Sequence[QuestionResponse]) -> float:
    return min(1.0, len(responses) / max(config.MIN_TOTAL_RESPONSES, 1))


def confidence(
    similarity: float,
    responses:  Sequence[QuestionResponse],
    policy:     Optional[str] = None,
) -> int:
    """Integer confidence in [0, 100] for one candidate."""
    policy = policy or config.CONFIDENCE_POLICY

    if policy == "weighted":
        quality = (
            SPECIFICITY_WEIGHT  * _specificity(responses)
            + CONSISTENCY_WEIGHT  * _consistency(responses)
            + COMPLETENESS_WEIGHT * _completeness(responses)
        )
        return _clamp_percent(similarity * 100 * quality)

    if policy != "baseline":
        raise ValueError(f"Unknown confidence policy: {policy!r}")
    return _clamp_percent(CONFIDENCE_BASELINE + similarity * CONFIDENCE_SIMILARITY_WEIGHT)


# ══════════════════════════════════════════════════════════════════════════════
#  RANKING
# ══════════════════════════════════════════════════════════════════════════════

def rank(
    matches: Sequence[DiagnosisMatch],
    key:     str = "confidence",
    limit:   Optional[int] = None,
) -> List[DiagnosisMatch]:
    """Descending by `key` ("confidence" or "similarity"); ties keep input order."""
    if key not in ("confidence", "similarity"):
        raise ValueError(f"Unknown ranking key: {key!r}")
    limit = config.DIAGNOSIS_BATCH_SIZE if limit is None else limit
    ordered = sorted(matches, key=lambda m: getattr(m, key), reverse=True)
    return ordered[:limit]
