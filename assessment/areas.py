"""
areas.py — keyword classifier and assessment-state tracker.

A question "covers" an area when its lowercased text contains any keyword
of that area. Coverage and readiness are always recomputed from the full
response list; nothing here keeps state between calls.
"""

import logging
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Set

from assessment import config
from assessment.contradictions import find_contradictions
from assessment.models import AreaTag, AssessmentAreas, QuestionResponse

logger = logging.getLogger(__name__)


# ══════════════════════════════════════════════════════════════════════════════
#  KEYWORD TABLES
# ══════════════════════════════════════════════════════════════════════════════

# Used for coverage (which areas have been asked about at all).
COVERAGE_KEYWORDS: Dict[AreaTag, List[str]] = {
    AreaTag.LOCATION:           ["where", "location", "area", "spot", "place", "side"],
    AreaTag.CHARACTER_SEVERITY: ["severity", "pain level", "intensity", "type of", "nature of",
                                 "character", "how severe", "describe the"],
    AreaTag.TIMING:             ["when", "how long", "duration", "often", "frequency", "start", "began"],
    AreaTag.TRIGGERS:           ["trigger", "worse", "better", "improve", "aggravate", "affect", "impact"],
    AreaTag.RISK_FACTORS:       ["history", "condition", "medical", "risk", "family", "previous", "existing"],
}

# Used for the per-area depth count behind readiness. Broader than coverage.
DEPTH_KEYWORDS: Dict[AreaTag, List[str]] = {
    AreaTag.LOCATION:           COVERAGE_KEYWORDS[AreaTag.LOCATION] + ["specific", "exactly"],
    AreaTag.CHARACTER_SEVERITY: COVERAGE_KEYWORDS[AreaTag.CHARACTER_SEVERITY] + ["quality", "feels like"],
    AreaTag.TIMING:             COVERAGE_KEYWORDS[AreaTag.TIMING] + ["pattern", "time of day", "seasonal"],
    AreaTag.TRIGGERS:           COVERAGE_KEYWORDS[AreaTag.TRIGGERS] + ["factors", "activities", "foods",
                                                                        "environmental"],
    AreaTag.RISK_FACTORS:       COVERAGE_KEYWORDS[AreaTag.RISK_FACTORS] + ["medication", "allergies",
                                                                            "lifestyle"],
}


@dataclass(frozen=True)
class ReadinessThresholds:
    min_total_responses:    int  = config.MIN_TOTAL_RESPONSES
    min_responses_per_area: int  = config.MIN_RESPONSES_PER_AREA
    contradictions_veto:    bool = True


# ══════════════════════════════════════════════════════════════════════════════
#  CLASSIFIER
# ══════════════════════════════════════════════════════════════════════════════

def classify(
    question_text: Optional[str],
    keywords: Dict[AreaTag, List[str]] = COVERAGE_KEYWORDS,
) -> Set[AreaTag]:
    """Return every area whose keyword list has a substring match in the text."""
    if not question_text:
        return set()
    q = question_text.lower()
    return {area for area, words in keywords.items() if any(w in q for w in words)}


# ══════════════════════════════════════════════════════════════════════════════
#  STATE TRACKER
# ══════════════════════════════════════════════════════════════════════════════

def compute_areas(responses: Iterable[QuestionResponse]) -> AssessmentAreas:
    covered: Set[AreaTag] = set()
    for r in responses:
        covered |= classify(r.question)
    return AssessmentAreas(**{tag.value: tag in covered for tag in AreaTag})


def is_initial_complete(areas: AssessmentAreas) -> bool:
    return all(areas.get(tag) for tag in AreaTag)


def count_area_responses(responses: Iterable[QuestionResponse]) -> Dict[AreaTag, int]:
    counts = {tag: 0 for tag in AreaTag}
    for r in responses:
        for tag in classify(r.question, DEPTH_KEYWORDS):
            counts[tag] += 1
    return counts


def is_ready_for_diagnosis(
    responses:  List[QuestionResponse],
    areas:      AssessmentAreas,
    thresholds: ReadinessThresholds = ReadinessThresholds(),
) -> bool:
    """
    Enough answers, every area covered, every area probed deeply enough,
    and (unless disabled) no contradictory answers. The phase check lives
    with the caller, which only asks in the detailed phase.
    """
    if not responses or len(responses) < thresholds.min_total_responses:
        return False

    if not is_initial_complete(areas):
        return False

    counts = count_area_responses(responses)
    if any(n < thresholds.min_responses_per_area for n in counts.values()):
        return False

    if thresholds.contradictions_veto:
        contradictions = find_contradictions(responses)
        if contradictions:
            logger.info(
                f"Not ready: {len(contradictions)} contradiction(s) "
                f"({', '.join(sorted({c.category for c in contradictions}))})"
            )
            return False

    return True
