"""
contradictions.py — flags pairs of answers with opposite wording.

Each category has two polarities with keyword lists. An answer takes the
first polarity (table order) whose list has a substring match, so an answer
matching both polarities always counts as the first one.
"""

from typing import Dict, List, Optional, Sequence

from assessment.models import Contradiction, QuestionResponse


CONTRADICTION_PATTERNS: Dict[str, Dict[str, List[str]]] = {
    "timing": {
        "recent":  ["just started", "began recently", "new", "started today", "since yesterday"],
        "chronic": ["years", "months", "chronic", "long time", "always had"],
    },
    "severity": {
        "mild":   ["mild", "slight", "minor", "barely", "little"],
        "severe": ["severe", "extreme", "worst", "intense", "unbearable"],
    },
    "frequency": {
        "rare":     ["rarely", "occasionally", "sometimes", "few times"],
        "constant": ["constant", "always", "continuous", "persistent", "all the time"],
    },
    "improvement": {
        "better": ["improves", "gets better", "relieves", "helps", "reduces"],
        "worse":  ["worsens", "gets worse", "aggravates", "increases", "intensifies"],
    },
}


def match_polarity(text: str, polarities: Dict[str, List[str]]) -> Optional[str]:
    text = (text or "").lower()
    for polarity, words in polarities.items():
        if any(w in text for w in words):
            return polarity
    return None


def find_contradictions(responses: Sequence[QuestionResponse]) -> List[Contradiction]:
    found: List[Contradiction] = []
    for i in range(len(responses)):
        for j in range(i + 1, len(responses)):
            a, b = responses[i], responses[j]
            for category, polarities in CONTRADICTION_PATTERNS.items():
                p1 = match_polarity(a.answer, polarities)
                p2 = match_polarity(b.answer, polarities)
                if p1 and p2 and p1 != p2:
                    found.append(Contradiction(category=category, response1=a, response2=b))
    return found
