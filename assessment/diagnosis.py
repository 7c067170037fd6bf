"""
diagnosis.py — turns a finished transcript into ranked diagnosis matches.

  1. The model names DIAGNOSIS_BATCH_SIZE candidate conditions and answers the
     user's questions as a typical patient with each condition would.
  2. Both transcripts are vectorized with the same policy and compared.
  3. Candidates are ranked; each ranked condition gets recommendations from
     its own completion call, all issued concurrently.
"""

import json
import logging
from concurrent.futures import FIRST_EXCEPTION, ThreadPoolExecutor, wait
from typing import Any, Dict, List, Optional, Sequence

from langchain_core.messages import HumanMessage

from assessment import config
from assessment.errors import GenerationError, InputValidationError, ProfileError
from assessment.llm import CompletionClient
from assessment.models import (
    DiagnosisMatch,
    QuestionResponse,
    Recommendation,
    ReferenceProfile,
    Urgency,
)
from assessment.scoring import (
    OPTION_POSITION_SEVERITY,
    confidence,
    cosine_similarity,
    rank,
    vectorize_responses,
)

logger = logging.getLogger(__name__)


# ══════════════════════════════════════════════════════════════════════════════
#  PROMPTS
# ══════════════════════════════════════════════════════════════════════════════

REFERENCE_PROFILE_PROMPT = """
Based on these patient responses, list the top {n} most likely diagnoses. For each diagnosis,
answer the same questions as if a typical patient with that condition was responding.
Answer every question, in the same order, choosing one of the listed options where one fits.

Patient Responses:
{transcript}

Format your response as JSON:
{{
  "diagnoses": [
    {{
      "condition": "string",
      "responses": [
        {{"question": "string", "answer": "string"}}
      ]
    }}
  ]
}}
""".strip()


RECOMMENDATIONS_PROMPT = """
You are a medical AI assistant giving next-step recommendations for a preliminary assessment.
Do not diagnose; suggest sensible actions for someone whose answers resemble this condition.

Condition: {condition}
Match confidence: {confidence}%

Patient Responses:
{transcript}

Give 2-4 recommendations. Urgency must be "low", "medium" or "high".
Return ONLY valid JSON:
{{"recommendations":[{{"text":"<recommendation>","urgency":"<low|medium|high>"}}]}}
""".strip()


# Labels used by the results export.
URGENCY_ALIASES: Dict[str, Urgency] = {
    "low":       Urgency.LOW,
    "medium":    Urgency.MEDIUM,
    "high":      Urgency.HIGH,
    "general":   Urgency.LOW,
    "important": Urgency.MEDIUM,
    "urgent":    Urgency.HIGH,
}


def _format_transcript(responses: Sequence[QuestionResponse], with_options: bool = False) -> str:
    lines = []
    for r in responses:
        lines.append(f"Q: {r.question}")
        if with_options:
            lines.append(f"Options: {json.dumps(r.question_data.options)}")
        lines.append(f"A: {r.answer}")
    return "\n".join(lines)


# ══════════════════════════════════════════════════════════════════════════════
#  REFERENCE PROFILES
# ══════════════════════════════════════════════════════════════════════════════

class ReferenceProfileGenerator:
    def __init__(
        self,
        client:        CompletionClient,
        batch_size:    int = config.DIAGNOSIS_BATCH_SIZE,
        vector_policy: str = OPTION_POSITION_SEVERITY,
    ):
        self.client        = client
        self.batch_size    = batch_size
        self.vector_policy = vector_policy

    def generate(self, transcript: Sequence[QuestionResponse]) -> List[ReferenceProfile]:
        prompt = REFERENCE_PROFILE_PROMPT.format(
            n=self.batch_size,
            transcript=_format_transcript(transcript, with_options=True),
        )
        try:
            data = self.client.complete_json([HumanMessage(content=prompt)])
        except GenerationError as e:
            raise ProfileError(f"Reference profile generation failed: {e.detail}") from e

        diagnoses = data.get("diagnoses") if isinstance(data, dict) else None
        if not isinstance(diagnoses, list):
            raise ProfileError("Reference profile payload is missing the 'diagnoses' array")
        if len(diagnoses) != self.batch_size:
            raise ProfileError(
                f"Expected {self.batch_size} candidate conditions, got {len(diagnoses)}"
            )

        profiles = [self._build_profile(i, d, transcript) for i, d in enumerate(diagnoses)]
        logger.info(f"Reference profiles: {[p.condition for p in profiles]}")
        return profiles

    def _build_profile(
        self, index: int, entry: Any, transcript: Sequence[QuestionResponse]
    ) -> ReferenceProfile:
        if not isinstance(entry, dict):
            raise ProfileError(f"diagnoses[{index}] is not an object")

        condition = entry.get("condition")
        if not isinstance(condition, str) or not condition.strip():
            raise ProfileError(f"diagnoses[{index}] has no condition name")

        simulated = entry.get("responses")
        if not isinstance(simulated, list) or len(simulated) != len(transcript):
            got = len(simulated) if isinstance(simulated, list) else "no"
            raise ProfileError(
                f"'{condition}' has {got} simulated responses for {len(transcript)} questions"
            )

        responses = []
        for j, (sim, asked) in enumerate(zip(simulated, transcript)):
            answer = sim.get("answer") if isinstance(sim, dict) else None
            if not isinstance(answer, str):
                raise ProfileError(f"'{condition}' response {j} has no answer")
            # Question text and options always come from the user's transcript.
            responses.append(QuestionResponse(
                question=asked.question,
                answer=answer.strip(),
                question_data=asked.question_data,
            ))

        return ReferenceProfile(
            condition=condition.strip(),
            responses=responses,
            vector=vectorize_responses(responses, self.vector_policy),
        )


# ══════════════════════════════════════════════════════════════════════════════
#  RECOMMENDATIONS
# ══════════════════════════════════════════════════════════════════════════════

class RecommendationGenerator:
    def __init__(self, client: CompletionClient, timeout: float = config.LLM_TIMEOUT_SECONDS):
        self.client  = client
        self.timeout = timeout

    def for_condition(
        self, match: DiagnosisMatch, transcript: Sequence[QuestionResponse]
    ) -> List[Recommendation]:
        prompt = RECOMMENDATIONS_PROMPT.format(
            condition=match.condition,
            confidence=match.confidence,
            transcript=_format_transcript(transcript),
        )
        try:
            data = self.client.complete_json([HumanMessage(content=prompt)])
        except GenerationError as e:
            raise ProfileError(f"Recommendations for '{match.condition}' failed: {e.detail}") from e

        raw = data.get("recommendations") if isinstance(data, dict) else None
        if not isinstance(raw, list):
            raise ProfileError(f"Recommendations for '{match.condition}' are missing")

        recs = []
        for item in raw:
            if not isinstance(item, dict):
                raise ProfileError(f"Malformed recommendation for '{match.condition}'")
            text    = str(item.get("text") or "").strip()
            label   = str(item.get("urgency") or item.get("type") or "").strip().lower()
            urgency = URGENCY_ALIASES.get(label)
            if not text or urgency is None:
                raise ProfileError(
                    f"Malformed recommendation for '{match.condition}': {item!r}"
                )
            recs.append(Recommendation(text=text, urgency=urgency))
        return recs

    def attach(
        self, matches: List[DiagnosisMatch], transcript: Sequence[QuestionResponse]
    ) -> List[DiagnosisMatch]:
        """
        One call per match, run concurrently. The first failure (or the
        timeout) cancels what has not started and fails the whole batch.

        Calls already in flight are not interrupted: their threads are left
        to finish in the background and their results are discarded. Each
        one is still bounded by the client's own request timeout.
        """
        if not matches:
            return []

        pool = ThreadPoolExecutor(max_workers=len(matches), thread_name_prefix="recs")
        try:
            futures = [pool.submit(self.for_condition, m, transcript) for m in matches]
            done, pending = wait(futures, timeout=self.timeout, return_when=FIRST_EXCEPTION)

            for f in futures:
                if f in done and f.exception() is not None:
                    raise f.exception()
            if pending:
                raise ProfileError(
                    f"Recommendation generation timed out after {self.timeout:g}s"
                )

            return [
                m.model_copy(update={"recommendations": f.result()})
                for m, f in zip(matches, futures)
            ]
        finally:
            pool.shutdown(wait=False, cancel_futures=True)


# ══════════════════════════════════════════════════════════════════════════════
#  ENGINE
# ══════════════════════════════════════════════════════════════════════════════

class DiagnosisEngine:
    def __init__(
        self,
        client:            CompletionClient,
        batch_size:        int = config.DIAGNOSIS_BATCH_SIZE,
        confidence_policy: Optional[str] = None,
        rank_key:          str = "confidence",
        recommendations:   Optional[RecommendationGenerator] = None,
        vector_policy:     str = OPTION_POSITION_SEVERITY,
    ):
        self.profiles          = ReferenceProfileGenerator(client, batch_size, vector_policy)
        self.recommendations   = recommendations or RecommendationGenerator(client)
        self.batch_size        = batch_size
        self.confidence_policy = confidence_policy
        self.rank_key          = rank_key
        self.vector_policy     = vector_policy

    def generate_reference_profiles(
        self, transcript: Sequence[QuestionResponse]
    ) -> List[ReferenceProfile]:
        return self.profiles.generate(transcript)

    def score(
        self,
        transcript: Sequence[QuestionResponse],
        profiles:   Sequence[ReferenceProfile],
    ) -> List[DiagnosisMatch]:
        user_vector = vectorize_responses(transcript, self.vector_policy)
        matches = []
        for p in profiles:
            similarity = cosine_similarity(user_vector, p.vector)
            matches.append(DiagnosisMatch(
                condition=p.condition,
                similarity=similarity,
                confidence=confidence(similarity, transcript, self.confidence_policy),
            ))
            logger.info(
                f"  '{p.condition}': similarity={round(similarity, 3)} "
                f"confidence={matches[-1].confidence}"
            )
        return matches

    def compute_diagnosis(self, transcript: Sequence[QuestionResponse]) -> List[DiagnosisMatch]:
        if not transcript:
            raise InputValidationError("Responses array is required")

        profiles = self.generate_reference_profiles(transcript)
        ranked   = rank(self.score(transcript, profiles), key=self.rank_key, limit=self.batch_size)
        ranked   = self.recommendations.attach(ranked, transcript)

        top = ranked[0]
        logger.info(f"Diagnosis: '{top.condition}' {top.confidence}% of {len(ranked)} candidates")
        return ranked
