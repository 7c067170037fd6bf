"""
questions.py — asks the language model for the next questionnaire question.

Whatever the model returns, every question leaves here with exactly
OPTIONS_PER_QUESTION substantive options followed by the "Other" option.
"""

import json
import logging
from typing import Any, Dict, List, Optional, Sequence

from langchain_core.messages import BaseMessage, HumanMessage, SystemMessage

from assessment import config
from assessment.areas import (
    ReadinessThresholds,
    compute_areas,
    is_ready_for_diagnosis,
)
from assessment.errors import GenerationError, InputValidationError
from assessment.llm import CompletionClient
from assessment.models import (
    AssessmentAreas,
    GeneratedQuestion,
    Phase,
    QuestionBatch,
    QuestionResponse,
)

logger = logging.getLogger(__name__)


# ══════════════════════════════════════════════════════════════════════════════
#  PROMPTS
# ══════════════════════════════════════════════════════════════════════════════

QUESTION_SYSTEM_PROMPT = """
You are a medical assessment AI assistant. Your role is to ask relevant follow-up questions
about the user's symptoms to gather comprehensive information for diagnosis.
Always provide exactly {n_options} answer options plus an "{other}" option.

Based on the user's responses, estimate the total number of questions needed and track the
current question number. Include this in your response.

Previous responses: {previous_responses}
Current phase: {phase_label}
Areas assessed: {assessed_areas}
Ready for diagnosis: {ready}

{phase_guidance}

Format response as JSON with:
{{
  "questions": [{{"text": "question", "options": ["option1", ..., "option{n_options}", "{other}"]}}],
  "assessedAreas": {{"location": bool, ...}},
  "totalPredictedQuestions": number,
  "currentQuestionNumber": number,
  "readyForDiagnosis": bool
}}
""".strip()


INITIAL_GUIDANCE = """
In Phase 1, focus on gathering basic information about all assessment areas:
location, character/severity, timing, triggers and risk factors.
""".strip()


DETAILED_GUIDANCE = """
In Phase 2:
1. Ask detailed follow-up questions based on the initial responses
2. If you detect any contradictions in the responses, ask clarifying questions to resolve them
3. Ensure you have at least {per_area} detailed responses for each assessment area
4. Pay special attention to severity, timing, and progression of symptoms
5. Verify any concerning or unusual combinations of symptoms
6. Set readyForDiagnosis to true ONLY when:
   - You have gathered enough detailed information (at least {total} responses)
   - You have at least {per_area} detailed responses for each assessment area
   - There are no contradictions in the responses
   - You have verified any unusual symptom combinations
""".strip()


INITIAL_INSTRUCTION = "Generate the next most relevant follow-up question. Focus on uncovered areas: {uncovered}"

DETAILED_INSTRUCTION = (
    "Generate the next most relevant follow-up question. Ask detailed follow-up questions based on "
    "the collected information. Focus on any concerning symptoms or unclear responses. Set "
    "readyForDiagnosis to true only when you have gathered enough information for a diagnosis."
)


EXTRA_OPTIONS_PROMPT = """
You are helping to generate additional answer options for a medical assessment question.
Provide options that are relevant to the question context and different from the existing ones.

Question: "{question}"
Existing options: {existing}
Number of additional options needed: {needed}

Return ONLY valid JSON, nothing else:
{{"options":["<option>", ...]}}
""".strip()


PLACEHOLDER_OPTIONS = [
    "Not at all",
    "Slightly",
    "Moderately",
    "Quite a lot",
    "Extremely",
]


# ══════════════════════════════════════════════════════════════════════════════
#  OPTION NORMALIZATION
# ══════════════════════════════════════════════════════════════════════════════

def _clean_options(raw: Any) -> List[str]:
    if not isinstance(raw, list):
        return []
    cleaned = []
    for opt in raw:
        if not isinstance(opt, str) or not opt.strip():
            continue
        # Any option mentioning "other" is dropped; the fixed one is re-added last.
        if "other" in opt.lower():
            continue
        if opt.strip() not in cleaned:
            cleaned.append(opt.strip())
    return cleaned


def pad_options(options: List[str], n: int = config.OPTIONS_PER_QUESTION) -> List[str]:
    padded = list(options)
    for placeholder in PLACEHOLDER_OPTIONS:
        if len(padded) >= n:
            break
        if placeholder not in padded:
            padded.append(placeholder)
    while len(padded) < n:
        padded.append(f"Option {len(padded) + 1}")
    return padded


# ══════════════════════════════════════════════════════════════════════════════
#  ORCHESTRATOR
# ══════════════════════════════════════════════════════════════════════════════

class QuestionOrchestrator:
    """
    Builds the question prompt from the transcript and computed state,
    calls the model and post-processes its answer.

    Never mutates session state; a failure raises GenerationError and the
    caller keeps its previous state.
    """

    def __init__(
        self,
        client:      CompletionClient,
        fill_policy: str = config.OPTION_FILL_POLICY,
        n_options:   int = config.OPTIONS_PER_QUESTION,
        thresholds:  ReadinessThresholds = ReadinessThresholds(),
    ):
        if fill_policy not in ("regenerate", "pad"):
            raise ValueError(f"Unknown option fill policy: {fill_policy!r}")
        self.client      = client
        self.fill_policy = fill_policy
        self.n_options   = n_options
        self.thresholds  = thresholds

    # ── Public API ────────────────────────────────────────────────────────────

    def generate_next_questions(
        self,
        category:           Optional[str],
        symptom:            Optional[str],
        previous_responses: Sequence[QuestionResponse],
        phase:              Phase,
    ) -> QuestionBatch:
        if not (category or "").strip() or not (symptom or "").strip():
            raise InputValidationError("Missing required fields: category and symptom")

        responses = list(previous_responses)
        detailed  = phase == Phase.DETAILED
        areas     = compute_areas(responses)
        ready     = detailed and is_ready_for_diagnosis(responses, areas, self.thresholds)

        messages = self._build_messages(category, symptom, responses, detailed, areas, ready)
        data = self.client.complete_json(messages)

        if not isinstance(data, dict) or not isinstance(data.get("questions"), list):
            logger.error(f"Question payload missing 'questions' array: {str(data)[:200]}")
            raise GenerationError("Invalid response format from language model")

        questions = []
        for q in data["questions"]:
            if not isinstance(q, dict) or not str(q.get("text") or "").strip():
                logger.warning(f"Skipping malformed question entry: {q!r}")
                continue
            text = str(q["text"]).strip()
            questions.append(GeneratedQuestion(text=text, options=self._normalize_options(text, q.get("options"))))

        if not questions:
            raise GenerationError("Language model returned no usable questions")

        if detailed:
            total   = config.DETAILED_PREDICTED_QUESTIONS
            current = min(len(responses), total)
        else:
            total   = config.INITIAL_PREDICTED_QUESTIONS
            current = areas.covered_count()

        batch = QuestionBatch(
            questions=questions,
            assessed_areas=None if detailed else areas,
            total_predicted_questions=total,
            current_question_number=current,
            ready_for_diagnosis=ready,
        )
        logger.info(
            f"Generated {len(questions)} question(s) [{phase.value}] "
            f"q={current}/{total} areas={areas.covered_count()}/5 ready={ready}"
        )
        return batch

    # ── Prompt building ───────────────────────────────────────────────────────

    def _build_messages(
        self,
        category:  str,
        symptom:   str,
        responses: List[QuestionResponse],
        detailed:  bool,
        areas:     AssessmentAreas,
        ready:     bool,
    ) -> List[BaseMessage]:
        if detailed:
            guidance = DETAILED_GUIDANCE.format(
                per_area=self.thresholds.min_responses_per_area,
                total=self.thresholds.min_total_responses,
            )
            instruction = DETAILED_INSTRUCTION
            phase_label = "Phase 2 (Detailed Assessment)"
        else:
            guidance    = INITIAL_GUIDANCE
            instruction = INITIAL_INSTRUCTION.format(uncovered=", ".join(areas.uncovered()) or "none")
            phase_label = "Phase 1 (Initial Assessment)"

        system = QUESTION_SYSTEM_PROMPT.format(
            n_options          = self.n_options,
            other              = config.OTHER_OPTION,
            previous_responses = json.dumps([r.model_dump(by_alias=True) for r in responses]),
            phase_label        = phase_label,
            assessed_areas     = json.dumps(areas.as_dict()),
            ready              = str(ready).lower(),
            phase_guidance     = guidance,
        )

        messages: List[BaseMessage] = [SystemMessage(content=system)]
        for r in responses:
            messages.append(HumanMessage(content=f"Question: {r.question}\nAnswer: {r.answer}"))
        messages.append(HumanMessage(content=f"Category: {category}\nSymptom: {symptom}"))
        messages.append(HumanMessage(content=instruction))
        return messages

    # ── Options ───────────────────────────────────────────────────────────────

    def _normalize_options(self, question: str, raw: Any) -> List[str]:
        options = _clean_options(raw)

        if len(options) < self.n_options and self.fill_policy == "regenerate":
            options += self._request_extra_options(question, options, self.n_options - len(options))

        options = pad_options(options[: self.n_options], self.n_options)
        return options + [config.OTHER_OPTION]

    def _request_extra_options(self, question: str, existing: List[str], needed: int) -> List[str]:
        prompt = EXTRA_OPTIONS_PROMPT.format(
            question=question,
            existing=json.dumps(existing),
            needed=needed,
        )
        try:
            data = self.client.complete_json([HumanMessage(content=prompt)])
        except GenerationError as e:
            logger.warning(f"Extra options request failed, padding instead: {e.detail}")
            return []

        raw = data.get("options") if isinstance(data, dict) else data
        extra = [o for o in _clean_options(raw) if o not in existing]
        if len(extra) < needed:
            logger.info(f"Extra options short by {needed - len(extra)} for '{question}', padding.")
        return extra[:needed]
