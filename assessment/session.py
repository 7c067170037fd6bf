"""
session.py — one questionnaire run, from symptom choice to ranked diagnosis.

Phases:
  initial ──(all five areas covered)──▶ detailed
  detailed ──(ready + enough questions)──▶ diagnosing
  diagnosing ──(diagnosis computed)──▶ complete

All state lives in `SessionState`; the engine components are handed the
transcript explicitly and never read it from anywhere else.
"""

import logging
import math
from typing import Any, Dict, List, Optional

from pydantic import ValidationError

from assessment import config
from assessment.areas import compute_areas, is_initial_complete
from assessment.diagnosis import DiagnosisEngine
from assessment.errors import InputValidationError, PhaseError
from assessment.models import (
    DiagnosisMatch,
    GeneratedQuestion,
    Phase,
    QuestionBatch,
    QuestionResponse,
    SessionState,
    parse_responses,
)
from assessment.questions import QuestionOrchestrator
from assessment.report import format_report

logging.basicConfig(level=logging.INFO, format="%(levelname)s | %(message)s")
logger = logging.getLogger(__name__)

# Category and symptom selection count as the first two steps of progress.
SELECTION_STEPS = 2


class AssessmentSession:
    def __init__(self, orchestrator: QuestionOrchestrator, engine: DiagnosisEngine):
        self.orchestrator = orchestrator
        self.engine       = engine
        self.state        = SessionState()

    # ── Public API ────────────────────────────────────────────────────────────

    def start(self, category: str, symptom: str) -> Optional[GeneratedQuestion]:
        category = (category or "").strip()
        symptom  = (symptom or "").strip()
        if not category:
            raise InputValidationError("Please choose a category")
        if not symptom:
            raise InputValidationError("Please describe your symptoms")

        batch = self.orchestrator.generate_next_questions(category, symptom, [], Phase.INITIAL)

        self.state = SessionState(category=category, symptom=symptom)
        self._store_batch(batch)
        logger.info(f"Assessment started: category='{category}' symptom='{symptom}'")
        return self.current_question()

    def current_question(self) -> Optional[GeneratedQuestion]:
        s = self.state
        if s.phase not in (Phase.INITIAL, Phase.DETAILED):
            return None
        if s.current_question_index >= len(s.pending_questions):
            return None
        return s.pending_questions[s.current_question_index]

    def answer(self, answer: str) -> Optional[GeneratedQuestion]:
        """
        Record an answer to the current question and fetch what comes next.

        The response, the phase change and the next questions are committed
        together, only after every model call has succeeded.
        """
        question = self.current_question()
        if question is None:
            raise PhaseError(f"No question is waiting for an answer (phase: {self.state.phase.value})")

        answer = (answer or "").strip()
        if not answer:
            raise InputValidationError("Please provide an answer")

        s = self.state
        response = QuestionResponse(
            question=question.text,
            answer=answer,
            question_data=question.to_question_data(),
        )
        responses = s.responses + [response]

        # Coverage is computed locally, so the initial → detailed switch is known
        # before asking and the next questions are requested in detailed mode.
        entering_detailed = (
            s.phase == Phase.INITIAL and is_initial_complete(compute_areas(responses))
        )
        phase = Phase.DETAILED if entering_detailed else s.phase

        batch = self.orchestrator.generate_next_questions(s.category, s.symptom, responses, phase)

        s.responses = responses
        if entering_detailed:
            s.phase = Phase.DETAILED
            self._store_batch(batch)
            logger.info(f"Phase → detailed after {len(responses)} responses")
            return self.current_question()

        if s.phase == Phase.DETAILED and batch.ready_for_diagnosis:
            current = batch.current_question_number + SELECTION_STEPS
            total   = batch.total_predicted_questions + SELECTION_STEPS
            if current >= min(config.MIN_TOTAL_RESPONSES, total):
                s.phase                     = Phase.DIAGNOSING
                s.pending_questions         = []
                s.current_question_index    = 0
                s.total_predicted_questions = batch.total_predicted_questions
                s.current_question_number   = batch.current_question_number
                logger.info(f"Phase → diagnosing after {len(responses)} responses")
                return None

        self._store_batch(batch)
        return self.current_question()

    def go_back(self, index: int) -> GeneratedQuestion:
        """Drop the answer at `index` and everything after it, and ask that question again."""
        s = self.state
        if s.phase not in (Phase.INITIAL, Phase.DETAILED):
            raise PhaseError(f"Cannot revise answers in phase '{s.phase.value}'")
        if index < 0 or index >= len(s.responses):
            raise InputValidationError(f"No answered question at index {index}")

        target = s.responses[index]
        s.responses              = s.responses[:index]
        s.pending_questions      = [GeneratedQuestion(
            text=target.question_data.text,
            options=list(target.question_data.options),
        )]
        s.current_question_index = 0
        logger.info(f"Returned to question {index}: '{target.question}'")
        return s.pending_questions[0]

    def diagnose(self) -> List[DiagnosisMatch]:
        s = self.state
        if s.phase == Phase.COMPLETE and s.last_diagnosis is not None:
            return s.last_diagnosis
        if s.phase != Phase.DIAGNOSING:
            raise PhaseError(f"Assessment is not ready for diagnosis (phase: {s.phase.value})")

        matches = self.engine.compute_diagnosis(s.responses)
        s.last_diagnosis = matches
        s.phase          = Phase.COMPLETE
        return matches

    def discard_diagnosis(self):
        self.reset()

    def reset(self):
        self.state = SessionState()
        logger.info("Assessment state reset.")

    # ── Views ─────────────────────────────────────────────────────────────────

    def progress_percent(self) -> int:
        s = self.state
        if s.phase in (Phase.DIAGNOSING, Phase.COMPLETE):
            return 100
        if s.category is None:
            return 0
        total = s.total_predicted_questions + SELECTION_STEPS
        current = s.current_question_number + SELECTION_STEPS
        return min(math.floor(current / total * 100 + 0.5), 100)

    def snapshot(self) -> Dict:
        s = self.state
        return {
            "category":       s.category,
            "symptom":        s.symptom,
            "responses":      [r.model_dump(by_alias=True) for r in s.responses],
            "phase":          s.phase.value,
            "last_diagnosis": (
                [m.model_dump(mode="json") for m in s.last_diagnosis]
                if s.last_diagnosis is not None else None
            ),
        }

    def restore(self, snapshot: Dict) -> Optional[GeneratedQuestion]:
        """
        Resume from a `snapshot()` dict. Snapshots do not carry the pending
        question, so an unfinished questionnaire asks the model for the next
        one; the state is replaced only once that call has succeeded.
        """
        if not isinstance(snapshot, dict):
            raise InputValidationError("Snapshot must be an object")

        category = str(snapshot.get("category") or "").strip()
        symptom  = str(snapshot.get("symptom") or "").strip()
        if not category or not symptom:
            raise InputValidationError("Snapshot is missing the category or symptom")

        try:
            phase = Phase(snapshot.get("phase") or Phase.INITIAL.value)
        except ValueError as e:
            raise InputValidationError(f"Unknown phase: {snapshot.get('phase')!r}") from e

        responses = parse_responses(snapshot.get("responses"))
        diagnosis = _parse_diagnosis(snapshot.get("last_diagnosis"))

        if phase in (Phase.DIAGNOSING, Phase.COMPLETE) and not responses:
            raise InputValidationError(f"Phase '{phase.value}' needs at least one response")
        if phase == Phase.COMPLETE and not diagnosis:
            raise InputValidationError("A completed snapshot must include its diagnosis")

        state = SessionState(
            category=category,
            symptom=symptom,
            responses=responses,
            phase=phase,
            last_diagnosis=diagnosis if phase == Phase.COMPLETE else None,
        )
        if phase in (Phase.INITIAL, Phase.DETAILED):
            batch = self.orchestrator.generate_next_questions(category, symptom, responses, phase)
            self.state = state
            self._store_batch(batch)
        else:
            self.state = state

        logger.info(f"Assessment restored: phase={phase.value} responses={len(responses)}")
        return self.current_question()

    def report(self) -> str:
        if not self.state.last_diagnosis:
            raise PhaseError("No diagnosis has been computed yet")
        return format_report(self.state.last_diagnosis[0], self.state.responses)

    # ── Helpers ───────────────────────────────────────────────────────────────

    def _store_batch(self, batch: QuestionBatch):
        s = self.state
        s.pending_questions         = list(batch.questions)
        s.current_question_index    = 0
        s.total_predicted_questions = max(1, batch.total_predicted_questions)
        s.current_question_number   = max(0, batch.current_question_number)


def _parse_diagnosis(raw: Any) -> Optional[List[DiagnosisMatch]]:
    if raw is None:
        return None
    if not isinstance(raw, list):
        raise InputValidationError("last_diagnosis must be an array")
    try:
        return [DiagnosisMatch.model_validate(m) for m in raw]
    except ValidationError as e:
        raise InputValidationError(f"last_diagnosis: {e.errors()[0].get('msg', 'invalid value')}") from e
