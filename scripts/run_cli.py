"""
scripts/run_cli.py
Take the symptom assessment interactively in a terminal.

Usage:
    python scripts/run_cli.py
"""

import os
import sys

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from assessment import config
from assessment.catalog import SYMPTOM_OPTIONS
from assessment.diagnosis import DiagnosisEngine
from assessment.errors import AssessmentError, GenerationError, InputValidationError
from assessment.llm import GroqCompletionClient
from assessment.models import Phase
from assessment.questions import QuestionOrchestrator
from assessment.session import AssessmentSession


def choose(prompt, options):
    for i, opt in enumerate(options, 1):
        print(f"  {i}. {opt}")
    while True:
        raw = input(f"{prompt} ").strip()
        if raw.lower() in ("exit", "quit", "q"):
            raise KeyboardInterrupt
        if raw.isdigit() and 1 <= int(raw) <= len(options):
            return options[int(raw) - 1]
        print(f"  Please enter a number between 1 and {len(options)}.")


def main():
    print("\n" + "=" * 60)
    print("  Symptom Assessment")
    print("  ⚠️  NOT a medical diagnosis tool.")
    print("      Always consult a licensed doctor.")
    print("=" * 60 + "\n")

    # ── Get Groq API key ─────────────────────────────────────────
    if not config.GROQ_API_KEY:
        print("❌ GROQ_API_KEY not set.")
        sys.exit(1)

    session = AssessmentSession(
        orchestrator = QuestionOrchestrator(GroqCompletionClient(config.GROQ_API_KEY)),
        engine       = DiagnosisEngine(GroqCompletionClient(
            config.GROQ_API_KEY, temperature=config.PROFILE_TEMPERATURE
        )),
    )

    try:
        category = choose("Category:", list(SYMPTOM_OPTIONS))
        symptom  = choose("Symptom:", SYMPTOM_OPTIONS[category])
        if symptom == config.OTHER_OPTION:
            symptom = input("Describe your symptom: ").strip()

        question = session.start(category, symptom)

        while session.state.phase in (Phase.INITIAL, Phase.DETAILED):
            print(f"\n[{session.progress_percent()}%] {question.text}")
            answer = choose("Answer:", question.options)
            if answer == config.OTHER_OPTION:
                answer = input("Your answer: ").strip()
            try:
                question = session.answer(answer)
            except (GenerationError, InputValidationError) as e:
                print(f"\n  {e.detail}. Please answer again.")

        print("\nAnalyzing your responses...\n")
        matches = session.diagnose()

    except KeyboardInterrupt:
        print("\n\nGoodbye! Please consult a real doctor.")
        return
    except AssessmentError as e:
        print(f"\n❌ {e.detail}")
        sys.exit(1)

    print("  ┌─ Top Candidates ─────────────────────────────┐")
    for i, m in enumerate(matches, 1):
        bar = "█" * (m.confidence // 10)
        print(f"  │ {i}. {m.condition:<28} {m.confidence:>3}% {bar}")
    print("  └──────────────────────────────────────────────┘\n")

    print(session.report())
    print("\n" + "=" * 60)
    print("  Session complete. Please see a healthcare provider.")
    print("=" * 60)


if __name__ == "__main__":
    main()
