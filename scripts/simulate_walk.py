#!/usr/bin/env python3
"""Simulate a full walk session end-to-end with a mocked DB and reflector.

Starts a session for one step, answers every question the walker presents,
then completes the walk, printing a rich audit log of each question, the
answer given, its classification and the closing reflection.

By default answers are **randomised** (``--random``, on by default) from a
pool of vague, substantive and breakthrough answers so each run exercises
a different mix of red flags, follow-ups and breakthroughs.  Use
``--no-random`` for a fixed substantive answer, or ``--interactive`` to
type the answers yourself.

Usage::

    # Default run (step1, random answers)
    python scripts/simulate_walk.py

    # Work step 3 deterministically
    python scripts/simulate_walk.py -s step3 --no-random

    # Answer the questions yourself
    python scripts/simulate_walk.py -i

    # Verbose mode (include analytics after every turn)
    python scripts/simulate_walk.py -v
"""

from __future__ import annotations

import argparse
import asyncio
import random
import sys
from pathlib import Path

# ---------------------------------------------------------------------------
# Ensure project root is on sys.path so we can import both the SDK and
# test mock infrastructure.
# ---------------------------------------------------------------------------
_SCRIPT_DIR = Path(__file__).resolve().parent
_REPO_ROOT = _SCRIPT_DIR.parent
sys.path.insert(0, str(_REPO_ROOT / "tests"))
sys.path.insert(0, str(_REPO_ROOT / "src"))

from test_engine import MockRepository  # noqa: E402
from unittest.mock import AsyncMock  # noqa: E402

from rich.console import Console  # noqa: E402
from rich.panel import Panel  # noqa: E402
from rich.table import Table  # noqa: E402

from stepwork.engine import StepWorkEngine  # noqa: E402
from stepwork.interfaces import ReflectionGenerator  # noqa: E402
from stepwork.models.question import PresentedQuestion, Step  # noqa: E402
from stepwork.models.session import AnswerResult, ConversationTurn  # noqa: E402
from stepwork.script import QuestionScriptStore  # noqa: E402

# ---------------------------------------------------------------------------
# Constants for the simulation
# ---------------------------------------------------------------------------

USER_ID = "sim_user"
_DEFAULT_STEP = "step1"
_FIXED_ANSWER = "Last week I told my sister I'd stopped and I hadn't"

# Pool of answers for --random mode: a mix of vague, substantive and
# breakthrough answers.
_RANDOM_ANSWER_POOL = [
    "I don't know",
    "fine",
    "Maybe sometimes, I guess",
    "Last week I told my sister I'd stopped and I hadn't",
    "I missed my daughter's recital because I was at the casino",
    "I realize now that I've been hiding this from everyone for years",
    "For the first time I can see the pattern: every time I'm lonely, I use",
    "I spent the rent money in March and lied about where it went",
]

_RANDOM_MOODS = ["anxious", "restless", "calm", "tired", "hopeful"]

console = Console()


# ---------------------------------------------------------------------------
# Mock reflector
# ---------------------------------------------------------------------------


class SimReflector(ReflectionGenerator):
    """Builds closing texts from the conversation instead of calling a model."""

    async def generate_reflection(self, turns, step, *, pre_walk_mood=None, pre_walk_intention=None):
        mood = f" You came in feeling {pre_walk_mood}." if pre_walk_mood else ""
        return (
            f"You showed up for {step.value}.{mood} "
            f"You answered {len(turns)} questions honestly."
        )

    async def generate_encouragement(self, reflection):
        return "You did the work. Walk again tomorrow."

    async def extract_insights(self, turns: list[ConversationTurn]) -> list[str]:
        return [
            f"You named something real: {t.answer_text}"
            for t in turns if t.classification.is_breakthrough
        ][:3]


# ---------------------------------------------------------------------------
# Answer selection
# ---------------------------------------------------------------------------


def choose_answer(question: PresentedQuestion, mode: str) -> str:
    """Pick the answer for ``question`` according to ``mode``."""
    if mode == "interactive":
        while True:
            answer = console.input("    [bold]Your answer:[/] ").strip()
            if answer:
                return answer
            console.print("    [yellow]![/] An answer is required")
    if mode == "random":
        return random.choice(_RANDOM_ANSWER_POOL)
    return _FIXED_ANSWER


# ---------------------------------------------------------------------------
# Logging helpers
# ---------------------------------------------------------------------------


def log_question(question: PresentedQuestion) -> None:
    tag = " [magenta](follow-up)[/]" if question.is_follow_up else ""
    console.print(
        f"\n  [cyan]{question.phase_title}[/] [dim]{question.id}[/]{tag}"
    )
    console.print(f"    [dim]Q:[/] {question.text}")


def log_result(answer: str, result: AnswerResult, verbose: bool) -> None:
    console.print(f"    [dim]A:[/] {answer}")
    flags = []
    if result.has_red_flags:
        flags.append("[yellow]vague[/]")
    if result.is_breakthrough:
        flags.append("[green]breakthrough[/]")
    if result.safety_concern:
        flags.append("[red]safety[/]")
    if flags:
        console.print(f"    → {', '.join(flags)}")
    if result.follow_up_prompt:
        console.print(f"    [dim]Nudge:[/] {result.follow_up_prompt}")
    if verbose:
        a = result.analytics
        console.print(
            f"    [dim]analytics: completed={a.questions_completed} "
            f"breakthroughs={a.breakthrough_moments} red_flags={a.red_flags_encountered} "
            f"phase={a.current_phase}[/]"
        )


# ---------------------------------------------------------------------------
# Simulation
# ---------------------------------------------------------------------------


async def run_simulation(step: str, mode: str, verbose: bool, duration: int) -> None:
    store = QuestionScriptStore()
    store.load()

    engine = StepWorkEngine(store, reflector=SimReflector())
    engine._repo = MockRepository()
    db = AsyncMock()

    mood = random.choice(_RANDOM_MOODS) if mode == "random" else "calm"
    started = await engine.start_session(
        db, user_id=USER_ID, step=step, pre_walk_mood=mood, location="park",
    )
    console.rule(f"[bold]Walk {started.step}")
    console.print(f"  Session {started.session_id} (mood: {mood})")

    question = started.initial_question
    turns = 0
    while question is not None:
        log_question(question)
        answer = choose_answer(question, mode)
        result = await engine.submit_answer(
            db, user_id=USER_ID, session_id=started.session_id, answer=answer,
        )
        log_result(answer, result, verbose)
        turns += 1
        question = result.next_question

    done = await engine.complete_session(
        db, user_id=USER_ID, session_id=started.session_id, walk_duration=duration,
    )

    console.print()
    console.rule("[bold]Walk Summary")
    console.print(Panel(done.reflection, title="Reflection"))
    console.print(Panel(done.encouragement, title="Encouragement"))

    table = Table(show_header=False)
    table.add_row("Turns", str(turns))
    table.add_row("Breakthroughs", str(done.analytics.breakthrough_moments))
    table.add_row("Red flags", str(done.analytics.red_flags_encountered))
    table.add_row("Coins earned", str(done.coins_earned))
    console.print(table)

    if done.insights:
        console.print("  [bold]Insights[/]")
        for insight in done.insights:
            console.print(f"    • {insight}")


def main() -> None:
    parser = argparse.ArgumentParser(
        description="Simulate a walk session end-to-end with a mocked DB and reflector.",
    )
    parser.add_argument(
        "-s", "--step",
        default=_DEFAULT_STEP,
        choices=[s.value for s in Step],
        help="Step to work (default: step1)",
    )
    parser.add_argument(
        "--random",
        action=argparse.BooleanOptionalAction,
        default=True,
        help="Randomise answers (default: on). Use --no-random for a fixed answer.",
    )
    parser.add_argument(
        "-i", "--interactive",
        action="store_true",
        help="Type each answer yourself (overrides --random)",
    )
    parser.add_argument(
        "-d", "--duration",
        type=int,
        default=20,
        help="Walk duration in minutes used for coins (default: 20)",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Print running analytics after every answer",
    )
    args = parser.parse_args()

    if args.interactive:
        mode = "interactive"
    elif args.random:
        mode = "random"
    else:
        mode = "fixed"

    asyncio.run(run_simulation(args.step, mode, args.verbose, args.duration))


if __name__ == "__main__":
    main()
