"""Shared fixtures: the packaged question script and small synthetic scripts."""

from pathlib import Path

import pytest
import yaml

from stepwork.script import QuestionScriptStore

# Placeholder used for steps a test does not care about; every step file
# must exist and contain at least one active question.
_FILLER = [{"id": "filler", "phase": "p", "phase_title": "P", "order": 1, "text": "Filler?"}]


def question(qid: str, order: int, **overrides) -> dict:
    """Build a raw question dict as it would appear in a step YAML file."""
    raw = {
        "id": qid,
        "phase": "recognition",
        "phase_title": "Recognition",
        "order": order,
        "text": f"Question {qid}?",
    }
    raw.update(overrides)
    return raw


def write_script(base: Path, step1=None, step2=None, step3=None) -> Path:
    """Write step1..step3 YAML files under ``base`` and return it."""
    base.mkdir(parents=True, exist_ok=True)
    for number, questions in ((1, step1), (2, step2), (3, step3)):
        if questions is None:
            questions = [{**q, "id": f"s{number}_{q['id']}"} for q in _FILLER]
        (base / f"step{number}.yaml").write_text(
            yaml.safe_dump(questions, sort_keys=False), encoding="utf-8",
        )
    return base


@pytest.fixture(scope="session")
def store():
    """Load the packaged QuestionScriptStore once for the entire test session."""
    s = QuestionScriptStore()
    s.load()
    return s


@pytest.fixture
def make_store(tmp_path):
    """Factory: build and load a store from raw question dicts per step."""
    counter = {"n": 0}

    def _make(step1=None, step2=None, step3=None) -> QuestionScriptStore:
        counter["n"] += 1
        base = write_script(tmp_path / f"script{counter['n']}", step1, step2, step3)
        s = QuestionScriptStore(script_dir=base)
        s.load()
        return s

    return _make


@pytest.fixture
def three_question_store(make_store):
    """Step 1 with three plain questions ordered 1, 2, 3 and no marker."""
    return make_store(step1=[
        question("q1", 1),
        question("q2", 2),
        question("q3", 3),
    ])
