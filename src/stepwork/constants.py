"""Step-work constants shared across the SDK.

These values are referenced by the script store, the answer classifier and
the session engine.  Thresholds can be overridden via environment variables
so that deployments can tune the heuristics without code changes.
"""

import os

# Step numbers supported by the question script (step1 .. step3).
STEP_NUMBERS: tuple[int, ...] = (1, 2, 3)

# Human-readable step titles for API responses and logging.
STEP_TITLES: dict[int, str] = {
    1: "Powerlessness & Unmanageability",
    2: "Coming to Believe",
    3: "Decision to Turn Over",
}

# Question ``type`` tags understood by the client.  Rendering only; the
# walker never branches on them.
QUESTION_TYPES: set[str] = {"open_ended", "scaled", "yes_no", "reflection"}

# Suffix appended to a parent question id to identify its ad hoc follow-up.
FOLLOW_UP_SUFFIX = ":follow_up"

# --- Classifier thresholds ---
# Answers with fewer words than this are treated as vague.
# Overridable via MIN_ANSWER_WORDS env var.
MIN_ANSWER_WORDS = int(os.getenv("MIN_ANSWER_WORDS", "4"))

# Insight language only counts as a breakthrough in answers at least this long.
# Overridable via BREAKTHROUGH_MIN_WORDS env var.
BREAKTHROUGH_MIN_WORDS = int(os.getenv("BREAKTHROUGH_MIN_WORDS", "8"))

# Hypothetical answers longer than this with no concrete marker are "theory".
THEORY_MIN_WORDS = 15

# Whole-answer generic non-answers (compared trimmed, lower-cased, without
# trailing punctuation).
GENERIC_NON_ANSWERS: set[str] = {
    "i don't know",
    "i dont know",
    "idk",
    "dunno",
    "not sure",
    "i'm not sure",
    "im not sure",
    "fine",
    "ok",
    "okay",
    "nothing",
    "no idea",
    "whatever",
    "same as before",
    "n/a",
}

# Non-committal phrasing anywhere in the answer.
NON_COMMITTAL_PATTERNS: list[str] = [
    r"\bi'?ll try\b",
    r"\bsounds good\b",
    r"\bmaybe\b",
    r"\bi guess\b",
    r"\bprobably\b",
    r"\bhopefully\b",
    r"\bsort of\b",
    r"\bkind of\b",
    r"\bi don'?t know\b",
]

# Hypothetical phrasing that signals theory instead of practice.
THEORY_PATTERNS: list[str] = [
    r"\bi would\b",
    r"\bi should\b",
    r"\bi could\b",
    r"\bin general\b",
    r"\busually\b",
    r"\btypically\b",
]

# Concrete time/action markers that rescue a hypothetical answer.
CONCRETE_MARKER_PATTERN = (
    r"\b(today|yesterday|this morning|last night|this week|last week|at \d|when i|then i)\b"
)

# Insight / change language.
BREAKTHROUGH_PATTERNS: list[str] = [
    r"\bi reali[sz]e\b",
    r"\bunderstand now\b",
    r"\bnow i understand\b",
    r"\bfor the first time\b",
    r"\bi see (now|that)\b",
    r"\bi'?ve been lying\b",
    r"\bthe truth is\b",
    r"\bhonestly\b",
    r"\bi can'?t control\b",
    r"\bi'?m powerless\b",
    r"\bthe pattern is\b",
    r"\bi always\b.*\bwhen\b",
]

# Crisis / self-harm language checked on safety-flagged questions only.
SAFETY_PATTERNS: list[str] = [
    r"\bkill(ing)? myself\b",
    r"\bend(ing)? (my|it all|my life)\b",
    r"\bsuicid(e|al)\b",
    r"\bhurt(ing)? myself\b",
    r"\bself[- ]harm\b",
    r"\bwant(ed)? to die\b",
    r"\bno reason to live\b",
    r"\bbetter off dead\b",
    r"\boverdos(e|ing)\b",
    r"\bcan'?t go on\b",
]

# --- Session completion ---
# Pre-written texts used when the text-generation collaborator fails.
FALLBACK_REFLECTION = (
    "You showed up today. You walked out here and told the truth about "
    "where you are, and that counts. The work isn't about having the right "
    "answers. It's about being honest with the questions. "
    "Remember one thing today: you don't have to do this alone."
)
FALLBACK_ENCOURAGEMENT = (
    "You did the work today. One walk, one honest answer at a time."
)

# Coins awarded per walk minute, with a floor of one coin for any timed walk.
COINS_PER_MINUTE = 1
MIN_COINS_PER_WALK = 1
