"""Public model re-exports for stepwork.

Consumers should import from ``stepwork.models`` rather than reaching into
sub-modules directly.
"""

# --- Questions ---
from stepwork.models.question import (
    ConditionalFollowUp,
    FollowUp,
    PresentedQuestion,
    Question,
    Step,
)

# --- Session / turn ---
from stepwork.models.session import (
    Analytics,
    AnswerResult,
    Classification,
    CompletionResult,
    ConversationTurn,
    IncompleteSessionCheck,
    SessionDetail,
    SessionInfo,
    StartSessionResult,
    TurnResult,
)

__all__ = [
    # Questions
    "ConditionalFollowUp",
    "FollowUp",
    "PresentedQuestion",
    "Question",
    "Step",
    # Session
    "Analytics",
    "AnswerResult",
    "Classification",
    "CompletionResult",
    "ConversationTurn",
    "IncompleteSessionCheck",
    "SessionDetail",
    "SessionInfo",
    "StartSessionResult",
    "TurnResult",
]
