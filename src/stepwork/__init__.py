"""stepwork: guided step-work walk SDK.

Public API:
    StepWorkEngine     : async orchestrator for walk sessions over the database
    SessionWalker      : linear walker over one step's question script
    walk               : pure (history, answer) -> (history', result) form
    QuestionScriptStore: loads the YAML question scripts with lookup helpers
    WalkerState        : AWAITING_ANSWER / BRANCHING / STEP_COMPLETE

Classification:
    AnswerClassifier   : ABC for answer classifiers
    HeuristicClassifier: default keyword/length classifier
    QuestionContext    : question + prior turns handed to a classifier

Text generation (session completion):
    ReflectionGenerator      : ABC for reflection/encouragement/insights
    OpenAIReflectionGenerator: OpenAI-backed implementation
    PromptManager            : Jinja2 prompt renderer

Session / turn models:
    Step, Question, PresentedQuestion, ConversationTurn, Classification,
    TurnResult, AnswerResult, Analytics, SessionInfo, SessionDetail,
    StartSessionResult, IncompleteSessionCheck, CompletionResult
"""

from stepwork.classifier import AnswerClassifier, HeuristicClassifier, QuestionContext
from stepwork.engine import StepWorkEngine
from stepwork.exceptions import (
    EmptyStep,
    HistoryMismatch,
    InvalidStep,
    ScriptConfigError,
    SessionForbidden,
    SessionNotFound,
    StepAlreadyComplete,
)
from stepwork.interfaces import ReflectionGenerator
from stepwork.llm import OpenAIReflectionGenerator
from stepwork.models import (
    Analytics,
    AnswerResult,
    Classification,
    CompletionResult,
    ConversationTurn,
    IncompleteSessionCheck,
    PresentedQuestion,
    Question,
    SessionDetail,
    SessionInfo,
    StartSessionResult,
    Step,
    TurnResult,
)
from stepwork.prompt import PromptManager
from stepwork.script import QuestionScriptStore
from stepwork.walker import SessionWalker, WalkerState, walk

__all__ = [
    # Engine, walker & store
    "StepWorkEngine",
    "SessionWalker",
    "WalkerState",
    "walk",
    "QuestionScriptStore",
    # Classification
    "AnswerClassifier",
    "HeuristicClassifier",
    "QuestionContext",
    # Text generation
    "ReflectionGenerator",
    "OpenAIReflectionGenerator",
    "PromptManager",
    # Models
    "Analytics",
    "AnswerResult",
    "Classification",
    "CompletionResult",
    "ConversationTurn",
    "IncompleteSessionCheck",
    "PresentedQuestion",
    "Question",
    "SessionDetail",
    "SessionInfo",
    "StartSessionResult",
    "Step",
    "TurnResult",
    # Errors
    "EmptyStep",
    "HistoryMismatch",
    "InvalidStep",
    "ScriptConfigError",
    "SessionForbidden",
    "SessionNotFound",
    "StepAlreadyComplete",
]
