"""Generation pipeline: invoker, interpreter, classifier, planner and poller."""

from .error_classifier import classify, is_rate_limit_error
from .errors import (
    ErrorKind,
    Failure,
    GenerationError,
    Result,
    Success,
    UserFacingError,
)
from .interpreter import JSONExtractionError, extract_json, interpret, interpret_text
from .invoker import ModelInvoker
from .media import MediaGenerator, ResearchResult
from .planner import (
    CompositePlan,
    PlanAssembler,
    PlanConfigurationError,
    ProgressEvent,
    RepeatedStep,
    StepSpec,
    UnresolvedPlaceholderError,
)
from .poller import OperationPoller
from .session import ChatSession, SessionClosedError

__all__ = [
    "ChatSession",
    "CompositePlan",
    "ErrorKind",
    "Failure",
    "GenerationError",
    "JSONExtractionError",
    "MediaGenerator",
    "ModelInvoker",
    "OperationPoller",
    "PlanAssembler",
    "PlanConfigurationError",
    "ProgressEvent",
    "RepeatedStep",
    "ResearchResult",
    "Result",
    "SessionClosedError",
    "StepSpec",
    "Success",
    "UnresolvedPlaceholderError",
    "UserFacingError",
    "classify",
    "extract_json",
    "interpret",
    "interpret_text",
    "is_rate_limit_error",
]
