from .outcome import Attempt, FailureClass, FailureKind, Outcome
from .request import RequestSpec, ResponseFormat, validate
from .builder import WirePayload, build, endpoint_for
from .extractor import error_message, extract
from .retry import RetryDecision, RetryPolicy
from .dispatcher import Dispatcher
from .gateway import Gateway

__all__ = [
    "Attempt",
    "FailureClass",
    "FailureKind",
    "Outcome",
    "RequestSpec",
    "ResponseFormat",
    "validate",
    "WirePayload",
    "build",
    "endpoint_for",
    "error_message",
    "extract",
    "RetryDecision",
    "RetryPolicy",
    "Dispatcher",
    "Gateway",
]
