"""
Custom error classes for the query pipeline
"""

from enum import Enum


class PipelineError(Exception):
    """Base exception for pipeline errors"""
    pass


class ViolationKind(str, Enum):
    EMPTY = "empty"
    MULTI_STATEMENT = "multi_statement"
    FORBIDDEN_KEYWORD = "forbidden_keyword"
    NOT_READ_ONLY = "not_read_only"


class GuardViolation(PipelineError):
    """SQL rejected by the guard before any connection is opened"""

    def __init__(self, kind: ViolationKind, message: str):
        super().__init__(message)
        self.kind = kind

    def __repr__(self) -> str:
        return f"GuardViolation(kind={self.kind.value}, message={str(self)!r})"


class ExecutionError(PipelineError):
    """Driver, network, syntax or timeout failure while running a guarded statement"""
    pass


class QueryTimeoutError(ExecutionError):
    """Statement or connect timeout"""
    pass


class OracleError(PipelineError):
    """LLM call or response parsing failed"""
    pass


class CapabilityError(PipelineError):
    """Connector or dataset outside the caller's capability scope"""
    pass


class RequestCancelled(PipelineError):
    """The surrounding request was cancelled"""
    pass
