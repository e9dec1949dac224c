from typing import List, Optional


class RuleEngineException(Exception):
    """Base exception for the application."""
    pass


class InvalidRuleDefinition(RuleEngineException):
    """A rule failed validation and cannot be saved."""

    def __init__(self, message: str, errors: Optional[List[str]] = None):
        super().__init__(message)
        self.errors = errors or [message]


class EvaluationFault(RuleEngineException):
    """Malformed input reached evaluation. The offending rule is skipped."""
    pass


class ActionExecutionError(RuleEngineException):
    """A ticket mutation call failed."""
    pass


class TransientMutationError(ActionExecutionError):
    """A ticket mutation failed in a way that is worth one retry."""
    pass


class NotifyFailure(ActionExecutionError):
    """Notification side-channel failed. Never fatal to the owning rule."""
    pass


class RuleNotFound(RuleEngineException):
    """For lookups of rules outside the workspace or already deleted."""
    pass


class DuplicateRuleName(RuleEngineException):
    """For name clashes inside a workspace."""
    pass
