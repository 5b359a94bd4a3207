"""
Error types raised by the audit pipeline.

Only FatalParseError is surfaced to callers of ``audit``; the other errors
are recovered where they happen and logged.
"""


class AuditError(Exception):
    """Base class for all auditor errors."""


class ExtractionError(AuditError):
    """Metadata for a single declaration could not be built."""


class RuleEvaluationError(AuditError):
    """A structural rule predicate raised while being evaluated."""

    def __init__(self, rule_id: str, message: str):
        super().__init__(f"Rule {rule_id} failed: {message}")
        self.rule_id = rule_id


class SemanticAnalysisError(AuditError):
    """The semantic analysis call failed, timed out or returned unusable data."""


class FatalParseError(AuditError):
    """The source could not be turned into a syntax tree at all."""
