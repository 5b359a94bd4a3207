"""
Vulnerability detection rules, ordered by severity.
"""
from contract_auditor.rules.base import (
    LexicalMatcher,
    Rule,
    RuleRegistry,
    StructuralMatcher,
    lexical,
    structural,
)
from contract_auditor.rules.critical import CRITICAL_RULES
from contract_auditor.rules.high import HIGH_RULES
from contract_auditor.rules.medium import MEDIUM_RULES
from contract_auditor.rules.low import LOW_RULES
from contract_auditor.rules.informational import INFORMATIONAL_RULES

RULES_VERSION = '1.0.0'


def build_default_registry() -> RuleRegistry:
    """Build the built-in rule registry in evaluation order."""
    return RuleRegistry(CRITICAL_RULES + HIGH_RULES + MEDIUM_RULES + LOW_RULES + INFORMATIONAL_RULES)


__all__ = [
    "LexicalMatcher",
    "RULES_VERSION",
    "Rule",
    "RuleRegistry",
    "StructuralMatcher",
    "build_default_registry",
    "lexical",
    "structural",
]
