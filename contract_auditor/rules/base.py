"""
Rule definitions for the vulnerability detection engine.
"""
import re
from dataclasses import dataclass, field
from typing import Callable, Iterator, List, Optional, Tuple, Union

from contract_auditor.models.audit_result import Severity, Vulnerability
from contract_auditor.models.contract import CodeLocation, ContractMetadata, ParsedContract

Predicate = Callable[[ParsedContract, ContractMetadata], List[Vulnerability]]


@dataclass(frozen=True)
class LexicalMatcher:
    """Regular expression applied to the raw source text."""
    pattern: re.Pattern

    @classmethod
    def compile(cls, expression: str, flags: int = 0) -> 'LexicalMatcher':
        return cls(re.compile(expression, flags))


@dataclass(frozen=True)
class StructuralMatcher:
    """Pure function evaluated once per contract."""
    predicate: Predicate


Matcher = Union[LexicalMatcher, StructuralMatcher]


@dataclass(frozen=True)
class Rule:
    """A stateless security rule."""
    id: str
    name: str
    severity: Severity
    description: str
    matcher: Matcher
    recommendation: str
    references: Tuple[str, ...] = ()
    # Used by lexical findings, which have no per-match explanation
    explanation: str = ''
    exploit_scenario: str = ''
    confidence: float = 0.7

    @property
    def is_lexical(self) -> bool:
        return isinstance(self.matcher, LexicalMatcher)

    def finding(self, location: CodeLocation, **fields) -> Vulnerability:
        """Build a finding from this rule's static text, overridden by ``fields``."""
        values = dict(
            id=self.id,
            name=self.name,
            severity=self.severity,
            description=self.description,
            location=location,
            technical_explanation=self.explanation or self.description,
            exploit_scenario=self.exploit_scenario,
            recommendation=self.recommendation,
            references=list(self.references),
            confidence=self.confidence,
        )
        values.update(fields)
        return Vulnerability(**values)


def lexical(id: str, name: str, severity: Severity, description: str, pattern: str,
            recommendation: str, references: Tuple[str, ...] = (), flags: int = 0, **extra) -> Rule:
    return Rule(id=id, name=name, severity=severity, description=description,
                matcher=LexicalMatcher.compile(pattern, flags), recommendation=recommendation,
                references=references, **extra)


def structural(id: str, name: str, severity: Severity, description: str, predicate: Predicate,
               recommendation: str, references: Tuple[str, ...] = (), **extra) -> Rule:
    return Rule(id=id, name=name, severity=severity, description=description,
                matcher=StructuralMatcher(predicate), recommendation=recommendation,
                references=references, **extra)


@dataclass(frozen=True)
class RuleRegistry:
    """Ordered, read-only collection of rules."""
    rules: Tuple[Rule, ...] = field(default_factory=tuple)

    def __iter__(self) -> Iterator[Rule]:
        return iter(self.rules)

    def __len__(self) -> int:
        return len(self.rules)

    def ids(self) -> List[str]:
        return [rule.id for rule in self.rules]

    def get(self, rule_id: str) -> Optional[Rule]:
        for rule in self.rules:
            if rule.id == rule_id:
                return rule
        return None

    def with_custom_rules(self, custom_rules: List[Rule]) -> 'RuleRegistry':
        """Replace rules sharing an id with a custom rule, append the others."""
        rules = list(self.rules)
        for custom in custom_rules:
            for index, rule in enumerate(rules):
                if rule.id == custom.id:
                    rules[index] = custom
                    break
            else:
                rules.append(custom)
        return RuleRegistry(tuple(rules))

    def without(self, skip_rules: List[str]) -> 'RuleRegistry':
        skipped = set(skip_rules)
        return RuleRegistry(tuple(rule for rule in self.rules if rule.id not in skipped))
