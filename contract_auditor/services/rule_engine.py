"""
Rule engine that evaluates the vulnerability rules against a parsed contract.
"""
import logging
import re
from bisect import bisect_right
from concurrent.futures import ThreadPoolExecutor
from typing import Iterable, List, Optional, Tuple

from contract_auditor.errors import RuleEvaluationError
from contract_auditor.models.audit_result import Vulnerability
from contract_auditor.models.contract import CodeLocation, ParsedContract
from contract_auditor.rules import LexicalMatcher, Rule, RuleRegistry, StructuralMatcher
from contract_auditor.services.syntax import NodeKind, node_kind, node_position

logger = logging.getLogger(__name__)


class RuleEngine:
    """Applies an immutable rule registry to parsed contracts."""

    def __init__(self, registry: RuleRegistry, max_workers: int = 4):
        """
        Initialize the engine.

        Args:
            registry: Rules to evaluate, in reporting order
            max_workers: Threads used to evaluate rules concurrently
        """
        self.registry = registry
        self.max_workers = max_workers

    def detect(self, parsed: ParsedContract, skip_rules: Iterable[str] = (),
               custom_rules: Iterable[Rule] = ()) -> List[Vulnerability]:
        """
        Run every enabled rule and collect the findings.

        Custom rules replace registry rules with the same id and are appended
        otherwise; the skip list is applied afterwards.

        Args:
            parsed: Parsed contract with metadata
            skip_rules: Rule ids to leave out
            custom_rules: Caller supplied rules

        Returns:
            Findings in registry order, then in per-rule emission order
        """
        registry = self.registry.with_custom_rules(list(custom_rules)).without(list(skip_rules))
        logger.info(f"Evaluating {len(registry)} rules against {len(parsed.metadata)} contract(s)")

        if self.max_workers > 1 and len(registry) > 1:
            with ThreadPoolExecutor(max_workers=self.max_workers) as executor:
                # map() yields results in submission order
                results = list(executor.map(lambda rule: self.evaluate_rule(rule, parsed), registry))
        else:
            results = [self.evaluate_rule(rule, parsed) for rule in registry]

        findings = [finding for rule_findings in results for finding in rule_findings]
        logger.info(f"Rule engine produced {len(findings)} finding(s)")
        return findings

    def evaluate_rule(self, rule: Rule, parsed: ParsedContract) -> List[Vulnerability]:
        """
        Evaluate a single rule; a failing rule contributes no findings.

        Args:
            rule: Rule to evaluate
            parsed: Parsed contract with metadata

        Returns:
            Findings produced by the rule
        """
        try:
            if isinstance(rule.matcher, LexicalMatcher):
                return self._match_lexical(rule, parsed)
            elif isinstance(rule.matcher, StructuralMatcher):
                findings = []
                for metadata in parsed.metadata:
                    findings.extend(rule.matcher.predicate(parsed, metadata))
                return findings
            raise TypeError(f"unsupported matcher {type(rule.matcher).__name__}")
        except Exception as e:
            # Custom predicates may raise anything; isolate them from other rules
            error = RuleEvaluationError(rule.id, str(e))
            logger.error(str(error))
            return []

    def _match_lexical(self, rule: Rule, parsed: ParsedContract) -> List[Vulnerability]:
        source = parsed.source_code
        line_starts = [0] + [match.end() for match in re.finditer('\n', source)]
        contracts = _contract_lines(parsed)
        findings = []

        for match in rule.matcher.pattern.finditer(source):
            index = bisect_right(line_starts, match.start()) - 1
            line_start = line_starts[index]
            line_end = source.find('\n', line_start)
            if line_end == -1:
                line_end = len(source)

            location = CodeLocation(
                file=parsed.file_name,
                line=index + 1,
                column=match.start() - line_start,
                contract_name=_enclosing_contract(contracts, index + 1)
            )
            findings.append(rule.finding(location, code_snippet=source[line_start:line_end].strip()))

        return findings


def _contract_lines(parsed: ParsedContract) -> List[Tuple[int, str]]:
    contracts = [
        (node_position(node)[0], node.get('name'))
        for node in parsed.ast.get('children') or []
        if node_kind(node) is NodeKind.CONTRACT
    ]
    return sorted(contracts, key=lambda item: item[0])


def _enclosing_contract(contracts: List[Tuple[int, str]], line: int) -> Optional[str]:
    name = None
    for start, contract_name in contracts:
        if 0 < start <= line:
            name = contract_name
    return name
