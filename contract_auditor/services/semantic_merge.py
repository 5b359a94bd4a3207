"""
Combines rule findings with the outcome of semantic analysis.
"""
import logging
from typing import List, Optional

from contract_auditor.errors import SemanticAnalysisError
from contract_auditor.models.audit_result import SemanticAnalysis, Vulnerability
from contract_auditor.models.contract import ParsedContract
from contract_auditor.services.risk_scorer import RiskScorer
from contract_auditor.services.semantic_analyzer import SemanticAnalyzer

logger = logging.getLogger(__name__)

DISABLED_SUMMARY = 'AI analysis disabled'
SKIPPED_SUMMARY = 'AI analysis skipped: no LLM provider configured'
UNAVAILABLE_SUMMARY = 'AI analysis unavailable'
UNAVAILABLE_RISK_SCORE = 5.0


def merge(vulnerabilities: List[Vulnerability], analysis: SemanticAnalysis) -> List[Vulnerability]:
    """
    Merge rule findings with semantic analysis output.

    Additional findings are appended after the rule findings, then every
    finding whose id the analysis marked as a false positive is dropped.

    Args:
        vulnerabilities: Rule findings in detection order
        analysis: Semantic analysis result

    Returns:
        Merged findings, order preserved
    """
    false_positives = set(analysis.false_positives)
    merged = list(vulnerabilities) + list(analysis.additional_vulnerabilities)
    kept = [vuln for vuln in merged if vuln.id not in false_positives]

    if len(kept) != len(merged):
        logger.info(f"Dropped {len(merged) - len(kept)} finding(s) marked as false positives")
    return kept


def disabled_analysis(vulnerabilities: List[Vulnerability]) -> SemanticAnalysis:
    return SemanticAnalysis(
        overall_risk_score=RiskScorer.calculate(vulnerabilities),
        executive_summary=DISABLED_SUMMARY
    )


def skipped_analysis(vulnerabilities: List[Vulnerability]) -> SemanticAnalysis:
    return SemanticAnalysis(
        overall_risk_score=RiskScorer.calculate(vulnerabilities),
        executive_summary=SKIPPED_SUMMARY
    )


def unavailable_analysis(model: Optional[str] = None) -> SemanticAnalysis:
    return SemanticAnalysis(
        overall_risk_score=UNAVAILABLE_RISK_SCORE,
        executive_summary=UNAVAILABLE_SUMMARY,
        model=model
    )


def obtain_analysis(analyzer: Optional[SemanticAnalyzer], parsed: ParsedContract,
                    vulnerabilities: List[Vulnerability], enabled: bool = True) -> SemanticAnalysis:
    """
    Run semantic analysis, substituting a fallback when it cannot run.

    Args:
        analyzer: Configured analyzer, None when no provider is available
        parsed: Parsed contract
        vulnerabilities: Rule findings
        enabled: Whether AI analysis was requested

    Returns:
        Analysis result; never raises for analyzer failures
    """
    if not enabled:
        return disabled_analysis(vulnerabilities)
    if analyzer is None:
        return skipped_analysis(vulnerabilities)

    try:
        return analyzer.analyze(parsed, vulnerabilities)
    except SemanticAnalysisError as e:
        logger.error(f"Semantic analysis failed: {str(e)}")
        return unavailable_analysis(analyzer.model)
