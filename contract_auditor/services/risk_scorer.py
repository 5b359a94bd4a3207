"""
Risk scoring for audit findings.
"""
from decimal import Decimal, ROUND_HALF_UP
from typing import Dict, Iterable

from contract_auditor.models.audit_result import DeploymentRecommendation, Severity, Vulnerability


class RiskScorer:
    """
    Reduces a set of findings to a 1-10 risk score.

    Used whenever no semantic analysis score is available.
    """

    SEVERITY_WEIGHTS = {
        Severity.CRITICAL: Decimal('4'),
        Severity.HIGH: Decimal('3'),
        Severity.MEDIUM: Decimal('2'),
        Severity.LOW: Decimal('1'),
        Severity.INFO: Decimal('0.5')
    }

    MIN_SCORE = Decimal('1')
    MAX_SCORE = Decimal('10')

    @staticmethod
    def calculate(vulnerabilities: Iterable[Vulnerability]) -> float:
        """
        Calculate the risk score for a set of findings.

        Args:
            vulnerabilities: Findings to score

        Returns:
            ``min(10, 1 + total_weight / 2)`` rounded half-up to one decimal,
            exactly 1 for no findings
        """
        vulnerabilities = list(vulnerabilities)
        if not vulnerabilities:
            return float(RiskScorer.MIN_SCORE)

        total_weight = sum(
            (RiskScorer.SEVERITY_WEIGHTS[Severity(vuln.severity)] for vuln in vulnerabilities),
            Decimal('0')
        )
        normalized = min(RiskScorer.MAX_SCORE, RiskScorer.MIN_SCORE + total_weight / 2)
        return float(normalized.quantize(Decimal('0.1'), rounding=ROUND_HALF_UP))

    @staticmethod
    def count_by_severity(vulnerabilities: Iterable[Vulnerability]) -> Dict[Severity, int]:
        """Count findings per severity level, every level present."""
        counts = {severity: 0 for severity in Severity}
        for vuln in vulnerabilities:
            counts[Severity(vuln.severity)] += 1
        return counts

    @staticmethod
    def get_recommendation(counts: Dict[Severity, int], risk_score: float) -> DeploymentRecommendation:
        """Get the deployment recommendation from severity counts and the risk score."""
        if counts.get(Severity.CRITICAL, 0) > 0 or risk_score >= 8:
            return DeploymentRecommendation.DO_NOT_DEPLOY
        elif counts.get(Severity.HIGH, 0) > 0 or risk_score >= 5:
            return DeploymentRecommendation.REVIEW
        else:
            return DeploymentRecommendation.SAFE
