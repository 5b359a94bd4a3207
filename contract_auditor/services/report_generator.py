"""
Report synthesis and export for contract audit results.
"""
import json
import logging
import os
import uuid
from collections import Counter
from datetime import datetime, timezone
from typing import Dict, List, Optional

from jinja2 import Environment, FileSystemLoader

from contract_auditor.models.audit_result import (
    AuditReport,
    ExecutiveSummary,
    ReportMetadata,
    RiskAssessment,
    SemanticAnalysis,
    Severity,
    Vulnerability,
)
from contract_auditor.rules import RULES_VERSION
from contract_auditor.services.risk_scorer import RiskScorer

logger = logging.getLogger(__name__)

TOOL_NAME = 'Contract Auditor'
ANALYSIS_VERSION = '1.0.0'
MAX_TOP_CONCERNS = 3
NO_AI_MODEL = 'none'
MARKDOWN_TEMPLATE = 'markdown_report.md.j2'


def top_concerns(vulnerabilities: List[Vulnerability], limit: int = MAX_TOP_CONCERNS) -> List[str]:
    """Names of the first ``limit`` CRITICAL or HIGH findings, in the given order."""
    return [
        vuln.name for vuln in vulnerabilities
        if vuln.severity in (Severity.CRITICAL, Severity.HIGH)
    ][:limit]


def category_breakdown(vulnerabilities: List[Vulnerability]) -> Dict[str, int]:
    """Count findings per id prefix, e.g. ``RE`` for ``RE-01``."""
    return dict(Counter(vuln.category for vuln in vulnerabilities))


def sort_by_severity(vulnerabilities: List[Vulnerability]) -> List[Vulnerability]:
    """Most severe first; ``sorted`` is stable so ties keep their order."""
    return sorted(vulnerabilities, key=lambda vuln: Severity(vuln.severity).rank)


class ReportGenerator:
    """Builds audit reports and renders them as Markdown or JSON."""

    def __init__(self, template_dir: Optional[str] = None):
        """
        Initialize the report generator.

        Args:
            template_dir: Directory containing report templates
        """
        if template_dir is None:
            current_dir = os.path.dirname(os.path.abspath(__file__))
            template_dir = os.path.join(os.path.dirname(current_dir), "templates")

        self.template_dir = template_dir
        self.env = Environment(
            loader=FileSystemLoader(template_dir),
            keep_trailing_newline=True,
            trim_blocks=True,
            lstrip_blocks=True
        )

    def generate_report(self, contract_name: str, source_code: str, vulnerabilities: List[Vulnerability],
                        analysis: SemanticAnalysis, analysis_time: int = 0) -> AuditReport:
        """
        Assemble the final report.

        Args:
            contract_name: Name of the audited contract
            source_code: Audited source text
            vulnerabilities: Merged findings in detection order
            analysis: Semantic analysis result or its fallback
            analysis_time: Elapsed audit time in milliseconds

        Returns:
            Complete audit report
        """
        counts = RiskScorer.count_by_severity(vulnerabilities)
        risk_score = analysis.overall_risk_score

        summary = ExecutiveSummary(
            total_vulnerabilities=len(vulnerabilities),
            critical_count=counts[Severity.CRITICAL],
            high_count=counts[Severity.HIGH],
            medium_count=counts[Severity.MEDIUM],
            low_count=counts[Severity.LOW],
            info_count=counts[Severity.INFO],
            overall_risk_score=risk_score,
            deployment_recommendation=RiskScorer.get_recommendation(counts, risk_score),
            top_concerns=top_concerns(vulnerabilities)
        )

        report = AuditReport(
            id=str(uuid.uuid4()),
            timestamp=datetime.now(timezone.utc),
            contract_name=contract_name,
            source_code=source_code,
            executive_summary=summary,
            vulnerabilities=sort_by_severity(vulnerabilities),
            gas_optimizations=analysis.gas_optimizations,
            best_practices=analysis.best_practice_violations,
            risk_assessment=RiskAssessment(
                overall_score=risk_score,
                category_breakdown=category_breakdown(vulnerabilities),
                historical_context=analysis.executive_summary
            ),
            metadata=ReportMetadata(
                tool=TOOL_NAME,
                analysis_version=ANALYSIS_VERSION,
                rules_version=RULES_VERSION,
                ai_model=analysis.model or NO_AI_MODEL,
                analysis_time=analysis_time
            )
        )

        logger.info(f"Report {report.id} for {contract_name}: {summary.total_vulnerabilities} finding(s), "
                    f"risk {risk_score}, {summary.deployment_recommendation.value}")
        return report

    def to_markdown(self, report: AuditReport) -> str:
        """
        Render a Markdown report.

        Args:
            report: Audit report to render

        Returns:
            Markdown document
        """
        template = self.env.get_template(MARKDOWN_TEMPLATE)
        return template.render(report=report)

    @staticmethod
    def to_json(report: AuditReport) -> str:
        """Serialize the full report as indented JSON."""
        return json.dumps(report.to_dict(), indent=2)

    @staticmethod
    def from_json(document: str) -> AuditReport:
        """Rebuild a report from ``to_json`` output."""
        return AuditReport.model_validate(json.loads(document))
