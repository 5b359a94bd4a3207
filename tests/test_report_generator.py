"""Tests for report synthesis and export."""

import json

from builders import finding
from contract_auditor.models.audit_result import (
    BestPractice,
    DeploymentRecommendation,
    GasOptimization,
    SemanticAnalysis,
    Severity,
)
from contract_auditor.models.contract import CodeLocation
from contract_auditor.services.report_generator import (
    ReportGenerator,
    category_breakdown,
    sort_by_severity,
    top_concerns,
)


def _analysis(score=4.5, **fields):
    return SemanticAnalysis(overall_risk_score=score, executive_summary="Summary text", **fields)


def _report(findings, analysis=None):
    return ReportGenerator().generate_report("Vault", "contract Vault {}", findings, analysis or _analysis(), 12)


def test_sort_is_stable():
    findings = [
        finding("EM-01", "LOW", "low one"),
        finding("RE-01", "CRITICAL", "critical one"),
        finding("ZA-01", "LOW", "low two"),
        finding("SP-01", "INFO"),
        finding("AC-01", "HIGH"),
        finding("UR-01", "CRITICAL", "critical two"),
    ]
    ordered = sort_by_severity(findings)

    assert [f.id for f in ordered] == ["RE-01", "UR-01", "AC-01", "EM-01", "ZA-01", "SP-01"]


def test_top_concerns_keep_detection_order():
    findings = [
        finding("EM-01", "LOW", "Missing Event"),
        finding("AC-01", "HIGH", "Missing Access Control"),
        finding("RE-01", "CRITICAL", "Reentrancy"),
        finding("FR-01", "HIGH", "Front-Running"),
        finding("DC-01", "CRITICAL", "Delegatecall"),
    ]
    assert top_concerns(findings) == ["Missing Access Control", "Reentrancy", "Front-Running"]


def test_category_breakdown():
    findings = [finding("RE-01"), finding("AI-1a2b3c4d5"), finding("RE-01"), finding("DOS-01")]
    assert category_breakdown(findings) == {"RE": 2, "AI": 1, "DOS": 1}


def test_generate_report():
    findings = [finding("ZA-01", "LOW"), finding("RE-01", "CRITICAL", "Reentrancy"), finding("AC-01", "HIGH")]
    report = _report(findings)
    summary = report.executive_summary

    assert report.contract_name == "Vault"
    assert summary.total_vulnerabilities == 3
    assert (summary.critical_count, summary.high_count, summary.medium_count,
            summary.low_count, summary.info_count) == (1, 1, 0, 1, 0)
    assert summary.overall_risk_score == 4.5
    assert summary.deployment_recommendation == DeploymentRecommendation.DO_NOT_DEPLOY
    assert summary.top_concerns == ["Reentrancy", "Finding AC-01"]
    assert [v.id for v in report.vulnerabilities] == ["RE-01", "AC-01", "ZA-01"]
    assert report.risk_assessment.historical_context == "Summary text"
    assert report.metadata.analysis_time == 12
    assert report.metadata.ai_model == "none"
    assert report.timestamp.tzinfo is not None


def test_no_findings_is_safe():
    report = _report([], _analysis(score=1.0))

    assert report.executive_summary.deployment_recommendation == DeploymentRecommendation.SAFE
    assert report.vulnerabilities == []


def test_critical_finding_never_safe():
    report = _report([finding("RE-01", "CRITICAL")], _analysis(score=1.0))
    assert report.executive_summary.deployment_recommendation != DeploymentRecommendation.SAFE


def test_reports_get_unique_ids():
    assert _report([]).id != _report([]).id


def test_markdown_rendering():
    location = CodeLocation(file="contract.sol", line=9, function_name="withdraw", contract_name="Vault")
    reentrancy = finding("RE-01", "CRITICAL", "Reentrancy Vulnerability").model_copy(
        update={"code_snippet": "msg.sender.call{value: balance}(\"\");", "references": ["SWC-107: Reentrancy"],
                "location": location}
    )
    analysis = _analysis(
        score=8.2,
        gas_optimizations=[GasOptimization(description="Cache balance", location=location,
                                           estimated_savings="100 gas", difficulty="LOW")],
        best_practice_violations=[BestPractice(description="Missing NatSpec", location=location,
                                               category="Documentation")],
        model="gpt-4",
    )
    generator = ReportGenerator()
    markdown = generator.to_markdown(_report([reentrancy, finding("EM-01", "LOW")], analysis))

    assert markdown.startswith("# Smart Contract Security Audit Report")
    assert "**Contract:** Vault" in markdown
    assert "**Deployment Recommendation:** DO_NOT_DEPLOY" in markdown
    assert "### 1. Reentrancy Vulnerability (CRITICAL)" in markdown
    assert "### 2. Finding EM-01 (LOW)" in markdown
    assert "```solidity\nmsg.sender.call{value: balance}(\"\");\n```" in markdown
    assert "function `withdraw`" in markdown
    assert "SWC-107: Reentrancy" in markdown
    assert "Cache balance (estimated savings: 100 gas) [LOW]" in markdown
    assert "[Documentation] Line 9: Missing NatSpec" in markdown
    assert "| RE | 1 |" in markdown
    assert "**AI Model:** gpt-4" in markdown


def test_markdown_without_findings():
    markdown = ReportGenerator().to_markdown(_report([], _analysis(score=1.0)))

    assert "No vulnerabilities found." in markdown
    assert "## Gas Optimizations" not in markdown


def test_markdown_is_deterministic():
    report = _report([finding("RE-01", "CRITICAL")])
    generator = ReportGenerator()
    assert generator.to_markdown(report) == generator.to_markdown(report)


def test_json_round_trip():
    location = CodeLocation(file="contract.sol", line=3)
    report = _report(
        [finding("RE-01", "CRITICAL"), finding("AI-abcdef123", "MEDIUM")],
        _analysis(gas_optimizations=[GasOptimization(description="Pack storage", location=location)]),
    )
    document = ReportGenerator.to_json(report)

    assert json.loads(document)["executive_summary"]["critical_count"] == 1
    assert json.loads(document)["vulnerabilities"][0]["severity"] == "CRITICAL"
    assert ReportGenerator.from_json(document) == report
    assert ReportGenerator.to_json(ReportGenerator.from_json(document)) == document
