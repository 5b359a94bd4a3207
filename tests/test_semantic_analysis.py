"""Tests for semantic analysis parsing, provider selection and merging."""

import json

import pytest

from builders import finding
from contract_auditor.config import AuditOptions
from contract_auditor.errors import SemanticAnalysisError
from contract_auditor.models.audit_result import SemanticAnalysis, Severity
from contract_auditor.services.semantic_analyzer import (
    AnthropicAnalyzer,
    OpenAIAnalyzer,
    build_analysis_prompt,
    create_analyzer,
    parse_analysis_response,
)
from contract_auditor.services.semantic_merge import (
    DISABLED_SUMMARY,
    SKIPPED_SUMMARY,
    UNAVAILABLE_SUMMARY,
    merge,
    obtain_analysis,
)

RESPONSE = {
    "overallRiskScore": 7,
    "executiveSummary": "The withdraw function is reentrant.",
    "additionalVulnerabilities": [
        {
            "name": "Missing balance check",
            "description": "withdraw does not check the caller balance",
            "severity": "high",
            "location": {"line": 6},
            "recommendation": "Track balances per account",
        },
        {
            "name": "Odd severity",
            "description": "severity outside the known levels",
            "severity": "SEVERE",
            "location": {"line": -3},
            "recommendation": "",
        },
    ],
    "validatedFindings": ["RE-01"],
    "falsePositives": ["FP-01"],
    "gasOptimizations": [
        {"description": "Cache balance in memory", "location": {"line": 7}, "estimatedSavings": "100 gas",
         "difficulty": "LOW"},
    ],
    "bestPracticeViolations": [
        {"description": "Missing NatSpec", "location": {"line": 6}, "category": "Documentation"},
    ],
}


def test_parse_response():
    analysis = parse_analysis_response(json.dumps(RESPONSE), "Vault.sol", "gpt-4")

    assert analysis.overall_risk_score == 7
    assert analysis.executive_summary == "The withdraw function is reentrant."
    assert analysis.validated_findings == ["RE-01"]
    assert analysis.false_positives == ["FP-01"]
    assert analysis.model == "gpt-4"

    first, second = analysis.additional_vulnerabilities
    assert first.id.startswith("AI-") and len(first.id) == 12
    assert first.id != second.id
    assert first.severity == Severity.HIGH
    assert first.confidence == 0.70
    assert first.references == ["AI Analysis"]
    assert first.location.file == "Vault.sol"
    assert first.location.line == 6
    assert second.severity == Severity.MEDIUM
    assert second.location.line == 0

    assert analysis.gas_optimizations[0].estimated_savings == "100 gas"
    assert analysis.gas_optimizations[0].difficulty == "LOW"
    assert analysis.best_practice_violations[0].category == "Documentation"


def test_parse_fenced_response():
    text = "Here is the analysis:\n```json\n" + json.dumps({"overallRiskScore": 3}) + "\n```"
    analysis = parse_analysis_response(text)

    assert analysis.overall_risk_score == 3
    assert analysis.executive_summary == "No summary available"
    assert analysis.additional_vulnerabilities == []


@pytest.mark.parametrize("score,expected", [(42, 10.0), (0.2, 1.0), (0, 1.0), (None, 5.0)])
def test_risk_score_is_clamped(score, expected):
    assert parse_analysis_response(json.dumps({"overallRiskScore": score})).overall_risk_score == expected


@pytest.mark.parametrize("text", [
    "not json at all",
    "[1, 2, 3]",
    json.dumps({"falsePositives": "FP-01"}),
])
def test_malformed_response_raises(text):
    with pytest.raises(SemanticAnalysisError):
        parse_analysis_response(text)


def test_prompt_lists_detected_findings(withdraw_contract):
    prompt = build_analysis_prompt(withdraw_contract, [finding("RE-01", "CRITICAL", "Reentrancy", line=6)])

    assert "- RE-01: Reentrancy (CRITICAL) at line 6" in prompt
    assert "COMPILER PRAGMA: ^0.8.0" in prompt
    assert "function withdraw() public" in prompt
    assert '"falsePositives"' in prompt


def test_create_analyzer_without_credentials(settings):
    assert create_analyzer(settings) is None
    assert create_analyzer(settings, AuditOptions(llm_provider="anthropic")) is None


def test_create_analyzer_selects_provider(settings):
    configured = settings.model_copy(update={"openai_api_key": "sk-test", "anthropic_api_key": "sk-ant-test"})

    openai_analyzer = create_analyzer(configured)
    assert isinstance(openai_analyzer, OpenAIAnalyzer)
    assert openai_analyzer.model == "gpt-4"

    anthropic_analyzer = create_analyzer(configured, AuditOptions(llm_provider="Anthropic"))
    assert isinstance(anthropic_analyzer, AnthropicAnalyzer)
    assert anthropic_analyzer.model.startswith("claude")

    overridden = create_analyzer(configured, AuditOptions(model="gpt-4o-mini"))
    assert overridden.model == "gpt-4o-mini"


def test_unknown_provider_falls_back_to_openai(settings):
    configured = settings.model_copy(update={"llm_provider": "mystery", "openai_api_key": "sk-test"})
    assert isinstance(create_analyzer(configured), OpenAIAnalyzer)


def test_merge_without_changes_is_identity():
    findings = [finding("RE-01", "CRITICAL"), finding("FP-01", "MEDIUM")]
    analysis = SemanticAnalysis(overall_risk_score=5, executive_summary="nothing to add")

    assert merge(findings, analysis) == findings


def test_merge_appends_and_filters():
    findings = [finding("RE-01", "CRITICAL"), finding("FP-01", "MEDIUM"), finding("EM-01", "LOW")]
    extra = finding("AI-0123456789", "HIGH")
    analysis = SemanticAnalysis(
        overall_risk_score=7,
        executive_summary="",
        additional_vulnerabilities=[extra],
        false_positives=["FP-01", "NOT-PRESENT"],
        validated_findings=["RE-01"],
    )

    assert [f.id for f in merge(findings, analysis)] == ["RE-01", "EM-01", "AI-0123456789"]


def test_disabled_analysis_uses_risk_scorer(withdraw_contract, fake_analyzer):
    analyzer = fake_analyzer(response="{}")
    findings = [finding("RE-01", "CRITICAL"), finding("AC-01", "HIGH")]
    analysis = obtain_analysis(analyzer, withdraw_contract, findings, enabled=False)

    assert analysis.overall_risk_score == 4.5
    assert analysis.executive_summary == DISABLED_SUMMARY
    assert analyzer.prompts == []


def test_missing_analyzer_is_skipped(withdraw_contract):
    analysis = obtain_analysis(None, withdraw_contract, [])

    assert analysis.overall_risk_score == 1.0
    assert analysis.executive_summary == SKIPPED_SUMMARY


def test_failed_analysis_falls_back(withdraw_contract, fake_analyzer):
    analysis = obtain_analysis(fake_analyzer(error="timed out"), withdraw_contract, [finding("RE-01", "CRITICAL")])

    assert analysis.overall_risk_score == 5.0
    assert analysis.executive_summary == UNAVAILABLE_SUMMARY
    assert analysis.additional_vulnerabilities == []
    assert analysis.gas_optimizations == []
    assert analysis.best_practice_violations == []


def test_unexpected_analyzer_error_falls_back(withdraw_contract, fake_analyzer):
    analysis = obtain_analysis(fake_analyzer(error=TimeoutError("read timed out")), withdraw_contract, [])

    assert analysis.overall_risk_score == 5.0
    assert analysis.executive_summary == UNAVAILABLE_SUMMARY


def test_malformed_analysis_falls_back(withdraw_contract, fake_analyzer):
    analysis = obtain_analysis(fake_analyzer(response="I cannot help with that"), withdraw_contract, [])
    assert analysis.executive_summary == UNAVAILABLE_SUMMARY


def test_successful_analysis(withdraw_contract, fake_analyzer):
    analyzer = fake_analyzer(response=json.dumps(RESPONSE))
    analysis = obtain_analysis(analyzer, withdraw_contract, [finding("RE-01", "CRITICAL")])

    assert analysis.overall_risk_score == 7
    assert analysis.model == "fake-model"
    assert len(analyzer.prompts) == 1
