"""
Smart contract auditor service.
"""
import logging
import time
from typing import Optional

from contract_auditor.config import AuditOptions, Settings
from contract_auditor.models.audit_result import AuditReport
from contract_auditor.rules import RuleRegistry, build_default_registry
from contract_auditor.services.parser import SolidityParser
from contract_auditor.services.report_generator import ReportGenerator
from contract_auditor.services.rule_engine import RuleEngine
from contract_auditor.services.semantic_analyzer import SemanticAnalyzer, create_analyzer
from contract_auditor.services.semantic_merge import merge, obtain_analysis

logger = logging.getLogger(__name__)


class SmartContractAuditor:
    """Runs the parse, detect, analyze and report pipeline for one contract at a time."""

    def __init__(self, settings: Optional[Settings] = None, parser: Optional[SolidityParser] = None,
                 analyzer: Optional[SemanticAnalyzer] = None, registry: Optional[RuleRegistry] = None,
                 report_generator: Optional[ReportGenerator] = None):
        """
        Initialize the auditor.

        Args:
            settings: Application settings, loaded from the environment when omitted
            parser: Parser front end
            analyzer: Semantic analyzer; built from settings per audit when omitted
            registry: Rule registry, the built-in rules when omitted
            report_generator: Report builder and renderer
        """
        self.settings = settings or Settings()
        self.parser = parser or SolidityParser(file_name=self.settings.source_file_name)
        self.analyzer = analyzer
        self.engine = RuleEngine(registry or build_default_registry(), max_workers=self.settings.rule_workers)
        self.report_generator = report_generator or ReportGenerator()

        logger.info(f"Loaded {len(self.engine.registry)} rules")

    def audit(self, source_code: str, contract_name: str = 'contract',
              options: Optional[AuditOptions] = None) -> AuditReport:
        """
        Audit a contract.

        Args:
            source_code: Solidity source text
            contract_name: Name shown in the report
            options: Per-audit options

        Returns:
            Audit report

        Raises:
            FatalParseError: If the source could not be parsed at all
        """
        options = options or AuditOptions()
        started = time.perf_counter()
        logger.info(f"Starting audit of {contract_name}")

        parsed = self.parser.parse(source_code)

        # First, perform pattern-based analysis
        findings = self.engine.detect(parsed, skip_rules=options.skip_rules, custom_rules=options.custom_rules)

        # Then, use AI to validate and extend the findings
        analyzer = None
        if options.enable_ai_analysis:
            analyzer = self.analyzer or create_analyzer(self.settings, options)
        analysis = obtain_analysis(analyzer, parsed, findings, enabled=options.enable_ai_analysis)

        vulnerabilities = merge(findings, analysis)
        elapsed = int((time.perf_counter() - started) * 1000)

        return self.report_generator.generate_report(contract_name, source_code, vulnerabilities, analysis, elapsed)

    def to_markdown(self, report: AuditReport) -> str:
        return self.report_generator.to_markdown(report)

    def to_json(self, report: AuditReport) -> str:
        return self.report_generator.to_json(report)


def audit(source_code: str, contract_name: str = 'contract', options: Optional[AuditOptions] = None) -> AuditReport:
    """Audit a contract with settings loaded from the environment."""
    return SmartContractAuditor().audit(source_code, contract_name, options)


def to_markdown(report: AuditReport) -> str:
    return ReportGenerator().to_markdown(report)


def to_json(report: AuditReport) -> str:
    return ReportGenerator.to_json(report)


def from_json(document: str) -> AuditReport:
    return ReportGenerator.from_json(document)
