from contract_auditor.models.contract import (
    CodeLocation,
    ContractMetadata,
    EventInfo,
    ExternalCall,
    FunctionInfo,
    ModifierInfo,
    Parameter,
    ParsedContract,
    StateVariable,
)
from contract_auditor.models.audit_result import (
    AuditReport,
    BestPractice,
    DeploymentRecommendation,
    ExecutiveSummary,
    GasOptimization,
    ReportMetadata,
    RiskAssessment,
    SemanticAnalysis,
    Severity,
    Vulnerability,
)

__all__ = [
    "AuditReport",
    "BestPractice",
    "CodeLocation",
    "ContractMetadata",
    "DeploymentRecommendation",
    "EventInfo",
    "ExecutiveSummary",
    "ExternalCall",
    "FunctionInfo",
    "GasOptimization",
    "ModifierInfo",
    "Parameter",
    "ParsedContract",
    "ReportMetadata",
    "RiskAssessment",
    "SemanticAnalysis",
    "Severity",
    "StateVariable",
    "Vulnerability",
]
