"""
Models for audit results.
"""
from datetime import datetime
from enum import Enum
from typing import List, Optional, Dict, Any
from pydantic import BaseModel, ConfigDict, Field

from contract_auditor.models.contract import CodeLocation


class Severity(str, Enum):
    """Finding severity, ordered from most to least severe."""
    CRITICAL = 'CRITICAL'
    HIGH = 'HIGH'
    MEDIUM = 'MEDIUM'
    LOW = 'LOW'
    INFO = 'INFO'

    @property
    def rank(self) -> int:
        return _SEVERITY_RANK[self]


_SEVERITY_RANK = {severity: index for index, severity in enumerate(Severity)}


class DeploymentRecommendation(str, Enum):
    SAFE = 'SAFE'
    REVIEW = 'REVIEW'
    DO_NOT_DEPLOY = 'DO_NOT_DEPLOY'


class Vulnerability(BaseModel):
    """Model for a vulnerability found in the audit."""
    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    severity: Severity
    description: str
    location: CodeLocation
    technical_explanation: str = ''
    exploit_scenario: str = ''
    recommendation: str = ''
    code_snippet: str = ''
    references: List[str] = []
    confidence: float = Field(0.5, ge=0.0, le=1.0)

    @property
    def category(self) -> str:
        """Id prefix before the first separator, e.g. ``RE`` for ``RE-01``."""
        return self.id.split('-', 1)[0]

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return self.model_dump(mode='json')


class GasOptimization(BaseModel):
    """Model for a gas optimization suggestion."""
    model_config = ConfigDict(frozen=True)

    description: str
    location: CodeLocation
    estimated_savings: str = ''
    difficulty: str = 'MEDIUM'  # LOW, MEDIUM, HIGH


class BestPractice(BaseModel):
    """Model for a best practice violation."""
    model_config = ConfigDict(frozen=True)

    description: str
    location: CodeLocation
    category: str = 'General'


class SemanticAnalysis(BaseModel):
    """Structured result of the semantic (LLM) analysis, or its fallback."""
    model_config = ConfigDict(frozen=True)

    overall_risk_score: float
    executive_summary: str
    additional_vulnerabilities: List[Vulnerability] = []
    validated_findings: List[str] = []
    false_positives: List[str] = []
    gas_optimizations: List[GasOptimization] = []
    best_practice_violations: List[BestPractice] = []
    model: Optional[str] = None


class ExecutiveSummary(BaseModel):
    model_config = ConfigDict(frozen=True)

    total_vulnerabilities: int
    critical_count: int
    high_count: int
    medium_count: int
    low_count: int
    info_count: int
    overall_risk_score: float
    deployment_recommendation: DeploymentRecommendation
    top_concerns: List[str] = []


class RiskAssessment(BaseModel):
    model_config = ConfigDict(frozen=True)

    overall_score: float
    category_breakdown: Dict[str, int] = {}
    historical_context: str = ''


class ReportMetadata(BaseModel):
    model_config = ConfigDict(frozen=True)

    tool: str
    analysis_version: str
    rules_version: str
    ai_model: str
    analysis_time: int  # milliseconds


class AuditReport(BaseModel):
    """Model for the complete audit report."""
    model_config = ConfigDict(frozen=True)

    id: str
    timestamp: datetime
    contract_name: str
    source_code: str
    executive_summary: ExecutiveSummary
    vulnerabilities: List[Vulnerability]
    gas_optimizations: List[GasOptimization] = []
    best_practices: List[BestPractice] = []
    risk_assessment: RiskAssessment
    metadata: ReportMetadata

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return self.model_dump(mode='json')
