"""
LLM-backed semantic analysis of Solidity contracts.

Each provider implements ``SemanticAnalyzer``; ``create_analyzer`` picks one
from configuration so the audit pipeline never branches on the provider.
"""
import json
import logging
import re
import uuid
from abc import ABC, abstractmethod
from typing import List, Optional

import anthropic
import openai
from anthropic import Anthropic
from openai import OpenAI
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from contract_auditor.config import AuditOptions, Settings
from contract_auditor.errors import SemanticAnalysisError
from contract_auditor.models.audit_result import (
    BestPractice,
    GasOptimization,
    SemanticAnalysis,
    Severity,
    Vulnerability,
)
from contract_auditor.models.contract import CodeLocation, ParsedContract

logger = logging.getLogger(__name__)

PROVIDER_OPENAI = 'openai'
PROVIDER_ANTHROPIC = 'anthropic'
VALID_PROVIDERS = {PROVIDER_OPENAI, PROVIDER_ANTHROPIC}
DEFAULT_ANTHROPIC_MODEL = 'claude-3-5-sonnet-20241022'

AI_FINDING_PREFIX = 'AI-'
AI_FINDING_CONFIDENCE = 0.70
DIFFICULTIES = ('LOW', 'MEDIUM', 'HIGH')

SYSTEM_PROMPT = 'You are an expert smart contract security auditor. Always respond with valid JSON.'


class _RawLocation(BaseModel):
    model_config = ConfigDict(extra='ignore')

    line: Optional[int] = 0


class _RawVulnerability(BaseModel):
    model_config = ConfigDict(extra='ignore')

    name: Optional[str] = None
    description: str = ''
    severity: str = 'MEDIUM'
    location: Optional[_RawLocation] = None
    recommendation: str = ''


class _RawGasOptimization(BaseModel):
    model_config = ConfigDict(extra='ignore', populate_by_name=True)

    description: str
    location: Optional[_RawLocation] = None
    estimated_savings: str = Field('', alias='estimatedSavings')
    difficulty: str = 'MEDIUM'


class _RawBestPractice(BaseModel):
    model_config = ConfigDict(extra='ignore')

    description: str
    location: Optional[_RawLocation] = None
    category: str = 'General'


class _RawAnalysis(BaseModel):
    """Shape of the JSON document the model is asked to return."""
    model_config = ConfigDict(extra='ignore', populate_by_name=True)

    overall_risk_score: Optional[float] = Field(None, alias='overallRiskScore')
    executive_summary: Optional[str] = Field(None, alias='executiveSummary')
    additional_vulnerabilities: List[_RawVulnerability] = Field([], alias='additionalVulnerabilities')
    validated_findings: List[str] = Field([], alias='validatedFindings')
    false_positives: List[str] = Field([], alias='falsePositives')
    gas_optimizations: List[_RawGasOptimization] = Field([], alias='gasOptimizations')
    best_practice_violations: List[_RawBestPractice] = Field([], alias='bestPracticeViolations')


def build_analysis_prompt(parsed: ParsedContract, vulnerabilities: List[Vulnerability]) -> str:
    """
    Build the analysis prompt.

    Args:
        parsed: Parsed contract to analyze
        vulnerabilities: Findings from pattern analysis

    Returns:
        Prompt text
    """
    detected = '\n'.join(
        f"- {v.id}: {v.name} ({v.severity.value}) at line {v.location.line}" for v in vulnerabilities
    ) or 'None'
    pragmas = ', '.join(parsed.pragmas) or 'not specified'

    return f"""You are an expert smart contract security auditor. Analyze the following Solidity contract for security vulnerabilities, business logic flaws, and best practice violations.

COMPILER PRAGMA: {pragmas}

CONTRACT SOURCE CODE:
```solidity
{parsed.source_code}
```

ALREADY DETECTED ISSUES:
{detected}

ANALYSIS INSTRUCTIONS:
1. Validate the detected issues above - are any false positives?
2. Identify any additional security vulnerabilities not caught by pattern matching
3. Analyze business logic for potential flaws
4. Identify gas optimization opportunities
5. Note best practice violations
6. Provide an overall risk score (1-10) where 10 is most risky
7. Write an executive summary in plain language

RESPONSE FORMAT (JSON):
{{
  "overallRiskScore": <number 1-10>,
  "executiveSummary": "<plain language summary>",
  "additionalVulnerabilities": [
    {{
      "name": "...",
      "description": "...",
      "severity": "CRITICAL|HIGH|MEDIUM|LOW|INFO",
      "location": {{"line": <number>}},
      "recommendation": "..."
    }}
  ],
  "validatedFindings": ["<list of issue IDs that are confirmed true positives>"],
  "falsePositives": ["<list of issue IDs that are false positives>"],
  "gasOptimizations": [
    {{
      "description": "...",
      "location": {{"line": <number>}},
      "estimatedSavings": "...",
      "difficulty": "LOW|MEDIUM|HIGH"
    }}
  ],
  "bestPracticeViolations": [
    {{
      "description": "...",
      "location": {{"line": <number>}},
      "category": "..."
    }}
  ]
}}

Respond ONLY with valid JSON, no additional text."""


def _strip_code_fence(response: str) -> str:
    match = re.search(r'```(?:json)?\s*(.*?)```', response, re.DOTALL)
    if match:
        return match.group(1).strip()
    return response.strip()


def _location(raw: Optional[_RawLocation], file_name: str) -> CodeLocation:
    line = raw.line if raw is not None and raw.line else 0
    return CodeLocation(file=file_name, line=max(0, line), column=0)


def new_finding_id() -> str:
    """Fresh id for an AI reported finding; never collides with rule ids."""
    return f"{AI_FINDING_PREFIX}{uuid.uuid4().hex[:9]}"


def parse_analysis_response(response: str, file_name: str = 'contract.sol',
                            model: Optional[str] = None) -> SemanticAnalysis:
    """
    Parse the model response into a SemanticAnalysis.

    Args:
        response: Raw response text, optionally wrapped in a code fence
        file_name: File name recorded in locations
        model: Model that produced the response

    Returns:
        Parsed analysis

    Raises:
        SemanticAnalysisError: If the response is not the expected JSON document
    """
    try:
        raw = _RawAnalysis.model_validate(json.loads(_strip_code_fence(response)))
    except (json.JSONDecodeError, ValidationError) as e:
        raise SemanticAnalysisError(f"Malformed analysis response: {str(e)}") from e

    additional = []
    for item in raw.additional_vulnerabilities:
        severity = item.severity.strip().upper()
        if severity not in Severity.__members__:
            severity = 'MEDIUM'
        description = item.description or item.name or 'Issue reported by AI analysis'
        additional.append(Vulnerability(
            id=new_finding_id(),
            name=item.name or description,
            severity=Severity(severity),
            description=description,
            location=_location(item.location, file_name),
            technical_explanation=description,
            exploit_scenario=item.recommendation,
            recommendation=item.recommendation,
            code_snippet='',
            references=['AI Analysis'],
            confidence=AI_FINDING_CONFIDENCE
        ))

    score = raw.overall_risk_score if raw.overall_risk_score is not None else 5.0

    return SemanticAnalysis(
        overall_risk_score=min(10.0, max(1.0, score)),
        executive_summary=raw.executive_summary or 'No summary available',
        additional_vulnerabilities=additional,
        validated_findings=raw.validated_findings,
        false_positives=raw.false_positives,
        gas_optimizations=[
            GasOptimization(
                description=gas.description,
                location=_location(gas.location, file_name),
                estimated_savings=gas.estimated_savings,
                difficulty=gas.difficulty.upper() if gas.difficulty.upper() in DIFFICULTIES else 'MEDIUM'
            )
            for gas in raw.gas_optimizations
        ],
        best_practice_violations=[
            BestPractice(
                description=practice.description,
                location=_location(practice.location, file_name),
                category=practice.category
            )
            for practice in raw.best_practice_violations
        ],
        model=model
    )


class SemanticAnalyzer(ABC):
    """Capability interface for semantic analysis providers."""

    provider = 'unknown'

    def __init__(self, model: str):
        self.model = model

    def analyze(self, parsed: ParsedContract, vulnerabilities: List[Vulnerability]) -> SemanticAnalysis:
        """
        Analyze a parsed contract with the LLM.

        Args:
            parsed: Parsed contract
            vulnerabilities: Findings from pattern analysis

        Returns:
            Semantic analysis result

        Raises:
            SemanticAnalysisError: If the call fails, times out or returns unusable data
        """
        logger.info(f"Starting {self.provider} semantic analysis with model {self.model}")
        prompt = build_analysis_prompt(parsed, vulnerabilities)
        try:
            response = self._complete(prompt)
        except SemanticAnalysisError:
            raise
        except Exception as e:
            raise SemanticAnalysisError(f"{self.provider} request failed: {str(e)}") from e
        analysis = parse_analysis_response(response, parsed.file_name, self.model)
        logger.info(f"Semantic analysis returned {len(analysis.additional_vulnerabilities)} additional finding(s)")
        return analysis

    @abstractmethod
    def _complete(self, prompt: str) -> str:
        """Send the prompt and return the raw response text."""


class OpenAIAnalyzer(SemanticAnalyzer):
    """Semantic analysis through the OpenAI chat completions API."""

    provider = PROVIDER_OPENAI

    def __init__(self, api_key: str, model: str = 'gpt-4', api_base_url: Optional[str] = None,
                 timeout: float = 60.0, max_tokens: int = 2000, temperature: float = 0.3):
        super().__init__(model)
        self.max_tokens = max_tokens
        self.temperature = temperature

        client_args = {"api_key": api_key, "timeout": timeout, "max_retries": 0}
        if api_base_url:
            client_args["base_url"] = api_base_url

        self.client = OpenAI(**client_args)

    def _complete(self, prompt: str) -> str:
        try:
            response = self.client.chat.completions.create(
                model=self.model,
                messages=[
                    {"role": "system", "content": SYSTEM_PROMPT},
                    {"role": "user", "content": prompt}
                ],
                temperature=self.temperature,
                max_tokens=self.max_tokens
            )
            return response.choices[0].message.content or '{}'
        except (openai.OpenAIError, IndexError, AttributeError) as e:
            raise SemanticAnalysisError(f"OpenAI request failed: {str(e)}") from e


class AnthropicAnalyzer(SemanticAnalyzer):
    """Semantic analysis through the Anthropic messages API."""

    provider = PROVIDER_ANTHROPIC

    def __init__(self, api_key: str, model: str = DEFAULT_ANTHROPIC_MODEL, timeout: float = 60.0,
                 max_tokens: int = 2000, temperature: float = 0.3):
        super().__init__(model)
        self.max_tokens = max_tokens
        self.temperature = temperature
        self.client = Anthropic(api_key=api_key, timeout=timeout, max_retries=0)

    def _complete(self, prompt: str) -> str:
        try:
            message = self.client.messages.create(
                model=self.model,
                max_tokens=self.max_tokens,
                temperature=self.temperature,
                system=SYSTEM_PROMPT,
                messages=[{"role": "user", "content": prompt}]
            )
            text = ''.join(block.text for block in message.content if block.type == 'text')
            return text or '{}'
        except (anthropic.AnthropicError, AttributeError) as e:
            raise SemanticAnalysisError(f"Anthropic request failed: {str(e)}") from e


def create_analyzer(settings: Settings, options: Optional[AuditOptions] = None) -> Optional[SemanticAnalyzer]:
    """
    Create the configured semantic analyzer.

    Args:
        settings: Application settings
        options: Per-audit overrides for provider and model

    Returns:
        Analyzer instance, or None when the provider has no credentials
    """
    options = options or AuditOptions()
    provider = (options.llm_provider or settings.llm_provider).lower().strip()
    if provider not in VALID_PROVIDERS:
        logger.warning(f"Unknown provider '{provider}', falling back to '{PROVIDER_OPENAI}'")
        provider = PROVIDER_OPENAI

    model = options.model or settings.llm_model

    if provider == PROVIDER_ANTHROPIC:
        if not settings.anthropic_api_key:
            logger.warning("ANTHROPIC_API_KEY not set, semantic analysis unavailable")
            return None
        if model.startswith('gpt'):
            model = DEFAULT_ANTHROPIC_MODEL
        return AnthropicAnalyzer(
            api_key=settings.anthropic_api_key,
            model=model,
            timeout=settings.ai_timeout,
            max_tokens=settings.ai_max_tokens,
            temperature=settings.ai_temperature
        )

    if not settings.openai_api_key:
        logger.warning("OPENAI_API_KEY not set, semantic analysis unavailable")
        return None
    return OpenAIAnalyzer(
        api_key=settings.openai_api_key,
        model=model,
        api_base_url=settings.api_base_url,
        timeout=settings.ai_timeout,
        max_tokens=settings.ai_max_tokens,
        temperature=settings.ai_temperature
    )
