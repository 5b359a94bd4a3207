"""
Configuration for the smart contract auditor.
"""
from typing import Any, List, Optional
from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings."""

    model_config = SettingsConfigDict(
        env_file='.env',
        env_file_encoding='utf-8',
        extra='ignore'
    )

    # LLM provider settings
    llm_provider: str = Field('openai', description='openai or anthropic')
    openai_api_key: Optional[str] = None
    anthropic_api_key: Optional[str] = None
    llm_model: str = 'gpt-4'
    api_base_url: Optional[str] = None

    # Semantic analysis call settings
    ai_timeout: float = Field(60.0, gt=0)
    ai_max_tokens: int = 2000
    ai_temperature: float = 0.3

    # Rule engine settings
    rule_workers: int = Field(4, ge=1)
    source_file_name: str = 'contract.sol'

    # Logging settings
    log_level: str = 'INFO'
    log_file: Optional[str] = None


class AuditOptions(BaseModel):
    """Per-audit options supplied by the caller."""

    enable_ai_analysis: bool = True
    skip_rules: List[str] = Field(default_factory=list)
    custom_rules: List[Any] = Field(default_factory=list)
    llm_provider: Optional[str] = None
    model: Optional[str] = None
