"""Pytest fixtures for contract_auditor tests."""

import sys
from pathlib import Path

import pytest

# Ensure contract_auditor and the builders module are importable
_tests = Path(__file__).resolve().parent
for _path in (_tests, _tests.parent):
    if str(_path) not in sys.path:
        sys.path.insert(0, str(_path))

from contract_auditor.config import Settings  # noqa: E402
from contract_auditor.errors import SemanticAnalysisError  # noqa: E402
from contract_auditor.services.semantic_analyzer import SemanticAnalyzer  # noqa: E402

import builders  # noqa: E402


class FakeAnalyzer(SemanticAnalyzer):
    """Analyzer returning a canned response instead of calling a provider."""

    provider = "fake"

    def __init__(self, response=None, error=None, model="fake-model"):
        super().__init__(model)
        self.response = response
        self.error = error
        self.prompts = []

    def _complete(self, prompt):
        self.prompts.append(prompt)
        if isinstance(self.error, Exception):
            raise self.error
        if self.error is not None:
            raise SemanticAnalysisError(self.error)
        return self.response


@pytest.fixture
def settings():
    """Settings that ignore the environment's API keys."""
    return Settings(
        _env_file=None,
        llm_provider="openai",
        llm_model="gpt-4",
        api_base_url=None,
        openai_api_key=None,
        anthropic_api_key=None,
        rule_workers=1,
    )


@pytest.fixture
def fake_analyzer():
    """Factory for FakeAnalyzer instances."""
    def _make(response=None, error=None):
        return FakeAnalyzer(response=response, error=error)

    return _make


@pytest.fixture
def withdraw_contract():
    return builders.parsed(builders.withdraw_tree(), builders.WITHDRAW_SOURCE)


@pytest.fixture
def set_owner_contract():
    return builders.parsed(builders.set_owner_tree(), builders.SET_OWNER_SOURCE)
