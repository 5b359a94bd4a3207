"""
Smart contract security auditor.
"""
from contract_auditor.config import AuditOptions, Settings
from contract_auditor.errors import FatalParseError
from contract_auditor.services.auditor import SmartContractAuditor, audit, from_json, to_json, to_markdown

__version__ = '1.0.0'

__all__ = [
    "AuditOptions",
    "FatalParseError",
    "Settings",
    "SmartContractAuditor",
    "audit",
    "from_json",
    "to_json",
    "to_markdown",
]
