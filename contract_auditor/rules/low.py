"""
Low severity rules.
"""
import re
from typing import Any, Dict, List, Tuple

from contract_auditor.models.audit_result import Severity, Vulnerability
from contract_auditor.models.contract import ContractMetadata, FunctionInfo, ParsedContract
from contract_auditor.rules.base import lexical, structural
from contract_auditor.services.metadata_extractor import function_name
from contract_auditor.services.syntax import (
    NodeKind,
    contract_members,
    find_contract,
    is_node,
    node_kind,
    node_position,
    walk,
)

ADDRESS_TYPES = ('address', 'address payable')


def _takes_address(func: FunctionInfo) -> bool:
    return func.visibility in ('public', 'external') and any(p.type in ADDRESS_TYPES for p in func.parameters)


def _zero_address(parsed: ParsedContract, metadata: ContractMetadata) -> List[Vulnerability]:
    return [
        ZERO_ADDRESS.finding(
            func.location,
            description=f'Function "{func.name}" accepts address parameter without zero address validation',
            code_snippet=(
                "// Vulnerable:\n"
                "function setOwner(address newOwner) public {\n"
                "  owner = newOwner;\n"
                "}\n\n"
                "// Fixed:\n"
                "function setOwner(address newOwner) public {\n"
                "  require(newOwner != address(0), \"Zero address\");\n"
                "  owner = newOwner;\n"
                "}"
            )
        )
        for func in metadata.functions
        if _takes_address(func)
    ]


ZERO_ADDRESS = structural(
    id='ZA-01',
    name='Missing Zero Address Check',
    severity=Severity.LOW,
    description='Address parameters should be validated against zero address',
    predicate=_zero_address,
    recommendation='Add require statement to check address != address(0).',
    references=('Best Practice',),
    explanation=('Address parameters should be validated to ensure they are not the zero address (0x0) to '
                 'prevent accidental loss of funds or broken functionality.'),
    exploit_scenario=('User accidentally passes zero address, causing funds to be permanently locked or '
                      'functionality to break.'),
    confidence=0.60
)


def _unused_variable(parsed: ParsedContract, metadata: ContractMetadata) -> List[Vulnerability]:
    findings = []

    for variable in metadata.state_variables:
        # Public variables are read through their generated getter
        if variable.visibility not in ('private', 'internal'):
            continue
        occurrences = re.findall(rf'\b{re.escape(variable.name)}\b', parsed.source_code)
        if len(occurrences) <= 1:
            findings.append(UNUSED_VARIABLE.finding(
                variable.location,
                description=f'State variable "{variable.name}" is declared but never used',
                code_snippet=f'{variable.type} {variable.visibility} {variable.name};'
            ))

    return findings


UNUSED_VARIABLE = structural(
    id='UV-01',
    name='Unused Variables',
    severity=Severity.LOW,
    description='Declared variables that are never used',
    predicate=_unused_variable,
    recommendation='Remove unused variables or prefix with underscore',
    references=('Code Quality',),
    explanation='Unused state variables occupy storage, cost gas at deployment and obscure the contract logic.',
    exploit_scenario='Not directly exploitable; it can hide a missing assignment or check.',
    confidence=0.55
)


def _function_bodies(parsed: ParsedContract, contract_name: str) -> Dict[Tuple[str, int], Any]:
    contract = find_contract(parsed.ast, contract_name)
    if contract is None:
        return {}
    return {
        (function_name(node), node_position(node)[0]): node.get('body')
        for node in contract_members(contract, NodeKind.FUNCTION)
    }


def _event_missing(parsed: ParsedContract, metadata: ContractMetadata) -> List[Vulnerability]:
    findings = []
    bodies = _function_bodies(parsed, metadata.name)

    for func in metadata.functions:
        if func.state_mutability in ('view', 'pure') or func.name.startswith('_'):
            continue
        if func.visibility not in ('public', 'external') or func.name == 'constructor':
            continue
        body = bodies.get((func.name, func.location.line))
        if not is_node(body) or not body.get('statements'):
            continue
        if any(node_kind(node) is NodeKind.EMIT_STATEMENT for node in walk(body)):
            continue
        event_name = func.name[:1].upper() + func.name[1:]
        findings.append(EVENT_MISSING.finding(
            func.location,
            description=f'Function "{func.name}" modifies state but does not emit an event',
            code_snippet=f'event {event_name}(...);'
        ))

    return findings


EVENT_MISSING = structural(
    id='EM-01',
    name='Missing Event Emission',
    severity=Severity.LOW,
    description='State-changing functions should emit events',
    predicate=_event_missing,
    recommendation='Add event emission for all significant state changes.',
    references=('Best Practice',),
    explanation='Functions that modify state should emit events for off-chain tracking and transparency.',
    exploit_scenario='State changes without events make it difficult to track contract behavior and audit trails.',
    confidence=0.50
)


def _short_address(parsed: ParsedContract, metadata: ContractMetadata) -> List[Vulnerability]:
    return [
        SHORT_ADDRESS.finding(
            func.location,
            description=f'Function "{func.name}" takes an address parameter without validating calldata length'
        )
        for func in metadata.functions
        if _takes_address(func)
    ]


SHORT_ADDRESS = structural(
    id='SA-01',
    name='Short Address Attack',
    severity=Severity.LOW,
    description='Missing input validation for address length',
    predicate=_short_address,
    recommendation='Validate address parameter length',
    references=('Short Address Attack',),
    explanation=('If a client encodes a truncated address, the EVM pads the missing bytes from the following '
                 'argument, shifting amounts by a power of 256.'),
    exploit_scenario=('An attacker supplies an address ending in zero bytes with the last byte removed; a naive '
                      'off-chain encoder sends short calldata and the transferred amount is multiplied.'),
    confidence=0.40
)

ASSERT_VS_REQUIRE = lexical(
    id='AR-01',
    name='Improper Use of Assert',
    severity=Severity.LOW,
    description='Assert should only be used for invariants, not input validation',
    pattern=r'\bassert\s*\(',
    recommendation='Use require() for input validation, assert() only for invariants',
    references=('Best Practice',),
    explanation=('A failing assert signals an internal error; before 0.8.0 it also consumed all remaining gas. '
                 'Input checks belong in require().'),
    exploit_scenario='Callers triggering the assert with bad input lose all gas supplied to the transaction.',
    confidence=0.50
)

LOW_RULES = (ZERO_ADDRESS, UNUSED_VARIABLE, EVENT_MISSING, SHORT_ADDRESS, ASSERT_VS_REQUIRE)
