"""
High severity rules.
"""
import re
from typing import List, Optional, Tuple

from contract_auditor.models.audit_result import Severity, Vulnerability
from contract_auditor.models.contract import (
    FALLBACK_FUNCTION_NAME,
    CodeLocation,
    ContractMetadata,
    ParsedContract,
)
from contract_auditor.rules.base import lexical, structural
from contract_auditor.services.syntax import NodeKind, node_kind, node_position

CRITICAL_FUNCTION_KEYWORDS = ('withdraw', 'transferOwnership', 'setOwner', 'pause', 'unpause', 'mint', 'burn')
AUTHORIZATION_MODIFIERS = ('onlyOwner', 'onlyAdmin', 'requiresAuth', 'authorized')
SPECIAL_FUNCTIONS = ('constructor', 'receive', FALLBACK_FUNCTION_NAME)
CHECKED_ARITHMETIC_VERSION = (0, 8)

_VERSION = re.compile(r'(\d+)\.(\d+)(?:\.(\d+))?')


def pragma_version(constraint: str) -> Optional[Tuple[int, int]]:
    """First ``major.minor`` mentioned in a pragma constraint, e.g. (0, 7) for ``^0.7.6``."""
    match = _VERSION.search(constraint or '')
    if not match:
        return None
    return int(match.group(1)), int(match.group(2))


def _integer_overflow(parsed: ParsedContract, metadata: ContractMetadata) -> List[Vulnerability]:
    for node in parsed.ast.get('children') or []:
        if node_kind(node) is not NodeKind.PRAGMA or node.get('name') != 'solidity':
            continue
        version = pragma_version(str(node.get('value') or ''))
        if version is not None and version < CHECKED_ARITHMETIC_VERSION:
            line, column = node_position(node)
            location = CodeLocation(file=parsed.file_name, line=line, column=column,
                                    contract_name=metadata.name)
            return [INTEGER_OVERFLOW.finding(
                location,
                name='Potential Integer Overflow/Underflow',
                description=(f'Contract "{metadata.name}" targets Solidity {node.get("value")}; arithmetic '
                             'operations may be vulnerable to overflow/underflow'),
                code_snippet=(
                    "// Vulnerable (Solidity < 0.8.0):\n"
                    "uint256 balance = 0;\n"
                    "balance = balance - 1; // underflows to max uint256\n\n"
                    "// Fixed (Solidity >= 0.8.0):\n"
                    "// Automatically reverts on overflow/underflow\n\n"
                    "// Or use SafeMath:\n"
                    "using SafeMath for uint256;\n"
                    "balance = balance.sub(1); // safely reverts"
                )
            )]
    return []


INTEGER_OVERFLOW = structural(
    id='IO-01',
    name='Integer Overflow/Underflow',
    severity=Severity.HIGH,
    description='Arithmetic operations without SafeMath in Solidity < 0.8.0',
    predicate=_integer_overflow,
    recommendation=('Upgrade to Solidity 0.8.0+ which has built-in overflow/underflow checking, or use SafeMath '
                    'library for older versions.'),
    references=(
        'SWC-101: Integer Overflow and Underflow',
        'CWE-190: Integer Overflow',
        'CWE-191: Integer Underflow'
    ),
    explanation=('Solidity versions prior to 0.8.0 do not automatically check for integer overflow and '
                 'underflow. Unchecked arithmetic can wrap around, leading to unexpected behavior.'),
    exploit_scenario=('An attacker could manipulate arithmetic operations to overflow/underflow values, '
                      'potentially bypassing balance checks or manipulating token supplies.'),
    confidence=0.70
)


def _access_control(parsed: ParsedContract, metadata: ContractMetadata) -> List[Vulnerability]:
    findings = []

    for func in metadata.functions:
        lowered = func.name.lower()
        is_critical = any(keyword.lower() in lowered for keyword in CRITICAL_FUNCTION_KEYWORDS)
        has_access_control = any(modifier in AUTHORIZATION_MODIFIERS for modifier in func.modifiers)

        if is_critical and not has_access_control and func.visibility in ('public', 'external'):
            findings.append(ACCESS_CONTROL.finding(
                func.location,
                description=f'Critical function "{func.name}" is {func.visibility} without access control',
                exploit_scenario=(f'Any user can call {func.name}() and perform privileged operations, '
                                  'potentially draining funds or taking over the contract.'),
                code_snippet=(
                    f"// Vulnerable:\nfunction {func.name}() {func.visibility} {{\n  // critical operation\n}}\n\n"
                    f"// Fixed:\nfunction {func.name}() {func.visibility} onlyOwner {{\n  // critical operation\n}}"
                )
            ))

    return findings


ACCESS_CONTROL = structural(
    id='AC-01',
    name='Missing Access Control',
    severity=Severity.HIGH,
    description='Critical functions lack proper access control modifiers',
    predicate=_access_control,
    recommendation='Add access control modifier such as "onlyOwner" or implement role-based access control.',
    references=(
        'SWC-105: Unprotected Ether Withdrawal',
        'CWE-284: Improper Access Control'
    ),
    explanation=('Functions that modify critical contract state or handle funds should be restricted to '
                 'authorized addresses only.'),
    confidence=0.90
)


def _selfdestruct(parsed: ParsedContract, metadata: ContractMetadata) -> List[Vulnerability]:
    findings = []

    for func in metadata.functions:
        lowered = func.name.lower()
        if 'destruct' not in lowered and 'kill' not in lowered:
            continue
        if any(modifier in ('onlyOwner', 'onlyAdmin') for modifier in func.modifiers):
            continue
        findings.append(SELFDESTRUCT.finding(
            func.location,
            description=f'Function "{func.name}" may contain selfdestruct without access control',
            code_snippet=(
                "// Vulnerable:\n"
                "function destroy(address payable recipient) public {\n"
                "  selfdestruct(recipient);\n"
                "}\n\n"
                "// Fixed:\n"
                "function destroy(address payable recipient) public onlyOwner {\n"
                "  selfdestruct(recipient);\n"
                "}"
            )
        ))

    return findings


SELFDESTRUCT = structural(
    id='SD-01',
    name='Unprotected Selfdestruct',
    severity=Severity.HIGH,
    description='Selfdestruct without proper access control can destroy the contract',
    predicate=_selfdestruct,
    recommendation=('Protect selfdestruct with onlyOwner or equivalent modifier. Consider if selfdestruct is even '
                    'necessary.'),
    references=(
        'SWC-106: Unprotected SELFDESTRUCT Instruction',
        'Parity Wallet Hack (2017)'
    ),
    explanation=('The selfdestruct() function permanently destroys the contract and sends all remaining Ether to '
                 'a specified address. Without proper access control, anyone can destroy the contract.'),
    exploit_scenario=('An attacker calls the selfdestruct function, permanently destroying the contract and '
                      'potentially stealing all funds.'),
    confidence=0.85
)


def _front_running(parsed: ParsedContract, metadata: ContractMetadata) -> List[Vulnerability]:
    return [
        FRONT_RUNNING.finding(
            func.location,
            description=f'Payable function "{func.name}" is {func.visibility} and observable in the mempool'
        )
        for func in metadata.functions
        if func.state_mutability == 'payable'
        and func.visibility in ('public', 'external')
        and func.name not in SPECIAL_FUNCTIONS
    ]


FRONT_RUNNING = structural(
    id='FR-01',
    name='Front-Running Vulnerability',
    severity=Severity.HIGH,
    description='Price or state changes visible before execution can be front-run',
    predicate=_front_running,
    recommendation='Use commit-reveal scheme for sensitive operations',
    references=('Front-Running', 'MEV'),
    explanation=('Pending transactions are public. A miner or bot can copy or outbid a payable call and have '
                 'its own transaction ordered first.'),
    exploit_scenario=('An attacker watches the mempool for calls to this function and submits the same call with '
                      'a higher gas price to capture the value first.'),
    confidence=0.60
)

WEAK_RANDOMNESS = lexical(
    id='RN-01',
    name='Weak Randomness Source',
    severity=Severity.HIGH,
    description='Using block properties for randomness is predictable',
    pattern=r'block\.timestamp|block\.number|block\.difficulty|block\.prevrandao|blockhash',
    recommendation='Use Chainlink VRF or similar oracle for secure randomness',
    references=('SWC-120', 'Predictable Randomness'),
    explanation=('Block properties are known to, and partly chosen by, block producers, so values derived from '
                 'them can be predicted or influenced.'),
    exploit_scenario=('A miner or a contract executing in the same block computes the same "random" value and '
                      'only participates when the outcome is favourable.'),
    confidence=0.60
)

HIGH_RULES = (INTEGER_OVERFLOW, ACCESS_CONTROL, SELFDESTRUCT, FRONT_RUNNING, WEAK_RANDOMNESS)
