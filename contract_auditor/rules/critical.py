"""
Critical severity rules: reentrancy, unchecked low-level calls, delegatecall.
"""
from typing import List

from contract_auditor.models.audit_result import Severity, Vulnerability
from contract_auditor.models.contract import ContractMetadata, ParsedContract
from contract_auditor.rules.base import structural

REENTRANCY_GUARDS = ('nonReentrant', 'noReentrancy', 'nonReentrantView')


def _reentrancy(parsed: ParsedContract, metadata: ContractMetadata) -> List[Vulnerability]:
    findings = []

    for func in metadata.functions:
        has_external_call = any(call.kind == 'call' for call in metadata.calls_in(func.name))
        guarded = any(modifier in REENTRANCY_GUARDS for modifier in func.modifiers)

        if has_external_call and not guarded:
            findings.append(REENTRANCY.finding(
                func.location,
                description=f'Function "{func.name}" makes external calls without reentrancy protection',
                code_snippet=(
                    "// Vulnerable:\n"
                    "function withdraw() public {\n"
                    "  (bool success, ) = msg.sender.call{value: balance}(\"\");\n"
                    "  balance = 0; // State change after external call\n"
                    "}\n\n"
                    "// Fixed:\n"
                    "function withdraw() public nonReentrant {\n"
                    "  uint amount = balance;\n"
                    "  balance = 0; // State change before external call\n"
                    "  (bool success, ) = msg.sender.call{value: amount}(\"\");\n"
                    "}"
                )
            ))

    return findings


REENTRANCY = structural(
    id='RE-01',
    name='Reentrancy Vulnerability',
    severity=Severity.CRITICAL,
    description='External calls followed by state changes can lead to reentrancy attacks',
    predicate=_reentrancy,
    recommendation=('Use the checks-effects-interactions pattern: perform all state changes before making '
                    'external calls, or use a ReentrancyGuard modifier.'),
    references=(
        'CWE-841: Improper Enforcement of Behavioral Workflow',
        'SWC-107: Reentrancy',
        'The DAO Hack (2016)'
    ),
    explanation=('External calls using .call{value:}() can allow malicious contracts to reenter the function '
                 'before state changes are finalized, potentially draining funds.'),
    exploit_scenario=('An attacker creates a malicious contract with a fallback function that calls back into '
                      'this function, withdrawing funds multiple times before the balance is updated.'),
    confidence=0.85
)


def _unchecked_call(parsed: ParsedContract, metadata: ContractMetadata) -> List[Vulnerability]:
    findings = []

    for call in metadata.external_calls:
        if call.kind in ('call', 'delegatecall', 'send') and not call.checked:
            findings.append(UNCHECKED_CALL.finding(
                call.location,
                description=f'Unchecked {call.kind}() return value',
                technical_explanation=(
                    f'The {call.kind}() function returns a boolean indicating success or failure. Not checking '
                    'this return value means the contract will continue execution even if the call failed.'
                ),
                code_snippet=(
                    "// Vulnerable:\n"
                    "(bool success, ) = target.call(data);\n"
                    "// continues without checking success\n\n"
                    "// Fixed:\n"
                    "(bool success, ) = target.call(data);\n"
                    "require(success, \"Call failed\");"
                )
            ))

    return findings


UNCHECKED_CALL = structural(
    id='UR-01',
    name='Unchecked Low-Level Call',
    severity=Severity.CRITICAL,
    description='Low-level calls without return value checks can fail silently',
    predicate=_unchecked_call,
    recommendation='Always check the return value: require(success, "Call failed"); or use an if-statement to handle failure.',
    references=(
        'SWC-104: Unchecked Call Return Value',
        'CWE-252: Unchecked Return Value'
    ),
    exploit_scenario=('An attacker could force the external call to fail (e.g., by consuming all gas), but the '
                      'contract continues assuming the call succeeded, potentially leading to incorrect state or '
                      'loss of funds.'),
    confidence=0.95
)


def _delegatecall(parsed: ParsedContract, metadata: ContractMetadata) -> List[Vulnerability]:
    return [
        DELEGATECALL.finding(
            call.location,
            description='Delegatecall usage detected - verify target address is trusted',
            code_snippet=(
                "// Vulnerable:\n"
                "function execute(address target, bytes memory data) public {\n"
                "  target.delegatecall(data); // target is user-controlled!\n"
                "}\n\n"
                "// Fixed:\n"
                "mapping(address => bool) public trustedTargets;\n\n"
                "function execute(address target, bytes memory data) public onlyOwner {\n"
                "  require(trustedTargets[target], \"Untrusted target\");\n"
                "  target.delegatecall(data);\n"
                "}"
            )
        )
        for call in metadata.external_calls
        if call.kind == 'delegatecall'
    ]


DELEGATECALL = structural(
    id='DC-01',
    name='Delegatecall to Untrusted Address',
    severity=Severity.CRITICAL,
    description='Delegatecall to user-controlled addresses can lead to complete contract takeover',
    predicate=_delegatecall,
    recommendation=('Only use delegatecall with trusted, whitelisted contract addresses. Implement strict access '
                    'controls and validate target addresses.'),
    references=(
        'SWC-112: Delegatecall to Untrusted Callee',
        'Parity Wallet Hack (2017)'
    ),
    explanation=('Delegatecall executes code from another contract in the context of the calling contract, '
                 'preserving msg.sender and storage. If the target is malicious or user-controlled, it can '
                 'completely take over the contract.'),
    exploit_scenario=('An attacker provides a malicious contract address that, when called via delegatecall, '
                      'overwrites critical storage slots like the owner address, draining funds or destroying '
                      'the contract.'),
    confidence=0.90
)

CRITICAL_RULES = (REENTRANCY, UNCHECKED_CALL, DELEGATECALL)
