"""
Medium severity rules.
"""
from typing import List, Set

from contract_auditor.models.audit_result import Severity, Vulnerability
from contract_auditor.models.contract import CodeLocation, ContractMetadata, ParsedContract
from contract_auditor.rules.base import lexical, structural
from contract_auditor.services.syntax import (
    NodeKind,
    contract_members,
    find_contract,
    is_node,
    node_kind,
    node_position,
    walk,
)

TIMESTAMP_DEPENDENCE = lexical(
    id='TD-01',
    name='Timestamp Dependence',
    severity=Severity.MEDIUM,
    description='Usage of block.timestamp for critical logic can be manipulated by miners',
    pattern=r'block\.timestamp|\bnow\b',
    recommendation='Use block.number for time-sensitive logic or accept miner manipulation risk',
    references=('SWC-116',),
    explanation='Block producers can shift block.timestamp by several seconds within consensus limits.',
    exploit_scenario=('A miner adjusts the timestamp of the block that includes a time-sensitive call so that a '
                      'deadline or time-based condition resolves in their favour.')
)

TX_ORIGIN = lexical(
    id='TX-01',
    name='Tx.origin Authentication',
    severity=Severity.MEDIUM,
    description='Using tx.origin for authorization is vulnerable to phishing attacks',
    pattern=r'tx\.origin',
    recommendation='Use msg.sender instead of tx.origin for authentication',
    references=('SWC-115',),
    explanation=('tx.origin is the externally owned account that started the transaction, not the immediate '
                 'caller, so any contract the owner interacts with can act with the owner\'s authority.'),
    exploit_scenario=('An attacker lures the owner into calling a malicious contract that then calls this '
                      'contract; the tx.origin check passes and the attacker performs privileged actions.'),
    confidence=0.85
)

FLOATING_PRAGMA = lexical(
    id='FP-01',
    name='Floating Pragma',
    severity=Severity.MEDIUM,
    description='Pragma version not locked to specific compiler version',
    pattern=r'pragma\s+solidity\s*[\^~>]',
    recommendation='Lock pragma to specific Solidity version for production contracts',
    references=('SWC-103',),
    explanation=('A floating pragma lets the contract be compiled with compiler versions other than the one it '
                 'was tested with, including versions with known bugs.'),
    exploit_scenario='The contract is deployed with a compiler release whose bug changes its behaviour.',
    confidence=0.90
)

DOS_LOOPS = lexical(
    id='DOS-01',
    name='DoS with Block Gas Limit',
    severity=Severity.MEDIUM,
    description='Unbounded loops over dynamic arrays can lead to DoS',
    pattern=r'for\s*\([^)]*\.length',
    recommendation='Implement pagination or pull pattern for large arrays',
    references=('SWC-128',),
    explanation=('The gas cost of a loop over a dynamic array grows with the array; once it exceeds the block '
                 'gas limit the function can never complete.'),
    exploit_scenario=('An attacker inflates the array (e.g. by registering many cheap entries) until the loop '
                      'runs out of gas and the function is permanently blocked.'),
    confidence=0.65
)


def _struct_names(parsed: ParsedContract, contract) -> Set[str]:
    names = {s.get('name') for s in contract_members(contract, NodeKind.STRUCT)}
    names.update(
        node.get('name') for node in parsed.ast.get('children') or []
        if node_kind(node) is NodeKind.STRUCT
    )
    names.discard(None)
    return names


def _uninitialized_storage(parsed: ParsedContract, metadata: ContractMetadata) -> List[Vulnerability]:
    contract = find_contract(parsed.ast, metadata.name)
    if contract is None:
        return []
    structs = _struct_names(parsed, contract)
    if not structs:
        return []

    findings = []
    for function in contract_members(contract, NodeKind.FUNCTION):
        for statement in walk(function.get('body')):
            if node_kind(statement) is not NodeKind.VARIABLE_DECLARATION_STATEMENT:
                continue
            if statement.get('initialValue'):
                continue
            for variable in statement.get('variables') or []:
                if not is_node(variable) or variable.get('storageLocation'):
                    continue
                type_name = variable.get('typeName')
                if node_kind(type_name) is not NodeKind.USER_DEFINED_TYPE or type_name.get('namePath') not in structs:
                    continue
                line, column = node_position(variable)
                if line == 0:
                    line, column = node_position(statement)
                findings.append(UNINITIALIZED_STORAGE.finding(
                    CodeLocation(file=parsed.file_name, line=line, column=column,
                                 function_name=function.get('name'), contract_name=metadata.name),
                    description=(f'Local struct "{variable.get("name")}" of type {type_name.get("namePath")} has no '
                                 'explicit storage or memory location')
                ))
    return findings


UNINITIALIZED_STORAGE = structural(
    id='US-01',
    name='Uninitialized Storage Pointers',
    severity=Severity.MEDIUM,
    description='Local structs without explicit storage location can corrupt state',
    predicate=_uninitialized_storage,
    recommendation='Explicitly declare memory or storage for struct variables',
    references=('SWC-109',),
    explanation=('In older compilers an uninitialized local struct defaults to a storage pointer at slot 0, so '
                 'writing to it overwrites the first state variables.'),
    exploit_scenario='Writes through the local variable overwrite the owner or balance stored in slot 0.',
    confidence=0.75
)

MEDIUM_RULES = (TIMESTAMP_DEPENDENCE, TX_ORIGIN, FLOATING_PRAGMA, DOS_LOOPS, UNINITIALIZED_STORAGE)
