"""
Contract metadata extraction from a parsed Solidity source unit.
"""
import logging
from typing import Any, Dict, List, Set, Tuple

from contract_auditor.errors import ExtractionError
from contract_auditor.models.contract import (
    EXTERNAL_CALL_KINDS,
    FALLBACK_FUNCTION_NAME,
    UNKNOWN_TYPE,
    CodeLocation,
    ContractMetadata,
    EventInfo,
    ExternalCall,
    FunctionInfo,
    ModifierInfo,
    Parameter,
    StateVariable,
)
from contract_auditor.services.syntax import (
    Node,
    NodeKind,
    callee,
    called_name,
    identifiers_in,
    is_node,
    node_kind,
    node_position,
    parameter_nodes,
    walk,
)

logger = logging.getLogger(__name__)

VISIBILITIES = ('public', 'external', 'internal', 'private')
GUARD_CALLS = ('require', 'assert')


def extract_metadata(tree: Node, file_name: str = 'contract.sol') -> List[ContractMetadata]:
    """
    Extract metadata for every contract declared in a source unit.

    Extraction is best effort: a declaration that cannot be read is logged
    and skipped, the rest of the contract and the remaining contracts are
    still extracted.

    Args:
        tree: Source unit produced by the parser
        file_name: File name recorded in every location

    Returns:
        One ContractMetadata per contract declaration, in source order
    """
    contracts = []

    for node in tree.get('children') or []:
        if node_kind(node) is not NodeKind.CONTRACT:
            continue
        try:
            contracts.append(_extract_contract(node, file_name))
        except (ExtractionError, AttributeError, KeyError, TypeError, ValueError) as e:
            logger.warning(f"Skipping contract {node.get('name')!r}: {str(e)}")

    logger.info(f"Extracted metadata for {len(contracts)} contract(s)")
    return contracts


def extract_pragmas(tree: Node) -> List[str]:
    """Return the version constraints of every top-level ``pragma solidity``."""
    return [
        str(node.get('value') or '')
        for node in tree.get('children') or []
        if node_kind(node) is NodeKind.PRAGMA and node.get('name') == 'solidity'
    ]


def _extract_contract(node: Node, file_name: str) -> ContractMetadata:
    name = node.get('name') or 'Unknown'
    collected: Dict[str, List[Any]] = {
        'functions': [],
        'state_variables': [],
        'events': [],
        'modifiers': [],
        'external_calls': [],
    }

    for child in node.get('subNodes') or []:
        kind = node_kind(child)
        try:
            if kind is NodeKind.FUNCTION:
                function = _extract_function(child, name, file_name)
                collected['functions'].append(function)
                collected['external_calls'].extend(
                    find_external_calls(child.get('body'), function.name, name, file_name)
                )
            elif kind is NodeKind.STATE_VARIABLE:
                collected['state_variables'].extend(_extract_state_variables(child, name, file_name))
            elif kind is NodeKind.EVENT:
                collected['events'].append(EventInfo(
                    name=_required_name(child),
                    parameters=_extract_parameters(child.get('parameters')),
                    location=_location(child, file_name, contract_name=name)
                ))
            elif kind is NodeKind.MODIFIER:
                collected['modifiers'].append(ModifierInfo(
                    name=_required_name(child),
                    parameters=_extract_parameters(child.get('parameters')),
                    location=_location(child, file_name, contract_name=name)
                ))
        except (ExtractionError, AttributeError, KeyError, TypeError, ValueError) as e:
            logger.warning(f"Failed to extract {child.get('type') if is_node(child) else child!r} "
                           f"in contract {name}: {str(e)}")

    return ContractMetadata(name=name, inheritance=_extract_inheritance(node), **collected)


def _extract_inheritance(node: Node) -> List[str]:
    bases = []
    for base in node.get('baseContracts') or []:
        base_name = (base or {}).get('baseName') or {}
        if base_name.get('namePath'):
            bases.append(base_name['namePath'])
    return bases


def function_name(node: Node) -> str:
    """
    Display name of a function node, covering special functions.

    The grammar-level parser names a legacy ``function() ...`` fallback after
    its whole source text, so any name that is not an identifier is treated
    as the fallback.
    """
    if node.get('isConstructor'):
        return 'constructor'
    if node.get('isReceive') or node.get('isReceiveEther'):
        return 'receive'
    name = node.get('name')
    if node.get('isFallback') or not name or name == 'fallback' or not name.isidentifier():
        return FALLBACK_FUNCTION_NAME
    return name


def _extract_function(node: Node, contract_name: str, file_name: str) -> FunctionInfo:
    name = function_name(node)

    visibility = node.get('visibility')
    if visibility not in VISIBILITIES:
        # Unspecified visibility defaults to public
        visibility = 'public'

    mutability = node.get('stateMutability') or 'nonpayable'
    if mutability == 'constant':
        mutability = 'view'

    modifiers = [m['name'] for m in node.get('modifiers') or [] if is_node(m) and m.get('name')]

    return FunctionInfo(
        name=name,
        visibility=visibility,
        modifiers=modifiers,
        parameters=_extract_parameters(node.get('parameters')),
        return_types=[p.type for p in _extract_parameters(node.get('returnParameters'))],
        state_mutability=mutability,
        location=_location(node, file_name, function_name=name, contract_name=contract_name)
    )


def _extract_state_variables(node: Node, contract_name: str, file_name: str) -> List[StateVariable]:
    variables = []
    declared_with_value = bool(node.get('initialValue'))

    for variable in node.get('variables') or []:
        if not is_node(variable):
            continue
        visibility = variable.get('visibility')
        if visibility not in VISIBILITIES:
            visibility = 'internal'
        location = _location(variable, file_name, contract_name=contract_name)
        if location.line == 0:
            location = _location(node, file_name, contract_name=contract_name)
        variables.append(StateVariable(
            name=_required_name(variable),
            type=resolve_type_name(variable.get('typeName')),
            visibility=visibility,
            initialized=bool(variable.get('expression')) or declared_with_value,
            location=location
        ))

    return variables


def _extract_parameters(value: Any) -> List[Parameter]:
    return [
        Parameter(name=param.get('name') or '', type=resolve_type_name(param.get('typeName')))
        for param in parameter_nodes(value)
    ]


def _required_name(node: Node) -> str:
    name = node.get('name')
    if not name:
        raise ExtractionError(f"{node.get('type')} without a name")
    return name


def _location(node: Node, file_name: str, function_name: str = None, contract_name: str = None) -> CodeLocation:
    line, column = node_position(node)
    return CodeLocation(
        file=file_name,
        line=line,
        column=column,
        function_name=function_name,
        contract_name=contract_name
    )


def resolve_type_name(type_name: Any) -> str:
    """
    Render a type name node as Solidity source text.

    Args:
        type_name: Type name node, or an already rendered string

    Returns:
        Rendered type, ``unknown`` for shapes that cannot be resolved
    """
    if not type_name:
        return UNKNOWN_TYPE
    if isinstance(type_name, str):
        return type_name

    kind = node_kind(type_name)
    if kind is NodeKind.ELEMENTARY_TYPE:
        return type_name.get('name') or UNKNOWN_TYPE
    elif kind is NodeKind.USER_DEFINED_TYPE:
        return type_name.get('namePath') or UNKNOWN_TYPE
    elif kind is NodeKind.MAPPING:
        key = resolve_type_name(type_name.get('keyType'))
        value = resolve_type_name(type_name.get('valueType'))
        return f"mapping({key} => {value})"
    elif kind is NodeKind.ARRAY_TYPE:
        return f"{resolve_type_name(type_name.get('baseTypeName'))}[]"

    return UNKNOWN_TYPE


def find_external_calls(body: Any, function_name: str, contract_name: str,
                        file_name: str = 'contract.sol') -> List[ExternalCall]:
    """
    Find low-level calls and ether transfers in a function body.

    A call expression counts when its callee is a member access named
    ``call``, ``delegatecall``, ``send`` or ``transfer``.

    Args:
        body: Function body node (may be missing for abstract functions)
        function_name: Enclosing function name
        contract_name: Enclosing contract name
        file_name: File name recorded in every location

    Returns:
        External calls in pre-order
    """
    if not is_node(body):
        return []

    nodes = list(walk(body))
    checked = _checked_nodes(nodes)
    calls = []

    for node in nodes:
        if node_kind(node) is not NodeKind.FUNCTION_CALL:
            continue
        target = callee(node)
        if node_kind(target) is NodeKind.MEMBER_ACCESS and target.get('memberName') in EXTERNAL_CALL_KINDS:
            calls.append(ExternalCall(
                kind=target['memberName'],
                location=_location(node, file_name, function_name=function_name, contract_name=contract_name),
                checked=id(node) in checked
            ))

    return calls


def _checked_nodes(nodes: List[Node]) -> Set[int]:
    """
    Ids of nodes whose value reaches a require/assert/if condition.

    Covers the call sitting inside the condition itself, and the call being
    assigned to a variable that a later condition references.
    """
    position = {id(node): index for index, node in enumerate(nodes)}
    conditions: List[Tuple[int, Any]] = []

    for node in nodes:
        kind = node_kind(node)
        if kind is NodeKind.FUNCTION_CALL and called_name(node) in GUARD_CALLS:
            arguments = node.get('arguments') or []
            if isinstance(arguments, list) and arguments:
                conditions.append((position[id(node)], arguments[0]))
        elif kind is NodeKind.IF_STATEMENT:
            conditions.append((position[id(node)], node.get('condition')))

    checked: Set[int] = set()
    referenced: List[Tuple[int, Set[str]]] = []
    for index, condition in conditions:
        checked.update(id(inner) for inner in walk(condition))
        referenced.append((index, set(identifiers_in(condition))))

    for node in nodes:
        names, value = _assigned_names(node)
        if not names or value is None:
            continue
        index = position[id(node)]
        if any(later > index and names & refs for later, refs in referenced):
            checked.update(id(inner) for inner in walk(value))

    return checked


def _assigned_names(node: Node) -> Tuple[Set[str], Any]:
    kind = node_kind(node)
    if kind is NodeKind.VARIABLE_DECLARATION_STATEMENT:
        names = {v.get('name') for v in node.get('variables') or [] if is_node(v) and v.get('name')}
        return names, node.get('initialValue')
    if kind is NodeKind.BINARY_OPERATION and node.get('operator') == '=':
        return set(identifiers_in(node.get('left'))), node.get('right')
    return set(), None
