"""
Helpers for walking the syntax tree produced by the Solidity parser.

The parser hands back nested dictionaries tagged with a ``type`` key. Every
tag the auditor cares about is listed in ``NodeKind``; anything else maps to
``NodeKind.UNKNOWN`` and is skipped by the extractor on purpose.
"""
from enum import Enum
from typing import Any, Dict, Iterator, List, Optional, Tuple

Node = Dict[str, Any]


class NodeKind(str, Enum):
    """Node tags the auditor dispatches on."""
    SOURCE_UNIT = 'SourceUnit'
    PRAGMA = 'PragmaDirective'
    CONTRACT = 'ContractDefinition'
    FUNCTION = 'FunctionDefinition'
    STATE_VARIABLE = 'StateVariableDeclaration'
    EVENT = 'EventDefinition'
    MODIFIER = 'ModifierDefinition'
    STRUCT = 'StructDefinition'
    PARAMETER_LIST = 'ParameterList'
    BLOCK = 'Block'
    FUNCTION_CALL = 'FunctionCall'
    MEMBER_ACCESS = 'MemberAccess'
    NAME_VALUE_EXPRESSION = 'NameValueExpression'
    CALL_OPTIONS = 'FunctionCallOptions'
    IDENTIFIER = 'Identifier'
    BINARY_OPERATION = 'BinaryOperation'
    TUPLE_EXPRESSION = 'TupleExpression'
    IF_STATEMENT = 'IfStatement'
    EMIT_STATEMENT = 'EmitStatement'
    VARIABLE_DECLARATION = 'VariableDeclaration'
    VARIABLE_DECLARATION_STATEMENT = 'VariableDeclarationStatement'
    ELEMENTARY_TYPE = 'ElementaryTypeName'
    USER_DEFINED_TYPE = 'UserDefinedTypeName'
    MAPPING = 'Mapping'
    ARRAY_TYPE = 'ArrayTypeName'
    UNKNOWN = 'Unknown'


_KINDS_BY_TAG = {kind.value: kind for kind in NodeKind}

# Child fields to follow for kinds whose shape is known; other kinds fall back
# to visiting every nested node.
CHILD_FIELDS: Dict[NodeKind, Tuple[str, ...]] = {
    NodeKind.SOURCE_UNIT: ('children',),
    NodeKind.CONTRACT: ('subNodes',),
    NodeKind.FUNCTION: ('body',),
    NodeKind.BLOCK: ('statements',),
    NodeKind.FUNCTION_CALL: ('expression', 'arguments'),
    NodeKind.MEMBER_ACCESS: ('expression',),
    NodeKind.NAME_VALUE_EXPRESSION: ('expression', 'arguments'),
    NodeKind.CALL_OPTIONS: ('expression', 'options'),
    NodeKind.IF_STATEMENT: ('condition', 'TrueBody', 'FalseBody', 'trueBody', 'falseBody'),
    NodeKind.EMIT_STATEMENT: ('eventCall',),
    NodeKind.VARIABLE_DECLARATION_STATEMENT: ('variables', 'initialValue'),
    NodeKind.IDENTIFIER: (),
    NodeKind.ELEMENTARY_TYPE: (),
}


def is_node(value: Any) -> bool:
    return isinstance(value, dict) and 'type' in value


def node_kind(node: Any) -> NodeKind:
    """Classify a tree node; non-nodes and unlisted tags are UNKNOWN."""
    if not is_node(node):
        return NodeKind.UNKNOWN
    return _KINDS_BY_TAG.get(node['type'], NodeKind.UNKNOWN)


def _nodes_in(value: Any) -> Iterator[Node]:
    if is_node(value):
        yield value
    elif isinstance(value, dict):
        # Untagged containers (e.g. NameValueList) still hold nodes
        for item in value.values():
            yield from _nodes_in(item)
    elif isinstance(value, (list, tuple)):
        for item in value:
            yield from _nodes_in(item)


def iter_children(node: Node) -> Iterator[Node]:
    """Yield the direct child nodes of ``node`` in field order."""
    fields = CHILD_FIELDS.get(node_kind(node))
    if fields is None:
        fields = tuple(key for key in node if key not in ('type', 'loc', 'range'))
    for key in fields:
        yield from _nodes_in(node.get(key))


def walk(node: Any) -> Iterator[Node]:
    """Pre-order depth-first traversal starting at ``node``."""
    if not is_node(node):
        for child in _nodes_in(node):
            yield from walk(child)
        return
    stack = [node]
    while stack:
        current = stack.pop()
        yield current
        stack.extend(reversed(list(iter_children(current))))


def node_position(node: Node) -> Tuple[int, int]:
    """Return (line, column) of a node, (0, 0) when the parser gave none."""
    loc = node.get('loc') or {}
    start = loc.get('start') or {}
    return int(start.get('line') or 0), int(start.get('column') or 0)


def parameter_nodes(value: Any) -> List[Node]:
    """Accept both bare parameter arrays and ``ParameterList`` nodes."""
    if isinstance(value, dict):
        value = value.get('parameters')
    if not isinstance(value, (list, tuple)):
        return []
    return [item for item in value if isinstance(item, dict)]


def callee(call: Node) -> Optional[Node]:
    """Return the called expression, unwrapping ``{value: ...}`` call options."""
    expression = call.get('expression')
    while node_kind(expression) in (NodeKind.NAME_VALUE_EXPRESSION, NodeKind.CALL_OPTIONS):
        expression = expression.get('expression')
    return expression if is_node(expression) else None


def called_name(call: Node) -> Optional[str]:
    """Name of a plain ``name(...)`` call, e.g. ``require``."""
    target = callee(call)
    if node_kind(target) is NodeKind.IDENTIFIER:
        return target.get('name')
    return None


def identifiers_in(node: Any) -> List[str]:
    """All identifier names referenced below ``node``."""
    return [n.get('name') for n in walk(node) if node_kind(n) is NodeKind.IDENTIFIER]


def find_contract(tree: Node, name: str) -> Optional[Node]:
    for child in _nodes_in(tree.get('children')):
        if node_kind(child) is NodeKind.CONTRACT and child.get('name') == name:
            return child
    return None


def contract_members(contract: Node, kind: NodeKind) -> List[Node]:
    return [child for child in _nodes_in(contract.get('subNodes')) if node_kind(child) is kind]
