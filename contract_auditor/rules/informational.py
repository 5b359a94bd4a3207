"""
Informational and gas optimization rules.
"""
import re
from typing import List

from contract_auditor.models.audit_result import Severity, Vulnerability
from contract_auditor.models.contract import ContractMetadata, ParsedContract
from contract_auditor.rules.base import structural
from contract_auditor.rules.high import SPECIAL_FUNCTIONS

SLOT_SIZE = 32

_INTEGER = re.compile(r'u?int(\d*)')
_FIXED_BYTES = re.compile(r'bytes(\d+)')


def storage_size(type_name: str) -> int:
    """Bytes a value of ``type_name`` takes in storage; full slot when unknown."""
    if type_name == 'bool':
        return 1
    if type_name in ('address', 'address payable'):
        return 20
    match = _INTEGER.fullmatch(type_name)
    if match:
        return int(match.group(1) or 256) // 8
    match = _FIXED_BYTES.fullmatch(type_name)
    if match:
        return int(match.group(1))
    return SLOT_SIZE


def slots_in_order(sizes: List[int]) -> int:
    """Slots used when values are laid out in the given order."""
    slots, free = 0, 0
    for size in sizes:
        if size > free:
            slots += 1
            free = SLOT_SIZE
        free -= size
    return slots


def slots_packed(sizes: List[int]) -> int:
    """Slots used by a first-fit-decreasing arrangement."""
    bins: List[int] = []
    for size in sorted(sizes, reverse=True):
        for index, free in enumerate(bins):
            if size <= free:
                bins[index] -= size
                break
        else:
            bins.append(SLOT_SIZE - size)
    return len(bins)


def _storage_packing(parsed: ParsedContract, metadata: ContractMetadata) -> List[Vulnerability]:
    variables = metadata.state_variables
    if len(variables) < 2:
        return []

    sizes = [storage_size(variable.type) for variable in variables]
    declared, packed = slots_in_order(sizes), slots_packed(sizes)
    if packed >= declared:
        return []

    return [STORAGE_PACKING.finding(
        variables[0].location,
        description=(f'State variables of "{metadata.name}" use {declared} storage slots; '
                     f'reordering them would use {packed}'),
        code_snippet=(
            "// Before (3 slots):\n"
            "uint128 a;\nuint256 b;\nuint128 c;\n\n"
            "// After (2 slots):\n"
            "uint128 a;\nuint128 c;\nuint256 b;"
        )
    )]


STORAGE_PACKING = structural(
    id='SP-01',
    name='Inefficient Storage Packing',
    severity=Severity.INFO,
    description='Storage variables could be better packed to save gas',
    predicate=_storage_packing,
    recommendation='Reorder state variables to optimize storage slots',
    references=('Gas Optimization',),
    explanation=('Consecutive state variables smaller than 32 bytes share a storage slot. Interleaving them with '
                 'full-slot types wastes slots and the gas paid to read and write them.'),
    exploit_scenario='Not a security issue, but wastes gas unnecessarily.',
    confidence=0.80
)


def _is_called(name: str, source: str) -> bool:
    for match in re.finditer(rf'\b{re.escape(name)}\s*\(', source):
        if not source[:match.start()].rstrip().endswith('function'):
            return True
    return False


def _public_to_external(parsed: ParsedContract, metadata: ContractMetadata) -> List[Vulnerability]:
    findings = []

    for func in metadata.functions:
        if func.visibility != 'public' or func.name.startswith('_') or func.name in SPECIAL_FUNCTIONS:
            continue
        if _is_called(func.name, parsed.source_code):
            continue
        findings.append(PUBLIC_TO_EXTERNAL.finding(
            func.location,
            name='Public Function Could Be External',
            description=f'Function "{func.name}" is public but could be external',
            code_snippet=(f"// Before:\nfunction {func.name}() public {{ }}\n\n"
                          f"// After:\nfunction {func.name}() external {{ }}")
        ))

    return findings


PUBLIC_TO_EXTERNAL = structural(
    id='PE-01',
    name='Public Functions Could Be External',
    severity=Severity.INFO,
    description='Public functions not called internally should be external for gas savings',
    predicate=_public_to_external,
    recommendation='Change visibility from public to external if the function is not called internally.',
    references=('Gas Optimization',),
    explanation='Functions that are not called internally can be marked as external instead of public, saving gas.',
    exploit_scenario='Not a security issue, but wastes gas unnecessarily.',
    confidence=0.50
)

INFORMATIONAL_RULES = (STORAGE_PACKING, PUBLIC_TO_EXTERNAL)
