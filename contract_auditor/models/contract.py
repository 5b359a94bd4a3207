"""
Models for contract structure extracted from a parsed source unit.
"""
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, ConfigDict, Field

FALLBACK_FUNCTION_NAME = '<fallback>'
UNKNOWN_TYPE = 'unknown'
EXTERNAL_CALL_KINDS = ('call', 'delegatecall', 'send', 'transfer')


class CodeLocation(BaseModel):
    """Position of a construct in the audited source."""
    model_config = ConfigDict(frozen=True)

    file: str
    line: int = Field(0, ge=0)  # 0 means unknown position
    column: int = Field(0, ge=0)
    function_name: Optional[str] = None
    contract_name: Optional[str] = None


class Parameter(BaseModel):
    """Model for a function, event or modifier parameter."""
    model_config = ConfigDict(frozen=True)

    name: str
    type: str


class FunctionInfo(BaseModel):
    """Model for a function declared in a contract."""
    model_config = ConfigDict(frozen=True)

    name: str
    visibility: str  # public, external, internal, private
    modifiers: List[str] = []
    parameters: List[Parameter] = []
    return_types: List[str] = []
    state_mutability: str = 'nonpayable'  # pure, view, payable, nonpayable
    location: CodeLocation


class StateVariable(BaseModel):
    """Model for a contract state variable."""
    model_config = ConfigDict(frozen=True)

    name: str
    type: str
    visibility: str = 'internal'
    initialized: bool = False
    location: CodeLocation


class EventInfo(BaseModel):
    """Model for an event declaration."""
    model_config = ConfigDict(frozen=True)

    name: str
    parameters: List[Parameter] = []
    location: CodeLocation


class ModifierInfo(BaseModel):
    """Model for a modifier declaration."""
    model_config = ConfigDict(frozen=True)

    name: str
    parameters: List[Parameter] = []
    location: CodeLocation


class ExternalCall(BaseModel):
    """Model for a low-level call or ether transfer found in a function body."""
    model_config = ConfigDict(frozen=True)

    kind: str  # call, delegatecall, send, transfer
    location: CodeLocation
    checked: bool = False


class ContractMetadata(BaseModel):
    """Normalized metadata for one contract declaration."""
    model_config = ConfigDict(frozen=True)

    name: str
    inheritance: List[str] = []
    functions: List[FunctionInfo] = []
    state_variables: List[StateVariable] = []
    events: List[EventInfo] = []
    modifiers: List[ModifierInfo] = []
    external_calls: List[ExternalCall] = []

    def calls_in(self, function_name: str) -> List[ExternalCall]:
        """Return the external calls made inside the named function."""
        return [call for call in self.external_calls if call.location.function_name == function_name]


class ParsedContract(BaseModel):
    """A parsed source unit together with its extracted metadata."""
    model_config = ConfigDict(frozen=True)

    ast: Dict[str, Any]
    source_code: str
    file_name: str = 'contract.sol'
    pragmas: List[str] = []
    metadata: List[ContractMetadata] = []

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary, leaving out the raw tree."""
        return self.model_dump(exclude={'ast'})
