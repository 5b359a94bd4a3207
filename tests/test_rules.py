"""Tests for the built-in vulnerability rules."""

import pytest

import builders
from builders import (
    call,
    contract,
    declare,
    emit,
    function,
    identifier,
    member,
    param,
    parsed,
    pragma,
    source_unit,
    state_var,
    statement,
    struct,
    user_type,
    variable,
)
from contract_auditor.models.audit_result import Severity
from contract_auditor.rules import build_default_registry
from contract_auditor.rules.critical import DELEGATECALL, REENTRANCY, UNCHECKED_CALL
from contract_auditor.rules.high import (
    ACCESS_CONTROL,
    FRONT_RUNNING,
    INTEGER_OVERFLOW,
    SELFDESTRUCT,
    pragma_version,
)
from contract_auditor.rules.informational import (
    PUBLIC_TO_EXTERNAL,
    STORAGE_PACKING,
    slots_in_order,
    slots_packed,
    storage_size,
)
from contract_auditor.rules.low import EVENT_MISSING, SHORT_ADDRESS, UNUSED_VARIABLE, ZERO_ADDRESS
from contract_auditor.rules.medium import UNINITIALIZED_STORAGE
from contract_auditor.services.rule_engine import RuleEngine


def run(rule, contract_):
    """Evaluate one structural rule against every contract."""
    findings = []
    for metadata in contract_.metadata:
        findings.extend(rule.matcher.predicate(contract_, metadata))
    return findings


def detect(contract_):
    return RuleEngine(build_default_registry(), max_workers=1).detect(contract_)


def test_withdraw_scenario(withdraw_contract):
    """An unguarded withdraw with a low-level call is reentrant and leaves the call unchecked."""
    findings = detect(withdraw_contract)
    by_id = {f.id: f for f in findings}

    assert by_id["RE-01"].severity == Severity.CRITICAL
    assert by_id["RE-01"].location.function_name == "withdraw"
    assert by_id["UR-01"].severity == Severity.CRITICAL
    assert by_id["UR-01"].location.line == 7
    assert by_id["UR-01"].description == "Unchecked call() return value"


def test_reentrancy_guard_suppresses_finding():
    contract_ = parsed(builders.withdraw_tree(modifiers=["nonReentrant"]), builders.WITHDRAW_SOURCE)
    assert run(REENTRANCY, contract_) == []
    # The guard does not make the call checked
    assert len(run(UNCHECKED_CALL, contract_)) == 1


def test_set_owner_scenario(set_owner_contract):
    """setOwner is flagged for the zero-address check and for access control."""
    findings = detect(set_owner_contract)
    ids = [f.id for f in findings]

    assert "ZA-01" in ids
    assert "AC-01" in ids
    access = findings[ids.index("AC-01")]
    assert access.severity == Severity.HIGH
    assert access.description == 'Critical function "setOwner" is public without access control'
    assert findings[ids.index("ZA-01")].severity == Severity.LOW


def test_authorization_modifier_suppresses_access_control():
    contract_ = parsed(builders.set_owner_tree(modifiers=["onlyOwner"]), builders.SET_OWNER_SOURCE)
    assert run(ACCESS_CONTROL, contract_) == []
    assert len(run(ZERO_ADDRESS, contract_)) == 1


@pytest.mark.parametrize("name,visibility,flagged", [
    ("mintTokens", "external", True),
    ("withdrawAll", "public", True),
    ("burn", "internal", False),
    ("deposit", "public", False),
])
def test_access_control_keywords(name, visibility, flagged):
    contract_ = parsed(source_unit(contract("C", function(name, visibility=visibility))))
    assert bool(run(ACCESS_CONTROL, contract_)) is flagged


def test_delegatecall_always_flagged():
    body = statement(call(member(identifier("target"), "delegatecall"), identifier("data"), line=5))
    contract_ = parsed(source_unit(contract("Proxy", function("execute", body, modifiers=["onlyOwner"]))))

    [finding] = run(DELEGATECALL, contract_)
    assert finding.location.line == 5
    assert [f.id for f in run(UNCHECKED_CALL, contract_)] == ["UR-01"]


def test_transfer_is_not_unchecked():
    body = statement(call(member(identifier("to"), "transfer"), identifier("amount")))
    contract_ = parsed(source_unit(contract("C", function("pay", body))))
    assert run(UNCHECKED_CALL, contract_) == []
    assert run(REENTRANCY, contract_) == []


def test_integer_overflow_on_old_pragma():
    contract_ = parsed(source_unit(pragma("^0.7.6", line=2), contract("Old"), contract("Other")))
    findings = run(INTEGER_OVERFLOW, contract_)

    assert [f.location.contract_name for f in findings] == ["Old", "Other"]
    assert findings[0].location.line == 2
    assert findings[0].name == "Potential Integer Overflow/Underflow"


def test_no_integer_overflow_on_checked_arithmetic(withdraw_contract):
    assert run(INTEGER_OVERFLOW, withdraw_contract) == []


def test_pragma_version():
    assert pragma_version("^0.7.6") == (0, 7)
    assert pragma_version(">=0.6.0 <0.9.0") == (0, 6)
    assert pragma_version("0.8.19") == (0, 8)
    assert pragma_version("") is None


def test_selfdestruct():
    contract_ = parsed(source_unit(contract(
        "C",
        function("kill"),
        function("destroy", modifiers=["onlyOwner"]),
        function("selfDestruct", visibility="internal"),
    )))
    assert [f.location.function_name for f in run(SELFDESTRUCT, contract_)] == ["kill", "selfDestruct"]


def test_front_running_on_payable_entry_points():
    contract_ = parsed(source_unit(contract(
        "C",
        function("buy", mutability="payable", visibility="external"),
        function("", mutability="payable", visibility="external"),
        function("_fund", mutability="payable", visibility="internal"),
        function("quote", mutability="view"),
    )))
    assert [f.location.function_name for f in run(FRONT_RUNNING, contract_)] == ["buy"]


def test_uninitialized_struct_pointer():
    contract_ = parsed(source_unit(contract(
        "Registry",
        struct("Entry"),
        function(
            "register",
            declare([variable("entry", user_type("Entry"))], line=6),
            declare([variable("copy", user_type("Entry"), storage_location="memory")], line=7),
            declare([variable("other", user_type("IERC20"))], line=8),
        ),
    )))
    [finding] = run(UNINITIALIZED_STORAGE, contract_)

    assert finding.location.line == 6
    assert finding.location.function_name == "register"


def test_address_parameter_rules_ignore_internal_functions():
    contract_ = parsed(source_unit(contract(
        "C",
        function("_set", params=[param("address", "who")], visibility="internal"),
        function("pay", params=[param("address payable", "to")], visibility="external"),
    )))
    assert [f.location.function_name for f in run(ZERO_ADDRESS, contract_)] == ["pay"]
    assert [f.location.function_name for f in run(SHORT_ADDRESS, contract_)] == ["pay"]


def test_missing_event_emission():
    contract_ = parsed(source_unit(contract(
        "C",
        function("store", statement(identifier("x"), line=3), line=2),
        function("announce", emit("Stored", identifier("x")), line=5),
        function("read", statement(identifier("x")), mutability="view", line=8),
        function("empty", line=10),
        function("_helper", statement(identifier("x")), line=12),
    )))
    assert [f.location.function_name for f in run(EVENT_MISSING, contract_)] == ["store"]


def test_unused_state_variable():
    source = "contract C {\n    uint256 private unused;\n    uint256 used;\n    uint256 public shown;\n" \
             "    function f() public { used = 1; }\n}\n"
    contract_ = parsed(source_unit(contract(
        "C",
        state_var("unused", visibility="private", line=2),
        state_var("used", line=3),
        state_var("shown", visibility="public", line=4),
    )), source)

    [finding] = run(UNUSED_VARIABLE, contract_)
    assert finding.location.line == 2
    assert "unused" in finding.description


def test_storage_sizes():
    assert storage_size("bool") == 1
    assert storage_size("address") == 20
    assert storage_size("uint128") == 16
    assert storage_size("uint") == 32
    assert storage_size("bytes4") == 4
    assert storage_size("mapping(address => uint256)") == 32


def test_slot_counting():
    # uint128, uint256, uint128
    assert slots_in_order([16, 32, 16]) == 3
    assert slots_packed([16, 32, 16]) == 2
    assert slots_in_order([16, 16, 32]) == 2


def test_storage_packing():
    wasteful = parsed(source_unit(contract(
        "C",
        state_var("a", "uint128", line=2),
        state_var("b", "uint256", line=3),
        state_var("c", "uint128", line=4),
    )))
    packed = parsed(source_unit(contract(
        "C",
        state_var("a", "uint128", line=2),
        state_var("c", "uint128", line=3),
        state_var("b", "uint256", line=4),
    )))

    [finding] = run(STORAGE_PACKING, wasteful)
    assert finding.location.line == 2
    assert finding.severity == Severity.INFO
    assert run(STORAGE_PACKING, packed) == []


def test_public_function_called_internally_is_not_flagged():
    source = ("contract C {\n"
              "    function total() public view returns (uint256) { return 1; }\n"
              "    function unused() public {}\n"
              "    function twice() public view returns (uint256) { return total() * 2; }\n"
              "}\n")
    contract_ = parsed(source_unit(contract(
        "C",
        function("total", mutability="view", line=2),
        function("unused", line=3),
        function("twice", mutability="view", line=4),
    )), source)

    assert [f.location.function_name for f in run(PUBLIC_TO_EXTERNAL, contract_)] == ["unused", "twice"]
