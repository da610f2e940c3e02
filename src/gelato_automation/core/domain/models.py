"""
Core Domain Models

This module defines the value objects submitted to the Gelato execution
network: Providers, Conditions, Actions, Tasks and the TaskSpec shape used
for provider whitelisting. Every model is an immutable dataclass; composing a
new task produces new objects instead of editing existing ones.

Each model exposes ``to_abi()`` returning the nested tuple layout expected by
the GelatoCore contract ABI.
"""

from dataclasses import dataclass, field
from enum import Enum, IntEnum
from typing import Any, Iterable

from eth_abi import encode
from eth_utils import is_address, keccak, to_checksum_address

from gelato_automation.core.domain.errors import ValidationError

# Duration of one BatchExchange batch; repeat intervals must divide by it.
BATCH_INTERVAL_SECONDS = 300

ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"

# Global CPK salt nonce used by the Contract Proxy Kit.
DEFAULT_SALT_NONCE = 0xCFE33A586323E7325BE6AA6ECD8B4600D232A9037E83C8ECE69413B777DABE65


class Operation(IntEnum):
    """How a Safe or MultiSend performs a sub-call."""

    CALL = 0
    DELEGATECALL = 1


class DispatchVariant(str, Enum):
    """Which transaction carries the composed batch."""

    EXECUTE_ONLY = "execute_only"
    DEPLOY_AND_EXECUTE = "deploy_and_execute"


def checksum(address: str, field_name: str = "address") -> str:
    """Return the checksummed form of ``address`` or raise ValidationError."""
    if not isinstance(address, str) or not is_address(address):
        raise ValidationError(f"Invalid {field_name}: {address!r}", field=field_name)
    return to_checksum_address(address)


def require_non_zero(address: str, field_name: str = "address") -> str:
    """Checksum ``address`` and reject the zero address."""
    checked = checksum(address, field_name)
    if checked == ZERO_ADDRESS:
        raise ValidationError(f"{field_name} must not be the zero address", field=field_name)
    return checked


def batch_duration(seconds: int) -> int:
    """
    Convert a repeat interval into a number of BatchExchange batches.

    Raises:
        ValidationError: If ``seconds`` is not a positive multiple of 300
    """
    seconds = int(seconds)
    if seconds <= 0 or seconds % BATCH_INTERVAL_SECONDS != 0:
        raise ValidationError(
            f"Passed seconds must be divisible by {BATCH_INTERVAL_SECONDS} seconds "
            "(duration of one batch)",
            seconds=seconds,
        )
    return seconds // BATCH_INTERVAL_SECONDS


def require_cycles(cycles: int | None) -> int:
    """Cycle submissions need a positive count."""
    if cycles is None or int(cycles) < 1:
        raise ValidationError("Cycle count must be at least 1", cycles=cycles)
    return int(cycles)


@dataclass(frozen=True)
class Provider:
    """
    Entity sponsoring execution cost on Gelato.

    Attributes:
        addr: Provider address paying for execution
        module: Provider module deciding which proxies the provider acts for
    """

    addr: str
    module: str

    def __post_init__(self):
        object.__setattr__(self, "addr", checksum(self.addr, "provider address"))
        object.__setattr__(self, "module", checksum(self.module, "provider module"))

    @classmethod
    def none(cls) -> "Provider":
        """Zero provider for tasks whose provider is passed separately."""
        return cls(addr=ZERO_ADDRESS, module=ZERO_ADDRESS)

    def to_abi(self) -> tuple:
        return (self.addr, self.module)


@dataclass(frozen=True)
class Condition:
    """Read-only predicate checked before a task's actions run."""

    inst: str
    data: bytes = b""

    def __post_init__(self):
        object.__setattr__(self, "inst", require_non_zero(self.inst, "condition address"))
        object.__setattr__(self, "data", bytes(self.data))

    def to_abi(self) -> tuple:
        return (self.inst, self.data)


@dataclass(frozen=True)
class Action:
    """
    One contract invocation performed when a task executes.

    Attributes:
        addr: Target contract (never the zero address)
        data: Selector-prefixed calldata
        operation: Call or Delegatecall
        value: Native currency forwarded with the call
        terms_ok_check: Whether the action's termsOk guard must pass
    """

    addr: str
    data: bytes
    operation: Operation = Operation.CALL
    value: int = 0
    terms_ok_check: bool = False

    def __post_init__(self):
        object.__setattr__(self, "addr", require_non_zero(self.addr, "action address"))
        try:
            operation = Operation(self.operation)
        except ValueError:
            raise ValidationError(
                f"Malformed action: unknown operation {self.operation!r}",
                operation=self.operation,
                action=self.addr,
            ) from None
        object.__setattr__(self, "operation", operation)
        data = bytes(self.data)
        if 0 < len(data) < 4:
            raise ValidationError(
                "Malformed action: calldata shorter than a function selector",
                action=self.addr,
            )
        object.__setattr__(self, "data", data)
        if int(self.value) < 0:
            raise ValidationError("Action value must not be negative", value=self.value)
        object.__setattr__(self, "value", int(self.value))

    def to_abi(self) -> tuple:
        return (self.addr, self.data, int(self.operation), self.value, self.terms_ok_check)

    def to_no_data_abi(self) -> tuple:
        """Shape of the action without its calldata, as keyed by whitelists."""
        return (self.addr, int(self.operation), self.value != 0, self.terms_ok_check)


@dataclass(frozen=True)
class TaskSpec:
    """
    Eligibility shape of a Task.

    Providers whitelist task specs, not concrete tasks: the spec carries the
    condition addresses and the action descriptors but no call arguments.
    """

    conditions: tuple[str, ...] = ()
    actions: tuple[Action, ...] = ()
    auto_submit_next_task: bool = False
    gas_price_ceil: int = 0

    def __post_init__(self):
        object.__setattr__(
            self,
            "conditions",
            tuple(require_non_zero(c, "condition address") for c in self.conditions),
        )
        object.__setattr__(self, "actions", tuple(self.actions))

    def to_abi(self) -> tuple:
        return (
            list(self.conditions),
            [action.to_abi() for action in self.actions],
            self.auto_submit_next_task,
            self.gas_price_ceil,
        )

    def canonical_hash(self) -> bytes:
        """Offline keccak hash of the spec's shape (calldata excluded)."""
        return keccak(
            encode(
                ["address[]", "(address,uint8,bool,bool)[]", "bool", "uint256"],
                [
                    list(self.conditions),
                    [action.to_no_data_abi() for action in self.actions],
                    self.auto_submit_next_task,
                    self.gas_price_ceil,
                ],
            )
        )


@dataclass(frozen=True)
class Task:
    """
    Unit submitted for remote execution.

    Attributes:
        actions: Ordered actions executed when all conditions pass
        conditions: Ordered predicates; empty means actions enforce eligibility
        provider: Sponsoring provider, None when passed with a task cycle
        expiry_date: Unix timestamp after which the task is void (0 = never)
        auto_submit_next_task: Whether completion re-submits the next task
    """

    actions: tuple[Action, ...]
    conditions: tuple[Condition, ...] = ()
    provider: Provider | None = None
    expiry_date: int = 0
    auto_submit_next_task: bool = False

    def __post_init__(self):
        object.__setattr__(self, "actions", tuple(self.actions))
        object.__setattr__(self, "conditions", tuple(self.conditions))
        if not self.actions:
            raise ValidationError("A task needs at least one action")
        if int(self.expiry_date) < 0:
            raise ValidationError("Expiry date must not be negative", expiry_date=self.expiry_date)

    def spec(self, gas_price_ceil: int = 0) -> TaskSpec:
        return TaskSpec(
            conditions=tuple(condition.inst for condition in self.conditions),
            actions=self.actions,
            auto_submit_next_task=self.auto_submit_next_task,
            gas_price_ceil=gas_price_ceil,
        )

    def to_abi(self) -> tuple:
        provider = self.provider or Provider.none()
        return (
            provider.to_abi(),
            [condition.to_abi() for condition in self.conditions],
            [action.to_abi() for action in self.actions],
            int(self.expiry_date),
            self.auto_submit_next_task,
        )


def tasks_to_abi(tasks: Iterable[Task]) -> list[tuple]:
    return [task.to_abi() for task in tasks]


@dataclass(frozen=True)
class TaskReceipt:
    """
    Reference to a dispatched submission.

    The transaction hash identifies the submitted task(s) for later lookups
    such as cancellation or cycle tracking.
    """

    transaction_hash: str
    proxy_address: str
    variant: DispatchVariant
    block_number: int | None = None
    gas_used: int | None = None
    details: dict[str, Any] = field(default_factory=dict, compare=False)
