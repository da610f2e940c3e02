"""
MultiSend Batch Composition

Packs an ordered list of sub-calls into the payload understood by the Gnosis
MultiSend contract. Each entry is laid out without padding as

    uint8 operation | address to | uint256 value | uint256 dataLength | bytes data

and entries are concatenated in caller order. The concatenation is then
passed as the single argument of ``multiSend(bytes)``.

Ordering is the caller's responsibility: e.g. ``enableModule`` must precede
any call that relies on the module being enabled.
"""

from dataclasses import dataclass
from typing import Any, Iterable, Sequence

from eth_abi.packed import encode_packed
from eth_utils import to_checksum_address

from gelato_automation.core.domain.calldata import encode_function_call
from gelato_automation.core.domain.errors import ValidationError
from gelato_automation.core.domain.models import Operation, checksum

_HEADER_LENGTH = 1 + 20 + 32 + 32


@dataclass(frozen=True)
class MultiSendEntry:
    """One sub-call of a MultiSend batch; ``label`` is informational only."""

    operation: Operation
    to: str
    value: int
    data: bytes
    label: str = ""

    def __post_init__(self):
        try:
            object.__setattr__(self, "operation", Operation(self.operation))
        except ValueError:
            raise ValidationError(
                f"Unknown operation {self.operation!r}", operation=self.operation
            ) from None
        object.__setattr__(self, "to", checksum(self.to, "batch target"))
        object.__setattr__(self, "data", bytes(self.data))
        if int(self.value) < 0:
            raise ValidationError("Batch entry value must not be negative", value=self.value)

    def pack(self) -> bytes:
        return compose_entry(self.operation, self.to, self.value, self.data)


def compose_entry(operation: Operation | int, to: str, value: int, data: bytes) -> bytes:
    """Pack a single sub-call into its fixed MultiSend layout."""
    data = bytes(data)
    return encode_packed(
        ["uint8", "address", "uint256", "uint256", "bytes"],
        [int(Operation(operation)), to, int(value), len(data), data],
    )


def pack_entries(entries: Iterable[MultiSendEntry]) -> bytes:
    return b"".join(entry.pack() for entry in entries)


def compose_batch(entries: Iterable[MultiSendEntry], multisend_abi: Sequence[dict[str, Any]]) -> bytes:
    """Encode ``multiSend(packedEntries)`` calldata for the given entries."""
    return encode_function_call(multisend_abi, "multiSend", [pack_entries(entries)])


def unpack_entries(payload: bytes) -> list[MultiSendEntry]:
    """
    Split a packed MultiSend payload back into its entries.

    Raises:
        ValidationError: If the payload is truncated
    """
    payload = bytes(payload)
    entries = []
    offset = 0
    while offset < len(payload):
        if len(payload) - offset < _HEADER_LENGTH:
            raise ValidationError("Truncated MultiSend entry header", offset=offset)
        operation = payload[offset]
        to = to_checksum_address(payload[offset + 1 : offset + 21])
        value = int.from_bytes(payload[offset + 21 : offset + 53], "big")
        length = int.from_bytes(payload[offset + 53 : offset + 85], "big")
        start = offset + _HEADER_LENGTH
        if start + length > len(payload):
            raise ValidationError("Truncated MultiSend entry data", offset=offset)
        entries.append(
            MultiSendEntry(operation=operation, to=to, value=value, data=payload[start : start + length])
        )
        offset = start + length
    return entries
