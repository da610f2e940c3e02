"""
Unit tests for MultiSend batch composition.
"""

import pytest
from eth_abi import decode
from eth_utils import to_checksum_address

from gelato_automation.core.domain.errors import ValidationError
from gelato_automation.core.domain.models import Operation
from gelato_automation.core.domain.multisend import (
    MultiSendEntry,
    compose_batch,
    compose_entry,
    pack_entries,
    unpack_entries,
)
from gelato_automation.infrastructure.abi_registry import AbiRegistry

TARGET = "0x" + "01" * 20
OTHER_TARGET = "0x" + "05" * 20


class TestComposeEntry:
    """Tests for the packed entry layout."""

    def test_layout(self):
        data = bytes.fromhex("610b5925") + b"\x00" * 32

        packed = compose_entry(Operation.DELEGATECALL, TARGET, 7, data)

        assert len(packed) == 1 + 20 + 32 + 32 + len(data)
        assert packed[0] == 1
        assert packed[1:21] == bytes.fromhex("01" * 20)
        assert int.from_bytes(packed[21:53], "big") == 7
        assert int.from_bytes(packed[53:85], "big") == len(data)
        assert packed[85:] == data

    def test_empty_data(self):
        packed = compose_entry(Operation.CALL, TARGET, 0, b"")

        assert len(packed) == 85
        assert packed[0] == 0

    def test_entry_rejects_unknown_operation(self):
        with pytest.raises(ValidationError, match="Unknown operation"):
            MultiSendEntry(operation=3, to=TARGET, value=0, data=b"")

    def test_entry_rejects_negative_value(self):
        with pytest.raises(ValidationError):
            MultiSendEntry(operation=Operation.CALL, to=TARGET, value=-1, data=b"")


class TestComposeBatch:
    """Tests for batch concatenation and the multiSend call."""

    def _entries(self):
        return [
            MultiSendEntry(Operation.CALL, TARGET, 0, bytes.fromhex("610b5925"), "enableModule"),
            MultiSendEntry(Operation.DELEGATECALL, OTHER_TARGET, 0, b"\xaa" * 40, "placeOrder"),
        ]

    def test_preserves_order(self):
        entries = self._entries()

        packed = pack_entries(entries)

        assert packed == entries[0].pack() + entries[1].pack()
        unpacked = unpack_entries(packed)
        assert [e.to for e in unpacked] == [to_checksum_address(TARGET), to_checksum_address(OTHER_TARGET)]
        assert [e.operation for e in unpacked] == [Operation.CALL, Operation.DELEGATECALL]
        assert unpacked[1].data == b"\xaa" * 40

    def test_multisend_calldata(self):
        entries = self._entries()

        calldata = compose_batch(entries, AbiRegistry().get("MultiSend"))

        assert calldata[:4].hex() == "8d80ff0a"
        (transactions,) = decode(["bytes"], calldata[4:])
        assert transactions == pack_entries(entries)

    def test_unpack_rejects_truncated_header(self):
        packed = pack_entries(self._entries())

        with pytest.raises(ValidationError, match="header"):
            unpack_entries(packed + b"\x00" * 10)

    def test_unpack_rejects_truncated_data(self):
        packed = pack_entries(self._entries())

        with pytest.raises(ValidationError, match="data"):
            unpack_entries(packed[:-1])
