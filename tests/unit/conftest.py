"""
Shared fixtures for unit tests.

The binder mock routes ``read`` calls by (contract, function) to canned
values so application code runs end-to-end without an RPC endpoint.
"""

from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest
from eth_utils import to_checksum_address

from gelato_automation.core.domain.network import AddressBook, NetworkContext

USER = to_checksum_address("0x" + "a1" * 20)
SELL_TOKEN = to_checksum_address("0x" + "d0" * 20)
BUY_TOKEN = to_checksum_address("0x" + "e0" * 20)

ADDRESS_BOOK_SECTIONS = {
    "gelato": {
        "gelato_core": "0x" + "01" * 20,
        "provider_module_gnosis_safe_proxy": "0x" + "02" * 20,
        "fee_extractor": "0x" + "03" * 20,
        "default_provider": "0x" + "04" * 20,
    },
    "gelato_actions": {
        "action_place_order_batch_exchange": "0x" + "05" * 20,
        "action_place_order_batch_exchange_pay_fee": "0x" + "06" * 20,
        "action_withdraw_batch_exchange": "0x" + "07" * 20,
    },
    "gelato_conditions": {
        "condition_batch_exchange_funds_withdrawable": "0x" + "08" * 20,
        "condition_balance_stateful": "0x" + "09" * 20,
        "condition_kyber_rate": "0x" + "0a" * 20,
    },
    "gnosis_safe": {
        "mastercopy": "0x" + "0b" * 20,
        "cpk_factory": "0x" + "0c" * 20,
        "multi_send": "0x" + "0d" * 20,
    },
    "gnosis_protocol": {"batch_exchange": "0x" + "0e" * 20},
    "kyber": {"proxy": "0x" + "0f" * 20},
}

# Arbitrary non-empty proxy creation bytecode
CREATION_CODE = bytes.fromhex("608060405234801561001057600080fd5b50")


class ChainState:
    """Canned remote state answered by the binder mock."""

    def __init__(self, **reads: Any):
        self.reads = {
            ("CPKFactory", "proxyCreationCode"): CREATION_CODE,
            ("ERC20", "balanceOf"): 10 * 10**18,
            ("ERC20", "allowance"): 0,
            ("FeeExtractor", "getFeeAmount"): 10**16,
            ("BatchExchange", "getCurrentBatchId"): 5_000_000,
            ("GelatoCore", "hashTaskSpec"): b"\x11" * 32,
            ("GelatoCore", "taskSpecGasPriceCeil"): 100 * 10**9,
            ("GelatoCore", "canSubmitTask"): "OK",
            ("GnosisSafe", "getOwners"): [USER],
            ("GnosisSafe", "getModules"): [],
            ("IKyber", "getExpectedRate"): (200 * 10**18, 190 * 10**18),
        }
        for key, value in reads.items():
            contract, function = key.split("__")
            self.reads[(contract, function)] = value
        self.code = b""

    async def read(self, contract, address, function, args=()):
        value = self.reads[(contract, function)]
        if isinstance(value, Exception):
            raise value
        if callable(value):
            return value(address, args)
        return value

    async def get_code(self, address):
        return self.code


@pytest.fixture
def address_book():
    """AddressBook with distinct placeholder addresses."""
    return AddressBook.from_dict(ADDRESS_BOOK_SECTIONS)


@pytest.fixture
def signer():
    """Mock eth_account LocalAccount."""
    mock = MagicMock()
    mock.address = USER
    return mock


@pytest.fixture
def network_context(address_book, signer):
    return NetworkContext(
        name="testnet",
        chain_id=4,
        rpc_url="http://localhost:8545",
        signer=signer,
        address_book=address_book,
    )


@pytest.fixture
def chain_state():
    return ChainState()


@pytest.fixture
def mock_binder(chain_state):
    """Mock ContractBinderProtocol backed by ``chain_state``."""
    binder = MagicMock()
    binder.read = AsyncMock(side_effect=chain_state.read)
    binder.get_code = AsyncMock(side_effect=chain_state.get_code)
    binder.write = AsyncMock(side_effect=lambda contract, *args, **kwargs: f"0x{contract.lower()}tx")
    binder.wait_for_receipt = AsyncMock(
        return_value={"status": 1, "blockNumber": 7_000_000, "gasUsed": 850_000}
    )
    return binder


def written_functions(binder) -> list[tuple[str, str]]:
    """(contract, function) pairs of all writes, in call order."""
    return [(c.args[0], c.args[2]) for c in binder.write.call_args_list]
