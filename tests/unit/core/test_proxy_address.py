"""
Unit tests for counterfactual proxy address derivation.
"""

from unittest.mock import AsyncMock

import pytest
from eth_utils import keccak

from gelato_automation.core.domain.errors import ContractReadError, InvalidInputError
from gelato_automation.core.domain.models import DEFAULT_SALT_NONCE, ZERO_ADDRESS
from gelato_automation.core.domain.proxy_address import (
    create2_address,
    derive_proxy_address,
    determine_proxy_address,
)

USER = "0x" + "a1" * 20
OTHER_USER = "0x" + "a2" * 20
FACTORY = "0x" + "0c" * 20
MASTERCOPY = "0x" + "0b" * 20
CREATION_CODE = bytes.fromhex("608060405234801561001057600080fd5b50")


class TestCreate2:
    """EIP-1014 reference vectors."""

    def test_zero_deployer(self):
        address = create2_address(ZERO_ADDRESS, b"\x00" * 32, keccak(b"\x00"))

        assert address == "0x4D1A2e2bB4F88F0250f26Ffff098B0b30B26BF38"

    def test_deadbeef_deployer(self):
        address = create2_address(
            "0xdeadbeef00000000000000000000000000000000", b"\x00" * 32, keccak(b"\x00")
        )

        assert address == "0xB928f69Bb1D91Cd65274e3c79d8986362984fDA3"


class TestDeriveProxyAddress:
    """Tests for derive_proxy_address."""

    def test_known_address_for_default_salt_nonce(self):
        address = derive_proxy_address(USER, DEFAULT_SALT_NONCE, FACTORY, MASTERCOPY, CREATION_CODE)

        assert address == "0x598FA69a51623554AfF84d17215339c4C9B84D01"

    def test_known_address_for_salt_nonce_one(self):
        address = derive_proxy_address(USER, 1, FACTORY, MASTERCOPY, CREATION_CODE)

        assert address == "0x3a63271A7526BD278aE477ECE7838AF439C6aD9b"

    def test_deterministic(self):
        first = derive_proxy_address(USER, 1, FACTORY, MASTERCOPY, CREATION_CODE)
        second = derive_proxy_address(USER, 1, FACTORY, MASTERCOPY, CREATION_CODE)

        assert first == second

    def test_depends_on_salt_nonce(self):
        first = derive_proxy_address(USER, 1, FACTORY, MASTERCOPY, CREATION_CODE)
        second = derive_proxy_address(USER, 2, FACTORY, MASTERCOPY, CREATION_CODE)

        assert first != second

    def test_depends_on_user(self):
        first = derive_proxy_address(USER, 1, FACTORY, MASTERCOPY, CREATION_CODE)
        second = derive_proxy_address(OTHER_USER, 1, FACTORY, MASTERCOPY, CREATION_CODE)

        assert first != second

    def test_hex_salt_nonce_equals_int(self):
        as_int = derive_proxy_address(USER, DEFAULT_SALT_NONCE, FACTORY, MASTERCOPY, CREATION_CODE)
        as_hex = derive_proxy_address(
            USER, hex(DEFAULT_SALT_NONCE), FACTORY, MASTERCOPY, CREATION_CODE
        )

        assert as_int == as_hex

    def test_rejects_zero_user(self):
        with pytest.raises(InvalidInputError, match="zero address"):
            derive_proxy_address(ZERO_ADDRESS, 1, FACTORY, MASTERCOPY, CREATION_CODE)

    def test_rejects_malformed_address(self):
        with pytest.raises(InvalidInputError, match="factory address"):
            derive_proxy_address(USER, 1, "0x1234", MASTERCOPY, CREATION_CODE)

    def test_rejects_empty_creation_code(self):
        with pytest.raises(InvalidInputError, match="creation code is empty"):
            derive_proxy_address(USER, 1, FACTORY, MASTERCOPY, b"")

    def test_rejects_invalid_salt_nonce(self):
        with pytest.raises(InvalidInputError):
            derive_proxy_address(USER, "0xnothex", FACTORY, MASTERCOPY, CREATION_CODE)
        with pytest.raises(InvalidInputError):
            derive_proxy_address(USER, 2**256, FACTORY, MASTERCOPY, CREATION_CODE)


class TestDetermineProxyAddress:
    """Tests for the async variant fetching the creation code."""

    @pytest.mark.asyncio
    async def test_fetches_creation_code_once(self):
        provider = AsyncMock(return_value=CREATION_CODE)

        address = await determine_proxy_address(USER, 1, FACTORY, MASTERCOPY, provider)

        provider.assert_awaited_once()
        assert address == derive_proxy_address(USER, 1, FACTORY, MASTERCOPY, CREATION_CODE)

    @pytest.mark.asyncio
    async def test_read_failure_is_invalid_input(self):
        provider = AsyncMock(side_effect=ContractReadError("connection refused"))

        with pytest.raises(InvalidInputError, match="creation code"):
            await determine_proxy_address(USER, 1, FACTORY, MASTERCOPY, provider)
