"""
Counterfactual Proxy Address Derivation

Computes the address the CPK factory will deploy a user's Gnosis Safe proxy
to, before it is deployed. The factory uses CREATE2 with

    salt      = keccak(abi.encode(address user, uint256 saltNonce))
    init code = proxyCreationCode ++ abi.encode(address mastercopy)

so the address depends only on the user, the salt nonce, the factory, the
mastercopy and the proxy creation bytecode.
"""

from typing import Awaitable, Callable

import structlog
from eth_abi import encode
from eth_utils import is_address, keccak, to_bytes, to_checksum_address

from gelato_automation.core.domain.errors import GelatoAutomationError, InvalidInputError
from gelato_automation.core.domain.models import ZERO_ADDRESS

logger = structlog.get_logger()

CreationCodeProvider = Callable[[], Awaitable[bytes]]


def _address(value: str, field_name: str) -> str:
    if not isinstance(value, str) or not is_address(value):
        raise InvalidInputError(f"Invalid {field_name}: {value!r}", field=field_name)
    return to_checksum_address(value)


def _salt_nonce(value: int | str) -> int:
    if isinstance(value, str):
        try:
            value = int(value, 16) if value.lower().startswith("0x") else int(value)
        except ValueError:
            raise InvalidInputError(f"Invalid salt nonce: {value!r}", salt_nonce=value) from None
    if value < 0 or value >= 2**256:
        raise InvalidInputError("Salt nonce must fit into uint256", salt_nonce=value)
    return value


def create2_address(deployer: str, salt: bytes, init_code_hash: bytes) -> str:
    """EIP-1014 address: low 160 bits of keccak(0xff ++ deployer ++ salt ++ hash)."""
    digest = keccak(b"\xff" + to_bytes(hexstr=deployer) + salt + init_code_hash)
    return to_checksum_address(digest[-20:])


def create2_salt(user_address: str, salt_nonce: int) -> bytes:
    return keccak(encode(["address", "uint256"], [user_address, salt_nonce]))


def derive_proxy_address(
    user_address: str,
    salt_nonce: int | str,
    factory_address: str,
    mastercopy_address: str,
    creation_code: bytes,
) -> str:
    """
    Derive the checksummed proxy address offline.

    Raises:
        InvalidInputError: If the user is the zero address, an address is
            malformed, or the creation code is empty
    """
    user = _address(user_address, "user address")
    if user == ZERO_ADDRESS:
        raise InvalidInputError("User address must not be the zero address")
    factory = _address(factory_address, "factory address")
    mastercopy = _address(mastercopy_address, "mastercopy address")
    nonce = _salt_nonce(salt_nonce)
    if not creation_code:
        raise InvalidInputError("Proxy creation code is empty", factory=factory)

    init_code_hash = keccak(bytes(creation_code) + encode(["address"], [mastercopy]))
    return create2_address(factory, create2_salt(user, nonce), init_code_hash)


async def determine_proxy_address(
    user_address: str,
    salt_nonce: int | str,
    factory_address: str,
    mastercopy_address: str,
    creation_code_provider: CreationCodeProvider,
) -> str:
    """
    Fetch the factory's proxy creation code and derive the proxy address.

    Raises:
        InvalidInputError: If inputs are invalid or the creation code cannot
            be retrieved
    """
    try:
        creation_code = await creation_code_provider()
    except GelatoAutomationError as e:
        raise InvalidInputError(
            f"Could not retrieve proxy creation code: {e.message}",
            factory=factory_address,
        ) from e

    proxy_address = derive_proxy_address(
        user_address, salt_nonce, factory_address, mastercopy_address, creation_code
    )
    logger.debug("proxy_address.derived", user=user_address, proxy=proxy_address)
    return proxy_address
