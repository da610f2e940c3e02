"""
web3.py Contract Binder

ContractBinderProtocol implementation on top of ``web3.AsyncWeb3``. Contracts
are bound per call from the ABI registry; transactions are built by web3,
signed locally by the signer and broadcast as raw transactions.

Every web3 failure is converted into the toolkit's error taxonomy here, so
application code never sees RPC-library exceptions.
"""

from typing import Any, Sequence

import structlog
from eth_utils import to_checksum_address
from web3 import AsyncWeb3
from web3.exceptions import TimeExhausted, Web3Exception

from gelato_automation.core.domain.errors import ContractReadError, DispatchError
from gelato_automation.core.interfaces.contracts import SignerProtocol
from gelato_automation.infrastructure.abi_registry import AbiRegistry

logger = structlog.get_logger()

# Raised by transports/providers beneath web3 (aiohttp, sockets, JSON decoding)
_RPC_ERRORS = (Web3Exception, ConnectionError, TimeoutError, OSError, ValueError)


class Web3ContractBinder:
    """
    Bind ABIs to addresses and perform reads and signed writes.

    Example:
        >>> w3 = AsyncWeb3(AsyncWeb3.AsyncHTTPProvider(rpc_url))
        >>> binder = Web3ContractBinder(w3, chain_id=4)
        >>> owners = await binder.read("GnosisSafe", safe, "getOwners")
    """

    def __init__(
        self,
        web3: AsyncWeb3,
        chain_id: int,
        abi_registry: AbiRegistry | None = None,
        receipt_timeout: float = 180.0,
    ):
        self.web3 = web3
        self.chain_id = chain_id
        self.abi_registry = abi_registry or AbiRegistry()
        self.receipt_timeout = receipt_timeout
        self.logger = logger.bind(component="web3_binder")

    @classmethod
    def from_rpc_url(cls, rpc_url: str, chain_id: int, **kwargs: Any) -> "Web3ContractBinder":
        return cls(AsyncWeb3(AsyncWeb3.AsyncHTTPProvider(rpc_url)), chain_id, **kwargs)

    def _function(self, contract: str, address: str, function: str, args: Sequence[Any]):
        instance = self.web3.eth.contract(
            address=to_checksum_address(address), abi=self.abi_registry.get(contract)
        )
        return getattr(instance.functions, function)(*args)

    async def read(
        self, contract: str, address: str, function: str, args: Sequence[Any] = ()
    ) -> Any:
        try:
            result = await self._function(contract, address, function, args).call()
        except _RPC_ERRORS as e:
            self.logger.debug(
                "contract.read.failed",
                contract=contract,
                address=address,
                function=function,
                error=str(e),
                error_type=type(e).__name__,
            )
            raise ContractReadError(
                f"{contract}.{function} call failed: {e}",
                contract=contract,
                address=address,
                function=function,
            ) from e
        return result

    async def get_code(self, address: str) -> bytes:
        try:
            code = await self.web3.eth.get_code(to_checksum_address(address))
        except _RPC_ERRORS as e:
            raise ContractReadError(
                f"Could not read code at {address}: {e}", address=address
            ) from e
        return bytes(code)

    async def write(
        self,
        contract: str,
        address: str,
        function: str,
        args: Sequence[Any],
        signer: SignerProtocol,
        value: int = 0,
    ) -> str:
        sender = to_checksum_address(signer.address)
        try:
            nonce = await self.web3.eth.get_transaction_count(sender, "pending")
            transaction = await self._function(contract, address, function, args).build_transaction(
                {"from": sender, "nonce": nonce, "chainId": self.chain_id, "value": value}
            )
            signed = signer.sign_transaction(transaction)
            tx_hash = await self.web3.eth.send_raw_transaction(signed.raw_transaction)
        except _RPC_ERRORS as e:
            self.logger.error(
                "contract.write.failed",
                contract=contract,
                address=address,
                function=function,
                error=str(e),
                error_type=type(e).__name__,
            )
            raise DispatchError(
                f"{contract}.{function} transaction failed: {e}",
                contract=contract,
                address=address,
                function=function,
            ) from e

        tx_hash_hex = self.web3.to_hex(tx_hash)
        self.logger.info(
            "contract.write.sent",
            contract=contract,
            address=address,
            function=function,
            tx_hash=tx_hash_hex,
        )
        return tx_hash_hex

    async def wait_for_receipt(self, transaction_hash: str) -> dict[str, Any]:
        try:
            receipt = await self.web3.eth.wait_for_transaction_receipt(
                transaction_hash, timeout=self.receipt_timeout
            )
        except TimeExhausted as e:
            raise DispatchError(
                f"Transaction {transaction_hash} not mined within {self.receipt_timeout}s",
                tx_hash=transaction_hash,
            ) from e
        except _RPC_ERRORS as e:
            raise DispatchError(
                f"Could not fetch receipt for {transaction_hash}: {e}",
                tx_hash=transaction_hash,
            ) from e
        return dict(receipt)
