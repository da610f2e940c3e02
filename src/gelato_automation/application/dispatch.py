"""
Batch Dispatch

The two ways a composed MultiSend batch reaches the chain:

- EXECUTE_ONLY: the proxy exists, so the batch is executed through the Safe's
  ``execTransaction`` as a DELEGATECALL into MultiSend.
- DEPLOY_AND_EXECUTE: the proxy does not exist yet; the CPK factory deploys
  it with the same salt nonce used for address derivation and executes the
  batch in the same transaction, so a deployed-but-unconfigured wallet is
  never left behind.

A dispatched transaction is atomic on-chain. Nothing here retries: resending
a broadcast transaction is not idempotent.
"""

import structlog
from eth_abi.packed import encode_packed
from eth_utils import to_checksum_address

from gelato_automation.core.domain.errors import DispatchError
from gelato_automation.core.domain.models import (
    ZERO_ADDRESS,
    DispatchVariant,
    Operation,
    TaskReceipt,
)
from gelato_automation.core.domain.network import NetworkContext
from gelato_automation.core.interfaces.contracts import ContractBinderProtocol

logger = structlog.get_logger()


def prevalidated_signature(owner: str) -> bytes:
    """
    Safe signature accepted when the owner itself sends execTransaction.

    Layout: r = owner address (uint256), s = 0, v = 1.
    """
    return encode_packed(["uint256", "uint256", "uint8"], [int(owner, 16), 0, 1])


class Dispatcher:
    """Sends the composed batch with the variant matching the wallet state."""

    def __init__(self, context: NetworkContext, binder: ContractBinderProtocol):
        self.context = context
        self.binder = binder
        self.logger = logger.bind(component="dispatcher")

    @staticmethod
    def select_variant(wallet_deployed: bool) -> DispatchVariant:
        if wallet_deployed:
            return DispatchVariant.EXECUTE_ONLY
        return DispatchVariant.DEPLOY_AND_EXECUTE

    async def ensure_allowance(self, token: str, proxy_address: str, amount: int) -> str | None:
        """
        Approve the proxy to move ``amount`` of the user's ``token`` if needed.

        Returns:
            The approval transaction hash, or None when the allowance suffices

        Raises:
            DispatchError: If the approval fails or reverts
        """
        user = self.context.user_address
        current = int(await self.binder.read("ERC20", token, "allowance", [user, proxy_address]))
        if current >= amount:
            self.logger.debug("dispatch.allowance_sufficient", token=token, allowance=current)
            return None

        self.logger.info(
            "dispatch.approving", token=token, spender=proxy_address, amount=amount
        )
        tx_hash = await self.binder.write(
            "ERC20", token, "approve", [proxy_address, amount], self.context.signer
        )
        await self._confirmed(tx_hash, "approve")
        return tx_hash

    async def dispatch(
        self, variant: DispatchVariant, proxy_address: str, calldata: bytes
    ) -> TaskReceipt:
        """
        Send ``calldata`` (MultiSend calldata) through the chosen variant.

        Raises:
            DispatchError: If the broadcast fails or the transaction reverts
        """
        if variant == DispatchVariant.EXECUTE_ONLY:
            tx_hash = await self._execute_only(proxy_address, calldata)
        else:
            tx_hash = await self._deploy_and_execute(calldata)

        receipt = await self._confirmed(tx_hash, variant.value)
        return TaskReceipt(
            transaction_hash=tx_hash,
            proxy_address=proxy_address,
            variant=variant,
            block_number=receipt.get("blockNumber"),
            gas_used=receipt.get("gasUsed"),
            details={"status": receipt.get("status"), "logs": len(receipt.get("logs") or [])},
        )

    async def _execute_only(self, proxy_address: str, calldata: bytes) -> str:
        book = self.context.address_book
        return await self.binder.write(
            "GnosisSafe",
            proxy_address,
            "execTransaction",
            [
                book.multi_send,
                0,
                calldata,
                int(Operation.DELEGATECALL),
                0,
                0,
                0,
                ZERO_ADDRESS,
                ZERO_ADDRESS,
                prevalidated_signature(self.context.user_address),
            ],
            self.context.signer,
        )

    async def _deploy_and_execute(self, calldata: bytes) -> str:
        book = self.context.address_book
        return await self.binder.write(
            "CPKFactory",
            book.cpk_factory,
            "createProxyAndExecTransaction",
            [
                book.mastercopy,
                self.context.salt_nonce,
                to_checksum_address(self.context.fallback_handler),
                book.multi_send,
                0,
                calldata,
                int(Operation.DELEGATECALL),
            ],
            self.context.signer,
        )

    async def _confirmed(self, tx_hash: str, what: str) -> dict:
        receipt = await self.binder.wait_for_receipt(tx_hash)
        if receipt.get("status") != 1:
            self.logger.error("dispatch.reverted", tx_hash=tx_hash, what=what)
            raise DispatchError(f"Transaction {what} reverted", tx_hash=tx_hash)
        self.logger.info(
            "dispatch.confirmed", tx_hash=tx_hash, what=what, block=receipt.get("blockNumber")
        )
        return receipt
