"""
Wallet State Inspection

Read-only predicates about a user's Safe proxy. Results are never cached:
every call re-reads remote state.

A proxy without code is "not deployed". Any other read failure is an
InspectionError, so a flaky RPC endpoint is never mistaken for an undeployed
wallet (which would lead to a doomed deploy-and-execute transaction).
"""

import structlog
from eth_utils import to_checksum_address

from gelato_automation.core.domain.errors import ContractReadError, InspectionError
from gelato_automation.core.interfaces.contracts import ContractBinderProtocol

logger = structlog.get_logger()


class WalletStateInspector:
    """Answers 'is the proxy deployed' and 'is a module enabled on it'."""

    def __init__(self, binder: ContractBinderProtocol):
        self.binder = binder
        self.logger = logger.bind(component="wallet_state_inspector")

    async def is_deployed(self, proxy_address: str) -> bool:
        """
        Check whether a Safe proxy lives at ``proxy_address``.

        Raises:
            InspectionError: If the code or the getOwners() read fails
        """
        try:
            code = await self.binder.get_code(proxy_address)
        except ContractReadError as e:
            raise InspectionError(
                f"Could not read code of {proxy_address}: {e.message}", proxy=proxy_address
            ) from e

        if not code:
            self.logger.debug("wallet.not_deployed", proxy=proxy_address)
            return False

        # Benign read to confirm the code at the address is a Safe
        try:
            await self.binder.read("GnosisSafe", proxy_address, "getOwners")
        except ContractReadError as e:
            raise InspectionError(
                f"Contract at {proxy_address} does not answer getOwners(): {e.message}",
                proxy=proxy_address,
            ) from e

        self.logger.debug("wallet.deployed", proxy=proxy_address)
        return True

    async def is_module_enabled(self, proxy_address: str, module_address: str) -> bool:
        """
        Check whether ``module_address`` is an enabled module of the proxy.

        Returns False when the proxy is not deployed yet.

        Raises:
            InspectionError: If the remote reads fail
        """
        if not await self.is_deployed(proxy_address):
            return False

        try:
            modules = await self.binder.read("GnosisSafe", proxy_address, "getModules")
        except ContractReadError as e:
            raise InspectionError(
                f"Could not read modules of {proxy_address}: {e.message}", proxy=proxy_address
            ) from e

        wanted = to_checksum_address(module_address)
        enabled = any(to_checksum_address(module) == wanted for module in modules)
        self.logger.debug(
            "wallet.module_checked", proxy=proxy_address, module=wanted, enabled=enabled
        )
        return enabled
