"""
Contract Binding Protocols

Capability interfaces injected into every component that talks to the
chain. Core and application code depend only on these protocols, so they can
be tested with mocks and without any RPC endpoint.
"""

from typing import Any, Protocol, Sequence, runtime_checkable


@runtime_checkable
class SignerProtocol(Protocol):
    """Local account able to sign transactions (eth_account LocalAccount)."""

    @property
    def address(self) -> str: ...

    def sign_transaction(self, transaction_dict: dict[str, Any]) -> Any: ...


@runtime_checkable
class ContractBinderProtocol(Protocol):
    """
    Read and write access to deployed contracts by ABI name.

    ``contract`` names an ABI known to the binder (e.g. "GelatoCore",
    "GnosisSafe"); ``function`` is a function of that ABI.
    """

    async def read(
        self, contract: str, address: str, function: str, args: Sequence[Any] = ()
    ) -> Any:
        """
        Perform an eth_call and return the decoded result.

        Raises:
            ContractReadError: If the call fails
        """
        ...

    async def write(
        self,
        contract: str,
        address: str,
        function: str,
        args: Sequence[Any],
        signer: SignerProtocol,
        value: int = 0,
    ) -> str:
        """
        Sign and broadcast a transaction, returning its hash.

        Raises:
            DispatchError: If building, signing or broadcasting fails
        """
        ...

    async def get_code(self, address: str) -> bytes:
        """
        Return the runtime bytecode at ``address`` (empty if none).

        Raises:
            ContractReadError: If the RPC request fails
        """
        ...

    async def wait_for_receipt(self, transaction_hash: str) -> dict[str, Any]:
        """
        Wait until the transaction is mined and return its receipt.

        Raises:
            DispatchError: If the receipt cannot be obtained
        """
        ...
