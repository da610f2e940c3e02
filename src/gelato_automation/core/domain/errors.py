"""
Error Taxonomy

Every failure the toolkit can detect is raised as a subclass of
GelatoAutomationError. Each error carries a ``context`` dict with the check
that failed and the relevant addresses or amounts, so callers (CLI, tests,
services) can tell the user what to correct before retrying the whole flow.

Only DispatchError originates from the broadcast itself; all other errors are
raised before any transaction is sent.
"""

from typing import Any


class GelatoAutomationError(Exception):
    """Base class for all typed errors of the automation toolkit."""

    def __init__(self, message: str, **context: Any):
        super().__init__(message)
        self.message = message
        self.context = context

    def to_dict(self) -> dict[str, Any]:
        """Serializable view used by the CLI and structured logs."""
        return {
            "error": type(self).__name__,
            "message": self.message,
            **{key: str(value) for key, value in self.context.items()},
        }


class ValidationError(GelatoAutomationError):
    """Malformed or out-of-range caller parameters."""


class InvalidInputError(ValidationError):
    """Proxy address derivation inputs are unusable."""


class CalldataError(GelatoAutomationError):
    """Calldata could not be encoded against the interface description."""


class UnknownFunctionError(CalldataError):
    """The function name is not part of the interface description."""

    def __init__(self, function_name: str):
        super().__init__(
            f"Function '{function_name}' not found in interface description",
            function=function_name,
        )


class ArgumentMismatchError(CalldataError):
    """Arguments do not match the function's arity or types."""


class InsufficientFundsError(GelatoAutomationError):
    """Balance below the required sell amount."""


class InsufficientAmountError(InsufficientFundsError):
    """Sell amount does not exceed the fee deducted in the same token."""

    def __init__(self, sell_amount: int, required_fee: int):
        super().__init__(
            f"Sell amount {sell_amount} must be greater than the required fee {required_fee}",
            sell_amount=sell_amount,
            required_fee=required_fee,
        )


class TokenNotAcceptedError(GelatoAutomationError):
    """Fee schedule returns zero for the token: not accepted as fee payment."""

    def __init__(self, token: str):
        super().__init__(
            f"Token {token} not accepted by provider as payment method for fee, "
            "choose a different token",
            token=token,
        )


class NotProvidedError(GelatoAutomationError):
    """Task spec hash is not whitelisted by the chosen provider."""

    def __init__(self, provider: str, task_spec_hash: bytes | None = None):
        super().__init__(
            f"Task spec is not provided by provider: {provider}",
            provider=provider,
            task_spec_hash="0x" + task_spec_hash.hex() if task_spec_hash else None,
        )
        self.provider = provider
        self.task_spec_hash = task_spec_hash


class ContractReadError(GelatoAutomationError):
    """A read-only contract call failed at the RPC layer."""


class InspectionError(GelatoAutomationError):
    """Unexpected failure reading remote wallet state (not 'not deployed')."""


class DispatchError(GelatoAutomationError):
    """The final transaction broadcast failed or reverted."""
