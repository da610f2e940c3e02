"""
Eligibility Checks

Pre-flight guards run before any transaction is built:

- the chosen provider must have whitelisted the task spec (its gas price
  ceiling for the spec hash is non-zero), otherwise the submission would
  revert and waste gas;
- the sell token must be accepted by the fee extractor and the sell amount
  must exceed the fee taken from it.
"""

from typing import Mapping, Optional, Union

import structlog

from gelato_automation.core.domain.errors import (
    InsufficientAmountError,
    NotProvidedError,
    TokenNotAcceptedError,
    ValidationError,
)
from gelato_automation.core.domain.models import Task, TaskSpec, checksum
from gelato_automation.core.domain.network import AddressBook
from gelato_automation.core.interfaces.contracts import ContractBinderProtocol

logger = structlog.get_logger()


class EligibilityChecker:
    """Provider whitelist and fee checks against GelatoCore and the fee extractor."""

    def __init__(
        self,
        binder: ContractBinderProtocol,
        address_book: AddressBook,
        task_specs: Optional[Mapping[str, TaskSpec]] = None,
    ):
        self.binder = binder
        self.address_book = address_book
        self.task_specs = dict(task_specs or {})
        self.logger = logger.bind(component="eligibility_checker")

    async def task_spec_hash(self, spec: TaskSpec) -> bytes:
        """Hash of ``spec`` as computed by GelatoCore.hashTaskSpec."""
        digest = await self.binder.read(
            "GelatoCore", self.address_book.gelato_core, "hashTaskSpec", [spec.to_abi()]
        )
        return bytes(digest)

    async def check_provided(
        self, task_or_spec: Union[Task, TaskSpec, str], provider_address: str
    ) -> bytes:
        """
        Verify that ``provider_address`` has provided the task spec.

        Args:
            task_or_spec: Concrete task (its spec is derived), a TaskSpec or
                the name of one of the configured task specs
            provider_address: Provider expected to sponsor the task

        Returns:
            The task spec hash

        Raises:
            NotProvidedError: If the provider's gas price ceiling for the hash is 0
            ValidationError: If a task spec name is unknown
        """
        spec = self._spec_of(task_or_spec)
        provider = checksum(provider_address, "provider address")

        spec_hash = await self.task_spec_hash(spec)
        gas_price_ceil = await self.binder.read(
            "GelatoCore",
            self.address_book.gelato_core,
            "taskSpecGasPriceCeil",
            [provider, spec_hash],
        )

        if int(gas_price_ceil) == 0:
            self.logger.warning(
                "eligibility.not_provided", provider=provider, task_spec_hash=spec_hash.hex()
            )
            raise NotProvidedError(provider, spec_hash)

        self.logger.info(
            "eligibility.provided",
            provider=provider,
            task_spec_hash=spec_hash.hex(),
            gas_price_ceil=int(gas_price_ceil),
        )
        return spec_hash

    def _spec_of(self, task_or_spec: Union[Task, TaskSpec, str]) -> TaskSpec:
        if isinstance(task_or_spec, Task):
            return task_or_spec.spec()
        if isinstance(task_or_spec, str):
            if task_or_spec not in self.task_specs:
                raise ValidationError(
                    f"Unknown task spec '{task_or_spec}'",
                    known=", ".join(sorted(self.task_specs)) or "none",
                )
            return self.task_specs[task_or_spec]
        return task_or_spec

    async def check_fee_eligibility(self, token: str, sell_amount: int) -> int:
        """
        Return the fee charged in ``token`` for an automated submission.

        Raises:
            TokenNotAcceptedError: If the fee extractor quotes 0 for the token
            InsufficientAmountError: If ``sell_amount`` does not exceed the fee
        """
        token = checksum(token, "fee token")
        required_fee = int(
            await self.binder.read(
                "FeeExtractor", self.address_book.fee_extractor, "getFeeAmount", [token]
            )
        )

        if required_fee == 0:
            raise TokenNotAcceptedError(token)
        if int(sell_amount) <= required_fee:
            raise InsufficientAmountError(int(sell_amount), required_fee)

        self.logger.info(
            "eligibility.fee",
            token=token,
            required_fee=required_fee,
            amount_sold=int(sell_amount) - required_fee,
        )
        return required_fee

    async def can_submit(self, proxy_address: str, task: Task) -> str:
        """Advisory GelatoCore.canSubmitTask read; "OK" when submittable."""
        return await self.binder.read(
            "GelatoCore",
            self.address_book.gelato_core,
            "canSubmitTask",
            [checksum(proxy_address, "proxy address"), task.to_abi()],
        )
