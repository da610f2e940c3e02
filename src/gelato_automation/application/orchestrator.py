"""
Application Layer - Submission Orchestrator

This module drives one user-initiated automation request from parameter
validation to the dispatched transaction. Both the CLI and library callers use
this unified flow.

Stages (sequential, no backtracking):
    VALIDATE_PARAMS -> DERIVE_ADDRESS -> CHECK_BALANCE_AND_FEE ->
    CHECK_WALLET_STATE -> BUILD_TASKS -> CHECK_ELIGIBILITY ->
    COMPOSE_BATCH -> DISPATCH -> DONE

A typed failure in any stage stops the flow and is returned inside the
SubmissionResult; nothing is broadcast before DISPATCH, and the batch itself
is a single atomic transaction.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Callable, Optional

import structlog

from gelato_automation.application.dispatch import Dispatcher
from gelato_automation.application.eligibility import EligibilityChecker
from gelato_automation.application.inspector import WalletStateInspector
from gelato_automation.application.strategies import PlanContext, TaskPlan, TaskStrategy
from gelato_automation.core.domain.errors import GelatoAutomationError, InsufficientFundsError
from gelato_automation.core.domain.models import DispatchVariant, Operation, TaskReceipt
from gelato_automation.core.domain.multisend import MultiSendEntry, compose_batch
from gelato_automation.core.domain.network import NetworkContext
from gelato_automation.core.domain.proxy_address import determine_proxy_address
from gelato_automation.core.interfaces.contracts import ContractBinderProtocol
from gelato_automation.infrastructure.abi_registry import AbiRegistry

logger = structlog.get_logger()


class SubmissionStage(str, Enum):
    """Stages of a submission, in execution order."""

    VALIDATE_PARAMS = "validate_params"
    DERIVE_ADDRESS = "derive_address"
    CHECK_BALANCE_AND_FEE = "check_balance_and_fee"
    CHECK_WALLET_STATE = "check_wallet_state"
    BUILD_TASKS = "build_tasks"
    CHECK_ELIGIBILITY = "check_eligibility"
    COMPOSE_BATCH = "compose_batch"
    DISPATCH = "dispatch"
    DONE = "done"


@dataclass
class ProgressUpdate:
    """Progress update emitted on every stage transition.

    Attributes:
        timestamp: When the stage was entered
        stage: Stage being entered
        message: Human-readable description
        details: Structured data gathered so far
    """

    timestamp: datetime
    stage: SubmissionStage
    message: str
    details: dict


@dataclass
class SubmissionResult:
    """
    Tagged outcome of a submission.

    Attributes:
        status: "submitted", "composed" (dry run) or "failed"
        stage: Last stage entered
        strategy: Name of the strategy that built the tasks
        proxy_address: Derived proxy address (once known)
        variant: Dispatch variant chosen for the wallet state
        batch: Labelled MultiSend entries in execution order
        calldata: MultiSend calldata sent through the proxy
        approval_tx_hash: Hash of the allowance approval, if one was needed
        required_fee: Fee deducted from the sell token, if any
        receipt: Receipt of the dispatched transaction
        error: Typed error that stopped the flow
    """

    status: str
    stage: SubmissionStage
    strategy: str
    proxy_address: str | None = None
    variant: DispatchVariant | None = None
    batch: list[MultiSendEntry] = field(default_factory=list)
    calldata: bytes | None = None
    approval_tx_hash: str | None = None
    required_fee: int | None = None
    receipt: TaskReceipt | None = None
    error: GelatoAutomationError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


class SubmissionOrchestrator:
    """
    Top-level driver for one automation request.

    All collaborators are injected; by default they are built around the
    given binder. Instances hold no per-request state, so concurrent
    submissions for different users can share nothing but the binder.
    """

    def __init__(
        self,
        context: NetworkContext,
        binder: ContractBinderProtocol,
        *,
        abis: Optional[AbiRegistry] = None,
        inspector: Optional[WalletStateInspector] = None,
        eligibility: Optional[EligibilityChecker] = None,
        dispatcher: Optional[Dispatcher] = None,
    ):
        self.context = context
        self.binder = binder
        self.abis = abis or AbiRegistry()
        self.inspector = inspector or WalletStateInspector(binder)
        self.eligibility = eligibility or EligibilityChecker(
            binder, context.address_book, context.task_specs
        )
        self.dispatcher = dispatcher or Dispatcher(context, binder)
        self.logger = logger.bind(component="submission_orchestrator")

    async def derive_proxy_address(self, user_address: Optional[str] = None) -> str:
        """Counterfactual CPK proxy address of ``user_address`` (default: signer)."""
        book = self.context.address_book

        async def creation_code() -> bytes:
            return bytes(await self.binder.read("CPKFactory", book.cpk_factory, "proxyCreationCode"))

        return await determine_proxy_address(
            user_address or self.context.user_address,
            self.context.salt_nonce,
            book.cpk_factory,
            book.mastercopy,
            creation_code,
        )

    async def submit(
        self,
        strategy: TaskStrategy,
        *,
        dry_run: bool = False,
        progress_callback: Optional[Callable[[ProgressUpdate], None]] = None,
    ) -> SubmissionResult:
        """
        Run the submission flow for ``strategy``.

        Args:
            strategy: Builds the tasks and batch entries for the use case
            dry_run: Stop after composing the batch, send nothing
            progress_callback: Optional callback for stage transitions

        Returns:
            SubmissionResult; typed failures are returned, not raised
        """
        start_time = datetime.now()
        result = SubmissionResult(
            status="failed", stage=SubmissionStage.VALIDATE_PARAMS, strategy=strategy.name
        )
        log = self.logger.bind(strategy=strategy.name)
        log.info("submission.started", dry_run=dry_run)

        def enter(stage: SubmissionStage, message: str, **details: Any) -> None:
            result.stage = stage
            log.debug("submission.stage.entered", stage=stage.value, **details)
            if progress_callback:
                progress_callback(
                    ProgressUpdate(
                        timestamp=datetime.now(), stage=stage, message=message, details=details
                    )
                )

        try:
            await self._run(strategy, result, enter, dry_run)
        except GelatoAutomationError as e:
            result.status = "failed"
            result.error = e
            log.error(
                "submission.failed",
                stage=result.stage.value,
                error=e.message,
                error_type=type(e).__name__,
                duration_seconds=(datetime.now() - start_time).total_seconds(),
                **{key: str(value) for key, value in e.context.items()},
            )
            return result
        except Exception as e:
            log.error(
                "submission.crashed",
                stage=result.stage.value,
                error=str(e),
                error_type=type(e).__name__,
            )
            raise

        log.info(
            "submission.completed",
            status=result.status,
            proxy=result.proxy_address,
            variant=result.variant.value if result.variant else None,
            duration_seconds=(datetime.now() - start_time).total_seconds(),
        )
        return result

    async def _run(self, strategy: TaskStrategy, result: SubmissionResult, enter, dry_run: bool):
        book = self.context.address_book
        sell_amount = int(strategy.params.sell_amount)

        enter(SubmissionStage.VALIDATE_PARAMS, "Validating parameters")
        user = self.context.user_address
        duration = strategy.validate()
        provider = strategy.resolve_provider(self.context)

        enter(SubmissionStage.DERIVE_ADDRESS, "Deriving proxy address", batch_duration=duration, user=user)
        proxy = await self.derive_proxy_address(user)
        result.proxy_address = proxy

        enter(SubmissionStage.CHECK_BALANCE_AND_FEE, "Checking balance and fee", proxy=proxy)
        if strategy.pays_fee:
            result.required_fee = await self.eligibility.check_fee_eligibility(
                strategy.sell_token, sell_amount
            )
        balance = int(await self.binder.read("ERC20", strategy.sell_token, "balanceOf", [user]))
        if balance < sell_amount:
            raise InsufficientFundsError(
                f"Insufficient sell token balance: {balance} < {sell_amount}",
                token=strategy.sell_token,
                balance=balance,
                sell_amount=sell_amount,
            )

        enter(SubmissionStage.CHECK_WALLET_STATE, "Inspecting proxy wallet", proxy=proxy)
        deployed = await self.inspector.is_deployed(proxy)
        module_enabled = await self.inspector.is_module_enabled(proxy, book.gelato_core)
        result.variant = self.dispatcher.select_variant(deployed)

        enter(
            SubmissionStage.BUILD_TASKS,
            "Building tasks",
            deployed=deployed,
            module_enabled=module_enabled,
        )
        plan = await strategy.build(
            PlanContext(
                network=self.context,
                binder=self.binder,
                abis=self.abis,
                user_address=user,
                proxy_address=proxy,
                provider=provider,
            )
        )

        enter(SubmissionStage.CHECK_ELIGIBILITY, "Checking provider whitelist", tasks=len(plan.tasks))
        for task in plan.tasks:
            await self.eligibility.check_provided(task, provider.addr)
        if plan.one_off and deployed:
            await self._advise_can_submit(proxy, plan)

        enter(SubmissionStage.COMPOSE_BATCH, "Composing batch")
        entries = list(plan.entries)
        if not module_enabled:
            entries.insert(0, self._enable_module_entry(proxy))
        result.batch = entries
        result.calldata = compose_batch(entries, self.abis.get("MultiSend"))

        if dry_run:
            result.status = "composed"
            enter(SubmissionStage.DONE, "Batch composed (dry run)", entries=len(entries))
            return

        enter(SubmissionStage.DISPATCH, "Dispatching batch", variant=result.variant.value)
        result.approval_tx_hash = await self.dispatcher.ensure_allowance(
            strategy.sell_token, proxy, plan.allowance
        )
        result.receipt = await self.dispatcher.dispatch(result.variant, proxy, result.calldata)
        result.status = "submitted"

        enter(SubmissionStage.DONE, "Submitted", tx_hash=result.receipt.transaction_hash)

    def _enable_module_entry(self, proxy: str) -> MultiSendEntry:
        return MultiSendEntry(
            operation=Operation.CALL,
            to=proxy,
            value=0,
            data=self.abis.encode("GnosisSafe", "enableModule", [self.context.address_book.gelato_core]),
            label="enableModule",
        )

    async def _advise_can_submit(self, proxy: str, plan: TaskPlan) -> None:
        for task in plan.tasks:
            status = await self.eligibility.can_submit(proxy, task)
            if status != "OK":
                self.logger.warning("submission.can_submit_task", proxy=proxy, status=status)
