"""
Task Strategies

Each strategy builds the Gelato task(s) for one automation use case and the
ordered MultiSend entries that submit them from the user's proxy:

- TimeTradeStrategy: sell on BatchExchange every X seconds (auto-chained task)
- BalanceTradeStrategy: sell whenever the user's sell token balance grew by a
  threshold (task cycle)
- PlaceOrderWithWithdrawStrategy: place an order now and let Gelato withdraw
  the proceeds back to the user once withdrawable
- KyberPriceTradeStrategy: market sell once the Kyber rate drops by a given
  difference, followed by an automated withdraw (task cycle)

Strategies only construct values; the SubmissionOrchestrator runs the checks
and dispatches the batch.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass

import structlog

from gelato_automation.core.domain.errors import ValidationError
from gelato_automation.core.domain.models import (
    Action,
    Condition,
    Operation,
    Provider,
    Task,
    batch_duration,
    require_cycles,
    require_non_zero,
    tasks_to_abi,
)
from gelato_automation.core.domain.multisend import MultiSendEntry
from gelato_automation.core.domain.network import NetworkContext
from gelato_automation.core.interfaces.contracts import ContractBinderProtocol
from gelato_automation.infrastructure.abi_registry import AbiRegistry

logger = structlog.get_logger()


@dataclass(frozen=True)
class TradeParams:
    """
    Caller parameters shared by all BatchExchange strategies.

    Attributes:
        sell_token: Token sold on BatchExchange
        buy_token: Token bought on BatchExchange
        sell_amount: Amount sold per order (token base units)
        buy_amount: Minimum amount bought per order
        seconds: Seconds until withdrawal/repetition, multiple of 300
        provider: Gelato provider; defaults to the network's default provider
    """

    sell_token: str
    buy_token: str
    sell_amount: int
    buy_amount: int = 0
    seconds: int = 300
    provider: Provider | None = None


@dataclass(frozen=True)
class PlanContext:
    """Values resolved by the orchestrator before tasks are built."""

    network: NetworkContext
    binder: ContractBinderProtocol
    abis: AbiRegistry
    user_address: str
    proxy_address: str
    provider: Provider


@dataclass(frozen=True)
class TaskPlan:
    """
    Result of BuildTasks.

    Attributes:
        tasks: Tasks whose spec must be provided by the provider
        entries: Ordered MultiSend entries (without enableModule)
        allowance: Sell token allowance the proxy needs from the user
        one_off: Whether a single task is submitted (canSubmitTask advisory)
    """

    tasks: tuple[Task, ...]
    entries: tuple[MultiSendEntry, ...]
    allowance: int
    one_off: bool = False


class TaskStrategy(ABC):
    """Base class for task building strategies."""

    name: str = ""
    pays_fee: bool = False

    def __init__(self, params: TradeParams):
        self.params = params
        self.logger = logger.bind(component="strategy", strategy=self.name)

    def validate(self) -> int:
        """
        Validate caller parameters.

        Returns:
            The batch duration derived from ``params.seconds``

        Raises:
            ValidationError: If any parameter is malformed
        """
        require_non_zero(self.params.sell_token, "sell token")
        require_non_zero(self.params.buy_token, "buy token")
        if int(self.params.sell_amount) <= 0:
            raise ValidationError("Sell amount must be positive", sell_amount=self.params.sell_amount)
        if int(self.params.buy_amount) < 0:
            raise ValidationError("Buy amount must not be negative", buy_amount=self.params.buy_amount)
        return batch_duration(self.params.seconds)

    @property
    def sell_token(self) -> str:
        return require_non_zero(self.params.sell_token, "sell token")

    @property
    def buy_token(self) -> str:
        return require_non_zero(self.params.buy_token, "buy token")

    def resolve_provider(self, network: NetworkContext) -> Provider:
        return self.params.provider or network.default_provider()

    @abstractmethod
    async def build(self, plan: PlanContext) -> TaskPlan:
        """Build the tasks and MultiSend entries for this use case."""
        pass

    async def _log_withdraw_batch(self, plan: PlanContext, duration: int) -> None:
        current_batch_id = await plan.binder.read(
            "BatchExchange", plan.network.address_book.batch_exchange, "getCurrentBatchId"
        )
        self.logger.info(
            "strategy.batch_window",
            current_batch_id=int(current_batch_id),
            withdraw_after_batch_id=int(current_batch_id) + duration,
        )

    def _place_order_data(
        self, plan: PlanContext, contract: str, buy_amount: int, duration: int
    ) -> bytes:
        return plan.abis.encode(
            contract,
            "action",
            [
                plan.user_address,
                self.sell_token,
                self.buy_token,
                int(self.params.sell_amount),
                int(buy_amount),
                duration,
            ],
        )

    def _withdraw_task(self, plan: PlanContext, provider: Provider | None) -> Task:
        withdraw_data = plan.abis.encode(
            "ActionWithdrawBatchExchange",
            "action",
            [plan.user_address, self.sell_token, self.buy_token],
        )
        action = Action(
            addr=plan.network.address_book.action_withdraw_batch_exchange,
            data=withdraw_data,
            operation=Operation.DELEGATECALL,
            value=0,
            terms_ok_check=True,
        )
        return Task(actions=(action,), provider=provider)

    @staticmethod
    def _submit_task_entry(plan: PlanContext, task: Task) -> MultiSendEntry:
        return MultiSendEntry(
            operation=Operation.CALL,
            to=plan.network.address_book.gelato_core,
            value=0,
            data=plan.abis.encode("GelatoCore", "submitTask", [task.to_abi()]),
            label="submitTask",
        )

    @staticmethod
    def _submit_task_cycle_entry(
        plan: PlanContext, tasks: tuple[Task, ...], cycles: int
    ) -> MultiSendEntry:
        return MultiSendEntry(
            operation=Operation.CALL,
            to=plan.network.address_book.gelato_core,
            value=0,
            data=plan.abis.encode(
                "GelatoCore",
                "submitTaskCycle",
                [plan.provider.to_abi(), tasks_to_abi(tasks), 0, cycles],
            ),
            label="submitTaskCycle",
        )


class TimeTradeStrategy(TaskStrategy):
    """Sell ``sell_amount`` every ``seconds`` through an auto-chained task."""

    name = "time_trade"

    def __init__(self, params: TradeParams, cycles: int = 5):
        super().__init__(params)
        self.cycles = cycles

    def validate(self) -> int:
        duration = super().validate()
        require_cycles(self.cycles)
        return duration

    async def build(self, plan: PlanContext) -> TaskPlan:
        duration = batch_duration(self.params.seconds)
        book = plan.network.address_book
        await self._log_withdraw_batch(plan, duration)

        condition = Condition(
            inst=book.condition_batch_exchange_funds_withdrawable,
            data=plan.abis.encode(
                "ConditionBatchExchangeFundsWithdrawable",
                "ok",
                [plan.proxy_address, self.sell_token, self.buy_token],
            ),
        )
        place_order_data = self._place_order_data(
            plan, "ActionPlaceOrderBatchExchange", self.params.buy_amount, duration
        )
        place_order = Action(
            addr=book.action_place_order_batch_exchange,
            data=place_order_data,
            operation=Operation.DELEGATECALL,
            terms_ok_check=True,
        )
        task = Task(
            actions=(place_order,),
            conditions=(condition,),
            provider=plan.provider,
            expiry_date=0,
            auto_submit_next_task=True,
        )

        entries = (
            MultiSendEntry(
                operation=Operation.DELEGATECALL,
                to=book.action_place_order_batch_exchange,
                value=0,
                data=place_order_data,
                label="placeOrder",
            ),
            self._submit_task_entry(plan, task),
        )
        return TaskPlan(
            tasks=(task,),
            entries=entries,
            allowance=int(self.params.sell_amount) * require_cycles(self.cycles),
        )


class BalanceTradeStrategy(TaskStrategy):
    """Sell whenever the user's sell token balance increased by ``increase_amount``."""

    name = "balance_trade"

    def __init__(self, params: TradeParams, increase_amount: int, cycles: int = 5):
        super().__init__(params)
        self.increase_amount = increase_amount
        self.cycles = cycles

    def validate(self) -> int:
        duration = super().validate()
        require_cycles(self.cycles)
        if int(self.increase_amount) <= 0:
            raise ValidationError(
                "Balance increase must be positive", increase_amount=self.increase_amount
            )
        return duration

    async def build(self, plan: PlanContext) -> TaskPlan:
        duration = batch_duration(self.params.seconds)
        book = plan.network.address_book
        cycles = require_cycles(self.cycles)
        await self._log_withdraw_batch(plan, duration)

        condition = Condition(
            inst=book.condition_balance_stateful,
            data=plan.abis.encode(
                "ConditionBalanceStateful",
                "ok",
                [plan.proxy_address, plan.user_address, self.sell_token, True],
            ),
        )
        place_order = Action(
            addr=book.action_place_order_batch_exchange,
            data=self._place_order_data(
                plan, "ActionPlaceOrderBatchExchange", self.params.buy_amount, duration
            ),
            operation=Operation.DELEGATECALL,
            terms_ok_check=True,
        )
        # The reference balance is updated after the order, from post-order balances
        set_ref_balance_data = plan.abis.encode(
            "ConditionBalanceStateful",
            "setRefBalance",
            [int(self.increase_amount), self.sell_token, plan.user_address, True],
        )
        set_ref_balance = Action(
            addr=book.condition_balance_stateful,
            data=set_ref_balance_data,
            operation=Operation.CALL,
            terms_ok_check=False,
        )
        task = Task(actions=(place_order, set_ref_balance), conditions=(condition,))

        entries = (
            MultiSendEntry(
                operation=Operation.CALL,
                to=book.condition_balance_stateful,
                value=0,
                data=set_ref_balance_data,
                label="setRefBalance",
            ),
            self._submit_task_cycle_entry(plan, (task,), cycles),
        )
        return TaskPlan(
            tasks=(task,),
            entries=entries,
            allowance=int(self.params.sell_amount) * cycles,
        )


class PlaceOrderWithWithdrawStrategy(TaskStrategy):
    """Place an order now; Gelato withdraws the proceeds to the user later."""

    name = "place_order_with_withdraw"
    pays_fee = True

    async def build(self, plan: PlanContext) -> TaskPlan:
        duration = batch_duration(self.params.seconds)
        book = plan.network.address_book
        await self._log_withdraw_batch(plan, duration)

        # No condition: the withdraw action checks termsOk itself
        withdraw_task = self._withdraw_task(plan, plan.provider)

        entries = (
            MultiSendEntry(
                operation=Operation.DELEGATECALL,
                to=book.action_place_order_batch_exchange_pay_fee,
                value=0,
                data=self._place_order_data(
                    plan,
                    "ActionPlaceOrderBatchExchangePayFee",
                    self.params.buy_amount,
                    duration,
                ),
                label="placeOrder",
            ),
            self._submit_task_entry(plan, withdraw_task),
        )
        return TaskPlan(
            tasks=(withdraw_task,),
            entries=entries,
            allowance=int(self.params.sell_amount),
            one_off=True,
        )


class KyberPriceTradeStrategy(TaskStrategy):
    """Market sell once the Kyber rate fell by ``price_difference``, then withdraw."""

    name = "kyber_price_trade"
    pays_fee = True

    def __init__(self, params: TradeParams, price_difference: int):
        super().__init__(params)
        self.price_difference = price_difference

    def validate(self) -> int:
        duration = super().validate()
        if int(self.price_difference) < 0:
            raise ValidationError(
                "Price difference must not be negative", price_difference=self.price_difference
            )
        return duration

    async def build(self, plan: PlanContext) -> TaskPlan:
        duration = batch_duration(self.params.seconds)
        book = plan.network.address_book
        if book.condition_kyber_rate is None or book.kyber_proxy is None:
            raise ValidationError(
                "Kyber price trade needs condition_kyber_rate and kyber proxy in the address book"
            )
        await self._log_withdraw_batch(plan, duration)

        expected_rate, _slippage_rate = await plan.binder.read(
            "IKyber",
            book.kyber_proxy,
            "getExpectedRate",
            [self.sell_token, self.buy_token, int(self.params.sell_amount)],
        )
        reference_rate = int(expected_rate) - int(self.price_difference)
        if reference_rate <= 0:
            raise ValidationError(
                "Price difference exceeds the current Kyber rate",
                current_rate=int(expected_rate),
                price_difference=self.price_difference,
            )
        self.logger.info("strategy.kyber_reference_rate", reference_rate=reference_rate)

        condition = Condition(
            inst=book.condition_kyber_rate,
            data=plan.abis.encode(
                "ConditionKyberRate",
                "ok",
                [
                    self.sell_token,
                    int(self.params.sell_amount),
                    self.buy_token,
                    reference_rate,
                    False,
                ],
            ),
        )
        # Market order: buy amount of 1
        place_order = Action(
            addr=book.action_place_order_batch_exchange_pay_fee,
            data=self._place_order_data(plan, "ActionPlaceOrderBatchExchangePayFee", 1, duration),
            operation=Operation.DELEGATECALL,
            value=0,
            terms_ok_check=True,
        )
        place_order_task = Task(actions=(place_order,), conditions=(condition,))
        withdraw_task = self._withdraw_task(plan, None)

        tasks = (place_order_task, withdraw_task)
        return TaskPlan(
            tasks=tasks,
            entries=(self._submit_task_cycle_entry(plan, tasks, 1),),
            allowance=int(self.params.sell_amount),
        )
