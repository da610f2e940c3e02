"""
Unit tests for EligibilityChecker.

Tests verify:
- Provider whitelist check via hashTaskSpec/taskSpecGasPriceCeil
- Fee eligibility boundaries (sell amount must exceed the fee)
- Token acceptance
"""

import pytest
from conftest import SELL_TOKEN

from gelato_automation.application.eligibility import EligibilityChecker
from gelato_automation.core.domain.errors import (
    InsufficientAmountError,
    InsufficientFundsError,
    NotProvidedError,
    TokenNotAcceptedError,
    ValidationError,
)
from gelato_automation.core.domain.models import Action, Operation, Task
from gelato_automation.core.domain.network import parse_task_specs

PROVIDER = "0x" + "04" * 20


@pytest.fixture
def checker(mock_binder, address_book):
    return EligibilityChecker(mock_binder, address_book)


@pytest.fixture
def task():
    return Task(
        actions=(
            Action(
                addr="0x" + "07" * 20,
                data=bytes.fromhex("deadbeef"),
                operation=Operation.DELEGATECALL,
                terms_ok_check=True,
            ),
        ),
    )


class TestCheckProvided:
    """Tests for provider whitelisting."""

    @pytest.mark.asyncio
    async def test_provided_returns_spec_hash(self, checker, mock_binder, task, address_book):
        spec_hash = await checker.check_provided(task, PROVIDER)

        assert spec_hash == b"\x11" * 32
        function_calls = [c.args[2] for c in mock_binder.read.call_args_list]
        assert function_calls == ["hashTaskSpec", "taskSpecGasPriceCeil"]
        ceil_call = mock_binder.read.call_args_list[1]
        assert ceil_call.args[1] == address_book.gelato_core
        assert ceil_call.args[3][1] == b"\x11" * 32

    @pytest.mark.asyncio
    async def test_zero_gas_price_ceiling_is_not_provided(self, checker, chain_state, task):
        chain_state.reads[("GelatoCore", "taskSpecGasPriceCeil")] = 0

        with pytest.raises(NotProvidedError) as exc_info:
            await checker.check_provided(task, PROVIDER)

        assert exc_info.value.task_spec_hash == b"\x11" * 32
        assert exc_info.value.provider.lower() == PROVIDER

    @pytest.mark.asyncio
    async def test_accepts_task_spec(self, checker, task):
        assert await checker.check_provided(task.spec(), PROVIDER) == b"\x11" * 32

    @pytest.mark.asyncio
    async def test_accepts_task_spec_name(self, mock_binder, address_book):
        specs = parse_task_specs(
            {
                "withdraw_batch_exchange": {
                    "conditions": ["condition_batch_exchange_funds_withdrawable"],
                    "actions": [
                        {
                            "addr": "action_withdraw_batch_exchange",
                            "operation": "delegatecall",
                            "terms_ok_check": True,
                        }
                    ],
                }
            },
            address_book,
        )
        checker = EligibilityChecker(mock_binder, address_book, specs)

        assert await checker.check_provided("withdraw_batch_exchange", PROVIDER) == b"\x11" * 32
        hashed = mock_binder.read.call_args_list[0].args[3][0]
        assert hashed == specs["withdraw_batch_exchange"].to_abi()
        assert hashed[0] == [address_book.condition_batch_exchange_funds_withdrawable]

    @pytest.mark.asyncio
    async def test_unknown_task_spec_name(self, checker, mock_binder):
        with pytest.raises(ValidationError, match="Unknown task spec 'nope'"):
            await checker.check_provided("nope", PROVIDER)

        mock_binder.read.assert_not_awaited()


class TestFeeEligibility:
    """Tests for the fee check."""

    @pytest.mark.asyncio
    async def test_amount_equal_to_fee_fails(self, checker, chain_state):
        chain_state.reads[("FeeExtractor", "getFeeAmount")] = 100

        with pytest.raises(InsufficientAmountError) as exc_info:
            await checker.check_fee_eligibility(SELL_TOKEN, 100)

        assert exc_info.value.context == {"sell_amount": 100, "required_fee": 100}
        assert isinstance(exc_info.value, InsufficientFundsError)

    @pytest.mark.asyncio
    async def test_amount_above_fee_passes(self, checker, chain_state):
        chain_state.reads[("FeeExtractor", "getFeeAmount")] = 100

        assert await checker.check_fee_eligibility(SELL_TOKEN, 101) == 100

    @pytest.mark.asyncio
    async def test_zero_fee_means_token_not_accepted(self, checker, chain_state):
        chain_state.reads[("FeeExtractor", "getFeeAmount")] = 0

        with pytest.raises(TokenNotAcceptedError, match="not accepted"):
            await checker.check_fee_eligibility(SELL_TOKEN, 10**18)


class TestCanSubmit:
    """Tests for the advisory canSubmitTask read."""

    @pytest.mark.asyncio
    async def test_returns_remote_status(self, checker, chain_state, task):
        chain_state.reads[("GelatoCore", "canSubmitTask")] = "GelatoCore.canSubmitTask: expired"

        status = await checker.can_submit("0x" + "cc" * 20, task)

        assert status == "GelatoCore.canSubmitTask: expired"
