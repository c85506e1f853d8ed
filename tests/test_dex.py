"""Tests for the approval gate, wrap step and swap step."""

from unittest.mock import AsyncMock

import pytest

from pharos_swapper.config import (
    SWAP_ROUTER_ADDRESS, USDC_ADDRESS, WPHRS_ADDRESS, GAS_LIMIT_FALLBACK,
)
from pharos_swapper.dex import (
    Direction, ensure_allowance, swap_exact_input_single, wrap_native,
)
from pharos_swapper.errors import ChainError


class TestEnsureAllowance:
    @pytest.mark.asyncio
    @pytest.mark.parametrize("allowance", [1000, 1001, 10**30])
    async def test_sufficient_allowance_submits_nothing(self, make_gateway, accounts, allowance):
        gw = make_gateway(accounts[0].address, allowances={WPHRS_ADDRESS: allowance})
        assert await ensure_allowance(gw, WPHRS_ADDRESS, SWAP_ROUTER_ADDRESS, 1000, "[1]", "WPHRS") is None
        assert gw.approvals == []
        assert "approve" not in gw.calls

    @pytest.mark.asyncio
    async def test_repeated_calls_are_noops_once_approved(self, make_gateway, accounts):
        gw = make_gateway(accounts[0].address)
        first = await ensure_allowance(gw, WPHRS_ADDRESS, SWAP_ROUTER_ADDRESS, 500)
        second = await ensure_allowance(gw, WPHRS_ADDRESS, SWAP_ROUTER_ADDRESS, 500)
        assert first == "0xapprove1"
        assert second is None
        assert len(gw.approvals) == 1

    @pytest.mark.asyncio
    @pytest.mark.parametrize("allowance", [0, 999])
    async def test_insufficient_allowance_approves_exact_amount(self, make_gateway, accounts, allowance):
        gw = make_gateway(accounts[0].address, allowances={USDC_ADDRESS: allowance})
        txh = await ensure_allowance(gw, USDC_ADDRESS, SWAP_ROUTER_ADDRESS, 1000, "[1]", "USDC")
        assert gw.approvals == [(USDC_ADDRESS.lower(), 1000)]
        # confirmed before returning
        assert gw.confirmed == [txh]
        assert gw.calls[-2:] == ["approve", "wait_for_confirmation"]

    @pytest.mark.asyncio
    async def test_zero_amount_never_approves(self, make_gateway, accounts):
        gw = make_gateway(accounts[0].address)
        assert await ensure_allowance(gw, USDC_ADDRESS, SWAP_ROUTER_ADDRESS, 0) is None
        assert gw.approvals == []


@pytest.mark.asyncio
async def test_wrap_native_waits_for_confirmation(make_gateway, accounts):
    gw = make_gateway(accounts[0].address, native=10**18)
    assert await wrap_native(gw, 10**12, "[1]") == "0xwrap"
    assert gw.native == 10**18 - 10**12
    assert gw.confirmed == ["0xwrap"]


def test_direction_routes():
    assert Direction.FORWARD.route() == (WPHRS_ADDRESS, USDC_ADDRESS)
    assert Direction.BACKWARD.route() == (USDC_ADDRESS, WPHRS_ADDRESS)


class TestSwapExactInputSingle:
    @pytest.mark.asyncio
    async def test_gas_estimate_gets_five_percent_margin(self, make_gateway, accounts):
        gw = make_gateway(accounts[0].address)
        gw.estimate_swap_gas = AsyncMock(return_value=100_001)
        txh = await swap_exact_input_single(gw, Direction.FORWARD, 10**12, "[1]")
        assert txh == "0xswap1"
        assert gw.swaps == [("forward", 105_002)]
        assert gw.confirmed == [txh]

    @pytest.mark.asyncio
    async def test_estimate_failure_falls_back_to_static_limit(self, make_gateway, accounts, log_messages):
        gw = make_gateway(accounts[0].address, fail={"estimate_swap_gas": -1})
        await swap_exact_input_single(gw, Direction.BACKWARD, 2_500_000, "[2]")
        assert gw.swaps == [("backward", GAS_LIMIT_FALLBACK)]
        assert GAS_LIMIT_FALLBACK == 179_000
        assert any("Estimate gas failed, set default 179000 for USDC→WPHRS" in r.getMessage()
                   for r in log_messages)

    @pytest.mark.asyncio
    async def test_submission_failure_propagates(self, make_gateway, accounts):
        gw = make_gateway(accounts[0].address, fail={"submit_swap": -1})
        with pytest.raises(ChainError):
            await swap_exact_input_single(gw, Direction.FORWARD, 10**12)
        assert gw.confirmed == []

    @pytest.mark.asyncio
    async def test_multicall_carries_single_call_and_deadline(self, make_gateway, accounts):
        gw = make_gateway(accounts[0].address)
        gw.submit_swap = AsyncMock(return_value="0xabc")
        await swap_exact_input_single(gw, Direction.FORWARD, 777)
        deadline, calls, gas_limit = gw.submit_swap.await_args.args
        assert len(calls) == 1
        assert calls[0] == gw.exact_input_single_call(WPHRS_ADDRESS, USDC_ADDRESS, 500, 777)
        assert deadline > 0
        assert gas_limit == 157_500
