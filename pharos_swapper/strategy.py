# pharos_swapper/strategy.py
import random
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, Optional

from web3 import Web3

from .chain import ChainGateway
from .config import (
    CycleParameters, StepPolicy,
    WPHRS_ADDRESS, USDC_ADDRESS, SWAP_ROUTER_ADDRESS, USDC_DECIMALS, WPHRS_DECIMALS,
)
from .dex import Direction, ensure_allowance, swap_exact_input_single, wrap_native
from .errors import AccountSkip, PipelineFailure
from .util import get_logger, account_prefix, fmt_amount, on_error, with_retries, within_deadline
log = get_logger()


class Outcome(str, Enum):
    DONE = "done"
    SKIPPED = "skipped"
    NOTHING_TO_SWAP_BACK = "nothing_to_swap_back"
    FAILED = "failed"


@dataclass
class PipelineContext:
    """Scratch state of one account run. Never shared between runs."""
    index: int
    address: str
    prefix: str
    amount_wei: int = 0
    stable_balance: int = 0


@dataclass(frozen=True)
class RunResult:
    index: int
    address: str
    outcome: Outcome
    detail: str = ""


async def _step(ctx: PipelineContext, policy: StepPolicy, step: str,
                fn: Callable[..., Awaitable[Any]], *args: Any) -> Any:
    try:
        return await within_deadline(
            with_retries(fn, *args, prefix=ctx.prefix, step=step,
                         attempts=policy.attempts, delay=policy.delay),
            policy.timeout,
            f"{step} timeout",
        )
    except Exception as e:
        raise PipelineFailure(step, e) from e


async def run_for_wallet(index: int, gw: ChainGateway, params: CycleParameters,
                         policy: Optional[StepPolicy] = None,
                         rng: Optional[random.Random] = None) -> RunResult:
    """
    Wrap -> approve WPHRS -> swap to USDC -> read USDC -> approve USDC -> swap back.

    Steps run strictly in order, each retried and deadline-bound on its own.
    Skips and failures end this account's run only and come back as a
    RunResult; nothing is raised to the caller.
    """
    policy = policy or StepPolicy()
    ctx = PipelineContext(index=index, address=gw.address, prefix=account_prefix(index, gw.address))

    def result(outcome: Outcome, detail: str = "") -> RunResult:
        return RunResult(ctx.index, ctx.address, outcome, detail)

    try:
        amount = params.amount_range.draw(rng)
        ctx.amount_wei = Web3.to_wei(amount, "ether")

        native = await _step(ctx, policy, "CheckNativeBalance", gw.native_balance)
        if native < ctx.amount_wei:
            raise AccountSkip("Not enough PHRS to wrap.")

        await _step(ctx, policy, "WrapPHRS", wrap_native, gw, ctx.amount_wei, ctx.prefix)
        await _step(ctx, policy, "ApproveWPHRS", ensure_allowance,
                    gw, WPHRS_ADDRESS, SWAP_ROUTER_ADDRESS, ctx.amount_wei, ctx.prefix, "WPHRS")
        await _step(ctx, policy, "SwapWPHRSUSDC", swap_exact_input_single,
                    gw, Direction.FORWARD, ctx.amount_wei, ctx.prefix)

        ctx.stable_balance = await _step(ctx, policy, "CheckUSDCBalance", gw.token_balance, USDC_ADDRESS)
        log.info(f"{ctx.prefix} USDC balance after swap: {fmt_amount(ctx.stable_balance, USDC_DECIMALS)}")

        await _step(ctx, policy, "ApproveUSDC", ensure_allowance,
                    gw, USDC_ADDRESS, SWAP_ROUTER_ADDRESS, ctx.stable_balance, ctx.prefix, "USDC")
        if ctx.stable_balance <= 0:
            log.warning(f"{ctx.prefix} No USDC to swap back.")
            return result(Outcome.NOTHING_TO_SWAP_BACK, "No USDC to swap back.")

        await _step(ctx, policy, "SwapUSDCWPHRS", swap_exact_input_single,
                    gw, Direction.BACKWARD, ctx.stable_balance, ctx.prefix)
    except AccountSkip as e:
        log.warning(f"{ctx.prefix} {e.reason}")
        return result(Outcome.SKIPPED, e.reason)
    except PipelineFailure as e:
        on_error(log, f"{ctx.prefix} Swap error at {e.step}", e.cause)
        return result(Outcome.FAILED, str(e))

    log.info(f"{ctx.prefix} Done: {fmt_amount(ctx.amount_wei, WPHRS_DECIMALS)} PHRS cycled through USDC")
    return result(Outcome.DONE)
