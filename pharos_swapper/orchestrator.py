# pharos_swapper/orchestrator.py
import asyncio
import random
from collections import Counter
from contextlib import nullcontext
from typing import Callable, List, Optional, Sequence

from eth_account.signers.local import LocalAccount

from .chain import ChainGateway
from .config import CycleParameters, StepPolicy, MAX_CONCURRENCY
from .strategy import Outcome, RunResult, run_for_wallet
from .util import get_logger, account_prefix, on_error
log = get_logger()

GatewayFactory = Callable[[LocalAccount], ChainGateway]


async def run_batch_once(accounts: Sequence[LocalAccount], params: CycleParameters,
                         gateway_factory: GatewayFactory,
                         policy: Optional[StepPolicy] = None,
                         limit: Optional[asyncio.Semaphore] = None,
                         rng: Optional[random.Random] = None) -> List[RunResult]:
    """One pipeline run per account, all at once; returns when every run has settled."""

    async def one(idx: int, acct: LocalAccount) -> RunResult:
        async with (limit or nullcontext()):
            gw = gateway_factory(acct)
            return await run_for_wallet(idx, gw, params, policy, rng)

    settled = await asyncio.gather(
        *(one(idx, acct) for idx, acct in enumerate(accounts, start=1)),
        return_exceptions=True,
    )
    results: List[RunResult] = []
    for idx, (acct, res) in enumerate(zip(accounts, settled), start=1):
        if isinstance(res, BaseException):
            on_error(log, f"{account_prefix(idx, acct.address)} wallet failed", res)
            res = RunResult(idx, acct.address, Outcome.FAILED, str(res))
        results.append(res)
    return results


async def run_cycles(accounts: Sequence[LocalAccount], params: CycleParameters,
                     gateway_factory: GatewayFactory,
                     policy: Optional[StepPolicy] = None,
                     max_concurrency: int = MAX_CONCURRENCY,
                     rng: Optional[random.Random] = None) -> List[List[RunResult]]:
    limit = asyncio.Semaphore(max_concurrency) if max_concurrency and max_concurrency > 0 else None
    log.info(f"Starting swap operations for {params.repeat} repeat(s)...")

    history: List[List[RunResult]] = []
    for i in range(params.repeat):
        log.info(f"--- Repeat Cycle {i + 1}/{params.repeat} ---")
        results = await run_batch_once(accounts, params, gateway_factory, policy, limit, rng)
        history.append(results)
        log.info(f"--- End of Repeat Cycle {i + 1}/{params.repeat} ---")
        if i < params.repeat - 1:
            log.info(f"Waiting for {params.cycle_delay:g} seconds before next repeat cycle...")
            await asyncio.sleep(params.cycle_delay)

    counts = Counter(r.outcome for results in history for r in results)
    summary = " ".join(f"{o.value}={counts.get(o, 0)}" for o in Outcome)
    log.info(f"All swap operations completed! {summary}")
    return history
