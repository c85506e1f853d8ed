# pharos_swapper/dex.py
import math
import time
from enum import Enum
from typing import Optional, Tuple

from .chain import ChainGateway
from .config import (
    WPHRS_ADDRESS, USDC_ADDRESS, SWAP_FEE, WPHRS_DECIMALS,
    GAS_LIMIT_FALLBACK, GAS_ESTIMATE_MARGIN, SWAP_DEADLINE_SEC,
)
from .errors import ChainError
from .util import get_logger, fmt_amount
log = get_logger()


class Direction(Enum):
    FORWARD = "WPHRS→USDC"
    BACKWARD = "USDC→WPHRS"

    def route(self) -> Tuple[str, str]:
        if self is Direction.FORWARD:
            return WPHRS_ADDRESS, USDC_ADDRESS
        return USDC_ADDRESS, WPHRS_ADDRESS


async def ensure_allowance(gw: ChainGateway, token: str, spender: str, amount: int,
                           prefix: str = "", symbol: str = "TOKEN") -> Optional[str]:
    current = await gw.allowance(token, spender)
    if current >= amount:
        log.info(f"{prefix} {symbol} already approved for router.")
        return None
    log.info(f"{prefix} Approving {symbol}...")
    txh = await gw.approve(token, spender, int(amount))
    await gw.wait_for_confirmation(txh)
    log.info(f"{prefix} Approved {symbol} for router | {txh}")
    return txh


async def wrap_native(gw: ChainGateway, amount_wei: int, prefix: str = "") -> str:
    txh = await gw.wrap(amount_wei)
    await gw.wait_for_confirmation(txh)
    log.info(f"{prefix} Wrapped {fmt_amount(amount_wei, WPHRS_DECIMALS)} PHRS to WPHRS | {txh}")
    return txh


async def swap_exact_input_single(gw: ChainGateway, direction: Direction, amount_in: int,
                                  prefix: str = "", fee: int = SWAP_FEE) -> str:
    """
    Single-hop exact-input swap through router.multicall.

    amountOutMinimum and sqrtPriceLimitX96 are both 0: no slippage bound.
    """
    token_in, token_out = direction.route()
    data = gw.exact_input_single_call(token_in, token_out, fee, amount_in)
    deadline = int(time.time()) + SWAP_DEADLINE_SEC

    gas_limit = GAS_LIMIT_FALLBACK
    try:
        estimated = await gw.estimate_swap_gas(deadline, [data])
        gas_limit = math.ceil(int(estimated) * GAS_ESTIMATE_MARGIN)
    except ChainError:
        log.warning(f"{prefix} Estimate gas failed, set default {gas_limit} for {direction.value}.")

    txh = await gw.submit_swap(deadline, [data], gas_limit)
    await gw.wait_for_confirmation(txh)
    log.info(f"{prefix} {direction.value} swap TX: {txh}")
    return txh
