# pharos_swapper/cli.py
import asyncio
import sys
from typing import Callable, List, Optional

from eth_account.signers.local import LocalAccount

from . import __version__
from .chain import ChainGateway, ensure_connected, get_w3
from .config import (
    PHAROS_RPC, PRIV_FILE, CYCLE_DELAY, IP_CHECK_URL, MAX_CONCURRENCY,
    StepPolicy, load_private_keys, parse_cycle_parameters,
)
from .errors import StartupFatal
from .orchestrator import GatewayFactory, run_cycles
from .util import get_logger, make_account, public_ip, settle_abandoned


def accounts_from_keys(keys: List[str]) -> List[LocalAccount]:
    accounts = []
    for n, pk in enumerate(keys, start=1):
        try:
            accounts.append(make_account(pk))
        except (ValueError, TypeError):
            # never echo the key itself
            raise StartupFatal(f"Invalid private key on line {n}.", {"line": n})
    return accounts


async def run(priv_file: str = PRIV_FILE, ask: Callable[[str], str] = input,
              gateway_factory: Optional[GatewayFactory] = None,
              policy: Optional[StepPolicy] = None,
              cycle_delay: float = CYCLE_DELAY, rpc: str = PHAROS_RPC,
              ip_url: str = IP_CHECK_URL) -> int:
    log = get_logger()
    log.info(f"Starting PHAROS Swap Bot v{__version__}...")
    w3 = None
    try:
        try:
            accounts = accounts_from_keys(load_private_keys(priv_file))
            log.info(f"Loaded {len(accounts)} private key(s) from {priv_file}.")
            ip = await asyncio.to_thread(public_ip, ip_url)
            log.info(f"Current IP: {ip}")

            params = parse_cycle_parameters(
                await asyncio.to_thread(ask, "Enter min amount PHRS to swap (e.g., 0.000001): "),
                await asyncio.to_thread(ask, "Enter max amount PHRS to swap (e.g., 0.000002): "),
                await asyncio.to_thread(ask, "Enter repeat times (default 1): "),
                cycle_delay,
            )
            if gateway_factory is None:
                w3 = get_w3(rpc)
                await ensure_connected(w3)
                gateway_factory = lambda acct: ChainGateway(w3, acct)
        except StartupFatal as e:
            log.error(f"Error: {e}")
            return 1
        except EOFError:
            log.error("Error: run parameters not provided (stdin closed).")
            return 1

        await run_cycles(accounts, params, gateway_factory, policy, MAX_CONCURRENCY)
        # timed-out steps may still hold a broadcast transaction
        await settle_abandoned()
        return 0
    finally:
        if w3 is not None:
            await w3.provider.disconnect()


def main() -> None:
    try:
        code = asyncio.run(run())
    except KeyboardInterrupt:
        get_logger().warning("interrupted")
        code = 130
    sys.exit(code)
