# pharos_swapper/util.py
import asyncio
import time
from typing import Any, Awaitable, Callable, Optional, Set, TypeVar

import requests
from eth_account import Account

# --- pretty logging utils ---
import logging, sys
from .config import LOG_LEVEL, LOG_COLOR, LOG_JSON, DEBUG, IP_CHECK_URL
from .errors import TimeoutFailure

T = TypeVar("T")

RESET = "\x1b[0m"
COLORS = {
    "DEBUG": "\x1b[38;5;245m",
    "INFO":  "\x1b[38;5;39m",
    "WARNING": "\x1b[38;5;214m",
    "ERROR": "\x1b[38;5;203m",
}

class _HumanFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        level = record.levelname
        msg = record.getMessage()
        ts = time.strftime("%H:%M:%S", time.localtime(record.created))
        tag = {"WARNING": "warn", "CRITICAL": "crit"}.get(level, level.lower())
        if LOG_COLOR:
            color = COLORS.get(level, "")
            return f"{ts} {color}{tag:>5}{RESET} {msg}"
        return f"{ts} {tag:>5} {msg}"

class _JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        import json
        payload = {
            "ts": round(record.created, 3),
            "level": record.levelname.lower(),
            "msg": record.getMessage(),
            "logger": record.name,
        }
        if DEBUG and record.exc_info:
            payload["exc"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=False)

_log = None

def get_logger(name="pharos"):
    global _log
    return _log if _log else init_logging(name)

def init_logging(name="pharos"):
    global _log
    level = "WARNING" if LOG_LEVEL == "WARN" else LOG_LEVEL
    log = logging.getLogger(name)
    log.setLevel(getattr(logging, level, logging.INFO))
    h = logging.StreamHandler(sys.stdout)
    h.setLevel(getattr(logging, level, logging.INFO))
    h.setFormatter(_JsonFormatter() if LOG_JSON else _HumanFormatter())
    # avoid duplicate handlers
    log.handlers[:] = [h]
    log.propagate = False
    _log = log
    return log

# --- pretty helpers ---
def short(x: object, keep: int = 4) -> str:
    if x is None:
        return "-"
    s = str(x)
    if s.startswith("0x") and len(s) > 2*keep+2:
        return f"{s[:2+keep]}…{s[-keep:]}"
    if len(s) > keep*2:
        return f"{s[:keep]}…{s[-keep:]}"
    return s

def fmt_amount(raw_amount: int, decimals: int) -> str:
    if decimals <= 0:
        return str(raw_amount)
    q = 10 ** decimals
    whole = raw_amount // q
    frac = raw_amount % q
    if frac == 0:
        return f"{whole}"
    # trim trailing zeros, limit length
    s = f"{frac:0{decimals}d}".rstrip("0")
    s = s[:8]  # keep short
    return f"{whole}.{s}"

def account_prefix(index: int, address: str) -> str:
    return f"[{index}] [{short(address)}]"

def on_error(log, msg: str, exc: Exception = None):
    if DEBUG and exc:
        log.error(msg, exc_info=exc)
    else:
        log.error(f"{msg}: {exc}" if exc else msg)

def make_account(pk: str):
    return Account.from_key(pk)

def public_ip(url: str = IP_CHECK_URL, timeout: float = 10) -> str:
    """Best effort, only used for the startup log line."""
    if not url:
        return "N/A"
    try:
        r = requests.get(url, timeout=timeout)
        r.raise_for_status()
        return r.text.strip() or "N/A"
    except requests.RequestException as e:
        get_logger().debug(f"ip lookup failed: {e}")
        return "N/A"

# --- retry / deadline ---

async def with_retries(
    fn: Callable[..., Awaitable[T]], *args: Any,
    prefix: str = "", step: str = "", attempts: int = 5, delay: float = 2.5,
) -> T:
    """
    Await fn(*args) up to `attempts` times with a fixed `delay` between tries.
    The last exception is re-raised unchanged once the budget is spent.
    """
    if attempts < 1:
        raise ValueError("attempts must be >= 1")
    log = get_logger()
    last_error: Optional[BaseException] = None
    for attempt in range(1, attempts + 1):
        try:
            return await fn(*args)
        except Exception as e:
            last_error = e
            log.error(f"{prefix} [{step}] Failed attempt {attempt}/{attempts}: {e}")
            if attempt < attempts:
                await asyncio.sleep(delay)
    raise last_error

# tasks abandoned by within_deadline; held so they are not garbage collected mid-flight
_abandoned: Set[asyncio.Future] = set()

def _discard_result(task: asyncio.Future) -> None:
    _abandoned.discard(task)
    if task.cancelled():
        return
    exc = task.exception()
    if exc is not None:
        get_logger().debug(f"abandoned task finished with error: {exc}")

async def within_deadline(aw: Awaitable[T], timeout: float, label: str = "Timeout") -> T:
    """
    Race `aw` against `timeout` seconds. On expiry raise TimeoutFailure(label).
    The operation is not cancelled: a broadcast transaction cannot be taken
    back, so the task keeps running and its outcome is dropped.
    """
    task = asyncio.ensure_future(aw)
    done, _ = await asyncio.wait({task}, timeout=timeout)
    if task in done:
        return task.result()
    _abandoned.add(task)
    task.add_done_callback(_discard_result)
    raise TimeoutFailure(label, timeout)

async def settle_abandoned() -> int:
    """Wait for the abandoned tasks of the running loop to finish; returns how many there were."""
    loop = asyncio.get_running_loop()
    pending = [t for t in _abandoned if t.get_loop() is loop]
    if pending:
        get_logger().info(f"Waiting for {len(pending)} abandoned step(s) to settle...")
        await asyncio.gather(*pending, return_exceptions=True)
    return len(pending)

# --- ABIs ---

def erc20_min_abi():
    # balanceOf, approve, allowance + WETH-style deposit
    return [
        {"constant":True,"inputs":[{"name":"owner","type":"address"}],"name":"balanceOf","outputs":[{"name":"","type":"uint256"}],"type":"function"},
        {"constant":False,"inputs":[{"name":"spender","type":"address"},{"name":"value","type":"uint256"}],"name":"approve","outputs":[{"name":"","type":"bool"}],"type":"function"},
        {"constant":True,"inputs":[{"name":"owner","type":"address"},{"name":"spender","type":"address"}],"name":"allowance","outputs":[{"name":"","type":"uint256"}],"type":"function"},
        {"constant":False,"inputs":[],"name":"deposit","outputs":[],"payable":True,"stateMutability":"payable","type":"function"},
    ]

def swap_router_abi():
    # multicall(deadline, bytes[]) + exactInputSingle (SwapRouter02 struct, no deadline field)
    return [
      {
        "name":"multicall","type":"function","stateMutability":"payable",
        "inputs":[{"name":"deadline","type":"uint256"},{"name":"data","type":"bytes[]"}],
        "outputs":[{"name":"results","type":"bytes[]"}]
      },
      {
        "name":"exactInputSingle","type":"function","stateMutability":"payable",
        "inputs":[{"name":"params","type":"tuple","components":[
          {"name":"tokenIn","type":"address"},
          {"name":"tokenOut","type":"address"},
          {"name":"fee","type":"uint24"},
          {"name":"recipient","type":"address"},
          {"name":"amountIn","type":"uint256"},
          {"name":"amountOutMinimum","type":"uint256"},
          {"name":"sqrtPriceLimitX96","type":"uint160"}
        ]}],
        "outputs":[{"name":"amountOut","type":"uint256"}]
      }
    ]
