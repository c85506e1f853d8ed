# pharos_swapper/config.py
import os
import random
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import List, Optional
from dotenv import load_dotenv

from .errors import StartupFatal

load_dotenv()

def _env(name: str, default: str = "") -> str:
    v = os.getenv(name, default).strip()
    return v

def _env_float(name: str, default: float) -> float:
    v = _env(name)
    return float(v) if v else float(default)

def _env_int(name: str, default: int) -> int:
    v = _env(name)
    return int(v) if v else int(default)

def _env_bool(name: str, default: bool) -> bool:
    v = _env(name)
    if not v:
        return default
    return v.lower() in ("1","true","yes","y","on")

# Pharos testnet endpoint
PHAROS_RPC = _env("PHAROS_RPC", "https://testnet.dplabs-internal.com")
CHAIN_ID = _env_int("CHAIN_ID", 688688)
RPC_TIMEOUT = _env_int("RPC_TIMEOUT", 30)

# Contracts
WPHRS_ADDRESS = _env("WPHRS_ADDRESS", "0x76aaada469d23216be5f7c596fa25f282ff9b364")
USDC_ADDRESS = _env("USDC_ADDRESS", "0xad902cf99c2de2f1ba5ec4d642fd7e49cae9ee37")
SWAP_ROUTER_ADDRESS = _env("SWAP_ROUTER_ADDRESS", "0x1a4de519154ae51200b0ad7c90f7fac75547888a")

WPHRS_DECIMALS = _env_int("WPHRS_DECIMALS", 18)
USDC_DECIMALS = _env_int("USDC_DECIMALS", 6)
SWAP_FEE = _env_int("SWAP_FEE", 500)  # 0.05%

# Gas
GAS_LIMIT_FALLBACK = _env_int("GAS_LIMIT_FALLBACK", 179_000)
GAS_ESTIMATE_MARGIN = _env_float("GAS_ESTIMATE_MARGIN", 1.05)
WRAP_GAS_LIMIT = _env_int("WRAP_GAS_LIMIT", 100_000)
APPROVE_GAS_LIMIT = _env_int("APPROVE_GAS_LIMIT", 80_000)
SWAP_DEADLINE_SEC = _env_int("SWAP_DEADLINE_SEC", 600)

# Timeouts / retries (seconds)
TX_TIMEOUT = _env_float("TX_TIMEOUT", 60)
TASK_TIMEOUT = _env_float("TASK_TIMEOUT", 5 * 60)
RETRY_ATTEMPTS = _env_int("RETRY_ATTEMPTS", 5)
RETRY_DELAY = _env_float("RETRY_DELAY", 2.5)

# Cycles
CYCLE_DELAY = _env_float("CYCLE_DELAY", 30)
MAX_CONCURRENCY = _env_int("MAX_CONCURRENCY", 0)  # 0 = one task per account, no cap

PRIV_FILE = _env("PRIV_FILE", "priv.txt")
IP_CHECK_URL = _env("IP_CHECK_URL", "https://api.ipify.org")

# ---- Logging flags ----
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()  # DEBUG/INFO/WARN/ERROR
LOG_COLOR = os.getenv("LOG_COLOR", "1") not in ("0","false","False")
LOG_JSON  = os.getenv("LOG_JSON", "0") in ("1","true","True")
DEBUG     = _env_bool("DEBUG", False)


@dataclass(frozen=True)
class AmountRange:
    """Bounds (in PHRS) for the randomly drawn swap amount."""
    min: Decimal
    max: Decimal

    def __post_init__(self):
        if self.min <= 0:
            raise StartupFatal("Invalid min amount. Please enter a positive number.")
        if self.max <= 0 or self.max < self.min:
            raise StartupFatal(
                "Invalid max amount. Please enter a positive number greater than or equal to min amount."
            )

    def draw(self, rng: Optional[random.Random] = None) -> Decimal:
        r = rng or random
        value = r.uniform(float(self.min), float(self.max))
        return Decimal(f"{value:.8f}")


@dataclass(frozen=True)
class CycleParameters:
    amount_range: AmountRange
    repeat: int = 1
    cycle_delay: float = CYCLE_DELAY

    def __post_init__(self):
        if self.repeat < 1:
            raise StartupFatal("Invalid repeat times. Please enter a positive integer.")
        if self.cycle_delay < 0:
            raise StartupFatal("Cycle delay must not be negative.")


@dataclass(frozen=True)
class StepPolicy:
    """Retry budget and wall-clock bound applied to every chain step."""
    attempts: int = RETRY_ATTEMPTS
    delay: float = RETRY_DELAY
    timeout: float = TASK_TIMEOUT


def _parse_amount(raw: str, error: str) -> Decimal:
    try:
        value = Decimal(raw.strip())
    except (InvalidOperation, AttributeError):
        raise StartupFatal(error)
    if not value.is_finite():
        raise StartupFatal(error)
    return value

def parse_cycle_parameters(min_raw: str, max_raw: str, repeat_raw: str = "",
                           cycle_delay: float = CYCLE_DELAY) -> CycleParameters:
    lo = _parse_amount(min_raw, "Invalid min amount. Please enter a positive number.")
    hi = _parse_amount(
        max_raw,
        "Invalid max amount. Please enter a positive number greater than or equal to min amount.",
    )
    repeat_raw = (repeat_raw or "").strip()
    if not repeat_raw:
        repeat = 1
    else:
        try:
            repeat = int(repeat_raw)
        except ValueError:
            raise StartupFatal("Invalid repeat times. Please enter a positive integer.")
    return CycleParameters(AmountRange(lo, hi), repeat, cycle_delay)


def load_private_keys(path: str = PRIV_FILE) -> List[str]:
    """One key per line, blank lines ignored. Missing or empty file is fatal."""
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = f.read()
    except FileNotFoundError:
        raise StartupFatal(
            f"{path} not found. Please create it and add your private keys, one per line.",
            {"path": path},
        )
    except OSError as e:
        raise StartupFatal(f"Error reading private keys from {path}: {e}", {"path": path})
    keys = [line.strip() for line in data.splitlines()]
    keys = [k for k in keys if k]
    if not keys:
        raise StartupFatal(
            f"No private keys found in {path}. Please add them, one per line.",
            {"path": path},
        )
    return keys
