import logging

import pytest
from eth_account import Account

from pharos_swapper.config import WPHRS_ADDRESS, USDC_ADDRESS
from pharos_swapper.errors import ChainError
from pharos_swapper.util import get_logger

TEST_KEYS = ["0x" + "11" * 32, "0x" + "22" * 32, "0x" + "33" * 32]


class FakeGateway:
    """In-memory stand-in for ChainGateway; records every call."""

    def __init__(self, address, native=10**18, stable_out=2_500_000,
                 allowances=None, fail=None, slow=None):
        self.address = address
        self.native = native
        self.stable_out = stable_out
        self.stable = 0
        self.allowances = {k.lower(): v for k, v in (allowances or {}).items()}
        # method name -> remaining failures (-1 = always)
        self.fail = dict(fail or {})
        # method name -> seconds to sleep before answering
        self.slow = dict(slow or {})
        self.calls = []
        self.approvals = []
        self.swaps = []
        self.confirmed = []

    async def _enter(self, name):
        self.calls.append(name)
        if name in self.slow:
            import asyncio
            await asyncio.sleep(self.slow[name])
        left = self.fail.get(name, 0)
        if left:
            if left > 0:
                self.fail[name] = left - 1
            raise ChainError(f"{name} boom", ChainError.NETWORK)

    async def native_balance(self):
        await self._enter("native_balance")
        return self.native

    async def token_balance(self, token):
        await self._enter("token_balance")
        return self.stable if token.lower() == USDC_ADDRESS.lower() else 0

    async def allowance(self, token, spender):
        await self._enter("allowance")
        return self.allowances.get(token.lower(), 0)

    async def approve(self, token, spender, amount):
        await self._enter("approve")
        self.allowances[token.lower()] = amount
        self.approvals.append((token.lower(), amount))
        return f"0xapprove{len(self.approvals)}"

    async def wrap(self, amount_wei):
        await self._enter("wrap")
        self.native -= amount_wei
        return "0xwrap"

    def exact_input_single_call(self, token_in, token_out, fee, amount_in):
        # selector + the first words of the params tuple
        word = lambda addr: bytes(12) + bytes.fromhex(addr[2:])
        return (bytes.fromhex("04e45aaf") + word(token_in) + word(token_out)
                + fee.to_bytes(32, "big") + word(self.address) + amount_in.to_bytes(32, "big"))

    async def estimate_swap_gas(self, deadline, calls):
        await self._enter("estimate_swap_gas")
        return 150_000

    async def submit_swap(self, deadline, calls, gas_limit):
        await self._enter("submit_swap")
        token_in = "0x" + calls[0][16:36].hex()
        if token_in == WPHRS_ADDRESS.lower():
            self.swaps.append(("forward", gas_limit))
            self.stable += self.stable_out
        else:
            self.swaps.append(("backward", gas_limit))
            self.stable = 0
        return f"0xswap{len(self.swaps)}"

    async def wait_for_confirmation(self, tx_hash):
        await self._enter("wait_for_confirmation")
        self.confirmed.append(tx_hash)
        return {"status": 1, "transactionHash": tx_hash}


class _ListHandler(logging.Handler):
    def __init__(self):
        super().__init__()
        self.records = []

    def emit(self, record):
        self.records.append(record)


@pytest.fixture
def accounts():
    return [Account.from_key(k) for k in TEST_KEYS[:2]]


@pytest.fixture
def fake_gateway(accounts):
    return FakeGateway(accounts[0].address)


@pytest.fixture
def log_messages():
    h = _ListHandler()
    log = get_logger()
    log.addHandler(h)
    yield h.records
    log.removeHandler(h)


@pytest.fixture
def make_gateway():
    return FakeGateway
