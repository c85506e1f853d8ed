# pharos_swapper/chain.py
from contextlib import contextmanager
from typing import Any, Dict, List

import aiohttp
from eth_account.signers.local import LocalAccount
from web3 import AsyncHTTPProvider, AsyncWeb3, Web3
from web3.exceptions import ContractLogicError
from web3.types import TxParams

from .config import (
    PHAROS_RPC, RPC_TIMEOUT, CHAIN_ID, TX_TIMEOUT,
    WPHRS_ADDRESS, SWAP_ROUTER_ADDRESS, WRAP_GAS_LIMIT, APPROVE_GAS_LIMIT,
)
from .errors import ChainError, StartupFatal
from .util import erc20_min_abi, swap_router_abi


def get_w3(rpc: str = PHAROS_RPC) -> AsyncWeb3:
    if not rpc:
        raise StartupFatal("PHAROS_RPC required (.env)")
    provider = AsyncHTTPProvider(
        rpc, request_kwargs={"timeout": aiohttp.ClientTimeout(total=RPC_TIMEOUT)}
    )
    return AsyncWeb3(provider)

async def ensure_connected(w3: AsyncWeb3) -> None:
    try:
        ok = await w3.is_connected()
    except Exception as e:
        raise StartupFatal(f"RPC not connected: {e}")
    if not ok:
        raise StartupFatal("RPC not connected")


def _classify(exc: BaseException) -> str:
    text = str(exc).lower()
    if "insufficient funds" in text:
        return ChainError.INSUFFICIENT_FUNDS
    if isinstance(exc, ContractLogicError) or "revert" in text:
        return ChainError.REVERT
    return ChainError.NETWORK

@contextmanager
def _chain_errors(op: str):
    try:
        yield
    except ChainError:
        raise
    except Exception as e:
        raise ChainError(f"{op} failed: {e}", _classify(e), cause=e) from e


class ChainGateway:
    """
    Chain access for a single account: reads, signed sends, confirmations.

    Holds no state between calls besides the connection and the signer, so one
    instance per account run is enough and nothing is shared across accounts.
    """

    def __init__(self, w3: AsyncWeb3, acct: LocalAccount,
                 chain_id: int = CHAIN_ID, tx_timeout: float = TX_TIMEOUT):
        self.w3 = w3
        self.acct = acct
        self.chain_id = chain_id
        self.tx_timeout = tx_timeout
        self.router = w3.eth.contract(
            address=Web3.to_checksum_address(SWAP_ROUTER_ADDRESS), abi=swap_router_abi()
        )

    @property
    def address(self) -> str:
        return self.acct.address

    def erc20(self, token: str):
        return self.w3.eth.contract(address=Web3.to_checksum_address(token), abi=erc20_min_abi())

    def exact_input_single_call(self, token_in: str, token_out: str, fee: int,
                                amount_in: int) -> bytes:
        """Router calldata for one exactInputSingle paying out to this account, no slippage bound."""
        params = (
            Web3.to_checksum_address(token_in),
            Web3.to_checksum_address(token_out),
            int(fee),
            self.address,
            int(amount_in),
            0,  # amountOutMinimum
            0,  # sqrtPriceLimitX96
        )
        return Web3.to_bytes(hexstr=self.router.encode_abi("exactInputSingle", args=[params]))

    async def _tx_base(self, gas_limit: int, value: int = 0) -> TxParams:
        return {
            "from": self.address,
            "nonce": await self.w3.eth.get_transaction_count(self.address),
            "gasPrice": await self.w3.eth.gas_price,
            "gas": gas_limit,
            "value": value,
            "chainId": self.chain_id,
        }

    async def _send(self, tx: TxParams) -> str:
        signed = self.acct.sign_transaction(tx)
        txh = await self.w3.eth.send_raw_transaction(signed.raw_transaction)
        return Web3.to_hex(txh)

    # --- reads ---

    async def native_balance(self) -> int:
        with _chain_errors("getBalance"):
            return await self.w3.eth.get_balance(self.address)

    async def token_balance(self, token: str) -> int:
        with _chain_errors("balanceOf"):
            return await self.erc20(token).functions.balanceOf(self.address).call()

    async def allowance(self, token: str, spender: str) -> int:
        with _chain_errors("allowance"):
            return await self.erc20(token).functions.allowance(
                self.address, Web3.to_checksum_address(spender)
            ).call()

    async def estimate_swap_gas(self, deadline: int, calls: List[bytes]) -> int:
        with _chain_errors("estimateGas"):
            return await self.router.functions.multicall(deadline, calls).estimate_gas(
                {"from": self.address}
            )

    # --- writes (return tx hash right after broadcast) ---

    async def approve(self, token: str, spender: str, amount: int) -> str:
        with _chain_errors("approve"):
            tx = await self._tx_base(APPROVE_GAS_LIMIT)
            tx_data = await self.erc20(token).functions.approve(
                Web3.to_checksum_address(spender), int(amount)
            ).build_transaction(tx)
            return await self._send(tx_data)

    async def wrap(self, amount_wei: int) -> str:
        with _chain_errors("deposit"):
            tx = await self._tx_base(WRAP_GAS_LIMIT, value=int(amount_wei))
            tx_data = await self.erc20(WPHRS_ADDRESS).functions.deposit().build_transaction(tx)
            return await self._send(tx_data)

    async def submit_swap(self, deadline: int, calls: List[bytes], gas_limit: int) -> str:
        with _chain_errors("multicall"):
            tx = await self._tx_base(gas_limit)
            tx_data = await self.router.functions.multicall(deadline, calls).build_transaction(tx)
            return await self._send(tx_data)

    async def wait_for_confirmation(self, tx_hash: str) -> Dict[str, Any]:
        with _chain_errors("waitForConfirmation"):
            receipt = await self.w3.eth.wait_for_transaction_receipt(
                tx_hash, timeout=self.tx_timeout
            )
        if receipt.get("status") != 1:
            raise ChainError(f"Transaction reverted: {tx_hash}", ChainError.REVERT, tx_hash=tx_hash)
        return receipt
