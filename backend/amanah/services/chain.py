# amanah/services/chain.py
"""
Thin async wrapper around web3.py.

Every chain interaction the app performs goes through ChainClient so the
route handlers and background loops can share one instance (and tests can
swap in a fake). Amounts cross this boundary as Decimal ether; wei only
exists inside this module.
"""
import asyncio
import logging
from dataclasses import dataclass
from decimal import Decimal

from eth_account import Account
from web3 import AsyncWeb3, AsyncHTTPProvider, Web3
from web3.exceptions import TransactionNotFound

from amanah.exceptions import ChainUnavailable, ConfirmationTimeout

logger = logging.getLogger(__name__)


def to_wei(amount: Decimal) -> int:
    return int(Web3.to_wei(amount, "ether"))

def from_wei(value: int) -> Decimal:
    return Decimal(Web3.from_wei(value, "ether"))

def format_ether(amount: Decimal) -> str:
    """Plain decimal string without exponent or trailing zeros ("10.001", "0")."""
    return format(Decimal(amount).normalize(), "f")


@dataclass(frozen=True)
class GasEstimate:
    gas: int
    max_fee_per_gas: int
    max_priority_fee_per_gas: int

    @property
    def fee(self) -> Decimal:
        """Worst-case fee in ether at the quoted max fee."""
        return from_wei(self.gas * self.max_fee_per_gas)

    def gas_limit(self, buffer_percent: int) -> int:
        return self.gas * (100 + buffer_percent) // 100


@dataclass(frozen=True)
class Receipt:
    tx_hash: str
    block_number: int
    gas_used: int
    status: int

    @property
    def succeeded(self) -> bool:
        return self.status == 1


class ChainClient:
    def __init__(self, rpc_url: str, poll_latency: float = 1.0):
        self.rpc_url = rpc_url
        self.poll_latency = poll_latency
        self.w3 = AsyncWeb3(AsyncHTTPProvider(rpc_url))

    # ---- Accounts ----
    @staticmethod
    def create_account() -> tuple[str, str]:
        account = Account.create()
        return account.address, Web3.to_hex(account.key)

    @staticmethod
    def is_address(value: str) -> bool:
        return bool(value) and Web3.is_address(value)

    @staticmethod
    def to_checksum(value: str) -> str:
        return Web3.to_checksum_address(value)

    # ---- Reads ----
    async def get_balance(self, address: str) -> Decimal:
        wei = await self.w3.eth.get_balance(self.to_checksum(address))
        return from_wei(wei)

    async def estimate_transfer(self, from_address: str, to_address: str, amount: Decimal) -> GasEstimate:
        block = await self.w3.eth.get_block("latest")
        base_fee = block.get("baseFeePerGas")
        if base_fee is None:
            raise ChainUnavailable()
        priority_fee = await self.w3.eth.max_priority_fee
        gas = await self.w3.eth.estimate_gas({
            "from": self.to_checksum(from_address),
            "to": self.to_checksum(to_address),
            "value": to_wei(amount),
        })
        return GasEstimate(
            gas=gas,
            max_fee_per_gas=base_fee * 2 + priority_fee,
            max_priority_fee_per_gas=priority_fee,
        )

    # ---- Writes ----
    async def send_transfer(
        self,
        private_key: str,
        to_address: str,
        amount: Decimal,
        estimate: GasEstimate,
        gas_limit: int,
    ) -> str:
        account = Account.from_key(private_key)
        tx = {
            "type": 2,
            "chainId": await self.w3.eth.chain_id,
            "nonce": await self.w3.eth.get_transaction_count(account.address, "pending"),
            "to": self.to_checksum(to_address),
            "value": to_wei(amount),
            "gas": gas_limit,
            "maxFeePerGas": estimate.max_fee_per_gas,
            "maxPriorityFeePerGas": estimate.max_priority_fee_per_gas,
        }
        signed = account.sign_transaction(tx)
        tx_hash = await self.w3.eth.send_raw_transaction(signed.raw_transaction)
        return Web3.to_hex(tx_hash)

    async def wait_for_confirmations(self, tx_hash: str, confirmations: int, timeout: float) -> Receipt:
        """
        Wait until the transaction is `confirmations` blocks deep (its own
        block counts as one). The wait is cancelled when `timeout` elapses.
        """
        try:
            return await asyncio.wait_for(self._confirmations(tx_hash, confirmations), timeout)
        except asyncio.TimeoutError:
            logger.warning("Confirmation timeout after %ss for %s", timeout, tx_hash)
            raise ConfirmationTimeout(details={"txHash": tx_hash})

    async def _confirmations(self, tx_hash: str, confirmations: int) -> Receipt:
        while True:
            try:
                receipt = await self.w3.eth.get_transaction_receipt(tx_hash)
                break
            except TransactionNotFound:
                await asyncio.sleep(self.poll_latency)

        # reverted transactions are final, no need to wait for depth
        if receipt["status"] == 1:
            target = receipt["blockNumber"] + confirmations - 1
            while await self.w3.eth.block_number < target:
                await asyncio.sleep(self.poll_latency)

        return Receipt(
            tx_hash=tx_hash,
            block_number=receipt["blockNumber"],
            gas_used=receipt["gasUsed"],
            status=receipt["status"],
        )
