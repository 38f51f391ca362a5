import asyncio
from datetime import datetime, timezone
from decimal import Decimal
from typing import Dict, Optional

from amanah.live import LiveUpdateManager
from amanah.services.chain import ChainClient


class PriceCache:
    def __init__(self):
        self.usd = Decimal("0")
        self.updated_at: Optional[datetime] = None

    def set(self, usd: Decimal):
        self.usd = usd
        self.updated_at = datetime.now(timezone.utc)

    def to_usd(self, amount: Decimal) -> Decimal:
        return amount * self.usd


class WalletLocks:
    """Serializes check-then-submit per source wallet."""

    def __init__(self):
        self._locks: Dict[int, asyncio.Lock] = {}

    def for_wallet(self, wallet_id: int) -> asyncio.Lock:
        lock = self._locks.get(wallet_id)
        if lock is None:
            lock = self._locks[wallet_id] = asyncio.Lock()
        return lock


class AppState:
    """Process-wide state owned by the application lifespan."""

    def __init__(self, chain: ChainClient):
        self.chain = chain
        self.price = PriceCache()
        self.live = LiveUpdateManager()
        self.wallet_locks = WalletLocks()
        self.tasks: list[asyncio.Task] = []

    async def stop(self):
        for task in self.tasks:
            task.cancel()
        await asyncio.gather(*self.tasks, return_exceptions=True)
        self.tasks.clear()
