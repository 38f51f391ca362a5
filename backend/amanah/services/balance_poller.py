import asyncio
import logging
from decimal import Decimal
from typing import Optional

from sqlalchemy.orm import Session, sessionmaker

from amanah.core.config import settings
from amanah.live import LiveUpdateManager
from amanah.models.wallet import Wallet
from amanah.services.chain import ChainClient, format_ether

logger = logging.getLogger(__name__)


async def sync_wallet_balance(db: Session, chain: ChainClient, wallet: Wallet) -> Optional[Decimal]:
    """
    Re-read one wallet's on-chain balance and cache it.
    Returns the new balance, or None if the cached value was already current.
    """
    balance = await chain.get_balance(wallet.address)
    if Decimal(wallet.balance or 0) == balance:
        return None
    wallet.balance = balance
    db.commit()
    return balance


async def poll_balances(session_factory: sessionmaker, chain: ChainClient, live: LiveUpdateManager) -> int:
    """
    One poll cycle over every stored wallet. A failure on one wallet is
    logged and the cycle moves on to the next. Returns the number of
    wallets whose balance changed.
    """
    changed = 0
    db = session_factory()
    try:
        wallets = db.query(Wallet).order_by(Wallet.id).all()
        for wallet in wallets:
            try:
                balance = await sync_wallet_balance(db, chain, wallet)
            except Exception:
                db.rollback()
                logger.exception("Balance poll failed for wallet %s (%s)", wallet.id, wallet.address)
                continue

            if balance is None:
                continue
            changed += 1
            await live.balance_update(wallet.user_id, wallet.id, format_ether(balance))
    finally:
        db.close()
    return changed


async def run_balance_poller(session_factory: sessionmaker, chain: ChainClient, live: LiveUpdateManager,
                             interval: float | None = None):
    interval = interval or settings.BALANCE_POLL_INTERVAL
    while True:
        await asyncio.sleep(interval)
        try:
            changed = await poll_balances(session_factory, chain, live)
        except Exception:
            logger.exception("Balance poll cycle failed")
            continue
        if changed:
            logger.info("Balance poll updated %d wallet(s)", changed)
