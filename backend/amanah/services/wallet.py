import logging
from decimal import Decimal
from typing import Optional

import httpx
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from amanah.core.config import settings
from amanah.core.security import encrypt_key, decrypt_key
from amanah.exceptions import DuplicateSpendingWallet, InvalidWalletType, WalletCreationFailed
from amanah.models.user import User
from amanah.models.wallet import Wallet
from amanah.schemas.wallet import WalletRead
from amanah.services.chain import ChainClient, format_ether
from amanah.state import PriceCache

logger = logging.getLogger(__name__)


def get_spending_wallet(db: Session, user_id: int) -> Optional[Wallet]:
    return db.query(Wallet).filter(
        Wallet.user_id == user_id,
        Wallet.type == settings.SPENDING_WALLET_TYPE,
    ).order_by(Wallet.id).first()

def signing_key(wallet: Wallet) -> str:
    return decrypt_key(wallet.private_key)


async def request_test_funds(address: str) -> bool:
    """Ask the configured test-network faucet for seed funds. Never raises."""
    if not settings.FAUCET_URL:
        logger.info("No faucet configured, skipping test funds for %s", address)
        return False
    try:
        async with httpx.AsyncClient() as client:
            resp = await client.post(settings.FAUCET_URL, json={"address": address}, timeout=15)
        return resp.is_success
    except httpx.HTTPError as e:
        logger.warning("Faucet request failed for %s: %s", address, e)
        return False


async def create_wallet(db: Session, chain: ChainClient, user: User, name: str, wallet_type: str) -> Wallet:
    if wallet_type not in settings.WALLET_TYPES:
        raise InvalidWalletType(
            f"Invalid wallet type. Must be one of: {', '.join(settings.WALLET_TYPES)}"
        )
    if wallet_type == settings.SPENDING_WALLET_TYPE and get_spending_wallet(db, user.id):
        raise DuplicateSpendingWallet()

    address, private_key = chain.create_account()
    logger.info("Created new wallet for user %s: address=%s type=%s", user.id, address, wallet_type)

    if not await request_test_funds(address):
        logger.warning("No test funds requested for wallet %s", address)

    try:
        balance = await chain.get_balance(address)
    except Exception as e:
        logger.exception("Initial balance read failed for %s", address)
        raise WalletCreationFailed() from e

    wallet = Wallet(
        user_id=user.id,
        name=name,
        type=wallet_type,
        address=address,
        private_key=encrypt_key(private_key),
        balance=balance,
    )
    try:
        db.add(wallet)
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.exception("Saving wallet %s failed", address)
        raise WalletCreationFailed() from e
    db.refresh(wallet)
    return wallet


async def refresh_balances(db: Session, chain: ChainClient, wallets: list[Wallet]):
    """Pull fresh balances for the listing; a failed read keeps the cached value."""
    for wallet in wallets:
        try:
            wallet.balance = await chain.get_balance(wallet.address)
        except Exception as e:
            logger.warning("Balance refresh failed for wallet %s: %s", wallet.id, e)
    db.commit()


def wallet_view(wallet: Wallet, price: PriceCache) -> WalletRead:
    balance = Decimal(wallet.balance or 0)
    return WalletRead(
        id=wallet.id,
        user_id=wallet.user_id,
        name=wallet.name,
        type=wallet.type,
        address=wallet.address,
        balance=format_ether(balance),
        usd_balance=format_ether(price.to_usd(balance)),
        created_at=wallet.created_at,
    )


async def list_wallets(db: Session, chain: ChainClient, user: User, price: PriceCache) -> list[WalletRead]:
    wallets = db.query(Wallet).filter(Wallet.user_id == user.id).order_by(Wallet.id).all()
    await refresh_balances(db, chain, wallets)
    return [wallet_view(w, price) for w in wallets]
