"""
Outbound transfers from a user's spending wallet.

The balance check, broadcast and bookkeeping for one source wallet run under
that wallet's lock, so two concurrent requests cannot both pass the check
against the same balance. Nothing is written to the store until the chain
reports the transaction confirmed; the Transaction row and the refreshed
wallet balances are then committed together.
"""
import logging
from decimal import Decimal
from typing import Optional

from sqlalchemy.orm import Session

from amanah.core.config import settings
from amanah.exceptions import (
    AmanahError,
    InsufficientFunds,
    InvalidAddress,
    RecipientNotFound,
    RecipientWalletNotFound,
    SourceWalletNotFound,
    TransferFailed,
)
from amanah.models.transaction import Transaction, TransactionStatus, TransactionType
from amanah.models.user import User
from amanah.models.wallet import Wallet
from amanah.schemas.transaction import TransferCreate, TransferResult
from amanah.services.chain import ChainClient, GasEstimate, Receipt, format_ether
from amanah.services.wallet import get_spending_wallet, signing_key
from amanah.state import AppState

logger = logging.getLogger(__name__)


def chain_error(e: Exception) -> AmanahError:
    """Map a node/library error raised while estimating or submitting."""
    if isinstance(e, AmanahError):
        return e
    if "insufficient funds" in str(e).lower():
        return InsufficientFunds()
    return TransferFailed()


async def estimate(chain: ChainClient, wallet: Wallet, to_address: str, amount: Decimal) -> GasEstimate:
    try:
        return await chain.estimate_transfer(wallet.address, to_address, amount)
    except Exception as e:
        logger.warning("Gas estimation failed for wallet %s: %s", wallet.id, e)
        raise chain_error(e) from e


async def submit_and_confirm(chain: ChainClient, wallet: Wallet, to_address: str, amount: Decimal,
                             gas: GasEstimate) -> Receipt:
    """
    Broadcast `amount` to `to_address` and wait for confirmation.
    The fee is paid on top of `amount`. Raises ConfirmationTimeout when the
    chain outcome is still unknown after the configured timeout.
    """
    try:
        tx_hash = await chain.send_transfer(
            signing_key(wallet),
            to_address,
            amount,
            gas,
            gas.gas_limit(settings.GAS_LIMIT_BUFFER_PERCENT),
        )
    except Exception as e:
        logger.error("Submitting transfer from wallet %s failed: %s", wallet.id, e)
        raise chain_error(e) from e

    logger.info("Submitted %s %s from wallet %s to %s: %s",
                format_ether(amount), settings.NATIVE_SYMBOL, wallet.id, to_address, tx_hash)

    try:
        receipt = await chain.wait_for_confirmations(tx_hash, settings.CONFIRMATIONS, settings.CONFIRMATION_TIMEOUT)
    except AmanahError:
        raise
    except Exception as e:
        logger.error("Waiting for confirmation of %s failed: %s", tx_hash, e)
        raise TransferFailed(details={"txHash": tx_hash}) from e
    if not receipt.succeeded:
        logger.error("Transaction %s reverted in block %s", tx_hash, receipt.block_number)
        raise TransferFailed("Transaction failed to be confirmed", details={"txHash": tx_hash})

    logger.info("Confirmed %s in block %s (gas used %s)", tx_hash, receipt.block_number, receipt.gas_used)
    return receipt


async def fresh_balances(chain: ChainClient, wallets: list[Wallet]) -> dict[int, Decimal]:
    balances = {}
    for wallet in wallets:
        try:
            balances[wallet.id] = await chain.get_balance(wallet.address)
        except Exception as e:
            # the balance poller will catch up
            logger.warning("Post-transfer balance read failed for wallet %s: %s", wallet.id, e)
    return balances


def record_transaction(db: Session, tx: Transaction, wallets: list[Wallet],
                       balances: dict[int, Decimal]) -> Transaction:
    """Persist the confirmed transaction and the new balances in one commit."""
    try:
        db.add(tx)
        for wallet in wallets:
            if wallet.id in balances:
                wallet.balance = balances[wallet.id]
        db.commit()
    except Exception:
        db.rollback()
        logger.exception("Recording confirmed transaction %s failed", (tx.meta or {}).get("txHash"))
        raise
    db.refresh(tx)
    return tx


async def notify_parties(state: AppState, tx: Transaction, wallets: list[Wallet],
                         balances: dict[int, Decimal]):
    for wallet in wallets:
        if wallet.id in balances:
            await state.live.balance_update(wallet.user_id, wallet.id, format_ether(balances[wallet.id]))
    for user_id in {tx.from_user_id, tx.to_user_id}:
        await state.live.transaction_update(user_id, tx.id)


def _resolve_username(db: Session, username: str) -> tuple[User, Wallet]:
    user = db.query(User).filter(User.username == username).first()
    if not user:
        raise RecipientNotFound()
    wallet = get_spending_wallet(db, user.id)
    if not wallet:
        raise RecipientWalletNotFound()
    return user, wallet


def _wallet_by_address(db: Session, address: str) -> Optional[Wallet]:
    return db.query(Wallet).filter(Wallet.address == address).first()


async def send_transfer(db: Session, state: AppState, sender: User, payload: TransferCreate) -> TransferResult:
    chain = state.chain
    identifier = payload.recipient_identifier
    amount = payload.amount

    recipient_user: Optional[User] = None
    recipient_wallet: Optional[Wallet] = None
    if not payload.use_address:
        recipient_user, recipient_wallet = _resolve_username(db, identifier)

    sender_wallet = get_spending_wallet(db, sender.id)
    if not sender_wallet:
        raise SourceWalletNotFound()

    if payload.use_address:
        if not chain.is_address(identifier):
            raise InvalidAddress()
        recipient_address = chain.to_checksum(identifier)
        # paying a raw address that happens to be one of ours
        recipient_wallet = _wallet_by_address(db, recipient_address)
    else:
        recipient_address = recipient_wallet.address

    async with state.wallet_locks.for_wallet(sender_wallet.id):
        try:
            balance = await chain.get_balance(sender_wallet.address)
        except Exception as e:
            logger.error("Balance read failed for wallet %s: %s", sender_wallet.id, e)
            raise TransferFailed() from e
        gas = await estimate(chain, sender_wallet, recipient_address, amount)

        total_required = amount + gas.fee
        if balance < total_required:
            logger.info("Rejected transfer from wallet %s: needs %s, has %s",
                        sender_wallet.id, total_required, balance)
            raise InsufficientFunds(
                f"Insufficient funds. Transaction requires {format_ether(amount)} {settings.NATIVE_SYMBOL} "
                f"plus approximately {format_ether(gas.fee)} {settings.NATIVE_SYMBOL} for gas fees",
                details={
                    "amount": format_ether(amount),
                    "estimatedGasFees": format_ether(gas.fee),
                    "totalRequired": format_ether(total_required),
                    "currentBalance": format_ether(balance),
                },
            )

        receipt = await submit_and_confirm(chain, sender_wallet, recipient_address, amount, gas)

        if recipient_wallet is not None:
            to_user_id = recipient_wallet.user_id
        else:
            to_user_id = sender.id

        touched = [sender_wallet]
        if recipient_wallet is not None and recipient_wallet.id != sender_wallet.id:
            touched.append(recipient_wallet)
        balances = await fresh_balances(chain, touched)

        tx = record_transaction(db, Transaction(
            from_user_id=sender.id,
            to_user_id=to_user_id,
            amount=amount,
            type=TransactionType.TRANSFER.value,
            status=TransactionStatus.COMPLETED.value,
            meta={
                "note": payload.note,
                "txHash": receipt.tx_hash,
                "blockNumber": receipt.block_number,
                "gasUsed": str(receipt.gas_used),
                "recipientAddress": recipient_address if payload.use_address else None,
            },
        ), touched, balances)

    await notify_parties(state, tx, touched, balances)

    return TransferResult(
        tx_hash=receipt.tx_hash,
        block_number=receipt.block_number,
        gas_used=str(receipt.gas_used),
    )
