import logging
from decimal import Decimal

from sqlalchemy.orm import Session

from amanah.core.config import settings
from amanah.exceptions import InsufficientFunds
from amanah.models.transaction import Transaction, TransactionStatus, TransactionType
from amanah.models.user import User
from amanah.models.wallet import Wallet
from amanah.schemas.transaction import ZakatResult, ZakatSummary
from amanah.services.chain import format_ether
from amanah.services.transfer import estimate, fresh_balances, notify_parties, record_transaction, submit_and_confirm
from amanah.services.wallet import get_spending_wallet
from amanah.state import AppState, PriceCache

logger = logging.getLogger(__name__)


def calculate_zakat(db: Session, user: User, price: PriceCache) -> ZakatSummary:
    """
    Zakat is due at ZAKAT_RATE on total wealth once that wealth, valued in
    USD at the cached price, reaches the Nisab threshold.
    """
    balances = [Decimal(b or 0) for (b,) in db.query(Wallet.balance).filter(Wallet.user_id == user.id)]
    total = sum(balances, Decimal("0"))
    total_usd = price.to_usd(total)
    return ZakatSummary(
        total_wealth=format_ether(total),
        total_wealth_usd=format_ether(total_usd),
        nisab_threshold_usd=format_ether(settings.NISAB_THRESHOLD_USD),
        zakat_rate=format_ether(settings.ZAKAT_RATE),
        zakat_amount=format_ether(total * settings.ZAKAT_RATE),
        eligible=total_usd >= settings.NISAB_THRESHOLD_USD,
    )


async def pay_zakat(db: Session, state: AppState, user: User, amount: Decimal) -> ZakatResult:
    """
    Send `amount` from the user's spending wallet to the collection address.
    Only the cached balance is checked against `amount`; the gas fee is not
    part of the check.
    """
    wallet = get_spending_wallet(db, user.id)
    if not wallet or Decimal(wallet.balance or 0) < amount:
        raise InsufficientFunds("Insufficient funds")

    chain = state.chain
    to_address = chain.to_checksum(settings.ZAKAT_ADDRESS)

    async with state.wallet_locks.for_wallet(wallet.id):
        gas = await estimate(chain, wallet, to_address, amount)
        receipt = await submit_and_confirm(chain, wallet, to_address, amount, gas)

        balances = await fresh_balances(chain, [wallet])
        tx = record_transaction(db, Transaction(
            from_user_id=user.id,
            to_user_id=user.id,  # no charity user exists, the payer is both ends
            amount=amount,
            type=TransactionType.ZAKAT.value,
            status=TransactionStatus.COMPLETED.value,
            meta={
                "txHash": receipt.tx_hash,
                "blockNumber": receipt.block_number,
                "gasUsed": str(receipt.gas_used),
            },
        ), [wallet], balances)

    logger.info("Zakat of %s %s paid by user %s", format_ether(amount), settings.NATIVE_SYMBOL, user.id)
    await notify_parties(state, tx, [wallet], balances)
    return ZakatResult(tx_hash=receipt.tx_hash)
