from fastapi import APIRouter, Depends
from sqlalchemy import or_
from sqlalchemy.orm import Session

from amanah.deps import get_db, get_current_user, get_state
from amanah.models.transaction import Transaction
from amanah.models.user import User
from amanah.schemas.transaction import (
    TransactionRead,
    TransferCreate,
    TransferResult,
    ZakatPayment,
    ZakatResult,
    ZakatSummary,
)
from amanah.services.transfer import send_transfer
from amanah.services.zakat import calculate_zakat, pay_zakat
from amanah.state import AppState

router = APIRouter(prefix="/api", tags=["Transactions"])


@router.get("/transactions", response_model=list[TransactionRead])
def my_transactions(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return (
        db.query(Transaction)
        .filter(or_(
            Transaction.from_user_id == current_user.id,
            Transaction.to_user_id == current_user.id,
        ))
        .order_by(Transaction.created_at.desc(), Transaction.id.desc())
        .all()
    )


@router.post("/transactions/send", response_model=TransferResult)
async def send_money(
    payload: TransferCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    state: AppState = Depends(get_state),
):
    return await send_transfer(db, state, current_user, payload)


@router.post("/transactions/zakat", response_model=ZakatResult)
async def zakat_payment(
    payload: ZakatPayment,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    state: AppState = Depends(get_state),
):
    return await pay_zakat(db, state, current_user, payload.amount)


@router.get("/zakat", response_model=ZakatSummary)
def zakat_summary(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    state: AppState = Depends(get_state),
):
    """Zakat due on the caller's combined wallet balances."""
    return calculate_zakat(db, current_user, state.price)
