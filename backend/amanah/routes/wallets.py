from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from amanah.deps import get_db, get_current_user, get_state
from amanah.models.user import User
from amanah.schemas.wallet import WalletCreate, WalletCreated, WalletRead
from amanah.services.chain import format_ether
from amanah.services.wallet import create_wallet, list_wallets
from amanah.state import AppState

router = APIRouter(prefix="/api/wallets", tags=["Wallets"])


@router.post("", response_model=WalletCreated)
async def new_wallet(
    payload: WalletCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    state: AppState = Depends(get_state),
):
    wallet = await create_wallet(db, state.chain, current_user, payload.name, payload.type)
    return WalletCreated(address=wallet.address, balance=format_ether(wallet.balance))


@router.get("", response_model=list[WalletRead])
async def my_wallets(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    state: AppState = Depends(get_state),
):
    return await list_wallets(db, state.chain, current_user, state.price)
