from pydantic import BaseModel, Field
from datetime import datetime
from typing import Optional

class WalletCreate(BaseModel):
    name: str = Field(min_length=1, max_length=64)
    type: str

class WalletCreated(BaseModel):
    success: bool = True
    address: str
    balance: str

class WalletRead(BaseModel):
    """Wallet as returned to its owner. The private key never leaves the server."""
    id: int
    user_id: int = Field(serialization_alias="userId")
    name: str
    type: str
    address: str
    balance: str
    usd_balance: str = Field(serialization_alias="usdBalance")
    created_at: Optional[datetime] = Field(None, serialization_alias="createdAt")
