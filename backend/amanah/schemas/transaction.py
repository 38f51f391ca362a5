from pydantic import BaseModel, Field, field_serializer, model_validator
from decimal import Decimal
from datetime import datetime
from typing import Any, Optional
from amanah.services.chain import format_ether

class TransferCreate(BaseModel):
    recipient: Optional[str] = None
    recipient_username: Optional[str] = Field(None, alias="recipientUsername")
    amount: Decimal = Field(gt=0, decimal_places=18)
    note: Optional[str] = None
    use_address: bool = Field(False, alias="useAddress")

    class Config:
        populate_by_name = True

    @model_validator(mode="after")
    def require_recipient(self):
        if not (self.recipient or self.recipient_username):
            raise ValueError("recipient or recipientUsername is required")
        return self

    @property
    def recipient_identifier(self) -> str:
        # address mode only reads `recipient`; username mode accepts either field
        if self.use_address:
            return (self.recipient or "").strip()
        return (self.recipient_username or self.recipient).strip()

class ZakatPayment(BaseModel):
    amount: Decimal = Field(gt=0, decimal_places=18)

class TransferResult(BaseModel):
    success: bool = True
    tx_hash: str = Field(serialization_alias="txHash")
    block_number: int = Field(serialization_alias="blockNumber")
    gas_used: str = Field(serialization_alias="gasUsed")

class ZakatResult(BaseModel):
    success: bool = True
    tx_hash: str = Field(serialization_alias="txHash")

class ZakatSummary(BaseModel):
    total_wealth: str = Field(serialization_alias="totalWealth")
    total_wealth_usd: str = Field(serialization_alias="totalWealthUsd")
    nisab_threshold_usd: str = Field(serialization_alias="nisabThresholdUsd")
    zakat_rate: str = Field(serialization_alias="zakatRate")
    zakat_amount: str = Field(serialization_alias="zakatAmount")
    eligible: bool

class TransactionRead(BaseModel):
    id: int
    from_user_id: int = Field(serialization_alias="fromUserId")
    to_user_id: int = Field(serialization_alias="toUserId")
    type: str
    amount: Decimal
    status: str
    meta: Optional[dict[str, Any]] = Field(None, serialization_alias="metadata")
    created_at: Optional[datetime] = Field(None, serialization_alias="createdAt")

    class Config:
        from_attributes = True

    @field_serializer("amount")
    def serialize_amount(self, amount: Decimal) -> str:
        return format_ether(amount)
