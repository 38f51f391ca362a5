# amanah/models/transaction.py
from sqlalchemy import Column, Integer, String, ForeignKey, DateTime, JSON
from sqlalchemy.sql import func
from amanah.database import Base
from amanah.models.wallet import BALANCE_TYPE
import enum


class TransactionType(str, enum.Enum):
    TRANSFER = "transfer"
    ZAKAT = "zakat"


class TransactionStatus(str, enum.Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"


class Transaction(Base):
    __tablename__ = "transactions"

    id = Column(Integer, primary_key=True, autoincrement=True)
    from_user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    # Zakat and raw-address transfers point back at the sender
    to_user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)

    amount = Column(BALANCE_TYPE, nullable=False)
    type = Column(String, nullable=False)  # TransactionType
    status = Column(String, nullable=False, default=TransactionStatus.PENDING.value)

    # note, txHash, blockNumber, gasUsed, recipientAddress
    meta = Column("metadata", JSON, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
