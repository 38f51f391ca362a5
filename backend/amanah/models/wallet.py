# amanah/models/wallet.py
from decimal import Decimal
from sqlalchemy import Column, Integer, String, ForeignKey, DateTime, Numeric
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from amanah.database import Base

# 18 fractional digits: one wei is the smallest representable amount
BALANCE_TYPE = Numeric(38, 18, asdecimal=True)


class Wallet(Base):
    __tablename__ = "wallets"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)

    name = Column(String, nullable=False)
    type = Column(String, nullable=False, index=True)  # daily | family | zakat
    address = Column(String, nullable=False, unique=True)  # checksummed chain address
    private_key = Column(String, nullable=False)  # Fernet token, see core.security
    balance = Column(BALANCE_TYPE, nullable=False, default=Decimal("0"))

    created_at = Column(DateTime(timezone=True), server_default=func.now())

    owner = relationship("User", back_populates="wallets")
