"""
Wallet and transfer errors.

Services raise these; a single handler registered in main turns them into
JSON responses of the form {"error": code, "message": ..., "details": ...}.
"""
from typing import Any, Optional

from fastapi import Request, status
from fastapi.responses import JSONResponse


class AmanahError(Exception):
    code = "INTERNAL_ERROR"
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    message = "Internal server error"

    def __init__(self, message: Optional[str] = None, details: Optional[dict[str, Any]] = None):
        self.message = message or self.message
        self.details = details
        super().__init__(self.message)


class RecipientNotFound(AmanahError):
    code = "RECIPIENT_NOT_FOUND"
    status_code = status.HTTP_400_BAD_REQUEST
    message = "Recipient not found"


class RecipientWalletNotFound(AmanahError):
    code = "RECIPIENT_WALLET_NOT_FOUND"
    status_code = status.HTTP_400_BAD_REQUEST
    message = "Recipient wallet not found"


class SourceWalletNotFound(AmanahError):
    code = "SENDER_WALLET_NOT_FOUND"
    status_code = status.HTTP_400_BAD_REQUEST
    message = "Sender wallet not found"


class InvalidAddress(AmanahError):
    code = "INVALID_ADDRESS"
    status_code = status.HTTP_400_BAD_REQUEST
    message = "Invalid recipient address format"


class InvalidWalletType(AmanahError):
    code = "INVALID_WALLET_TYPE"
    status_code = status.HTTP_400_BAD_REQUEST


class DuplicateSpendingWallet(AmanahError):
    code = "SPENDING_WALLET_EXISTS"
    status_code = status.HTTP_400_BAD_REQUEST
    message = "A spending wallet already exists for this user"


class InsufficientFunds(AmanahError):
    code = "INSUFFICIENT_FUNDS"
    status_code = status.HTTP_400_BAD_REQUEST
    message = "Insufficient funds for transaction and gas fees"


class ConfirmationTimeout(AmanahError):
    code = "CONFIRMATION_TIMEOUT"
    status_code = status.HTTP_408_REQUEST_TIMEOUT
    message = "Transaction confirmation timeout"


class TransferFailed(AmanahError):
    code = "TRANSFER_FAILED"
    message = "Failed to process transaction"


class WalletCreationFailed(AmanahError):
    code = "WALLET_CREATION_FAILED"
    message = "Failed to create wallet"


class ChainUnavailable(AmanahError):
    code = "CHAIN_UNAVAILABLE"
    message = "Failed to fetch gas prices"


async def amanah_exception_handler(request: Request, exc: AmanahError) -> JSONResponse:
    content: dict[str, Any] = {"error": exc.code, "message": exc.message}
    if exc.details is not None:
        content["details"] = exc.details
    return JSONResponse(status_code=exc.status_code, content=content)
