# models/transaction.py
from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional, Union

from dateutil import parser as date_parser
from pydantic import BaseModel, Field, field_validator

from core.intent import TransactionIntent


class UserProfile(BaseModel):
    id: int = Field(..., description="Telegram user id, also the primary key")
    telegramChatId: Optional[int] = Field(None)
    username: Optional[str] = Field(None)
    firstName: Optional[str] = Field(None)
    lastName: Optional[str] = Field(None)


class TransactionPayload(BaseModel):
    userId: int = Field(..., description="Owner of the transaction")
    amount: Decimal = Field(..., ge=0, description="The amount of the transaction")
    currency: str = Field(default="USD", description="ISO-4217 code")
    merchant: str = Field(default="Unknown", min_length=1)
    category: str = Field(default="other")
    description: Optional[str] = Field(None)
    transactionDate: Union[datetime, str] = Field(..., description="When the money was spent")

    @field_validator("currency")
    @classmethod
    def upper_currency(cls, v: str) -> str:
        return v.strip().upper()

    @field_validator("transactionDate")
    @classmethod
    def validate_date(cls, v):
        if isinstance(v, str):
            try:
                v = date_parser.isoparse(v)
            except ValueError:
                v = date_parser.parse(v)
        if v.tzinfo is None:
            return v.replace(tzinfo=timezone.utc)
        return v.astimezone(timezone.utc)

    @classmethod
    def from_intent(
        cls,
        user_id: int,
        intent: TransactionIntent,
        reference: datetime,
    ) -> "TransactionPayload":
        """
        Build the insert payload from a validated transaction intent.
        Missing merchant/date fall back to "Unknown" and the reference instant.
        """
        entities = intent.entities
        if entities.amount is None:
            raise ValueError("Transaction intent has no amount")
        return cls(
            userId=user_id,
            amount=entities.amount,
            currency=entities.currency or "USD",
            merchant=(entities.merchant or "").strip() or "Unknown",
            category=entities.category or "other",
            description=entities.description,
            transactionDate=entities.transactionDate or reference,
        )


class StoredTransaction(BaseModel):
    id: str
    displayId: Optional[int] = None


class InsertResult(BaseModel):
    transactionId: str
    displayId: Optional[int] = None
    attempts: int = 1
    durationMs: float = 0.0


class SaveResult(BaseModel):
    success: bool
    message: str
    transactionId: Optional[str] = None
    displayId: Optional[int] = None
    durationMs: Optional[float] = None
