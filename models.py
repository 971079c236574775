from pydantic import BaseModel, ConfigDict, Field, field_validator
from enum import Enum
from typing import Optional
from decimal import Decimal, InvalidOperation, ROUND_DOWN


# Amounts carry four decimal places of precision
AMOUNT_PRECISION = Decimal("0.0001")
# Largest accepted amount; account sums stay within the default 28-digit context
AMOUNT_MAX = Decimal("99999999999999.9999")

CLIENT_ID_MAX = 2**16 - 1
TX_ID_MAX = 2**32 - 1


class TransactionType(str, Enum):
    deposit = "deposit"
    withdrawal = "withdrawal"
    dispute = "dispute"
    resolve = "resolve"
    chargeback = "chargeback"


# Types that move funds and leave a record behind for later disputes
FUNDING_TYPES = frozenset({TransactionType.deposit, TransactionType.withdrawal})


class TransactionRow(BaseModel):
    """One incoming transaction, in arrival order."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    tx_type: TransactionType = Field(..., alias="type", description="Transaction type")
    client_id: int = Field(
        ...,
        alias="client",
        ge=0,
        le=CLIENT_ID_MAX,
        description="Owning client identifier",
    )
    tx_id: int = Field(
        ...,
        alias="tx",
        ge=0,
        le=TX_ID_MAX,
        description="Transaction identifier",
    )
    amount: Optional[Decimal] = Field(
        default=None,
        description="Present for deposits and withdrawals only",
    )

    @field_validator("tx_type", mode="before")
    @classmethod
    def normalize_type(cls, v):
        if isinstance(v, str):
            return v.strip().lower()
        return v

    @field_validator("amount", mode="before")
    @classmethod
    def blank_amount_is_missing(cls, v):
        if isinstance(v, str):
            v = v.strip()
            if not v:
                return None
        return v

    @field_validator("amount")
    @classmethod
    def truncate_amount(cls, v):
        if v is None:
            return v
        try:
            v = v.quantize(AMOUNT_PRECISION, rounding=ROUND_DOWN)
        except InvalidOperation:
            raise ValueError("Amount exceeds supported precision")
        if abs(v) > AMOUNT_MAX:
            raise ValueError(f"Amount cannot exceed {AMOUNT_MAX}")
        return v


class Account(BaseModel):
    client_id: int = Field(..., description="Client identifier")
    available: Decimal = Field(default=Decimal("0"), description="Funds free to withdraw")
    held: Decimal = Field(default=Decimal("0"), description="Funds frozen by open disputes")
    locked: bool = Field(default=False, description="Set once a chargeback lands")

    @property
    def total(self) -> Decimal:
        return self.available + self.held


class TransactionRecord(BaseModel):
    """Last known state of a deposit or withdrawal, kept for dispute lookups."""

    tx_id: int
    tx_type: TransactionType
    client_id: int
    amount: Decimal
    disputed: bool = False


class AccountSummary(BaseModel):
    client_id: int = Field(..., description="Client identifier")
    available: Decimal = Field(..., description="Funds free to withdraw")
    held: Decimal = Field(..., description="Funds frozen by open disputes")
    total: Decimal = Field(..., description="available + held")
    locked: bool = Field(..., description="Whether the account is frozen")

    @classmethod
    def from_account(cls, account: Account) -> "AccountSummary":
        return cls(
            client_id=account.client_id,
            available=account.available,
            held=account.held,
            total=account.total,
            locked=account.locked,
        )


class ProcessingSummary(BaseModel):
    rows_processed: int = Field(default=0, description="Rows handed to the processor")
    rows_applied: int = Field(default=0, description="Rows that moved funds")
    rows_ignored: int = Field(default=0, description="Rows dropped as inapplicable")
    accounts_count: int = Field(default=0, description="Accounts tracked at end of run")
    transactions_count: int = Field(default=0, description="Transaction records kept at end of run")
