from datetime import date, datetime
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum
from typing import Annotated, Generic, List, Literal, Optional, TypeVar

from pydantic import AfterValidator, BaseModel, ConfigDict, Field, computed_field

T = TypeVar("T")

CENTS = Decimal("0.01")


def to_minor_units(amount: Decimal) -> int:
    """Convert a major-unit amount to integer minor units, rounding to the nearest cent."""
    return int((Decimal(str(amount)) * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def to_major_units(amount_minor: int) -> Decimal:
    return (Decimal(amount_minor) / 100).quantize(CENTS)


def _at_least_one_cent(amount: Decimal) -> Decimal:
    if to_minor_units(amount) < 1:
        raise ValueError("amount must be at least 0.01 once rounded to the cent")
    return amount


# Positive and finite, and still non-zero after rounding to minor units
PositiveAmount = Annotated[Decimal, Field(gt=0), AfterValidator(_at_least_one_cent)]


# =========================
# Enums
# =========================
class ExpenseStatusName(str, Enum):
    DRAFT = "Draft"
    SUBMITTED = "Submitted"
    APPROVED = "Approved"
    REJECTED = "Rejected"


# =========================
# EXPENSE
# =========================
class Expense(BaseModel):
    id: int
    user_id: int
    user_name: Optional[str] = None
    category_id: int
    category_name: Optional[str] = None
    status_id: int
    status_name: Optional[str] = None
    amount_minor: int
    currency: str = "GBP"
    expense_date: date
    description: Optional[str] = None
    receipt_file: Optional[str] = None
    submitted_at: Optional[datetime] = None
    reviewed_by: Optional[int] = None
    reviewed_at: Optional[datetime] = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)

    # Derived on read, never stored
    @computed_field
    @property
    def amount(self) -> Decimal:
        return to_major_units(self.amount_minor)


class ExpenseCreate(BaseModel):
    user_id: int
    category_id: int
    amount: PositiveAmount
    expense_date: date
    description: Optional[str] = Field(default=None, max_length=1000)


# =========================
# REFERENCE DATA
# =========================
class ExpenseCategory(BaseModel):
    id: int
    name: str
    is_active: bool = True


class ExpenseStatus(BaseModel):
    id: int
    name: str


class User(BaseModel):
    id: int
    name: str
    email: str
    role_id: int
    role_name: Optional[str] = None
    is_active: bool = True


# =========================
# DASHBOARD
# =========================
class DashboardStats(BaseModel):
    total_expenses: int = 0
    pending_approvals: int = 0
    approved_amount: Decimal = Decimal("0.00")
    approved_count: int = 0


# =========================
# ENVELOPE
# =========================
class ApiResponse(BaseModel, Generic[T]):
    """
    Uniform envelope returned by every CRUD endpoint.
    """

    success: bool
    data: Optional[T] = None
    error: Optional[str] = None
    error_source: Optional[str] = None


# =========================
# CHAT
# =========================
class ChatMessage(BaseModel):
    role: Literal["user", "assistant"]
    content: str


class ChatRequest(BaseModel):
    message: str = Field(min_length=1)
    history: List[ChatMessage] = []


class ChatResponse(BaseModel):
    success: bool
    message: Optional[str] = None
    error: Optional[str] = None
    genai_enabled: bool


class ChatStatusResponse(BaseModel):
    genai_enabled: bool
