import asyncio
import logging
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, List, Optional

from sqlalchemy import text
from sqlalchemy.engine import RowMapping
from sqlalchemy.exc import (
    DBAPIError,
    IntegrityError,
    InterfaceError,
    OperationalError,
    ProgrammingError,
    SQLAlchemyError,
)
from sqlalchemy.ext.asyncio import AsyncSession

from expensemgmt.core import schemas
from expensemgmt.core.config import settings

logger = logging.getLogger(__name__)


# -----------------------------------------------------------------------------
# DATA ACCESS GATEWAY
# Every business action maps to exactly one stored procedure. Rows come back
# with the procedures' PascalCase column names and are mapped to schemas here.
# -----------------------------------------------------------------------------


class ErrorKind(str, Enum):
    AUTHENTICATION = "authentication"
    CONNECTIVITY = "connectivity"
    TIMEOUT = "timeout"
    CONSTRAINT = "constraint"
    SCHEMA = "schema"
    GENERIC = "generic"


AUTH_MARKERS = ("login failed", "authentication", "managed identity")

MANAGED_IDENTITY_HINT = (
    "Fix: 1) Ensure the managed identity exists. "
    "2) Grant it database access with 'CREATE USER [identity-name] FROM EXTERNAL PROVIDER'. "
    "3) Assign roles db_datareader, db_datawriter and EXECUTE permission."
)


class GatewayError(Exception):
    """A data-store failure, classified for the caller."""

    def __init__(self, kind: ErrorKind, message: str, source: str):
        super().__init__(message)
        self.kind = kind
        self.message = message
        self.source = source


def classify_error(error: BaseException) -> ErrorKind:
    if isinstance(error, asyncio.TimeoutError):
        return ErrorKind.TIMEOUT

    lowered = str(error).lower()
    if any(marker in lowered for marker in AUTH_MARKERS):
        return ErrorKind.AUTHENTICATION
    if isinstance(error, IntegrityError):
        return ErrorKind.CONSTRAINT
    if isinstance(error, ProgrammingError):
        return ErrorKind.SCHEMA
    if isinstance(error, (OperationalError, InterfaceError)):
        return ErrorKind.CONNECTIVITY
    if isinstance(error, DBAPIError) and error.connection_invalidated:
        return ErrorKind.CONNECTIVITY
    return ErrorKind.GENERIC


def _as_date(value: Any) -> date:
    # Some drivers hand DATE columns back as midnight datetimes
    if isinstance(value, datetime):
        return value.date()
    return value


def map_expense(row: RowMapping) -> schemas.Expense:
    return schemas.Expense(
        id=row["ExpenseId"],
        user_id=row["UserId"],
        user_name=row.get("UserName"),
        category_id=row["CategoryId"],
        category_name=row.get("CategoryName"),
        status_id=row["StatusId"],
        status_name=row.get("StatusName"),
        amount_minor=row["AmountMinor"],
        currency=row["Currency"],
        expense_date=_as_date(row["ExpenseDate"]),
        description=row.get("Description"),
        receipt_file=row.get("ReceiptFile"),
        submitted_at=row.get("SubmittedAt"),
        reviewed_by=row.get("ReviewedBy"),
        reviewed_at=row.get("ReviewedAt"),
        created_at=row["CreatedAt"],
    )


class ExpenseGateway:
    """
    Typed calls over the expense stored procedures.

    Each operation runs a single procedure in its own statement; there are no
    transactions spanning calls and no caching. Any SQLAlchemy failure is
    converted to a GatewayError before it leaves this class.
    """

    def __init__(self, session: AsyncSession, timeout: Optional[float] = None):
        self.session = session
        self.timeout = timeout if timeout is not None else settings.DB_COMMAND_TIMEOUT

    async def _call(
        self,
        operation: str,
        procedure: str,
        params: Optional[Dict[str, Any]] = None,
        commit: bool = False,
    ) -> List[RowMapping]:
        params = params or {}
        arguments = ", ".join(f"@{name} = :{name}" for name in params)
        statement = text(f"SET NOCOUNT ON; EXEC dbo.{procedure} {arguments}".rstrip())

        try:
            result = await asyncio.wait_for(
                self.session.execute(statement, params), timeout=self.timeout
            )
            rows = list(result.mappings().all())
            if commit:
                await self.session.commit()
            return rows
        except (SQLAlchemyError, asyncio.TimeoutError) as error:
            if commit:
                await self._rollback(procedure)
            raise self._wrap(operation, procedure, error) from error

    async def _rollback(self, procedure: str) -> None:
        try:
            await self.session.rollback()
        except SQLAlchemyError as error:
            logger.warning(f"Rollback after {procedure} failed: {error}")

    def _wrap(self, operation: str, procedure: str, error: BaseException) -> GatewayError:
        kind = classify_error(error)
        message = str(error) or type(error).__name__
        if kind == ErrorKind.AUTHENTICATION:
            message = f"Managed Identity Error: {message}. {MANAGED_IDENTITY_HINT}"
        elif kind == ErrorKind.TIMEOUT:
            message = f"{procedure} did not complete within {self.timeout:g}s"

        logger.error(f"{procedure} failed ({kind.value}): {error}")
        return GatewayError(kind, message, f"{type(self).__name__}.{operation}")

    @staticmethod
    def _rows_affected(rows: List[RowMapping]) -> bool:
        return bool(rows) and (rows[0]["RowsAffected"] or 0) > 0

    # =========================
    # Expenses
    # =========================
    async def list_expenses(
        self,
        filter: Optional[str] = None,
        status: Optional[schemas.ExpenseStatusName] = None,
    ) -> List[schemas.Expense]:
        rows = await self._call(
            "list_expenses",
            "usp_GetAllExpenses",
            {"Filter": filter or None, "Status": status.value if status else None},
        )
        return [map_expense(row) for row in rows]

    async def get_expense(self, expense_id: int) -> Optional[schemas.Expense]:
        rows = await self._call(
            "get_expense", "usp_GetExpenseById", {"ExpenseId": expense_id}
        )
        return map_expense(rows[0]) if rows else None

    async def create_expense(self, expense: schemas.ExpenseCreate) -> schemas.Expense:
        rows = await self._call(
            "create_expense",
            "usp_CreateExpense",
            {
                "UserId": expense.user_id,
                "CategoryId": expense.category_id,
                "AmountMinor": schemas.to_minor_units(expense.amount),
                "ExpenseDate": expense.expense_date,
                "Description": expense.description,
            },
            commit=True,
        )
        if not rows:
            raise GatewayError(
                ErrorKind.GENERIC,
                "Failed to create expense",
                f"{type(self).__name__}.create_expense",
            )
        return map_expense(rows[0])

    async def submit_expense(self, expense_id: int) -> bool:
        rows = await self._call(
            "submit_expense",
            "usp_SubmitExpense",
            {"ExpenseId": expense_id},
            commit=True,
        )
        return self._rows_affected(rows)

    async def approve_expense(self, expense_id: int, reviewer_id: int) -> bool:
        rows = await self._call(
            "approve_expense",
            "usp_ApproveExpense",
            {"ExpenseId": expense_id, "ReviewerId": reviewer_id},
            commit=True,
        )
        return self._rows_affected(rows)

    async def reject_expense(self, expense_id: int, reviewer_id: int) -> bool:
        rows = await self._call(
            "reject_expense",
            "usp_RejectExpense",
            {"ExpenseId": expense_id, "ReviewerId": reviewer_id},
            commit=True,
        )
        return self._rows_affected(rows)

    async def list_pending_approvals(self) -> List[schemas.Expense]:
        rows = await self._call("list_pending_approvals", "usp_GetPendingApprovals")
        return [map_expense(row) for row in rows]

    # =========================
    # Reference data
    # =========================
    async def list_categories(self) -> List[schemas.ExpenseCategory]:
        rows = await self._call("list_categories", "usp_GetCategories")
        return [
            schemas.ExpenseCategory(
                id=row["CategoryId"], name=row["CategoryName"], is_active=row["IsActive"]
            )
            for row in rows
        ]

    async def list_statuses(self) -> List[schemas.ExpenseStatus]:
        rows = await self._call("list_statuses", "usp_GetStatuses")
        return [
            schemas.ExpenseStatus(id=row["StatusId"], name=row["StatusName"])
            for row in rows
        ]

    async def list_users(self) -> List[schemas.User]:
        rows = await self._call("list_users", "usp_GetUsers")
        return [
            schemas.User(
                id=row["UserId"],
                name=row["UserName"],
                email=row["Email"],
                role_id=row["RoleId"],
                role_name=row.get("RoleName"),
                is_active=row["IsActive"],
            )
            for row in rows
        ]

    # =========================
    # Dashboard
    # =========================
    async def get_dashboard_stats(self) -> schemas.DashboardStats:
        rows = await self._call("get_dashboard_stats", "usp_GetDashboardStats")
        if not rows:
            return schemas.DashboardStats()

        row = rows[0]
        approved_amount = Decimal(str(row["ApprovedAmount"] or 0))
        return schemas.DashboardStats(
            total_expenses=row["TotalExpenses"] or 0,
            pending_approvals=row["PendingApprovals"] or 0,
            approved_amount=approved_amount.quantize(schemas.CENTS),
            approved_count=row["ApprovedCount"] or 0,
        )
