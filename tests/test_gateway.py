import asyncio
from datetime import date, datetime
from decimal import Decimal

import pytest
from sqlalchemy.exc import IntegrityError, OperationalError, ProgrammingError

from expensemgmt.core import schemas
from expensemgmt.core.gateway import ErrorKind, ExpenseGateway, GatewayError


class FakeResult:
    def __init__(self, rows):
        self._rows = rows

    def mappings(self):
        return self

    def all(self):
        return self._rows


class FakeSession:
    """Records each statement and hands back canned rows (or raises)."""

    def __init__(self, rows=None, error=None, delay=0):
        self.rows = rows or []
        self.error = error
        self.delay = delay
        self.calls = []
        self.commits = 0
        self.rollbacks = 0

    async def execute(self, statement, params=None):
        self.calls.append((str(statement), params))
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error:
            raise self.error
        return FakeResult(self.rows)

    async def commit(self):
        self.commits += 1

    async def rollback(self):
        self.rollbacks += 1


def expense_row(**overrides):
    row = {
        "ExpenseId": 7,
        "UserId": 1,
        "UserName": "Alice Example",
        "CategoryId": 1,
        "CategoryName": "Travel",
        "StatusId": 1,
        "StatusName": "Draft",
        "AmountMinor": 2540,
        "Currency": "GBP",
        "ExpenseDate": datetime(2024, 3, 5),
        "Description": "Taxi from airport to client site",
        "ReceiptFile": None,
        "SubmittedAt": None,
        "ReviewedBy": None,
        "ReviewedAt": None,
        "CreatedAt": datetime(2024, 3, 5, 9, 30),
    }
    row.update(overrides)
    return row


@pytest.mark.asyncio
async def test_list_expenses_passes_filters_and_maps_rows():
    session = FakeSession(rows=[expense_row()])
    gateway = ExpenseGateway(session)

    expenses = await gateway.list_expenses("taxi", schemas.ExpenseStatusName.DRAFT)

    statement, params = session.calls[0]
    assert "EXEC dbo.usp_GetAllExpenses @Filter = :Filter, @Status = :Status" in statement
    assert params == {"Filter": "taxi", "Status": "Draft"}
    assert session.commits == 0

    expense = expenses[0]
    assert expense.id == 7
    assert expense.user_name == "Alice Example"
    assert expense.expense_date == date(2024, 3, 5)
    assert expense.amount == Decimal("25.40")


@pytest.mark.asyncio
async def test_list_expenses_without_filters_sends_nulls():
    session = FakeSession()
    await ExpenseGateway(session).list_expenses()

    assert session.calls[0][1] == {"Filter": None, "Status": None}


@pytest.mark.asyncio
async def test_get_expense_not_found_returns_none():
    session = FakeSession(rows=[])
    assert await ExpenseGateway(session).get_expense(99) is None
    assert session.calls[0][1] == {"ExpenseId": 99}


@pytest.mark.asyncio
async def test_create_expense_sends_minor_units_and_commits():
    session = FakeSession(rows=[expense_row(AmountMinor=1100, Description=None)])
    gateway = ExpenseGateway(session)

    created = await gateway.create_expense(
        schemas.ExpenseCreate(
            user_id=1, category_id=1, amount=Decimal("10.999"), expense_date=date(2024, 3, 5)
        )
    )

    params = session.calls[0][1]
    assert params["AmountMinor"] == 1100
    assert params["Description"] is None
    assert session.commits == 1
    assert created.status_name == "Draft"


@pytest.mark.asyncio
async def test_create_expense_without_returned_row_fails():
    gateway = ExpenseGateway(FakeSession(rows=[]))

    with pytest.raises(GatewayError) as exc_info:
        await gateway.create_expense(
            schemas.ExpenseCreate(
                user_id=1, category_id=1, amount=Decimal("5"), expense_date=date(2024, 3, 5)
            )
        )
    assert exc_info.value.source == "ExpenseGateway.create_expense"


@pytest.mark.asyncio
async def test_review_reports_rows_affected():
    approved = await ExpenseGateway(FakeSession(rows=[{"RowsAffected": 1}])).approve_expense(1, 2)
    missing = await ExpenseGateway(FakeSession(rows=[{"RowsAffected": 0}])).reject_expense(99, 2)

    assert approved is True
    assert missing is False


@pytest.mark.asyncio
async def test_dashboard_stats_defaults_approved_amount_to_zero():
    session = FakeSession(
        rows=[
            {
                "TotalExpenses": 3,
                "PendingApprovals": 1,
                "ApprovedAmount": None,
                "ApprovedCount": 0,
            }
        ]
    )
    stats = await ExpenseGateway(session).get_dashboard_stats()

    assert stats.total_expenses == 3
    assert stats.approved_amount == Decimal("0.00")
    assert stats.approved_count == 0


@pytest.mark.asyncio
async def test_reference_data_mapping():
    session = FakeSession(
        rows=[
            {
                "UserId": 2,
                "UserName": "Bob Manager",
                "Email": "bob.manager@example.co.uk",
                "RoleId": 2,
                "RoleName": "Manager",
                "IsActive": True,
            }
        ]
    )
    users = await ExpenseGateway(session).list_users()

    assert users[0].name == "Bob Manager"
    assert users[0].role_name == "Manager"
    assert session.calls[0][0].endswith("EXEC dbo.usp_GetUsers")


@pytest.mark.asyncio
async def test_login_failure_is_classified_as_authentication():
    error = OperationalError(
        "EXEC", {}, Exception("Login failed for user '<token-identified principal>'")
    )
    gateway = ExpenseGateway(FakeSession(error=error))

    with pytest.raises(GatewayError) as exc_info:
        await gateway.list_categories()

    assert exc_info.value.kind == ErrorKind.AUTHENTICATION
    assert "CREATE USER" in exc_info.value.message
    assert exc_info.value.source == "ExpenseGateway.list_categories"


@pytest.mark.asyncio
async def test_write_failure_rolls_back_and_is_classified():
    session = FakeSession(error=IntegrityError("EXEC", {}, Exception("FOREIGN KEY conflict")))

    with pytest.raises(GatewayError) as exc_info:
        await ExpenseGateway(session).submit_expense(1)

    assert exc_info.value.kind == ErrorKind.CONSTRAINT
    assert session.rollbacks == 1
    assert session.commits == 0


@pytest.mark.asyncio
async def test_missing_procedure_is_a_schema_error():
    error = ProgrammingError("EXEC", {}, Exception("Could not find stored procedure"))

    with pytest.raises(GatewayError) as exc_info:
        await ExpenseGateway(FakeSession(error=error)).list_statuses()

    assert exc_info.value.kind == ErrorKind.SCHEMA


@pytest.mark.asyncio
async def test_slow_procedure_times_out():
    gateway = ExpenseGateway(FakeSession(delay=1), timeout=0.01)

    with pytest.raises(GatewayError) as exc_info:
        await gateway.list_pending_approvals()

    assert exc_info.value.kind == ErrorKind.TIMEOUT
    assert "usp_GetPendingApprovals" in exc_info.value.message
