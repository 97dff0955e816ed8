from datetime import date
from decimal import Decimal

import pytest
from pydantic import ValidationError

from expensemgmt.core import schemas
from expensemgmt.core.gateway import ErrorKind, GatewayError


def new_expense(amount="25.40", **overrides):
    fields = {
        "user_id": 1,
        "category_id": 1,
        "amount": Decimal(amount),
        "expense_date": date(2024, 3, 5),
        "description": "Train to Leeds",
    }
    fields.update(overrides)
    return schemas.ExpenseCreate(**fields)


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "amount, expected_minor",
    [("25.40", 2540), ("0.01", 1), ("10.999", 1100), ("123", 12300)],
)
async def test_created_expense_is_draft_in_minor_units(gateway, amount, expected_minor):
    created = await gateway.create_expense(new_expense(amount))

    assert created.status_name == "Draft"
    assert created.amount_minor == expected_minor
    assert await gateway.get_expense(created.id) == created


@pytest.mark.parametrize("amount", ["0.001", "0.004", "0", "-1"])
def test_amounts_that_round_to_nothing_are_rejected(amount):
    with pytest.raises(ValidationError):
        new_expense(amount)


@pytest.mark.asyncio
async def test_create_with_unknown_category_is_a_constraint_error(gateway):
    with pytest.raises(GatewayError) as exc_info:
        await gateway.create_expense(new_expense(category_id=42))

    assert exc_info.value.kind == ErrorKind.CONSTRAINT


@pytest.mark.asyncio
async def test_submit_is_idempotent(gateway):
    created = await gateway.create_expense(new_expense())

    assert await gateway.submit_expense(created.id) is True
    first = await gateway.get_expense(created.id)
    assert first.status_name == "Submitted"
    assert first.submitted_at is not None

    assert await gateway.submit_expense(created.id) is True
    assert (await gateway.get_expense(created.id)).status_name == "Submitted"


@pytest.mark.asyncio
async def test_approve_and_reject_record_reviewer(gateway):
    assert await gateway.approve_expense(1, reviewer_id=2) is True
    approved = await gateway.get_expense(1)
    assert approved.status_name == "Approved"
    assert approved.reviewed_by == 2
    assert approved.reviewed_at is not None

    created = await gateway.create_expense(new_expense())
    await gateway.submit_expense(created.id)
    assert await gateway.reject_expense(created.id, reviewer_id=2) is True
    assert (await gateway.get_expense(created.id)).status_name == "Rejected"


@pytest.mark.asyncio
async def test_review_of_missing_expense_fails(gateway):
    assert await gateway.approve_expense(999, reviewer_id=2) is False
    assert await gateway.reject_expense(999, reviewer_id=2) is False
    assert await gateway.submit_expense(999) is False


@pytest.mark.asyncio
async def test_filter_matches_description_user_and_category(gateway):
    taxi = await gateway.list_expenses("TAXI")
    assert [e.id for e in taxi] == [1]

    by_category = await gateway.list_expenses("accommodation")
    assert [e.id for e in by_category] == [4]

    by_user = await gateway.list_expenses("alice")
    assert len(by_user) == 4


@pytest.mark.asyncio
async def test_list_is_newest_first_and_filters_status(gateway):
    expenses = await gateway.list_expenses()
    assert [e.id for e in expenses] == [3, 1, 2, 4]

    approved = await gateway.list_expenses(status=schemas.ExpenseStatusName.APPROVED)
    assert {e.id for e in approved} == {2, 4}


@pytest.mark.asyncio
async def test_pending_approvals_oldest_first(gateway):
    created = await gateway.create_expense(new_expense())
    await gateway.submit_expense(created.id)

    pending = await gateway.list_pending_approvals()
    assert [e.id for e in pending] == [1, created.id]


@pytest.mark.asyncio
async def test_dashboard_stats_sum_approved_amounts(gateway):
    stats = await gateway.get_dashboard_stats()

    assert stats.total_expenses == 4
    assert stats.pending_approvals == 1
    assert stats.approved_count == 2
    assert stats.approved_amount == Decimal("137.25")


@pytest.mark.asyncio
async def test_dashboard_stats_zero_without_approvals(gateway):
    for expense_id in (2, 4):
        await gateway.reject_expense(expense_id, reviewer_id=2)

    stats = await gateway.get_dashboard_stats()
    assert stats.approved_count == 0
    assert stats.approved_amount == Decimal("0")


@pytest.mark.asyncio
async def test_reference_data_ordering(gateway):
    categories = await gateway.list_categories()
    assert [c.name for c in categories] == [
        "Accommodation",
        "Meals",
        "Other",
        "Supplies",
        "Travel",
    ]

    statuses = await gateway.list_statuses()
    assert [s.name for s in statuses] == ["Draft", "Submitted", "Approved", "Rejected"]

    users = await gateway.list_users()
    assert [u.name for u in users] == ["Alice Example", "Bob Manager"]
