"""
In-memory expense store served only when DEMO_MODE is switched on.

It mirrors the stored procedures' semantics (filtering, ordering, status
transitions and aggregates) so the UI and chat can be exercised without a
database. It is never used as a fallback for a failing database.
"""

from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional

from expensemgmt.core import schemas
from expensemgmt.core.gateway import ErrorKind, GatewayError

STATUSES = [
    schemas.ExpenseStatus(id=1, name=schemas.ExpenseStatusName.DRAFT.value),
    schemas.ExpenseStatus(id=2, name=schemas.ExpenseStatusName.SUBMITTED.value),
    schemas.ExpenseStatus(id=3, name=schemas.ExpenseStatusName.APPROVED.value),
    schemas.ExpenseStatus(id=4, name=schemas.ExpenseStatusName.REJECTED.value),
]

CATEGORIES = [
    schemas.ExpenseCategory(id=1, name="Travel"),
    schemas.ExpenseCategory(id=2, name="Meals"),
    schemas.ExpenseCategory(id=3, name="Supplies"),
    schemas.ExpenseCategory(id=4, name="Accommodation"),
    schemas.ExpenseCategory(id=5, name="Other"),
]

USERS = [
    schemas.User(
        id=1,
        name="Alice Example",
        email="alice@example.co.uk",
        role_id=1,
        role_name="Employee",
    ),
    schemas.User(
        id=2,
        name="Bob Manager",
        email="bob.manager@example.co.uk",
        role_id=2,
        role_name="Manager",
    ),
]

# (id, category id, status, amount minor, days ago, description)
SEED_EXPENSES = [
    (1, 1, schemas.ExpenseStatusName.SUBMITTED, 2540, 5, "Taxi from airport to client site"),
    (2, 2, schemas.ExpenseStatusName.APPROVED, 1425, 10, "Client lunch meeting"),
    (3, 3, schemas.ExpenseStatusName.DRAFT, 799, 1, "Office stationery"),
    (4, 4, schemas.ExpenseStatusName.APPROVED, 12300, 30, "Hotel during client visit"),
]


def _now() -> datetime:
    return datetime.now(timezone.utc)


class DemoExpenseGateway:
    """Same operations as ExpenseGateway, backed by a dict."""

    def __init__(self):
        self.statuses = {status.name: status for status in STATUSES}
        self.categories = {category.id: category for category in CATEGORIES}
        self.users = {user.id: user for user in USERS}
        self.expenses: Dict[int, schemas.Expense] = {}

        now = _now()
        for expense_id, category_id, status, amount_minor, days_ago, description in SEED_EXPENSES:
            created_at = now - timedelta(days=days_ago)
            self.expenses[expense_id] = self._build(
                expense_id=expense_id,
                user_id=1,
                category_id=category_id,
                status=status,
                amount_minor=amount_minor,
                expense_date=created_at.date(),
                description=description,
                created_at=created_at,
                submitted_at=created_at if status != schemas.ExpenseStatusName.DRAFT else None,
                reviewed_by=2 if status == schemas.ExpenseStatusName.APPROVED else None,
                reviewed_at=created_at if status == schemas.ExpenseStatusName.APPROVED else None,
            )

    def _build(self, expense_id, user_id, category_id, status, **fields) -> schemas.Expense:
        status_row = self.statuses[status.value]
        return schemas.Expense(
            id=expense_id,
            user_id=user_id,
            user_name=self.users[user_id].name,
            category_id=category_id,
            category_name=self.categories[category_id].name,
            status_id=status_row.id,
            status_name=status_row.name,
            currency="GBP",
            **fields,
        )

    def _transition(self, expense_id: int, status: schemas.ExpenseStatusName, **fields) -> bool:
        expense = self.expenses.get(expense_id)
        if expense is None:
            return False

        status_row = self.statuses[status.value]
        self.expenses[expense_id] = expense.model_copy(
            update={"status_id": status_row.id, "status_name": status_row.name, **fields}
        )
        return True

    # =========================
    # Expenses
    # =========================
    async def list_expenses(
        self,
        filter: Optional[str] = None,
        status: Optional[schemas.ExpenseStatusName] = None,
    ) -> List[schemas.Expense]:
        needle = filter.lower() if filter else None
        matches = []
        for expense in self.expenses.values():
            if status and expense.status_name != status.value:
                continue
            if needle:
                haystack = (expense.description, expense.user_name, expense.category_name)
                if not any(needle in (field or "").lower() for field in haystack):
                    continue
            matches.append(expense)
        return sorted(matches, key=lambda e: (e.created_at, e.id), reverse=True)

    async def get_expense(self, expense_id: int) -> Optional[schemas.Expense]:
        return self.expenses.get(expense_id)

    async def create_expense(self, expense: schemas.ExpenseCreate) -> schemas.Expense:
        if expense.user_id not in self.users or expense.category_id not in self.categories:
            raise GatewayError(
                ErrorKind.CONSTRAINT,
                f"Unknown user {expense.user_id} or category {expense.category_id}",
                f"{type(self).__name__}.create_expense",
            )

        expense_id = max(self.expenses, default=0) + 1
        created = self._build(
            expense_id=expense_id,
            user_id=expense.user_id,
            category_id=expense.category_id,
            status=schemas.ExpenseStatusName.DRAFT,
            amount_minor=schemas.to_minor_units(expense.amount),
            expense_date=expense.expense_date,
            description=expense.description,
            created_at=_now(),
        )
        self.expenses[expense_id] = created
        return created

    async def submit_expense(self, expense_id: int) -> bool:
        return self._transition(
            expense_id, schemas.ExpenseStatusName.SUBMITTED, submitted_at=_now()
        )

    async def approve_expense(self, expense_id: int, reviewer_id: int) -> bool:
        return self._transition(
            expense_id,
            schemas.ExpenseStatusName.APPROVED,
            reviewed_by=reviewer_id,
            reviewed_at=_now(),
        )

    async def reject_expense(self, expense_id: int, reviewer_id: int) -> bool:
        return self._transition(
            expense_id,
            schemas.ExpenseStatusName.REJECTED,
            reviewed_by=reviewer_id,
            reviewed_at=_now(),
        )

    async def list_pending_approvals(self) -> List[schemas.Expense]:
        pending = await self.list_expenses(status=schemas.ExpenseStatusName.SUBMITTED)
        return sorted(pending, key=lambda e: (e.submitted_at or e.created_at, e.id))

    # =========================
    # Reference data
    # =========================
    async def list_categories(self) -> List[schemas.ExpenseCategory]:
        active = [c for c in self.categories.values() if c.is_active]
        return sorted(active, key=lambda c: c.name)

    async def list_statuses(self) -> List[schemas.ExpenseStatus]:
        return sorted(self.statuses.values(), key=lambda s: s.id)

    async def list_users(self) -> List[schemas.User]:
        active = [u for u in self.users.values() if u.is_active]
        return sorted(active, key=lambda u: u.name)

    # =========================
    # Dashboard
    # =========================
    async def get_dashboard_stats(self) -> schemas.DashboardStats:
        expenses = list(self.expenses.values())
        approved = [
            e for e in expenses if e.status_name == schemas.ExpenseStatusName.APPROVED.value
        ]
        pending = [
            e for e in expenses if e.status_name == schemas.ExpenseStatusName.SUBMITTED.value
        ]
        approved_minor = sum(e.amount_minor for e in approved)
        return schemas.DashboardStats(
            total_expenses=len(expenses),
            pending_approvals=len(pending),
            approved_amount=schemas.to_major_units(approved_minor),
            approved_count=len(approved),
        )
