import json
import logging
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Any, Dict, List, Literal, Optional, Type

from pydantic import BaseModel, Field, ValidationError

from expensemgmt.core import schemas
from expensemgmt.core.gateway import ExpenseGateway, GatewayError

logger = logging.getLogger(__name__)

CURRENCY_SYMBOLS = {"GBP": "£", "USD": "$", "EUR": "€"}


# =========================
# Tool arguments
# =========================
class ListExpensesArgs(BaseModel):
    filter: Optional[str] = Field(
        default=None, description="Optional search term to filter expenses"
    )
    status: Optional[Literal["Draft", "Submitted", "Approved", "Rejected"]] = Field(
        default=None,
        description="Optional status filter (Draft, Submitted, Approved, Rejected)",
    )


class NoArgs(BaseModel):
    pass


class CreateExpenseArgs(BaseModel):
    user_id: int = Field(description="User ID creating the expense")
    category_id: int = Field(description="Category ID for the expense")
    amount: schemas.PositiveAmount = Field(description="Amount in GBP")
    expense_date: date = Field(description="Date of the expense (YYYY-MM-DD)")
    description: Optional[str] = Field(
        default=None, max_length=1000, description="Description of the expense"
    )


class ApproveExpenseArgs(BaseModel):
    expense_id: int = Field(description="ID of the expense to approve")
    reviewer_id: int = Field(description="ID of the manager approving")


@dataclass(frozen=True)
class ToolSpec:
    name: str
    description: str
    args_model: Type[BaseModel]

    def definition(self) -> Dict[str, Any]:
        """OpenAI function-calling declaration for this tool."""
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": self.args_model.model_json_schema(),
            },
        }


TOOL_SPECS = [
    ToolSpec(
        "get_all_expenses",
        "Retrieves all expenses from the database, optionally filtered by status or search term",
        ListExpensesArgs,
    ),
    ToolSpec(
        "get_pending_approvals",
        "Gets all expenses that are pending approval",
        NoArgs,
    ),
    ToolSpec(
        "get_dashboard_stats",
        "Gets dashboard statistics including total expenses, pending approvals, approved amount",
        NoArgs,
    ),
    ToolSpec("get_categories", "Gets all expense categories", NoArgs),
    ToolSpec("create_expense", "Creates a new expense", CreateExpenseArgs),
    ToolSpec("approve_expense", "Approves a submitted expense", ApproveExpenseArgs),
]

TOOLS = {spec.name: spec for spec in TOOL_SPECS}

TOOL_DEFINITIONS = [spec.definition() for spec in TOOL_SPECS]


# =========================
# Result formatting
# =========================
def format_amount(amount: Decimal, currency: str = "GBP") -> str:
    symbol = CURRENCY_SYMBOLS.get(currency, f"{currency} ")
    return f"{symbol}{amount:.2f}"


def format_date(value: date) -> str:
    return value.strftime("%d %b %Y")


def summarize_expense(expense: schemas.Expense, include_status: bool = True) -> Dict[str, Any]:
    summary = {
        "expense_id": expense.id,
        "user_name": expense.user_name,
        "category_name": expense.category_name,
        "amount": format_amount(expense.amount, expense.currency),
        "date": format_date(expense.expense_date),
    }
    if include_status:
        summary["status_name"] = expense.status_name
    summary["description"] = expense.description
    return summary


def _error(message: str) -> str:
    return json.dumps({"error": message}, ensure_ascii=False)


def _describe_validation_error(error: ValidationError) -> str:
    problems = []
    for item in error.errors(include_url=False):
        location = ".".join(str(part) for part in item["loc"]) or "arguments"
        problems.append(f"{location}: {item['msg']}")
    return "; ".join(problems)


class ExpenseToolbox:
    """
    Executes the model's tool calls against the gateway.

    Every outcome, including unknown tools, bad arguments and data-store
    failures, comes back as a JSON string for a tool-result turn.
    """

    def __init__(self, gateway: ExpenseGateway):
        self.gateway = gateway

    async def execute(self, name: str, args: Optional[Dict[str, Any]]) -> str:
        spec = TOOLS.get(name)
        if spec is None:
            logger.warning(f"Model requested unknown tool: {name}")
            return _error(f"Unknown function: {name}")

        try:
            parsed = spec.args_model.model_validate(args or {})
        except ValidationError as error:
            logger.warning(f"Invalid arguments for {name}: {error}")
            return _error(f"Invalid arguments for {name}: {_describe_validation_error(error)}")

        handler = getattr(self, name)
        try:
            result = await handler(parsed)
        except ValidationError as error:
            logger.warning(f"Tool {name} rejected its arguments: {error}")
            return _error(f"Invalid arguments for {name}: {_describe_validation_error(error)}")
        except GatewayError as error:
            logger.error(f"Tool {name} failed: {error.message}")
            return _error(error.message)

        return json.dumps(result, ensure_ascii=False)

    async def get_all_expenses(self, args: ListExpensesArgs) -> List[Dict[str, Any]]:
        status = schemas.ExpenseStatusName(args.status) if args.status else None
        expenses = await self.gateway.list_expenses(args.filter, status)
        return [summarize_expense(e) for e in expenses]

    async def get_pending_approvals(self, args: NoArgs) -> List[Dict[str, Any]]:
        pending = await self.gateway.list_pending_approvals()
        return [summarize_expense(e, include_status=False) for e in pending]

    async def get_dashboard_stats(self, args: NoArgs) -> Dict[str, Any]:
        stats = await self.gateway.get_dashboard_stats()
        return {
            "total_expenses": stats.total_expenses,
            "pending_approvals": stats.pending_approvals,
            "approved_amount": format_amount(stats.approved_amount),
            "approved_count": stats.approved_count,
        }

    async def get_categories(self, args: NoArgs) -> List[Dict[str, Any]]:
        categories = await self.gateway.list_categories()
        return [{"category_id": c.id, "category_name": c.name} for c in categories]

    async def create_expense(self, args: CreateExpenseArgs) -> Dict[str, Any]:
        created = await self.gateway.create_expense(
            schemas.ExpenseCreate(
                user_id=args.user_id,
                category_id=args.category_id,
                amount=args.amount,
                expense_date=args.expense_date,
                description=args.description,
            )
        )
        return {
            "success": True,
            "expense_id": created.id,
            "status": created.status_name,
            "amount": format_amount(created.amount, created.currency),
        }

    async def approve_expense(self, args: ApproveExpenseArgs) -> Dict[str, Any]:
        approved = await self.gateway.approve_expense(args.expense_id, args.reviewer_id)
        return {"success": approved}
