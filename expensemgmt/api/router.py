from fastapi import APIRouter
from expensemgmt.api.endpoints import categories, chat, expenses, statuses, users

api_router = APIRouter(prefix="/api")

# Combine all sub-routers into one
api_router.include_router(expenses.router)
api_router.include_router(categories.router)
api_router.include_router(statuses.router)
api_router.include_router(users.router)
api_router.include_router(chat.router)
