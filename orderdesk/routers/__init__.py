"""API routers for the OrderDesk backend."""
from fastapi import APIRouter

from . import (
    apikeys,
    approvals,
    budgets,
    cart,
    companies,
    health,
    notifications,
    orders,
    purchase_orders,
    reports,
    users,
)


def get_api_router() -> APIRouter:
    """Return the root API router."""

    api_router = APIRouter()
    api_router.include_router(health.router)
    api_router.include_router(users.router)
    api_router.include_router(apikeys.router)
    api_router.include_router(companies.router)
    api_router.include_router(budgets.router)
    api_router.include_router(budgets.allocations_router)
    api_router.include_router(cart.router)
    api_router.include_router(orders.router)
    api_router.include_router(approvals.router)
    api_router.include_router(purchase_orders.router)
    api_router.include_router(reports.router)
    api_router.include_router(notifications.router)
    return api_router
