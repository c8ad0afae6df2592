"""Main API router that includes all endpoint routers."""

from fastapi import APIRouter

from dms.api.v1 import (
    auth,
    chargebacks,
    institutions,
    litiges,
    notifications,
    reports,
    transactions,
    users,
)

api_router = APIRouter()

# Authentication
api_router.include_router(auth.router, prefix="/auth", tags=["Authentication"])

# Reference data
api_router.include_router(institutions.router, prefix="/institutions", tags=["Institutions"])
api_router.include_router(transactions.router, prefix="/transactions", tags=["Transactions"])
api_router.include_router(users.router, prefix="/users", tags=["Users"])

# Dispute cases
api_router.include_router(litiges.router, prefix="/litiges", tags=["Litiges"])
api_router.include_router(chargebacks.router, prefix="/chargebacks", tags=["Chargebacks"])

# Notifications
api_router.include_router(notifications.router, prefix="/notifications", tags=["Notifications"])

# Reports
api_router.include_router(reports.router, prefix="/reports", tags=["Reports"])
