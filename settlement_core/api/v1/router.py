"""Main API router that includes all endpoint routers."""

from fastapi import APIRouter

from settlement_core.api.v1 import bookings, commissions, payments, payouts, webhooks

api_router = APIRouter()

# Bookings
api_router.include_router(bookings.router, prefix="/bookings", tags=["Bookings"])

# Payments
api_router.include_router(payments.router, prefix="/payments", tags=["Payments"])

# Commissions
api_router.include_router(commissions.router, prefix="/commissions", tags=["Commissions"])

# Payouts
api_router.include_router(payouts.router, prefix="/payouts", tags=["Payouts"])

# Webhooks
api_router.include_router(webhooks.router, prefix="/webhooks", tags=["Webhooks"])
