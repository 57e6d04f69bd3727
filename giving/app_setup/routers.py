"""
Registre central des routers.
- API: payments (/api/pay, /api/create-payment-intent, /api/config)
- Health: health_router (/health, /health/payments)
"""
from fastapi import FastAPI
from giving.payments import views as payments_views
from giving.health.router import router as health_router


def register_routers(app: FastAPI) -> None:
    # API
    app.include_router(payments_views.router)
    # Health & monitoring
    app.include_router(health_router)
