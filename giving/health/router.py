from fastapi import APIRouter, Request

from giving import config
from giving.utils.rate_limit import rate_limit_health_info

router = APIRouter(prefix="/health", tags=["Health"])


@router.get("")
def health_root():
    return {"ok": True}


@router.get("/payments")
def health_payments(request: Request):
    store = getattr(request.app.state, "idempotency_store", None)
    return {
        "processor_configured": not config.missing_credentials(),
        "environment": config.STRIPE_ENVIRONMENT,
        "idempotency": getattr(store, "backend", None),
        "rate_limit": rate_limit_health_info(request),
    }
