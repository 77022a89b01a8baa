# marketplace/api/v1/api.py

from fastapi import APIRouter
from marketplace.api.v1.endpoints import (
    orders,
    checkout,
    webhooks,
    offers,
    supplier_applications,
    reports,
)

# This is the main router for the v1 API.
api_router = APIRouter()

api_router.include_router(orders.router)
api_router.include_router(checkout.router)
api_router.include_router(offers.router, prefix="/offers", tags=["offers"])
api_router.include_router(webhooks.router, prefix="/webhooks", tags=["webhooks"])
api_router.include_router(supplier_applications.router)
api_router.include_router(reports.router)
