"""API Router"""

from fastapi import APIRouter

# Import endpoint routers
from app.api.v1.endpoints import bills, customer_config

# Create API router
api_router = APIRouter()

# Include endpoint routers with prefixes and tags
api_router.include_router(bills.router, prefix="/bill", tags=["Bills"])
api_router.include_router(customer_config.router, prefix="/app_customer_config", tags=["Customer Config"])
