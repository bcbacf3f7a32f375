"""
API v1 router aggregation.
"""
from fastapi import APIRouter
from kadi.api.v1.endpoints import learn, stats, cards

api_router = APIRouter()

# Include all endpoint routers
# Note: Each router already defines its own prefix, so we don't add another one here
api_router.include_router(learn.router)
api_router.include_router(stats.router)
api_router.include_router(cards.router)
