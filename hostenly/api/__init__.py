"""API router for v1 endpoints."""

from fastapi import APIRouter, Depends

from hostenly.api import conversations, documents, properties, webhooks
from hostenly.core.rate_limiter import check_api_rate_limit

router = APIRouter()

# Channel webhooks (no bearer auth, not rate limited)
router.include_router(webhooks.router, tags=["webhooks"])

# Host administration
rate_limited = [Depends(check_api_rate_limit)]
router.include_router(
    properties.router, prefix="/properties", tags=["properties"], dependencies=rate_limited
)
router.include_router(documents.router, tags=["documents"], dependencies=rate_limited)
router.include_router(
    conversations.router, prefix="/conversations", tags=["conversations"], dependencies=rate_limited
)
