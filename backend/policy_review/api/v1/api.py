from fastapi import APIRouter

from policy_review.api.v1.endpoints import diff, policies

api_router = APIRouter()
api_router.include_router(diff.router, prefix="/diff", tags=["diff"])
api_router.include_router(policies.router, prefix="/policies", tags=["policies"])
