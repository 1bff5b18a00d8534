"""
API v1 router aggregating all endpoints.
"""

from fastapi import APIRouter

from api.v1.activities import router as activities_router
from api.v1.polls import router as polls_router
from api.v1.voting import router as voting_router

router = APIRouter()

router.include_router(activities_router, prefix="/activities", tags=["Activities"])
router.include_router(polls_router, prefix="/polls", tags=["Polls"])
router.include_router(voting_router, prefix="/voting", tags=["Voting Events"])
