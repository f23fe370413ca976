"""
API v1 router aggregating all endpoints.
"""
from fastapi import APIRouter

from vitalsman.api.v1.cwv import router as cwv_router

api_router = APIRouter()

api_router.include_router(cwv_router)
