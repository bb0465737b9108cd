from fastapi import APIRouter

from app.api.v1.endpoints.applications import router as applications_router
from app.api.v1.endpoints.nafath import router as nafath_router


api_router = APIRouter()
api_router.include_router(nafath_router, prefix="/nafath", tags=["nafath"])
api_router.include_router(applications_router, prefix="/applications", tags=["applications"])
