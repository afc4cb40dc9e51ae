"""API module exports"""
from fastapi import APIRouter

from .endpoints import router as upload_router
from .proxy import router as proxy_router

router = APIRouter()
router.include_router(upload_router)
router.include_router(proxy_router)

__all__ = ["router"]
