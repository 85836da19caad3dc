from fastapi import APIRouter
from .quotes_router import router as quotes_router

router = APIRouter(prefix="/public")

router.include_router(quotes_router)
