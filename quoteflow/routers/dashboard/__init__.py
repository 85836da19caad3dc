from fastapi import APIRouter
from .customers_router import router as customers_router
from .products_router import router as products_router
from .templates_router import router as templates_router
from .company_router import router as company_router
from .quotes_router import router as quotes_router

router = APIRouter(prefix="/api")

router.include_router(customers_router)
router.include_router(products_router)
router.include_router(templates_router)
router.include_router(company_router)
router.include_router(quotes_router)
