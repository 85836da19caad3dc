# main.py
import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from quoteflow.core.config import CORS_ORIGINS
from quoteflow.core.db import init_models
from quoteflow.core.logging_config import setup_logging
from quoteflow.middleware.request_logger import RequestLoggerMiddleware
from quoteflow.routers import auth, dashboard, public

setup_logging()
logger = logging.getLogger(__name__)

app = FastAPI(
    title="QuoteFlow API",
    description="Quotes, templates and customer signing for small businesses",
    version="0.1.0"
)
# CORS setup
app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(RequestLoggerMiddleware)


@app.exception_handler(SQLAlchemyError)
async def database_error_handler(request: Request, exc: SQLAlchemyError):
    logger.exception("Database error on %s %s", request.method, request.url.path, exc_info=exc)
    return JSONResponse(status_code=500, content={"detail": "אירעה שגיאה בשרת, נסו שוב מאוחר יותר"})


# Health check endpoint
@app.get("/", tags=["Health"])
async def health_check():
    return {"status": "ok", "message": "Backend is running"}

# Register routers
app.include_router(auth.router)
app.include_router(dashboard.router)
app.include_router(public.router)


@app.on_event("startup")
async def on_startup():
    await init_models()
