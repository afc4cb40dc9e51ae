"""
Main FastAPI application entry point
"""
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, Response
from fastapi.responses import JSONResponse, PlainTextResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from .core import settings, init_db, close_db
from .api import router
from .schemas import NotFoundResponse
from .services import storage

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan context manager for startup/shutdown"""
    # Startup
    logger.info("🚀 Starting fatbox...")

    storage.ensure_dirs()
    await init_db()

    logger.info(f"✅ Server listening on http://{settings.SERVER_HOST}:{settings.SERVER_PORT}")

    yield

    # Shutdown
    logger.info("🛑 Shutting down fatbox...")
    await close_db()


# Create FastAPI app
app = FastAPI(
    title=settings.APP_TITLE,
    description=settings.APP_DESCRIPTION,
    version=settings.APP_VERSION,
    lifespan=lifespan
)

# Include routers
app.include_router(router)


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    """JSON body for unknown routes; other HTTP errors keep FastAPI's shape"""
    if exc.status_code == 404 and exc.detail == "Not Found":
        body = NotFoundResponse(message=f"Route {request.method}:{request.url.path} not found")
        return JSONResponse(status_code=404, content=body.model_dump(by_alias=True))
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.detail},
        headers=getattr(exc, "headers", None)
    )


@app.get("/", response_class=PlainTextResponse)
async def health():
    """Health check endpoint"""
    return "fatbox is working.\n"


@app.get("/favicon.ico", include_in_schema=False)
async def favicon():
    return Response(status_code=204)


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        app,
        host=settings.SERVER_HOST,
        port=settings.SERVER_PORT,
        log_level=settings.LOG_LEVEL.lower()
    )
