"""FastAPI application entry point."""
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.encoders import jsonable_encoder
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles

from cliphunter.config import settings
from cliphunter.container import build_container
from cliphunter.db.database import init_db, close_db
from cliphunter.api.routes import router
from cliphunter.api.schemas import ErrorDetail

# Configure logging
logging.basicConfig(
    level=logging.INFO if not settings.debug else logging.DEBUG,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler."""
    # Startup
    logger.info(f"Starting {settings.app_name}...")

    container = build_container(settings)
    app.state.container = container

    await init_db(container.engine)
    logger.info("Database initialized")

    if settings.run_worker:
        container.processor.start()

    yield

    # Shutdown
    logger.info(f"Shutting down {settings.app_name}...")
    await container.processor.stop()
    await close_db(container.engine)
    logger.info("Shutdown complete")


# Create FastAPI app
app = FastAPI(
    title=settings.app_name,
    description="Turn YouTube videos into vertical short clips",
    version=settings.app_version,
    lifespan=lifespan
)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        settings.frontend_url,
        "http://localhost:3000",
        "http://127.0.0.1:3000",
    ],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Report malformed request bodies as 400 VALIDATION_ERROR."""
    detail = ErrorDetail(
        message="Invalid request",
        code="VALIDATION_ERROR",
        details=jsonable_encoder(exc.errors()),
    )
    return JSONResponse(status_code=400, content={"detail": detail.model_dump()})


# Include API routes
app.include_router(router, prefix="/api")

# Serve rendered clips and thumbnails
app.mount(settings.output_url_prefix, StaticFiles(directory=str(settings.output_dir)), name="outputs")


@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "app": settings.app_name,
        "version": settings.app_version,
        "api": "/api",
        "docs": "/docs"
    }


def main():
    import uvicorn
    uvicorn.run(
        "cliphunter.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug
    )


if __name__ == "__main__":
    main()
