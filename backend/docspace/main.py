"""FastAPI application entry point."""

from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from fastapi.middleware.cors import CORSMiddleware

from docspace.api.v1.api import api_router
from docspace.api.v1.endpoints.workspace import get_controller
from docspace.components.workspace import StorageUnavailable, message_for
from docspace.settings import settings
from docspace.utils.logging import setup_logging

logger = setup_logging("api")


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings.validate_configuration()
    logger.info(f"DocSpace API starting ({settings.environment}, store={settings.store_type})")
    yield
    await get_controller().catalog.aclose()


app = FastAPI(
    title="DocSpace API",
    description="Document workspace: folder hierarchy, local cache, trash and bulk actions",
    version="0.1.0",
    lifespan=lifespan,
)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(api_router, prefix=settings.api_prefix)


@app.exception_handler(StorageUnavailable)
async def storage_unavailable_handler(request: Request, exc: StorageUnavailable):
    logger.error(f"{request.method} {request.url.path}: {exc.message}")
    return JSONResponse(status_code=503, content={"detail": message_for(exc)})


@app.get("/")
async def root():
    """Health check endpoint."""
    return {
        "status": "ok",
        "service": "DocSpace API",
        "version": "0.1.0"
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "docspace.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug
    )
