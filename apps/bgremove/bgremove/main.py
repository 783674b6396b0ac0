"""
Background Removal API

Decodes a base64 image, removes its background with rembg and returns the
result as base64 PNG.
"""

import logging
from datetime import datetime
from time import perf_counter, sleep
from typing import Optional

from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import PlainTextResponse
from pydantic import BaseModel, ConfigDict, Field

from . import __version__, imaging
from .config import Settings

logger = logging.getLogger(__name__)


# Pydantic models
class PredictRequest(BaseModel):
    image: str = Field(..., min_length=1, description="Base64-encoded image")


class PredictResponse(BaseModel):
    image: str
    status: str


class HealthResponse(BaseModel):
    status: str
    timestamp: str
    version: str = __version__


class MetadataResponse(BaseModel):
    model_config = ConfigDict(extra="allow")


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """
    Create the FastAPI application.

    Args:
        settings: Service settings (default: read from environment)

    Returns:
        FastAPI application instance
    """
    settings = settings or Settings.from_env()

    app = FastAPI(
        title="Background Removal API",
        description="Removes image backgrounds with rembg",
        version=__version__,
    )
    app.state.settings = settings

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.get("/", response_class=PlainTextResponse, tags=["Health"])
    async def root():
        """Liveness text"""
        return "Background removal API is running"

    @app.get("/health", response_model=HealthResponse, tags=["Health"])
    async def health():
        """Health status"""
        return HealthResponse(
            status="healthy",
            timestamp=datetime.utcnow().isoformat(),
        )

    @app.get("/metadata", response_model=MetadataResponse, tags=["Model"])
    async def metadata():
        """Model metadata (empty)"""
        return MetadataResponse()

    @app.post("/predict", response_model=PredictResponse, tags=["Model"])
    async def predict(request: PredictRequest):
        """Remove the background of the posted image"""
        started = perf_counter()
        logger.info(f"Predict request received ({len(request.image)} base64 chars)")

        try:
            image = imaging.decode_image(request.image)
        except ValueError as e:
            logger.warning(f"Rejected predict request: {e}")
            raise HTTPException(status_code=400, detail=str(e))

        # Blocks the event loop: one request per worker at a time
        if settings.predict_delay > 0:
            sleep(settings.predict_delay)

        try:
            result = imaging.remove_background(image, model=settings.rembg_model)
        except Exception as e:
            logger.exception("Background removal failed")
            raise HTTPException(status_code=500, detail=f"Background removal failed: {e}")

        encoded = imaging.encode_image(result)
        elapsed = perf_counter() - started
        logger.info(f"Predict request completed in {elapsed:.2f}s ({image.size[0]}x{image.size[1]})")

        return PredictResponse(image=encoded, status="success")

    return app


app = create_app()


def run() -> None:
    """Run the API with uvicorn."""
    import uvicorn

    settings = Settings.from_env()
    logging.basicConfig(level=settings.log_level)
    uvicorn.run(
        "bgremove.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.reload,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    run()
