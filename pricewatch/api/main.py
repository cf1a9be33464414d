"""FastAPI application hosting the price watch service."""
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
import logging
import time
import sys

from pricewatch.core.config import settings
from pricewatch.main import PriceWatchService

# Import routers
from pricewatch.api.routes import alerts, health, prices

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.log_level.upper()),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    handlers=[
        logging.StreamHandler(sys.stdout)
    ]
)
logger = logging.getLogger(__name__)

app = FastAPI(title="Price Watch API", version="1.0.0")


@app.on_event("startup")
async def startup_event():
    """Build and start the service (scheduler, evaluator, broker)."""
    logger.info("Application starting up...")
    service = PriceWatchService.from_settings(settings)
    await service.start()
    app.state.service = service
    logger.info("Application startup complete")


@app.on_event("shutdown")
async def shutdown_event():
    """Stop the service gracefully."""
    service = getattr(app.state, "service", None)
    if service is not None:
        await service.stop()
        app.state.service = None
    logger.info("Application shutdown complete")


# Request logging middleware
@app.middleware("http")
async def log_requests(request: Request, call_next):
    """Log all incoming requests and responses."""
    start_time = time.time()

    logger.info(f"→ {request.method} {request.url.path}")
    logger.debug(f"  Query params: {dict(request.query_params)}")

    try:
        response = await call_next(request)
        process_time = time.time() - start_time

        logger.info(f"← {request.method} {request.url.path} - Status: {response.status_code} - Time: {process_time:.3f}s")

        return response
    except Exception as e:
        process_time = time.time() - start_time
        logger.error(f"← {request.method} {request.url.path} - ERROR after {process_time:.3f}s: {str(e)}")
        raise


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Handle all unhandled exceptions with a JSON body."""
    logger.error(f"Unhandled exception in {request.method} {request.url.path}")
    logger.error(f"Exception type: {type(exc).__name__}")
    logger.error(f"Exception message: {str(exc)}", exc_info=True)

    return JSONResponse(
        status_code=500,
        content={
            "success": False,
            "detail": "Internal server error",
            "error": str(exc) if settings.log_level == "DEBUG" else "Internal server error"
        }
    )


# Include routers
app.include_router(health.router)
app.include_router(prices.router)
app.include_router(alerts.router)


@app.get("/")
async def root():
    """Service banner."""
    return {"status": "ok", "service": "pricewatch-api"}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=settings.backend_port)
