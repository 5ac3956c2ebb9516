import logging
import uuid

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from print_pricing import __version__
from print_pricing.api import state
from print_pricing.api.pricing_api import router as pricing_router
from print_pricing.config.settings import get_settings
from print_pricing.engine.errors import PricingError
from print_pricing.utils.logger import setup_logging

setup_logging(get_settings().log_level)
logger = logging.getLogger(__name__)

CORRELATION_HEADER = "X-Correlation-ID"

app = FastAPI(
    title="Print Pricing API",
    description="Pricing and cost derivation for a print shop",
    version=__version__,
)

# Enable CORS for frontend development
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(pricing_router)


@app.middleware("http")
async def correlation_id(request: Request, call_next):
    request.state.correlation_id = request.headers.get(CORRELATION_HEADER) or uuid.uuid4().hex
    response = await call_next(request)
    response.headers[CORRELATION_HEADER] = request.state.correlation_id
    return response


def _correlation_id(request: Request) -> str:
    return (getattr(request.state, "correlation_id", None)
            or request.headers.get(CORRELATION_HEADER)
            or uuid.uuid4().hex)


@app.exception_handler(PricingError)
async def pricing_error_handler(request: Request, exc: PricingError):
    logger.warning("%s %s -> %s: %s", request.method, request.url.path, exc.status_code, exc.message)
    return JSONResponse(
        status_code=exc.status_code,
        content=exc.to_dict(),
        headers={CORRELATION_HEADER: _correlation_id(request)},
    )


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    """Request validation failures use the same 400 {error, field} body as the engine."""
    errors = exc.errors()
    first = errors[0] if errors else {}
    loc = first.get("loc") or ()
    content = {"error": first.get("msg", "Invalid request")}
    if loc:
        content["field"] = str(loc[-1])
    logger.warning("%s %s -> 400: %s", request.method, request.url.path, content["error"])
    return JSONResponse(
        status_code=400,
        content=content,
        headers={CORRELATION_HEADER: _correlation_id(request)},
    )


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    correlation = _correlation_id(request)
    logger.exception("Unhandled error on %s %s [%s]", request.method, request.url.path, correlation)
    return JSONResponse(
        status_code=500,
        content={"error": "Internal server error", "correlation_id": correlation},
        headers={CORRELATION_HEADER: correlation},
    )


@app.get("/")
async def root():
    return {"status": "online", "message": "Print Pricing API Active"}


@app.get("/system/status")
async def get_status():
    engine = state.get_engine()
    catalog = state.get_catalog()
    return {
        "engine_active": True,
        "reference_loaded": engine.cache.loaded,
        "data_dir": str(engine.settings.data_dir),
        "stats": catalog.get_stats(),
    }
