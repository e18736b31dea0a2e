import logging

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from .core.config import get_settings
from .core.logging import configure_logging
from .errors import ApolloServiceError
from .api.routes_search import router as search_router
from .api.routes_enrich import router as enrich_router
from .api.routes_records import router as records_router

configure_logging()
settings = get_settings()
logger = logging.getLogger(__name__)

app = FastAPI(title="Apollo Service API")

# CORS:
# - In prod, FRONTEND_ORIGIN is required and we never fall back to "*".
# - In non-prod, wide-open CORS is only enabled if CORS_ALLOW_ALL_ORIGINS=True.
if settings.ENV.lower() == "prod":
    if not settings.FRONTEND_ORIGIN:
        raise RuntimeError(
            "FRONTEND_ORIGIN must be set in production – refusing to start with wide-open CORS."
        )
    origins = [
        o.strip()
        for o in settings.FRONTEND_ORIGIN.split(",")
        if o.strip()
    ]
else:
    if settings.CORS_ALLOW_ALL_ORIGINS:
        origins = ["*"]
    elif settings.FRONTEND_ORIGIN:
        origins = [
            o.strip()
            for o in settings.FRONTEND_ORIGIN.split(",")
            if o.strip()
        ]
    else:
        origins = ["*"]

app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["*"],
    allow_credentials=False,
)


@app.exception_handler(ApolloServiceError)
async def handle_service_error(request: Request, exc: ApolloServiceError) -> JSONResponse:
    log = logger.warning if exc.status_code < 500 else logger.error
    log(
        "%s %s failed: %s",
        request.method,
        request.url.path,
        exc.message,
        extra={"status_code": exc.status_code, "step": type(exc).__name__},
    )
    return JSONResponse(status_code=exc.status_code, content={"error": exc.message})


@app.exception_handler(RequestValidationError)
async def handle_validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
    return JSONResponse(
        status_code=400,
        content={
            "error": "Invalid request",
            # ctx may hold the raised exception object
            "details": jsonable_encoder([{k: v for k, v in e.items() if k != "ctx"} for e in exc.errors()]),
        },
    )


@app.exception_handler(StarletteHTTPException)
async def handle_http_error(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content={"error": exc.detail}, headers=exc.headers)


@app.get("/health")
def health():
    return {"status": "ok", "service": settings.SERVICE_NAME}


app.include_router(search_router, prefix=settings.API_PREFIX)
app.include_router(enrich_router, prefix=settings.API_PREFIX)
app.include_router(records_router, prefix=settings.API_PREFIX)
