from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from loguru import logger
from starlette.exceptions import HTTPException as StarletteHTTPException

from .core.config import settings
from .core.logging_config import setup_logging
from .schemas.base import ErrorResponse
from .routers.common import SERVER_ERROR

# Routers
from .routers.health import router as health_router
from .routers.ingest import router as ingest_router
from .routers.charts import router as charts_router
from .routers.insights import router as insights_router

# ---------------------------------------------------------
# Logging & App init
# ---------------------------------------------------------
setup_logging()

api = FastAPI(title=settings.project_name)

api.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_list(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ---------------------------------------------------------
# Error envelope: every failure is {success: false, message}
# ---------------------------------------------------------
@api.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    body = ErrorResponse(message=str(exc.detail))
    return JSONResponse(status_code=exc.status_code, content=body.model_dump(), headers=exc.headers)


@api.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    logger.debug("Validation failed for {} {}: {}", request.method, request.url.path, exc.errors())
    content = ErrorResponse(message="Invalid request").model_dump()
    content["errors"] = jsonable_encoder(exc.errors())
    return JSONResponse(status_code=422, content=content)


@api.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on {} {}", request.method, request.url.path)
    return JSONResponse(status_code=500, content=ErrorResponse(message=SERVER_ERROR).model_dump())


# ---------------------------------------------------------
# Routers
# ---------------------------------------------------------
api.include_router(health_router, prefix="/health", tags=["health"])
api.include_router(ingest_router, prefix="/ingest", tags=["ingest"])
api.include_router(charts_router, prefix="/charts", tags=["charts"])
api.include_router(insights_router, prefix="/insights", tags=["insights"])


@api.get("/")
def root():
    return {
        "status": "ok",
        "project": settings.project_name,
        "env": settings.env,
    }


# This is what pytest imports: from backend.app.main import app
app = api
