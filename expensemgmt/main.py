import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from expensemgmt.api.router import api_router
from expensemgmt.core import schemas
from expensemgmt.core.config import settings
from expensemgmt.core.database import dispose_engine
from expensemgmt.core.gateway import ErrorKind, GatewayError

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


# Close the engine once everything is done and close all the sessions
@asynccontextmanager
async def lifespan(app: FastAPI):
    if settings.DEMO_MODE:
        logger.warning("DEMO_MODE is on: serving in-memory demo data, not the database")
    yield
    await dispose_engine()


app = FastAPI(title="Expense Management API", lifespan=lifespan)

# Include the master router containing all our endpoints
app.include_router(api_router)


@app.exception_handler(GatewayError)
async def gateway_error_handler(request: Request, error: GatewayError):
    # Expected data-store failures get the envelope, never a bare 500
    status_code = (
        status.HTTP_409_CONFLICT
        if error.kind == ErrorKind.CONSTRAINT
        else status.HTTP_503_SERVICE_UNAVAILABLE
    )
    body = schemas.ApiResponse(
        success=False, error=error.message, error_source=error.source
    )
    return JSONResponse(status_code=status_code, content=body.model_dump())


@app.get("/")
async def root():
    return {"message": "Welcome to the Expense Management API"}


def _request_source(request: Request) -> str:
    return f"{request.method} {request.url.path}"


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, error: RequestValidationError):
    problems = []
    for item in error.errors():
        location = ".".join(str(part) for part in item["loc"])
        problems.append(f"{location}: {item['msg']}")
    body = schemas.ApiResponse(
        success=False, error="; ".join(problems), error_source=_request_source(request)
    )
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, content=body.model_dump()
    )


# Token and role failures keep their status and WWW-Authenticate header
@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, error: StarletteHTTPException):
    body = schemas.ApiResponse(
        success=False, error=str(error.detail), error_source=_request_source(request)
    )
    return JSONResponse(
        status_code=error.status_code,
        content=body.model_dump(),
        headers=getattr(error, "headers", None),
    )
