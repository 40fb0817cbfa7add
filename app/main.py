import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.api.v1.router import router as api_v1_router
from app.core.config import settings as app_settings
from app.core.exceptions import (
    BantQualifierError,
    ConversationNotFoundError,
    FactRecordLockedError,
    RubricConfigNotFoundError,
    RubricValidationError,
)

# Configure logging
logging.basicConfig(
    level=app_settings.LOG_LEVEL.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


app = FastAPI(
    title="BANT Qualification Engine",
    description=(
        "Conversational lead qualification: BANT fact extraction, weighted "
        "scoring and least-load agent assignment"
    ),
    version="0.1.0",
)

# CORS middleware – restricted to configured origins
app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        o.strip() for o in app_settings.CORS_ORIGINS.split(",") if o.strip()
    ],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(api_v1_router)


@app.exception_handler(ConversationNotFoundError)
async def conversation_not_found_handler(
    request: Request, exc: ConversationNotFoundError
):
    logger.warning("Conversation not found: %s", exc.detail)
    return JSONResponse(
        status_code=404,
        content={"detail": exc.detail, "type": "conversation_not_found"},
    )


@app.exception_handler(RubricConfigNotFoundError)
async def rubric_config_not_found_handler(
    request: Request, exc: RubricConfigNotFoundError
):
    logger.warning("BANT configuration not found: %s", exc.detail)
    return JSONResponse(
        status_code=404,
        content={"detail": exc.detail, "type": "bant_config_not_found"},
    )


@app.exception_handler(RubricValidationError)
async def rubric_validation_handler(request: Request, exc: RubricValidationError):
    logger.warning("Invalid BANT configuration: %s", exc.detail)
    return JSONResponse(
        status_code=422,
        content={
            "detail": exc.detail,
            "errors": [issue.model_dump() for issue in exc.issues],
            "type": "invalid_bant_config",
        },
    )


@app.exception_handler(FactRecordLockedError)
async def fact_record_locked_handler(request: Request, exc: FactRecordLockedError):
    logger.error("Attempt to modify a completed fact record: %s", exc.detail)
    return JSONResponse(
        status_code=409,
        content={"detail": exc.detail, "type": "fact_record_locked"},
    )


@app.exception_handler(BantQualifierError)
async def domain_error_handler(request: Request, exc: BantQualifierError):
    logger.error("Unhandled domain error on %s: %s", request.url.path, exc.detail)
    return JSONResponse(
        status_code=400,
        content={"detail": exc.detail, "type": "qualification_error"},
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    logger.warning("Request validation error: %s", exc.errors())
    return JSONResponse(
        status_code=422,
        content={
            "detail": "Request validation failed",
            "errors": exc.errors(),
            "type": "validation_error",
        },
    )


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception):
    """Catch-all handler for unexpected/unhandled exceptions.

    Returns a generic 500 response so that raw stack traces are never
    leaked to the client.
    """
    logger.error(
        "Unhandled exception on %s %s: %s",
        request.method,
        request.url.path,
        exc,
        exc_info=True,
    )
    return JSONResponse(
        status_code=500,
        content={
            "detail": "An unexpected internal error occurred. Please try again later.",
            "type": "internal_server_error",
        },
    )
