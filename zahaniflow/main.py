import logging
import os

import psycopg2
from dotenv import load_dotenv
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from zahaniflow import app_context
from zahaniflow.app.config import get_app_config
from zahaniflow.app.errors import ClinicError
from zahaniflow.app.routes.billing import router as billing_router
from zahaniflow.app.routes.invitations import router as invitations_router
from zahaniflow.app.routes.subscription import router as subscription_router

load_dotenv()

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

logger = logging.getLogger("zahaniflow")

APP_CONFIG = get_app_config()


def get_conn():
    return psycopg2.connect(**APP_CONFIG.db_kwargs())


app_context.configure(get_conn=get_conn)

app = FastAPI(title="ZahaniFlow API")

app.add_middleware(
    CORSMiddleware,
    allow_origins=list(APP_CONFIG.cors_origins),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(ClinicError)
async def handle_clinic_error(request: Request, exc: ClinicError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.code)
    return exc.to_response()


@app.exception_handler(RequestValidationError)
async def handle_request_validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
    fields = sorted({str(error["loc"][-1]) for error in exc.errors() if error.get("loc")})
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={
            "status": False,
            "error": "validation_error",
            "message": "Invalid request",
            "fields": fields,
        },
    )


@app.get("/api/health")
def health():
    return {"status": True}


app.include_router(billing_router)
app.include_router(invitations_router)
app.include_router(subscription_router)
