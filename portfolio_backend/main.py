import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from portfolio_backend.core import config
from portfolio_backend.core.errors import ServiceError, validation_message
from portfolio_backend.database import Base, SessionLocal, engine, ensure_appointment_schema
from portfolio_backend.models import appointment, availability, user  # noqa: F401
from portfolio_backend.routes import appointment_routes, auth_routes, availability_routes
from portfolio_backend.scheduling.store import ensure_availability_settings

logging.basicConfig(level=config.LOG_LEVEL)

app = FastAPI()

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ALLOW_ORIGINS,
    allow_credentials=True,
    allow_methods=['*'],
    allow_headers=['*'],
)

logger = logging.getLogger(__name__)


@app.exception_handler(ServiceError)
async def handle_service_error(request: Request, exc: ServiceError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content={'message': exc.message})


@app.exception_handler(RequestValidationError)
async def handle_request_validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
    return JSONResponse(status_code=400, content={'message': validation_message(exc)})


@app.on_event('startup')
def initialize_database() -> None:
    config.validate_runtime_config()
    try:
        Base.metadata.create_all(bind=engine)
        ensure_appointment_schema()
        db = SessionLocal()
        try:
            ensure_availability_settings(db)
        finally:
            db.close()
    except SQLAlchemyError:
        logger.exception('Database initialization failed. Check DATABASE_URL and database credentials.')


@app.get('/')
def root():
    return {'status': 'Portfolio API Running'}


app.include_router(availability_routes.router)
app.include_router(appointment_routes.router)
app.include_router(auth_routes.router)
