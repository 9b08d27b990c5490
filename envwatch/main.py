import logging
import secrets
import time
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from envwatch.config import database
from envwatch.config.firebase_init import initialize_firebase
from envwatch.config.settings import Settings, get_settings
from envwatch.dependencies.auth import TokenService
from envwatch.image_analyzer import RoboflowClassifier
from envwatch.routes import admin, reports
from envwatch.storage import FirebaseImageStorage
from envwatch.stores.admins import CredentialStore, InMemoryCredentialStore, MongoCredentialStore
from envwatch.stores.reports import MongoReportStore, ReportStore
from envwatch.workflow import ReportWorkflow

logger = logging.getLogger(__name__)


def configure_logging(settings: Settings) -> None:
    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
    )


async def ensure_admin_user(settings: Settings, store: CredentialStore) -> None:
    password = settings.admin_password.get_secret_value() if settings.admin_password else None
    generated = password is None
    if generated:
        password = secrets.token_urlsafe(16)
    created = await store.ensure_admin(settings.admin_username, password)
    if created and generated:
        logger.warning("Generated password for admin %s: %s", settings.admin_username, password)


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = app.state.settings
    logger.info("Starting %s %s", settings.app_name, settings.app_version)
    await app.state.report_store.ensure_indexes()
    await app.state.credential_store.ensure_indexes()
    await ensure_admin_user(settings, app.state.credential_store)
    yield
    if app.state.mongo_client is not None:
        app.state.mongo_client.close()
    logger.info("Shutting down %s", settings.app_name)


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        return JSONResponse(
            status_code=exc.status_code,
            content={"success": False, "message": exc.detail},
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        problems = ", ".join(
            f"{'.'.join(str(part) for part in error['loc'] if part != 'body')}: {error['msg']}"
            for error in exc.errors()
        )
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"success": False, "message": f"Invalid request: {problems}"},
        )

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception):
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"success": False, "message": "Internal Server Error"},
        )


def create_app(
    settings: Optional[Settings] = None,
    report_store: Optional[ReportStore] = None,
    credential_store: Optional[CredentialStore] = None,
    storage=None,
    classifier=None,
) -> FastAPI:
    """Build the API. Collaborators not passed in are built from `settings`."""
    settings = settings or get_settings()

    mongo_client = None
    if report_store is None or (credential_store is None and settings.credential_backend == "mongo"):
        mongo_client = database.create_client(settings)
        db = database.get_database(mongo_client, settings)
        if report_store is None:
            report_store = MongoReportStore(database.reports_collection(db))
        if credential_store is None:
            credential_store = MongoCredentialStore(database.admins_collection(db))
    if credential_store is None:
        credential_store = InMemoryCredentialStore()
    if storage is None:
        storage = FirebaseImageStorage(
            initialize_firebase(settings),
            folder=settings.storage_folder,
            placeholder_url=settings.placeholder_image_url,
        )
    if classifier is None:
        classifier = RoboflowClassifier.from_settings(settings)

    app = FastAPI(
        title=settings.app_name,
        description="API untuk laporan masalah lingkungan dengan klasifikasi gambar AI.",
        version=settings.app_version,
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.mongo_client = mongo_client
    app.state.report_store = report_store
    app.state.credential_store = credential_store
    app.state.token_service = TokenService(
        settings.secret_key.get_secret_value(),
        algorithm=settings.algorithm,
        expire_minutes=settings.access_token_expire_minutes,
    )
    app.state.workflow = ReportWorkflow.from_settings(settings, report_store, storage, classifier)

    @app.middleware("http")
    async def add_process_time_header(request: Request, call_next):
        start_time = time.time()
        response = await call_next(request)
        process_time = time.time() - start_time
        logger.info("%s %s -> %s in %.2fs", request.method, request.url.path, response.status_code, process_time)
        response.headers["X-Process-Time"] = str(process_time)
        return response

    origins = settings.allowed_cors_origins
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials="*" not in origins,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    register_exception_handlers(app)

    app.include_router(reports.router, prefix="/api", tags=["Reports"])
    app.include_router(admin.router, prefix="/api/admin", tags=["Admin"])

    @app.get("/")
    async def root():
        return {"message": f"{settings.app_name} is running..."}

    return app


def run() -> None:
    import uvicorn

    settings = get_settings()
    configure_logging(settings)
    uvicorn.run(create_app(settings), host="0.0.0.0", port=settings.port)


if __name__ == "__main__":
    run()
