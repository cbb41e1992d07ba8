# backend/main.py
import logging
from contextlib import asynccontextmanager
from typing import Optional

from dotenv import load_dotenv
from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from config import Settings, env_path, get_settings
from database import build_engine, build_session_factory, init_db
from errors import ShopError, UpstreamFailure
from utils.mailer import Mailer
from utils.payment_client import StripeClient

from routes.admin import router as admin_router
from routes.auth import router as auth_router
from routes.cart import router as cart_router
from routes.favorites import router as favorites_router
from routes.orders import router as orders_router
from routes.payments import router as payments_router
from routes.products import router as products_router

load_dotenv(env_path)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    init_db(app.state.engine)
    logger.info("Storefront API started (env=%s)", app.state.settings.APP_ENV)
    yield
    app.state.engine.dispose()


def _register_error_handlers(app: FastAPI, settings: Settings):
    @app.exception_handler(ShopError)
    async def shop_error_handler(request: Request, exc: ShopError):
        body = exc.to_dict()
        # Upstream error bodies may carry provider internals
        if settings.is_production and isinstance(exc, UpstreamFailure):
            body.pop("details", None)
        return JSONResponse(status_code=exc.status_code, content=body)

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        return JSONResponse(
            status_code=400,
            content={"error": "Invalid input", "details": jsonable_encoder(exc.errors())},
        )

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return JSONResponse(status_code=500, content={"error": "Internal error"})


def create_app(
    settings: Optional[Settings] = None,
    payment_client: Optional[StripeClient] = None,
    mailer: Optional[Mailer] = None,
) -> FastAPI:
    """Build the API with its own engine, payment client and mailer.

    Collaborators can be injected (tests pass fakes); otherwise they are built
    from the settings.
    """
    settings = settings or get_settings()
    logging.basicConfig(level=settings.LOG_LEVEL.upper(), format="%(asctime)s %(levelname)s %(name)s: %(message)s")

    app = FastAPI(title="Storefront API", version="1.0.0", lifespan=lifespan)

    engine = build_engine(settings.DATABASE_URL)
    app.state.settings = settings
    app.state.engine = engine
    app.state.session_factory = build_session_factory(engine)
    app.state.payment_client = payment_client or StripeClient(settings)
    app.state.mailer = mailer or Mailer(settings)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    _register_error_handlers(app, settings)

    app.include_router(auth_router)
    app.include_router(admin_router)
    app.include_router(products_router)
    app.include_router(favorites_router)
    app.include_router(cart_router)
    app.include_router(orders_router)
    app.include_router(payments_router)

    @app.get("/health")
    def health():
        return {"ok": True}

    return app


app = create_app()
