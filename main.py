import logging
import os
from contextlib import asynccontextmanager

from fastapi import APIRouter, FastAPI
from fastapi.middleware.cors import CORSMiddleware

import accounts
import database
import settings
from errors import InvalidState, api_response, install_error_handlers
from routes_product import router as product_router
from routes_user import router as user_router

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    database.ensure_indexes()
    logger.info("Nutrition Marketplace API started (%s)", settings.ENVIRONMENT)
    yield


# App and CORS
app = FastAPI(title="Nutrition Marketplace API", lifespan=lifespan)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
install_error_handlers(app)

health_router = APIRouter(prefix="/health", tags=["health"])


@health_router.get("")
def health_check():
    return api_response(200, {"timestamp": database.now().isoformat()}, "Server is working fine.")


app.include_router(health_router, prefix=settings.API_PREFIX)
app.include_router(user_router, prefix=settings.API_PREFIX)
app.include_router(product_router, prefix=settings.API_PREFIX)


# Bootstrap route for demo
@app.post("/init/bootstrap", status_code=201)
def bootstrap_admin():
    """Create the first admin from the ADMIN_* settings if none exists."""
    if database.collection("user").count_documents({"role": "admin"}) > 0:
        raise InvalidState("Admin already exists")
    admin = accounts.create_admin(
        settings.ADMIN_USERNAME,
        settings.ADMIN_EMAIL,
        settings.ADMIN_PASSWORD,
        settings.ADMIN_FULL_NAME,
    )
    logger.info("Bootstrapped admin %s", admin["username"])
    return api_response(201, {"user": accounts.public_view(admin)}, "Admin created")


# Utility endpoints
@app.get("/")
def root():
    return {"message": "Nutrition Marketplace API running"}


@app.get("/test")
def test_database():
    db = database.db
    try:
        collections = db.list_collection_names() if db is not None else []
        return {"backend": "ok", "database": "ok" if db is not None else "missing", "collections": collections}
    except Exception:
        logger.exception("Database check failed")
        return {"backend": "ok", "database": "error"}


if __name__ == "__main__":
    import uvicorn
    port = int(os.getenv("PORT", 8000))
    uvicorn.run(app, host="0.0.0.0", port=port)
