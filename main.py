import os
from contextlib import asynccontextmanager

from beanie import init_beanie
from dotenv import load_dotenv
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from motor.motor_asyncio import AsyncIOMotorClient

# Load environment variables before anything reads them
load_dotenv()

from socialhub.models.app_config import AppConfigRecord
from socialhub.models.credential import AppCredential
from socialhub.models.post import Post
from socialhub.platforms.registry import build_registry
from socialhub.routes import account_routes, analytics_routes, engage_routes, oauth_routes, post_routes
from socialhub.services.storage_service import MediaStorage
from socialhub.utils.auth import NotAuthorizedError
from socialhub.utils.errors import ConfigError
from socialhub.utils.logger import logger

db_initialized = False


async def ensure_beanie_initialized():
    global db_initialized
    if db_initialized:
        return

    mongo_uri = os.getenv("MONGODB_URI")
    if not mongo_uri:
        logger.critical("MONGODB_URI not found")
        return

    try:
        client = AsyncIOMotorClient(mongo_uri)

        try:
            db = client.get_default_database()
        except Exception:
            # No database in the URI (ConfigurationError)
            db = client["socialhub"]

        await init_beanie(database=db, document_models=[AppCredential, AppConfigRecord, Post])
        db_initialized = True
        logger.info("Beanie initialized successfully")
    except Exception as e:
        logger.error(f"Failed to initialize Beanie: {e}")


@asynccontextmanager
async def lifespan(app: FastAPI):
    app.state.storage = MediaStorage.from_env()
    app.state.registry = build_registry(app.state.storage)
    await ensure_beanie_initialized()
    yield


app = FastAPI(title="SocialHub API", version="1.0.0", lifespan=lifespan)

origins = os.getenv("CORS_ORIGINS", "*").split(",")
app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(NotAuthorizedError)
async def not_authorized_handler(request: Request, exc: NotAuthorizedError):
    return JSONResponse(status_code=401, content={"message": str(exc), "status": False})


@app.exception_handler(ConfigError)
async def config_error_handler(request: Request, exc: ConfigError):
    logger.error(f"Configuration error on {request.url.path}: {exc}")
    return JSONResponse(status_code=500, content={"message": str(exc), "status": False})


app.include_router(post_routes.router)
app.include_router(account_routes.router)
app.include_router(analytics_routes.router)
app.include_router(engage_routes.router)
# catch-all /{platform}/... routes go last
app.include_router(oauth_routes.router)


@app.get("/health")
async def health_check():
    try:
        if not db_initialized:
            await ensure_beanie_initialized()
        await AppCredential.count()
        db_status = "connected"
    except Exception as e:
        db_status = f"error: {str(e)}"

    return {
        "status": "ok" if "error" not in db_status else "degraded",
        "message": "SocialHub API is running",
        "database": db_status,
        "initialized": db_initialized,
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("main:app", host="0.0.0.0", port=int(os.getenv("PORT", 3000)), reload=True)
