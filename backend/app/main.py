import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from redis.asyncio import Redis

from config import settings
from api.ai import router as ai_router
from services.ai_config import MemoryConfigStore, RedisConfigStore
from services.knowledge_base import MemoryDocumentCorpus

logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL, logging.INFO),
    format="%(asctime)s [%(name)s] %(levelname)s: %(message)s",
)
logger = logging.getLogger("devcenter.main")


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("DevCenter backend starting... DEBUG=%s", settings.DEBUG)

    # AI configuration store
    redis = None
    if settings.AI_CONFIG_STORE == "redis":
        redis = Redis.from_url(settings.REDIS_URL, decode_responses=True)
        app.state.config_store = RedisConfigStore(redis)
        logger.info("AI config store: Redis %s", settings.REDIS_URL)
    else:
        app.state.config_store = MemoryConfigStore()
        logger.info("AI config store: in-memory")

    # Published docs are pushed here by the portal's document service
    app.state.doc_corpus = MemoryDocumentCorpus()

    yield

    logger.info("DevCenter backend shutting down...")
    if redis is not None:
        await redis.aclose()
    logger.info("Shutdown complete")


app = FastAPI(
    title="DevCenter AI API",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(ai_router)


@app.get("/health")
async def health():
    return {"status": "ok", "version": "0.1.0"}
