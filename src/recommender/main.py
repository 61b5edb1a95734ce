import logging
import os
from contextlib import asynccontextmanager

from elasticsearch import AsyncElasticsearch
from fastapi import Depends, FastAPI, Request
from fastapi.responses import JSONResponse

from .config import load_config
from .errors import RecommendationError
from .lib.content import ElasticsearchContentStore
from .lib.engine import RecommendationEngine
from .routers import health, recommendations
from .security import verify_api_key

logging.basicConfig(level=os.environ.get("LOG_LEVEL", "INFO").upper())

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    es = AsyncElasticsearch(
        os.environ.get("ELASTICSEARCH_URL", "http://localhost:9200"),
        api_key=os.environ.get("ELASTICSEARCH_API_KEY") or None,
    )
    app.state.es = es
    app.state.engine = RecommendationEngine(
        ElasticsearchContentStore(es), config=load_config()
    )
    logger.info("Recommendation engine started")
    try:
        yield
    finally:
        await es.close()
        logger.info("Recommendation engine stopped")


app = FastAPI(
    title="Content Recommender API",
    description="Personalized post recommendations with feedback-driven learning",
    version="0.1.0",
    lifespan=lifespan,
)


@app.exception_handler(RecommendationError)
async def recommendation_error_handler(request: Request, exc: RecommendationError):
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.detail)
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail})


app.include_router(health.router)
app.include_router(recommendations.router)


@app.get("/", dependencies=[Depends(verify_api_key)])
async def root():
    return {"message": "Content Recommender API"}
