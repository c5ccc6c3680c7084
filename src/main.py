"""
Timeline RAG - FastAPI application answering questions about one account's posts

Answers are grounded in the account's post export:
- Relevance engine (src.relevance) picks and renders the grounding posts
- Gemini (Google GenAI SDK) writes the answer
- FastAPI (async REST API) exposes chat, context and corpus endpoints

Architecture:
- Corpus is an immutable snapshot loaded from the JSON export at startup
- POST /v1/records/refresh rebuilds the snapshot and swaps it atomically
- Every query reads one snapshot reference; no shared mutable state
"""

import asyncio
import logging
import os
from contextlib import asynccontextmanager
from datetime import datetime
from pathlib import Path
from typing import List, Optional

# Load environment variables from .env.local (local dev) or .env (production)
from dotenv import load_dotenv

env_local = Path(__file__).parent.parent / ".env.local"
env_file = Path(__file__).parent.parent / ".env"

if env_local.exists():
    print(f"Loading environment from: {env_local}")
    load_dotenv(env_local, override=True)
elif env_file.exists():
    print(f"Loading environment from: {env_file}")
    load_dotenv(env_file, override=True)
else:
    print("WARNING: No .env.local or .env file found - using system environment variables only")

# Configure logging: console (brief) + file (detailed)
from src.logging_config import setup_logging

log_level = os.getenv("LOG_LEVEL", "INFO").upper()
console_level = getattr(logging, log_level, logging.INFO)
setup_logging(
    log_file=os.getenv("LOG_FILE", "logs/timeline-rag.log"),
    console_level=console_level,
    file_level=logging.DEBUG,  # Always DEBUG in file for troubleshooting
    keep_sessions=int(os.getenv("LOG_KEEP_SESSIONS", "5")),
)

logger = logging.getLogger(__name__)


from fastapi import FastAPI, HTTPException, Query, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from .corpus import CorpusLoadError, CorpusStore
from .generation import ResponseGenerator, create_genai_client, fallback_response
from .relevance import Record, RelevanceConfig, build_context_async
from .utils import split_message

# Configuration from environment variables
MAIN_HANDLE = os.getenv("MAIN_TWITTER_HANDLE", "")
RETWEET_HANDLES = [h.strip().lower() for h in os.getenv("RETWEET_HANDLES", "").split(",") if h.strip()]
RECORDS_EXPORT_PATH = os.getenv("RECORDS_EXPORT_PATH", f"twitter-UserTweets-{MAIN_HANDLE}.json")
PORT = int(os.getenv("PORT", "3000"))
CHAT_CHUNK_LENGTH = 2000

# Version tracking
APP_VERSION = "0.1.0"
APP_START_TIME = datetime.utcnow().isoformat() + "Z"

relevance_config = RelevanceConfig.from_env()

# Global instances
corpus_store: Optional[CorpusStore] = None
response_generator: Optional[ResponseGenerator] = None


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Initialize and cleanup resources"""
    global corpus_store, response_generator

    if not MAIN_HANDLE:
        raise ValueError("MAIN_TWITTER_HANDLE environment variable is required")

    corpus_store = CorpusStore(
        export_path=RECORDS_EXPORT_PATH,
        owner_handle=MAIN_HANDLE,
        retweet_handles=RETWEET_HANDLES,
        build_raw_index=relevance_config.use_raw_index,
        raw_window=relevance_config.raw_window,
    )

    logger.info(f"Loading posts from {RECORDS_EXPORT_PATH}...")
    snapshot = await asyncio.to_thread(lambda: corpus_store.snapshot)
    logger.info(f"Initial post loading complete: {len(snapshot)} posts")

    try:
        response_generator = ResponseGenerator(
            genai_client=create_genai_client(),
            relevance_config=relevance_config,
        )
        logger.info(f"Response generator initialized ({response_generator.model_name})")
    except Exception as e:
        logger.error(f"Response generator unavailable, chat will use fallback answers: {e}")
        response_generator = None

    yield

    logger.info("Shutting down...")
    corpus_store = None
    response_generator = None


app = FastAPI(
    title="Timeline RAG API",
    description="Question answering grounded in one account's post history",
    version=APP_VERSION,
    lifespan=lifespan,
)

# CORS middleware for frontend integration
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Configure properly in production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Request/Response models
class HealthResponse(BaseModel):
    status: str
    version: str
    started_at: str
    uptime_seconds: float
    posts_loaded: int


class PostItem(BaseModel):
    id: str
    text: str
    timestamp: str
    author: str
    likes: int
    reposts: int
    replies: int
    url: Optional[str] = None


class CorpusStats(BaseModel):
    total_posts: int
    oldest_post: Optional[str] = None
    newest_post: Optional[str] = None
    average_length: int


class PostListResponse(BaseModel):
    posts: List[PostItem]
    count: int
    stats: CorpusStats


class SearchResponse(BaseModel):
    posts: List[PostItem]
    count: int
    keyword: str


class RefreshResponse(BaseModel):
    message: str
    count: int
    source_hash: Optional[str] = None


class ContextRequest(BaseModel):
    query: str = Field(..., description="User question", min_length=1)


class ContextResponse(BaseModel):
    query: str
    context: str
    terms: List[str]
    record_ids: List[str]
    sources: List[str]
    raw_match_count: int
    total: int


class ChatRequest(BaseModel):
    message: str = Field(..., description="Question about the account", min_length=1)


class ChatResponse(BaseModel):
    answer: str
    sources: List[str]
    chunks: List[str] = Field(..., description=f"Answer split into chat messages of at most {CHAT_CHUNK_LENGTH} chars")
    fallback: bool = False


def _require_store() -> CorpusStore:
    if corpus_store is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Corpus not initialized",
        )
    return corpus_store


def _post_item(record: Record) -> PostItem:
    return PostItem(
        id=record.id,
        text=record.text,
        timestamp=record.timestamp.isoformat(),
        author=record.author,
        likes=record.likes,
        reposts=record.reposts,
        replies=record.replies,
        url=record.url,
    )


# Routes
@app.get("/", response_model=dict)
async def root():
    """Root endpoint"""
    return {
        "service": "Timeline RAG API",
        "version": APP_VERSION,
        "status": "running",
        "docs": "/docs",
    }


@app.get("/health", response_model=HealthResponse)
async def health():
    """Health check endpoint"""
    start_time = datetime.fromisoformat(APP_START_TIME.rstrip('Z'))
    uptime = (datetime.utcnow() - start_time).total_seconds()

    posts_loaded = len(corpus_store.snapshot) if corpus_store is not None and corpus_store.is_loaded else 0

    return HealthResponse(
        status="healthy",
        version=APP_VERSION,
        started_at=APP_START_TIME,
        uptime_seconds=round(uptime, 2),
        posts_loaded=posts_loaded,
    )


@app.get("/v1/records", response_model=PostListResponse)
async def list_records():
    """All loaded posts (newest first) with corpus statistics"""
    store = _require_store()
    snapshot = store.snapshot
    return PostListResponse(
        posts=[_post_item(r) for r in snapshot.records],
        count=len(snapshot),
        stats=CorpusStats(**store.stats()),
    )


@app.get("/v1/records/recent", response_model=PostListResponse)
async def recent_records(count: int = Query(default=10, ge=1, le=500)):
    """Most recent posts"""
    store = _require_store()
    posts = store.recent(count)
    return PostListResponse(
        posts=[_post_item(r) for r in posts],
        count=len(posts),
        stats=CorpusStats(**store.stats()),
    )


@app.get("/v1/records/stats", response_model=CorpusStats)
async def record_stats():
    """Corpus statistics"""
    return CorpusStats(**_require_store().stats())


@app.get("/v1/records/search/{keyword}", response_model=SearchResponse)
async def search_records(keyword: str):
    """Posts whose text or author contains keyword (case-insensitive)"""
    posts = _require_store().search(keyword)
    return SearchResponse(
        posts=[_post_item(r) for r in posts],
        count=len(posts),
        keyword=keyword,
    )


@app.post("/v1/records/refresh", response_model=RefreshResponse)
async def refresh_records():
    """
    Reload posts from the export file.

    The new snapshot replaces the old one only after it is fully built;
    on failure the previous snapshot stays active and 500 is returned.
    """
    store = _require_store()
    logger.info("Manual post refresh triggered via API")
    try:
        snapshot = await asyncio.to_thread(store.refresh)
    except CorpusLoadError as e:
        logger.error(f"Manual refresh failed: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to refresh posts from export: {str(e)}",
        )

    return RefreshResponse(
        message="Posts refreshed from export file successfully",
        count=len(snapshot),
        source_hash=snapshot.source_hash,
    )


@app.post("/v1/context", response_model=ContextResponse)
async def query_context(request: ContextRequest):
    """
    Build the grounding context for a question without calling the model.

    Useful for inspecting which posts a question selects.
    """
    snapshot = _require_store().snapshot
    result = await build_context_async(request.query, snapshot, config=relevance_config)

    return ContextResponse(
        query=request.query,
        context=result.context,
        terms=result.terms,
        record_ids=result.record_ids,
        sources=result.sources,
        raw_match_count=result.raw_match_count,
        total=len(result.records),
    )


@app.post("/v1/chat", response_model=ChatResponse)
async def chat(request: ChatRequest):
    """
    Answer a question about the account, grounded in its posts.

    Returns the answer, the URLs of the posts used as grounding, and the
    answer pre-split into chat-sized chunks.
    """
    snapshot = _require_store().snapshot

    if response_generator is None:
        result = await build_context_async(request.message, snapshot, config=relevance_config)
        answer = fallback_response(request.message, snapshot)
        return ChatResponse(
            answer=answer,
            sources=result.sources,
            chunks=split_message(answer, CHAT_CHUNK_LENGTH),
            fallback=True,
        )

    generated = await response_generator.generate(request.message, snapshot)
    return ChatResponse(
        answer=generated.text,
        sources=generated.context.sources,
        chunks=split_message(generated.text, CHAT_CHUNK_LENGTH),
        fallback=generated.fallback,
    )


@app.exception_handler(Exception)
async def global_exception_handler(request, exc):
    """Global exception handler"""
    logger.exception(f"Unhandled error on {request.url.path}: {exc}")
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "error": "Internal server error",
            "detail": str(exc),
        },
    )


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "src.main:app",
        host="0.0.0.0",
        port=PORT,
        reload=True,  # Development only
    )
