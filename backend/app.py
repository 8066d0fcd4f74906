# FastAPI backend for ShopBot
# Turns a free text shopping message into an intent and returns the matching catalog products
from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from shopbot.config import Settings, get_settings
from shopbot.embeddings import EmbeddingCache, EmbeddingClient
from shopbot.errors import InternalError, ValidationError
from shopbot.intent import IntentExtractor
from shopbot.llm import OpenRouterClient
from shopbot.logger import get_logger
from shopbot.models import ChatDebug, ChatRequest, ChatResponse, Product
from shopbot.similarity import SemanticMatcher
from shopbot.tools import Catalog

# app

APP_VERSION = "2.0.0"
SETTINGS: Settings = get_settings()
logger = get_logger("app")
app = FastAPI(title="ShopBot API", version=APP_VERSION)

# CORS setup for local development with the chat frontend
app.add_middleware(
    CORSMiddleware,
    allow_origins=SETTINGS.allowed_origins + ["http://localhost:8000"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Global state for the catalog and the extraction pipeline
CATALOG: Catalog | None = None
EXTRACTOR: IntentExtractor | None = None
EMBEDDING_CACHE = EmbeddingCache()  # shared by every request, cleared via /embeddings/reset


def build_extractor(settings: Settings, catalog: Catalog, cache: EmbeddingCache) -> IntentExtractor:
    client = OpenRouterClient(settings)
    matcher = None
    if settings.semantic_search:
        matcher = SemanticMatcher(EmbeddingClient(client), cache)
    return IntentExtractor(
        client,
        matcher=matcher,
        catalog=catalog.products,
        semantic_top_k=settings.semantic_top_k,
    )


@app.on_event("startup")
def startup():
    # Load the product catalog when the server starts
    global CATALOG, EXTRACTOR
    try:
        CATALOG = Catalog.from_path(SETTINGS.catalog_path)
    except Exception as e:
        raise RuntimeError(f"Failed to load product catalog: {e}")
    if not SETTINGS.has_api_key:
        logger.warning("OPENROUTER_API_KEY is not set, every message will match the whole catalog")
    EXTRACTOR = build_extractor(SETTINGS, CATALOG, EMBEDDING_CACHE)


def _get_catalog() -> Catalog:
    if CATALOG is None:
        raise InternalError("Catalog not ready")
    return CATALOG


def _get_extractor() -> IntentExtractor:
    if EXTRACTOR is None:
        raise InternalError("Intent extractor not ready")
    return EXTRACTOR


def _redact(text: str) -> str:
    key = SETTINGS.api_key
    if key and key in text:
        return text.replace(key, "***")
    return text


@app.exception_handler(ValidationError)
async def validation_error(request: Request, exc: ValidationError):
    return JSONResponse(status_code=400, content={"error": str(exc)})


@app.exception_handler(RequestValidationError)
async def request_validation_error(request: Request, exc: RequestValidationError):
    # Unparseable or mistyped bodies are reported like a missing message
    return JSONResponse(status_code=400, content={"error": "Message is required"})


@app.get("/health")
def health():
    return {
        "status": "ok",
        "catalog_size": len(CATALOG) if CATALOG else 0,
        "embedding_cache": EMBEDDING_CACHE.state.value,
        "version": APP_VERSION,
    }


@app.get("/version")
def version():
    return {"version": APP_VERSION}


@app.post("/chat", response_model=ChatResponse)
def chat(req: ChatRequest):
    # Validate before anything touches the catalog or the remote model
    if not req.message or not req.message.strip():
        raise ValidationError("Message is required")
    message = req.message

    try:
        logger.info(f"Incoming message: {message}")
        catalog = _get_catalog()
        intent = _get_extractor().extract_intent(message)
        logger.info(
            "Extracted intent: "
            + intent.model_dump_json(by_alias=True, exclude={"semantic_matches"})
        )

        products = catalog.filter(intent)
        logger.info(f"Filtered products: {len(products)} of {len(catalog)}")

        return ChatResponse(
            products=products,
            intent=intent,
            debug=ChatDebug(
                original_message=message,
                extracted_intent=intent,
                total_products=len(catalog),
                filtered_count=len(products),
            ),
        )
    except Exception as e:
        logger.exception("Error processing chat")
        return JSONResponse(
            status_code=500,
            content={"error": "Failed to process message", "details": _redact(str(e))},
        )


@app.get("/products/{pid}", response_model=Product)
def get_product(pid: str):
    try:
        catalog = _get_catalog()
    except InternalError as e:
        raise HTTPException(status_code=500, detail=str(e))
    product = catalog.get(pid)
    if product is None:
        raise HTTPException(status_code=404, detail="Not found")
    return product


@app.get("/meta")
def meta():
    try:
        catalog = _get_catalog()
    except InternalError as e:
        raise HTTPException(status_code=500, detail=str(e))
    df = catalog.df
    price_min = float(df["price"].min()) if not df.empty else 0.0
    price_max = float(df["price"].max()) if not df.empty else 0.0
    return {"categories": catalog.categories(), "price_min": price_min, "price_max": price_max}


@app.post("/embeddings/reset")
def reset_embeddings():
    # Call after the catalog file changes, the next semantic query rebuilds the vectors
    EMBEDDING_CACHE.reset()
    return {"status": "cleared", "embedding_cache": EMBEDDING_CACHE.state.value}
