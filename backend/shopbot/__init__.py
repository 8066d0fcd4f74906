from .models import Product, PriceRange, IntentFilters, Intent, SemanticMatch, ChatRequest, ChatResponse, ChatDebug
from .errors import ShopBotError, ValidationError, UpstreamCallError, UpstreamParseError, EmbeddingFormatError, InternalError
from .intent import IntentExtractor, build_intent_prompt, parse_intent_reply
from .embeddings import EmbeddingCache, EmbeddingClient
from .similarity import SemanticMatcher, cosine_similarity
from .tools import Catalog, apply_filters, filter_products

__all__ = [
    'Product','PriceRange','IntentFilters','Intent','SemanticMatch','ChatRequest','ChatResponse','ChatDebug',
    'ShopBotError','ValidationError','UpstreamCallError','UpstreamParseError','EmbeddingFormatError','InternalError',
    'IntentExtractor','build_intent_prompt','parse_intent_reply',
    'EmbeddingCache','EmbeddingClient',
    'SemanticMatcher','cosine_similarity',
    'Catalog','apply_filters','filter_products'
]
