import json

import pytest

from shopbot.errors import EmbeddingFormatError, UpstreamCallError, UpstreamParseError
from shopbot.intent import IntentExtractor, build_intent_prompt, build_messages, parse_intent_reply
from shopbot.models import Intent, Product, SemanticMatch


class FakeChat:
    """Stands in for OpenRouterClient.chat_completion"""

    def __init__(self, reply=None, error=None):
        self.reply = reply
        self.error = error
        self.calls = []

    def chat_completion(self, messages, model=None, temperature=None):
        self.calls.append({"messages": messages, "temperature": temperature})
        if self.error is not None:
            raise self.error
        return self.reply


class FakeMatcher:
    def __init__(self, matches=None, error=None):
        self.matches = matches or []
        self.error = error
        self.queries = []

    def find_similar(self, query, catalog, top_k=5):
        self.queries.append((query, top_k))
        if self.error is not None:
            raise self.error
        return self.matches[:top_k]


SHOE = Product(id="1", name="Air Runner", category="sneakers", price=69.99)

GOOD_REPLY = json.dumps({
    "category": "Sneakers",
    "priceRange": {"min": 60, "max": 75},
    "filters": {"purpose": "Sport", "age_group": None, "style": None},
})


# Prompt building
def test_prompt_embeds_message_and_rules():
    prompt = build_intent_prompt("running shoes between 60 and 75")
    assert '"running shoes between 60 and 75"' in prompt
    assert "under/below X" in prompt
    assert "priceRange" in prompt

def test_messages_carry_system_instruction():
    messages = build_messages("sandals")
    assert [m["role"] for m in messages] == ["system", "user"]
    assert "explicitly mentioned" in messages[0]["content"]


# Reply parsing
def test_parse_full_reply():
    intent = parse_intent_reply(GOOD_REPLY)
    assert intent.category == "sneakers"
    assert intent.price_range.min == 60
    assert intent.price_range.max == 75
    assert intent.filters.purpose == "sport"
    assert intent.filters.age_group is None
    assert intent.semantic_matches is None

def test_parse_keeps_zero_and_open_upper_bound():
    intent = parse_intent_reply('{"category": null, "priceRange": {"min": 0, "max": null}, "filters": {}}')
    assert intent.price_range.min == 0
    assert intent.price_range.max is None

def test_parse_strips_code_fence_and_normalizes_values():
    reply = '```json\n{"category": "running shoes", "priceRange": {"min": "$80", "max": 40}, "filters": {"purpose": "null", "style": " "}}\n```'
    intent = parse_intent_reply(reply)
    assert intent.category == "sneakers"
    # swapped bounds are put back in order
    assert (intent.price_range.min, intent.price_range.max) == (40, 80)
    assert intent.filters.purpose is None
    assert intent.filters.style is None

def test_parse_missing_sections_mean_absent():
    intent = parse_intent_reply('{"category": "formal"}')
    assert intent.category == "formal"
    assert intent.price_range.is_empty()
    assert intent.filters.purpose is None

@pytest.mark.parametrize("reply", [
    "Sure! Here are some sneakers",
    "[1, 2, 3]",
    '{"category": "sneakers", "maxPrice": 50}',
    '{"priceRange": {"min": -5}}',
    '{"priceRange": {"max": true}}',
    '{"priceRange": {"min": "inf"}}',
    '{"priceRange": {"max": "Infinity"}}',
    '{"priceRange": {"min": 1e400}}',
    '{"priceRange": {"max": "NaN"}}',
    '{"priceRange": {"max": 1' + '0' * 400 + '}}',
    '{"filters": {"purpose": 3}}',
])
def test_parse_rejects_bad_replies(reply):
    with pytest.raises(UpstreamParseError):
        parse_intent_reply(reply)


# Extractor fallbacks
def test_extract_intent_sends_deterministic_request():
    chat = FakeChat(reply=GOOD_REPLY)
    intent = IntentExtractor(chat).extract_intent("sport sneakers 60-75")
    assert intent.category == "sneakers"
    assert chat.calls[0]["temperature"] == 0

def test_malformed_reply_degrades():
    intent = IntentExtractor(FakeChat(reply="not json at all")).extract_intent("shoes")
    assert intent == Intent.degraded()
    assert intent.is_unconstrained()

def test_remote_failure_degrades():
    chat = FakeChat(error=UpstreamCallError("Request to /chat/completions returned HTTP 502", status_code=502))
    matcher = FakeMatcher(matches=[SemanticMatch(product=SHOE, similarity_score=0.9)])
    intent = IntentExtractor(chat, matcher=matcher, catalog=[SHOE]).extract_intent("shoes")
    assert intent.is_unconstrained()
    assert intent.semantic_matches is None
    assert matcher.queries == []

def test_semantic_matches_use_raw_message():
    match = SemanticMatch(product=SHOE, similarity_score=0.9)
    matcher = FakeMatcher(matches=[match] * 7)
    extractor = IntentExtractor(FakeChat(reply=GOOD_REPLY), matcher=matcher, catalog=[SHOE])
    intent = extractor.extract_intent("Comfy runners please")
    assert matcher.queries == [("Comfy runners please", 5)]
    assert len(intent.semantic_matches) == 5
    assert intent.category == "sneakers"

@pytest.mark.parametrize("error", [
    UpstreamCallError("timeout"),
    EmbeddingFormatError("no vector"),
])
def test_semantic_failure_keeps_primary_fields(error):
    extractor = IntentExtractor(FakeChat(reply=GOOD_REPLY), matcher=FakeMatcher(error=error), catalog=[SHOE])
    intent = extractor.extract_intent("sport sneakers")
    assert intent.semantic_matches == []
    assert intent.category == "sneakers"
    assert intent.price_range.max == 75

def test_no_matcher_leaves_matches_absent():
    intent = IntentExtractor(FakeChat(reply=GOOD_REPLY)).extract_intent("sport sneakers")
    assert intent.semantic_matches is None
