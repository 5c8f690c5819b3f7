"""Advisory intent classification for inbound customer messages."""

import asyncio
import json
import logging
import re

from src.application.services.agent.prompts import INTENT_PROMPT, INTENT_SYSTEM_PROMPT
from src.domain.exceptions import CommerceError
from src.domain.model.agent import Intent, IntentClassification
from src.domain.ports import ChatModelPort

logger = logging.getLogger(__name__)

PRODUCT_KEYWORDS = (
    "product",
    "find",
    "search",
    "show me",
    "do you have",
    "looking for",
    "need",
    "want",
    "sofa",
    "candle",
    "table",
    "chair",
    "furniture",
    "available",
)
POLICY_KEYWORDS = ("policy", "return", "refund", "shipping", "help")
CART_KEYWORDS = ("cart", "buy", "checkout")

KEYWORD_CONFIDENCE = 0.6
GENERAL_CONFIDENCE = 0.5

_JSON_OBJECT = re.compile(r"\{.*?\}", re.DOTALL)


def classify_by_keywords(message: str) -> IntentClassification:
    """Deterministic classification used whenever the model is unavailable."""
    text = message.lower()
    if any(word in text for word in PRODUCT_KEYWORDS):
        return IntentClassification(Intent.PRODUCT_SEARCH, KEYWORD_CONFIDENCE, source="keywords")
    if any(word in text for word in POLICY_KEYWORDS):
        return IntentClassification(Intent.POLICY_QUESTION, KEYWORD_CONFIDENCE, source="keywords")
    if any(word in text for word in CART_KEYWORDS):
        return IntentClassification(Intent.CART_ACTION, KEYWORD_CONFIDENCE, source="keywords")
    return IntentClassification(Intent.GENERAL, GENERAL_CONFIDENCE, source="keywords")


def parse_classification(content: str) -> IntentClassification | None:
    match = _JSON_OBJECT.search(content or "")
    if not match:
        return None
    try:
        data = json.loads(match.group(0))
    except json.JSONDecodeError:
        return None
    if not isinstance(data, dict):
        return None
    try:
        intent = Intent(data.get("intent"))
    except ValueError:
        intent = Intent.GENERAL
    try:
        confidence = float(data.get("confidence", GENERAL_CONFIDENCE))
    except (TypeError, ValueError):
        confidence = GENERAL_CONFIDENCE
    return IntentClassification(intent, min(max(confidence, 0.0), 1.0))


class IntentClassifier:
    """Classifies a message with the chat model, falling back to keywords."""

    def __init__(self, chat_model: ChatModelPort | None, timeout: float = 10.0) -> None:
        self._chat_model = chat_model
        self._timeout = timeout

    async def classify(self, message: str) -> IntentClassification:
        if self._chat_model is None:
            return classify_by_keywords(message)

        try:
            response = await asyncio.wait_for(
                self._chat_model.generate(
                    [
                        {"role": "system", "content": INTENT_SYSTEM_PROMPT},
                        {"role": "user", "content": INTENT_PROMPT.format(message=message)},
                    ],
                    temperature=0.1,
                    max_tokens=50,
                ),
                timeout=self._timeout,
            )
        except (CommerceError, asyncio.TimeoutError) as e:
            logger.info(f"[IntentClassifier] Model classification unavailable, using keywords: {e!r}")
            return classify_by_keywords(message)

        classification = parse_classification(response.get("content", ""))
        if classification is None:
            logger.debug("[IntentClassifier] Unparseable model output, using keywords")
            return classify_by_keywords(message)
        return classification
