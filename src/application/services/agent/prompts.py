"""Prompt templates and canned replies for the commerce assistant."""

from src.domain.model.agent import Intent, ToolResult

CATALOG_TOOL = "search_shop_catalog"
POLICY_TOOL = "search_shop_policies_and_faqs"

SYSTEM_PROMPT = """You are a helpful customer service assistant for an e-commerce store ({store}).

{context}

INSTRUCTIONS FOR FUNCTION CALLING:
- When customers ask about products, catalogs, or items, use the search_shop_catalog tool
- When customers ask about policies, shipping, returns, or store information, use the search_shop_policies_and_faqs tool
- Never make up product information or write function calls as JSON text
- Only provide product or policy details that come from actual tool results

For greetings and general questions, reply conversationally.

Keep responses concise (2-3 sentences max) and conversational."""

HUMANIZE_SYSTEM_PROMPT = (
    "You are a helpful customer service assistant. "
    "Provide natural, conversational responses based on the tool results."
)

HUMANIZE_PROMPT = """The customer asked: "{question}"

Tool results:
{results}

Write a natural, friendly reply (2-3 sentences max) that answers the customer's question using only this information."""

INTENT_SYSTEM_PROMPT = (
    "You are an expert at classifying customer service messages. "
    'Always respond only with a JSON object like: {"intent": "product_search", "confidence": 0.85}'
)

INTENT_PROMPT = """Classify the following customer message into one of these intents:

1. "product_search" - looking for products, asking about specific items, or browsing
2. "policy_question" - store policies, returns, shipping, refunds, or general help
3. "cart_action" - managing the cart, checking out, or purchasing
4. "general" - greetings, small talk, or unclear intent

Message: "{message}"

Respond only with a JSON object."""

ACKNOWLEDGEMENT_REPLY = (
    "Thanks for your message! We've received it and someone will get back to you shortly."
)
DEFAULT_REPLY = "I'm here to help! How can I assist you today?"
HUMANIZE_EMPTY_REPLY = (
    "I found some information for you, but I'm having trouble formatting it right now."
)

_TOOL_FALLBACK_REPLY = (
    "Let me help you find that! I couldn't look that up just now. "
    "Could you tell me a bit more about what you need?"
)

_INTENT_FALLBACK_REPLIES = {
    Intent.PRODUCT_SEARCH: (
        "Let me help you find that! I couldn't reach our catalog just now. "
        "Could you tell me a bit more about what you're looking for?"
    ),
    Intent.POLICY_QUESTION: (
        "Let me help you with that! I couldn't look up our store policies just now. "
        "Could you tell me a bit more about your question?"
    ),
    Intent.CART_ACTION: (
        "Let me help you with your order! I couldn't reach your cart just now, "
        "please try again in a moment."
    ),
}


def build_system_prompt(
    store: str | None, tenant_id: str | None = None, customer_phone: str | None = None
) -> str:
    context = ". ".join(
        part
        for part in (
            f"Store: {store}" if store else None,
            f"Tenant: {tenant_id}" if tenant_id else None,
            f"Customer phone: {customer_phone}" if customer_phone else None,
        )
        if part
    )
    return SYSTEM_PROMPT.format(store=store or "our store", context=context)


def build_humanize_prompt(question: str, results: list[ToolResult]) -> str:
    rendered = "\n\n".join(f"{result.name}: {result.raw_text}" for result in results)
    return HUMANIZE_PROMPT.format(question=question, results=rendered)


def templated_summary(results: list[ToolResult], limit: int = 600) -> str:
    """Plain summary used when the humanize call fails."""
    body = " ".join(result.raw_text.strip() for result in results if result.raw_text.strip())
    if len(body) > limit:
        body = body[: limit - 3].rstrip() + "..."
    if not body:
        return HUMANIZE_EMPTY_REPLY
    return f"I found some information for you: {body}"


def intent_fallback_reply(intent: Intent | None) -> str:
    """Reply for a turn where tools were wanted but none succeeded."""
    return _INTENT_FALLBACK_REPLIES.get(intent, _TOOL_FALLBACK_REPLY) if intent else _TOOL_FALLBACK_REPLY


def basic_reply(customer_message: str) -> str:
    """Reply used when the model is unavailable and no store tools are configured."""
    return f'Hi! I received your message: "{customer_message}". How can I help you today?'
