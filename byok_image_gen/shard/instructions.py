from __future__ import annotations

# Tool descriptions used by FastMCP when registering tools. Keep short and clear.
TOOL_DESCRIPTIONS: dict[str, str] = {
    "generate_image": "Generate image(s) from a text prompt with a bring-your-own API key for openai, gemini or xai.",
    "validate_api_key": "Check an API key against the provider's model listing. Never consumes generation credits.",
    "get_provider_capabilities": "Return per-provider models, image limits and accepted option fields.",
}


# High-level, concise server instructions for agents.
SERVER_INSTRUCTIONS: str = (
    "BYOK Image Generation MCP Server - Agent Instructions.\n"
    "Role: This server exposes three tools: get_provider_capabilities, validate_api_key and generate_image. "
    "Each request can carry the user's own provider API key; when omitted, the server's configured key is used.\n\n"
    "Workflow (short):\n"
    "1) Call get_provider_capabilities to see models, max images per request and accepted options.\n"
    "2) Optionally call validate_api_key before the first generation with a new key.\n"
    "3) Call generate_image with provider, prompt and only the options the chosen model accepts.\n\n"
    "Hard rules (must follow):\n"
    "- Unsupported options are dropped silently; do not rely on them.\n"
    "- xAI prompts are reduced to printable ASCII; other characters become spaces.\n"
    "- Honor max_n for the chosen model; larger counts are clamped.\n\n"
    "Outputs and failures (summary):\n"
    "- generate_image returns ImageToolStructured with ok, provider, model, image_count, image_urls, meta and error.\n"
    "- On failure, error.code is one of authentication, billing, rate_limit, content_policy, invalid_prompt, "
    "server_error, network_error, unknown. error.details.retryable tells whether trying again later can help; "
    "the server has already retried transient failures.\n"
)


__all__ = ["TOOL_DESCRIPTIONS", "SERVER_INSTRUCTIONS"]
