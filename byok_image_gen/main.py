from __future__ import annotations

import argparse
from typing import Annotated, Any, NoReturn

from fastmcp import FastMCP
from fastmcp.exceptions import ToolError
from fastmcp.tools.tool import ToolResult
from loguru import logger
from pydantic import Field

from .engines import EngineFactory
from .exceptions import ImageGenerationError
from .schema import (
    ApiKeyValidationResult,
    CapabilitiesResponse,
    Error,
    ImageGenerationOptions,
    ImageToolStructured,
)
from .settings import get_settings
from .shard.enums import OutputFormat
from .shard.instructions import SERVER_INSTRUCTIONS, TOOL_DESCRIPTIONS
from .utils.logging import configure_logging

app = FastMCP("byok-image-gen", instructions=SERVER_INSTRUCTIONS)


def _handle_unexpected_error(e: Exception) -> NoReturn:
    """Convert an unexpected exception to a ToolError.

    Classified generation failures are returned as structured errors instead;
    only bugs and unforeseen failures end up here.
    """
    logger.error(f"Unexpected error: {type(e).__name__}: {e}")
    raise ToolError("An unexpected error occurred. Please try again.")


def _error_from_exception(e: ImageGenerationError) -> Error:
    return Error(
        code=e.type.value,
        message=e.user_message,
        details={
            "retryable": e.retryable,
            "status_code": e.status_code,
            "provider_message": e.message,
        },
    )


@app.tool(
    name="generate_image",
    description=TOOL_DESCRIPTIONS["generate_image"],
    annotations={
        "title": "Generate Image(s)",
        "readOnlyHint": False,
        "idempotentHint": False,
        "openWorldHint": True,
    },
)
async def mcp_generate_image(
    prompt: Annotated[str, Field(description="Text description of the desired image.")],
    provider: Annotated[str, Field(description="Provider: 'openai' | 'gemini' (alias 'google') | 'xai'. Unknown values fall back to openai.")] = "openai",
    api_key: Annotated[str | None, Field(description="User's own provider API key. Falls back to the server's configured key.")] = None,
    base_url: Annotated[str | None, Field(description="Optional API base URL override, e.g. for a proxy.")] = None,
    model: Annotated[str | None, Field(description="Model id (e.g., 'dall-e-3', 'gpt-image-1', 'imagen-3', 'grok-2-image-1212').")] = None,
    n: Annotated[int | None, Field(ge=1, description="Count of images to generate; provider limits apply.")] = 1,
    size: Annotated[str | None, Field(description="Native size like '1024x1024' (OpenAI); used to infer an aspect ratio for Imagen.")] = None,
    aspect_ratio: Annotated[str | None, Field(description="Aspect ratio for Imagen: '1:1' | '16:9' | '9:16' | '3:4' | '4:3'.")] = None,
    quality: Annotated[str | None, Field(description="dall-e-3 quality: 'standard' | 'hd'.")] = None,
    style: Annotated[str | None, Field(description="dall-e-3 style: 'vivid' | 'natural'.")] = None,
    return_base64: Annotated[bool, Field(description="Return data URIs instead of provider-hosted URLs.")] = False,
    additional_params: Annotated[dict[str, Any] | None, Field(description="Provider-specific extras; fields the model does not accept are dropped.")] = None,
) -> ToolResult:
    """Generate image(s) from a prompt with the caller's own key."""
    settings = get_settings()
    resolved = EngineFactory.resolve_provider(provider)
    try:
        engine = EngineFactory.create(resolved, api_key or settings.api_key_for(resolved), base_url=base_url, use_mock=settings.use_mock)
        options = ImageGenerationOptions(
            count=n,
            size=size,
            aspect_ratio=aspect_ratio,
            quality=quality,
            style=style,
            model=model,
            response_format=OutputFormat.B64_JSON if return_base64 else OutputFormat.URL,
            return_base64=return_base64,
            additional_params=additional_params or {},
        )
        result = await engine.generate_images(prompt, options)
    except ImageGenerationError as e:
        logger.warning(f"Generation failed for {resolved.value}: {e.type.value} (retryable={e.retryable})")
        structured = ImageToolStructured(ok=False, provider=resolved, model=model, error=_error_from_exception(e))
        return ToolResult(content=structured.error.message, structured_content=structured.model_dump(mode="json"))
    except Exception as e:
        _handle_unexpected_error(e)

    meta = {k: v for k, v in result.metadata.items() if k != "model"}
    structured = ImageToolStructured(
        provider=resolved,
        model=result.metadata.get("model"),
        image_count=len(result.image_urls),
        image_urls=result.image_urls,
        meta=meta,
    )
    summary = f"Generated {structured.image_count} image(s) with {resolved.label} ({structured.model})."
    return ToolResult(content=summary, structured_content=structured.model_dump(mode="json"))


@app.tool(
    name="validate_api_key",
    description=TOOL_DESCRIPTIONS["validate_api_key"],
    annotations={
        "title": "Validate API Key",
        "readOnlyHint": True,
        "idempotentHint": True,
        "openWorldHint": True,
    },
)
async def mcp_validate_api_key(
    provider: Annotated[str, Field(description="Provider: 'openai' | 'gemini' (alias 'google') | 'xai'.")],
    api_key: Annotated[str | None, Field(description="Key to check. Falls back to the server's configured key.")] = None,
) -> ApiKeyValidationResult:
    """Check a key without spending generation credits."""
    settings = get_settings()
    resolved = EngineFactory.resolve_provider(provider)
    try:
        return await EngineFactory.validate_api_key(resolved, api_key or settings.api_key_for(resolved), use_mock=settings.use_mock)
    except Exception as e:
        _handle_unexpected_error(e)


@app.tool(
    name="get_provider_capabilities",
    description=TOOL_DESCRIPTIONS["get_provider_capabilities"],
    annotations={
        "title": "List Capabilities",
        "readOnlyHint": True,
        "idempotentHint": True,
        "openWorldHint": False,
    },
)
async def mcp_get_provider_capabilities(
    provider: Annotated[str | None, Field(description="Optional provider filter: openai | gemini | xai.")] = None,
) -> CapabilitiesResponse:
    """Return models, limits and accepted options per provider."""
    try:
        resolved = EngineFactory.resolve_provider(provider) if provider else None
        return CapabilitiesResponse(capabilities=EngineFactory.get_capabilities(resolved))
    except Exception as e:
        _handle_unexpected_error(e)


def main() -> None:
    parser = argparse.ArgumentParser(description="BYOK Image Gen MCP Server")
    parser.add_argument(
        "--transport",
        choices=["stdio", "http", "sse", "streamable-http"],
        help="Transport to use (stdio, sse, http, streamable-http). Default: stdio",
    )
    parser.add_argument("--host", help="Host to bind to")
    parser.add_argument("--port", type=int, help="Port to listen on")
    args = parser.parse_args()

    configure_logging(get_settings().log_level)

    transport = args.transport
    logger.info(f"Starting BYOK image server on {args.host}:{args.port} with {transport or 'stdio'} transport")

    # stdio does not accept host/port
    http_transports = {"http", "sse", "streamable-http"}
    if transport in http_transports:
        app.run(transport=transport, host=args.host, port=args.port)
    else:
        app.run()


if __name__ == "__main__":
    main()
