"""
LLM client - Provider-agnostic LLM integration using LiteLLM
"""

import json
import logging
import os
import re
from typing import Any

from dotenv import load_dotenv

# Load environment variables
load_dotenv()

logger = logging.getLogger(__name__)


def get_provider() -> str:
    """Get configured LLM provider"""
    return os.getenv("LLM_PROVIDER", "openai")


def get_model() -> str:
    """Get configured model name"""
    return os.getenv("LLM_MODEL", "gpt-4o")


def get_model_string() -> str:
    """Get the full model string for LiteLLM"""
    provider = get_provider()
    model = get_model()

    # LiteLLM uses prefixed model names for some providers
    if provider in ("gemini", "anthropic", "ollama"):
        return f"{provider}/{model}"
    # OpenAI doesn't need a prefix
    return model


async def get_completion(
    messages: list[dict[str, str]],
    model: str | None = None,
    temperature: float = 0.7,
    max_tokens: int = 1500,
    response_format: dict | None = None,
) -> str:
    """
    Get completion from configured LLM provider.

    Args:
        messages: List of message dicts with 'role' and 'content'
        model: Optional model override
        temperature: Creativity (0-1)
        max_tokens: Maximum response length
        response_format: Optional format specification

    Returns:
        The generated text response (may be empty)
    """
    import litellm

    _configure_api_keys()

    model_string = model or get_model_string()
    logger.info(
        f"LLM Request: model={model_string}, temperature={temperature}, max_tokens={max_tokens}"
    )

    kwargs: dict[str, Any] = {
        "model": model_string,
        "messages": messages,
        "temperature": temperature,
        "max_tokens": max_tokens,
    }
    # Not all models support JSON mode
    if response_format:
        kwargs["response_format"] = response_format

    try:
        response = await litellm.acompletion(**kwargs)
    except Exception as e:
        logger.error(f"LLM Error: {type(e).__name__}: {e}")
        raise

    choice = response.choices[0]
    content = choice.message.content or ""
    finish_reason = getattr(choice, "finish_reason", "unknown")
    logger.info(f"LLM Response: finish_reason={finish_reason}, content_length={len(content)}")

    if finish_reason == "length":
        logger.warning(f"Response TRUNCATED due to max_tokens limit ({max_tokens})")
    if not content:
        logger.warning("LLM returned empty content")
    else:
        preview = content[:200] + "..." if len(content) > 200 else content
        logger.debug(f"Response preview: {preview}")

    return content


def _configure_api_keys():
    """Configure API keys for LiteLLM from environment"""
    import litellm

    provider = get_provider()
    logger.debug(f"Configuring API keys for provider: {provider}")

    if provider == "openai":
        api_key = os.getenv("OPENAI_API_KEY")
        if api_key:
            litellm.api_key = api_key
        else:
            logger.warning("OPENAI_API_KEY not found in environment")

    elif provider in ("gemini", "anthropic"):
        env_name = f"{provider.upper()}_API_KEY"
        if not os.getenv(env_name):
            logger.warning(f"{env_name} not found in environment")

    elif provider == "ollama":
        base_url = os.getenv("OLLAMA_BASE_URL", "http://localhost:11434")
        os.environ["OLLAMA_API_BASE"] = base_url
        logger.debug(f"OLLAMA_API_BASE configured: {base_url}")


def parse_json_response(response: str | None) -> dict:
    """
    Parse a JSON object from an LLM response.
    Handles markdown code blocks and leading/trailing chatter.

    Raises:
        ValueError: If no JSON object can be read from the response
    """
    if response is None or not response.strip():
        raise ValueError("LLM returned empty response")

    cleaned = response.strip()
    cleaned = re.sub(r"^```(?:json)?\s*", "", cleaned, flags=re.IGNORECASE)
    cleaned = re.sub(r"\s*```\s*$", "", cleaned)

    try:
        parsed = json.loads(cleaned)
    except json.JSONDecodeError:
        json_match = re.search(r"\{[\s\S]*\}", cleaned)
        if not json_match:
            raise ValueError(f"No JSON object in LLM response: {_snippet(cleaned)}")
        try:
            parsed = json.loads(json_match.group())
        except json.JSONDecodeError as e:
            raise ValueError(f"Malformed JSON in LLM response ({e}): {_snippet(cleaned)}") from e

    if not isinstance(parsed, dict):
        raise ValueError(f"Expected a JSON object, got {type(parsed).__name__}")
    return parsed


def _snippet(text: str, limit: int = 200) -> str:
    return text[:limit] + "..." if len(text) > limit else text
