"""Claude API client — Structured Outputs, prompt caching, vision input, model routing.

Two model tiers:
  - FAST: claude-haiku-4-5 for screenshot/video descriptions
  - SMART: claude-sonnet-4-5 for the triage verdict

Usage:
    from triage.utils.claude_client import claude_structured
    result = await claude_structured(
        prompt="Analyze this bug report...",
        schema=VERDICT_SCHEMA,
        system="You are a debugging assistant.",
        model_tier="smart",
        image_urls=[report.screenshot_url],
    )
"""

import asyncio
import logging
from typing import Any

from triage.config import settings
from triage.http_client import http

log = logging.getLogger("triage.claude")

API_URL = "https://api.anthropic.com/v1/messages"
API_VERSION = "2023-06-01"

MODELS = {
    "fast": "claude-haiku-4-5-20251001",
    "smart": "claude-sonnet-4-5-20250929",
}

RETRYABLE_STATUSES = {429, 500, 502, 503, 504, 529}
MAX_RETRIES = 3
BASE_DELAY = 1.0  # seconds


def model_for(model_tier: str) -> str:
    return MODELS.get(model_tier, MODELS["fast"])


def _headers(*, cache: bool = False) -> dict:
    """Build API headers. Enable prompt caching when static prompts are reused."""
    h = {
        "x-api-key": settings.anthropic_api_key,
        "anthropic-version": API_VERSION,
        "content-type": "application/json",
    }
    if cache:
        h["anthropic-beta"] = "prompt-caching-2024-07-31"
    return h


def _user_content(prompt: str, image_urls: list[str] | None) -> str | list[dict]:
    if not image_urls:
        return prompt
    blocks: list[dict] = [
        {"type": "image", "source": {"type": "url", "url": url}} for url in image_urls
    ]
    blocks.append({"type": "text", "text": prompt})
    return blocks


async def claude_structured(
    prompt: str,
    schema: dict,
    *,
    system: str = "",
    model_tier: str = "fast",
    max_tokens: int = 2048,
    image_urls: list[str] | None = None,
    cache_system: bool = True,
    timeout: int = 60,
) -> dict | None:
    """Call Claude with guaranteed-valid JSON output (tool-use structured output).

    Args:
        prompt: User message content
        schema: JSON Schema that the model MUST conform to
        system: System prompt (cached if cache_system=True)
        model_tier: "fast" (Haiku) or "smart" (Sonnet)
        max_tokens: Max output tokens
        image_urls: Publicly reachable images sent ahead of the prompt
        cache_system: Whether to mark the system prompt as cacheable
        timeout: Request timeout seconds

    Returns:
        Parsed dict conforming to schema, or None on failure
    """
    if not settings.anthropic_api_key:
        return None

    system_blocks = []
    if system:
        block = {"type": "text", "text": system}
        if cache_system:
            block["cache_control"] = {"type": "ephemeral"}
        system_blocks.append(block)

    body: dict[str, Any] = {
        "model": model_for(model_tier),
        "max_tokens": max_tokens,
        "messages": [{"role": "user", "content": _user_content(prompt, image_urls)}],
        "tools": [
            {
                "name": "structured_output",
                "description": "Return structured data matching the required schema.",
                "input_schema": schema,
            }
        ],
        "tool_choice": {"type": "tool", "name": "structured_output"},
    }
    if system_blocks:
        body["system"] = system_blocks

    for attempt in range(MAX_RETRIES):
        try:
            resp = await http.post(
                API_URL,
                headers=_headers(cache=cache_system),
                json=body,
                timeout=timeout,
            )
        except Exception as e:
            if attempt < MAX_RETRIES - 1:
                delay = BASE_DELAY * (2 ** attempt)
                log.warning(f"Claude call failed (attempt {attempt + 1}/{MAX_RETRIES}), retry in {delay:.1f}s: {e}")
                await asyncio.sleep(delay)
                continue
            log.warning(f"Claude structured call failed after {MAX_RETRIES} attempts: {e}")
            return None

        if resp.status_code in RETRYABLE_STATUSES and attempt < MAX_RETRIES - 1:
            delay = BASE_DELAY * (2 ** attempt)
            log.warning(f"Claude API {resp.status_code} (attempt {attempt + 1}/{MAX_RETRIES}), retry in {delay:.1f}s")
            await asyncio.sleep(delay)
            continue

        if resp.status_code != 200:
            log.warning(f"Claude API {resp.status_code}: {resp.text[:200]}")
            return None

        data = resp.json()
        for block in data.get("content", []):
            if (
                block.get("type") == "tool_use"
                and block.get("name") == "structured_output"
            ):
                return block.get("input")

        log.warning("Claude structured output: no tool_use block in response")
        return None

    return None
