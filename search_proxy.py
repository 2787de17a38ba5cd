"""
Search proxy core
=================
Sends a free-text query to the Anthropic Messages API with web search enabled
and pulls a JSON array of events out of the model's reply.

Every transport (api/index.py on Vercel, server.py standalone, server.py with a
static bundle) calls search_events() and maps SearchError.status_code to HTTP.
"""

import json
import logging
import re

import requests

from event_schema import VIBE_TAGS, validate_events

logger = logging.getLogger(__name__)

ANTHROPIC_API_URL = "https://api.anthropic.com/v1/messages"
ANTHROPIC_VERSION = "2023-06-01"
MODEL = "claude-sonnet-4-20250514"
MAX_TOKENS = 4000
WEB_SEARCH_TOOL = {"type": "web_search_20250305", "name": "web_search"}

SYSTEM_PROMPT = (
    "You are a Paris events data extractor. Search for REAL events happening THIS WEEK in Paris. "
    "Focus on: live music (rock, indie, post-punk, blues, electro), art exhibitions, cinema screenings, DJ nights. "
    "Prioritize venues in and near the 20th arrondissement (Belleville, Ménilmontant, Oberkampf, Jourdain).\n\n"
    "Return ONLY valid JSON array. No markdown, no backticks, no preamble. Each event object must have:\n"
    "{\n"
    '  "title": "exact event name",\n'
    '  "venue_name": "exact venue name",\n'
    '  "date": "ISO 8601 datetime",\n'
    '  "end_time": "ISO 8601 or null",\n'
    '  "price": number or 0 for free or null if unknown,\n'
    '  "description": "1-2 sentences about the event",\n'
    '  "editorial": "one confident sentence, magazine voice, why this matters",\n'
    f'  "vibe_tags": ["from: {", ".join(VIBE_TAGS)}"],\n'
    '  "sources": [{"name": "source name", "url": "EXACT full URL to the specific event page"}],\n'
    '  "recurring": boolean,\n'
    '  "editorial_pick": boolean,\n'
    '  "trusted_platform": boolean,\n'
    '  "solo": boolean,\n'
    '  "coffee_tip": "nearby coffee suggestion or null",\n'
    '  "late_night_tip": "what to do after or null"\n'
    "}\n\n"
    "CRITICAL RULES:\n"
    "- Only include events you found via web search with REAL URLs that you visited\n"
    "- Every URL must point to the SPECIFIC event page, not a homepage\n"
    "- Do not invent events or URLs\n"
    "- If you can't find the specific event URL, use the venue's programme page URL\n"
    "- Include the source website name accurately\n"
    "- Return 5-10 events per search, diverse across days and venues"
)

_FENCE_OPEN = re.compile(r"```json\s*")
_FENCE_ANY = re.compile(r"```\s*")


# -----------------------------------------------------------------------
# Errors
# -----------------------------------------------------------------------
class SearchError(Exception):
    """Base class for search failures; status_code is the HTTP status to answer with."""

    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class QueryValidationError(SearchError):
    status_code = 400


class ConfigurationError(SearchError):
    pass


class UpstreamError(SearchError):
    """Non-2xx answer from the Anthropic API. The body is passed on untouched."""

    def __init__(self, status_code: int, body: str):
        super().__init__(body)
        self.status_code = status_code
        self.body = body


class EventParseError(SearchError):
    pass


# -----------------------------------------------------------------------
# Request construction
# -----------------------------------------------------------------------
def build_user_prompt(query: str) -> str:
    return f"Search for: {query}\n\nReturn ONLY a JSON array of events found."


def build_payload(query: str) -> dict:
    """Request body for the Messages API with the web search tool turned on."""
    return {
        "model": MODEL,
        "max_tokens": MAX_TOKENS,
        "system": SYSTEM_PROMPT,
        "messages": [{"role": "user", "content": build_user_prompt(query)}],
        "tools": [WEB_SEARCH_TOOL],
    }


def build_headers(api_key: str) -> dict:
    return {
        "Content-Type": "application/json",
        "x-api-key": api_key,
        "anthropic-version": ANTHROPIC_VERSION,
    }


# -----------------------------------------------------------------------
# Reply post-processing
# -----------------------------------------------------------------------
def collect_text(data: dict) -> str:
    """Join the text blocks of a Messages API reply, in order, one per line."""
    blocks = data.get("content") or []
    return "\n".join(
        block.get("text") or ""
        for block in blocks
        if isinstance(block, dict) and block.get("type") == "text"
    )


def strip_code_fences(text: str) -> str:
    """
    The model sometimes wraps its answer in ```json ... ``` even when told not to.
    Drop every fence marker (and the whitespace right after it), then trim.
    """
    text = _FENCE_OPEN.sub("", text)
    text = _FENCE_ANY.sub("", text)
    return text.strip()


def extract_events(text: str) -> list:
    """
    Parse the span from the first '[' to the last ']' as JSON.

    Returns [] when there is no such span. Raises EventParseError when the span
    is not valid JSON.
    """
    cleaned = strip_code_fences(text)
    start = cleaned.find("[")
    end = cleaned.rfind("]")

    if start == -1 or end == -1:
        logger.warning(f"no JSON array in response (first 200 chars): {cleaned[:200]}")
        return []

    try:
        return json.loads(cleaned[start:end + 1])
    except json.JSONDecodeError as e:
        logger.error(
            "event array JSON parse failed\n"
            f"  error: {e}\n"
            f"  response (first 500 chars): {cleaned[:500]}"
        )
        raise EventParseError(f"could not parse events JSON: {e}") from e


# -----------------------------------------------------------------------
# Entry point shared by every transport
# -----------------------------------------------------------------------
def search_events(query, api_key, *, timeout=None, validate=False) -> list:
    """Run one search: query in, list of event dicts out."""
    if not isinstance(query, str) or not query.strip():
        raise QueryValidationError("query required")
    if not api_key:
        raise ConfigurationError("ANTHROPIC_API_KEY not set")

    logger.info(f"searching: {query[:60]}...")

    resp = requests.post(
        ANTHROPIC_API_URL,
        headers=build_headers(api_key),
        json=build_payload(query),
        timeout=timeout,
    )

    if not resp.ok:
        logger.error(f"Anthropic API error: {resp.status_code}")
        raise UpstreamError(resp.status_code, resp.text)

    events = extract_events(collect_text(resp.json()))

    if validate:
        events = validate_events(events)

    logger.info(f"found {len(events)} events")
    return events
