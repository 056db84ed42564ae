"""
Gemini client that rewrites a batch of video titles in one request.
"""

import json
import logging
import re
from typing import Any, Dict, List, Optional

import httpx

from ..core.models import Video
from ..shared.exceptions import ConfigurationError, ErrorCode, TitleGenerationError

logger = logging.getLogger(__name__)

SYSTEM_INSTRUCTION = (
    "You are a Youtube CEO and engagement expert who help creators write better video title."
)

PROMPT_TEMPLATE = """
You are a YouTube title optimization expert. Below are {count} video titles from the channel "{channel_name}".

For each title, provide:
1. An improved version that is more engaging,
SEO-friendly, and likely to get more clicks
2. A brief rationale (1-2 sentences) explaining why the
improved title is better

Guidelines:
- Keep the core topic and authenticity
- Use action verbs, numbers, and specific value
propositions
- Make it curiosity-inducing without being clickbait
- Optimize for searchability and clarity

Video Titles:
{video_titles}

Respond in JSON format:
{{
    "titles": [
        {{
            "original": "...",
            "improved": "...",
            "rationale": "..."
        }}
    ]
}}
"""

_CODE_FENCE = re.compile(r"^```(?:json)?\s*|\s*```$", re.IGNORECASE)


def build_prompt(channel_name: str, videos: List[Video]) -> str:
    """One prompt listing every title as ``N. "title"``"""
    video_titles = "\n".join(
        f'{idx}. "{video.title}"' for idx, video in enumerate(videos, start=1)
    )
    return PROMPT_TEMPLATE.format(
        count=len(videos),
        channel_name=channel_name,
        video_titles=video_titles,
    )


def parse_titles(text: str) -> List[Dict[str, Any]]:
    """
    Extract the ``titles`` array from the model's text answer.

    Markdown code fences around the JSON are tolerated.

    Raises:
        TitleGenerationError: if the text is not JSON or has no ``titles`` list
    """
    cleaned = _CODE_FENCE.sub("", text.strip()).strip()
    try:
        content = json.loads(cleaned)
    except ValueError as e:
        raise TitleGenerationError(
            "AI response is not valid JSON",
            error_code=ErrorCode.INVALID_AI_RESPONSE,
            details={"response_preview": cleaned[:200]},
            cause=e,
        )

    titles = content.get("titles") if isinstance(content, dict) else None
    if not isinstance(titles, list):
        raise TitleGenerationError(
            "AI response has no titles list",
            error_code=ErrorCode.INVALID_AI_RESPONSE,
        )
    return titles


class GeminiTitleClient:
    """Calls ``models/{model}:generateContent`` with a JSON response type"""

    def __init__(
        self,
        api_key: Optional[str],
        base_url: str = "https://generativelanguage.googleapis.com/v1beta",
        model: str = "gemini-2.5-flash",
        timeout: float = 60.0,
        temperature: float = 0.7,
        top_p: float = 0.8,
        top_k: int = 10,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.api_key = api_key
        self.base_url = base_url.rstrip('/')
        self.model = model
        self.timeout = timeout
        self.temperature = temperature
        self.top_p = top_p
        self.top_k = top_k
        self.transport = transport

    @classmethod
    def from_settings(cls, settings, transport: Optional[httpx.AsyncBaseTransport] = None) -> "GeminiTitleClient":
        return cls(
            api_key=settings.ai_api_key,
            base_url=settings.ai_base_url,
            model=settings.ai_model,
            timeout=settings.ai_timeout,
            temperature=settings.ai_temperature,
            top_p=settings.ai_top_p,
            top_k=settings.ai_top_k,
            transport=transport,
        )

    @property
    def configured(self) -> bool:
        return bool(self.api_key)

    @property
    def endpoint(self) -> str:
        return f"{self.base_url}/models/{self.model}:generateContent"

    def build_request(self, prompt: str) -> Dict[str, Any]:
        return {
            "system_instruction": {"parts": [{"text": SYSTEM_INSTRUCTION}]},
            "contents": [{"parts": [{"text": prompt}]}],
            "generationConfig": {
                "temperature": self.temperature,
                "topP": self.top_p,
                "topK": self.top_k,
                "responseMimeType": "application/json",
            },
        }

    async def generate(self, channel_name: str, videos: List[Video]) -> List[Dict[str, Any]]:
        """
        Ask for improved titles, one entry per video, in input order.

        Raises:
            ConfigurationError: no API key configured
            TitleGenerationError: API error or unusable answer
        """
        if not self.configured:
            raise ConfigurationError("Gemini API key is not configured")

        prompt = build_prompt(channel_name, videos)
        logger.info(f"🤖 Requesting {len(videos)} improved titles from {self.model}")

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                response = await client.post(
                    self.endpoint,
                    headers={
                        "Content-Type": "application/json",
                        "x-goog-api-key": self.api_key,
                    },
                    json=self.build_request(prompt),
                )
        except httpx.HTTPError as e:
            logger.error(f"❌ HTTP error calling Gemini: {e}")
            raise TitleGenerationError(
                f"Gemini API Error: {e}",
                error_code=ErrorCode.AI_SERVICE_UNAVAILABLE,
                cause=e,
            )

        if not response.is_success:
            raise TitleGenerationError(
                f"Gemini API Error: {_api_error_message(response)}",
                error_code=ErrorCode.AI_SERVICE_UNAVAILABLE,
                details={"status_code": response.status_code},
            )

        try:
            body = response.json()
            text = body["candidates"][0]["content"]["parts"][0]["text"]
        except (ValueError, KeyError, IndexError, TypeError) as e:
            raise TitleGenerationError(
                "AI response has no candidate text",
                error_code=ErrorCode.INVALID_AI_RESPONSE,
                cause=e,
            )

        return parse_titles(text)


def _api_error_message(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return "Unknown API Error"
    if isinstance(body, dict) and isinstance(body.get("error"), dict):
        return body["error"].get("message") or "Unknown API Error"
    return "Unknown API Error"
