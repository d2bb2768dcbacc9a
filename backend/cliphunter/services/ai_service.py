"""Optional AI helpers: clip title overlays and upload metadata."""
import json
import logging
import re
from dataclasses import dataclass, field
from typing import Any, List, Optional

import httpx

from cliphunter.config import settings

logger = logging.getLogger(__name__)

FALLBACK_TAGS = ["shorts", "viral", "trending", "fyp", "highlight"]

TITLES_PROMPT = """Generate {count} short, catchy title overlays for video clips from: "{source_title}"

Requirements:
- Each title should be 3-8 words maximum
- Use hooks: questions, bold statements, or intriguing phrases
- Make them attention-grabbing for social media (TikTok/YouTube Shorts style)
- They should work as text overlays at the top of vertical videos
- Don't use numbers or "Part X" format
- Make each one unique and interesting

Examples of good titles:
- "Wait For The Ending..."
- "Nobody Expected This"
- "Is This Even Possible?"
- "The Timing Was Perfect"

Return ONLY a JSON array of {count} title strings, no other text:
["Title 1", "Title 2", ...]"""

METADATA_PROMPT = """You are a YouTube Shorts expert. Generate an engaging title, description, and tags for a short-form vertical video clip.

Original video title: "{source_title}"
Clip {clip_number} of {total_clips}

Requirements:
- Title: specific and action-focused, under 70 characters.
- Description: 1-2 punchy sentences that create curiosity, with a call to action. Under 150 characters.
- Tags: 5-8 relevant tags based on the video title. No # symbol.

Respond in this exact JSON format only, no other text:
{{"title": "...", "description": "...", "tags": ["tag1", "tag2"]}}"""


class AIServiceError(Exception):
    """The completion request failed or returned something unusable."""
    pass


@dataclass
class GeneratedMetadata:
    """Upload metadata for one clip."""
    title: str
    description: str
    tags: List[str] = field(default_factory=list)


def parse_json_reply(content: str) -> Any:
    """Parse a JSON reply, tolerating a surrounding markdown code fence."""
    text = content.strip()
    if text.startswith("```"):
        text = re.sub(r"```(?:json)?\n?", "", text).strip()
    try:
        return json.loads(text)
    except json.JSONDecodeError as e:
        raise AIServiceError(f"Invalid JSON in completion: {e}") from e


def fallback_titles(count: int) -> List[str]:
    return [f"Best Moment {i + 1}" for i in range(count)]


def fallback_metadata(source_title: str, clip_number: int) -> GeneratedMetadata:
    clean_title = re.sub(r"[^\w\s]", "", source_title)[:50]
    return GeneratedMetadata(
        title=f"{clean_title} - Highlight {clip_number}",
        description="Check out this amazing moment! Like and follow for more content.",
        tags=list(FALLBACK_TAGS),
    )


class AIService:
    """Chat completions over the OpenAI HTTP API, with template fallbacks."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None
    ):
        self.api_key = api_key
        self.model = model or settings.openai_model
        self.base_url = (base_url or settings.openai_base_url).rstrip("/")
        self.timeout = timeout or settings.openai_timeout_seconds

    @property
    def enabled(self) -> bool:
        return bool(self.api_key)

    async def _complete(self, prompt: str, max_tokens: int) -> str:
        """Send a single-message chat completion and return the reply text."""
        if not self.enabled:
            raise AIServiceError("OpenAI API key not configured")

        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.post(
                    f"{self.base_url}/chat/completions",
                    headers={"Authorization": f"Bearer {self.api_key}"},
                    json={
                        "model": self.model,
                        "messages": [{"role": "user", "content": prompt}],
                        "temperature": 0.9,
                        "max_tokens": max_tokens,
                    },
                )
        except httpx.TimeoutException as exc:
            raise AIServiceError("Completion request timed out") from exc
        except httpx.RequestError as exc:
            raise AIServiceError(f"Unable to reach completion API: {exc}") from exc

        if response.status_code != 200:
            raise AIServiceError(f"Completion API returned {response.status_code}")

        try:
            content = response.json()["choices"][0]["message"]["content"]
        except (ValueError, KeyError, IndexError, TypeError) as exc:
            raise AIServiceError("Invalid completion response") from exc

        if not content:
            raise AIServiceError("Empty completion")
        return content

    async def generate_clip_titles(self, source_title: str, count: int) -> List[str]:
        """
        Short overlay titles for the clips of one video.

        Always returns exactly count titles; falls back to
        "Best Moment N" when the API is unavailable or misbehaves.
        """
        if count <= 0:
            return []

        logger.info(f"Generating {count} clip titles for {source_title!r}")

        try:
            content = await self._complete(
                TITLES_PROMPT.format(count=count, source_title=source_title),
                max_tokens=200,
            )
            titles = parse_json_reply(content)
            if not isinstance(titles, list) or not titles:
                raise AIServiceError("Invalid titles response")
        except AIServiceError as e:
            logger.error(f"Failed to generate clip titles: {e}")
            return fallback_titles(count)

        titles = [str(t).strip() for t in titles if str(t).strip()]
        while len(titles) < count:
            titles.append(f"Moment {len(titles) + 1}")

        logger.info(f"Clip titles generated: {titles[:count]}")
        return titles[:count]

    async def generate_metadata(
        self,
        source_title: str,
        clip_number: int,
        total_clips: int
    ) -> GeneratedMetadata:
        """
        Title, description and tags for publishing one clip.

        Lengths are capped at 100 and 5000 characters and 10 tags.
        """
        logger.info(f"Generating metadata for clip {clip_number}/{total_clips} of {source_title!r}")

        try:
            content = await self._complete(
                METADATA_PROMPT.format(
                    source_title=source_title,
                    clip_number=clip_number,
                    total_clips=total_clips,
                ),
                max_tokens=300,
            )
            parsed = parse_json_reply(content)
            if (
                not isinstance(parsed, dict)
                or not parsed.get("title")
                or not parsed.get("description")
                or not isinstance(parsed.get("tags"), list)
            ):
                raise AIServiceError("Invalid response structure")
        except AIServiceError as e:
            logger.error(f"Failed to generate metadata: {e}")
            return fallback_metadata(source_title, clip_number)

        return GeneratedMetadata(
            title=str(parsed["title"])[:100],
            description=str(parsed["description"])[:5000],
            tags=[str(tag) for tag in parsed["tags"]][:10],
        )
