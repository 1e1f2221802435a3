"""
Content Synthesis — multi-provider text and image generation (OpenAI GPT, Anthropic Claude).

Two capabilities back the workflow: a structured content plan for the research stage and
one finished article per topic for the generation stage. Every text call returns its
token usage so the caller can write it to the ledger.
"""

import json
import logging
import re
from dataclasses import dataclass, field
from typing import Optional

import anthropic
import openai
from anthropic import AsyncAnthropic
from openai import AsyncOpenAI

from seo_campaigns.config import get_settings
from seo_campaigns.errors import (
    AuthenticationError,
    QuotaExceededError,
    TransientServiceError,
    ValidationError,
    WorkflowError,
)
from seo_campaigns.services.planning import ScrapedArticle, Topic
from seo_campaigns.services.usage_service import TokenUsage

logger = logging.getLogger(__name__)

META_DESCRIPTION_MAX_CHARS = 155

PLAN_SYSTEM_PROMPT = """You are an expert SEO strategist and content editor. Analyze provided competitor article excerpts and produce a content plan tailored for the specified market.

STRICTLY return valid JSON with keys: topics, recommendedKeywords, competitors, contentPillars, contentGaps, keywordDifficulty, marketOpportunities, targetAudience, citations.

Rules:
- Propose exactly {count} topics.
- Each topic must include: title, primaryKeyword, secondaryKeywords (3 items), outline (5-8 H2s), minWordCount (>= {min_words}), description (one sentence).
- Focus language: {language}. Market: {country}. Site: {website_url}.
- Style: {style}.
- Avoid competitor brand names in titles. Prefer evergreen, non-navigational queries.
- Provide citations array with {{source, quote}} extracted from the competitor excerpts to support statements."""

ARTICLE_SYSTEM_PROMPT = """You are a senior SEO content writer. Write complete, original, publish-ready articles in Markdown.
Use the provided outline as the H2 structure. Write naturally for humans first; work the keywords in where they fit.
Never copy sentences from reference excerpts. Do not include a meta description or front matter."""


def _parse_model_id(model_id: Optional[str]) -> tuple[str, str]:
    """Parse 'provider:model' into (provider, model). Fallback to the configured default."""
    if not model_id or ":" not in model_id:
        model_id = get_settings().default_llm_id
    p, m = model_id.split(":", 1)
    return (p.strip().lower(), m.strip())


def translate_provider_error(exc: Exception) -> WorkflowError:
    """Map an OpenAI/Anthropic SDK error onto the workflow error taxonomy."""
    status = getattr(exc, "status_code", None)
    code = getattr(exc, "code", None)
    text = str(exc).lower()
    if status == 402 or code == "insufficient_quota" or "insufficient_quota" in text or "credit balance" in text:
        return QuotaExceededError()
    if status in (401, 403):
        return AuthenticationError(f"Content service rejected the API key (HTTP {status}).")
    if status:
        return TransientServiceError(f"Content service error (HTTP {status}): {exc}")
    return TransientServiceError(f"Content service unreachable: {exc}")


def parse_json_object(content: str) -> Optional[dict]:
    """
    Extract a JSON object from a model response, tolerating ```json fences and
    prose around the object. Returns None when nothing parses.
    """
    if not content:
        return None
    text = content.strip()
    fenced = re.search(r"```(?:json)?\s*(\{.*\})\s*```", text, re.DOTALL)
    if fenced:
        text = fenced.group(1)
    try:
        data = json.loads(text)
    except json.JSONDecodeError:
        start, end = text.find("{"), text.rfind("}")
        if start == -1 or end <= start:
            return None
        try:
            data = json.loads(text[start:end + 1])
        except json.JSONDecodeError:
            return None
    return data if isinstance(data, dict) else None


@dataclass
class PlanRequest:
    website_url: str
    business_description: str
    target_country: str
    language: str
    number_of_articles: int
    min_words: int
    seed_keywords: list[str]
    website_text: str = ""
    scraped_articles: list[ScrapedArticle] = field(default_factory=list)
    writing_style: str = ""


@dataclass
class ArticleRequest:
    topic: Topic
    language: str = "English"
    brand_name: str = ""
    website_url: str = ""
    business_description: str = ""
    tone: str = "clear, authoritative, human"
    include_intro: bool = True
    include_conclusion: bool = True
    include_faq: bool = True
    internal_links: int = 2
    external_links: int = 1
    reference_excerpts: list[ScrapedArticle] = field(default_factory=list)


@dataclass
class Completion:
    text: str
    usage: TokenUsage
    model: str


class ContentSynthesisClient:
    """Generative text/image client bound to one `provider:model`."""

    def __init__(
        self,
        model_id: Optional[str] = None,
        openai_api_key: Optional[str] = None,
        anthropic_api_key: Optional[str] = None,
        image_model: Optional[str] = None,
    ):
        settings = get_settings()
        self.provider, self.model = _parse_model_id(model_id)
        self.image_model = image_model or settings.image_model
        self._openai_client: Optional[AsyncOpenAI] = None
        self._anthropic_client: Optional[AsyncAnthropic] = None

        # Use passed keys, else env
        openai_key = openai_api_key or settings.openai_api_key
        anthropic_key = anthropic_api_key or settings.anthropic_api_key

        if openai_key:
            self._openai_client = AsyncOpenAI(api_key=openai_key)
        if self.provider == "openai":
            if not openai_key:
                raise ValidationError("OPENAI_API_KEY not configured. Add it in Settings or set OPENAI_API_KEY env.")
        elif self.provider == "anthropic":
            if not anthropic_key:
                raise ValidationError("ANTHROPIC_API_KEY not configured. Add it in Settings or set ANTHROPIC_API_KEY env.")
            self._anthropic_client = AsyncAnthropic(api_key=anthropic_key)
        else:
            raise ValidationError(f"Unknown AI provider: {self.provider}")

    @property
    def model_id(self) -> str:
        return f"{self.provider}:{self.model}"

    async def _completion(
        self,
        messages: list[dict],
        temperature: float = 0.5,
        max_tokens: int = 4000,
        json_response: bool = False,
    ) -> Completion:
        """Call the appropriate provider's completion API."""
        try:
            if self.provider == "openai":
                kwargs = dict(
                    model=self.model,
                    messages=messages,
                    temperature=temperature,
                    max_tokens=max_tokens,
                )
                if json_response:
                    kwargs["response_format"] = {"type": "json_object"}
                response = await self._openai_client.chat.completions.create(**kwargs)
                usage = TokenUsage(
                    prompt_tokens=getattr(response.usage, "prompt_tokens", 0) or 0,
                    completion_tokens=getattr(response.usage, "completion_tokens", 0) or 0,
                )
                return Completion(response.choices[0].message.content or "", usage, self.model)

            # Anthropic: convert messages to their format
            system = ""
            anthropic_messages = []
            for m in messages:
                role = m.get("role", "user")
                content = m.get("content", "")
                if role == "system":
                    system += content + "\n\n" if content else ""
                else:
                    anthropic_messages.append({"role": "user" if role == "user" else "assistant", "content": content})

            kwargs = dict(
                model=self.model,
                max_tokens=max_tokens,
                temperature=temperature,
                messages=anthropic_messages,
            )
            if system:
                kwargs["system"] = system.strip()
            response = await self._anthropic_client.messages.create(**kwargs)
        except (openai.OpenAIError, anthropic.AnthropicError) as e:
            raise translate_provider_error(e) from e

        usage = TokenUsage(
            prompt_tokens=getattr(response.usage, "input_tokens", 0) or 0,
            completion_tokens=getattr(response.usage, "output_tokens", 0) or 0,
        )
        text = ""
        if response.content and response.content[0].type == "text":
            text = response.content[0].text
        return Completion(text, usage, self.model)

    async def synthesize_plan(self, request: PlanRequest, excerpt_chars: Optional[int] = None) -> tuple[Optional[dict], Completion]:
        """
        Ask for a JSON content plan. Returns (parsed_plan_or_None, completion).
        A response that arrives but cannot be parsed yields None; the caller decides the fallback.
        """
        excerpt_chars = excerpt_chars or get_settings().prompt_excerpt_chars
        system = PLAN_SYSTEM_PROMPT.format(
            count=request.number_of_articles,
            min_words=request.min_words,
            language=request.language or "English",
            country=request.target_country or "global",
            website_url=request.website_url or "n/a",
            style=request.writing_style or "clear, authoritative, human",
        )
        user = json.dumps({
            "websiteUrl": request.website_url,
            "businessDescription": request.business_description,
            "websiteContent": request.website_text,
            "targetCountry": request.target_country,
            "language": request.language,
            "baseKeywords": request.seed_keywords,
            "competitorArticles": [
                a.to_prompt_snippet(i + 1, excerpt_chars) for i, a in enumerate(request.scraped_articles)
            ],
        })
        completion = await self._completion(
            [{"role": "system", "content": system}, {"role": "user", "content": user}],
            temperature=0.5,
            max_tokens=4000,
            json_response=True,
        )
        plan = parse_json_object(completion.text)
        if plan is None:
            logger.warning(f"Unparseable plan response from {self.model_id} ({len(completion.text)} chars)")
        return plan, completion

    async def synthesize_article(self, request: ArticleRequest) -> Completion:
        topic = request.topic
        sections = "\n".join(f"- {h}" for h in topic.outline)
        extras = []
        if request.include_intro:
            extras.append("Open with a short introduction that states the reader's problem.")
        if request.include_conclusion:
            extras.append("End with a conclusion and a clear next step.")
        if request.include_faq:
            extras.append("Add a 'Frequently Asked Questions' section with 3-5 questions.")
        if request.internal_links:
            extras.append(f"Suggest up to {request.internal_links} internal links to {request.website_url or 'the site'} as Markdown links.")
        if request.external_links:
            extras.append(f"Include up to {request.external_links} links to authoritative external sources.")

        references = ""
        if request.reference_excerpts:
            references = "\n\nReference excerpts (for facts only):\n" + "\n".join(
                f"[{a.domain}] {a.excerpt[:800]}" for a in request.reference_excerpts
            )

        prompt = f"""Write an article titled "{topic.title}".

Brand: {request.brand_name or 'n/a'}
Business: {request.business_description or 'n/a'}
Language: {request.language}
Tone: {request.tone}
Primary keyword: {topic.primary_keyword}
Secondary keywords: {', '.join(topic.secondary_keywords)}
Minimum length: {topic.target_word_count} words

Outline (H2 sections, in order):
{sections}

{' '.join(extras)}{references}"""

        completion = await self._completion(
            [{"role": "system", "content": ARTICLE_SYSTEM_PROMPT}, {"role": "user", "content": prompt}],
            temperature=0.7,
            max_tokens=8000,
        )
        if not completion.text.strip():
            raise TransientServiceError(f"Empty article returned for '{topic.title}'")
        return completion

    async def generate_meta_description(self, topic: Topic, language: str = "English") -> Completion:
        prompt = (
            f"Write one meta description in {language} for an article titled \"{topic.title}\" "
            f"targeting the keyword \"{topic.primary_keyword}\". "
            f"Maximum {META_DESCRIPTION_MAX_CHARS} characters. Return only the text, no quotes."
        )
        completion = await self._completion(
            [{"role": "user", "content": prompt}],
            temperature=0.3,
            max_tokens=120,
        )
        completion.text = clamp_meta_description(completion.text)
        if not completion.text:
            raise TransientServiceError("Empty meta description")
        return completion

    async def generate_illustration(self, topic: Topic) -> str:
        """Featured image URL (or data URL) from the OpenAI images API."""
        if not self._openai_client:
            raise ValidationError("OPENAI_API_KEY not configured; featured images need it.")
        prompt = (
            f"Editorial featured image for a blog article titled \"{topic.title}\". "
            "Clean, modern, photographic style. No text or logos."
        )
        try:
            response = await self._openai_client.images.generate(
                model=self.image_model,
                prompt=prompt,
                size="1024x1024",
                n=1,
            )
        except openai.OpenAIError as e:
            raise translate_provider_error(e) from e
        image = response.data[0] if response.data else None
        if image is None:
            raise TransientServiceError("Image service returned no image")
        if getattr(image, "url", None):
            return image.url
        if getattr(image, "b64_json", None):
            return f"data:image/png;base64,{image.b64_json}"
        raise TransientServiceError("Image service returned no image")


def clamp_meta_description(text: str, limit: int = META_DESCRIPTION_MAX_CHARS) -> str:
    """Single line, no wrapping quotes, cut at a word boundary within `limit`."""
    text = " ".join((text or "").split()).strip().strip('"').strip("'").strip()
    if len(text) <= limit:
        return text
    cut = text[: limit - 3].rsplit(" ", 1)[0].rstrip(",.;:")
    return f"{cut}..."


def fallback_meta_description(topic: Topic) -> str:
    return clamp_meta_description(topic.description or topic.title)


def create_content_synthesis_client(
    model_id: Optional[str] = None,
    openai_api_key: Optional[str] = None,
    anthropic_api_key: Optional[str] = None,
) -> ContentSynthesisClient:
    """Factory function. Keys from env or passed (from stored settings)."""
    return ContentSynthesisClient(
        model_id=model_id,
        openai_api_key=openai_api_key,
        anthropic_api_key=anthropic_api_key,
    )
