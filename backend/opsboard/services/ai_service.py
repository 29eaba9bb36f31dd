"""
AI Service — Copywriting assistant for Ad Library research (OpenAI GPT or
Anthropic Claude). Generates copy variations or a structured critique of one ad.
"""

import logging
from typing import Optional
from openai import AsyncOpenAI
from anthropic import AsyncAnthropic
from opsboard.config import get_settings

logger = logging.getLogger(__name__)
settings = get_settings()

ACTIONS = ("generate_copy", "analyze")

COPY_PROMPT = """You are an expert Facebook Ads copywriter. Based on the ad below, write 3 creative ad copy variations.

Each variation must:
- Keep the same intent and offer
- Use a different hook (curiosity, social proof, urgency, fear of missing out)
- End with a strong, direct call to action
- Be short and punchy, formatted for Facebook Ads

ORIGINAL AD:
\"\"\"
{ad_text}
\"\"\"

Answer in this format:

**Variation 1 — [Hook type]**
[copy]

**Variation 2 — [Hook type]**
[copy]

**Variation 3 — [Hook type]**
[copy]"""

ANALYZE_PROMPT = """You are an expert Facebook Ads and copywriting analyst. Analyze the ad below and give actionable insights.

AD:
\"\"\"
{ad_text}
\"\"\"

Cover:

1. **Hook**: Which attention technique is used? (curiosity, fear, social proof, authority, scarcity, novelty)
2. **Copy structure**: How is the text organized? (AIDA, PAS, storytelling, straight to the point)
3. **CTA**: What is the call to action? Is it strong? How could it improve?
4. **Audience**: Who does this ad seem to target?
5. **Strengths**: What works well here?
6. **Weaknesses**: What could be better?
7. **Overall score**: 1-10 with a short justification.

Be direct and practical. Focus on insights that help write better ads."""


def _parse_model_id(model_id: Optional[str]) -> tuple[str, str]:
    """Parse 'provider:model' into (provider, model). Fallback to the configured default."""
    model_id = model_id or settings.ai_model_id
    if model_id and ":" in model_id:
        p, m = model_id.split(":", 1)
        return (p.strip().lower(), m.strip())
    return ("openai", model_id or "gpt-4o-mini")


class AIService:
    """Multi-provider completion wrapper used by the Ad Library assistant."""

    def __init__(
        self,
        model_id: Optional[str] = None,
        openai_api_key: Optional[str] = None,
        anthropic_api_key: Optional[str] = None,
    ):
        self.provider, self.model = _parse_model_id(model_id)
        self._openai_client: Optional[AsyncOpenAI] = None
        self._anthropic_client: Optional[AsyncAnthropic] = None

        # Use passed keys, else env
        openai_key = openai_api_key or settings.openai_api_key
        anthropic_key = anthropic_api_key or settings.anthropic_api_key

        if self.provider == "openai":
            if not openai_key:
                raise ValueError("OpenAI key not configured. Add an OPENAI integration or set OPENAI_API_KEY.")
            self._openai_client = AsyncOpenAI(api_key=openai_key)
        elif self.provider == "anthropic":
            if not anthropic_key:
                raise ValueError("ANTHROPIC_API_KEY not configured.")
            self._anthropic_client = AsyncAnthropic(api_key=anthropic_key)
        else:
            raise ValueError(f"Unknown AI provider: {self.provider}")

    async def _completion(self, prompt: str, temperature: float = 0.7, max_tokens: int = 1500) -> str:
        if self.provider == "openai":
            response = await self._openai_client.chat.completions.create(
                model=self.model,
                messages=[{"role": "user", "content": prompt}],
                temperature=temperature,
                max_tokens=max_tokens,
            )
            return response.choices[0].message.content or ""

        response = await self._anthropic_client.messages.create(
            model=self.model,
            max_tokens=max_tokens,
            temperature=temperature,
            messages=[{"role": "user", "content": prompt}],
        )
        if response.content and response.content[0].type == "text":
            return response.content[0].text
        return ""

    async def run(self, action: str, ad_text: str) -> str:
        """Run one assistant action over an ad's text. Unknown actions raise ValueError."""
        if action == "generate_copy":
            prompt = COPY_PROMPT.format(ad_text=ad_text)
        elif action == "analyze":
            prompt = ANALYZE_PROMPT.format(ad_text=ad_text)
        else:
            raise ValueError(f"Invalid action {action!r}. Use one of: {', '.join(ACTIONS)}")

        logger.info(f"AI {action} via {self.provider}:{self.model} ({len(ad_text)} chars)")
        result = await self._completion(prompt)
        return result or "No response."


def create_ai_service(
    model_id: Optional[str] = None,
    openai_api_key: Optional[str] = None,
    anthropic_api_key: Optional[str] = None,
) -> AIService:
    """Factory function to create an AI service instance. Keys from env or passed (from Integrations)."""
    return AIService(
        model_id=model_id,
        openai_api_key=openai_api_key,
        anthropic_api_key=anthropic_api_key,
    )
