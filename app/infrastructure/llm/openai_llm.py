from __future__ import annotations

from openai import OpenAI

from app.application.exceptions import LLMContractError, LLMUpstreamError
from app.application.ports.llm import TopicalAnswererPort
from app.core.config import settings
from app.domain.entities.business_profile import BusinessProfile, ServiceAddon
from app.infrastructure.llm.prompts import build_answer_system_prompt, build_answer_user_prompt


class OpenAITopicalAnswerer(TopicalAnswererPort):
    """
    OpenAI-backed adapter implementing TopicalAnswererPort.

    Works against any OpenAI-compatible endpoint through OPENAI_BASE_URL.

    Contract guarantees:
    - answer returns non-empty text that mentions every offered slot label
    - Raises:
        LLMUpstreamError: networking/provider failures
        LLMContractError: empty text, or a reply that drops an offered slot
    """

    def __init__(self, client: OpenAI | None = None) -> None:
        self.client = client or OpenAI(api_key=settings.OPENAI_API_KEY, base_url=settings.OPENAI_BASE_URL or None)

    def answer(
        self,
        question: str,
        profile: BusinessProfile,
        addons: list[ServiceAddon],
        slot_labels: list[str],
    ) -> str:
        if len(slot_labels) != 2:
            raise LLMContractError(f"Answer: expected exactly 2 slot labels, got {len(slot_labels)}.")

        text = self._call_text(
            model=settings.OPENAI_MODEL_REPLY,
            system=build_answer_system_prompt(profile),
            prompt=build_answer_user_prompt(question, profile, addons, slot_labels),
            temperature=settings.OPENAI_TEMPERATURE_REPLY,
        )

        for label in set(slot_labels):
            if label.lower() not in text.lower():
                raise LLMContractError(f"Answer: reply does not offer slot {label!r}.")
        return text

    def _call_text(self, model: str, system: str, prompt: str, temperature: float) -> str:
        try:
            resp = self.client.chat.completions.create(
                model=model,
                messages=[
                    {"role": "system", "content": system},
                    {"role": "user", "content": prompt},
                ],
                temperature=temperature,
                max_tokens=400,
            )
        except Exception as e:
            raise LLMUpstreamError(f"OpenAI API error: {e}") from e

        content = (resp.choices[0].message.content or "").strip() if resp.choices else ""
        if not content:
            raise LLMContractError("LLM returned empty response text.")

        return content
