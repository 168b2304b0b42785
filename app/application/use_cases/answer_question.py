from __future__ import annotations

import logging
from typing import Sequence

from app.application.exceptions import LLMContractError, LLMUpstreamError
from app.application.ports.llm import TopicalAnswererPort
from app.application.use_cases.reply_composer import ReplyComposer
from app.application.utils.message_rules import QuestionType
from app.domain.entities.business_profile import ServiceAddon
from app.domain.entities.slot import Slot

PLACEHOLDER_LABEL = "available time"


class AnswerQuestionUseCase:
    def __init__(self, composer: ReplyComposer, answerer: TopicalAnswererPort | None = None) -> None:
        self._composer = composer
        self._answerer = answerer
        self._logger = logging.getLogger(__name__)

    def execute(
        self,
        question: str,
        question_type: QuestionType,
        slots: Sequence[Slot],
        addons: Sequence[ServiceAddon],
        seed: str | None = None,
    ) -> str:
        """
        Answer, then re-offer the current slots without the price.

        The language model gets the first shot when one is configured; any
        provider or format failure drops to the canned answer for the topic.
        """
        if self._answerer is not None:
            try:
                return self._answerer.answer(
                    question=question,
                    profile=self._composer.profile,
                    addons=list(addons),
                    slot_labels=two_labels(slots),
                )
            except (LLMUpstreamError, LLMContractError) as e:
                self._logger.warning(
                    "Topical answerer failed, using canned answer",
                    extra={"intent": question_type.value, "reason": str(e)},
                )

        answer = self._composer.answer_question(question_type, addons, seed)
        return f"{answer} {self._composer.re_close(slots, seed)}"


def two_labels(slots: Sequence[Slot]) -> list[str]:
    """Exactly two labels; a lone slot is repeated."""
    if len(slots) >= 2:
        return [slots[0].label, slots[1].label]
    if len(slots) == 1:
        return [slots[0].label, slots[0].label]
    return [PLACEHOLDER_LABEL, PLACEHOLDER_LABEL]
