from abc import ABC, abstractmethod

from app.domain.entities.business_profile import BusinessProfile, ServiceAddon


class TopicalAnswererPort(ABC):
    @abstractmethod
    def answer(
        self,
        question: str,
        profile: BusinessProfile,
        addons: list[ServiceAddon],
        slot_labels: list[str],
    ) -> str:
        """
        Answer a customer question, then re-offer the slots.

        Requirements:
        - Must state only facts from `profile` and `addons` (no invented prices)
        - Must offer exactly the two labels in `slot_labels` (no invented times)
        - Raises LLMUpstreamError / LLMContractError on provider or format failure

        Args:
            question: Raw customer text
            profile: Business facts the answer may use
            addons: Active add-ons with prices
            slot_labels: Exactly two slot labels to present

        Returns:
            Reply text ready to send
        """
        raise NotImplementedError
