from app.application.ports.llm import TopicalAnswererPort
from app.domain.entities.business_profile import BusinessProfile, ServiceAddon


class MockTopicalAnswerer(TopicalAnswererPort):
    def __init__(self) -> None:
        self.questions: list[str] = []

    def answer(
        self,
        question: str,
        profile: BusinessProfile,
        addons: list[ServiceAddon],
        slot_labels: list[str],
    ) -> str:
        self.questions.append(question)
        return (
            f"The {profile.service_name} is {profile.service_price}. "
            f"I've got 1) {slot_labels[0]} or 2) {slot_labels[1]}. Reply 1 or 2."
        )
