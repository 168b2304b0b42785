from abc import ABC, abstractmethod

from app.domain.entities.conversation_state import ConversationState


class ConversationStorePort(ABC):
    @abstractmethod
    def get_state(self, lead_id: str) -> ConversationState | None:
        raise NotImplementedError

    @abstractmethod
    def upsert_state(self, lead_id: str, state: ConversationState) -> None:
        raise NotImplementedError
