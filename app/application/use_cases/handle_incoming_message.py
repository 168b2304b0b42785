from __future__ import annotations

import logging

from app.application.ports.conversation_store import ConversationStorePort
from app.application.ports.lead_store import LeadStorePort
from app.application.use_cases.booking import BookingStateMachine, TurnResult
from app.application.use_cases.reply_composer import FALLBACK_REPLY
from app.application.use_cases.send_reply import SendReplyUseCase
from app.domain.entities.business_profile import ServiceAddon
from app.domain.entities.conversation_state import ConversationState, Step
from app.domain.entities.lead import Lead
from app.domain.entities.message import Message


class HandleIncomingMessageUseCase:
    """
    Turn boundary for one inbound message.

    Dedupe is recorded before any other side effect, so a redelivered event
    stops here without touching the conversation. Everything after that runs
    under one try block: whatever fails, the customer still gets the fallback
    reply.
    """

    def __init__(
        self,
        lead_store: LeadStorePort,
        conversation_store: ConversationStorePort,
        booking: BookingStateMachine,
        send_reply: SendReplyUseCase,
    ) -> None:
        self._leads = lead_store
        self._conversations = conversation_store
        self._booking = booking
        self._send_reply = send_reply
        self._logger = logging.getLogger(__name__)

    def handle(self, message: Message) -> TurnResult | None:
        try:
            lead = self._leads.upsert_by_external_id(message.sender_id)
            is_new = self._leads.try_insert_dedupe(message.id, lead.id)
        except Exception:
            # No reply without a dedupe record.
            self._logger.exception("Failed to record inbound message", extra={"message_id": message.id})
            return None

        if not is_new:
            self._logger.info("Duplicate message ignored", extra={"message_id": message.id, "lead_id": lead.id})
            return None

        state = ConversationState()
        try:
            self._leads.insert_message(lead.id, "inbound", message.text, message.raw)

            stored = self._conversations.get_state(lead.id)
            if stored is None:
                self._leads.track_event(lead.id, "conversation_started", {"psid": lead.psid})
            else:
                state = stored

            if not lead.bot_enabled:
                self._logger.info("Bot disabled for lead, not replying", extra={"message_id": message.id, "lead_id": lead.id})
                return None

            addons = self._load_addons(lead)

            if message.text and message.text.strip():
                result = self._booking.process(lead, state, message.text, addons)
            else:
                result = self._booking.process_attachment(lead, state)

            self._finish_turn(lead, message, result)
            return result
        except Exception as e:
            self._logger.exception(
                "Turn failed",
                extra={
                    "message_id": message.id,
                    "lead_id": lead.id,
                    "step": state.step.value,
                    "error_type": type(e).__name__,
                    "reason": str(e),
                },
            )
            self._send_fallback(lead, message, e)
            return TurnResult(FALLBACK_REPLY, state)

    def _load_addons(self, lead: Lead) -> list[ServiceAddon]:
        try:
            return self._leads.get_active_addons()
        except Exception as e:
            self._logger.warning("Failed to load add-ons", extra={"lead_id": lead.id, "reason": str(e)})
            return []

    def _finish_turn(self, lead: Lead, message: Message, result: TurnResult) -> None:
        state = result.state
        self._conversations.upsert_state(lead.id, state)
        self._leads.insert_message(
            lead.id,
            "outbound",
            result.reply,
            {
                "psid": lead.psid,
                "step": state.step.value,
                "dedupe_key": message.id,
                "slots": [slot.label for slot in state.context.slots],
            },
        )

        try:
            self._leads.save_intent(lead.id, message.text or "", state.context.last_intent)
        except Exception as e:
            self._logger.warning("Failed to save intent", extra={"lead_id": lead.id, "reason": str(e)})

        if state.step == Step.CLOSING and state.context.slots:
            self._leads.track_event(
                lead.id,
                "slots_offered",
                {"slots": [slot.label for slot in state.context.slots], "attemptCount": state.context.attempt_count},
            )

        self._logger.info(
            "Turn complete",
            extra={
                "message_id": message.id,
                "lead_id": lead.id,
                "step": state.step.value,
                "intent": state.context.last_intent,
            },
        )
        self._send_reply.execute(recipient_id=lead.psid, text=result.reply)

    def _send_fallback(self, lead: Lead, message: Message, error: Exception) -> None:
        try:
            self._send_reply.execute(recipient_id=lead.psid, text=FALLBACK_REPLY)
        except Exception:
            self._logger.exception("Failed to send fallback reply", extra={"message_id": message.id, "lead_id": lead.id})
            return
        try:
            self._leads.insert_message(
                lead.id,
                "outbound",
                FALLBACK_REPLY,
                {"psid": lead.psid, "dedupe_key": message.id, "error": str(error)},
            )
        except Exception as e:
            self._logger.warning("Failed to log fallback reply", extra={"lead_id": lead.id, "reason": str(e)})
