from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from datetime import date
from typing import Sequence

from app.application.ports.lead_store import LeadStorePort
from app.application.use_cases.answer_question import AnswerQuestionUseCase
from app.application.use_cases.claim_protocol import ClaimOutcome, ClaimProtocol, FinalizeOutcome
from app.application.use_cases.reply_composer import (
    ASK_DAY,
    CHANGE_ACK,
    GRACEFUL_HANDOFF,
    OPEN_ENDED_ASK,
    ReplyComposer,
)
from app.application.use_cases.slot_generator import BACKFILL_DAYS, SlotGenerator
from app.application.utils.context_tracker import (
    excluded_days,
    replace_slots,
    reset_attempt_count,
    reset_collection,
    should_ask_open_ended,
    should_trigger_graceful_degradation,
    track_intent,
    track_offered_slots,
    track_requested_day,
)
from app.application.utils.date_parser import extract_requested_date, find_weekday
from app.application.utils.message_rules import (
    TOPICAL_QUESTION_TYPES,
    QuestionType,
    detect_question_type,
    is_ambiguous_affirmative,
    is_change_request,
    is_gratitude,
    is_hesitation,
    is_human_request,
    is_question,
    is_regenerate_request,
    is_reset_greeting,
    is_stop,
)
from app.application.utils.slot_matcher import match_slot
from app.domain.entities.business_profile import ServiceAddon
from app.domain.entities.conversation_state import BookingContext, CollectStep, ConversationState, Step
from app.domain.entities.lead import Lead, LeadStatus
from app.domain.entities.slot import Slot


@dataclass(frozen=True)
class TurnResult:
    reply: str
    state: ConversationState


class BookingStateMachine:
    """
    One conversational turn: (lead, state, text) -> (reply, next state).

    Steps run start -> closing -> post_book_collect -> start. Lead status side
    effects (dead, needs_followup) are written as they are decided; the caller
    persists the returned state.
    """

    def __init__(
        self,
        slot_generator: SlotGenerator,
        claims: ClaimProtocol,
        lead_store: LeadStorePort,
        composer: ReplyComposer,
        answer_question: AnswerQuestionUseCase,
    ) -> None:
        self._slots = slot_generator
        self._claims = claims
        self._leads = lead_store
        self._composer = composer
        self._answer_question = answer_question
        self._logger = logging.getLogger(__name__)

    def process(
        self,
        lead: Lead,
        state: ConversationState,
        text: str,
        addons: Sequence[ServiceAddon] = (),
    ) -> TurnResult:
        if is_reset_greeting(text):
            self._logger.info("Conversation reset on greeting", extra={"lead_id": lead.id, "step": state.step.value})
            self._leads.release_pending_claim(lead.id)
            state = ConversationState()

        if state.step == Step.CLOSING:
            return self._closing(lead, state.context, text, addons)
        if state.step == Step.POST_BOOK_COLLECT:
            return self._post_book_collect(lead, state.context, text, addons)
        return self._start(lead, state.context, text, addons)

    def process_attachment(self, lead: Lead, state: ConversationState) -> TurnResult:
        """Photos, stickers and other non-text messages get a one-slot close."""
        ctx = state.context
        step = state.step
        if len(ctx.slots) < 2:
            ctx = replace_slots(ctx, self._slots.generate())
            step = Step.CLOSING
        return TurnResult(self._composer.attachment_close(ctx.slots, lead.psid), ConversationState(step, ctx))

    # start

    def _start(self, lead: Lead, ctx: BookingContext, text: str, addons: Sequence[ServiceAddon]) -> TurnResult:
        seed = lead.psid

        if is_stop(text):
            return self._stop(lead, ctx, Step.START)
        if is_human_request(text):
            return self._human(lead, ctx, Step.START)

        if detect_question_type(text) == QuestionType.SERVICES:
            ctx = track_intent(ctx, "service_inquiry")
            reply = self._composer.answer_question(QuestionType.SERVICES, addons, seed)
            slots = self._slots.generate()
            if slots:
                ctx = track_offered_slots(ctx, slots)
            return TurnResult(reply, ConversationState(Step.CLOSING, ctx))

        if is_gratitude(text):
            ctx = track_intent(ctx, "gratitude")
            return TurnResult(self._composer.gratitude_response(seed), ConversationState(Step.START, ctx))

        ctx = track_intent(ctx, "initial_offer")
        slots = self._slots.generate()
        if not slots:
            return TurnResult("What day/time works for you?", ConversationState(Step.START, ctx))
        ctx = track_offered_slots(ctx, slots)
        return TurnResult(self._composer.hard_close(slots, seed), ConversationState(Step.CLOSING, ctx))

    # closing

    def _closing(self, lead: Lead, ctx: BookingContext, text: str, addons: Sequence[ServiceAddon]) -> TurnResult:
        seed = lead.psid
        question_type = detect_question_type(text)

        if (
            question_type in TOPICAL_QUESTION_TYPES
            and not is_stop(text)
            and not is_human_request(text)
            and not is_regenerate_request(text)
        ):
            return self._faq(ctx, text, question_type, addons, seed)

        if should_trigger_graceful_degradation(ctx):
            self._logger.info(
                "Handing off after repeated failed attempts",
                extra={"lead_id": lead.id, "reason": f"attempt_count={ctx.attempt_count}"},
            )
            self._leads.set_status(lead.id, LeadStatus.NEEDS_FOLLOWUP)
            self._leads.track_event(
                lead.id,
                "human_handoff_requested",
                {"reason": "repeated_failure", "attemptCount": ctx.attempt_count},
            )
            ctx = reset_attempt_count(ctx)
            return TurnResult(GRACEFUL_HANDOFF, ConversationState(Step.CLOSING, ctx))

        if is_stop(text):
            return self._stop(lead, ctx, Step.CLOSING)
        if is_human_request(text):
            return self._human(lead, ctx, Step.CLOSING)

        if is_regenerate_request(text):
            ctx = track_intent(ctx, "regenerate_slots")
            fresh = self._slots.generate_fixed_windows(BACKFILL_DAYS, excluded_days(ctx), max_slots=2)
            if not fresh:
                return TurnResult(ASK_DAY, ConversationState(Step.CLOSING, ctx))
            ctx = track_offered_slots(ctx, fresh)
            return TurnResult(f"Sure! {self._composer.re_close(fresh, seed)}", ConversationState(Step.CLOSING, ctx))

        requested = extract_requested_date(text, self._slots.now(), self._slots.timezone)
        if requested is not None:
            return self._date_request(ctx, requested, seed)

        slots = list(ctx.slots)
        match = match_slot(text, slots)
        if match.requires_choice:
            ctx = track_intent(ctx, "choice_required")
            return TurnResult(self._composer.choice_required(slots), ConversationState(Step.CLOSING, ctx))
        if match.matched and match.slot is not None:
            return self._select_slot(lead, ctx, match.slot)

        day = find_weekday(text)
        if day is not None:
            return self._day_request(ctx, day, seed)

        if question_type == QuestionType.AVAILABILITY:
            ctx = track_intent(ctx, "availability_question")
            fresh = self._slots.generate_fixed_windows(BACKFILL_DAYS, excluded_days(ctx), max_slots=2)
            if not fresh:
                return TurnResult(ASK_DAY, ConversationState(Step.CLOSING, ctx))
            ctx = track_offered_slots(ctx, fresh)
            return TurnResult(f"Sure! {self._composer.re_close(fresh, seed)}", ConversationState(Step.CLOSING, ctx))

        if question_type != QuestionType.UNKNOWN:
            return self._faq(ctx, text, question_type, addons, seed)

        if len(slots) >= 2 and is_ambiguous_affirmative(text):
            ctx = track_intent(ctx, "ambiguous_confirmation")
            return TurnResult(self._composer.ambiguous_choice(slots), ConversationState(Step.CLOSING, ctx))

        if len(slots) >= 2 and is_hesitation(text):
            ctx = track_intent(ctx, "hesitation")
            return TurnResult(self._composer.hesitation_fallback(slots, seed), ConversationState(Step.CLOSING, ctx))

        ctx = track_intent(ctx, "unknown")
        return TurnResult(self._composer.re_close(slots, seed), ConversationState(Step.CLOSING, ctx))

    def _faq(
        self,
        ctx: BookingContext,
        text: str,
        question_type: QuestionType,
        addons: Sequence[ServiceAddon],
        seed: str,
    ) -> TurnResult:
        ctx = track_intent(ctx, f"faq_{question_type.value}")
        if not ctx.slots:
            ctx = replace_slots(ctx, self._slots.generate())
        reply = self._answer_question.execute(text, question_type, ctx.slots, addons, seed)
        return TurnResult(reply, ConversationState(Step.CLOSING, ctx))

    def _date_request(self, ctx: BookingContext, requested: date, seed: str) -> TurnResult:
        """A concrete date wins over slot matching for the whole turn."""
        ctx = track_intent(ctx, "date_request")
        found = self._slots.generate(forced_date=requested)
        self._logger.info(
            "Date requested",
            extra={"reason": f"date={requested.isoformat()} found={len(found)}", "intent": "date_request"},
        )

        if len(found) >= 2:
            ctx = track_offered_slots(ctx, found[:2], is_successful_match=True)
            return TurnResult(self._composer.date_close(requested, found[:2], seed), ConversationState(Step.CLOSING, ctx))

        if len(found) == 1:
            ctx = track_offered_slots(ctx, found, is_successful_match=True)
            return TurnResult(self._composer.single_date_offer(requested, found[0]), ConversationState(Step.CLOSING, ctx))

        alternatives = self._slots.generate()
        if not alternatives:
            ctx = track_offered_slots(ctx, ctx.slots)
            return TurnResult(
                "That date is fully booked. What other day works for you?",
                ConversationState(Step.CLOSING, ctx),
            )
        ctx = track_offered_slots(ctx, alternatives)
        reply = f"That date is fully booked. {self._composer.re_close(alternatives, seed)}"
        return TurnResult(reply, ConversationState(Step.CLOSING, ctx))

    def _day_request(self, ctx: BookingContext, day: str, seed: str) -> TurnResult:
        """A weekday none of the offered slots fall on; search two weeks for it without excluding it."""
        ctx = track_requested_day(ctx, day)
        ctx = track_intent(ctx, "day_request")
        search = self._slots.search_day(day)
        day_slots = search.day_slots

        if len(day_slots) >= 2:
            ctx = track_offered_slots(ctx, day_slots[:2], is_successful_match=True)
            return TurnResult(self._composer.day_close(day, day_slots[:2], seed), ConversationState(Step.CLOSING, ctx))

        if len(day_slots) == 1:
            if search.other_slot is not None:
                pair = [day_slots[0], search.other_slot]
                ctx = track_offered_slots(ctx, pair, is_successful_match=True)
                reply = f"I have one {day.capitalize()} slot available. {self._composer.re_close(pair, seed)}"
                return TurnResult(reply, ConversationState(Step.CLOSING, ctx))
            ctx = track_offered_slots(ctx, day_slots, is_successful_match=True)
            return TurnResult(
                f"I have {day_slots[0].label} available. Does that work?",
                ConversationState(Step.CLOSING, ctx),
            )

        exclude = [*excluded_days(ctx), day]
        fresh = self._slots.generate_fixed_windows(BACKFILL_DAYS, exclude, max_slots=2)
        unavailable = f"I don't have {day.capitalize()} available."

        if len(fresh) >= 2:
            ctx = track_offered_slots(ctx, fresh)
            return TurnResult(f"{unavailable} {self._composer.re_close(fresh, seed)}", ConversationState(Step.CLOSING, ctx))
        if len(fresh) == 1:
            ctx = track_offered_slots(ctx, fresh)
            return TurnResult(
                f"{unavailable} I have {fresh[0].label}. Does that work?",
                ConversationState(Step.CLOSING, ctx),
            )

        ctx = track_offered_slots(ctx, ctx.slots)
        if should_ask_open_ended(ctx):
            return TurnResult(OPEN_ENDED_ASK, ConversationState(Step.CLOSING, ctx))
        return TurnResult(f"{unavailable} What other day works for you?", ConversationState(Step.CLOSING, ctx))

    def _select_slot(self, lead: Lead, ctx: BookingContext, slot: Slot) -> TurnResult:
        seed = lead.psid
        ctx = track_intent(ctx, "slot_selected")

        if not self._slots.is_slot_still_free(slot):
            self._logger.info("Selected slot no longer free", extra={"lead_id": lead.id, "slot": slot.label})
            fresh = self._slots.generate()
            ctx = replace_slots(ctx, fresh)
            reply = f"That slot is no longer available. {self._composer.re_close(fresh, seed)}"
            return TurnResult(reply, ConversationState(Step.CLOSING, ctx))

        result = self._claims.claim(lead.id, slot)

        if result.outcome == ClaimOutcome.CLAIMED:
            ctx = replace(reset_collection(ctx), collect_step=CollectStep.ADDRESS)
            return TurnResult(
                self._composer.claimed_ask_address(slot.label, seed),
                ConversationState(Step.POST_BOOK_COLLECT, ctx),
            )

        if result.outcome == ClaimOutcome.HELD_PENDING:
            ctx = replace(ctx, collect_step=CollectStep.ADDRESS)
            return TurnResult(
                f"I'm holding {result.slot_label} for you. What's the service address?",
                ConversationState(Step.POST_BOOK_COLLECT, ctx),
            )

        if result.outcome == ClaimOutcome.ALREADY_BOOKED:
            ctx = replace(ctx, collect_step=CollectStep.DONE)
            return TurnResult(
                f"You're already booked for {result.slot_label}. Need to change it?",
                ConversationState(Step.POST_BOOK_COLLECT, ctx),
            )

        fresh = self._slots.generate()
        ctx = replace_slots(ctx, fresh)
        return TurnResult(self._composer.re_close(fresh, seed), ConversationState(Step.CLOSING, ctx))

    # post_book_collect

    def _post_book_collect(
        self,
        lead: Lead,
        ctx: BookingContext,
        text: str,
        addons: Sequence[ServiceAddon],
    ) -> TurnResult:
        seed = lead.psid

        if is_stop(text):
            return self._stop(lead, ctx, Step.POST_BOOK_COLLECT)
        if is_human_request(text):
            return self._human(lead, ctx, Step.POST_BOOK_COLLECT)
        if is_change_request(text):
            return self._change_request(lead, ctx, text)

        match = match_slot(text, ctx.slots)
        if match.matched and match.slot is not None:
            return self._late_selection(lead, ctx, match.slot)

        question_type = detect_question_type(text)
        if question_type != QuestionType.UNKNOWN and is_question(text):
            answer = self._composer.answer_question(question_type, addons, seed)
            return TurnResult(f"{answer} {CHANGE_ACK}", ConversationState(Step.POST_BOOK_COLLECT, ctx))

        collect_step = ctx.collect_step or CollectStep.ADDRESS

        if collect_step == CollectStep.ADDRESS:
            ctx = replace(ctx, address=text.strip(), collect_step=CollectStep.PHONE, last_intent="collect_address")
            return TurnResult(
                self._composer.collected_address_ask_phone(seed),
                ConversationState(Step.POST_BOOK_COLLECT, ctx),
            )

        if collect_step == CollectStep.PHONE:
            ctx = replace(ctx, phone=text.strip(), last_intent="collect_phone")
            return self._finalize(lead, ctx)

        return TurnResult(
            "Got it. If you need to change it, tell me and I'll adjust.",
            ConversationState(Step.POST_BOOK_COLLECT, ctx),
        )

    def _late_selection(self, lead: Lead, ctx: BookingContext, slot: Slot) -> TurnResult:
        """A slot pick after the claim; a live claim already on the row stands."""
        fresh = self._leads.get_by_id(lead.id)
        if self._claims.holds_live_claim(fresh):
            ask = (
                "What's the best number to reach you?"
                if ctx.collect_step == CollectStep.PHONE
                else "What's the service address?"
            )
            reply = f"I'm already holding {fresh.pending_slot_label} for you. {ask}"
            return TurnResult(reply, ConversationState(Step.POST_BOOK_COLLECT, ctx))
        if fresh.booked_slot_label:
            ctx = replace(ctx, collect_step=ctx.collect_step or CollectStep.ADDRESS)
            reply = f"You're already booked for {fresh.booked_slot_label}. What's the address and phone for the service?"
            return TurnResult(reply, ConversationState(Step.POST_BOOK_COLLECT, ctx))
        return self._select_slot(fresh, ctx, slot)

    def _finalize(self, lead: Lead, ctx: BookingContext) -> TurnResult:
        seed = lead.psid
        result = self._claims.finalize(lead.id, lead.psid, ctx.address, ctx.phone)

        if result.outcome == FinalizeOutcome.BOOKED:
            return TurnResult(self._composer.finalized_booking(result.slot_label or "", seed), ConversationState())

        if result.outcome == FinalizeOutcome.MISSING_ADDRESS:
            ctx = replace(ctx, collect_step=CollectStep.ADDRESS)
            return TurnResult(
                "I'm missing your address. What's the service address?",
                ConversationState(Step.POST_BOOK_COLLECT, ctx),
            )

        if result.outcome == FinalizeOutcome.MISSING_PHONE:
            ctx = replace(ctx, collect_step=CollectStep.PHONE)
            return TurnResult(
                "I'm missing your phone number. What's the best number to reach you?",
                ConversationState(Step.POST_BOOK_COLLECT, ctx),
            )

        fresh = self._slots.generate()
        ctx = replace_slots(reset_collection(ctx), fresh)
        if result.outcome == FinalizeOutcome.FAILED:
            reply = f"Sorry — that slot got taken. {self._composer.re_close(fresh, seed)}"
        else:
            reply = self._composer.pending_expired(fresh, seed)
        return TurnResult(reply, ConversationState(Step.CLOSING, ctx))

    def _change_request(self, lead: Lead, ctx: BookingContext, text: str) -> TurnResult:
        seed = lead.psid
        self._logger.info("Change requested", extra={"lead_id": lead.id, "step": Step.POST_BOOK_COLLECT.value})
        self._leads.release_pending_claim(lead.id)
        ctx = track_intent(reset_collection(ctx), "change_request")

        day = find_weekday(text)
        if day is None:
            fresh = self._slots.generate_fixed_windows(BACKFILL_DAYS, excluded_days(ctx), max_slots=2)
            if not fresh:
                return TurnResult("No problem! What day works best for you?", ConversationState(Step.CLOSING, ctx))
            ctx = track_offered_slots(ctx, fresh)
            reply = f"No problem, we can adjust your appointment. {self._composer.re_close(fresh, seed)}"
            return TurnResult(reply, ConversationState(Step.CLOSING, ctx))

        ctx = track_requested_day(ctx, day)
        search = self._slots.search_day(day)
        day_slots = search.day_slots
        label = day.capitalize()

        if len(day_slots) >= 2:
            ctx = track_offered_slots(ctx, day_slots[:2], is_successful_match=True)
            reply = f"No problem! For {label}, {self._composer.re_close(day_slots[:2], seed)}"
            return TurnResult(reply, ConversationState(Step.CLOSING, ctx))

        if len(day_slots) == 1:
            if search.other_slot is not None:
                pair = [day_slots[0], search.other_slot]
                ctx = track_offered_slots(ctx, pair, is_successful_match=True)
                reply = f"No problem! I have one {label} slot. {self._composer.re_close(pair, seed)}"
                return TurnResult(reply, ConversationState(Step.CLOSING, ctx))
            ctx = track_offered_slots(ctx, day_slots, is_successful_match=True)
            reply = f"No problem! I have {day_slots[0].label} available. Does that work?"
            return TurnResult(reply, ConversationState(Step.CLOSING, ctx))

        fresh = self._slots.generate_fixed_windows(BACKFILL_DAYS, [*excluded_days(ctx), day], max_slots=2)
        if not fresh:
            return TurnResult("No problem! What day works best for you?", ConversationState(Step.CLOSING, ctx))
        ctx = track_offered_slots(ctx, fresh)
        reply = f"No problem! I don't have {label} available. {self._composer.re_close(fresh, seed)}"
        return TurnResult(reply, ConversationState(Step.CLOSING, ctx))

    # shared

    def _stop(self, lead: Lead, ctx: BookingContext, step: Step) -> TurnResult:
        self._leads.set_status(lead.id, LeadStatus.DEAD)
        ctx = track_intent(ctx, "stop")
        return TurnResult(self._composer.stop_response(), ConversationState(step, ctx))

    def _human(self, lead: Lead, ctx: BookingContext, step: Step) -> TurnResult:
        self._leads.set_status(lead.id, LeadStatus.NEEDS_FOLLOWUP)
        self._leads.track_event(lead.id, "human_handoff_requested", {"reason": "user_request"})
        ctx = track_intent(ctx, "human_request")
        return TurnResult(self._composer.human_response(), ConversationState(step, ctx))
