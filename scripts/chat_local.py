#!/usr/bin/env python3
"""
Interactive local chat harness (no HTTP, no Messenger).

Usage:
  python3 scripts/chat_local.py

What it does:
- Keeps a stable sender id (PSID) for the session
- Sends your typed messages through the same HandleIncomingMessageUseCase
- Prints the step, offered slots and last intent after each reply

Stores, calendar and platform come from app.wiring, so with ENV=dev
everything runs in memory against the mock calendar.
"""

from __future__ import annotations

import os
import sys
import time
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from dotenv import load_dotenv

load_dotenv()

from app.domain.entities.message import Message
from app.wiring.dependencies import get_conversation_store, get_handle_incoming_message_use_case, get_lead_store


def _print_header(psid: str) -> None:
    print("\nLocal Chat Harness")
    print("-" * 60)
    print(f"psid: {psid}")
    print("Type your message and press Enter. An empty line sends an attachment.")
    print("Commands: /new (new sender), /lead (show lead row), /quit, /help")
    print("-" * 60)


def main() -> None:
    psid = os.getenv("CHAT_PSID", "local_user_1")
    use_case = get_handle_incoming_message_use_case()
    leads = get_lead_store()
    conversations = get_conversation_store()
    _print_header(psid)

    while True:
        try:
            user_text = input("\n> ").strip()
        except (EOFError, KeyboardInterrupt):
            print("\nBye!")
            return

        cmd = user_text.lower()
        if cmd in ("/quit", "/exit"):
            print("Bye!")
            return
        if cmd == "/help":
            print("Commands:")
            print("  /new  -> start over as a new sender")
            print("  /lead -> show the stored lead row")
            print("  /quit -> exit")
            continue
        if cmd == "/new":
            psid = f"local_user_{int(time.time())}"
            print(f"New psid: {psid}")
            continue
        if cmd == "/lead":
            lead = leads.upsert_by_external_id(psid)
            print(lead)
            continue

        now_ms = int(time.time() * 1000)
        message = Message(
            id=f"local_{now_ms}",
            sender_id=psid,
            text=user_text or None,
            timestamp=now_ms,
            platform="local",
            has_attachments=not user_text,
        )

        result = use_case.handle(message)
        if result is None:
            print("(no reply: duplicate or bot disabled for this lead)")
            continue

        lead = leads.upsert_by_external_id(psid)
        state = conversations.get_state(lead.id) or result.state
        print("\n--- Decision ---")
        print(f"step: {state.step.value}")
        print(f"intent: {state.context.last_intent}")
        print(f"slots: {[slot.label for slot in state.context.slots]}")
        print(f"attempts: {state.context.attempt_count}")
        if state.context.collect_step:
            print(f"collecting: {state.context.collect_step.value}")
        print(f"lead status: {lead.status.value}")

        print("\n--- Reply ---")
        print(result.reply)
        print("-" * 60)


if __name__ == "__main__":
    main()
