from app.application.dto.webhook_event import WebhookEventDTO, fallback_message_id


def _payload(*events):
    return {"object": "page", "entry": [{"id": "page_1", "time": 1, "messaging": list(events)}]}


def _event(message=None, sender="psid_1", **extra):
    event = {"sender": {"id": sender}, "recipient": {"id": "page_1"}, "timestamp": 1772467200000}
    if message is not None:
        event["message"] = message
    event.update(extra)
    return event


def test_extracts_text_message():
    dto = WebhookEventDTO.model_validate(_payload(_event({"mid": "m_1", "text": "hey"})))

    [message] = dto.extract_messages()

    assert message.id == "m_1"
    assert message.sender_id == "psid_1"
    assert message.text == "hey"
    assert message.platform == "messenger"
    assert message.timestamp == 1772467200000
    assert not message.has_attachments


def test_skips_echo_delivery_and_read_events():
    dto = WebhookEventDTO.model_validate(
        _payload(
            _event({"mid": "m_1", "text": "our own reply", "is_echo": True}),
            _event(delivery={"mids": ["m_1"]}),
            _event(read={"watermark": 1}),
            _event({"mid": "m_2", "text": "no sender"}, sender=None),
            _event({"mid": "m_3", "text": "real"}),
        )
    )

    assert [m.id for m in dto.extract_messages()] == ["m_3"]


def test_attachment_only_message():
    attachments = [{"type": "image", "payload": {"url": "https://cdn.example.com/car.jpg"}}]
    dto = WebhookEventDTO.model_validate(_payload(_event({"mid": "m_1", "attachments": attachments})))

    [message] = dto.extract_messages()

    assert message.text is None
    assert message.has_attachments


def test_missing_mid_gets_stable_fallback_id():
    event = _event({"text": "hey"})
    first = WebhookEventDTO.model_validate(_payload(event)).extract_messages()[0]
    again = WebhookEventDTO.model_validate(_payload(event)).extract_messages()[0]

    assert first.id == "fallback:psid_1:1772467200000:hey"
    assert first.id == again.id


def test_fallback_id_variants():
    sticker = [{"type": "image", "payload": {"sticker_id": 369239263222822, "url": "https://x"}}]
    attachment_id = fallback_message_id("psid_1", 5, None, sticker)
    assert attachment_id.startswith("fallback:psid_1:5:att:")
    assert len(attachment_id) == len("fallback:psid_1:5:att:") + 50
    assert fallback_message_id("psid_1", 5, None, []) == "fallback:psid_1:5:no_content"

    other = [{"type": "image", "payload": {"sticker_id": 1, "url": "https://x"}}]
    assert fallback_message_id("psid_1", 5, None, other) != attachment_id


def test_empty_payload_has_no_messages():
    assert WebhookEventDTO.model_validate({}).extract_messages() == []
