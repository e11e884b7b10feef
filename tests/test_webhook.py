from app.api.webhook import extract_cloud_events, extract_events, extract_zapi_event


def zapi_payload(**overrides):
    payload = {
        "type": "ReceivedCallback",
        "phone": "5583999990000",
        "senderName": "Maria",
        "isGroup": False,
        "fromMe": False,
        "text": {"message": "Oi"},
    }
    payload.update(overrides)
    return payload


def cloud_payload(value):
    value = {"messaging_product": "whatsapp", **value}
    return {
        "object": "whatsapp_business_account",
        "entry": [{"id": "1", "changes": [{"field": "messages", "value": value}]}],
    }


def test_zapi_customer_text():
    event = extract_zapi_event(zapi_payload())

    assert event.user_id == "5583999990000"
    assert event.display_name == "Maria"
    assert event.content == "Oi"
    assert not event.is_from_operator
    assert not event.is_group_chat


def test_zapi_operator_and_group_flags():
    assert extract_zapi_event(zapi_payload(fromMe=True)).is_from_operator
    assert extract_zapi_event(zapi_payload(isGroup=True)).is_group_chat


def test_zapi_list_and_button_replies_use_ids():
    event = extract_zapi_event(
        zapi_payload(text=None, listResponseMessage={"selectedRowId": "fabricacao"})
    )
    assert event.content == "fabricacao"

    event = extract_zapi_event(
        zapi_payload(text=None, buttonsResponseMessage={"buttonId": "sem_projeto"})
    )
    assert event.content == "sem_projeto"


def test_zapi_image_becomes_media_marker():
    event = extract_zapi_event(
        zapi_payload(
            text=None,
            messageId="ABC123",
            image={"imageUrl": "https://example.com/foto.jpg"},
        )
    )
    assert event.content == "MEDIA_MESSAGE:image:ABC123"


def test_zapi_status_callbacks_are_skipped():
    assert extract_zapi_event(zapi_payload(type="MessageStatusCallback")) is None


def test_zapi_bot_api_echo_is_not_operator_takeover():
    payload = zapi_payload(
        fromMe=True, fromApi=True, text={"message": "Olá Maria! Bem-vindo(a)"}
    )

    assert extract_zapi_event(payload) is None
    assert extract_events(payload) == []


def test_zapi_manual_phone_reply_is_operator():
    event = extract_zapi_event(zapi_payload(fromMe=True, fromApi=False))
    assert event.is_from_operator


def test_cloud_customer_messages():
    events = extract_cloud_events(
        cloud_payload(
            {
                "contacts": [{"wa_id": "5583911112222", "profile": {"name": "João"}}],
                "messages": [
                    {"from": "5583911112222", "type": "text", "text": {"body": "Olá"}},
                    {
                        "from": "5583911112222",
                        "type": "interactive",
                        "interactive": {"list_reply": {"id": "reforma"}},
                    },
                ],
            }
        )
    )

    assert [event.content for event in events] == ["Olá", "reforma"]
    assert all(event.display_name == "João" for event in events)
    assert not any(event.is_from_operator for event in events)


def test_cloud_echoes_are_operator_messages():
    events = extract_cloud_events(
        cloud_payload(
            {
                "message_echoes": [
                    {
                        "from": "5583000000000",
                        "to": "5583911112222",
                        "type": "text",
                        "text": {"body": "Oi, aqui é da loja"},
                    }
                ]
            }
        )
    )

    assert len(events) == 1
    assert events[0].user_id == "5583911112222"
    assert events[0].is_from_operator


def test_cloud_image_and_unsupported_types():
    events = extract_cloud_events(
        cloud_payload(
            {
                "messages": [
                    {"from": "1", "type": "image", "image": {"id": "media-9"}},
                    {"from": "1", "type": "sticker", "sticker": {"id": "x"}},
                ]
            }
        )
    )

    assert events[0].content == "MEDIA_MESSAGE:image:media-9"
    assert events[1].content == ""


def test_unknown_payload_yields_nothing():
    assert extract_events({"hello": "world"}) == []
    assert extract_events(cloud_payload({"statuses": [{"id": "wamid"}]})) == []
