import json

import pytest

from voicescribe.config import settings
from voicescribe.core.errors import TerminalTranscriptionError
from voicescribe.core.security import compute_signature
from voicescribe.services.message_processor import HELP_TEXT

pytestmark = pytest.mark.asyncio


def _payload(*messages, contacts=None):
    return {
        "object": "whatsapp_business_account",
        "entry": [
            {
                "id": "WABA-1",
                "changes": [
                    {
                        "field": "messages",
                        "value": {
                            "messaging_product": "whatsapp",
                            "contacts": contacts if contacts is not None else [
                                {"wa_id": "36301234567", "profile": {"name": "Kiss Anna"}}
                            ],
                            "messages": list(messages),
                        },
                    }
                ],
            }
        ],
    }


def _voice(sender="36301234567", media_id="media-1"):
    return {
        "from": sender,
        "id": f"wamid.{media_id}",
        "timestamp": "1700000000",
        "type": "audio",
        "audio": {"id": media_id, "mime_type": "audio/ogg; codecs=opus", "voice": True},
    }


@pytest.fixture(autouse=True)
def _webhook_settings(monkeypatch):
    monkeypatch.setattr(settings, "whatsapp_app_secret", None)
    monkeypatch.setattr(settings, "whatsapp_verify_token", "verify-me")


async def test_verification_echoes_challenge(client):
    resp = await client.get(
        "/webhook",
        params={"hub.mode": "subscribe", "hub.verify_token": "verify-me", "hub.challenge": "1158201444"},
    )
    assert resp.status_code == 200
    assert resp.text == "1158201444"


async def test_verification_with_wrong_token(client):
    resp = await client.get(
        "/webhook",
        params={"hub.mode": "subscribe", "hub.verify_token": "guess", "hub.challenge": "1"},
    )
    assert resp.status_code == 403
    assert resp.json()["detail"] == "VERIFICATION_FAILED"


async def test_voice_message_is_transcribed(client, services, whatsapp, asr):
    resp = await client.post("/webhook", json=_payload(_voice()))
    assert resp.status_code == 200

    await services.queue.join()

    [record] = services.store.list_transcriptions().data
    assert record.sender == "36301234567"
    assert record.sender_name == "Kiss Anna"
    assert record.source == "whatsapp"
    assert whatsapp.download_calls == ["media-1"]
    # auto_reply is on by default
    assert [to for to, _ in whatsapp.texts] == ["36301234567"]


async def test_every_message_in_payload_is_queued_in_order(client, services, whatsapp):
    resp = await client.post("/webhook", json=_payload(_voice(media_id="m1"), _voice(media_id="m2")))
    assert resp.status_code == 200

    await services.queue.join()

    assert whatsapp.download_calls == ["m1", "m2"]
    assert services.store.list_transcriptions().pagination.total == 2


async def test_help_keyword(client, services, whatsapp):
    text = {"from": "36301234567", "id": "wamid.t", "type": "text", "text": {"body": "segítség"}}
    await client.post("/webhook", json=_payload(text))
    await services.queue.join()
    assert whatsapp.texts == [("36301234567", HELP_TEXT)]


async def test_unknown_contact_name(client, services):
    await client.post("/webhook", json=_payload(_voice(), contacts=[]))
    await services.queue.join()
    assert services.store.list_transcriptions().data[0].sender_name == "Ismeretlen"


async def test_status_callback_is_acknowledged_and_ignored(client, services, whatsapp):
    body = {
        "object": "whatsapp_business_account",
        "entry": [{"changes": [{"field": "messages", "value": {"statuses": [{"status": "read"}]}}]}],
    }
    resp = await client.post("/webhook", json=body)
    assert resp.status_code == 200
    assert len(services.queue) == 0
    assert services.queue.is_draining is False
    assert whatsapp.download_calls == []


async def test_processing_failure_still_acknowledged(client, services, asr):
    asr.error = TerminalTranscriptionError("Whisper API error 400: bad audio", status=400)
    resp = await client.post("/webhook", json=_payload(_voice(media_id="m1"), _voice(media_id="m2")))
    assert resp.status_code == 200

    await services.queue.join()

    assert len(asr.calls) == 2
    assert services.store.list_transcriptions().pagination.total == 0


async def test_invalid_json_is_rejected(client):
    resp = await client.post("/webhook", content=b"{not json", headers={"Content-Type": "application/json"})
    assert resp.status_code == 400
    assert resp.json()["detail"] == "INVALID_PAYLOAD"


async def test_signed_payload_is_accepted(client, services, monkeypatch):
    monkeypatch.setattr(settings, "whatsapp_app_secret", "app-secret")
    body = json.dumps(_payload(_voice())).encode()

    resp = await client.post(
        "/webhook",
        content=body,
        headers={"Content-Type": "application/json", "X-Hub-Signature-256": compute_signature(body, "app-secret")},
    )
    assert resp.status_code == 200

    await services.queue.join()
    assert services.store.list_transcriptions().pagination.total == 1


@pytest.mark.parametrize("signature", [None, "sha256=deadbeef"])
async def test_bad_signature_is_rejected(client, services, monkeypatch, signature):
    monkeypatch.setattr(settings, "whatsapp_app_secret", "app-secret")
    headers = {"Content-Type": "application/json"}
    if signature:
        headers["X-Hub-Signature-256"] = signature

    resp = await client.post("/webhook", content=json.dumps(_payload(_voice())).encode(), headers=headers)

    assert resp.status_code == 403
    assert resp.json()["detail"] == "INVALID_SIGNATURE"
    assert len(services.queue) == 0


@pytest.mark.parametrize(
    "body",
    [
        {"object": "whatsapp_business_account", "entry": {"id": "1"}},
        {"object": "whatsapp_business_account", "entry": [{"changes": [{"value": {"messages": ["oops"]}}]}]},
        [1, 2, 3],
    ],
)
async def test_unexpected_shape_is_acknowledged_and_ignored(client, services, whatsapp, monkeypatch, body):
    monkeypatch.setattr(settings, "whatsapp_app_secret", "app-secret")
    raw = json.dumps(body).encode()

    resp = await client.post(
        "/webhook",
        content=raw,
        headers={"Content-Type": "application/json", "X-Hub-Signature-256": compute_signature(raw, "app-secret")},
    )

    assert resp.status_code == 200
    assert len(services.queue) == 0
    assert services.queue.is_draining is False
    assert whatsapp.download_calls == []
