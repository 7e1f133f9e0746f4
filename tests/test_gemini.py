import httpx
import pytest

from config import settings

HEADERS = {"X-Gemini-API-Key": "psid-cookie-value"}
GENERATE_URL = f"{settings.GEMINI_API_BASE}/generate"
CHAT_URL = f"{settings.GEMINI_API_BASE}/chat"
EMBED_URL = f"{settings.GEMINI_API_BASE}/embedding"


def test_missing_credential_is_rejected_before_any_call(client, upstream):
    response = client.post("/gemini/generate", json={"prompt": "hi"})
    assert response.status_code == 401
    assert response.json() == {"error": "X-Gemini-API-Key header is required"}
    assert upstream.requests == []


def test_unknown_endpoint(client, upstream):
    response = client.post("/gemini/unknown", json={}, headers=HEADERS)
    assert response.status_code == 400
    assert response.json()["error"] == "Invalid Gemini endpoint"


def test_generate_requires_prompt(client, upstream):
    response = client.post("/gemini/generate", json={}, headers=HEADERS)
    assert response.status_code == 400
    assert response.json() == {"error": "Prompt is required"}
    assert upstream.requests == []


def test_generate_sends_defaults_and_returns_raw_reply(client, upstream):
    upstream.on(GENERATE_URL, json={"text": "raw provider reply"})

    response = client.post(
        "/gemini/generate",
        json={"prompt": "Write a haiku", "generationConfig": {"temperature": 0.2}},
        headers=HEADERS,
    )

    assert response.status_code == 200
    assert response.json() == {"text": "raw provider reply"}
    sent = upstream.requests[0]
    assert sent.headers["Cookie"] == "__Secure-1PSID=psid-cookie-value"
    assert upstream.json_body() == {
        "prompt": {"text": "Write a haiku"},
        "temperature": 0.2,
        "maxOutputTokens": 1024,
        "topK": 40,
        "topP": 0.95,
    }


def test_chat_maps_roles_and_normalizes_reply(client, upstream):
    upstream.on(CHAT_URL, json={
        "candidates": [{"content": {"parts": [{"text": "Hello there"}]}}],
        "usageMetadata": {"promptTokenCount": 7, "candidatesTokenCount": 3},
    })

    response = client.post(
        "/gemini/chat",
        json={"messages": [
            {"role": "user", "content": "hi"},
            {"role": "assistant", "content": [{"type": "text", "text": "hey"}]},
        ]},
        headers=HEADERS,
    )

    assert response.status_code == 200
    body = response.json()
    assert body["object"] == "chat.completion"
    assert body["model"] == "gemini-pro"
    assert body["choices"][0]["message"] == {"role": "assistant", "content": "Hello there"}
    assert body["choices"][0]["finish_reason"] == "stop"
    assert body["usage"] == {"prompt_tokens": 7, "completion_tokens": 3, "total_tokens": 10}

    sent = upstream.json_body()
    assert sent["contents"] == [
        {"role": "user", "parts": [{"text": "hi"}]},
        {"role": "model", "parts": [{"text": '[{"type":"text","text":"hey"}]'}]},
    ]
    assert sent["generationConfig"] == {
        "temperature": 0.7, "maxOutputTokens": 1024, "topK": 40, "topP": 0.95,
    }


def test_chat_without_candidates_uses_placeholder_and_zero_usage(client, upstream):
    upstream.on(CHAT_URL, json={})
    response = client.post("/gemini/chat", json={"messages": [{"role": "user", "content": "hi"}]}, headers=HEADERS)
    body = response.json()
    assert body["choices"][0]["message"]["content"] == "No response"
    assert body["usage"] == {"prompt_tokens": 0, "completion_tokens": 0, "total_tokens": 0}


@pytest.mark.parametrize("payload", [{}, {"messages": []}])
def test_chat_requires_messages(client, upstream, payload):
    response = client.post("/gemini/chat", json=payload, headers=HEADERS)
    assert response.status_code == 400
    assert response.json() == {"error": "Messages array is required"}


def test_chat_rejects_malformed_messages(client, upstream):
    response = client.post("/gemini/chat", json={"messages": "hi"}, headers=HEADERS)
    assert response.status_code == 400
    assert response.json()["error"] == "Invalid request body"
    assert "details" in response.json()


@pytest.mark.parametrize("path", ["/gemini/embeddingContent", "/gemini/generateEmbed"])
def test_embed_accepts_text_or_content(client, upstream, path):
    upstream.on(EMBED_URL, json={"embedding": {"values": [0.1, 0.2]}})

    response = client.post(path, json={"content": "embed me"}, headers=HEADERS)

    assert response.status_code == 200
    assert response.json() == {"embedding": {"values": [0.1, 0.2]}}
    assert upstream.json_body() == {"text": "embed me"}


def test_embed_requires_text(client, upstream):
    response = client.post("/gemini/generateEmbed", json={"text": ""}, headers=HEADERS)
    assert response.status_code == 400
    assert response.json() == {"error": "Text content is required"}


def test_upstream_error_status_becomes_500(client, upstream):
    upstream.on(GENERATE_URL, status_code=403, json={"message": "bad cookie"})

    response = client.post("/gemini/generate", json={"prompt": "hi"}, headers=HEADERS)

    assert response.status_code == 500
    body = response.json()
    assert body["error"] == "Error processing Gemini request"
    assert "Upstream returned 403" in body["details"]
    assert response.headers["Access-Control-Allow-Origin"] == "*"


def test_unparseable_upstream_json_becomes_500(client, upstream):
    upstream.on(GENERATE_URL, text="<html>login</html>")
    response = client.post("/gemini/generate", json={"prompt": "hi"}, headers=HEADERS)
    assert response.status_code == 500
    assert response.json()["error"] == "Error processing Gemini request"


def test_network_failure_becomes_500_with_details(client, upstream):
    upstream.fail(CHAT_URL, httpx.ConnectError("connection refused"))
    response = client.post("/gemini/chat", json={"messages": [{"role": "user", "content": "hi"}]}, headers=HEADERS)
    assert response.status_code == 500
    assert response.json() == {"error": "Error processing Gemini request", "details": "connection refused"}


def test_invalid_json_body(client, upstream):
    response = client.post(
        "/gemini/generate",
        content=b"{not json",
        headers={**HEADERS, "Content-Type": "application/json"},
    )
    assert response.status_code == 400
    assert response.json() == {"error": "Invalid JSON body"}
