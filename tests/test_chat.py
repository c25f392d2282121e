"""
Tests for the POST /api/chat endpoint and the assistant router.

Tests cover:
- Canned replies per intent, case-insensitive, never calling the model
- Rule priority (first match wins)
- Missing or empty message (400)
- Model fallback, placeholder for empty replies
- Model error pass-through and connectivity failures
"""

import asyncio

import pytest

from conftest import FakeModelClient, gemini_payload, MODEL_TEXT
from janmitra.assistant import (
    CANNED_RULES,
    NO_REPLY_PLACEHOLDER,
    SYSTEM_INSTRUCTION,
    AssistantRouter,
    match_canned_rule,
)
from janmitra.errors import ExternalServiceUnavailable, InputError
from janmitra.schemas import GenerateContentResponse


GREETING = "👋 Hello! I'm your Civic Assistant. How can I help you report an issue today?"
SAFETY = (
    "🚨 **If this is an emergency, please call 100 immediately.** "
    "This platform is for non-urgent civic reports."
)


def rule_reply(name: str) -> str:
    return next(rule.reply for rule in CANNED_RULES if rule.name == name)


class TestCannedRuleTable:

    def test_rule_order(self):
        """Test the rules are evaluated greeting, status, gratitude, emergency."""
        assert [rule.name for rule in CANNED_RULES] == ["greeting", "status", "gratitude", "emergency"]

    def test_rule_keywords(self):
        keywords = {rule.name: rule.keywords for rule in CANNED_RULES}
        assert keywords == {
            "greeting": ("hello", "hi", "hey"),
            "status": ("status", "track"),
            "gratitude": ("thank you", "thanks"),
            "emergency": ("emergency", "police"),
        }

    def test_no_match(self):
        assert match_canned_rule("Where do I report a broken streetlight?") is None


class TestCannedReplies:
    """Test canned replies over HTTP."""

    @pytest.mark.parametrize("message", ["hello", "HELLO there", "Hi!", "hey", "Hey, quick question"])
    def test_greeting(self, client, model_client, message):
        response = client.post("/api/chat", json={"message": message})

        assert response.status_code == 200
        assert response.json() == {"reply": GREETING}
        assert model_client.calls == []

    @pytest.mark.parametrize("message", ["What is the STATUS of my report?", "track TC-10001"])
    def test_status(self, client, model_client, message):
        response = client.post("/api/chat", json={"message": message})

        assert response.json() == {"reply": rule_reply("status")}
        assert model_client.calls == []

    @pytest.mark.parametrize("message", ["Thank you!", "thanks a lot"])
    def test_gratitude(self, client, model_client, message):
        response = client.post("/api/chat", json={"message": message})

        assert response.json() == {"reply": rule_reply("gratitude")}
        assert model_client.calls == []

    @pytest.mark.parametrize("message", ["EMERGENCY!", "call the police", "Police needed now"])
    def test_emergency(self, client, model_client, message):
        response = client.post("/api/chat", json={"message": message})

        assert response.json() == {"reply": SAFETY}
        assert model_client.calls == []

    def test_greeting_wins_over_emergency(self, client):
        """Test a message with greeting and emergency keywords gets the greeting."""
        response = client.post("/api/chat", json={"message": "hello, I need the police"})

        assert response.json() == {"reply": GREETING}

    def test_status_wins_over_gratitude(self, client):
        response = client.post("/api/chat", json={"message": "Thanks! Can I track my report?"})

        assert response.json() == {"reply": rule_reply("status")}

    def test_substring_match(self, client):
        """Test keywords match inside other words ("this" contains "hi")."""
        response = client.post("/api/chat", json={"message": "Is this the right place?"})

        assert response.json() == {"reply": GREETING}


class TestChatInputErrors:

    @pytest.mark.parametrize("body", [
        {"message": ""},
        {},
        {"text": "hello"},
        {"message": None, "extra": "ignored"},
    ])
    def test_missing_message(self, client, model_client, body):
        response = client.post("/api/chat", json=body)

        assert response.status_code == 400
        assert response.json() == {"error": "Message required"}
        assert model_client.calls == []

    def test_no_body(self, client):
        response = client.post("/api/chat")

        assert response.status_code == 400
        assert response.json() == {"error": "Message required"}

    def test_wrong_message_type(self, client):
        response = client.post("/api/chat", json={"message": ["not", "text"]})

        assert response.status_code == 400
        assert "error" in response.json()


class TestModelFallback:

    def test_unmatched_message_goes_to_model(self, client, model_client):
        message = "How long does pothole repair take?"
        response = client.post("/api/chat", json={"message": message})

        assert response.status_code == 200
        assert response.json() == {"reply": MODEL_TEXT}
        assert model_client.calls == [(message, SYSTEM_INSTRUCTION)]

    @pytest.mark.parametrize("payload", [
        {},
        {"candidates": []},
        {"candidates": [{}]},
        {"candidates": [{"content": {"parts": []}}]},
        {"candidates": [{"content": {"parts": [{"inlineData": {}}]}}]},
        {"candidates": [{"content": {"parts": [{"text": ""}]}}]},
    ])
    def test_missing_text_uses_placeholder(self, client, model_client, payload):
        model_client.response = GenerateContentResponse.model_validate(payload)

        response = client.post("/api/chat", json={"message": "Where is the ward office?"})

        assert response.status_code == 200
        assert response.json() == {"reply": NO_REPLY_PLACEHOLDER}

    def test_model_error_passed_through(self, client, model_client):
        model_client.response = GenerateContentResponse.model_validate({
            "error": {"code": 429, "message": "Resource has been exhausted", "status": "RESOURCE_EXHAUSTED"}
        })

        response = client.post("/api/chat", json={"message": "Where is the ward office?"})

        assert response.status_code == 429
        assert response.json() == {"error": "Resource has been exhausted"}

    def test_model_error_without_details(self, client, model_client):
        model_client.response = GenerateContentResponse.model_validate({"error": {}})

        response = client.post("/api/chat", json={"message": "Where is the ward office?"})

        assert response.status_code == 500
        assert response.json() == {"error": "Gemini API request failed."}

    def test_model_unreachable(self, client, model_client):
        model_client.exc = ExternalServiceUnavailable("Failed to connect to Gemini API.")

        response = client.post("/api/chat", json={"message": "Where is the ward office?"})

        assert response.status_code == 500
        assert response.json() == {"error": "Failed to connect to Gemini API."}


class TestAssistantRouter:
    """Test the router directly, outside HTTP."""

    def test_canned_reply_source(self):
        router = AssistantRouter(FakeModelClient())

        reply = asyncio.run(router.reply("thanks!"))

        assert reply.source == "canned"
        assert reply.rule == "gratitude"

    def test_model_reply_source(self):
        client = FakeModelClient(
            response=GenerateContentResponse.model_validate(gemini_payload("Ward 12 covers Main St."))
        )
        router = AssistantRouter(client)

        reply = asyncio.run(router.reply("What ward covers Main St?"))

        assert reply.source == "model"
        assert reply.text == "Ward 12 covers Main St."

    def test_empty_message_raises_before_dispatch(self):
        client = FakeModelClient()
        router = AssistantRouter(client)

        with pytest.raises(InputError):
            asyncio.run(router.reply(""))
        assert client.calls == []
