"""Tests for chat and live context assembly."""

from models.capture_models import Exchange
from models.conversation_models import Message, Mode, PendingAttachment, Role
from services.chat.context_builder import CONTEXT_LIMIT, build_context, build_live_context
from services.chat.prompts import FALLBACK_IMAGE_PROMPT, coder_prompt, conversational_prompt


def _history(count: int):
    messages = []
    for n in range(count):
        role = Role.USER if n % 2 == 0 else Role.ASSISTANT
        messages.append(Message(role=role, content=f"message {n}"))
    return messages


class TestBuildContext:
    def test_long_history_is_bounded(self):
        context = build_context(_history(12), Mode.NORMAL)

        assert len(context) == CONTEXT_LIMIT + 1
        assert context[0]["role"] == "system"
        assert context[1]["content"][0]["text"] == "message 2"
        assert context[-1]["content"] == "message 11"

    def test_short_history_is_kept_in_order(self):
        context = build_context(_history(3), Mode.NORMAL)

        assert [block["role"] for block in context] == ["system", "user", "assistant", "user"]

    def test_system_block_follows_mode(self):
        assert build_context([], Mode.NORMAL)[0]["content"] == conversational_prompt()
        assert build_context([], Mode.CODER)[0]["content"] == coder_prompt()

    def test_user_messages_are_multipart(self):
        context = build_context([Message(role=Role.USER, content="salom")], Mode.NORMAL)

        assert context[1]["content"] == [{"type": "text", "text": "salom"}]

    def test_image_only_message_gets_fallback_prompt(self):
        message = Message(role=Role.USER, content="", image_base64="QUJD", image_mime="image/png")

        parts = build_context([message], Mode.NORMAL)[1]["content"]

        assert parts[0] == {"type": "text", "text": FALLBACK_IMAGE_PROMPT}
        assert parts[1]["image_url"]["url"] == "data:image/png;base64,QUJD"

    def test_assistant_image_results_are_skipped(self):
        history = [
            Message(role=Role.USER, content="draw a cat"),
            Message(role=Role.ASSISTANT, content="https://image.example/cat", is_image=True),
            Message(role=Role.USER, content="thanks"),
        ]

        context = build_context(history, Mode.NORMAL)

        assert [block["role"] for block in context] == ["system", "user", "user"]

    def test_attachment_is_inlined_into_trailing_user_message(self):
        attachment = PendingAttachment(data_uri="data:image/jpeg;base64,QUJD", base64="QUJD", mime="image/jpeg")

        context = build_context([Message(role=Role.USER, content="what is this?")], Mode.NORMAL, attachment)

        parts = context[-1]["content"]
        assert parts[0]["text"] == "what is this?"
        assert parts[1]["image_url"]["url"] == "data:image/jpeg;base64,QUJD"


class TestBuildLiveContext:
    def test_window_then_transcript_and_frame(self):
        window = [Exchange("kim bu?", "Bu mushuk."), Exchange("rangi?", "Oq.")]

        context = build_live_context(window, "qayerda?", "RlJBTUU=")

        assert [block["role"] for block in context] == ["system", "user", "assistant", "user", "assistant", "user"]
        assert context[-1]["content"] == [
            {"type": "text", "text": "qayerda?"},
            {"type": "image_url", "image_url": {"url": "data:image/jpeg;base64,RlJBTUU="}},
        ]

    def test_missing_frame_sends_text_only(self):
        context = build_live_context([], "salom", None)

        assert context[-1]["content"] == [{"type": "text", "text": "salom"}]
