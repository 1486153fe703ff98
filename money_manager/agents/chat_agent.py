"""
Chat Agent

Streams assistant replies from Gemini as StreamEvents:

    text          one per text delta, in arrival order
    chat_output   {"complete": true} once the model is done
    error         {"error": message}; the stream ends after it

Provider failures never raise out of stream_tokens, they become an error
event so the caller always sees a terminated stream.
"""

from typing import AsyncIterator, Optional, Sequence

import google.generativeai as genai
import structlog

from money_manager.chat.sse import encode_event
from money_manager.config import GeminiSettings, get_settings
from money_manager.models.chat import (
    ChatMessage,
    ChatSettings,
    MessageSender,
    StreamEvent,
    StreamEventType,
)


logger = structlog.get_logger()

TITLE_PROMPT = """Write a short title, at most 6 words, for a conversation that starts with the message below.
Reply with the title only: no quotes, no punctuation at the end.

Message:
{message}"""


def _error(message: str) -> StreamEvent:
    return StreamEvent(event=StreamEventType.ERROR, data={"error": message})


def _chunk_text(chunk) -> str:
    """Text of the first candidate; empty for chunks that carry none."""
    candidates = getattr(chunk, "candidates", None) or []
    if not candidates or not candidates[0].content:
        return ""
    return "".join(getattr(part, "text", "") or "" for part in candidates[0].content.parts)


class ChatAgent:
    """
    Gemini-backed producer for the chat stream.

    History is trimmed to the most recent max_chat_messages non-empty
    user/assistant messages before it is sent.
    """

    def __init__(self, settings: Optional[GeminiSettings] = None):
        self._settings = settings or get_settings().gemini
        if self._settings.api_key:
            genai.configure(api_key=self._settings.api_key)

    @property
    def configured(self) -> bool:
        return bool(self._settings.api_key)

    def _valid_messages(self, messages: Sequence[ChatMessage]) -> list[ChatMessage]:
        valid = [
            m for m in messages
            if m.role in (MessageSender.USER, MessageSender.ASSISTANT) and (m.content or "").strip()
        ]
        return valid[-self._settings.max_chat_messages:]

    def _build_model(self, settings: ChatSettings, system_prompt: Optional[str]):
        return genai.GenerativeModel(
            model_name=settings.model or self._settings.model_name,
            system_instruction=system_prompt or None,
            generation_config={
                "temperature": settings.temperature,
                "max_output_tokens": settings.max_output_tokens,
                "top_p": settings.top_p,
            },
        )

    @staticmethod
    def _to_contents(messages: Sequence[ChatMessage]) -> list[dict]:
        return [
            {
                "role": "user" if m.role == MessageSender.USER else "model",
                "parts": [m.content],
            }
            for m in messages
        ]

    async def stream_tokens(
        self,
        messages: Sequence[ChatMessage],
        settings: Optional[ChatSettings] = None,
        system_prompt: Optional[str] = None,
    ) -> AsyncIterator[StreamEvent]:
        settings = settings or ChatSettings()
        valid = self._valid_messages(messages)
        if not valid:
            yield _error("No valid messages provided")
            return
        if not self.configured:
            yield _error("LLM API key not configured")
            return

        try:
            model = self._build_model(settings, system_prompt)
            response = await model.generate_content_async(
                self._to_contents(valid),
                stream=settings.stream,
            )
            if settings.stream:
                async for chunk in response:
                    text = _chunk_text(chunk)
                    if text:
                        yield StreamEvent(event=StreamEventType.TEXT, data=text)
            else:
                text = _chunk_text(response)
                if text:
                    yield StreamEvent(event=StreamEventType.TEXT, data=text)
        except Exception as e:
            logger.error("chat_stream_failed", error=str(e), exc_info=True)
            yield _error(str(e) or "LLM API error")
            return

        yield StreamEvent(event=StreamEventType.CHAT_OUTPUT, data={"complete": True})

    async def sse_stream(
        self,
        messages: Sequence[ChatMessage],
        settings: Optional[ChatSettings] = None,
        system_prompt: Optional[str] = None,
    ) -> AsyncIterator[bytes]:
        """The stream_tokens events framed as SSE bytes."""
        async for event in self.stream_tokens(messages, settings, system_prompt):
            yield encode_event(event.event, event.data).encode("utf-8")

    async def generate_title(self, message: str) -> str:
        """
        Ask the title model for a short conversation title.

        Raises:
            RuntimeError: If no API key is configured
        """
        if not self.configured:
            raise RuntimeError("LLM API key not configured")

        model = genai.GenerativeModel(
            model_name=self._settings.title_model_name,
            generation_config={
                "temperature": 0.3,
                "max_output_tokens": 20,
            },
        )
        response = await model.generate_content_async(TITLE_PROMPT.format(message=message))
        return response.text.strip()
