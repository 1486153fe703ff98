"""
Chat Flow

One user turn, end to end:

1. Ignore empty input
2. Create a "New Chat" thread when none is given
3. Save the user message, then an empty assistant placeholder marked
   is_processing
4. Build the history and the system prompt (financial when a context is
   attached, default otherwise)
5. Consume the agent's SSE stream, appending text tokens in order
6. Save the final reply with timing, token counts and processing steps
7. Title the thread from its first message while it is still "New Chat"

A failure after the placeholder exists replaces it with an apology
instead of leaving it processing forever.
"""

import time
from datetime import datetime
from typing import Any, AsyncIterator, Callable, Optional, Protocol, Sequence

import structlog

from money_manager.actions.chat_threads import ChatThreadActions
from money_manager.audit import AuditLogger, create_correlation_id
from money_manager.chat.prompts import (
    calculate_token_counts,
    generate_default_system_prompt,
    generate_financial_system_prompt,
)
from money_manager.chat.sse import SSEParser
from money_manager.exceptions import MoneyManagerError
from money_manager.models.chat import (
    DEFAULT_THREAD_TITLE,
    ChatConversation,
    ChatMessage,
    ChatSettings,
    ChatTurn,
    ConversationCreate,
    ConversationUpdate,
    FinancialContext,
    MessageSender,
    StreamEventType,
)
from money_manager.models.finance import ActionResult, UserSession


logger = structlog.get_logger()

NO_RESPONSE_MESSAGE = "Sorry, I didn't receive a response. Please try again."
ERROR_MESSAGE = "Sorry, I encountered an error processing your request. Please try again."


class ChatStreamError(MoneyManagerError):
    """The stream carried an error event or ended abnormally."""
    pass


class SSEProducer(Protocol):
    def sse_stream(
        self,
        messages: Sequence[ChatMessage],
        settings: Optional[ChatSettings] = None,
        system_prompt: Optional[str] = None,
    ) -> AsyncIterator[bytes]: ...


def _unwrap(result: ActionResult) -> Any:
    if not result.success:
        raise MoneyManagerError(result.error or "Chat action failed")
    return result.data


def build_history(conversations: Sequence[ChatConversation]) -> list[ChatMessage]:
    """Settled user and assistant messages, oldest first."""
    return [
        ChatMessage(role=c.sender, content=c.content)
        for c in conversations
        if not c.is_processing and c.sender in (MessageSender.USER, MessageSender.ASSISTANT)
    ]


def _step(number: int, text: str, **context) -> dict:
    return {
        "step": number,
        "text": text,
        "context": context or None,
        "timestamp": datetime.utcnow().isoformat(),
    }


class ChatFlow:
    """Drives a chat turn through ChatThreadActions and an SSE producer."""

    def __init__(
        self,
        threads: ChatThreadActions,
        agent: SSEProducer,
        audit: Optional[AuditLogger] = None,
    ):
        self._threads = threads
        self._agent = agent
        self._audit = audit or AuditLogger()

    async def _consume(
        self,
        history: list[ChatMessage],
        settings: ChatSettings,
        system_prompt: str,
        on_token: Optional[Callable[[str], None]],
    ) -> str:
        parser = SSEParser()
        tokens: list[str] = []
        async for chunk in self._agent.sse_stream(history, settings, system_prompt):
            for event in parser.feed(chunk):
                if event.event == StreamEventType.TEXT:
                    tokens.append(str(event.data))
                    if on_token is not None:
                        on_token("".join(tokens))
                elif event.event == StreamEventType.CHAT_OUTPUT:
                    return "".join(tokens)
                elif event.event == StreamEventType.ERROR:
                    data = event.data if isinstance(event.data, dict) else {}
                    raise ChatStreamError(data.get("error") or "Stream error")
        return "".join(tokens)

    async def send_message(
        self,
        session: UserSession,
        thread_id: Optional[int],
        content: str,
        financial_context: Optional[FinancialContext] = None,
        settings: Optional[ChatSettings] = None,
        on_token: Optional[Callable[[str], None]] = None,
    ) -> Optional[ChatTurn]:
        """
        Send one user message and store the assistant's reply.

        Returns None for empty input. Errors before the assistant
        placeholder exists (no session, unknown thread) raise; errors while
        streaming are recorded on the placeholder and returned in
        ChatTurn.error.
        """
        content = (content or "").strip()
        if not content:
            return None

        settings = settings or ChatSettings()
        correlation_id = create_correlation_id()

        if thread_id is None:
            thread = _unwrap(await self._threads.create_chat_thread(session, DEFAULT_THREAD_TITLE))
            thread_id = thread.id
            thread_title = thread.title
        else:
            thread_title = _unwrap(await self._threads.get_chat_thread(session, thread_id)).title

        user_message = _unwrap(await self._threads.create_conversation(
            session,
            ConversationCreate(thread_id=thread_id, content=content, sender=MessageSender.USER),
        ))
        history = build_history(_unwrap(await self._threads.get_conversations(session, thread_id)))

        if financial_context is not None:
            system_prompt = generate_financial_system_prompt(financial_context)
            prompt_record = {
                "type": "financial",
                "prompt": system_prompt,
                "financial_context": financial_context.summary.model_dump(mode="json"),
            }
        else:
            system_prompt = generate_default_system_prompt()
            prompt_record = {"type": "default", "prompt": system_prompt}

        placeholder = _unwrap(await self._threads.create_conversation(
            session,
            ConversationCreate(
                thread_id=thread_id,
                content="",
                sender=MessageSender.ASSISTANT,
                is_processing=True,
                system_prompt=prompt_record,
            ),
        ))

        steps = [_step(1, "Preparing your request...")]
        if financial_context is not None:
            steps.append(_step(
                len(steps) + 1,
                "Processing financial data...",
                type="financial",
                period=financial_context.summary.period,
                transaction_count=financial_context.summary.transaction_count,
                markdown_length=len(financial_context.markdown),
            ))
        steps.append(_step(
            len(steps) + 1,
            "Building conversation context...",
            type="conversation",
            message_count=len(history),
            total_characters=sum(len(m.content) for m in history),
        ))
        steps.append(_step(len(steps) + 1, "Connecting to AI assistant...", type="ai_connection", model=settings.model))

        started = time.monotonic()
        try:
            reply = await self._consume(history, settings, system_prompt, on_token)
            if not reply.strip():
                reply = NO_RESPONSE_MESSAGE

            elapsed = time.monotonic() - started
            counts = calculate_token_counts(system_prompt, history, reply)
            steps.append(_step(len(steps) + 1, "Response complete", type="complete"))

            assistant_message = _unwrap(await self._threads.update_conversation(
                session,
                placeholder.id,
                ConversationUpdate(
                    content=reply,
                    is_processing=False,
                    response_time_seconds=round(elapsed, 3),
                    token_count=counts.total_tokens,
                    input_tokens=counts.input_tokens,
                    output_tokens=counts.output_tokens,
                    intermediate_steps=steps,
                    system_prompt=prompt_record,
                ),
            ))
        except Exception as e:
            logger.error("chat_turn_failed", thread_id=thread_id, error=str(e), exc_info=True)
            await self._audit.log_chat_failed(session.user_id, thread_id, str(e), correlation_id)
            assistant_message = _unwrap(await self._threads.update_conversation(
                session,
                placeholder.id,
                ConversationUpdate(content=ERROR_MESSAGE, is_processing=False),
            ))
            return ChatTurn(
                thread_id=thread_id,
                user_message=user_message,
                assistant_message=assistant_message,
                thread_title=thread_title,
                error=str(e),
            )

        await self._audit.log_chat_completed(
            session.user_id,
            thread_id,
            assistant_message.id,
            assistant_message.response_time_seconds or 0.0,
            assistant_message.token_count or 0,
            correlation_id,
        )

        if thread_title == DEFAULT_THREAD_TITLE:
            titled = await self._threads.generate_thread_title(session, thread_id)
            if titled.success and titled.data:
                thread_title = titled.data

        return ChatTurn(
            thread_id=thread_id,
            user_message=user_message,
            assistant_message=assistant_message,
            thread_title=thread_title,
        )
