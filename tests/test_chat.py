"""
Tests for the chat assistant: threads, titles, the SSE wire format,
prompts, the financial markdown helpers and the end-to-end chat flow.

The LLM is never called; FakeStreamingAgent replays canned SSE bytes.
"""

from datetime import date
from decimal import Decimal

import pytest

from money_manager.actions import ChatThreadActions
from money_manager.actions.chat_threads import clean_title, fallback_title
from money_manager.agents import ChatAgent
from money_manager.chat import (
    SSEParser,
    calculate_token_count,
    calculate_token_counts,
    convert_currency,
    encode_event,
    format_currency,
    generate_financial_system_prompt,
    get_date_range_presets,
)
from money_manager.chat.flow import ERROR_MESSAGE, NO_RESPONSE_MESSAGE, ChatFlow
from money_manager.config import GeminiSettings
from money_manager.exceptions import MoneyManagerError
from money_manager.models import (
    ChatMessage,
    ChatThreadUpdate,
    ConversationCreate,
    ConversationUpdate,
    Feedback,
    FinancialContext,
    FinancialDataRequest,
    FinancialDataSummary,
    MessageSender,
    StreamEventType,
)

from conftest import FakeStreamingAgent, FakeTitleGenerator, run


def _say(chat_threads, session, thread_id, content, sender=MessageSender.USER):
    result = run(chat_threads.create_conversation(
        session, ConversationCreate(thread_id=thread_id, content=content, sender=sender)
    ))
    assert result.success, result.error
    return result.data


def _context() -> FinancialContext:
    request = FinancialDataRequest(start_date=date(2024, 3, 1), end_date=date(2024, 3, 31))
    summary = FinancialDataSummary(
        total_income=Decimal("2000.00"),
        total_expenses=Decimal("500.00"),
        net_amount=Decimal("1500.00"),
        transaction_count=2,
        period="2024-03-01 to 2024-03-31",
        currency="USD",
    )
    return FinancialContext(markdown="# Financial Data Summary\n", summary=summary, request=request)


class TestChatThreads:
    """Tests for thread and conversation persistence."""

    def test_threads_listed_pinned_first_with_preview(self, db, session, chat_threads):
        """Test ordering, message count and preview."""
        older = run(chat_threads.create_chat_thread(session, "Budget")).data
        newer = run(chat_threads.create_chat_thread(session)).data
        _say(chat_threads, session, newer.id, "hello")
        run(chat_threads.update_chat_thread(session, older.id, ChatThreadUpdate(is_pinned=True)))

        threads = run(chat_threads.get_chat_threads(session)).data

        assert [t.id for t in threads] == [older.id, newer.id]
        assert threads[1].title == "New Chat"
        assert threads[1].message_count == 1
        assert threads[1].last_message_preview == "hello"

    def test_soft_delete_hides_thread(self, db, session, chat_threads):
        """Test that a deleted thread disappears but nothing is hard deleted."""
        thread = run(chat_threads.create_chat_thread(session)).data
        _say(chat_threads, session, thread.id, "hi")

        assert run(chat_threads.delete_chat_thread(session, thread.id)).success

        assert run(chat_threads.get_chat_threads(session)).data == []
        assert run(chat_threads.get_chat_thread(session, thread.id)).error == "Chat thread not found or unauthorized"

    def test_delete_all_counts_soft_deleted_too(self, db, session, other_session, chat_threads):
        """Test the hard delete of every thread and message of a user."""
        first = run(chat_threads.create_chat_thread(session)).data
        second = run(chat_threads.create_chat_thread(session)).data
        _say(chat_threads, session, first.id, "a")
        _say(chat_threads, session, first.id, "b", MessageSender.ASSISTANT)
        _say(chat_threads, session, second.id, "c")
        run(chat_threads.delete_chat_thread(session, second.id))
        theirs = run(chat_threads.create_chat_thread(other_session)).data

        result = run(chat_threads.delete_all_chat_threads(session)).data

        assert result.deleted_threads == 2
        assert result.deleted_conversations == 3
        assert run(chat_threads.get_chat_thread(other_session, theirs.id)).success

    def test_other_users_thread_is_hidden(self, db, session, other_session, chat_threads):
        """Test thread and conversation ownership."""
        thread = run(chat_threads.create_chat_thread(session)).data
        message = _say(chat_threads, session, thread.id, "private")

        assert not run(chat_threads.get_conversations(other_session, thread.id)).success
        feedback = run(chat_threads.update_conversation_feedback(other_session, message.id, Feedback.LIKE))
        assert feedback.error == "Conversation not found or unauthorized"

    def test_feedback(self, db, session, chat_threads):
        """Test liking a message with a comment."""
        thread = run(chat_threads.create_chat_thread(session)).data
        message = _say(chat_threads, session, thread.id, "answer", MessageSender.ASSISTANT)

        result = run(chat_threads.update_conversation_feedback(session, message.id, Feedback.LIKE, "spot on"))

        assert result.data.feedback == Feedback.LIKE
        assert result.data.comments == "spot on"

    def test_deleted_thread_messages_are_read_only(self, db, session, chat_threads):
        """Test that messages of a soft-deleted thread cannot be changed."""
        thread = run(chat_threads.create_chat_thread(session)).data
        message = _say(chat_threads, session, thread.id, "answer", MessageSender.ASSISTANT)
        run(chat_threads.delete_chat_thread(session, thread.id))

        feedback = run(chat_threads.update_conversation_feedback(session, message.id, Feedback.DISLIKE))
        update = run(chat_threads.update_conversation(session, message.id, ConversationUpdate(content="edited")))

        assert feedback.error == "Conversation not found or unauthorized"
        assert update.error == "Conversation not found or unauthorized"


class TestThreadTitles:
    """Tests for titling a thread from its first user message."""

    def test_clean_title(self):
        """Test quote stripping and the length cap."""
        assert clean_title('  "Rent Planning"  ') == "Rent Planning"
        assert len(clean_title("x" * 100)) == 60

    def test_fallback_title(self):
        """Test the message-prefix fallback."""
        assert fallback_title("short question") == "short question"
        assert fallback_title("y" * 80) == "y" * 50 + "..."

    def test_generated_title_saved(self, db, session, chat_threads):
        """Test that the generator's title is stored."""
        thread = run(chat_threads.create_chat_thread(session)).data
        _say(chat_threads, session, thread.id, "Help me plan this month's budget")

        result = run(chat_threads.generate_thread_title(session, thread.id))

        assert result.data == "Monthly Budget Review"
        assert run(chat_threads.get_chat_thread(session, thread.id)).data.title == "Monthly Budget Review"

    def test_generator_failure_falls_back(self, db, session, audit):
        """Test that a failing generator does not fail the action."""
        threads = ChatThreadActions(db, audit, title_generator=FakeTitleGenerator(error=RuntimeError("quota")))
        thread = run(threads.create_chat_thread(session)).data
        _say(threads, session, thread.id, "What is a good emergency fund size for a family of four?")

        result = run(threads.generate_thread_title(session, thread.id))

        assert result.data == "What is a good emergency fund size for a family of..."

    def test_no_user_message(self, db, session, chat_threads):
        """Test that a thread without user messages cannot be titled."""
        thread = run(chat_threads.create_chat_thread(session)).data
        _say(chat_threads, session, thread.id, "welcome", MessageSender.ASSISTANT)

        result = run(chat_threads.generate_thread_title(session, thread.id))

        assert result.error == "No user message to generate a title from"


class TestSSEParser:
    """Tests for the SSE wire format."""

    def test_events_survive_any_chunking(self):
        """Test byte-by-byte delivery, including a multi-byte character."""
        payload = (
            encode_event(StreamEventType.TEXT, "₹ 500")
            + encode_event("text", " saved")
            + encode_event(StreamEventType.CHAT_OUTPUT, {"complete": True})
        ).encode("utf-8")
        parser = SSEParser()

        events = []
        for i in range(len(payload)):
            events.extend(parser.feed(payload[i:i + 1]))

        assert [(e.event, e.data) for e in events] == [
            (StreamEventType.TEXT, "₹ 500"),
            (StreamEventType.TEXT, " saved"),
            (StreamEventType.CHAT_OUTPUT, {"complete": True}),
        ]

    def test_invalid_and_unknown_events_skipped(self):
        """Test that bad JSON, unknown names and orphan data lines are dropped."""
        parser = SSEParser()

        events = parser.feed(
            "event: text\ndata: {not json\n\n"
            "event: ping\ndata: {}\n\n"
            "data: \"no event name\"\n\n"
            "event: error\ndata: {\"error\": \"boom\"}\n\n"
        )

        assert [(e.event, e.data) for e in events] == [(StreamEventType.ERROR, {"error": "boom"})]

    def test_crlf_line_endings(self):
        """Test that carriage returns are tolerated."""
        events = SSEParser().feed('event: text\r\ndata: "hi"\r\n\r\n')

        assert events[0].data == "hi"


class TestFormattingAndPrompts:
    """Tests for currency helpers, presets and prompts."""

    def test_format_currency(self):
        """Test symbols, separators and rounding."""
        assert format_currency(Decimal("1234.5"), "INR") == "₹ 1,234.50"
        assert format_currency(Decimal("0.005"), "USD") == "$ 0.01"
        assert format_currency(Decimal("7"), "EUR") == "$7.00"

    def test_convert_currency(self):
        """Test the USD, INR and NPR rates and pass-through for others."""
        assert convert_currency(Decimal("100"), "INR", "NPR") == Decimal("160")
        assert convert_currency(Decimal("160"), "NPR", "INR") == Decimal("100")
        assert convert_currency(Decimal("5"), "USD", "NPR") == Decimal("700")
        assert convert_currency(Decimal("8750"), "INR", "USD") == Decimal("100")
        assert convert_currency(Decimal("2"), "usd", "inr") == Decimal("175")
        assert convert_currency(Decimal("1400"), "NPR", "USD") == Decimal("10")
        assert convert_currency(Decimal("5"), "EUR", "USD") == Decimal("5")
        assert convert_currency(Decimal("5"), None, "USD") == Decimal("5")

    def test_presets_in_february(self):
        """Test quarter and month boundaries."""
        presets = get_date_range_presets(today=date(2024, 2, 15))

        assert presets["this_month"].end_date == date(2024, 2, 29)
        assert presets["this_quarter"].start_date == date(2024, 1, 1)
        assert presets["this_quarter"].end_date == date(2024, 3, 31)
        assert presets["last_year"].label == "Last Year"
        assert presets["last_30_days"].start_date == date(2024, 1, 16)

    def test_last_month_in_january(self):
        """Test the year rollover."""
        presets = get_date_range_presets(today=date(2024, 1, 10))

        assert presets["last_month"].start_date == date(2023, 12, 1)
        assert presets["last_month"].end_date == date(2023, 12, 31)

    def test_token_counts(self):
        """Test the 1.3 tokens per word estimate."""
        assert calculate_token_count("") == 0
        assert calculate_token_count("one two three") == 4

        counts = calculate_token_counts(
            "be helpful",
            [ChatMessage(role=MessageSender.USER, content="hi there")],
            "hello",
        )
        assert (counts.input_tokens, counts.output_tokens, counts.total_tokens) == (6, 2, 8)

    def test_financial_prompt_embeds_data(self):
        """Test that the financial prompt carries the markdown and summary."""
        prompt = generate_financial_system_prompt(_context())

        assert "FINANCIAL DATA PROVIDED:\n# Financial Data Summary" in prompt
        assert "- Analysis Period: 2024-03-01 to 2024-03-31" in prompt
        assert "- Net Cash Flow: 1500.00 USD" in prompt


class TestChatFlow:
    """Tests for a full chat turn."""

    REPLY = [
        ("text", "Start with"),
        ("text", " a budget."),
        ("chat_output", {"complete": True}),
    ]

    def test_new_thread_turn(self, db, session, chat_threads):
        """Test thread creation, streamed reply, counts and auto title."""
        agent = FakeStreamingAgent(self.REPLY, chunk_size=7)
        seen = []

        turn = run(ChatFlow(chat_threads, agent).send_message(
            session, None, "  How do I save money?  ", on_token=seen.append
        ))

        assert turn.error is None
        assert turn.user_message.content == "How do I save money?"
        assert turn.assistant_message.content == "Start with a budget."
        assert turn.assistant_message.is_processing is False
        assert turn.assistant_message.output_tokens == calculate_token_count("Start with a budget.")
        assert turn.assistant_message.system_prompt["type"] == "default"
        assert turn.assistant_message.intermediate_steps[-1]["text"] == "Response complete"
        assert seen == ["Start with", "Start with a budget."]
        assert turn.thread_title == "Monthly Budget Review"

        sent = agent.calls[0]["messages"]
        assert [(m.role, m.content) for m in sent] == [(MessageSender.USER, "How do I save money?")]

    def test_financial_context_selects_prompt(self, db, session, chat_threads):
        """Test that an attached context switches the system prompt."""
        agent = FakeStreamingAgent(self.REPLY)

        turn = run(ChatFlow(chat_threads, agent).send_message(
            session, None, "How did March go?", financial_context=_context()
        ))

        assert "FINANCIAL DATA PROVIDED" in agent.calls[0]["system_prompt"]
        record = turn.assistant_message.system_prompt
        assert record["type"] == "financial"
        assert record["financial_context"]["period"] == "2024-03-01 to 2024-03-31"
        assert turn.assistant_message.intermediate_steps[1]["text"] == "Processing financial data..."

    def test_existing_thread_keeps_title_and_sends_history(self, db, session, chat_threads):
        """Test a follow-up message in a titled thread."""
        thread = run(chat_threads.create_chat_thread(session, "Savings")).data
        _say(chat_threads, session, thread.id, "first question")
        _say(chat_threads, session, thread.id, "first answer", MessageSender.ASSISTANT)
        agent = FakeStreamingAgent(self.REPLY)

        turn = run(ChatFlow(chat_threads, agent).send_message(session, thread.id, "follow up"))

        assert turn.thread_title == "Savings"
        assert [m.content for m in agent.calls[0]["messages"]] == ["first question", "first answer", "follow up"]

    def test_error_event_replaces_placeholder(self, db, session, chat_threads):
        """Test that a stream error is stored as the apology message."""
        agent = FakeStreamingAgent([("text", "partial"), ("error", {"error": "quota exceeded"})])

        turn = run(ChatFlow(chat_threads, agent).send_message(session, None, "hello"))

        assert turn.error == "quota exceeded"
        assert turn.assistant_message.content == ERROR_MESSAGE
        assert turn.assistant_message.is_processing is False
        assert turn.thread_title == "New Chat"

    def test_broken_stream(self, db, session, chat_threads):
        """Test a producer that dies mid-stream."""
        agent = FakeStreamingAgent([("text", "partial")], error=ConnectionError("connection reset"))

        turn = run(ChatFlow(chat_threads, agent).send_message(session, None, "hello"))

        assert turn.error == "connection reset"
        messages = run(chat_threads.get_conversations(session, turn.thread_id)).data
        assert [m.is_processing for m in messages] == [False, False]

    def test_empty_reply(self, db, session, chat_threads):
        """Test the no-response message."""
        agent = FakeStreamingAgent([("chat_output", {"complete": True})])

        turn = run(ChatFlow(chat_threads, agent).send_message(session, None, "hello"))

        assert turn.assistant_message.content == NO_RESPONSE_MESSAGE

    def test_empty_input_does_nothing(self, db, session, chat_threads):
        """Test that blank input neither creates a thread nor calls the agent."""
        agent = FakeStreamingAgent(self.REPLY)

        assert run(ChatFlow(chat_threads, agent).send_message(session, None, "   ")) is None
        assert agent.calls == []
        assert run(chat_threads.get_chat_threads(session)).data == []

    def test_unknown_thread_raises(self, db, session, chat_threads):
        """Test that a bad thread id fails before anything is stored."""
        with pytest.raises(MoneyManagerError, match="Chat thread not found"):
            run(ChatFlow(chat_threads, FakeStreamingAgent(self.REPLY)).send_message(session, 999, "hello"))


class TestChatAgent:
    """Tests for the Gemini agent paths that need no network."""

    def _events(self, agent, messages):
        async def collect():
            return [event async for event in agent.stream_tokens(messages)]
        return run(collect())

    def test_unconfigured_agent_reports_error(self):
        """Test the missing API key error event."""
        agent = ChatAgent(GeminiSettings(api_key=None))

        events = self._events(agent, [ChatMessage(role=MessageSender.USER, content="hi")])

        assert not agent.configured
        assert [(e.event, e.data) for e in events] == [
            (StreamEventType.ERROR, {"error": "LLM API key not configured"})
        ]

    def test_no_valid_messages(self):
        """Test that blank history is rejected before anything else."""
        agent = ChatAgent(GeminiSettings(api_key=None))

        events = self._events(agent, [ChatMessage(role=MessageSender.USER, content="   ")])

        assert events[0].data == {"error": "No valid messages provided"}

    def test_sse_stream_round_trips_through_parser(self):
        """Test that the agent's bytes decode with SSEParser."""
        agent = ChatAgent(GeminiSettings(api_key=None))

        async def collect():
            parser = SSEParser()
            events = []
            async for chunk in agent.sse_stream([ChatMessage(role=MessageSender.USER, content="hi")]):
                events.extend(parser.feed(chunk))
            return events

        events = run(collect())

        assert events[0].event == StreamEventType.ERROR

    def test_history_trimmed_to_most_recent(self):
        """Test the max_chat_messages window."""
        agent = ChatAgent(GeminiSettings(api_key=None, max_chat_messages=2))
        messages = [ChatMessage(role=MessageSender.USER, content=str(i)) for i in range(5)]

        assert [m.content for m in agent._valid_messages(messages)] == ["3", "4"]

    def test_title_requires_key(self):
        """Test that title generation refuses to run unconfigured."""
        with pytest.raises(RuntimeError):
            run(ChatAgent(GeminiSettings(api_key=None)).generate_title("hello"))
