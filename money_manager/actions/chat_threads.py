"""
Chat Thread Actions

Threads are soft deleted (is_active=False) and drop out of every query;
delete_all_chat_threads is the only hard delete.
Conversations have no user column, ownership is checked through their
thread.
"""

from datetime import datetime
from typing import Optional, Protocol

from sqlalchemy import delete, func, select
from sqlalchemy.orm import Session

from money_manager.actions.base import BaseActions, server_action
from money_manager.audit import AuditLogger
from money_manager.exceptions import ValidationError, not_found
from money_manager.models.chat import (
    DEFAULT_THREAD_TITLE,
    ChatConversation,
    ChatThread,
    ChatThreadCreate,
    ChatThreadSummary,
    ChatThreadUpdate,
    ConversationCreate,
    ConversationUpdate,
    DeleteAllResult,
    Feedback,
    MessageSender,
)
from money_manager.models.finance import UserSession
from money_manager.services.storage import DatabaseClient
from money_manager.services.storage.schema import ChatConversationRecord, ChatThreadRecord


MAX_TITLE_LENGTH = 60
FALLBACK_TITLE_LENGTH = 50
PREVIEW_LENGTH = 100


class TitleGenerator(Protocol):
    async def generate_title(self, message: str) -> str: ...


def clean_title(raw: str) -> str:
    """Strip quotes and whitespace from a model-written title and cap it."""
    title = (raw or "").strip().strip("\"'“”‘’`").strip()
    return title[:MAX_TITLE_LENGTH].strip()


def fallback_title(message: str) -> str:
    message = message.strip()
    if len(message) <= FALLBACK_TITLE_LENGTH:
        return message
    return message[:FALLBACK_TITLE_LENGTH] + "..."


class ChatThreadActions(BaseActions):

    def __init__(
        self,
        db: DatabaseClient,
        audit: Optional[AuditLogger] = None,
        title_generator: Optional[TitleGenerator] = None,
    ):
        super().__init__(db, audit)
        self._title_generator = title_generator

    @staticmethod
    def _active_thread(db_session: Session, thread_id: int, user_id: int) -> ChatThreadRecord:
        thread = db_session.get(ChatThreadRecord, thread_id)
        if thread is None or thread.user_id != user_id or not thread.is_active:
            raise not_found("Chat thread")
        return thread

    @staticmethod
    def _owned_conversation(
        db_session: Session,
        conversation_id: int,
        user_id: int,
    ) -> ChatConversationRecord:
        conversation = db_session.get(ChatConversationRecord, conversation_id)
        thread = conversation.thread if conversation is not None else None
        if thread is None or thread.user_id != user_id or not thread.is_active:
            raise not_found("Conversation")
        return conversation

    # =========================================================================
    # THREADS
    # =========================================================================

    @server_action("Failed to fetch chat threads")
    async def get_chat_threads(self, session: UserSession) -> list[ChatThreadSummary]:
        with self._db.session_scope() as db_session:
            threads = db_session.scalars(
                select(ChatThreadRecord)
                .where(ChatThreadRecord.user_id == session.user_id, ChatThreadRecord.is_active.is_(True))
                .order_by(
                    ChatThreadRecord.is_pinned.desc(),
                    ChatThreadRecord.last_message_at.is_(None),
                    ChatThreadRecord.last_message_at.desc(),
                    ChatThreadRecord.id.desc(),
                )
            ).all()

            summaries = []
            for thread in threads:
                count = db_session.scalar(
                    select(func.count()).select_from(ChatConversationRecord)
                    .where(ChatConversationRecord.thread_id == thread.id)
                )
                latest = db_session.scalars(
                    select(ChatConversationRecord)
                    .where(ChatConversationRecord.thread_id == thread.id)
                    .order_by(ChatConversationRecord.id.desc())
                    .limit(1)
                ).first()
                summaries.append(ChatThreadSummary(
                    id=thread.id,
                    title=thread.title,
                    description=thread.description,
                    is_pinned=thread.is_pinned,
                    last_message_at=thread.last_message_at,
                    created_at=thread.created_at,
                    message_count=count or 0,
                    last_message_preview=latest.content[:PREVIEW_LENGTH] if latest else None,
                ))
            return summaries

    @server_action("Failed to fetch chat thread")
    async def get_chat_thread(self, session: UserSession, thread_id: int) -> ChatThread:
        with self._db.session_scope() as db_session:
            return ChatThread.model_validate(self._active_thread(db_session, thread_id, session.user_id))

    @server_action("Failed to create chat thread")
    async def create_chat_thread(
        self,
        session: UserSession,
        title: Optional[str] = None,
        description: Optional[str] = None,
    ) -> ChatThread:
        data = ChatThreadCreate(title=title or DEFAULT_THREAD_TITLE, description=description)
        with self._db.session_scope() as db_session:
            thread = ChatThreadRecord(
                user_id=session.user_id,
                title=data.title,
                description=data.description,
                is_active=True,
                is_pinned=False,
            )
            db_session.add(thread)
            db_session.flush()
            db_session.refresh(thread)
            return ChatThread.model_validate(thread)

    @server_action("Failed to update chat thread")
    async def update_chat_thread(
        self,
        session: UserSession,
        thread_id: int,
        data: ChatThreadUpdate,
    ) -> ChatThread:
        with self._db.session_scope() as db_session:
            thread = self._active_thread(db_session, thread_id, session.user_id)
            for field, value in data.model_dump(exclude_unset=True).items():
                if field in ("title", "is_pinned") and value is None:
                    continue
                setattr(thread, field, value)
            db_session.flush()
            db_session.refresh(thread)
            return ChatThread.model_validate(thread)

    @server_action("Failed to delete chat thread")
    async def delete_chat_thread(self, session: UserSession, thread_id: int) -> bool:
        with self._db.session_scope() as db_session:
            thread = self._active_thread(db_session, thread_id, session.user_id)
            thread.is_active = False
        return True

    @server_action("Failed to delete chat threads")
    async def delete_all_chat_threads(self, session: UserSession) -> DeleteAllResult:
        with self._db.session_scope() as db_session:
            thread_ids = list(db_session.scalars(
                select(ChatThreadRecord.id).where(ChatThreadRecord.user_id == session.user_id)
            ))
            if not thread_ids:
                return DeleteAllResult()

            conversations = db_session.execute(
                delete(ChatConversationRecord).where(ChatConversationRecord.thread_id.in_(thread_ids))
            ).rowcount
            threads = db_session.execute(
                delete(ChatThreadRecord).where(ChatThreadRecord.id.in_(thread_ids))
            ).rowcount

        self._logger.info(
            "chat_threads_deleted",
            user_id=session.user_id,
            threads=threads,
            conversations=conversations,
        )
        return DeleteAllResult(deleted_threads=threads, deleted_conversations=conversations)

    # =========================================================================
    # CONVERSATIONS
    # =========================================================================

    @server_action("Failed to fetch conversations")
    async def get_conversations(self, session: UserSession, thread_id: int) -> list[ChatConversation]:
        with self._db.session_scope() as db_session:
            thread = self._active_thread(db_session, thread_id, session.user_id)
            return [ChatConversation.model_validate(c) for c in thread.conversations]

    @server_action("Failed to create conversation")
    async def create_conversation(self, session: UserSession, data: ConversationCreate) -> ChatConversation:
        with self._db.session_scope() as db_session:
            thread = self._active_thread(db_session, data.thread_id, session.user_id)
            conversation = ChatConversationRecord(**data.model_dump())
            db_session.add(conversation)
            thread.last_message_at = datetime.utcnow()
            db_session.flush()
            db_session.refresh(conversation)
            return ChatConversation.model_validate(conversation)

    @server_action("Failed to update conversation")
    async def update_conversation(
        self,
        session: UserSession,
        conversation_id: int,
        data: ConversationUpdate,
    ) -> ChatConversation:
        with self._db.session_scope() as db_session:
            conversation = self._owned_conversation(db_session, conversation_id, session.user_id)
            for field, value in data.model_dump(exclude_unset=True).items():
                if field in ("content", "message_type", "is_processing") and value is None:
                    continue
                setattr(conversation, field, value)
            db_session.flush()
            db_session.refresh(conversation)
            return ChatConversation.model_validate(conversation)

    @server_action("Failed to update feedback")
    async def update_conversation_feedback(
        self,
        session: UserSession,
        conversation_id: int,
        feedback: Optional[Feedback],
        comments: Optional[str] = None,
    ) -> ChatConversation:
        with self._db.session_scope() as db_session:
            conversation = self._owned_conversation(db_session, conversation_id, session.user_id)
            conversation.feedback = Feedback(feedback) if feedback is not None else None
            conversation.comments = comments
            db_session.flush()
            db_session.refresh(conversation)
            return ChatConversation.model_validate(conversation)

    # =========================================================================
    # TITLES
    # =========================================================================

    @server_action("Failed to generate thread title")
    async def generate_thread_title(self, session: UserSession, thread_id: int) -> str:
        """
        Name a thread after its first user message.

        The model is asked for a short title; when it is unavailable or
        fails, the opening of the message itself is used.
        """
        with self._db.session_scope() as db_session:
            thread = self._active_thread(db_session, thread_id, session.user_id)
            first = next(
                (c.content for c in thread.conversations if c.sender == MessageSender.USER and c.content.strip()),
                None,
            )
        if first is None:
            raise ValidationError("No user message to generate a title from")

        title = ""
        if self._title_generator is not None:
            try:
                title = clean_title(await self._title_generator.generate_title(first))
            except Exception as e:
                self._logger.warning("title_generation_failed", thread_id=thread_id, error=str(e))
        if not title:
            title = fallback_title(first)

        with self._db.session_scope() as db_session:
            thread = self._active_thread(db_session, thread_id, session.user_id)
            thread.title = title
        return title
