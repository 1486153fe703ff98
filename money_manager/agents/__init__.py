"""AI agents package."""

from money_manager.agents.chat_agent import ChatAgent

__all__ = ["ChatAgent"]
