"""Chat package: financial context formatting, prompts, SSE and the turn flow."""

from money_manager.chat.formatting import (
    convert_currency,
    format_currency,
    format_financial_data_as_markdown,
    get_date_range_presets,
)
from money_manager.chat.prompts import (
    calculate_token_count,
    calculate_token_counts,
    generate_default_system_prompt,
    generate_financial_system_prompt,
)
from money_manager.chat.sse import SSEParser, encode_event

__all__ = [
    "SSEParser",
    "calculate_token_count",
    "calculate_token_counts",
    "convert_currency",
    "encode_event",
    "format_currency",
    "format_financial_data_as_markdown",
    "generate_default_system_prompt",
    "generate_financial_system_prompt",
    "get_date_range_presets",
]
