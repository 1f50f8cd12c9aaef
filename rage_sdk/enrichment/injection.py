"""Insertion of an enrichment context into an outbound conversation."""

from typing import Any, List, Optional

from ..models.conversation_types import ConversationMessage, TurnRole


def _role(message: Any) -> Optional[str]:
    role = message.get("role") if isinstance(message, dict) else getattr(message, "role", None)
    return role.value if isinstance(role, TurnRole) else role


def inject_context(messages: Any, context: Optional[str]) -> Any:
    """
    Insert ``context`` as a system message after the leading system messages.

    Pure: the input sequence is never modified. When ``context`` is empty or
    ``messages`` is not a list or tuple, ``messages`` is returned unchanged.
    Dict messages get a dict context entry, anything else a
    ``ConversationMessage``.

    Args:
        messages: Ordered conversation messages
        context: Enrichment context, or None

    Returns:
        New list with the context inserted at a single index
    """
    if not context or not isinstance(messages, (list, tuple)):
        return messages

    index = 0
    while index < len(messages) and _role(messages[index]) == TurnRole.SYSTEM.value:
        index += 1

    if messages and all(isinstance(m, dict) for m in messages):
        entry: Any = {"role": TurnRole.SYSTEM.value, "content": context}
    else:
        entry = ConversationMessage(
            role=TurnRole.SYSTEM,
            content=context,
            metadata={"rage_context": True},
        )

    result = list(messages)
    result.insert(index, entry)
    return result
