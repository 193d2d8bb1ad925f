"""Pure functions behind the client's merged message view.

Both the message list and the conversation summaries are plain values
recomputed from their inputs, so identical inputs always give identical
outputs.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence

from kraken_chat.client.models import ConversationSummary, Message
from kraken_chat.core.identity import Identity


def _by_timestamp(message: Message) -> int:
    return message.timestamp


def merge_message(messages: Sequence[Message], message: Message) -> tuple[list[Message], bool]:
    """Insert ``message`` unless its id is already present.

    Returns the resulting list (sorted by timestamp, ties in arrival order) and
    whether anything was inserted.
    """
    if any(existing.id == message.id for existing in messages):
        return list(messages), False
    merged = [*messages, message]
    merged.sort(key=_by_timestamp)
    return merged, True


def merge_messages(
    messages: Sequence[Message],
    incoming: Iterable[Message],
) -> tuple[list[Message], int]:
    """Merge a batch, skipping ids already present or repeated within the batch."""
    seen = {message.id for message in messages}
    merged = list(messages)
    inserted = 0
    for message in incoming:
        if message.id in seen:
            continue
        seen.add(message.id)
        merged.append(message)
        inserted += 1
    if inserted:
        merged.sort(key=_by_timestamp)
    return merged, inserted


def replace_message(
    messages: Sequence[Message],
    updated: Message,
) -> tuple[list[Message], bool]:
    """Swap in a new version of a message with the same id, keeping its position."""
    result: list[Message] = []
    found = False
    for message in messages:
        if message.id == updated.id:
            result.append(updated)
            found = True
        else:
            result.append(message)
    if found and any(
        earlier.timestamp > later.timestamp for earlier, later in zip(result, result[1:])
    ):
        result.sort(key=_by_timestamp)
    return result, found


def pair_id(a: Identity, b: Identity) -> str:
    """Return the client-side conversation id for a participant pair."""
    low, high = sorted((a, b))
    return f"{low}-{high}"


def derive_conversations(
    messages: Iterable[Message],
    identity: Identity,
) -> list[ConversationSummary]:
    """Group messages by participant pair and summarize each group.

    Each summary keeps the group's latest message (the first one seen wins a
    timestamp tie), only pairs that include ``identity`` are returned, and the
    result is ordered by latest activity first.
    """
    latest: dict[str, Message] = {}
    for message in messages:
        key = pair_id(message.sender, message.receiver)
        current = latest.get(key)
        if current is None or message.timestamp > current.timestamp:
            latest[key] = message

    summaries = [
        ConversationSummary(
            id=key,
            participants=tuple(sorted((message.sender, message.receiver))),
            last_message=message.content,
            last_message_time=message.timestamp,
            last_message_id=message.id,
        )
        for key, message in latest.items()
    ]
    summaries = [summary for summary in summaries if identity in summary.participants]
    summaries.sort(key=lambda summary: (-summary.last_message_time, summary.id))
    return summaries


def conversation_messages(
    messages: Iterable[Message],
    identity: Identity,
    peer: Identity,
) -> list[Message]:
    """Return the messages exchanged between ``identity`` and ``peer``, in list order."""
    return [message for message in messages if message.is_between(identity, peer)]
