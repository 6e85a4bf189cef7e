"""Conversation keys.

Two keying schemes coexist: an explicit tenant↔landlord connection id, and
the unordered pair of participant profile ids. Every component resolves a
conversation through one of these two types.
"""
from __future__ import annotations

from dataclasses import dataclass
from uuid import UUID

from rental_chat.domain.entities.message import Message


@dataclass(frozen=True, slots=True)
class ConnectionKey:
    connection_id: UUID

    def matches(self, message: Message) -> bool:
        return message.connection_id == self.connection_id

    @property
    def topic_suffix(self) -> str:
        return f"conn.{self.connection_id}"


@dataclass(frozen=True, slots=True)
class ParticipantPairKey:
    """Unordered pair; ``ParticipantPairKey.of(a, b) == ParticipantPairKey.of(b, a)``."""

    low: UUID
    high: UUID

    @classmethod
    def of(cls, a: UUID, b: UUID) -> ParticipantPairKey:
        first, second = sorted((a, b), key=str)
        return cls(low=first, high=second)

    def matches(self, message: Message) -> bool:
        return {message.sender_id, message.receiver_id} == {self.low, self.high}

    def involves(self, profile_id: UUID) -> bool:
        return profile_id in (self.low, self.high)

    def other(self, profile_id: UUID) -> UUID:
        return self.high if profile_id == self.low else self.low

    @property
    def topic_suffix(self) -> str:
        return f"pair.{self.low}.{self.high}"


ConversationKey = ConnectionKey | ParticipantPairKey


def keys_for_message(message: Message) -> list[ConversationKey]:
    """Every key under which ``message`` is visible."""
    keys: list[ConversationKey] = [
        ParticipantPairKey.of(message.sender_id, message.receiver_id),
    ]
    if message.connection_id is not None:
        keys.append(ConnectionKey(message.connection_id))
    return keys


def inbox_topic_suffix(profile_id: UUID) -> str:
    return f"inbox.{profile_id}"
