"""Domain records read from the hosted auth service and database."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional

DRAFT_COLUMNS = (
    "id, mode, body, subject, high_priority, dm_recipient_id, "
    "group_recipient_ids, conversation_id, thread_id, updated_at"
)

DRAFT_MODES = ("dm", "group", "announcement", "reply", "forward")


@dataclass(frozen=True)
class SessionUser:
    """The authenticated caller as reported by the auth service."""

    id: str
    email: Optional[str]
    name: Optional[str] = None

    @staticmethod
    def from_auth_user(user: Any) -> "SessionUser":
        metadata = getattr(user, "user_metadata", None) or {}
        name = metadata.get("full_name") or metadata.get("name")
        return SessionUser(id=str(user.id), email=getattr(user, "email", None), name=name)


@dataclass(frozen=True)
class Draft:
    """A saved, unsent message belonging to one user."""

    id: str
    mode: str
    body: str
    subject: str = ""
    high_priority: bool = False
    dm_recipient_id: Optional[str] = None
    group_recipient_ids: List[str] = field(default_factory=list)
    conversation_id: Optional[str] = None
    thread_id: Optional[str] = None
    updated_at: Optional[str] = None

    @staticmethod
    def from_row(row: Mapping[str, Any]) -> "Draft":
        return Draft(
            id=str(row["id"]),
            mode=str(row["mode"]),
            body=row.get("body") or "",
            subject=row.get("subject") or "",
            high_priority=bool(row.get("high_priority") or False),
            dm_recipient_id=row.get("dm_recipient_id"),
            group_recipient_ids=list(row.get("group_recipient_ids") or []),
            conversation_id=row.get("conversation_id"),
            thread_id=row.get("thread_id"),
            updated_at=row.get("updated_at"),
        )

    def to_payload(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "mode": self.mode,
            "body": self.body,
            "subject": self.subject,
            "highPriority": self.high_priority,
            "dmRecipientId": self.dm_recipient_id,
            "groupRecipientIds": list(self.group_recipient_ids),
            "conversationId": self.conversation_id,
            "threadId": self.thread_id,
            "updatedAt": self.updated_at,
        }


__all__ = ["DRAFT_COLUMNS", "DRAFT_MODES", "Draft", "SessionUser"]
