from datetime import datetime, timezone
from typing import Any, Dict, List, NamedTuple, Optional, Tuple

from utils import customerrors

__all__ = (
    "Reminder",
    "MemberData",
    "GuildData",
)


def _as_utc(dt: datetime) -> datetime:
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


class Reminder(NamedTuple):
    due_at: datetime
    channel_id: int
    text: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "due_at": self.due_at.isoformat(),
            "channel_id": self.channel_id,
            "text": self.text,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Reminder":
        return cls(
            due_at=_as_utc(datetime.fromisoformat(data["due_at"])),
            channel_id=int(data["channel_id"]),
            text=str(data["text"]),
        )


class MemberData:
    """Reminders of one member within one guild.

    The position of a reminder in ``reminders`` is the index shown to the
    member. Indices are only valid until the next delete.
    """

    __slots__ = ("reminders",)

    def __init__(self, reminders: Optional[List[Reminder]] = None):
        self.reminders = list(reminders) if reminders else []

    def __len__(self):
        return len(self.reminders)

    def add(self, reminder: Reminder) -> int:
        self.reminders.append(reminder)
        return len(self.reminders) - 1

    def list_all(self) -> List[Tuple[int, Reminder]]:
        return list(enumerate(self.reminders))

    def delete_at(self, index: int) -> Reminder:
        if not 0 <= index < len(self.reminders):
            raise customerrors.InvalidReminderIndex(index, len(self.reminders))
        return self.reminders.pop(index)

    def remove_due(self, now: datetime) -> List[Reminder]:
        due = [reminder for reminder in self.reminders if reminder.due_at <= now]
        if due:
            self.reminders[:] = [reminder for reminder in self.reminders if reminder.due_at > now]
        return due

    def to_dict(self) -> Dict[str, Any]:
        return {"reminders": [reminder.to_dict() for reminder in self.reminders]}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "MemberData":
        return cls([Reminder.from_dict(item) for item in data.get("reminders", [])])


class GuildData:
    """Everything the bot keeps for a single guild.

    ``settings`` is carried through load and save untouched.
    """

    __slots__ = ("members", "settings")

    def __init__(self, members: Optional[Dict[int, MemberData]] = None,
                 settings: Optional[Dict[str, Any]] = None):
        self.members = members if members is not None else {}
        self.settings = settings if settings is not None else {}

    def get_or_create_member(self, member_id: int) -> MemberData:
        member = self.members.get(member_id)
        if member is None:
            member = self.members[member_id] = MemberData()
        return member

    def pending_count(self) -> int:
        return sum(len(member) for member in self.members.values())

    def to_dict(self) -> Dict[str, Any]:
        return {
            "settings": dict(self.settings),
            "members": {str(member_id): member.to_dict() for member_id, member in self.members.items()},
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "GuildData":
        members = {int(member_id): MemberData.from_dict(member)
                   for member_id, member in (data.get("members") or {}).items()}
        return cls(members=members, settings=dict(data.get("settings") or {}))
