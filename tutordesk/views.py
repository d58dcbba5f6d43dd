"""
Projections over the store's collections.

Everything here is a pure function of its arguments: same collections in,
same result out. Timestamps are compared as epoch milliseconds.
"""
from collections import defaultdict
from typing import Dict, Iterable, List, Optional, Sequence

from .schemas import (
    ANNOUNCEMENTS_CONVERSATION_ID,
    Assignment,
    Conversation,
    Goal,
    Message,
    Notification,
    NotificationPriority,
    User,
    UserRole,
)
from .utils import timestamp_millis

PRIORITY_RANK = {
    NotificationPriority.CRITICAL: 0,
    NotificationPriority.HIGH: 1,
    NotificationPriority.MEDIUM: 2,
    NotificationPriority.LOW: 3,
}


def group_messages(messages: Iterable[Message]) -> Dict[str, List[Message]]:
    """Messages per conversation id, each list sorted oldest first."""
    grouped: Dict[str, List[Message]] = defaultdict(list)
    for message in messages:
        grouped[message.conversation_id].append(message)
    for conversation_messages in grouped.values():
        # list.sort is stable, so equal timestamps keep collection order
        conversation_messages.sort(key=lambda m: timestamp_millis(m.timestamp))
    return dict(grouped)


def last_messages(grouped: Dict[str, List[Message]]) -> Dict[str, Message]:
    return {conversation_id: msgs[-1] for conversation_id, msgs in grouped.items() if msgs}


def unread_counts(
    conversations: Iterable[Conversation],
    grouped: Dict[str, List[Message]],
    user_id: Optional[str],
) -> Dict[str, int]:
    """Unread messages per conversation the user takes part in.

    A message is unread when the user is not in its readBy list and did not
    send it.
    """
    if user_id is None:
        return {}
    counts = {}
    for conversation in conversations:
        if user_id not in conversation.participant_ids:
            continue
        counts[conversation.id] = sum(
            1
            for m in grouped.get(conversation.id, [])
            if m.sender_id != user_id and user_id not in m.read_by
        )
    return counts


def sort_conversations(
    conversations: Sequence[Conversation],
    last_by_conversation: Dict[str, Message],
) -> List[Conversation]:
    def sort_key(indexed):
        index, conversation = indexed
        if conversation.id == ANNOUNCEMENTS_CONVERSATION_ID:
            return (0, 0, index)
        last = last_by_conversation.get(conversation.id)
        if last is None:
            return (2, 0, index)
        return (1, -timestamp_millis(last.timestamp), index)

    return [c for _, c in sorted(enumerate(conversations), key=sort_key)]


def visible_conversations(sorted_conversations: Iterable[Conversation], user_id: Optional[str]) -> List[Conversation]:
    """The contact list: the user's own conversations that are not archived."""
    if user_id is None:
        return []
    return [
        c for c in sorted_conversations
        if user_id in c.participant_ids and not c.is_archived
    ]


def coach_for(user: Optional[User], users: Sequence[User]) -> Optional[User]:
    if user is None:
        return None
    if user.role == UserRole.STUDENT:
        return next((u for u in users if u.id == user.assigned_coach_id), None)
    if user.role in (UserRole.COACH, UserRole.SUPERADMIN):
        return user
    return next((u for u in users if u.role == UserRole.COACH), None)


def students_for(user: Optional[User], users: Sequence[User]) -> List[User]:
    if user is None:
        return []
    if user.role == UserRole.COACH:
        return [u for u in users if u.role == UserRole.STUDENT and u.assigned_coach_id == user.id]
    if user.role == UserRole.SUPERADMIN:
        return [u for u in users if u.role == UserRole.STUDENT]
    return []


def assignments_for_student(assignments: Iterable[Assignment], student_id: str) -> List[Assignment]:
    return [a for a in assignments if a.student_id == student_id]


def goals_for_student(goals: Iterable[Goal], student_id: str) -> List[Goal]:
    return [g for g in goals if g.student_id == student_id]


def notifications_for_user(notifications: Iterable[Notification], user_id: str) -> List[Notification]:
    """Unread first, then by priority, then newest first."""
    mine = [n for n in notifications if n.user_id == user_id]
    return sorted(
        mine,
        key=lambda n: (n.is_read, PRIORITY_RANK[n.priority], -timestamp_millis(n.timestamp)),
    )
