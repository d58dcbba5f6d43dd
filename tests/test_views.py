import pytest
from pydantic import ValidationError

from tutordesk.schemas import Conversation, Message, Notification, User
from tutordesk import views


def message(id, conversation_id, timestamp, sender_id="coach", read_by=None):
    return Message(
        id=id,
        sender_id=sender_id,
        conversation_id=conversation_id,
        text=id,
        timestamp=timestamp,
        read_by=read_by if read_by is not None else [sender_id],
    )


def direct(id, *participants, **extra):
    return Conversation(id=id, participant_ids=list(participants), **extra)


class TestMessaging:
    def test_last_message_is_latest_timestamp(self):
        messages = [
            message("t2", "c1", "2026-01-05T10:02:00Z"),
            message("t3", "c1", "2026-01-05T10:03:00Z"),
            message("t1", "c1", "2026-01-05T10:01:00Z"),
        ]
        grouped = views.group_messages(messages)
        assert [m.id for m in grouped["c1"]] == ["t1", "t2", "t3"]
        assert views.last_messages(grouped)["c1"].id == "t3"

    def test_mixed_timezone_offsets_compare_by_instant(self):
        messages = [
            message("late", "c1", "2026-01-05T12:30:00+03:00"),
            message("early", "c1", "2026-01-05T09:00:00Z"),
        ]
        grouped = views.group_messages(messages)
        assert views.last_messages(grouped)["c1"].id == "late"

    def test_unread_excludes_own_messages(self):
        conversations = [direct("c1", "me", "coach")]
        messages = [
            message("mine", "c1", "2026-01-05T10:00:00Z", sender_id="me", read_by=[]),
            message("theirs", "c1", "2026-01-05T10:01:00Z", sender_id="coach"),
            message("seen", "c1", "2026-01-05T10:02:00Z", sender_id="coach", read_by=["coach", "me"]),
        ]
        counts = views.unread_counts(conversations, views.group_messages(messages), "me")
        assert counts == {"c1": 1}

    def test_unread_only_for_participating_conversations(self):
        conversations = [direct("c1", "me", "coach"), direct("c2", "a", "b")]
        messages = [message("x", "c2", "2026-01-05T10:00:00Z", sender_id="a")]
        counts = views.unread_counts(conversations, views.group_messages(messages), "me")
        assert counts == {"c1": 0}

    def test_no_user_no_counts(self):
        assert views.unread_counts([direct("c1", "a", "b")], {}, None) == {}

    def test_same_input_same_output(self):
        conversations = [direct("c1", "me", "coach")]
        messages = [message("a", "c1", "2026-01-05T10:00:00Z"), message("b", "c1", "2026-01-05T09:00:00Z")]
        first = views.unread_counts(conversations, views.group_messages(messages), "me")
        second = views.unread_counts(conversations, views.group_messages(messages), "me")
        assert first == second == {"c1": 2}


class TestConversationOrdering:
    def test_announcements_then_recent_then_empty(self):
        a = direct("A", "me", "u1")
        b = direct("B", "me", "u2")
        c = direct("C", "me", "u3")
        d = Conversation(id="conv-announcements", participant_ids=["me"], is_group=True)
        messages = [
            message("b1", "B", "2026-01-05T10:00:00Z"),
            message("c1", "C", "2026-01-05T11:00:00Z"),
        ]
        lasts = views.last_messages(views.group_messages(messages))
        ordered = views.sort_conversations([a, b, c, d], lasts)
        assert [conv.id for conv in ordered] == ["conv-announcements", "C", "B", "A"]

    def test_ties_keep_collection_order(self):
        x, y = direct("X", "me", "u1"), direct("Y", "me", "u2")
        messages = [message("x1", "X", "2026-01-05T10:00:00Z"), message("y1", "Y", "2026-01-05T10:00:00Z")]
        lasts = views.last_messages(views.group_messages(messages))
        assert [conv.id for conv in views.sort_conversations([x, y], lasts)] == ["X", "Y"]
        assert [conv.id for conv in views.sort_conversations([y, x], lasts)] == ["Y", "X"]

    def test_contact_list_hides_archived_and_foreign(self):
        conversations = [
            direct("mine", "me", "u1"),
            direct("archived", "me", "u2", is_archived=True),
            direct("foreign", "u3", "u4"),
        ]
        assert [c.id for c in views.visible_conversations(conversations, "me")] == ["mine"]


class TestRelationships:
    def setup_method(self):
        self.coach = User(id="coach", name="Coach", email="c@x", role="coach")
        self.other_coach = User(id="coach2", name="Coach 2", email="c2@x", role="coach")
        self.admin = User(id="admin", name="Admin", email="a@x", role="superadmin")
        self.student = User(id="s1", name="Ece", email="s1@x", role="student", assigned_coach_id="coach")
        self.other_student = User(id="s2", name="Can", email="s2@x", role="student", assigned_coach_id="coach2")
        self.parent = User(id="p1", name="Parent", email="p@x", role="parent", child_ids=["s1"])
        self.users = [self.admin, self.coach, self.other_coach, self.student, self.other_student, self.parent]

    def test_coach(self):
        assert views.coach_for(self.student, self.users) == self.coach
        assert views.coach_for(self.coach, self.users) == self.coach
        assert views.coach_for(self.admin, self.users) == self.admin
        assert views.coach_for(self.parent, self.users) == self.coach
        assert views.coach_for(None, self.users) is None

    def test_students(self):
        assert views.students_for(self.coach, self.users) == [self.student]
        assert views.students_for(self.admin, self.users) == [self.student, self.other_student]
        assert views.students_for(self.student, self.users) == []


def test_notifications_for_user_ordering():
    def notification(id, priority, timestamp, is_read=False, user_id="me"):
        return Notification(id=id, user_id=user_id, message=id, timestamp=timestamp, priority=priority, is_read=is_read)

    notifications = [
        notification("old-low", "low", "2026-01-01T00:00:00Z"),
        notification("read-critical", "critical", "2026-01-05T00:00:00Z", is_read=True),
        notification("new-low", "low", "2026-01-03T00:00:00Z"),
        notification("high", "high", "2026-01-02T00:00:00Z"),
        notification("someone-else", "critical", "2026-01-05T00:00:00Z", user_id="other"),
    ]
    ordered = views.notifications_for_user(notifications, "me")
    assert [n.id for n in ordered] == ["high", "new-low", "old-low", "read-critical"]


def test_records_need_iso_timestamps():
    with pytest.raises(ValidationError):
        message("m1", "c1", "yesterday")
    with pytest.raises(ValidationError):
        Notification(id="n1", user_id="me", message="x", timestamp="2026-13-01T00:00:00Z")
    grouped = views.group_messages([message("m1", "c1", "2026-01-05T10:00:00+03:00")])
    assert views.last_messages(grouped)["c1"].id == "m1"


def test_direct_conversations_need_two_people():
    with pytest.raises(ValidationError):
        direct("c1", "me", "me")
    assert direct("c2", "me", "you").participant_ids == ["me", "you"]
