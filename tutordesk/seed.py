import logging
from typing import Dict
from urllib.parse import quote_plus

from sqlalchemy.orm import Session

from .auth import hash_password
from .db import Base
from .models import AssignmentTemplate, Badge, Conversation, Resource, User
from .schemas import ANNOUNCEMENTS_CONVERSATION_ID
from .utils import new_id

logger = logging.getLogger(__name__)

BADGES = [
    {"id": "first-assignment", "name": "First Step", "description": "You completed your first assignment!"},
    {"id": "high-achiever", "name": "High Achiever", "description": "Your grade average is above 90!"},
    {"id": "perfect-score", "name": "Perfect Score", "description": "You scored 100 on an assignment!"},
    {"id": "goal-getter", "name": "Goal Getter", "description": "You reached all of your weekly goals!"},
    {"id": "streak-starter", "name": "Streak Starter", "description": "You submitted assignments 3 days in a row."},
    {"id": "streak-master", "name": "Streak Master", "description": "You submitted assignments 7 days in a row."},
    {"id": "on-time-submissions", "name": "Right On Time", "description": "You submitted 5 assignments on time."},
]


def seed_database(db: Session) -> int:
    """Insert the badge catalog and the announcements channel where missing.

    Returns the number of rows created.
    """
    created = add_catalog(db)
    db.commit()
    logger.info(f"Seeding finished, {created} rows created")
    return created


def add_catalog(db: Session) -> int:
    created = 0
    for badge in BADGES:
        if db.get(Badge, badge["id"]) is None:
            db.add(Badge(**badge))
            created += 1

    if db.get(Conversation, ANNOUNCEMENTS_CONVERSATION_ID) is None:
        db.add(Conversation(
            id=ANNOUNCEMENTS_CONVERSATION_ID,
            participant_ids=[],
            is_group=True,
            group_name="📢 Announcements",
            group_image="https://i.pravatar.cc/150?u=announcements",
            admin_id=None,
        ))
        created += 1
    return created


# --- Demo data ---

DEMO_PASSWORD = "password"

DEMO_USERS = [
    {"id": "user-superadmin", "name": "Super Admin", "email": "admin@tutordesk.dev", "role": "superadmin"},
    {"id": "user-coach-1", "name": "Ayse Yilmaz", "email": "ayse@tutordesk.dev", "role": "coach"},
    {"id": "user-coach-2", "name": "Mehmet Ozturk", "email": "mehmet@tutordesk.dev", "role": "coach"},
]

DEMO_TOPICS = {
    "matematik": ["Limits", "Derivatives", "Integrals"],
    "fizik": ["Kinematics", "Electricity"],
    "kimya": ["Stoichiometry"],
    "biyoloji": ["Cell Biology"],
    "turkce": ["Paragraph Reading"],
    "tarih": ["Ottoman History"],
}

TEMPLATE_KINDS = ["Topic Review", "General Practice", "Problem Solving"]
TEMPLATE_CHECKLIST = [
    {"text": "Review the topic notes."},
    {"text": "Solve at least 20 questions."},
    {"text": "Study the solutions of every wrong answer."},
    {"text": "Ask your coach about anything unclear."},
]
RESOURCE_KINDS = [
    ("video", "Video Lesson", "https://www.youtube.com/results?search_query={query}"),
    ("pdf", "Lecture Sheet", "https://example.com/resources/{slug}.pdf"),
    ("link", "Interactive Exercise", "https://example.com/exercises/{slug}"),
    ("document", "Summary Notes", "https://example.com/docs/{slug}.docx"),
]


def demo_templates():
    for topics in DEMO_TOPICS.values():
        for topic in topics:
            for i, kind in enumerate(TEMPLATE_KINDS, start=1):
                yield AssignmentTemplate(
                    id=new_id(),
                    title=f"{topic} - {kind} {i}",
                    description=f'A {kind.lower()} assignment to reinforce "{topic}".',
                    checklist=TEMPLATE_CHECKLIST,
                    is_favorite=False,
                )


def demo_resources(uploader_id: str):
    for category, topics in DEMO_TOPICS.items():
        for topic in topics:
            slug = topic.lower().replace(" ", "-")
            for kind, label, url in RESOURCE_KINDS:
                yield Resource(
                    id=new_id(),
                    name=f"{topic} - {label}",
                    type=kind,
                    url=url.format(query=quote_plus(topic), slug=slug),
                    is_public=True,
                    uploader_id=uploader_id,
                    assigned_to=[],
                    category=category,
                )


def seed_demo_data(db: Session) -> Dict[str, int]:
    """Empty every table and load the demo accounts, templates and resources.

    Runs in the caller's transaction; nothing is kept if any insert fails.
    """
    for table in reversed(Base.metadata.sorted_tables):
        db.execute(table.delete())
    db.expunge_all()
    logger.info("All tables cleared")

    password = hash_password(DEMO_PASSWORD)
    for user in DEMO_USERS:
        db.add(User(
            **user,
            password=password,
            profile_picture=f"https://i.pravatar.cc/150?u={user['email']}",
            child_ids=[],
            parent_ids=[],
            earned_badge_ids=[],
            xp=0,
            streak=0,
        ))
    add_catalog(db)
    db.flush()
    announcements = db.get(Conversation, ANNOUNCEMENTS_CONVERSATION_ID)
    announcements.participant_ids = [user["id"] for user in DEMO_USERS]
    announcements.admin_id = DEMO_USERS[0]["id"]

    templates = list(demo_templates())
    resources = list(demo_resources(DEMO_USERS[0]["id"]))
    db.add_all(templates)
    db.add_all(resources)
    db.commit()

    counts = {
        "users": len(DEMO_USERS),
        "badges": len(BADGES),
        "templates": len(templates),
        "resources": len(resources),
    }
    logger.info(f"Demo data seeded: {counts}")
    return counts
