# tutordesk/models.py

from sqlalchemy import Column, Integer, String, Boolean, Text, Float, JSON
from .db import Base

# Timestamps and dates are ISO-8601 strings, exactly as they travel on the wire.
# Set-valued and nested fields are JSON columns.

class User(Base):
    __tablename__ = "users"
    id = Column(String, primary_key=True, index=True)
    name = Column(String(255), nullable=False)
    email = Column(String(255), unique=True, index=True, nullable=False)
    password = Column(Text, nullable=True)  # werkzeug hash, NULL for invited users
    role = Column(String(50), nullable=False)
    profile_picture = Column(Text)
    is_online = Column(Boolean, default=False)
    notes = Column(Text)
    assigned_coach_id = Column(String, index=True)
    grade_level = Column(String(50))
    academic_track = Column(String(50))
    child_ids = Column(JSON, default=list)
    parent_ids = Column(JSON, default=list)
    xp = Column(Integer, default=0)
    streak = Column(Integer, default=0)
    last_submission_date = Column(String)
    earned_badge_ids = Column(JSON, default=list)

class Assignment(Base):
    __tablename__ = "assignments"
    id = Column(String, primary_key=True, index=True)
    title = Column(String(255), nullable=False)
    description = Column(Text)
    due_date = Column(String, nullable=False)
    status = Column(String(50), nullable=False)
    grade = Column(Integer)
    feedback = Column(Text)
    file_url = Column(Text)
    file_name = Column(String(255))
    student_id = Column(String, index=True, nullable=False)
    coach_id = Column(String, index=True, nullable=False)
    submitted_at = Column(String)
    graded_at = Column(String)
    coach_attachments = Column(JSON, default=list)
    checklist = Column(JSON, default=list)
    audio_feedback_url = Column(Text)
    video_description_url = Column(Text)
    video_feedback_url = Column(Text)
    student_video_submission_url = Column(Text)
    feedback_reaction = Column(String(10))
    submission_type = Column(String(50))
    text_submission = Column(Text)
    student_audio_feedback_response_url = Column(Text)
    student_video_feedback_response_url = Column(Text)
    student_text_feedback_response = Column(Text)
    start_time = Column(String)
    end_time = Column(String)

class Conversation(Base):
    __tablename__ = "conversations"
    id = Column(String, primary_key=True, index=True)
    participant_ids = Column(JSON, nullable=False, default=list)
    is_group = Column(Boolean, nullable=False, default=False)
    group_name = Column(String(255))
    group_image = Column(Text)
    admin_id = Column(String)
    is_archived = Column(Boolean, default=False)

class Message(Base):
    __tablename__ = "messages"
    id = Column(String, primary_key=True, index=True)
    sender_id = Column(String, nullable=False)
    conversation_id = Column(String, index=True, nullable=False)
    text = Column(Text)
    timestamp = Column(String, nullable=False)
    type = Column(String(50), nullable=False)
    file_url = Column(Text)
    file_name = Column(String(255))
    file_type = Column(String(100))
    image_url = Column(Text)
    audio_url = Column(Text)
    video_url = Column(Text)
    read_by = Column(JSON, nullable=False, default=list)
    reactions = Column(JSON, default=dict)
    reply_to = Column(String)
    poll = Column(JSON)
    priority = Column(String(50))

class Notification(Base):
    __tablename__ = "notifications"
    id = Column(String, primary_key=True, index=True)
    user_id = Column(String, index=True, nullable=False)
    message = Column(Text, nullable=False)
    timestamp = Column(String, nullable=False)
    is_read = Column(Boolean, default=False)
    priority = Column(String(50), nullable=False)
    link = Column(JSON)

class AssignmentTemplate(Base):
    __tablename__ = "templates"
    id = Column(String, primary_key=True, index=True)
    title = Column(String(255), nullable=False)
    description = Column(Text)
    checklist = Column(JSON, default=list)
    is_favorite = Column(Boolean, default=False)

class Resource(Base):
    __tablename__ = "resources"
    id = Column(String, primary_key=True, index=True)
    name = Column(String(255), nullable=False)
    type = Column(String(50), nullable=False)
    url = Column(Text, nullable=False)
    is_public = Column(Boolean, nullable=False)
    uploader_id = Column(String, nullable=False)
    assigned_to = Column(JSON, default=list)
    category = Column(String(50))

class Goal(Base):
    __tablename__ = "goals"
    id = Column(String, primary_key=True, index=True)
    student_id = Column(String, index=True, nullable=False)
    title = Column(Text, nullable=False)
    description = Column(Text)
    is_completed = Column(Boolean, default=False)
    milestones = Column(JSON, default=list)

class CalendarEvent(Base):
    __tablename__ = "calendar_events"
    id = Column(String, primary_key=True, index=True)
    user_id = Column(String, index=True, nullable=False)
    title = Column(String(255), nullable=False)
    date = Column(String, nullable=False)
    type = Column(String(50), nullable=False)
    color = Column(String(50))
    start_time = Column(String)
    end_time = Column(String)

class Exam(Base):
    __tablename__ = "exams"
    id = Column(String, primary_key=True, index=True)
    student_id = Column(String, index=True, nullable=False)
    title = Column(String(255), nullable=False)
    date = Column(String, nullable=False)
    total_questions = Column(Integer)
    correct = Column(Integer)
    incorrect = Column(Integer)
    empty = Column(Integer)
    net_score = Column(Float)
    subjects = Column(JSON, default=list)
    coach_notes = Column(Text)
    student_reflections = Column(Text)
    category = Column(String(100))
    topic = Column(String(100))
    type = Column(String(50))

class Question(Base):
    __tablename__ = "questions"
    id = Column(String, primary_key=True, index=True)
    creator_id = Column(String, nullable=False)
    category = Column(String(50), nullable=False)
    topic = Column(String(255), nullable=False)
    question_text = Column(Text, nullable=False)
    options = Column(JSON, nullable=False, default=list)
    correct_option_index = Column(Integer, nullable=False)
    difficulty = Column(String(50), nullable=False)
    explanation = Column(Text)
    image_url = Column(Text)
    video_url = Column(Text)
    audio_url = Column(Text)
    document_url = Column(Text)
    document_name = Column(String(255))

class Badge(Base):
    __tablename__ = "badges"
    id = Column(String, primary_key=True, index=True)
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=False)
