from enum import Enum
from typing import Any, Dict, List, Literal, Optional, Type

from pydantic import BaseModel, ConfigDict, Field, create_model, field_validator, model_validator
from pydantic.alias_generators import to_camel

from .utils import parse_timestamp

ANNOUNCEMENTS_CONVERSATION_ID = "conv-announcements"


class CamelModel(BaseModel):
    """Snake_case attributes, camelCase on the wire."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


class TimestampedModel(CamelModel):
    """Rejects a ``timestamp`` that is not ISO-8601."""

    @field_validator("timestamp", check_fields=False)
    @classmethod
    def check_timestamp(cls, value):
        if value is not None:
            try:
                parse_timestamp(value)
            except ValueError:
                raise ValueError(f"timestamp must be ISO-8601, got {value!r}")
        return value


class UserRole(str, Enum):
    STUDENT = "student"
    COACH = "coach"
    SUPERADMIN = "superadmin"
    PARENT = "parent"

class AcademicTrack(str, Enum):
    SAYISAL = "sayisal"
    ESIT_AGIRLIK = "esit-agirlik"
    SOZEL = "sozel"
    DIL = "dil"

class AssignmentStatus(str, Enum):
    PENDING = "pending"
    SUBMITTED = "submitted"
    GRADED = "graded"

class MessageType(str, Enum):
    TEXT = "text"
    FILE = "file"
    AUDIO = "audio"
    VIDEO = "video"
    POLL = "poll"
    ANNOUNCEMENT = "announcement"
    SYSTEM = "system"

class NotificationPriority(str, Enum):
    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"

class ResourceType(str, Enum):
    PDF = "pdf"
    LINK = "link"
    VIDEO = "video"
    IMAGE = "image"
    AUDIO = "audio"
    DOCUMENT = "document"
    SPREADSHEET = "spreadsheet"

class ResourceCategory(str, Enum):
    MATEMATIK = "matematik"
    FIZIK = "fizik"
    KIMYA = "kimya"
    BIYOLOJI = "biyoloji"
    TURKCE = "turkce"
    TARIH = "tarih"
    COGRAFYA = "cografya"
    FELSEFE = "felsefe"
    INGILIZCE = "ingilizce"
    GENEL = "genel"

class QuestionDifficulty(str, Enum):
    EASY = "easy"
    MEDIUM = "medium"
    HARD = "hard"

SubmissionType = Literal["file", "text", "completed"]


# --- Entities ---

class Badge(CamelModel):
    id: str
    name: str
    description: str

class User(CamelModel):
    id: str
    name: str
    email: str
    role: UserRole
    profile_picture: str = ""
    is_online: bool = False
    notes: Optional[str] = None
    assigned_coach_id: Optional[str] = None
    grade_level: Optional[str] = None
    academic_track: Optional[AcademicTrack] = None
    child_ids: List[str] = Field(default_factory=list)
    parent_ids: List[str] = Field(default_factory=list)
    xp: int = 0
    streak: int = 0
    last_submission_date: Optional[str] = None
    earned_badge_ids: List[str] = Field(default_factory=list)

class ChecklistItem(CamelModel):
    id: str
    text: str
    is_completed: bool = False

class Attachment(CamelModel):
    name: str
    url: str

class Assignment(CamelModel):
    id: str
    title: str
    description: str = ""
    due_date: str
    status: AssignmentStatus = AssignmentStatus.PENDING
    grade: Optional[int] = Field(None, ge=0, le=100)
    feedback: str = ""
    file_url: Optional[str] = None
    file_name: Optional[str] = None
    student_id: str
    coach_id: str
    submitted_at: Optional[str] = None
    graded_at: Optional[str] = None
    coach_attachments: List[Attachment] = Field(default_factory=list)
    checklist: List[ChecklistItem] = Field(default_factory=list)
    audio_feedback_url: Optional[str] = None
    video_description_url: Optional[str] = None
    video_feedback_url: Optional[str] = None
    student_video_submission_url: Optional[str] = None
    feedback_reaction: Optional[str] = None
    submission_type: SubmissionType = "file"
    text_submission: Optional[str] = None
    student_audio_feedback_response_url: Optional[str] = None
    student_video_feedback_response_url: Optional[str] = None
    student_text_feedback_response: Optional[str] = None
    start_time: Optional[str] = None
    end_time: Optional[str] = None

    @model_validator(mode="after")
    def check_status_fields(self):
        if self.status != AssignmentStatus.GRADED and (self.grade is not None or self.graded_at):
            raise ValueError("grade and gradedAt are only set on graded assignments")
        if self.status == AssignmentStatus.PENDING and self.submitted_at:
            raise ValueError("submittedAt is only set once the assignment is submitted")
        return self

class PollOption(CamelModel):
    text: str
    votes: List[str] = Field(default_factory=list)

class Poll(CamelModel):
    question: str
    options: List[PollOption]

class Message(TimestampedModel):
    id: str
    sender_id: str
    conversation_id: str
    text: str = ""
    timestamp: str
    type: MessageType = MessageType.TEXT
    file_url: Optional[str] = None
    file_name: Optional[str] = None
    file_type: Optional[str] = None
    image_url: Optional[str] = None
    audio_url: Optional[str] = None
    video_url: Optional[str] = None
    read_by: List[str] = Field(default_factory=list)
    reactions: Dict[str, List[str]] = Field(default_factory=dict)
    reply_to: Optional[str] = None
    poll: Optional[Poll] = None
    priority: Optional[NotificationPriority] = None

class Conversation(CamelModel):
    id: str
    participant_ids: List[str]
    is_group: bool = False
    group_name: Optional[str] = None
    group_image: Optional[str] = None
    admin_id: Optional[str] = None
    is_archived: bool = False

    @model_validator(mode="after")
    def check_direct_participants(self):
        if not self.is_group and len(set(self.participant_ids)) != 2:
            raise ValueError("a 1:1 conversation has exactly two distinct participants")
        return self

class NotificationLink(CamelModel):
    page: str
    filter: Optional[Dict[str, Any]] = None

class Notification(TimestampedModel):
    id: str
    user_id: str
    message: str
    timestamp: str
    is_read: bool = False
    priority: NotificationPriority = NotificationPriority.MEDIUM
    link: Optional[NotificationLink] = None

class TemplateChecklistItem(CamelModel):
    text: str

class AssignmentTemplate(CamelModel):
    id: str
    title: str
    description: str = ""
    checklist: List[TemplateChecklistItem] = Field(default_factory=list)
    is_favorite: bool = False

class Resource(CamelModel):
    id: str
    name: str
    type: ResourceType
    url: str
    is_public: bool = False
    uploader_id: str
    assigned_to: List[str] = Field(default_factory=list)
    category: ResourceCategory = ResourceCategory.GENEL

class Goal(CamelModel):
    id: str
    student_id: str
    title: str
    description: str = ""
    is_completed: bool = False
    milestones: List[ChecklistItem] = Field(default_factory=list)

class CalendarEvent(CamelModel):
    id: str
    user_id: str
    title: str
    date: str
    type: Literal["personal", "study"] = "personal"
    color: str = ""
    start_time: Optional[str] = None
    end_time: Optional[str] = None

class ExamSubjectPerformance(CamelModel):
    name: str
    total_questions: int = 0
    correct: int = 0
    incorrect: int = 0
    empty: int = 0
    net_score: float = 0.0

class Exam(CamelModel):
    id: str
    student_id: str
    title: str
    date: str
    total_questions: int = 0
    correct: int = 0
    incorrect: int = 0
    empty: int = 0
    net_score: float = 0.0
    subjects: List[ExamSubjectPerformance] = Field(default_factory=list)
    coach_notes: Optional[str] = None
    student_reflections: Optional[str] = None
    category: str = ""
    topic: str = ""
    type: Literal["deneme", "konu-tarama"] = "deneme"

class Question(CamelModel):
    id: str
    creator_id: str
    category: ResourceCategory
    topic: str
    question_text: str
    options: List[str]
    correct_option_index: int
    difficulty: QuestionDifficulty = QuestionDifficulty.MEDIUM
    explanation: Optional[str] = None
    image_url: Optional[str] = None
    video_url: Optional[str] = None
    audio_url: Optional[str] = None
    document_url: Optional[str] = None
    document_name: Optional[str] = None

    @model_validator(mode="after")
    def check_correct_option(self):
        if not 0 <= self.correct_option_index < len(self.options):
            raise ValueError("correctOptionIndex must point at one of the options")
        return self


# REST path segment -> entity schema
ENTITY_SCHEMAS: Dict[str, Type[CamelModel]] = {
    "users": User,
    "assignments": Assignment,
    "messages": Message,
    "conversations": Conversation,
    "notifications": Notification,
    "templates": AssignmentTemplate,
    "resources": Resource,
    "goals": Goal,
    "badges": Badge,
    "calendarEvents": CalendarEvent,
    "exams": Exam,
    "questions": Question,
}


def partial_model(model: Type[CamelModel]) -> Type[CamelModel]:
    """Same fields as ``model`` minus ``id``, every one optional (for PUT bodies)."""
    fields = {
        name: (Optional[field.annotation], None)
        for name, field in model.model_fields.items()
        if name != "id"
    }
    base = TimestampedModel if issubclass(model, TimestampedModel) else CamelModel
    return create_model(f"{model.__name__}Update", __base__=base, **fields)


# --- Request / response bodies ---

class LoginRequest(CamelModel):
    email: str
    password: str

class RegisterRequest(CamelModel):
    id: Optional[str] = None
    name: str
    email: str
    password: str
    role: UserRole = UserRole.STUDENT
    profile_picture: Optional[str] = None

class AuthResponse(CamelModel):
    user: User
    token: str

class DeleteRequest(CamelModel):
    ids: List[str]

class FindOrCreateRequest(CamelModel):
    user_id1: str
    user_id2: str

class SetupResponse(CamelModel):
    success: bool
    message: str

class SeedResponse(SetupResponse):
    counts: Dict[str, int] = Field(default_factory=dict)


# --- AI proxy ---

class GenerateTextRequest(CamelModel):
    prompt: str
    temperature: Optional[float] = None

class GenerateJsonRequest(CamelModel):
    prompt: str
    schema_name: str = Field(..., alias="schema")

class ChatTurn(CamelModel):
    role: Literal["user", "model", "assistant"]
    text: str

class ChatRequest(CamelModel):
    history: List[ChatTurn]
    system_instruction: Optional[str] = None

class TextResult(CamelModel):
    result: str

class JsonResult(CamelModel):
    result: Dict[str, Any]

class ChatReply(CamelModel):
    text: str

# Structured generations. Every payload is a JSON object so the model can
# be asked for json_object output; list-shaped answers sit under "items".

class SuggestedItem(CamelModel):
    text: str

class ChecklistSuggestion(CamelModel):
    items: List[SuggestedItem]

class GradeSuggestion(CamelModel):
    suggested_grade: int = Field(..., ge=0, le=100)
    rationale: str

class AssignmentTemplateDraft(CamelModel):
    title: str
    description: str
    checklist: List[SuggestedItem] = Field(default_factory=list)

class StudyPlanEntry(CamelModel):
    title: str
    date: str
    start_time: Optional[str] = None
    end_time: Optional[str] = None
    description: Optional[str] = None

class StudyPlan(CamelModel):
    items: List[StudyPlanEntry]

class GoalDraft(CamelModel):
    description: str
    milestones: List[SuggestedItem] = Field(default_factory=list)

class ExamDetailsDraft(CamelModel):
    title: str
    description: str
    total_questions: int
    due_date: str

class QuestionDraft(CamelModel):
    question_text: str
    options: List[str]
    correct_option_index: int
    explanation: Optional[str] = None

AI_SCHEMAS: Dict[str, Type[CamelModel]] = {
    "checklist": ChecklistSuggestion,
    "gradeSuggestion": GradeSuggestion,
    "assignmentTemplate": AssignmentTemplateDraft,
    "studyPlan": StudyPlan,
    "goalWithMilestones": GoalDraft,
    "examDetails": ExamDetailsDraft,
    "question": QuestionDraft,
}
