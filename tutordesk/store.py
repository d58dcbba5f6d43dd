"""
In-memory cache of every entity collection for one signed-in session.

Every write follows the same protocol: build the entity locally, apply it to
the collection, send it through the gateway, then replace the local copy with
the record the server confirmed. When the gateway raises, the local change is
rolled back by id and the error propagates to the caller. Batch writes run
their calls concurrently, let all of them settle, then raise the first failure.
"""
import asyncio
import logging
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence, Tuple, Type

from pydantic import ValidationError

from . import transforms, views
from .gateway import GatewayError, PersistenceGateway
from .schemas import (
    Assignment,
    AssignmentStatus,
    AssignmentTemplate,
    AuthResponse,
    Badge,
    CalendarEvent,
    CamelModel,
    Conversation,
    Exam,
    Goal,
    Message,
    MessageType,
    Notification,
    Question,
    Resource,
    User,
    UserRole,
)
from .session import Session
from .utils import encode_data_url, new_id, utc_now_iso

logger = logging.getLogger(__name__)

Notifier = Callable[[str, str], None]

# attribute name -> (REST path segment, schema)
COLLECTIONS: Dict[str, Tuple[str, Type[CamelModel]]] = {
    "users": ("users", User),
    "assignments": ("assignments", Assignment),
    "messages": ("messages", Message),
    "conversations": ("conversations", Conversation),
    "notifications": ("notifications", Notification),
    "templates": ("templates", AssignmentTemplate),
    "resources": ("resources", Resource),
    "goals": ("goals", Goal),
    "badges": ("badges", Badge),
    "calendar_events": ("calendarEvents", CalendarEvent),
    "exams": ("exams", Exam),
    "questions": ("questions", Question),
}


class ValidationFailure(Exception):
    """Input rejected before any request was made."""


class _Collection:
    def __set_name__(self, owner, name):
        self.name = name

    def __get__(self, store, owner=None):
        if store is None:
            return self
        return list(store._collections[self.name])


def _avatar(seed: str) -> str:
    return f"https://i.pravatar.cc/150?u={seed}"


def _wire(entity: CamelModel, fields: Optional[Iterable[str]] = None) -> Dict[str, Any]:
    if fields is None:
        return entity.model_dump(mode="json", by_alias=True, exclude={"id"})
    return entity.model_dump(mode="json", by_alias=True, include=set(fields))


class DataStore:
    users = _Collection()
    assignments = _Collection()
    messages = _Collection()
    conversations = _Collection()
    notifications = _Collection()
    templates = _Collection()
    resources = _Collection()
    goals = _Collection()
    badges = _Collection()
    calendar_events = _Collection()
    exams = _Collection()
    questions = _Collection()

    def __init__(self, gateway: PersistenceGateway, session: Session, notifier: Optional[Notifier] = None):
        self.gateway = gateway
        self.session = session
        self.notifier = notifier
        self._collections: Dict[str, List[CamelModel]] = {name: [] for name in COLLECTIONS}
        self._revisions: Dict[str, int] = {name: 0 for name in COLLECTIONS}
        self._memo: Dict[str, Tuple[tuple, Any]] = {}
        self._bootstrapping = False

    # --- State bookkeeping ---

    @property
    def is_loading(self) -> bool:
        return self._bootstrapping or self.gateway.is_loading

    @property
    def current_user(self) -> Optional[User]:
        return self.session.current_user

    def _notify(self, message: str, kind: str = "info") -> None:
        if self.notifier is not None:
            self.notifier(message, kind)

    def _reject(self, message: str):
        logger.info(f"Rejected: {message}")
        self._notify(message, "error")
        raise ValidationFailure(message)

    def _build(self, schema: Type[CamelModel], **fields) -> CamelModel:
        try:
            return schema(**fields)
        except ValidationError as e:
            self._reject(f"Invalid {schema.__name__}: {e.errors()[0]['msg']}")

    def _revise(self, entity: CamelModel, **changes) -> CamelModel:
        try:
            return transforms.revise(entity, **changes)
        except ValidationError as e:
            self._reject(f"Invalid {type(entity).__name__}: {e.errors()[0]['msg']}")

    def _touch(self, name: str) -> None:
        self._revisions[name] += 1

    def _find(self, name: str, entity_id: str) -> Optional[CamelModel]:
        return next((e for e in self._collections[name] if e.id == entity_id), None)

    def _put_local(self, name: str, entity: CamelModel) -> None:
        items = self._collections[name]
        for index, existing in enumerate(items):
            if existing.id == entity.id:
                items[index] = entity
                break
        else:
            items.append(entity)
        self._touch(name)

    def _remove_local(self, name: str, ids: Iterable[str]) -> List[Tuple[int, CamelModel]]:
        wanted = set(ids)
        items = self._collections[name]
        removed = [(index, e) for index, e in enumerate(items) if e.id in wanted]
        if removed:
            self._collections[name] = [e for e in items if e.id not in wanted]
            self._touch(name)
        return removed

    def _restore(self, name: str, removed: List[Tuple[int, CamelModel]]) -> None:
        items = self._collections[name]
        for index, entity in removed:
            items.insert(min(index, len(items)), entity)
        self._touch(name)

    def _memoized(self, key: str, collections: Sequence[str], compute: Callable[[], Any]) -> Any:
        stamp = tuple(self._revisions[name] for name in collections) + (self.session.revision,)
        cached = self._memo.get(key)
        if cached is not None and cached[0] == stamp:
            return cached[1]
        value = compute()
        self._memo[key] = (stamp, value)
        return value

    def reset(self) -> None:
        for name in COLLECTIONS:
            self._collections[name] = []
            self._touch(name)
        self._memo.clear()

    # --- Generic writes ---

    async def _create(self, name: str, entity: CamelModel) -> CamelModel:
        path, schema = COLLECTIONS[name]
        self._put_local(name, entity)
        try:
            response = await self.gateway.post(
                f"/api/{path}", json=entity.model_dump(mode="json", by_alias=True)
            )
        except GatewayError:
            self._remove_local(name, [entity.id])
            raise
        confirmed = schema.model_validate(response.json())
        self._put_local(name, confirmed)
        return confirmed

    async def _update(self, name: str, updated: CamelModel, fields: Optional[Iterable[str]] = None) -> Optional[CamelModel]:
        """Apply ``updated`` and send it, in full or only ``fields``. None when the id is unknown."""
        path, schema = COLLECTIONS[name]
        previous = self._find(name, updated.id)
        if previous is None:
            logger.warning(f"Ignoring update of unknown {name} record {updated.id}")
            return None
        self._put_local(name, updated)
        try:
            response = await self.gateway.put(f"/api/{path}/{updated.id}", json=_wire(updated, fields))
        except GatewayError:
            self._put_local(name, previous)
            raise
        confirmed = schema.model_validate(response.json())
        self._put_local(name, confirmed)
        return confirmed

    async def _delete(self, name: str, ids: Sequence[str]) -> None:
        path, _ = COLLECTIONS[name]
        if not ids:
            return
        removed = self._remove_local(name, ids)
        try:
            await self.gateway.delete(f"/api/{path}", json={"ids": list(ids)})
        except GatewayError:
            self._restore(name, removed)
            raise
        logger.info(f"Deleted {len(removed)} {name}")

    async def _settle(self, calls) -> List[Any]:
        results = await asyncio.gather(*calls, return_exceptions=True)
        for result in results:
            if isinstance(result, BaseException):
                raise result
        return results

    # --- Loading ---

    async def initialize(self) -> None:
        """Bootstrap the server tables, then load every collection if signed in.

        A token the server no longer accepts ends the session instead of
        failing the load.
        """
        self._bootstrapping = True
        try:
            await self.gateway.post("/api/setup")
            if not self.session.token:
                if self.session.current_user is not None:
                    self.session.sign_out()
                return
            try:
                await self.refresh()
            except GatewayError as e:
                if e.status_code != 401:
                    raise
                logger.info("Stored token was rejected, signing out")
                self.session.sign_out()
                self.reset()
                return
            self.session.rematch(self.users)
        finally:
            self._bootstrapping = False

    async def refresh(self) -> None:
        names = list(COLLECTIONS)
        responses = await self._settle(
            [self.gateway.get(f"/api/{COLLECTIONS[name][0]}") for name in names]
        )
        for name, response in zip(names, responses):
            schema = COLLECTIONS[name][1]
            self._collections[name] = [schema.model_validate(item) for item in response.json()]
            self._touch(name)
        logger.info(f"Loaded {sum(len(self._collections[n]) for n in names)} records")

    # --- Auth ---

    async def _authenticate(self, path: str, body: Dict[str, Any]) -> User:
        response = await self.gateway.post(path, json=body)
        auth = AuthResponse.model_validate(response.json())
        self.session.sign_in(auth.user, auth.token)
        await self.refresh()
        return self.session.rematch(self.users) or auth.user

    async def login(self, email: str, password: str) -> User:
        if not email.strip() or not password:
            self._reject("Email and password are required.")
        return await self._authenticate("/api/login", {"email": email.strip(), "password": password})

    async def register(
        self,
        name: str,
        email: str,
        password: str,
        role: UserRole = UserRole.STUDENT,
        profile_picture: Optional[str] = None,
    ) -> User:
        if not name.strip() or not email.strip() or not password:
            self._reject("Name, email, and password are required.")
        body = {
            "id": new_id(),
            "name": name.strip(),
            "email": email.strip(),
            "password": password,
            "role": role.value,
            "profilePicture": profile_picture or _avatar(email.strip()),
        }
        return await self._authenticate("/api/register", body)

    async def logout(self) -> None:
        self.session.sign_out()
        self.reset()
        logger.info("Signed out and cleared the store")

    async def seed_database(self) -> None:
        """Replace everything on the server with the demo data set, then reload.

        Staff only. When the signed-in account is not one of the demo
        accounts its token stops working and the session ends.
        """
        if not self.session.is_staff:
            self._reject("Only coaches can reset the database.")
        await self.gateway.post("/api/seed")
        self._notify("The database was filled with demo data.", "success")
        await self.initialize()

    # --- Users ---

    async def add_user(self, **fields) -> User:
        return await self._create("users", self._build(User, id=new_id(), **fields))

    async def update_user(self, user: User) -> Optional[User]:
        confirmed = await self._update("users", user)
        current = self.session.current_user
        if confirmed is not None and current is not None and current.id == confirmed.id:
            self.session.set_current_user(confirmed)
        return confirmed

    async def delete_user(self, user_id: str) -> None:
        await self._delete("users", [user_id])

    async def invite_student(self, name: str, email: str) -> Optional[User]:
        if not self.session.is_staff:
            self._reject("Only coaches can invite students.")
        student = await self.add_user(
            name=name,
            email=email,
            role=UserRole.STUDENT,
            profile_picture=_avatar(email),
            assigned_coach_id=self.current_user.id,
        )
        await self.find_or_create_conversation(student.id)
        self._notify(f"{name} was invited and a conversation was started.", "success")
        return student

    async def update_student_notes(self, student_id: str, notes: str) -> Optional[User]:
        student = self._find("users", student_id)
        if student is None:
            return None
        return await self._update("users", self._revise(student, notes=notes), ["notes"])

    async def award_xp(self, amount: int, reason: str) -> Optional[User]:
        me = self.current_user
        if me is None:
            return None
        updated = await self.update_user(self._revise(me, xp=(me.xp or 0) + amount))
        if updated is not None:
            self._notify(f"+{amount} XP! {reason}", "xp")
        return updated

    async def award_badge(self, user_id: str, badge_id: str) -> Optional[User]:
        user = self._find("users", user_id)
        if user is None or self._find("badges", badge_id) is None:
            return None
        if badge_id in user.earned_badge_ids:
            return user
        updated = self._revise(user, earned_badge_ids=[*user.earned_badge_ids, badge_id])
        confirmed = await self._update("users", updated, ["earned_badge_ids"])
        current = self.session.current_user
        if confirmed is not None and current is not None and current.id == confirmed.id:
            self.session.set_current_user(confirmed)
        return confirmed

    # --- Assignments ---

    async def add_assignments(self, student_ids: Sequence[str], **fields) -> List[Assignment]:
        """One assignment per student, created concurrently."""
        if not student_ids:
            self._reject("Select at least one student.")
        if not str(fields.get("title", "")).strip():
            self._reject("Assignment title is required.")
        if "coach_id" not in fields and self.current_user is not None:
            fields["coach_id"] = self.current_user.id
        drafts = [self._build(Assignment, id=new_id(), student_id=student_id, **fields) for student_id in student_ids]
        created = await self._settle([self._create("assignments", a) for a in drafts])
        self._notify("Assignment(s) created.", "success")
        return created

    async def update_assignment(self, assignment: Assignment) -> Optional[Assignment]:
        return await self._update("assignments", assignment)

    async def submit_assignment(
        self,
        assignment_id: str,
        text: Optional[str] = None,
        file_url: Optional[str] = None,
        file_name: Optional[str] = None,
        video_url: Optional[str] = None,
    ) -> Optional[Assignment]:
        assignment = self._find("assignments", assignment_id)
        if assignment is None:
            return None
        text = (text or "").strip()
        if assignment.status == AssignmentStatus.GRADED:
            self._reject("This assignment has already been graded.")
        if assignment.submission_type == "file" and not file_url and not text:
            self._reject("Upload a file or leave a note to submit.")
        if assignment.submission_type == "text" and not text:
            self._reject("Enter your answer before submitting.")

        changes = {
            "status": AssignmentStatus.SUBMITTED,
            "submitted_at": utc_now_iso(),
            "text_submission": None if assignment.submission_type == "completed" else (text or None),
            "student_video_submission_url": video_url or assignment.student_video_submission_url,
        }
        if file_url:
            changes["file_url"] = file_url
            changes["file_name"] = file_name
        submitted = await self._update("assignments", self._revise(assignment, **changes))
        self._notify("Assignment submitted.", "success")
        return submitted

    def _check_grade(self, grade) -> int:
        if isinstance(grade, bool) or not isinstance(grade, int) or not 0 <= grade <= 100:
            self._reject("Grade must be a whole number between 0 and 100.")
        return grade

    def _graded(self, assignment: Assignment, grade: int, feedback: str, **extras) -> Assignment:
        return self._revise(
            assignment,
            status=AssignmentStatus.GRADED,
            grade=grade,
            feedback=feedback,
            graded_at=utc_now_iso(),
            **extras,
        )

    async def grade_assignment(self, assignment_id: str, grade: int, feedback: str = "", **extras) -> Optional[Assignment]:
        grade = self._check_grade(grade)
        assignment = self._find("assignments", assignment_id)
        if assignment is None:
            return None
        return await self._update("assignments", self._graded(assignment, grade, feedback, **extras))

    async def batch_grade(self, assignment_ids: Sequence[str], grade: int, feedback: str = "") -> List[Assignment]:
        grade = self._check_grade(grade)
        targets = [a for a in (self._find("assignments", i) for i in assignment_ids) if a is not None]
        graded = await self._settle(
            [self._update("assignments", self._graded(a, grade, feedback)) for a in targets]
        )
        self._notify(f"{len(graded)} assignment(s) graded.", "success")
        return graded

    async def toggle_checklist_item(self, assignment_id: str, item_id: str) -> Optional[Assignment]:
        assignment = self._find("assignments", assignment_id)
        if assignment is None:
            return None
        checklist = [
            item.model_copy(update={"is_completed": not item.is_completed}) if item.id == item_id else item
            for item in assignment.checklist
        ]
        return await self._update("assignments", self._revise(assignment, checklist=checklist), ["checklist"])

    async def delete_assignments(self, assignment_ids: Sequence[str]) -> None:
        await self._delete("assignments", list(assignment_ids))

    # --- Messages ---

    async def send_message(
        self,
        conversation_id: str,
        text: str = "",
        type: MessageType = MessageType.TEXT,
        **extras,
    ) -> Optional[Message]:
        me = self.current_user
        if me is None:
            return None
        if type == MessageType.TEXT and not text.strip():
            self._reject("Message text cannot be empty.")
        message = self._build(
            Message,
            id=new_id(),
            sender_id=me.id,
            conversation_id=conversation_id,
            text=text,
            timestamp=utc_now_iso(),
            type=type,
            read_by=[me.id],
            **extras,
        )
        return await self._create("messages", message)

    async def mark_messages_as_read(self, conversation_id: str) -> int:
        """Add the current user to readBy on every message of the conversation. Returns how many changed."""
        me = self.current_user
        if me is None:
            return 0
        unread = [
            m for m in self._collections["messages"]
            if m.conversation_id == conversation_id and me.id not in m.read_by
        ]
        await self._settle(
            [self._update("messages", transforms.mark_read(m, me.id), ["read_by"]) for m in unread]
        )
        return len(unread)

    async def add_reaction(self, message_id: str, emoji: str) -> Optional[Message]:
        me = self.current_user
        message = self._find("messages", message_id)
        if me is None or message is None:
            return None
        reactions = transforms.toggle_reaction(message.reactions, emoji, me.id)
        return await self._update("messages", self._revise(message, reactions=reactions), ["reactions"])

    async def vote_on_poll(self, message_id: str, option_index: int) -> Optional[Message]:
        me = self.current_user
        message = self._find("messages", message_id)
        if me is None or message is None or message.poll is None:
            return None
        try:
            poll = transforms.cast_poll_vote(message.poll, option_index, me.id)
        except IndexError as e:
            self._reject(str(e))
        return await self._update("messages", message.model_copy(update={"poll": poll}), ["poll"])

    def find_message_by_id(self, message_id: str) -> Optional[Message]:
        return self._find("messages", message_id)

    # --- Conversations ---

    async def find_or_create_conversation(self, other_user_id: str) -> Optional[Conversation]:
        me = self.current_user
        if me is None:
            return None
        if other_user_id == me.id:
            self._reject("You cannot start a conversation with yourself.")
        for conversation in self._collections["conversations"]:
            if not conversation.is_group and set(conversation.participant_ids) == {me.id, other_user_id}:
                return conversation
        # the server owns the lookup so two clients converge on one conversation
        response = await self.gateway.post(
            "/api/conversations/findOrCreate",
            json={"userId1": me.id, "userId2": other_user_id},
        )
        conversation = Conversation.model_validate(response.json())
        self._put_local("conversations", conversation)
        return conversation

    async def start_group_chat(self, participant_ids: Sequence[str], group_name: str) -> Optional[Conversation]:
        me = self.current_user
        if me is None:
            return None
        if not group_name.strip():
            self._reject("Group name is required.")
        members = list(dict.fromkeys([*participant_ids, me.id]))
        conversation = self._build(
            Conversation,
            id=new_id(),
            participant_ids=members,
            is_group=True,
            group_name=group_name.strip(),
            group_image=_avatar(new_id()),
            admin_id=me.id,
        )
        return await self._create("conversations", conversation)

    async def add_user_to_conversation(self, conversation_id: str, user_id: str) -> Optional[Conversation]:
        conversation = self._find("conversations", conversation_id)
        if conversation is None or not conversation.is_group:
            return None
        if user_id in conversation.participant_ids:
            return conversation
        updated = self._revise(conversation, participant_ids=[*conversation.participant_ids, user_id])
        return await self._update("conversations", updated, ["participant_ids"])

    async def remove_user_from_conversation(self, conversation_id: str, user_id: str) -> Optional[Conversation]:
        conversation = self._find("conversations", conversation_id)
        if conversation is None or not conversation.is_group:
            return None
        if user_id not in conversation.participant_ids:
            return conversation
        remaining = [p for p in conversation.participant_ids if p != user_id]
        return await self._update("conversations", self._revise(conversation, participant_ids=remaining), ["participant_ids"])

    async def end_conversation(self, conversation_id: str) -> None:
        """Delete the conversation together with its messages."""
        message_ids = [m.id for m in self._collections["messages"] if m.conversation_id == conversation_id]
        await self._delete("conversations", [conversation_id])
        await self._delete("messages", message_ids)

    async def set_conversation_archived(self, conversation_id: str, is_archived: bool) -> Optional[Conversation]:
        conversation = self._find("conversations", conversation_id)
        if conversation is None:
            return None
        return await self._update("conversations", self._revise(conversation, is_archived=is_archived), ["is_archived"])

    # --- Notifications ---

    async def mark_notifications_as_read(self, user_id: str) -> int:
        unread = [n for n in self._collections["notifications"] if n.user_id == user_id and not n.is_read]
        await self._settle(
            [self._update("notifications", n.model_copy(update={"is_read": True}), ["is_read"]) for n in unread]
        )
        return len(unread)

    # --- Goals ---

    async def add_goal(self, **fields) -> Goal:
        return await self._create("goals", self._build(Goal, id=new_id(), **fields))

    async def update_goal(self, goal: Goal) -> Optional[Goal]:
        return await self._update("goals", goal)

    async def delete_goal(self, goal_id: str) -> None:
        await self._delete("goals", [goal_id])

    async def toggle_milestone(self, goal_id: str, milestone_id: str) -> Optional[Goal]:
        goal = self._find("goals", goal_id)
        if goal is None:
            return None
        milestones = [
            m.model_copy(update={"is_completed": not m.is_completed}) if m.id == milestone_id else m
            for m in goal.milestones
        ]
        return await self._update("goals", self._revise(goal, milestones=milestones), ["milestones"])

    # --- Resources ---

    async def add_resource(self, **fields) -> Resource:
        if "uploader_id" not in fields and self.current_user is not None:
            fields["uploader_id"] = self.current_user.id
        return await self._create("resources", self._build(Resource, id=new_id(), **fields))

    async def delete_resource(self, resource_id: str) -> None:
        await self._delete("resources", [resource_id])

    async def assign_resource_to_students(self, resource_id: str, student_ids: Sequence[str]) -> Optional[Resource]:
        resource = self._find("resources", resource_id)
        if resource is None:
            return None
        assigned = list(dict.fromkeys([*resource.assigned_to, *student_ids]))
        return await self._update("resources", self._revise(resource, assigned_to=assigned), ["assigned_to"])

    # --- Templates ---

    async def add_template(self, **fields) -> AssignmentTemplate:
        fields["is_favorite"] = False
        return await self._create("templates", self._build(AssignmentTemplate, id=new_id(), **fields))

    async def update_template(self, template: AssignmentTemplate) -> Optional[AssignmentTemplate]:
        return await self._update("templates", template)

    async def delete_template(self, template_id: str) -> None:
        await self._delete("templates", [template_id])

    # --- Calendar ---

    async def add_calendar_event(self, **fields) -> CalendarEvent:
        return await self._create("calendar_events", self._build(CalendarEvent, id=new_id(), **fields))

    async def add_calendar_events(self, events: Sequence[Dict[str, Any]]) -> List[CalendarEvent]:
        """Create several events for the current user."""
        me = self.current_user
        if me is None:
            return []
        drafts = [self._build(CalendarEvent, **{**event, "id": new_id(), "user_id": me.id}) for event in events]
        return await self._settle([self._create("calendar_events", e) for e in drafts])

    async def delete_calendar_event(self, event_id: str) -> None:
        await self._delete("calendar_events", [event_id])

    # --- Exams ---

    def _scored(self, exam: Exam) -> Exam:
        subjects = [
            s.model_copy(update={"net_score": transforms.net_score(s.correct, s.incorrect)})
            for s in exam.subjects
        ]
        return exam.model_copy(update={
            "net_score": transforms.net_score(exam.correct, exam.incorrect),
            "subjects": subjects,
        })

    async def add_exam(self, **fields) -> Exam:
        exam = self._scored(self._build(Exam, id=new_id(), **fields))
        return await self._create("exams", exam)

    async def update_exam(self, exam: Exam) -> Optional[Exam]:
        return await self._update("exams", self._scored(exam))

    async def delete_exam(self, exam_id: str) -> None:
        await self._delete("exams", [exam_id])

    # --- Questions ---

    async def add_question(self, **fields) -> Question:
        if "creator_id" not in fields and self.current_user is not None:
            fields["creator_id"] = self.current_user.id
        return await self._create("questions", self._build(Question, id=new_id(), **fields))

    async def update_question(self, question: Question) -> Optional[Question]:
        return await self._update("questions", question)

    async def delete_question(self, question_id: str) -> None:
        await self._delete("questions", [question_id])

    # --- Badges ---

    async def update_badge(self, badge: Badge) -> Optional[Badge]:
        return await self._update("badges", badge)

    # --- Files ---

    async def upload_file(self, path) -> str:
        """Inline a local file as a data URL."""
        try:
            return await asyncio.to_thread(encode_data_url, path)
        except OSError as e:
            logger.error(f"Could not read {path}: {e}")
            self._reject("The file could not be read.")

    # --- Derived views ---

    def _grouped_messages(self) -> Dict[str, List[Message]]:
        return self._memoized(
            "grouped_messages", ["messages"],
            lambda: views.group_messages(self._collections["messages"]),
        )

    @property
    def coach(self) -> Optional[User]:
        return self._memoized("coach", ["users"], lambda: views.coach_for(self.current_user, self._collections["users"]))

    @property
    def students(self) -> List[User]:
        return self._memoized("students", ["users"], lambda: views.students_for(self.current_user, self._collections["users"]))

    @property
    def last_messages(self) -> Dict[str, Message]:
        return self._memoized("last_messages", ["messages"], lambda: views.last_messages(self._grouped_messages()))

    @property
    def unread_counts(self) -> Dict[str, int]:
        user_id = self.current_user.id if self.current_user else None
        return self._memoized(
            "unread_counts", ["messages", "conversations"],
            lambda: views.unread_counts(self._collections["conversations"], self._grouped_messages(), user_id),
        )

    @property
    def sorted_conversations(self) -> List[Conversation]:
        return self._memoized(
            "sorted_conversations", ["messages", "conversations"],
            lambda: views.sort_conversations(self._collections["conversations"], self.last_messages),
        )

    @property
    def visible_conversations(self) -> List[Conversation]:
        user_id = self.current_user.id if self.current_user else None
        return views.visible_conversations(self.sorted_conversations, user_id)

    def messages_for_conversation(self, conversation_id: str) -> List[Message]:
        return list(self._grouped_messages().get(conversation_id, []))

    def assignments_for_student(self, student_id: str) -> List[Assignment]:
        return views.assignments_for_student(self._collections["assignments"], student_id)

    def goals_for_student(self, student_id: str) -> List[Goal]:
        return views.goals_for_student(self._collections["goals"], student_id)

    def notifications_for_user(self, user_id: str) -> List[Notification]:
        return views.notifications_for_user(self._collections["notifications"], user_id)
