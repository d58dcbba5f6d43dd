import logging
from typing import Any, Dict, List, Optional, Sequence

from pydantic import ValidationError

from .gateway import GatewayError, PersistenceGateway
from .schemas import (
    AssignmentTemplateDraft,
    ChatTurn,
    ChecklistSuggestion,
    ExamDetailsDraft,
    GoalDraft,
    GradeSuggestion,
    QuestionDraft,
    StudyPlan,
    StudyPlanEntry,
)

logger = logging.getLogger(__name__)

DESCRIPTION_FALLBACK = "Something went wrong while generating the description. Please try again later."
FEEDBACK_FALLBACK = "Something went wrong while generating feedback. Please try again later."
CHAT_FALLBACK = "Sorry, I can't answer right now. Please try again in a moment."

STUDY_BUDDY_INSTRUCTION = (
    "You are a patient study buddy for a high-school student preparing for university entrance exams. "
    "Guide the student towards the answer with questions and hints instead of solving everything for them."
)


class AssistAdapter:
    """Content generation through the AI proxy routes.

    Calls are quiet: a failure is logged and answered with a fallback value
    rather than surfaced as an error toast.
    """

    def __init__(self, gateway: PersistenceGateway):
        self.gateway = gateway

    async def _text(self, prompt: str, temperature: Optional[float] = None) -> Optional[str]:
        try:
            response = await self.gateway.post(
                "/api/ai/generateText",
                json={"prompt": prompt, "temperature": temperature},
                quiet=True,
            )
            return response.json()["result"]
        except (GatewayError, KeyError, ValueError) as e:
            logger.error(f"Text generation failed: {e}")
            return None

    async def _json(self, prompt: str, schema: str) -> Optional[Dict[str, Any]]:
        try:
            response = await self.gateway.post(
                "/api/ai/generateJson",
                json={"prompt": prompt, "schema": schema},
                quiet=True,
            )
            return response.json()["result"]
        except (GatewayError, KeyError, ValueError) as e:
            logger.error(f"{schema} generation failed: {e}")
            return None

    async def generate_assignment_description(self, title: str) -> str:
        prompt = (
            f'As a study coach, write a clear and motivating description for an assignment titled "{title}". '
            "Cover the goal of the assignment, what is expected and how it will be evaluated."
        )
        return await self._text(prompt, temperature=0.7) or DESCRIPTION_FALLBACK

    async def generate_smart_feedback(self, grade: int, assignment_title: str) -> str:
        prompt = (
            f'A student scored {grade} out of 100 on "{assignment_title}". Write constructive, encouraging feedback.\n'
            "- High grade (85+): praise their strengths and suggest one way to improve further.\n"
            "- Average grade (60-84): name what went well and what needs work, in an encouraging tone.\n"
            "- Low grade (<60): focus on the core gaps without discouraging them and offer concrete next steps.\n"
            "Keep the tone supportive and personal."
        )
        return await self._text(prompt, temperature=0.8) or FEEDBACK_FALLBACK

    async def generate_assignment_checklist(self, title: str, description: str) -> List[str]:
        prompt = (
            f'Break the assignment "{title}" into 3 to 6 short, checkable steps a student can tick off.\n'
            f"Description: {description}"
        )
        data = await self._json(prompt, "checklist")
        if data is None:
            return []
        try:
            return [item.text for item in ChecklistSuggestion.model_validate(data).items]
        except ValidationError as e:
            logger.error(f"Malformed checklist: {e}")
            return []

    async def suggest_grade(self, title: str, submission: str) -> Optional[GradeSuggestion]:
        prompt = (
            f'Suggest a grade from 0 to 100 for this submission to "{title}" and explain it in one or two sentences.\n'
            f"Submission: {submission}"
        )
        data = await self._json(prompt, "gradeSuggestion")
        if data is None:
            return None
        try:
            return GradeSuggestion.model_validate(data)
        except ValidationError as e:
            logger.error(f"Malformed grade suggestion: {e}")
            return None

    async def generate_template(self, topic: str) -> Optional[AssignmentTemplateDraft]:
        prompt = f"Draft a reusable assignment template about {topic}, with a title, a description and a checklist."
        data = await self._json(prompt, "assignmentTemplate")
        if data is None:
            return None
        try:
            return AssignmentTemplateDraft.model_validate(data)
        except ValidationError as e:
            logger.error(f"Malformed template: {e}")
            return None

    async def generate_study_plan(self, goals: str, start_date: str, days: int = 7) -> List[StudyPlanEntry]:
        prompt = (
            f"Create a {days}-day study plan starting on {start_date} (ISO dates) for a student with these goals: {goals}. "
            "Give each session a title, a date and optional start and end times in HH:MM."
        )
        data = await self._json(prompt, "studyPlan")
        if data is None:
            return []
        try:
            return StudyPlan.model_validate(data).items
        except ValidationError as e:
            logger.error(f"Malformed study plan: {e}")
            return []

    async def generate_goal_with_milestones(self, goal_title: str) -> Optional[GoalDraft]:
        prompt = f'Turn the goal "{goal_title}" into a one-sentence description and 3 to 5 concrete milestones.'
        data = await self._json(prompt, "goalWithMilestones")
        if data is None:
            return None
        try:
            return GoalDraft.model_validate(data)
        except ValidationError as e:
            logger.error(f"Malformed goal draft: {e}")
            return None

    async def generate_exam_details(self, category: str, topic: str) -> Optional[ExamDetailsDraft]:
        prompt = f"Propose a practice exam for {category}, topic {topic}: title, description, question count and a due date."
        data = await self._json(prompt, "examDetails")
        if data is None:
            return None
        try:
            return ExamDetailsDraft.model_validate(data)
        except ValidationError as e:
            logger.error(f"Malformed exam details: {e}")
            return None

    async def generate_question(self, category: str, topic: str, difficulty: str) -> Optional[QuestionDraft]:
        prompt = (
            f"Write one {difficulty} multiple-choice question on {topic} ({category}) with five options, "
            "the index of the correct option and a short explanation."
        )
        data = await self._json(prompt, "question")
        if data is None:
            return None
        try:
            draft = QuestionDraft.model_validate(data)
        except ValidationError as e:
            logger.error(f"Malformed question: {e}")
            return None
        if not 0 <= draft.correct_option_index < len(draft.options):
            logger.error(f"Generated question points at missing option {draft.correct_option_index}")
            return None
        return draft

    async def study_buddy_chat(self, history: Sequence[ChatTurn], system_instruction: str = STUDY_BUDDY_INSTRUCTION) -> str:
        body = {
            "history": [turn.model_dump(by_alias=True) for turn in history],
            "systemInstruction": system_instruction,
        }
        try:
            response = await self.gateway.post("/api/ai/chat", json=body, quiet=True)
            return response.json()["text"]
        except (GatewayError, KeyError, ValueError) as e:
            logger.error(f"Study buddy chat failed: {e}")
            return CHAT_FALLBACK
