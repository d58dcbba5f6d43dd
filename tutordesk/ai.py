import json
import logging
from typing import Any, Dict, List, Optional

from openai import AsyncOpenAI

from .config import settings
from .schemas import AI_SCHEMAS, ChatTurn
from .utils import extract_json_from_response

logger = logging.getLogger(__name__)

_client: Optional[AsyncOpenAI] = None


def get_client() -> AsyncOpenAI:
    global _client
    if _client is None:
        if not settings.openai_api_key:
            raise RuntimeError("OPENAI_API_KEY not set")
        _client = AsyncOpenAI(api_key=settings.openai_api_key)
    return _client


async def generate_text(prompt: str, temperature: Optional[float] = None) -> str:
    response = await get_client().chat.completions.create(
        model=settings.openai_model,
        messages=[{"role": "user", "content": prompt}],
        temperature=temperature if temperature is not None else 0.2,
    )
    return response.choices[0].message.content or ""


async def generate_json(prompt: str, schema_name: str, max_retries: int = 2) -> Dict[str, Any]:
    """
    Asks the model for a JSON object shaped like the named schema, validates it,
    and retries if needed. Raises ValueError after the last failed attempt.
    """
    model = AI_SCHEMAS[schema_name]
    schema_hint = json.dumps(model.model_json_schema(by_alias=True))
    messages = [
        {
            "role": "system",
            "content": "Respond with a single JSON object that matches this JSON schema:\n" + schema_hint,
        },
        {"role": "user", "content": prompt},
    ]

    for attempt in range(max_retries):
        response = await get_client().chat.completions.create(
            model=settings.openai_model,
            messages=messages,
            response_format={"type": "json_object"},
        )
        raw = response.choices[0].message.content or ""
        try:
            data = json.loads(extract_json_from_response(raw))
            return model.model_validate(data).model_dump(by_alias=True)
        except ValueError as e:
            # JSONDecodeError and pydantic's ValidationError are both ValueErrors
            logger.error(f"{schema_name} validation failed on attempt {attempt + 1}: {e}")

    raise ValueError(f"Failed to get a valid {schema_name} response after {max_retries} attempts")


async def chat(history: List[ChatTurn], system_instruction: Optional[str] = None) -> str:
    messages = []
    if system_instruction:
        messages.append({"role": "system", "content": system_instruction})
    for turn in history:
        role = "user" if turn.role == "user" else "assistant"
        messages.append({"role": role, "content": turn.text})

    response = await get_client().chat.completions.create(
        model=settings.openai_model,
        messages=messages,
        temperature=0.7,
    )
    return response.choices[0].message.content or ""
