import base64
import logging
import mimetypes
import re
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Union

logger = logging.getLogger(__name__)


def new_id() -> str:
    return str(uuid.uuid4())


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


def parse_timestamp(value: str) -> datetime:
    """Parse an ISO-8601 timestamp (``Z`` suffix allowed) into an aware datetime.

    Naive values are taken as UTC so that every timestamp compares.
    """
    if value.endswith("Z"):
        value = value[:-1] + "+00:00"
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def timestamp_millis(value: str) -> int:
    return int(parse_timestamp(value).timestamp() * 1000)


def encode_data_url(path: Union[str, Path]) -> str:
    """Read a local file into a ``data:`` URL."""
    path = Path(path)
    mime_type = mimetypes.guess_type(path.name)[0] or "application/octet-stream"
    encoded = base64.b64encode(path.read_bytes()).decode("ascii")
    return f"data:{mime_type};base64,{encoded}"


def extract_json_from_response(response: str) -> str:
    """
    Extracts JSON from a response that may be wrapped in markdown code blocks.
    Handles both ```json and ``` formats, and falls back to the outermost braces.
    """
    logger.debug(f"Extracting JSON from a {len(response)} character response")

    # First try to find JSON wrapped in markdown code blocks
    match = re.search(r"```(?:json)?\s*(\{.*?\})\s*```", response, re.DOTALL)
    if match:
        return match.group(1)

    # If no markdown found, try to find JSON between curly braces
    start = response.find('{')
    end = response.rfind('}')
    if start != -1 and end != -1 and start < end:
        return response[start:end + 1]

    preview = response[:200] + "..." if len(response) > 200 else response
    logger.error(f"No valid JSON found in response: {preview}")
    raise ValueError("No valid JSON object found in response")
