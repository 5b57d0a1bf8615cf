"""Turn free-form LLM output into generated quiz questions.

The model is asked for a bare JSON array but often wraps it in a markdown
code fence or adds a sentence around it. The array is cut out by bracket
matching, parsed, and each entry is checked against ``GeneratedQuestion``.
Entries that fail the check are dropped; nothing is repaired.
"""
import json
import logging
import re
from dataclasses import dataclass, field
from typing import Any, List, Optional

from pydantic import BaseModel, Field, StrictInt, ValidationError, field_validator

from edutrack.errors import QuizParseError

logger = logging.getLogger(__name__)

_FENCE_JSON = re.compile(r"```json\n?")
_FENCE = re.compile(r"```\n?")


class GeneratedQuestion(BaseModel):
    question: str
    options: List[str] = Field(min_length=4, max_length=4)
    correctAnswer: StrictInt = Field(ge=0, le=3)
    explanation: str

    @field_validator("options", mode="before")
    @classmethod
    def numbers_as_text(cls, value: Any) -> Any:
        if isinstance(value, list):
            return [str(v) if isinstance(v, (int, float)) and not isinstance(v, bool) else v for v in value]
        return value

    @field_validator("question", "explanation")
    @classmethod
    def not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("must not be empty")
        return value


@dataclass
class EntryCheck:
    index: int
    valid: bool
    question: Optional[GeneratedQuestion] = None
    errors: List[str] = field(default_factory=list)


def strip_code_fences(text: str) -> str:
    return _FENCE.sub("", _FENCE_JSON.sub("", text))


def find_json_array(text: str) -> Optional[str]:
    """Return the first balanced ``[...]`` span, ignoring brackets inside strings."""
    start = text.find("[")
    if start == -1:
        return None

    depth = 0
    in_string = False
    escaped = False
    for i in range(start, len(text)):
        ch = text[i]
        if in_string:
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == '"':
                in_string = False
            continue
        if ch == '"':
            in_string = True
        elif ch == "[":
            depth += 1
        elif ch == "]":
            depth -= 1
            if depth == 0:
                return text[start:i + 1]
    return None


def check_entry(index: int, entry: Any) -> EntryCheck:
    if not isinstance(entry, dict):
        return EntryCheck(index=index, valid=False, errors=["entry is not an object"])
    try:
        question = GeneratedQuestion.model_validate(entry)
    except ValidationError as exc:
        errors = [f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in exc.errors()]
        return EntryCheck(index=index, valid=False, errors=errors)
    return EntryCheck(index=index, valid=True, question=question)


def check_entries(text: str) -> List[EntryCheck]:
    cleaned = strip_code_fences(text.strip())
    candidate = find_json_array(cleaned) or cleaned

    try:
        data = json.loads(candidate)
    except ValueError as exc:
        raise QuizParseError(f"Response is not valid JSON: {exc}") from exc

    if not isinstance(data, list):
        raise QuizParseError("Response is not a JSON array")

    return [check_entry(i, entry) for i, entry in enumerate(data)]


def extract_quiz_questions(text: str) -> List[GeneratedQuestion]:
    checks = check_entries(text)
    dropped = [c for c in checks if not c.valid]
    if dropped:
        logger.info("Dropped %d malformed quiz entries: %s", len(dropped), [c.index for c in dropped])
    return [c.question for c in checks if c.valid]
