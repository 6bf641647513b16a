import re
from typing import Any, List, Literal, Optional

from pydantic import BaseModel, Field, field_validator, model_validator

Difficulty = Literal["easy", "medium", "hard"]
AnswerLetter = Literal["A", "B", "C", "D"]

OPTION_LETTERS = ("A", "B", "C", "D")

# "B", "b", "B)", "(B)", "B.", "B:"
_LETTER_RE = re.compile(r"\(?([A-Da-d])[).:]?")


def normalize_answer(answer: Any, options: Any = None) -> Any:
    """Map an answer to its option letter when it can be read unambiguously; otherwise return it unchanged."""
    if not isinstance(answer, str):
        return answer
    token = answer.strip()
    m = _LETTER_RE.fullmatch(token)
    if m:
        return m.group(1).upper()
    if isinstance(options, list):
        texts = [o.strip() if isinstance(o, str) else o for o in options[: len(OPTION_LETTERS)]]
        if token in texts:
            return OPTION_LETTERS[texts.index(token)]
    return answer


class ArticleText(BaseModel):
    title: str
    body: str


class QuizItem(BaseModel):
    question: str
    options: List[str] = Field(min_length=4, max_length=4)
    answer: AnswerLetter
    difficulty: Difficulty
    explanation: str

    @model_validator(mode="before")
    @classmethod
    def _answer_to_letter(cls, data: Any) -> Any:
        if isinstance(data, dict) and "answer" in data:
            data = {**data, "answer": normalize_answer(data["answer"], data.get("options"))}
        return data

    @field_validator("difficulty", mode="before")
    @classmethod
    def _lower_difficulty(cls, v: Any) -> Any:
        return v.strip().lower() if isinstance(v, str) else v


class KeyEntities(BaseModel):
    people: List[str] = []
    organizations: List[str] = []
    locations: List[str] = []

    @field_validator("*", mode="before")
    @classmethod
    def _none_as_empty(cls, v: Any) -> Any:
        return [] if v is None else v


class QuizPayload(BaseModel):
    title: str
    summary: str
    key_entities: KeyEntities = Field(default_factory=KeyEntities)
    sections: List[str] = []
    quiz: List[QuizItem] = Field(min_length=1)
    related_topics: List[str] = []
    wikipedia_url: Optional[str] = None

    @field_validator("sections", "related_topics", mode="before")
    @classmethod
    def _none_as_empty(cls, v: Any) -> Any:
        return [] if v is None else v

    @field_validator("key_entities", mode="before")
    @classmethod
    def _none_as_no_entities(cls, v: Any) -> Any:
        return {} if v is None else v


class GenerateBody(BaseModel):
    # Shape checks happen in the pipeline so the caller gets its specific message.
    wikipediaUrl: Optional[str] = None


class AttemptBody(BaseModel):
    answers: List[AnswerLetter]

    @field_validator("answers", mode="before")
    @classmethod
    def _upper_letters(cls, v: Any) -> Any:
        if isinstance(v, list):
            return [normalize_answer(a) for a in v]
        return v
