from __future__ import annotations

from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


QuestionType = Literal["clue", "fill-blank", "guess-image", "event-order", "matching"]
RecommendableType = Literal["clue", "fill-blank", "guess-image", "event-order"]
Difficulty = Literal[1, 2, 3]
Language = Literal["zh", "en"]
KnowledgeCategory = Literal["person", "event", "concept", "place", "invention", "process", "time"]
GuessType = Literal["movie", "person", "place", "object", "other"]
LogStatus = Literal["running", "success", "error"]

QUESTION_TYPES: List[str] = ["clue", "fill-blank", "guess-image", "event-order", "matching"]
RECOMMENDABLE_TYPES: List[str] = ["clue", "fill-blank", "guess-image", "event-order"]
LANGUAGES: List[str] = ["zh", "en"]


def _coerce_difficulty(value: Any) -> Any:
    if isinstance(value, str) and value.strip().isdigit():
        return int(value.strip())
    return value


class CamelModel(BaseModel):
    """Snake_case in Python, camelCase on the wire; both accepted on input."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_json_dict(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


# ---- request / config ----

class GenerationConfig(CamelModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    topic: str = Field(min_length=1, max_length=200)
    count: int = Field(default=5, ge=1, le=20)
    difficulty: Optional[Difficulty] = None
    include_types: Optional[List[QuestionType]] = None
    language: Language = "zh"

    @field_validator("topic", mode="before")
    @classmethod
    def strip_topic(cls, value: Any) -> Any:
        if isinstance(value, str):
            return value.strip()
        return value

    @field_validator("difficulty", mode="before")
    @classmethod
    def normalize_difficulty(cls, value: Any) -> Any:
        return _coerce_difficulty(value)


# ---- breakdown ----

class KnowledgePoint(CamelModel):
    name: str = Field(min_length=1)
    category: KnowledgeCategory = "concept"
    description: str = ""
    difficulty: Difficulty = 2
    recommended_types: List[RecommendableType] = Field(min_length=1)

    @field_validator("difficulty", mode="before")
    @classmethod
    def normalize_difficulty(cls, value: Any) -> Any:
        return _coerce_difficulty(value)

    @field_validator("recommended_types")
    @classmethod
    def dedupe_types(cls, value: List[str]) -> List[str]:
        seen: List[str] = []
        for t in value:
            if t not in seen:
                seen.append(t)
        return seen


class KnowledgeBreakdown(CamelModel):
    main_category: KnowledgeCategory = "concept"
    points: List[KnowledgePoint] = Field(min_length=1, max_length=20)


# ---- structured drafts the model fills in ----

class ClueDraft(CamelModel):
    clues: List[str] = Field(min_length=3)
    answer: str = Field(min_length=1)
    tags: List[str] = Field(default_factory=list)
    hints: Optional[List[str]] = None
    explanation: Optional[str] = None


class Blank(CamelModel):
    position: int = Field(ge=0)
    correct_answer: str = Field(min_length=1)
    options: Optional[List[str]] = None


class FillBlankDraft(CamelModel):
    sentence: str = Field(min_length=1)
    blanks: List[Blank] = Field(min_length=1, max_length=5)
    tags: List[str] = Field(default_factory=list)
    hints: Optional[List[str]] = None
    explanation: Optional[str] = None


class GuessImageDraft(CamelModel):
    image_prompt: Optional[str] = Field(default=None, min_length=10)
    image_description: str = Field(min_length=1)
    guess_type: GuessType = "other"
    answer: str = Field(min_length=1)
    tags: List[str] = Field(default_factory=list)
    hints: Optional[List[str]] = None
    explanation: Optional[str] = None


class OrderEvent(CamelModel):
    id: str = Field(min_length=1)
    description: str = Field(min_length=1)
    date: Optional[str] = None

    @field_validator("date", mode="before")
    @classmethod
    def date_as_text(cls, value: Any) -> Any:
        # models sometimes answer with a bare year
        if isinstance(value, int):
            return str(value)
        return value


class EventOrderDraft(CamelModel):
    events: List[OrderEvent] = Field(min_length=3)
    correct_order: List[str] = Field(min_length=3)
    tags: List[str] = Field(default_factory=list)
    hints: Optional[List[str]] = None
    explanation: Optional[str] = None


class MatchItem(CamelModel):
    id: str = Field(min_length=1)
    content: str = Field(min_length=1)


class MatchPair(CamelModel):
    left_id: str
    right_id: str


class MatchingDraft(CamelModel):
    left_items: List[MatchItem] = Field(min_length=2)
    right_items: List[MatchItem] = Field(min_length=2)
    correct_pairs: List[MatchPair] = Field(min_length=1)
    tags: List[str] = Field(default_factory=list)
    hints: Optional[List[str]] = None
    explanation: Optional[str] = None


# ---- emitted questions ----

class _QuestionBase(CamelModel):
    id: str
    knowledge_point: str
    difficulty: Difficulty
    tags: List[str] = Field(default_factory=list)
    hints: Optional[List[str]] = None
    explanation: Optional[str] = None


class ClueQuestion(_QuestionBase):
    type: Literal["clue"] = "clue"
    clues: List[str]
    answer: str


class FillBlankQuestion(_QuestionBase):
    type: Literal["fill-blank"] = "fill-blank"
    sentence: str
    blanks: List[Blank]


class GuessImageQuestion(_QuestionBase):
    type: Literal["guess-image"] = "guess-image"
    image_prompt: Optional[str] = None
    image_description: str
    image_url: Optional[str] = None
    guess_type: GuessType
    answer: str


class EventOrderQuestion(_QuestionBase):
    type: Literal["event-order"] = "event-order"
    events: List[OrderEvent]
    correct_order: List[str]


class MatchingQuestion(_QuestionBase):
    type: Literal["matching"] = "matching"
    left_items: List[MatchItem]
    right_items: List[MatchItem]
    correct_pairs: List[MatchPair]


Question = Annotated[
    Union[ClueQuestion, FillBlankQuestion, GuessImageQuestion, EventOrderQuestion, MatchingQuestion],
    Field(discriminator="type"),
]

DRAFT_SCHEMAS: Dict[str, type[CamelModel]] = {
    "clue": ClueDraft,
    "fill-blank": FillBlankDraft,
    "guess-image": GuessImageDraft,
    "event-order": EventOrderDraft,
    "matching": MatchingDraft,
}

QUESTION_MODELS: Dict[str, type[_QuestionBase]] = {
    "clue": ClueQuestion,
    "fill-blank": FillBlankQuestion,
    "guess-image": GuessImageQuestion,
    "event-order": EventOrderQuestion,
    "matching": MatchingQuestion,
}


# ---- type recommendation ----

class TypeMatch(CamelModel):
    recommended_type: Literal["clue", "fill-blank", "guess-image", "event-order", "matching", "none", "multiple"]
    confidence: float = Field(ge=0, le=1)
    alternative_types: List[str] = Field(default_factory=list)
    reason: str


# ---- pipeline output ----

class PipelineLog(CamelModel):
    step: str
    status: LogStatus
    timestamp: int
    duration: Optional[int] = None
    details: Optional[Dict[str, Any]] = None
    prompt: Optional[str] = None
    response: Optional[Any] = None
    error: Optional[str] = None


class Usage(CamelModel):
    input_tokens: int = 0
    output_tokens: int = 0

    def __add__(self, other: "Usage") -> "Usage":
        return Usage(
            input_tokens=self.input_tokens + other.input_tokens,
            output_tokens=self.output_tokens + other.output_tokens,
        )


class GenerationFailure(CamelModel):
    knowledge_point: str
    question_type: str
    error: str


class GenerationResult(CamelModel):
    breakdown: KnowledgeBreakdown
    questions: List[Question] = Field(default_factory=list)
    failures: List[GenerationFailure] = Field(default_factory=list)
    questions_by_type: Dict[str, int] = Field(default_factory=dict)
    total_generated: int = 0
    generation_time: int = 0
    usage: Usage = Field(default_factory=Usage)
    cost: Optional[str] = None
