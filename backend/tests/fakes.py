"""Fakes for the model and image providers plus canned question payloads."""
import asyncio
from typing import Any, Callable, Dict, List, Optional

from quizgame.fal_image import ImageResult
from quizgame.gemini_client import StructuredOutput
from quizgame.pipeline import QuestionPipeline
from quizgame.schemas import (
    ClueDraft,
    EventOrderDraft,
    FillBlankDraft,
    GuessImageDraft,
    KnowledgeBreakdown,
    MatchingDraft,
    Usage,
)


CLUE = {
    "clues": ["He lived in the 19th century", "He held over 1000 patents", "He founded a lab in Menlo Park", "He made the light bulb practical"],
    "answer": "Edison",
    "tags": ["person", "inventor"],
    "explanation": "Thomas Edison (1847-1931)",
}

FILL_BLANK = {
    "sentence": "Newton's ____ law relates force, mass and ____.",
    "blanks": [
        {"position": 0, "correctAnswer": "second", "options": ["first", "second", "third"]},
        {"position": 1, "correctAnswer": "acceleration"},
    ],
    "tags": ["physics"],
}

GUESS_IMAGE = {
    "imagePrompt": "A bearded man in a dark waistcoat holding a glowing glass bulb in a cluttered 1880s laboratory",
    "imageDescription": "A man holding a glowing bulb in an old laboratory",
    "guessType": "person",
    "answer": "Edison",
    "tags": ["person"],
}

EVENT_ORDER = {
    "events": [
        {"id": "event_1", "description": "Phonograph invented", "date": "1877"},
        {"id": "event_2", "description": "Practical light bulb", "date": 1879},
        {"id": "event_3", "description": "Pearl Street Station opens", "date": "1882"},
    ],
    "correctOrder": ["event_1", "event_2", "event_3"],
    "tags": ["history"],
}

MATCHING = {
    "leftItems": [{"id": "left-1", "content": "Edison"}, {"id": "left-2", "content": "Bell"}],
    "rightItems": [{"id": "right-1", "content": "Telephone"}, {"id": "right-2", "content": "Phonograph"}],
    "correctPairs": [{"leftId": "left-1", "rightId": "right-2"}, {"leftId": "left-2", "rightId": "right-1"}],
    "tags": ["inventors"],
}

DRAFTS: Dict[type, Dict[str, Any]] = {
    ClueDraft: CLUE,
    FillBlankDraft: FILL_BLANK,
    GuessImageDraft: GUESS_IMAGE,
    EventOrderDraft: EVENT_ORDER,
    MatchingDraft: MATCHING,
}


def breakdown_of(*points: Dict[str, Any], main_category: str = "person") -> Dict[str, Any]:
    return {"mainCategory": main_category, "points": list(points)}


class FakeLLM:
    """Answers structured calls from canned payloads.

    ``breakdown`` is returned for the breakdown schema; question drafts come
    from ``DRAFTS`` unless ``handler`` overrides. A payload that is an
    Exception instance is raised instead.
    """

    model = "gemini-2.5-flash"

    def __init__(self, breakdown: Any, handler: Optional[Callable[[str, type], Any]] = None) -> None:
        self.breakdown = breakdown
        self.handler = handler
        self.calls: List[type] = []
        self.prompts: List[str] = []
        self.closed = False

    async def generate_object(self, prompt: str, schema: type) -> StructuredOutput:
        self.calls.append(schema)
        self.prompts.append(prompt)
        if schema is KnowledgeBreakdown:
            data = self.breakdown
        elif self.handler is not None:
            data = self.handler(prompt, schema)
        else:
            data = DRAFTS[schema]
        if isinstance(data, Exception):
            raise data
        return StructuredOutput(object=schema.model_validate(data), usage=Usage(input_tokens=100, output_tokens=50))

    async def aclose(self) -> None:
        self.closed = True


class FakeImages:
    def __init__(self, result: Optional[ImageResult] = None) -> None:
        self.result = result or ImageResult(success=True, image_url="https://cdn.example/img.png", width=1024, height=576)
        self.calls: List[Dict[str, Any]] = []

    async def generate(self, prompt: str, *, image_size: str, num_inference_steps: int) -> ImageResult:
        self.calls.append({"prompt": prompt, "image_size": image_size, "num_inference_steps": num_inference_steps})
        return self.result


class RecordingSleep:
    def __init__(self) -> None:
        self.delays: List[float] = []

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)


def collect(pipeline: QuestionPipeline, payload: Any) -> list:
    async def _drain():
        return [log async for log in pipeline.stream(payload)]

    return asyncio.run(_drain())
