from __future__ import annotations

from typing import Dict, List, Optional


class PipelineError(Exception):
    """Base class for question-generation failures."""


class ConfigValidationError(PipelineError):
    def __init__(self, errors: List[Dict[str, str]]) -> None:
        self.errors = errors
        summary = "; ".join(f"{e['field']}: {e['message']}" for e in errors)
        super().__init__(f"Invalid generation config: {summary}")

    @property
    def fields(self) -> List[str]:
        return [e["field"] for e in self.errors]


class BreakdownError(PipelineError):
    """Knowledge decomposition failed; nothing downstream can run."""


class ItemGenerationError(PipelineError):
    def __init__(self, message: str, *, knowledge_point: str, question_type: str) -> None:
        self.knowledge_point = knowledge_point
        self.question_type = question_type
        super().__init__(message)


class ImageGenerationError(PipelineError):
    def __init__(self, message: str, *, request_id: Optional[str] = None) -> None:
        self.request_id = request_id
        super().__init__(message)
