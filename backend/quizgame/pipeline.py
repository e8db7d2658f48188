"""Topic -> knowledge points -> questions, reported as a stream of PipelineLog events."""
from __future__ import annotations

import asyncio
import logging
import time
import uuid
from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Awaitable, Callable, Dict, List, Optional, Protocol, Tuple

from pydantic import ValidationError

from . import prompts
from .errors import BreakdownError, ConfigValidationError, ImageGenerationError, ItemGenerationError
from .fal_image import ImageResult
from .pricing import PricingCache, format_cost
from .schemas import (
    DRAFT_SCHEMAS,
    QUESTION_MODELS,
    GenerationConfig,
    GenerationFailure,
    GenerationResult,
    GuessImageQuestion,
    KnowledgeBreakdown,
    KnowledgePoint,
    PipelineLog,
    Question,
    Usage,
)
from .validation import check_draft

logger = logging.getLogger(__name__)

STEP_CONFIG = "配置验证"
STEP_BREAKDOWN = "知识点拆解"
STEP_QUESTIONS = "题目生成"
STEP_COMPLETE = "完成"
STEP_ERROR = "错误"

ID_PREFIXES: Dict[str, str] = {
    "clue": "clue",
    "fill-blank": "fill",
    "guess-image": "image",
    "event-order": "order",
    "matching": "matching",
}


def question_step(index: int) -> str:
    return f"生成题目 {index}"


def image_step(index: int) -> str:
    return f"生成图片 {index}"


class StructuredLLM(Protocol):
    async def generate_object(self, prompt: str, schema: Any) -> Any: ...


class ImageGenerator(Protocol):
    async def generate(self, prompt: str, *, image_size: str, num_inference_steps: int) -> ImageResult: ...


class RateLimiter:
    """Fixed pause between sequential provider calls."""

    def __init__(self, delay_seconds: float = 0.1, sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep) -> None:
        self.delay_seconds = max(0.0, delay_seconds)
        self._sleep = sleep

    async def wait(self) -> None:
        if self.delay_seconds > 0:
            await self._sleep(self.delay_seconds)


@dataclass(frozen=True)
class GenerationTask:
    index: int
    point: KnowledgePoint
    question_type: str


@dataclass
class _RunState:
    usage: Usage = field(default_factory=Usage)
    result: Optional[GenerationResult] = None


def _now_ms() -> int:
    return int(time.time() * 1000)


def validate_config(payload: Any) -> GenerationConfig:
    if isinstance(payload, GenerationConfig):
        return payload
    if not isinstance(payload, dict):
        raise ConfigValidationError([{"field": "body", "message": "request body must be a JSON object"}])
    try:
        return GenerationConfig.model_validate(payload)
    except ValidationError as exc:
        errors = []
        for err in exc.errors():
            loc = ".".join(str(part) for part in err["loc"]) or "body"
            errors.append({"field": loc, "message": err["msg"]})
        raise ConfigValidationError(errors) from exc


def plan_tasks(points: List[KnowledgePoint], include_types: Optional[List[str]] = None) -> List[GenerationTask]:
    tasks: List[GenerationTask] = []
    for point in points:
        types = point.recommended_types
        if include_types is not None:
            types = [t for t in types if t in include_types]
        for question_type in types:
            tasks.append(GenerationTask(index=len(tasks) + 1, point=point, question_type=question_type))
    return tasks


def new_question_id(question_type: str) -> str:
    return f"{ID_PREFIXES.get(question_type, 'q')}_{_now_ms()}_{uuid.uuid4().hex[:8]}"


def build_question(question_type: str, draft: Any, knowledge_point: str, difficulty: int) -> Question:
    model = QUESTION_MODELS[question_type]
    return model(
        id=new_question_id(question_type),
        knowledge_point=knowledge_point,
        difficulty=difficulty,
        **draft.model_dump(),
    )


def count_by_type(questions: List[Question]) -> Dict[str, int]:
    counts: Dict[str, int] = {}
    for q in questions:
        counts[q.type] = counts.get(q.type, 0) + 1
    return counts


class QuestionPipeline:
    def __init__(
        self,
        llm: StructuredLLM,
        image_generator: Optional[ImageGenerator] = None,
        *,
        rate_limiter: Optional[RateLimiter] = None,
        pricing: Optional[PricingCache] = None,
        image_size: str = "landscape_16_9",
        image_inference_steps: int = 50,
    ) -> None:
        self.llm = llm
        self.image_generator = image_generator
        self.rate_limiter = rate_limiter or RateLimiter()
        self.pricing = pricing
        self.image_size = image_size
        self.image_inference_steps = image_inference_steps

    # ---- stages ----

    async def breakdown(self, config: GenerationConfig) -> Tuple[KnowledgeBreakdown, Usage]:
        prompt = prompts.breakdown_prompt(config.topic, config.count, config.language)
        try:
            out = await self.llm.generate_object(prompt, KnowledgeBreakdown)
        except Exception as exc:
            raise BreakdownError(f"Knowledge breakdown failed: {exc}") from exc
        breakdown = out.object
        if len(breakdown.points) > config.count:
            breakdown = breakdown.model_copy(update={"points": breakdown.points[: config.count]})
        return breakdown, out.usage

    async def generate_question(
        self,
        point: KnowledgePoint,
        question_type: str,
        difficulty: int,
        language: str = "zh",
        *,
        prompt: Optional[str] = None,
    ) -> Tuple[Question, Usage]:
        if prompt is None:
            prompt = prompts.question_prompt(point, question_type, difficulty, language)
        try:
            out = await self.llm.generate_object(prompt, DRAFT_SCHEMAS[question_type])
            check_draft(question_type, out.object)
            question = build_question(question_type, out.object, point.name, difficulty)
        except Exception as exc:
            raise ItemGenerationError(str(exc) or exc.__class__.__name__, knowledge_point=point.name, question_type=question_type) from exc
        return question, out.usage

    async def attach_image(self, question: GuessImageQuestion) -> str:
        if self.image_generator is None:
            raise ImageGenerationError("FAL API key is required")
        try:
            result = await self.image_generator.generate(
                question.image_prompt or question.image_description,
                image_size=self.image_size,
                num_inference_steps=self.image_inference_steps,
            )
        except Exception as exc:
            raise ImageGenerationError(str(exc) or exc.__class__.__name__) from exc
        if not result.success or not result.image_url:
            raise ImageGenerationError(result.error or "Image generation failed", request_id=result.request_id)
        question.image_url = result.image_url
        return result.image_url

    # ---- reporting ----

    async def stream(self, payload: Any) -> AsyncIterator[PipelineLog]:
        """Yield progress events; ends with one ``完成`` or one ``错误`` event."""
        try:
            async for log in self._execute(payload, _RunState()):
                yield log
        except ConfigValidationError as exc:
            logger.info("Rejected generation config: %s", exc)
            yield PipelineLog(
                step=STEP_ERROR,
                status="error",
                timestamp=_now_ms(),
                details={"errors": exc.errors},
                error=str(exc),
            )
        except BreakdownError as exc:
            logger.error("%s", exc)
            yield PipelineLog(step=STEP_ERROR, status="error", timestamp=_now_ms(), error=str(exc))
        except Exception as exc:
            logger.exception("Generation run aborted")
            yield PipelineLog(
                step=STEP_ERROR,
                status="error",
                timestamp=_now_ms(),
                error=str(exc) or exc.__class__.__name__,
            )

    async def run(self, payload: Any) -> GenerationResult:
        """Run to completion without streaming; fatal errors propagate."""
        state = _RunState()
        async for _ in self._execute(payload, state):
            pass
        assert state.result is not None
        return state.result

    async def _execute(self, payload: Any, state: _RunState) -> AsyncIterator[PipelineLog]:
        started = _now_ms()
        config = validate_config(payload)
        yield PipelineLog(
            step=STEP_CONFIG,
            status="running",
            timestamp=_now_ms(),
            details={
                "topic": config.topic,
                "count": config.count,
                "difficulty": config.difficulty,
                "includeTypes": config.include_types,
                "language": config.language,
            },
        )
        yield PipelineLog(step=STEP_CONFIG, status="success", timestamp=_now_ms(), duration=_now_ms() - started)

        breakdown_started = _now_ms()
        yield PipelineLog(
            step=STEP_BREAKDOWN,
            status="running",
            timestamp=breakdown_started,
            details={"topic": config.topic, "count": config.count},
            prompt=prompts.breakdown_prompt(config.topic, config.count, config.language),
        )
        breakdown, usage = await self.breakdown(config)
        state.usage = state.usage + usage
        logger.info("Topic %r broken into %d knowledge points", config.topic, len(breakdown.points))
        yield PipelineLog(
            step=STEP_BREAKDOWN,
            status="success",
            timestamp=_now_ms(),
            duration=_now_ms() - breakdown_started,
            details={
                "totalPoints": len(breakdown.points),
                "mainCategory": breakdown.main_category,
                "points": [
                    {
                        "name": p.name,
                        "category": p.category,
                        "recommendedTypes": p.recommended_types,
                        "difficulty": p.difficulty,
                    }
                    for p in breakdown.points
                ],
            },
            response=breakdown.to_json_dict(),
        )

        tasks = plan_tasks(breakdown.points, config.include_types)
        questions_started = _now_ms()
        yield PipelineLog(
            step=STEP_QUESTIONS,
            status="running",
            timestamp=questions_started,
            details={"totalPoints": len(breakdown.points), "totalTasks": len(tasks)},
        )

        questions: List[Question] = []
        failures: List[GenerationFailure] = []
        for task in tasks:
            if task.index > 1:
                await self.rate_limiter.wait()
            async for log in self._run_task(task, config, state, questions, failures):
                yield log

        by_type = count_by_type(questions)
        yield PipelineLog(
            step=STEP_QUESTIONS,
            status="success",
            timestamp=_now_ms(),
            duration=_now_ms() - questions_started,
            details={"totalGenerated": len(questions), "questionsByType": by_type, "failed": len(failures)},
        )

        cost = None
        model = getattr(self.llm, "model", None)
        if self.pricing is not None and model:
            amount = self.pricing.calculate_cost(model, state.usage.input_tokens, state.usage.output_tokens)
            if amount is not None:
                cost = format_cost(amount)
        elapsed = _now_ms() - started
        state.result = GenerationResult(
            breakdown=breakdown,
            questions=questions,
            failures=failures,
            questions_by_type=by_type,
            total_generated=len(questions),
            generation_time=elapsed,
            usage=state.usage,
            cost=cost,
        )
        logger.info("Generated %d questions (%d failed) in %d ms", len(questions), len(failures), elapsed)
        yield PipelineLog(
            step=STEP_COMPLETE,
            status="success",
            timestamp=_now_ms(),
            duration=elapsed,
            details={
                "totalTime": elapsed,
                "totalQuestions": len(questions),
                "totalGenerated": len(questions),
                "result": state.result.to_json_dict(),
            },
        )

    async def _run_task(
        self,
        task: GenerationTask,
        config: GenerationConfig,
        state: _RunState,
        questions: List[Question],
        failures: List[GenerationFailure],
    ) -> AsyncIterator[PipelineLog]:
        step = question_step(task.index)
        difficulty = config.difficulty or task.point.difficulty
        prompt = prompts.question_prompt(task.point, task.question_type, difficulty, config.language)
        yield PipelineLog(
            step=step,
            status="running",
            timestamp=_now_ms(),
            details={"knowledgePoint": task.point.name, "questionType": task.question_type},
            prompt=prompt,
        )
        item_started = _now_ms()
        try:
            question, usage = await self.generate_question(
                task.point, task.question_type, difficulty, config.language, prompt=prompt
            )
        except ItemGenerationError as exc:
            logger.warning("Question %d (%s / %s) failed: %s", task.index, task.point.name, task.question_type, exc)
            failures.append(
                GenerationFailure(knowledge_point=task.point.name, question_type=task.question_type, error=str(exc))
            )
            yield PipelineLog(
                step=step,
                status="error",
                timestamp=_now_ms(),
                duration=_now_ms() - item_started,
                details={"knowledgePoint": task.point.name, "questionType": task.question_type},
                error=str(exc),
            )
            return
        state.usage = state.usage + usage

        if isinstance(question, GuessImageQuestion) and question.image_prompt:
            image_started = _now_ms()
            yield PipelineLog(
                step=image_step(task.index),
                status="running",
                timestamp=image_started,
                details={"imagePrompt": question.image_prompt},
            )
            try:
                url = await self.attach_image(question)
            except ImageGenerationError as exc:
                logger.warning("Image for question %d unavailable: %s", task.index, exc)
                yield PipelineLog(
                    step=image_step(task.index),
                    status="error",
                    timestamp=_now_ms(),
                    duration=_now_ms() - image_started,
                    error=str(exc),
                )
            else:
                yield PipelineLog(
                    step=image_step(task.index),
                    status="success",
                    timestamp=_now_ms(),
                    duration=_now_ms() - image_started,
                    details={"imageUrl": url},
                )

        questions.append(question)
        yield PipelineLog(
            step=step,
            status="success",
            timestamp=_now_ms(),
            duration=_now_ms() - item_started,
            response=question.to_json_dict(),
        )
