from __future__ import annotations

import json
import logging
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import StreamingResponse
from pydantic import ConfigDict, Field
from pydantic.alias_generators import to_camel

from .. import prompts
from ..errors import BreakdownError, ConfigValidationError, ImageGenerationError, ItemGenerationError
from ..fal_image import FalImageGenerator
from ..gemini_client import GeminiClient
from ..pipeline import QuestionPipeline, RateLimiter
from ..pricing import PricingCache
from ..schemas import (
    QUESTION_TYPES,
    CamelModel,
    Difficulty,
    GuessImageQuestion,
    KnowledgeCategory,
    KnowledgePoint,
    Language,
    PipelineLog,
    TypeMatch,
)
from ..settings import settings


router = APIRouter(prefix="/questions", tags=["questions"])

logger = logging.getLogger(__name__)

SSE_HEADERS = {"Cache-Control": "no-cache", "Connection": "keep-alive"}


class SingleQuestionRequest(CamelModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, str_strip_whitespace=True)

    knowledge_point: str = Field(min_length=1, max_length=200)
    difficulty: Difficulty = 2
    language: Language = "zh"
    category: KnowledgeCategory = "concept"
    description: str = ""


class MatchTypeRequest(CamelModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, str_strip_whitespace=True)

    knowledge_point: str = Field(min_length=1, max_length=200)
    language: Language = "zh"


def get_llm() -> GeminiClient:
    try:
        return GeminiClient()
    except ValueError as exc:
        raise HTTPException(status_code=503, detail=str(exc))


def get_image_generator() -> FalImageGenerator:
    return FalImageGenerator()


def get_pricing(request: Request) -> Optional[PricingCache]:
    return getattr(request.app.state, "pricing", None)


def get_rate_limiter() -> RateLimiter:
    return RateLimiter(settings.inter_item_delay_seconds)


def _pipeline(llm: Any, images: Any, pricing: Optional[PricingCache], limiter: RateLimiter) -> QuestionPipeline:
    return QuestionPipeline(
        llm,
        images,
        rate_limiter=limiter,
        pricing=pricing,
        image_size=settings.image_size,
        image_inference_steps=settings.image_inference_steps,
    )


async def _close(*clients: Any) -> None:
    for client in clients:
        close = getattr(client, "aclose", None)
        if close is not None:
            await close()


async def _read_json(request: Request) -> Any:
    # Malformed bodies are reported by the config validator, not by FastAPI
    try:
        return await request.json()
    except Exception:
        return None


def format_sse(log: PipelineLog) -> str:
    return f"data: {json.dumps(log.to_json_dict(), ensure_ascii=False)}\n\n"


@router.post("/generate-stream")
async def generate_stream(
    request: Request,
    llm: GeminiClient = Depends(get_llm),
    images: FalImageGenerator = Depends(get_image_generator),
    pricing: Optional[PricingCache] = Depends(get_pricing),
    limiter: RateLimiter = Depends(get_rate_limiter),
):
    body = await _read_json(request)
    pipeline = _pipeline(llm, images, pricing, limiter)

    async def events():
        try:
            async for log in pipeline.stream(body):
                yield format_sse(log)
        finally:
            await _close(llm, images)

    return StreamingResponse(events(), media_type="text/event-stream", headers=SSE_HEADERS)


@router.post("/batch-generate")
async def batch_generate(
    request: Request,
    llm: GeminiClient = Depends(get_llm),
    images: FalImageGenerator = Depends(get_image_generator),
    pricing: Optional[PricingCache] = Depends(get_pricing),
    limiter: RateLimiter = Depends(get_rate_limiter),
):
    body = await _read_json(request)
    pipeline = _pipeline(llm, images, pricing, limiter)
    try:
        result = await pipeline.run(body)
    except ConfigValidationError as exc:
        raise HTTPException(status_code=400, detail=exc.errors)
    except BreakdownError as exc:
        raise HTTPException(status_code=502, detail=str(exc))
    finally:
        await _close(llm, images)

    data = result.to_json_dict()
    errors: List[Dict[str, Any]] = data.get("failures", [])
    return {
        "success": True,
        "data": {
            "topic": body["topic"].strip(),
            "questions": data["questions"],
            "errors": errors,
            "summary": {
                "requested": len(result.breakdown.points),
                "generated": result.total_generated,
                "failed": len(result.failures),
                "byType": result.questions_by_type,
            },
            "usage": data["usage"],
            "cost": result.cost,
        },
    }


@router.post("/generate/{question_type}")
async def generate_single(
    question_type: str,
    req: SingleQuestionRequest,
    llm: GeminiClient = Depends(get_llm),
    images: FalImageGenerator = Depends(get_image_generator),
):
    if question_type not in QUESTION_TYPES:
        await _close(llm, images)
        raise HTTPException(status_code=404, detail=f"Unknown question type: {question_type}")
    point = KnowledgePoint(
        name=req.knowledge_point,
        category=req.category,
        description=req.description,
        difficulty=req.difficulty,
        # not consulted when a single type is requested explicitly
        recommended_types=["clue"],
    )
    pipeline = _pipeline(llm, images, None, RateLimiter(0))
    try:
        question, _ = await pipeline.generate_question(point, question_type, req.difficulty, req.language)
        if isinstance(question, GuessImageQuestion) and question.image_prompt:
            try:
                await pipeline.attach_image(question)
            except ImageGenerationError as exc:
                logger.warning("Image for %s unavailable: %s", question.id, exc)
    except ItemGenerationError as exc:
        raise HTTPException(status_code=502, detail=str(exc))
    finally:
        await _close(llm, images)
    logger.info("Generated %s question %s for %r", question_type, question.id, req.knowledge_point)
    return {"success": True, "data": question.to_json_dict()}


@router.post("/match-type")
async def match_type(req: MatchTypeRequest, llm: GeminiClient = Depends(get_llm)):
    try:
        out = await llm.generate_object(prompts.match_type_prompt(req.knowledge_point, req.language), TypeMatch)
    except Exception as exc:
        raise HTTPException(status_code=502, detail=f"Type recommendation failed: {exc}")
    finally:
        await _close(llm)
    return {"success": True, "data": {"knowledgePoint": req.knowledge_point, **out.object.to_json_dict()}}
