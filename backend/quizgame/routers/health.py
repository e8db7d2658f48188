from fastapi import APIRouter

from ..settings import settings

router = APIRouter(tags=["health"])


@router.get("/health")
def health():
	return {
		"status": "ok",
		"llm_configured": bool(settings.gemini_api_key),
		"image_configured": bool(settings.fal_api_key),
		"model": settings.gemini_model,
	}
