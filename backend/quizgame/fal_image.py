from __future__ import annotations
import logging
import httpx
from dataclasses import dataclass
from typing import Any, Dict, Optional
from .settings import settings

logger = logging.getLogger(__name__)

# fal.ai size presets: square_hd 1024x1024, square 512x512, portrait_4_3 768x1024,
# portrait_16_9 576x1024, landscape_4_3 1024x768, landscape_16_9 1024x576
IMAGE_SIZES = (
	"square_hd",
	"square",
	"portrait_4_3",
	"portrait_16_9",
	"landscape_4_3",
	"landscape_16_9",
)


@dataclass
class ImageResult:
	success: bool
	image_url: Optional[str] = None
	width: Optional[int] = None
	height: Optional[int] = None
	error: Optional[str] = None
	request_id: Optional[str] = None


class FalImageGenerator:
	"""Text-to-image through fal.ai's synchronous REST endpoint.

	``generate`` never raises: every failure, including a missing API key,
	comes back as ``ImageResult(success=False, error=...)`` so callers can
	keep the question and fall back to its text description.
	"""

	def __init__(
		self,
		api_key: Optional[str] = None,
		*,
		model: Optional[str] = None,
		base_url: Optional[str] = None,
		http_client: Optional[httpx.AsyncClient] = None,
	) -> None:
		self.api_key = api_key if api_key is not None else settings.fal_api_key
		self.model = model or settings.fal_model
		self.url = f"{(base_url or settings.fal_base_url).rstrip('/')}/{self.model}"
		self._client = http_client or httpx.AsyncClient(timeout=settings.http_timeout_seconds)

	@property
	def configured(self) -> bool:
		return bool(self.api_key and self.api_key.strip())

	async def generate(
		self,
		prompt: str,
		*,
		image_size: str = "square_hd",
		num_inference_steps: int = 28,
		enable_safety_checker: bool = True,
	) -> ImageResult:
		if not self.configured:
			return ImageResult(success=False, error="FAL API key is required")
		if not prompt or not prompt.strip():
			return ImageResult(success=False, error="Prompt is required")
		if image_size not in IMAGE_SIZES:
			return ImageResult(success=False, error=f"Unsupported image size: {image_size}")

		payload: Dict[str, Any] = {
			"prompt": prompt.strip(),
			"image_size": image_size,
			"num_inference_steps": num_inference_steps,
			"num_images": 1,
			"enable_safety_checker": enable_safety_checker,
		}
		headers = {"Authorization": f"Key {self.api_key}", "Content-Type": "application/json"}
		try:
			r = await self._client.post(self.url, headers=headers, json=payload)
			r.raise_for_status()
			data = r.json()
		except httpx.HTTPStatusError as http_err:
			logger.error("fal.ai returned %s: %s", http_err.response.status_code, http_err.response.text)
			return ImageResult(success=False, error=f"fal.ai HTTP {http_err.response.status_code}")
		except Exception as exc:
			logger.error("fal.ai request failed: %s", exc)
			return ImageResult(success=False, error=str(exc) or "Image generation failed")

		request_id = r.headers.get("x-fal-request-id")
		if not isinstance(data, dict):
			logger.error("fal.ai returned a %s instead of an object", type(data).__name__)
			return ImageResult(success=False, error="Unexpected fal.ai response", request_id=request_id)
		request_id = request_id or data.get("request_id")
		images = data.get("images")
		first = images[0] if isinstance(images, list) and images else None
		if not isinstance(first, dict) or not first.get("url"):
			return ImageResult(success=False, error="No image generated", request_id=request_id)
		return ImageResult(
			success=True,
			image_url=first["url"],
			width=first.get("width"),
			height=first.get("height"),
			request_id=request_id,
		)

	async def aclose(self) -> None:
		await self._client.aclose()
