from __future__ import annotations
import json
import logging
import re
import httpx
from dataclasses import dataclass
from typing import Any, Dict, Generic, Optional, Tuple, Type, TypeVar
from pydantic import BaseModel
from .schemas import Usage
from .settings import settings

logger = logging.getLogger(__name__)

T = TypeVar("T", bound=BaseModel)


@dataclass
class StructuredOutput(Generic[T]):
	object: T
	usage: Usage


def extract_json_object(text: str) -> Any:
	try:
		return json.loads(text)
	except Exception:
		pass
	code_block = re.search(r"```(?:json)?\s*([\s\S]*?)\s*```", text)
	if code_block:
		try:
			return json.loads(code_block.group(1))
		except Exception:
			pass
	first = text.find("{")
	last = text.rfind("}")
	if first != -1 and last > first:
		try:
			return json.loads(text[first : last + 1])
		except Exception:
			pass
	raise ValueError("Failed to parse JSON from model output")


class GeminiClient:
	def __init__(
		self,
		api_key: Optional[str] = None,
		*,
		base_url: Optional[str] = None,
		model: Optional[str] = None,
		http_client: Optional[httpx.AsyncClient] = None,
	) -> None:
		self.api_key = api_key or settings.gemini_api_key
		if not self.api_key:
			raise ValueError("GEMINI_API_KEY is not configured")
		self.model = model or settings.gemini_model
		self.provider = settings.gemini_provider
		if self.provider == "vertex":
			region = settings.vertex_region
			project = settings.vertex_project or "placeholder-project"
			# Vertex AI Generative REST endpoint (API key via header)
			self.base_url = base_url or (
				f"https://{region}-aiplatform.googleapis.com/v1/projects/{project}/locations/{region}/publishers/google/models/{self.model}:generateContent"
			)
			self._auth_in_query = False
		else:
			# Google AI Studio (Generative Language API)
			self.base_url = base_url or f"https://generativelanguage.googleapis.com/v1beta/models/{self.model}:generateContent"
			self._auth_in_query = True
		self._client = http_client or httpx.AsyncClient(timeout=settings.http_timeout_seconds)
		self._fallback_client: Optional[httpx.AsyncClient] = None
		self._fallback_enabled = bool(settings.openrouter_api_key)
		self._openrouter_api_key = settings.openrouter_api_key
		self._openrouter_model = settings.openrouter_model
		self._openrouter_base_url = settings.openrouter_base_url
		self._openrouter_headers = {
			"Authorization": f"Bearer {self._openrouter_api_key}" if self._openrouter_api_key else "",
			"Content-Type": "application/json",
			"HTTP-Referer": settings.openrouter_referer,
			"X-Title": settings.openrouter_title,
		}
		if self._fallback_enabled:
			self._fallback_client = httpx.AsyncClient(timeout=settings.http_timeout_seconds)

	async def generate_object(self, prompt: str, schema: Type[T]) -> StructuredOutput[T]:
		"""Ask for JSON constrained by ``schema`` and validate the reply against it.

		Raises on transport failure, unparseable output, or a reply that does
		not satisfy the schema (pydantic ``ValidationError``).
		"""
		json_schema = schema.model_json_schema(by_alias=True)
		payload: Dict[str, Any] = {
			"contents": [{"parts": [{"text": prompt}]}],
			"generationConfig": {
				"responseMimeType": "application/json",
				"responseJsonSchema": json_schema,
			},
		}
		fallback_prompt = (
			f"{prompt}\n\nReturn ONLY a JSON object matching this JSON schema:\n"
			f"{json.dumps(json_schema, ensure_ascii=False)}"
		)
		text, usage = await self._post_payload(
			payload,
			fallback_prompt=fallback_prompt,
			json_mode=True,
		)
		data = extract_json_object(text)
		return StructuredOutput(object=schema.model_validate(data), usage=usage)

	async def _post_payload(
		self,
		payload: Dict[str, Any],
		*,
		fallback_prompt: str,
		json_mode: bool = False,
	) -> Tuple[str, Usage]:
		params: Dict[str, Any] = {}
		headers: Dict[str, str] = {}
		if self._auth_in_query:
			params["key"] = self.api_key
		else:
			headers["x-goog-api-key"] = self.api_key
		last_error: Optional[Exception] = None
		try:
			r = await self._client.post(self.base_url, params=params, headers=headers, json=payload)
			r.raise_for_status()
		except httpx.HTTPStatusError as http_err:
			last_error = http_err
		except httpx.RequestError as net_err:
			last_error = net_err
		if last_error is None:
			try:
				data = r.json()
				text = data["candidates"][0]["content"]["parts"][0]["text"]
				meta = data.get("usageMetadata") or {}
				usage = Usage(
					input_tokens=int(meta.get("promptTokenCount") or 0),
					output_tokens=int(meta.get("candidatesTokenCount") or 0),
				)
				return text, usage
			except Exception:
				last_error = RuntimeError(f"Unexpected Gemini response: {r.text}")
		if not self._fallback_enabled:
			raise last_error or RuntimeError("Gemini call failed and no fallback configured")
		logger.warning("Gemini call failed (%s); retrying via OpenRouter", last_error)
		return await self._fallback_generate(fallback_prompt, last_error, json_mode=json_mode)

	async def aclose(self) -> None:
		await self._client.aclose()
		if self._fallback_client is not None:
			await self._fallback_client.aclose()

	async def _fallback_generate(
		self,
		prompt: str,
		primary_error: Optional[Exception],
		*,
		json_mode: bool = False,
	) -> Tuple[str, Usage]:
		if not self._fallback_client or not self._openrouter_api_key:
			raise primary_error or RuntimeError("Fallback requested but OpenRouter is not configured")
		headers = {k: v for k, v in self._openrouter_headers.items() if v}
		payload: Dict[str, Any] = {
			"model": self._openrouter_model,
			"messages": [{"role": "user", "content": prompt}],
		}
		if json_mode:
			payload["response_format"] = {"type": "json_object"}
		try:
			r = await self._fallback_client.post(
				self._openrouter_base_url,
				headers=headers,
				json=payload,
			)
			r.raise_for_status()
			data = r.json()
			usage_data = data.get("usage") or {}
			usage = Usage(
				input_tokens=int(usage_data.get("prompt_tokens") or 0),
				output_tokens=int(usage_data.get("completion_tokens") or 0),
			)
			return data["choices"][0]["message"]["content"], usage
		except Exception as fallback_err:
			if primary_error is not None:
				raise RuntimeError(
					f"Gemini primary call failed ({primary_error}); fallback via OpenRouter also failed"
				) from fallback_err
			raise fallback_err
