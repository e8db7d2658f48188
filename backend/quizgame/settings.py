from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field

class Settings(BaseSettings):
	gemini_api_key: str | None = Field(default=None, validation_alias="GEMINI_API_KEY")
	# Provider can be "vertex" (Vertex AI Express) or "ai_studio" (Generative Language API)
	gemini_provider: str = Field(default="ai_studio", validation_alias="GEMINI_PROVIDER")
	# Model used for the breakdown and every question call
	gemini_model: str = Field(default="gemini-2.5-flash", validation_alias="GEMINI_MODEL")
	# Vertex configuration
	vertex_region: str = Field(default="us-central1", validation_alias="GEMINI_VERTEX_REGION")
	vertex_project: str | None = Field(default=None, validation_alias="GEMINI_VERTEX_PROJECT")

	# OpenRouter fallback configuration (optional)
	openrouter_api_key: str | None = Field(default=None, validation_alias="OPENROUTER_API_KEY")
	openrouter_model: str = Field(default="x-ai/grok-4-fast:free", validation_alias="OPENROUTER_MODEL")
	openrouter_base_url: str = Field(default="https://openrouter.ai/api/v1/chat/completions", validation_alias="OPENROUTER_BASE_URL")
	openrouter_referer: str = Field(default="https://localhost", validation_alias="OPENROUTER_HTTP_REFERER")
	openrouter_title: str = Field(default="Quiz Game Generator", validation_alias="OPENROUTER_TITLE")

	# fal.ai image generation; without a key guess-image questions keep only the text description
	fal_api_key: str | None = Field(default=None, validation_alias="FAL_API_KEY")
	fal_model: str = Field(default="fal-ai/imagen4/preview", validation_alias="FAL_MODEL")
	fal_base_url: str = Field(default="https://fal.run", validation_alias="FAL_BASE_URL")
	image_size: str = Field(default="landscape_16_9", validation_alias="IMAGE_SIZE")
	image_inference_steps: int = Field(default=50, validation_alias="IMAGE_INFERENCE_STEPS")

	# Pause between sequential question calls (provider rate limits)
	inter_item_delay_seconds: float = Field(default=0.1, validation_alias="INTER_ITEM_DELAY_SECONDS")
	http_timeout_seconds: float = Field(default=60.0, validation_alias="HTTP_TIMEOUT_SECONDS")

	# Optional JSON object {"model": {"input_per_1m": x, "output_per_1m": y}} replacing the built-in table
	model_pricing_json: str | None = Field(default=None, validation_alias="MODEL_PRICING_JSON")

	log_level: str = Field(default="INFO", validation_alias="LOG_LEVEL")

	# pydantic-settings v2 style config
	model_config = SettingsConfigDict(env_file=".env", extra="ignore")

settings = Settings()
