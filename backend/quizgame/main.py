import logging

from fastapi import FastAPI

from .pricing import PricingCache, default_entries
from .settings import settings
from .routers import health, questions
from .routers import pricing

logger = logging.getLogger(__name__)

app = FastAPI(title="Quiz Game Generator API")
app.include_router(health.router)
app.include_router(questions.router)
app.include_router(pricing.router)

# Pricing lives on app state; the startup hook fills it
app.state.pricing = PricingCache()


@app.get("/info")
def root():
	return {
		"status": "ok",
		"gemini_configured": bool(settings.gemini_api_key),
		"fal_configured": bool(settings.fal_api_key),
	}


def configure_logging() -> None:
	logging.basicConfig(
		level=getattr(logging, settings.log_level.upper(), logging.INFO),
		format="%(asctime)s  %(levelname)s  %(name)s  %(message)s",
	)


@app.on_event("startup")
async def startup_event():
	configure_logging()
	try:
		app.state.pricing.load(default_entries(settings.model_pricing_json))
	except ValueError as exc:
		# Costs are reported as unknown until /pricing/reload succeeds
		logger.error("Could not load model pricing: %s", exc)
