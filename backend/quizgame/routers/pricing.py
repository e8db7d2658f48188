from __future__ import annotations

from fastapi import APIRouter, HTTPException, Request

from ..pricing import PricingCache, default_entries
from ..settings import settings

router = APIRouter(prefix="/pricing", tags=["pricing"])


def _cache(request: Request) -> PricingCache:
    cache = getattr(request.app.state, "pricing", None)
    if cache is None:
        cache = PricingCache()
        request.app.state.pricing = cache
    return cache


def _describe(cache: PricingCache) -> dict:
    return {
        "loaded": cache.loaded,
        "models": {
            model: {"inputPer1M": p.input_per_1m, "outputPer1M": p.output_per_1m}
            for model, p in sorted(cache.models().items())
        },
    }


@router.get("")
def get_pricing(request: Request):
    return _describe(_cache(request))


@router.post("/reload")
def reload_pricing(request: Request):
    cache = _cache(request)
    try:
        entries = default_entries(settings.model_pricing_json)
    except ValueError as exc:
        raise HTTPException(status_code=500, detail=f"MODEL_PRICING_JSON is invalid: {exc}")
    cache.invalidate()
    cache.load(entries)
    return _describe(cache)
