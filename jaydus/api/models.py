"""
Model catalog endpoint.
"""

from typing import List, Optional
from fastapi import APIRouter

from jaydus.services.ai.model_catalog import CatalogModel, get_enabled_models

router = APIRouter()


@router.get("", response_model=List[CatalogModel])
async def list_models(category: Optional[str] = None):
    """Enabled OpenRouter models, optionally filtered by category."""
    return get_enabled_models(category)
