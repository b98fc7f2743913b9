"""
OpenRouter models offered in the chat UI.
"""

from typing import List, Optional
from pydantic import BaseModel


class ModelPricing(BaseModel):
    """USD per 1K tokens."""
    input: float
    output: float


class CatalogModel(BaseModel):
    id: str
    name: str
    description: str
    category: str
    pricing: ModelPricing
    context: int
    enabled: bool = True


OPENROUTER_MODELS: List[CatalogModel] = [
    # GPT
    CatalogModel(id="openai/gpt-4-turbo-preview", name="GPT-4 Turbo", description="Latest GPT-4 with 128k context",
                 category="Premium", pricing=ModelPricing(input=0.01, output=0.03), context=128000),
    CatalogModel(id="openai/gpt-3.5-turbo", name="GPT-3.5 Turbo", description="Fast and efficient",
                 category="Standard", pricing=ModelPricing(input=0.0005, output=0.0015), context=16385),
    # Claude
    CatalogModel(id="anthropic/claude-3-opus", name="Claude 3 Opus", description="Most capable Claude model",
                 category="Premium", pricing=ModelPricing(input=0.015, output=0.075), context=200000),
    CatalogModel(id="anthropic/claude-3-sonnet", name="Claude 3 Sonnet", description="Balanced performance",
                 category="Standard", pricing=ModelPricing(input=0.003, output=0.015), context=200000),
    # Google
    CatalogModel(id="google/gemini-pro", name="Gemini Pro", description="Google's advanced model",
                 category="Standard", pricing=ModelPricing(input=0.000125, output=0.000375), context=32000),
    # Open source
    CatalogModel(id="meta-llama/llama-3-70b-instruct", name="Llama 3 70B", description="Open source powerhouse",
                 category="Open Source", pricing=ModelPricing(input=0.0008, output=0.0008), context=8192),
    CatalogModel(id="mistralai/mixtral-8x7b-instruct", name="Mixtral 8x7B", description="Efficient mixture of experts",
                 category="Open Source", pricing=ModelPricing(input=0.0005, output=0.0005), context=32768),
    # Specialized, off until image and web search support lands
    CatalogModel(id="openai/gpt-4-vision-preview", name="GPT-4 Vision", description="Analyzes images",
                 category="Specialized", pricing=ModelPricing(input=0.01, output=0.03), context=128000,
                 enabled=False),
    CatalogModel(id="perplexity/pplx-70b-online", name="Perplexity Online", description="Internet-connected responses",
                 category="Specialized", pricing=ModelPricing(input=0.001, output=0.001), context=4096,
                 enabled=False),
]


def get_enabled_models(category: Optional[str] = None) -> List[CatalogModel]:
    """Enabled models, optionally restricted to one category."""
    return [
        model for model in OPENROUTER_MODELS
        if model.enabled and (category is None or model.category == category)
    ]
