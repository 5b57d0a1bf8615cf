import os
from dataclasses import dataclass, field, replace
from typing import Dict, List, Mapping, Optional


@dataclass(frozen=True)
class AIProvider:
    name: str
    api_key: str
    model: str
    max_tokens: int
    temperature: float
    base_url: Optional[str] = None
    timeout: Optional[float] = None

    @property
    def configured(self) -> bool:
        return bool(self.api_key)


DEFAULT_FALLBACK_ORDER = ["gemini", "huggingface", "cohere", "openai"]

# Free tiers first: Gemini is the most generous, OpenAI is a paid backup.
DEFAULT_PROVIDERS: Dict[str, AIProvider] = {
    "gemini": AIProvider(
        name="Google Gemini",
        api_key="",
        model="gemini-1.5-flash",
        max_tokens=2048,
        temperature=0.7,
    ),
    "huggingface": AIProvider(
        name="Hugging Face",
        api_key="",
        model="microsoft/DialoGPT-medium",
        max_tokens=1024,
        temperature=0.7,
        base_url="https://api-inference.huggingface.co/models",
    ),
    "cohere": AIProvider(
        name="Cohere",
        api_key="",
        model="command-light",
        max_tokens=1024,
        temperature=0.7,
        base_url="https://api.cohere.ai/v1",
    ),
    "openai": AIProvider(
        name="OpenAI",
        api_key="",
        model="gpt-3.5-turbo",
        max_tokens=1024,
        temperature=0.7,
        base_url="https://api.openai.com/v1",
    ),
}

# provider key -> (api key env var, model override env var)
PROVIDER_ENV = {
    "gemini": ("GEMINI_API_KEY", "GEMINI_MODEL"),
    "huggingface": ("HUGGINGFACE_API_KEY", "HUGGINGFACE_MODEL"),
    "cohere": ("COHERE_API_KEY", "COHERE_MODEL"),
    "openai": ("OPENAI_API_KEY", "OPENAI_MODEL"),
}


@dataclass(frozen=True)
class AIConfig:
    providers: Dict[str, AIProvider] = field(default_factory=lambda: dict(DEFAULT_PROVIDERS))
    default_provider: str = "gemini"
    fallback_order: List[str] = field(default_factory=lambda: list(DEFAULT_FALLBACK_ORDER))

    def available_providers(self) -> List[str]:
        """Provider keys with an API key, in registry order."""
        return [key for key, provider in self.providers.items() if provider.configured]


def _timeout(value: Optional[str]) -> Optional[float]:
    try:
        return float(value) if value and value.strip() else None
    except ValueError:
        return None


def load_ai_config(env: Optional[Mapping[str, str]] = None) -> AIConfig:
    env = os.environ if env is None else env
    # Unset means the HTTP client default (no timeout)
    timeout = _timeout(env.get("AI_REQUEST_TIMEOUT"))

    providers = {}
    for key, provider in DEFAULT_PROVIDERS.items():
        key_var, model_var = PROVIDER_ENV[key]
        providers[key] = replace(
            provider,
            api_key=(env.get(key_var) or "").strip(),
            model=(env.get(model_var) or provider.model).strip(),
            timeout=timeout,
        )

    order = [p.strip() for p in (env.get("AI_FALLBACK_ORDER") or "").split(",") if p.strip() in providers]
    return AIConfig(
        providers=providers,
        default_provider=order[0] if order else "gemini",
        fallback_order=order or list(DEFAULT_FALLBACK_ORDER),
    )


def validate_ai_config(config: AIConfig) -> dict:
    missing = [key for key, provider in config.providers.items() if not provider.configured]
    return {"valid": len(missing) == 0, "missing": missing}
