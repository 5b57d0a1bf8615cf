import logging
from dataclasses import asdict, dataclass
from functools import partial
from typing import Callable, Dict, Optional

import google.generativeai as genai
import requests

from edutrack.ai.config import AIProvider

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = (
    "You are a helpful educational assistant. "
    "Provide clear and concise explanations suitable for students."
)
NO_RESPONSE = "No response"


@dataclass
class AIResponse:
    success: bool
    content: str
    provider: str
    error: Optional[str] = None

    def as_dict(self) -> dict:
        return asdict(self)


ProviderCaller = Callable[[AIProvider, str, Optional[str]], AIResponse]


def _explained_prompt(prompt: str, context: Optional[str]) -> str:
    if not context:
        return prompt
    return f"Context: {context}\n\nQuestion: {prompt}\n\nPlease provide a clear and concise explanation."


def _context_prompt(prompt: str, context: Optional[str]) -> str:
    if not context:
        return prompt
    return f"Context: {context}\n\nQuestion: {prompt}"


def _post(session: Optional[requests.Session], provider: AIProvider, url: str, body: dict) -> dict:
    response = (session or requests).post(
        url,
        json=body,
        headers={
            "Authorization": f"Bearer {provider.api_key}",
            "Content-Type": "application/json",
        },
        timeout=provider.timeout,
    )
    # Non-2xx raises requests.HTTPError, which the fallback loop catches
    response.raise_for_status()
    return response.json()


def call_gemini(provider: AIProvider, prompt: str, context: Optional[str] = None) -> AIResponse:
    genai.configure(api_key=provider.api_key)
    model = genai.GenerativeModel(provider.model)
    response = model.generate_content(
        _explained_prompt(prompt, context),
        generation_config={
            "max_output_tokens": provider.max_tokens,
            "temperature": provider.temperature,
        },
    )
    return AIResponse(success=True, content=response.text, provider="gemini")


def call_huggingface(provider: AIProvider, prompt: str, context: Optional[str] = None,
                     session: Optional[requests.Session] = None) -> AIResponse:
    data = _post(session, provider, f"{provider.base_url}/{provider.model}", {
        "inputs": _context_prompt(prompt, context),
        "parameters": {
            "max_new_tokens": provider.max_tokens,
            "temperature": provider.temperature,
            "return_full_text": False,
        },
    })

    if isinstance(data, list):
        first = data[0] if data and isinstance(data[0], dict) else {}
        content = first.get("generated_text") or first.get("summary_text") or NO_RESPONSE
    elif isinstance(data, dict):
        content = data.get("generated_text") or NO_RESPONSE
    else:
        content = NO_RESPONSE
    return AIResponse(success=True, content=content, provider="huggingface")


def call_cohere(provider: AIProvider, prompt: str, context: Optional[str] = None,
                session: Optional[requests.Session] = None) -> AIResponse:
    data = _post(session, provider, f"{provider.base_url}/generate", {
        "model": provider.model,
        "prompt": _explained_prompt(prompt, context),
        "max_tokens": provider.max_tokens,
        "temperature": provider.temperature,
        "k": 0,
        "stop_sequences": [],
        "return_likelihoods": "NONE",
    })

    generations = data.get("generations") or []
    content = (generations[0] or {}).get("text") if generations else None
    return AIResponse(success=True, content=content or NO_RESPONSE, provider="cohere")


def call_openai(provider: AIProvider, prompt: str, context: Optional[str] = None,
                session: Optional[requests.Session] = None) -> AIResponse:
    data = _post(session, provider, f"{provider.base_url}/chat/completions", {
        "model": provider.model,
        "messages": [
            {"role": "system", "content": SYSTEM_PROMPT},
            {"role": "user", "content": _context_prompt(prompt, context)},
        ],
        "max_tokens": provider.max_tokens,
        "temperature": provider.temperature,
    })

    choices = data.get("choices") or []
    content = ((choices[0] or {}).get("message") or {}).get("content") if choices else None
    return AIResponse(success=True, content=content or NO_RESPONSE, provider="openai")


DEFAULT_CALLERS: Dict[str, ProviderCaller] = {
    "gemini": call_gemini,
    "huggingface": call_huggingface,
    "cohere": call_cohere,
    "openai": call_openai,
}

HTTP_CALLERS = ("huggingface", "cohere", "openai")


def bind_session(session: requests.Session) -> Dict[str, ProviderCaller]:
    """Default callers with the HTTP ones sending through ``session``."""
    callers = dict(DEFAULT_CALLERS)
    for key in HTTP_CALLERS:
        callers[key] = partial(DEFAULT_CALLERS[key], session=session)
    return callers
