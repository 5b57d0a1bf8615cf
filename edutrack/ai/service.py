import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional

import requests

from edutrack.ai.config import AIConfig
from edutrack.ai.providers import AIResponse, ProviderCaller, bind_session
from edutrack.ai.quiz_parser import GeneratedQuestion, extract_quiz_questions
from edutrack.errors import QuizParseError

logger = logging.getLogger(__name__)

NO_PROVIDERS_MESSAGE = "No AI providers configured. Please add API keys."
ALL_FAILED_MESSAGE = "All AI providers failed to respond"
PARSE_FAILED_MESSAGE = "Failed to parse quiz questions from AI response"

QUIZ_PROMPT = """Generate {count} multiple choice questions about "{topic}" with {difficulty} difficulty level.

Format your response as a valid JSON array with this exact structure:
[
  {{
    "question": "Question text here?",
    "options": ["Option A", "Option B", "Option C", "Option D"],
    "correctAnswer": 0,
    "explanation": "Brief explanation of why this answer is correct"
  }}
]

Important:
- correctAnswer should be the index (0-3) of the correct option
- Include exactly 4 options for each question
- Make questions educational and clear
- Provide helpful explanations
- Return only the JSON array, no additional text"""


@dataclass
class QuizGenerationResult:
    success: bool
    provider: str
    questions: List[GeneratedQuestion] = field(default_factory=list)
    error: Optional[str] = None

    def as_dict(self) -> dict:
        return {
            "success": self.success,
            "provider": self.provider,
            "questions": [q.model_dump() for q in self.questions],
            "error": self.error,
        }


class AIService:
    """Tries each configured provider once, in fallback order."""

    def __init__(self, config: AIConfig, callers: Optional[Dict[str, ProviderCaller]] = None):
        self.config = config
        self.http = requests.Session()
        self.callers = bind_session(self.http) if callers is None else dict(callers)

    def close(self):
        self.http.close()

    def available_providers(self) -> List[str]:
        return self.config.available_providers()

    def is_configured(self) -> bool:
        return len(self.available_providers()) > 0

    def configuration_status(self) -> dict:
        available = self.available_providers()
        return {
            "configured": len(available),
            "total": len(self.config.providers),
            "available": available,
            "has_any_provider": len(available) > 0,
        }

    def call_provider(self, key: str, prompt: str, context: Optional[str] = None) -> AIResponse:
        caller = self.callers.get(key)
        provider = self.config.providers.get(key)
        if caller is None or provider is None:
            return AIResponse(success=False, content="", provider=key, error="Unknown provider")
        return caller(provider, prompt, context)

    def get_response(self, prompt: str, context: Optional[str] = None) -> AIResponse:
        available = self.available_providers()
        if not available:
            return AIResponse(success=False, content="", provider="none", error=NO_PROVIDERS_MESSAGE)

        for key in self.config.fallback_order:
            if key not in available:
                continue
            try:
                response = self.call_provider(key, prompt, context)
            except Exception as exc:
                logger.warning("Provider %s failed: %s", key, exc)
                continue
            if response.success:
                return response
            logger.warning("Provider %s returned no answer: %s", key, response.error)

        return AIResponse(success=False, content="", provider="all_failed", error=ALL_FAILED_MESSAGE)

    def generate_quiz(self, topic: str, num_questions: int = 5, difficulty: str = "medium") -> QuizGenerationResult:
        prompt = QUIZ_PROMPT.format(count=num_questions, topic=topic, difficulty=difficulty)
        response = self.get_response(prompt)
        if not response.success:
            return QuizGenerationResult(success=False, provider=response.provider, error=response.error)

        try:
            questions = extract_quiz_questions(response.content)
        except QuizParseError as exc:
            logger.error("Failed to parse quiz JSON from %s: %s", response.provider, exc)
            return QuizGenerationResult(success=False, provider=response.provider, error=PARSE_FAILED_MESSAGE)

        return QuizGenerationResult(success=True, provider=response.provider, questions=questions)

    def explain_concept(self, question: str, subject: Optional[str] = None,
                        grade_level: Optional[str] = None) -> AIResponse:
        prompt = f'Explain this concept in simple terms: "{question}"'
        if subject:
            prompt += f"\n\nSubject: {subject}"
        if grade_level:
            prompt += f"\nGrade Level: {grade_level}"
        prompt += (
            "\n\nPlease provide:\n"
            "1. A clear, simple explanation\n"
            "2. A practical example if applicable\n"
            "3. Key points to remember\n\n"
            "Keep the explanation appropriate for students and easy to understand."
        )
        return self.get_response(prompt)
