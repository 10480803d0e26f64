"""
Quiz generator service - multiple-choice quizzes from lesson content.
"""
import json
import logging
import time
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional

from lesson_pipeline.errors import PlanParseError
from lesson_pipeline.types import UserProfile
from lesson_pipeline.services.qa_generator import audience_context, clamp_difficulty
from lesson_pipeline.services.text_model import get_text_model, run_with_retries
from lesson_pipeline.utils.json_extraction import parse_json_object

logger = logging.getLogger(__name__)

QUIZ_QUESTION_COUNT = 5
QUIZ_OPTION_COUNT = 4

QUIZ_PROMPT_TEMPLATE = """
Génère un quiz complet pour la leçon : "{title}"
{audience}
Contenu de la leçon :
{content}

INSTRUCTIONS :
1. Crée exactement {count} questions de type QCM ({options} choix chacune)
2. Les questions doivent couvrir différents aspects de la leçon
3. Une seule réponse correcte par question
4. Les mauvaises réponses doivent être plausibles mais clairement incorrectes
5. Chaque question doit avoir une explication détaillée (50-100 mots)
6. Assigne une difficulté de 1 à 5 (1=facile, 5=expert)

Réponds UNIQUEMENT avec un JSON valide dans ce format :
{{
  "title": "Quiz : [titre de la leçon]",
  "questions": [
    {{
      "id": 1,
      "question": "Question claire et précise ?",
      "options": ["Réponse correcte", "Mauvaise réponse 1", "Mauvaise réponse 2", "Mauvaise réponse 3"],
      "correctAnswerIndex": 0,
      "explanation": "Pourquoi cette réponse est correcte.",
      "difficulty": 2
    }}
  ]
}}
""".strip()


def _valid_question(raw: Any) -> bool:
    if not isinstance(raw, dict) or not raw.get('question'):
        return False
    options = raw.get('options')
    if not isinstance(options, list) or len(options) < 2:
        return False
    index = raw.get('correctAnswerIndex')
    return isinstance(index, int) and 0 <= index < len(options)


class QuizGenerator:
    """Service for multiple-choice quiz generation"""

    def __init__(self, text_model=None, sleep: Callable[[float], None] = time.sleep):
        self.text_model = text_model or get_text_model()
        self.sleep = sleep

    def _parse_quiz(self, text: str, lesson_id: int, title: str) -> Dict[str, Any]:
        parsed = parse_json_object(text)
        raw_questions = parsed.get('questions')
        if not isinstance(raw_questions, list):
            raise PlanParseError('Invalid response format: "questions" missing')

        questions: List[Dict[str, Any]] = []
        for raw in raw_questions:
            if not _valid_question(raw):
                logger.debug(f"Dropping malformed quiz question: {str(raw)[:120]}")
                continue
            questions.append({
                'id': len(questions) + 1,
                'question': str(raw['question']).strip(),
                'options': [str(option) for option in raw['options']],
                'correctAnswerIndex': raw['correctAnswerIndex'],
                'explanation': str(raw.get('explanation') or '').strip(),
                'difficulty': clamp_difficulty(raw.get('difficulty')),
            })
        if not questions:
            raise PlanParseError("No usable quiz question in response")

        return {
            'id': int(time.time() * 1000),
            'lessonId': lesson_id,
            'title': parsed.get('title') or f"Quiz : {title}",
            'questions': questions,
            'createdAt': datetime.now(timezone.utc).isoformat(),
        }

    def generate_quiz(
        self,
        lesson_id: int,
        title: str,
        content: Any,
        profile: Optional[UserProfile] = None,
    ) -> Dict[str, Any]:
        """
        Generate a quiz for a lesson.

        Raises:
            GenerationFailure: when every attempt failed
        """
        prompt = QUIZ_PROMPT_TEMPLATE.format(
            title=title,
            audience=audience_context(profile),
            content=json.dumps(content, ensure_ascii=False, indent=2),
            count=QUIZ_QUESTION_COUNT,
            options=QUIZ_OPTION_COUNT,
        )
        quiz = run_with_retries(
            lambda: self._parse_quiz(self.text_model.generate_text(prompt), lesson_id, title),
            label=f"Quiz for '{title}'",
            sleep=self.sleep,
        )
        logger.info(f"✓ Quiz generated: {len(quiz['questions'])} questions")
        return quiz


# Global service instance
_quiz_generator = None


def get_quiz_generator() -> QuizGenerator:
    """Get or create global quiz generator"""
    global _quiz_generator
    if _quiz_generator is None:
        _quiz_generator = QuizGenerator()
    return _quiz_generator
