"""
Q&A generator service - question/answer sessions and free-form answers.

Sessions go through the same retry and JSON repair path as lesson plans.
Free-form answers never raise: on failure the learner gets a polite
fallback sentence.
"""
import json
import logging
import time
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional

from lesson_pipeline.errors import PlanParseError
from lesson_pipeline.types import UserProfile
from lesson_pipeline.services.text_model import get_text_model, run_with_retries
from lesson_pipeline.utils.json_extraction import parse_json_object

logger = logging.getLogger(__name__)

QA_ITEM_COUNT = 8
QA_CATEGORIES = ('definition', 'explanation', 'example', 'application', 'comparison', 'history', 'general')

FALLBACK_ANSWER = (
    "Je ne peux pas répondre à cette question pour le moment. "
    "Veuillez consulter le contenu de la leçon ou reformuler votre question."
)

SESSION_AUDIENCE = {
    'pupil': """
ADAPTATION AU PUBLIC - ÉLÈVE:
- Questions simples et accessibles
- Réponses claires avec vocabulaire adapté
- Exemples concrets du quotidien
- Éviter le jargon technique
""",
    'student': """
ADAPTATION AU PUBLIC - ÉTUDIANT:
- Questions approfondies et académiques
- Réponses détaillées avec rigueur scientifique
- Références théoriques appropriées
- Vocabulaire technique précis
""",
    'professional': """
ADAPTATION AU PUBLIC - PROFESSIONNEL:
- Questions orientées application pratique
- Réponses axées sur l'utilisation concrète
- Cas d'usage professionnels
""",
}

GENERAL_AUDIENCE = """
ADAPTATION AU PUBLIC - GÉNÉRAL:
- Questions équilibrées entre simplicité et profondeur
- Réponses accessibles mais complètes
- Exemples variés
"""

ANSWER_TONE = {
    'pupil': "Réponds de manière simple et accessible, avec des exemples concrets.",
    'student': "Réponds de manière académique et détaillée, avec rigueur scientifique.",
    'professional': "Réponds de manière pratique, orientée application professionnelle.",
}

QA_PROMPT_TEMPLATE = """
Génère une session de Questions & Réponses complète pour la leçon : "{title}"
{audience}
Contenu de la leçon :
{content}

INSTRUCTIONS :
1. Crée exactement {count} questions variées et pertinentes
2. Chaque question doit avoir une catégorie parmi : {categories}
3. Les réponses doivent être détaillées (100-200 mots) et pédagogiques
4. Assigne une difficulté de 1 à 5 (1=facile, 5=expert)
5. Ajoute 2-3 sujets liés pour chaque question

Réponds UNIQUEMENT avec un JSON valide dans ce format :
{{
  "title": "Q&A : [titre de la leçon]",
  "items": [
    {{
      "id": 1,
      "question": "Question claire et précise",
      "answer": "Réponse détaillée et pédagogique",
      "category": "definition",
      "relatedTopics": ["sujet1", "sujet2"],
      "difficulty": 2
    }}
  ]
}}
""".strip()

ANSWER_PROMPT_TEMPLATE = """
Tu es un professeur expert. Un apprenant te pose cette question sur la leçon :

QUESTION : "{question}"

CONTEXTE DE LA LEÇON :
{content}

INSTRUCTIONS :
{tone}
- Réponds en 100-250 mots maximum
- Base ta réponse sur le contenu de la leçon fourni
- Sois pédagogique et précis
- Si la question sort du contexte de la leçon, redirige vers le contenu pertinent
- Utilise un ton bienveillant et encourageant

Réponds directement, sans formatage JSON, juste le texte de la réponse.
""".strip()


def audience_context(profile: Optional[UserProfile]) -> str:
    if profile is None:
        return ''
    block = SESSION_AUDIENCE.get(profile.profile_type, GENERAL_AUDIENCE)
    extras = []
    if profile.education_level:
        extras.append(f"Niveau: {profile.education_level}")
    if profile.specialty:
        extras.append(f"Spécialité: {profile.specialty}")
    return block + '\n'.join(extras) + '\n'


def clamp_difficulty(value: Any, default: int = 2) -> int:
    try:
        return min(5, max(1, int(value)))
    except (TypeError, ValueError):
        return default


def _dump(content: Any) -> str:
    return json.dumps(content, ensure_ascii=False, indent=2)


class QAGenerator:
    """Service for Q&A sessions and question answering"""

    def __init__(self, text_model=None, sleep: Callable[[float], None] = time.sleep):
        self.text_model = text_model or get_text_model()
        self.sleep = sleep

    def _parse_session(self, text: str, lesson_id: int, title: str) -> Dict[str, Any]:
        parsed = parse_json_object(text)
        raw_items = parsed.get('items')
        if not isinstance(raw_items, list) or not raw_items:
            raise PlanParseError('Invalid response format: "items" missing or empty')

        items: List[Dict[str, Any]] = []
        for raw in raw_items:
            if not isinstance(raw, dict) or not raw.get('question') or not raw.get('answer'):
                continue
            category = raw.get('category')
            related = raw.get('relatedTopics')
            items.append({
                'id': len(items) + 1,
                'question': str(raw['question']).strip(),
                'answer': str(raw['answer']).strip(),
                'category': category if category in QA_CATEGORIES else 'general',
                'relatedTopics': [str(t) for t in related] if isinstance(related, list) else [],
                'difficulty': clamp_difficulty(raw.get('difficulty')),
            })
        if not items:
            raise PlanParseError("No usable Q&A item in response")

        return {
            'id': int(time.time() * 1000),
            'lessonId': lesson_id,
            'title': parsed.get('title') or f"Q&A : {title}",
            'items': items,
            'createdAt': datetime.now(timezone.utc).isoformat(),
        }

    def generate_session(
        self,
        lesson_id: int,
        title: str,
        content: Any,
        profile: Optional[UserProfile] = None,
    ) -> Dict[str, Any]:
        """
        Generate a Q&A session for a lesson.

        Raises:
            GenerationFailure: when every attempt failed
        """
        prompt = QA_PROMPT_TEMPLATE.format(
            title=title,
            audience=audience_context(profile),
            content=_dump(content),
            count=QA_ITEM_COUNT,
            categories=', '.join(f'"{c}"' for c in QA_CATEGORIES),
        )
        session = run_with_retries(
            lambda: self._parse_session(self.text_model.generate_text(prompt), lesson_id, title),
            label=f"Q&A session for '{title}'",
            sleep=self.sleep,
        )
        logger.info(f"✓ Q&A session generated: {len(session['items'])} questions")
        return session

    def answer_question(self, question: str, content: Any, profile: Optional[UserProfile] = None) -> str:
        """Answer a free-form question about a lesson; falls back to a canned reply."""
        tone = ANSWER_TONE.get(
            profile.profile_type if profile else '',
            "Réponds de manière équilibrée, accessible mais complète.",
        )
        prompt = ANSWER_PROMPT_TEMPLATE.format(question=question, content=_dump(content), tone=tone)
        try:
            answer = self.text_model.generate_text(prompt).strip()
        except Exception as e:
            logger.error(f"Failed to answer question '{question[:80]}': {e}")
            return FALLBACK_ANSWER
        return answer or FALLBACK_ANSWER

    def answer_section_question(
        self,
        content: Dict[str, Any],
        section_id: str,
        question: str,
        profile: Optional[UserProfile] = None,
    ) -> Dict[str, Any]:
        """
        Answer a question scoped to one section of a lesson.

        Raises:
            LookupError: if no section has this id
        """
        sections = content.get('sections') or []
        section = next((s for s in sections if str(s.get('id')) == str(section_id)), None)
        if section is None:
            raise LookupError(f"Section {section_id} not found")

        context = {
            'lesson': content.get('title'),
            'section': section.get('title'),
            'subsections': [
                {'title': sub.get('title'), 'content': sub.get('content')}
                for sub in section.get('subsections') or []
            ],
        }
        return {
            'sectionId': section_id,
            'sectionTitle': section.get('title'),
            'question': question,
            'answer': self.answer_question(question, context, profile),
        }


# Global service instance
_qa_generator = None


def get_qa_generator() -> QAGenerator:
    """Get or create global Q&A generator"""
    global _qa_generator
    if _qa_generator is None:
        _qa_generator = QAGenerator()
    return _qa_generator
