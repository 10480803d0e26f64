"""
Content planner service - turns a lesson title into a structured plan.
"""
import logging
import time
from typing import Callable, Optional

from lesson_pipeline.types import LessonPlan, UserProfile
from lesson_pipeline.services.text_model import get_text_model, run_with_retries
from lesson_pipeline.utils.json_extraction import parse_json_object
from lesson_pipeline.utils.plan_shapes import build_lesson_plan, normalize_plan_shape

logger = logging.getLogger(__name__)


PLAN_PROMPT_TEMPLATE = """
Agis en tant qu'expert en ingénierie pédagogique et spécialiste des systèmes éducatifs internationaux. Ta mission est de concevoir un plan de cours 100% conforme à la réalité scolaire de l'élève.

1. ANALYSE ET IDENTIFICATION
• Analyse le titre saisi : '{title}'.
• Détermine précisément la Matière Scolaire correspondante pour le profil suivant : {profile} au {country}.

2. RECHERCHE WEB EN TEMPS RÉEL (GOOGLE SEARCH)
• Effectue une recherche approfondie pour trouver le programme officiel national ou le référentiel pédagogique du Ministère de l'Éducation{country_suffix} pour cette matière et ce niveau.
• Cherche les sommaires de manuels scolaires agréés ou les fiches de cours officielles du pays.

3. EXTRACTION ET MAPPING (PRIORITÉ À LA SOURCE)
• Si une source officielle est trouvée : extrais et recopie fidèlement la structure du chapitre correspondant à '{title}'. Tu DOIS utiliser les intitulés exacts du ministère.
• Si le titre est approximatif : identifie le chapitre officiel qui s'en rapproche le plus.
• Si aucune source n'est accessible : synthétise un plan basé sur les standards académiques stricts du pays.

4. STRUCTURE PÉDAGOGIQUE DU PLAN
• Introduction de la leçon.
• Sections (grandes parties, titres officiels).
• Sous-sections pour chaque section (détails des leçons).
• Conclusion de la leçon.

5. RÉDACTION DU CONTENU (CRUCIAL)
• Pour chaque sous-section, tu DOIS rédiger un CONTENU PÉDAGOGIQUE DÉTAILLÉ (champ "content").
• Ce contenu doit être un véritable cours complet, explicatif et structuré, prêt à être lu par l'élève.
• NE JAMAIS METTRE de "contenu en cours de rédaction" ou de phrases vides.

6. FORMAT DE SORTIE (STRICT JSON)
• Réponds EXCLUSIVEMENT avec un objet JSON valide respectant scrupuleusement ce schéma :

```json
{{
  "title": "Titre officiel de la leçon",
  "description": "Introduction et objectifs de la leçon",
  "sections": [
    {{
      "title": "Titre de la Grande Partie 1",
      "subsections": [
        {{
          "title": "Titre de la sous-partie 1.1",
          "content": "Texte complet et détaillé du cours pour cette sous-partie.",
          "imageQuery": "Terme de recherche pour une image illustrative"
        }}
      ]
    }}
  ],
  "conclusion": "Résumé et ouverture"
}}
```

• Interdiction formelle : ne pas inventer de chapitres hors programme.
• Le titre final de la leçon dans le JSON doit être l'intitulé académique officiel trouvé lors de la recherche.
""".strip()


def describe_profile(profile: Optional[UserProfile]) -> str:
    """Short French description of the learner used inside prompts."""
    if profile is None:
        return "Apprenant (niveau non précisé)"

    if profile.profile_type == 'pupil':
        parts = ["Élève de", profile.education_level or "", profile.series or ""]
    elif profile.profile_type == 'professional':
        parts = ["Professionnel en", profile.specialty or ""]
    else:
        parts = ["Étudiant"]
        if profile.institution_name:
            parts.append(f"à {profile.institution_name}")
        parts.append(f"en {profile.specialty or ''}")
        if profile.study_year:
            parts.append(f"({profile.study_year})")
    return " ".join(part for part in parts if part).strip()


class ContentPlanner:
    """Service for generating lesson plans with a text model"""

    def __init__(self, text_model=None, sleep: Callable[[float], None] = time.sleep):
        self.text_model = text_model or get_text_model()
        self.sleep = sleep

    def build_prompt(self, title: str, profile: Optional[UserProfile] = None) -> str:
        country = profile.country if profile and profile.country else None
        return PLAN_PROMPT_TEMPLATE.format(
            title=title,
            profile=describe_profile(profile),
            country=country or 'International',
            country_suffix=f" du {country}" if country else "",
        )

    def generate_plan(self, title: str, profile: Optional[UserProfile] = None) -> LessonPlan:
        """
        Generate a lesson plan for a title.

        Args:
            title: Lesson title typed by the learner
            profile: Optional learner context

        Returns:
            LessonPlan where every subsection has a title, content and image query

        Raises:
            GenerationFailure: when every attempt failed
        """
        if profile:
            logger.info(
                f"Learner profile: {profile.profile_type} "
                f"{profile.education_level or ''} {profile.specialty or ''}".rstrip()
            )
        prompt = self.build_prompt(title, profile)

        def attempt() -> LessonPlan:
            text = self.text_model.generate_text(prompt)
            logger.debug(f"Model response received: {text[:200]}...")
            parsed = normalize_plan_shape(parse_json_object(text))
            return build_lesson_plan(parsed, requested_title=title)

        plan = run_with_retries(attempt, label=f"Lesson plan for '{title}'", sleep=self.sleep)
        logger.info(
            f"✓ Plan ready: '{plan.title}' with {len(plan.sections)} sections, "
            f"{sum(len(s.subsections) for s in plan.sections)} subsections"
        )
        return plan


# Global service instance
_planner = None


def get_content_planner() -> ContentPlanner:
    """Get or create global content planner"""
    global _planner
    if _planner is None:
        _planner = ContentPlanner()
    return _planner
