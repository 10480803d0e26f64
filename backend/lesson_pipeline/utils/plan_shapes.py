"""
Normalization of model-produced plan JSON onto the canonical lesson shape.

The model is asked for ``{title, description, sections[{title,
subsections[{title, content, imageQuery}]}], conclusion}`` but regularly
answers with French key names or nests the plan one level down. Each shape
adapter is a pure function that returns a remapped object, or ``None`` when
the input does not match its pattern. Adapters run in order over the
output of the previous one.
"""
import logging
from typing import Any, Callable, Dict, List, Optional, Tuple

from lesson_pipeline.errors import PlanParseError
from lesson_pipeline.types import LessonPlan, Section, Subsection

logger = logging.getLogger(__name__)

ShapeAdapter = Callable[[Dict[str, Any]], Optional[Dict[str, Any]]]


NESTED_PLAN_KEYS = ('plan_de_cours', 'course_plan', 'Plan de Cours', 'PlanDeCours')
MAIN_PARTS_KEYS = ('grandes_parties', 'Grandes Parties', 'GrandesParties')
SUBPARTS_KEYS = ('sous_parties', 'Sous-parties', 'SousParties')

ROOT_TITLE_KEYS = (
    'titre_lecon', 'titre_lecon_officiel', 'TitreLeconOfficiel', 'Titre de la Leçon',
    'titre', 'title', 'lesson_title', 'Lesson Title',
)
ROOT_DESCRIPTION_KEYS = ('description', 'Introduction', 'introduction')
PART_TITLE_KEYS = ('titre', 'titre_partie', 'titre_officiel', 'nom')
SUBPART_TITLE_KEYS = ('titre', 'titre_sous_partie', 'nom')
SUBPART_CONTENT_KEYS = ('contenu', 'description', 'texte')
SUBPART_IMAGE_KEYS = ('mots_cles_image', 'imageQuery', 'titre')

DEFAULT_IMAGE_QUERY = 'education'


def _text(value: Any) -> str:
    """Coerce a loosely-typed JSON value to a stripped string."""
    if value is None:
        return ''
    if isinstance(value, (list, tuple)):
        return ' '.join(_text(item) for item in value).strip()
    text = str(value).strip()
    return '' if text == 'undefined' else text


def _first_text(data: Dict[str, Any], keys: Tuple[str, ...]) -> str:
    for key in keys:
        value = _text(data.get(key))
        if value:
            return value
    return ''


def _has_sections(data: Dict[str, Any]) -> bool:
    return 'sections' in data and data['sections'] is not None


# =============================================================================
# Shape adapters
# =============================================================================

def hoist_nested_plan(data: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    """Lift a plan nested under a "course plan" key up to the top level."""
    if _has_sections(data):
        return None

    for key in NESTED_PLAN_KEYS:
        nested = data.get(key)
        if isinstance(nested, dict):
            logger.info(f"⚠️ Nested plan detected under '{key}', hoisting it")
            hoisted = dict(nested)
            root_title = _first_text(data, ROOT_TITLE_KEYS)
            root_description = _first_text(data, ROOT_DESCRIPTION_KEYS)
            if root_title and not _first_text(hoisted, ROOT_TITLE_KEYS):
                hoisted['title'] = root_title
            if root_description and not _first_text(hoisted, ROOT_DESCRIPTION_KEYS):
                hoisted['description'] = root_description
            return hoisted
    return None


def map_main_parts(data: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    """Map French "main parts"/"subparts" keys onto sections/subsections."""
    if _has_sections(data):
        return None

    parts = None
    for key in MAIN_PARTS_KEYS:
        if isinstance(data.get(key), list):
            parts = data[key]
            break
    if parts is None:
        return None

    logger.info(f"⚠️ Alternate part keys detected, mapping {len(parts)} parts")
    title = _first_text(data, ROOT_TITLE_KEYS) or 'Titre de la leçon'
    description = _first_text(data, ROOT_DESCRIPTION_KEYS) or f"Leçon sur {title}"

    sections = []
    for part in parts:
        part = part if isinstance(part, dict) else {}
        raw_subparts: List[Any] = []
        for key in SUBPARTS_KEYS:
            if isinstance(part.get(key), list):
                raw_subparts = part[key]
                break

        subsections = []
        for sub in raw_subparts:
            sub = sub if isinstance(sub, dict) else {}
            subsections.append({
                'title': _first_text(sub, SUBPART_TITLE_KEYS) or 'Sous-titre manquant',
                'content': _first_text(sub, SUBPART_CONTENT_KEYS),
                'imageQuery': _first_text(sub, SUBPART_IMAGE_KEYS) or 'image',
            })

        sections.append({
            'title': _first_text(part, PART_TITLE_KEYS) or 'Titre manquant',
            'subsections': subsections,
        })

    mapped = dict(data)
    mapped.update({'title': title, 'description': description, 'sections': sections})
    return mapped


SHAPE_ADAPTERS: Tuple[ShapeAdapter, ...] = (
    hoist_nested_plan,
    map_main_parts,
)


def normalize_plan_shape(
    data: Dict[str, Any],
    adapters: Tuple[ShapeAdapter, ...] = SHAPE_ADAPTERS,
) -> Dict[str, Any]:
    """Run every adapter in order, keeping the last successful remap."""
    current = data
    for adapter in adapters:
        remapped = adapter(current)
        if remapped is not None:
            current = remapped
    return current


# =============================================================================
# Back-fill
# =============================================================================

def build_lesson_plan(data: Dict[str, Any], requested_title: str = '') -> LessonPlan:
    """
    Turn a normalized plan dict into a LessonPlan with no empty fields.

    Raises:
        PlanParseError: if ``sections`` is missing or is not a list
    """
    raw_sections = data.get('sections')
    if not isinstance(raw_sections, list):
        preview = str(data)[:200]
        logger.warning(f"⚠️ Invalid plan received (no sections list): {preview}...")
        raise PlanParseError('Invalid response format: "sections" missing or not a list')

    sections: List[Section] = []
    for index, raw_section in enumerate(raw_sections):
        raw_section = raw_section if isinstance(raw_section, dict) else {}
        section_title = _text(raw_section.get('title')) or f"Section {index + 1}"

        raw_subsections = raw_section.get('subsections')
        if not isinstance(raw_subsections, list):
            raw_subsections = []

        subsections: List[Subsection] = []
        for sub_index, raw_sub in enumerate(raw_subsections):
            raw_sub = raw_sub if isinstance(raw_sub, dict) else {}
            sub_title = _text(raw_sub.get('title')) or f"Sous-section {sub_index + 1}"
            content = _text(raw_sub.get('content')) or f"Contenu en cours de rédaction pour {sub_title}."
            image_query = _text(raw_sub.get('imageQuery'))
            if not image_query:
                logger.warning(f"⚠️ Missing imageQuery for '{sub_title}', using the title instead")
                image_query = sub_title or section_title or DEFAULT_IMAGE_QUERY
            subsections.append(Subsection(title=sub_title, content=content, image_query=image_query))

        sections.append(Section(
            title=section_title,
            subsections=subsections,
            id=_text(raw_section.get('id')) or None,
            check_understanding=bool(raw_section.get('check_understanding', False)),
        ))

    title = _first_text(data, ROOT_TITLE_KEYS) or requested_title
    return LessonPlan(
        title=title,
        description=_first_text(data, ROOT_DESCRIPTION_KEYS),
        sections=sections,
        conclusion=_text(data.get('conclusion')),
    )
