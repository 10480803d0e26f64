"""
Content document construction and merging.

All functions are pure: they take the latest persisted content and return a
new dict. Merges are additive: an attached image or a written audio URL is
never replaced by an empty value.
"""
import uuid
from typing import Any, Dict, List, Optional, Tuple

from lesson_pipeline.types import (
    LessonImage,
    LessonPlan,
    lesson_image_from_dict,
    lesson_image_to_dict,
    lesson_plan_to_dict,
)

ImagePosition = Tuple[int, int]


def _as_dict(value: Any) -> Dict[str, Any]:
    return value if isinstance(value, dict) else {}


def _item(items: Any, index: int) -> Dict[str, Any]:
    if isinstance(items, list) and index < len(items):
        return _as_dict(items[index])
    return {}


def ensure_section_ids(plan: LessonPlan) -> LessonPlan:
    """Give every section a stable id, keeping ids that already exist."""
    for section in plan.sections:
        if not section.id:
            section.id = str(uuid.uuid4())
    return plan


def plan_summary(plan: LessonPlan) -> Dict[str, Any]:
    """Lightweight plan stored on the lesson: section titles only."""
    return {'sections': [{'title': section.title} for section in plan.sections]}


def first_section_queries(plan: LessonPlan) -> List[str]:
    if not plan.sections:
        return []
    return [sub.image_query for sub in plan.sections[0].subsections]


def remaining_image_positions(plan: LessonPlan) -> List[ImagePosition]:
    """(section, subsection) positions of every subsection after section 0."""
    return [
        (i, j)
        for i, section in enumerate(plan.sections)
        if i > 0
        for j, _ in enumerate(section.subsections)
    ]


def build_plan_content(plan: LessonPlan, first_images: List[Optional[LessonImage]]) -> Dict[str, Any]:
    """
    Content document for the plan_ready stage.

    Images are attached to section 0 only and the audio mapping starts empty.
    """
    ensure_section_ids(plan)
    content = lesson_plan_to_dict(plan)

    if content['sections']:
        for j, subsection in enumerate(content['sections'][0]['subsections']):
            image = first_images[j] if j < len(first_images) else None
            if image is not None:
                subsection['image'] = lesson_image_to_dict(image)

    content['audioFiles'] = {}
    return content


def merge_audio(current: Dict[str, Any], audio_files: Dict[str, Optional[str]]) -> Dict[str, Any]:
    """Add audio URLs to the current content; empty values never overwrite."""
    merged = dict(_as_dict(current))
    files = dict(_as_dict(merged.get('audioFiles')))
    for key, url in audio_files.items():
        if url:
            files[key] = url
    merged['audioFiles'] = files
    return merged


def merge_final_content(
    current: Dict[str, Any],
    plan: LessonPlan,
    new_images: Dict[ImagePosition, LessonImage],
) -> Dict[str, Any]:
    """
    Rebuild the full document from the plan over the latest persisted content.

    Existing section ids, check_understanding flags, attached images and
    audio URLs are kept. New images only fill subsections that have none.
    """
    current = _as_dict(current)
    current_sections = current.get('sections')

    sections = []
    for i, section in enumerate(plan.sections):
        existing_section = _item(current_sections, i)
        existing_subsections = existing_section.get('subsections')

        subsections = []
        for j, subsection in enumerate(section.subsections):
            existing_image = lesson_image_from_dict(_item(existing_subsections, j).get('image'))
            image = existing_image or new_images.get((i, j)) or subsection.image

            data: Dict[str, Any] = {
                'title': subsection.title,
                'content': subsection.content,
                'imageQuery': subsection.image_query,
            }
            if image is not None:
                data['image'] = lesson_image_to_dict(image)
            subsections.append(data)

        sections.append({
            'id': existing_section.get('id') or section.id or str(uuid.uuid4()),
            'title': section.title,
            'check_understanding': bool(
                existing_section.get('check_understanding', section.check_understanding)
            ),
            'subsections': subsections,
        })

    merged = dict(current)
    merged.update({
        'title': plan.title,
        'description': plan.description,
        'sections': sections,
        'conclusion': plan.conclusion,
        'audioFiles': dict(_as_dict(current.get('audioFiles'))),
    })
    return merged
