"""
Shared types for the lesson generation pipeline.

The persisted content document uses camelCase keys for the fields the
mobile client reads directly (``imageQuery``, ``audioFiles``).
"""
from typing import Optional, Dict, Any, List
from dataclasses import dataclass, field


@dataclass
class UserProfile:
    """Learner context used to adapt generated content"""
    profile_type: str = "other"  # pupil | student | professional | other
    education_level: Optional[str] = None
    specialty: Optional[str] = None
    country: Optional[str] = None
    institution_name: Optional[str] = None
    series: Optional[str] = None
    study_year: Optional[str] = None


@dataclass
class LessonImage:
    """Illustration attached to a subsection"""
    url: str
    title: str = ""
    description: Optional[str] = None


@dataclass
class Subsection:
    title: str
    content: str
    image_query: str
    image: Optional[LessonImage] = None


@dataclass
class Section:
    title: str
    subsections: List[Subsection] = field(default_factory=list)
    id: Optional[str] = None
    check_understanding: bool = False


@dataclass
class LessonPlan:
    """Structured section/subsection skeleton produced by the planner"""
    title: str
    description: str = ""
    sections: List[Section] = field(default_factory=list)
    conclusion: str = ""


@dataclass
class StoredAsset:
    """Asset persisted by the media store"""
    url: str
    public_id: str
    width: Optional[int] = None
    height: Optional[int] = None


@dataclass
class AudioTask:
    """One utterance to synthesize, identified by its slot key"""
    key: str
    text: str


@dataclass
class VoiceOptions:
    language_code: str
    name: str
    model_name: Optional[str] = None
    speaking_rate: float = 1.0


# Helper functions for type conversions
def lesson_image_to_dict(image: LessonImage) -> Dict[str, Any]:
    """Convert LessonImage to dict for serialization"""
    return {
        'url': image.url,
        'title': image.title,
        'description': image.description,
    }


def lesson_image_from_dict(data: Optional[Dict[str, Any]]) -> Optional[LessonImage]:
    """Build a LessonImage from a stored dict, ``None`` when absent or urlless"""
    if not isinstance(data, dict) or not data.get('url'):
        return None
    return LessonImage(
        url=data['url'],
        title=data.get('title') or '',
        description=data.get('description'),
    )


def subsection_to_dict(subsection: Subsection) -> Dict[str, Any]:
    data: Dict[str, Any] = {
        'title': subsection.title,
        'content': subsection.content,
        'imageQuery': subsection.image_query,
    }
    if subsection.image is not None:
        data['image'] = lesson_image_to_dict(subsection.image)
    return data


def section_to_dict(section: Section) -> Dict[str, Any]:
    return {
        'id': section.id,
        'title': section.title,
        'check_understanding': section.check_understanding,
        'subsections': [subsection_to_dict(sub) for sub in section.subsections],
    }


def lesson_plan_to_dict(plan: LessonPlan) -> Dict[str, Any]:
    """Convert LessonPlan to the content document shape (without audio)"""
    return {
        'title': plan.title,
        'description': plan.description,
        'sections': [section_to_dict(section) for section in plan.sections],
        'conclusion': plan.conclusion,
    }
