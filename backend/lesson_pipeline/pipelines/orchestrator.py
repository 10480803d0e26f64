"""
Main orchestrator pipeline.

Drives progressive lesson generation on a single Lesson row:

    draft -> processing -> plan_ready -> intro_ready -> ready

Stages 1-2 (plan, intro audio) run synchronously inside the generation job
and roll the lesson back to draft on failure. Stage 3 (remaining images,
optimisation, all audio) is submitted as a separate background job; if it
fails the lesson stays at intro_ready so the learner keeps what was already
delivered.

Every stage commits through ``_commit_stage``, which re-reads the row under
``select_for_update`` and merges into the persisted content rather than an
in-memory copy.
"""
import logging
from typing import Any, Callable, Dict, List, Optional, Tuple

from django.db import transaction

from lessons.models import Lesson
from lesson_pipeline.errors import PersistenceConflict
from lesson_pipeline.types import LessonImage, LessonPlan, UserProfile
from lesson_pipeline.pipelines.background import get_background_runner
from lesson_pipeline.pipelines.content_merge import (
    ImagePosition,
    build_plan_content,
    first_section_queries,
    merge_audio,
    merge_final_content,
    plan_summary,
    remaining_image_positions,
)
from lesson_pipeline.services.content_planner import get_content_planner
from lesson_pipeline.services.media_resolver import get_media_resolver
from lesson_pipeline.services.media_store import get_media_store
from lesson_pipeline.services.progress import get_progress_publisher
from lesson_pipeline.services.speech import get_speech_synthesizer, intro_text

logger = logging.getLogger(__name__)


class LessonGenerationOrchestrator:
    """Coordinates planner, resolver, media store and synthesizer for one lesson"""

    def __init__(
        self,
        planner=None,
        resolver=None,
        synthesizer=None,
        media_store=None,
        publisher=None,
        runner=None,
    ):
        self.planner = planner or get_content_planner()
        self.resolver = resolver or get_media_resolver()
        self.synthesizer = synthesizer or get_speech_synthesizer()
        self.media_store = media_store or get_media_store()
        self.publisher = publisher or get_progress_publisher()
        self.runner = runner or get_background_runner()

    # =========================================================================
    # Persistence
    # =========================================================================

    def _commit_stage(self, lesson_id: int, apply: Callable[[Lesson], None]) -> Lesson:
        """Read the latest row under lock, apply the stage's changes, save."""
        with transaction.atomic():
            try:
                lesson = Lesson.objects.select_for_update().get(pk=lesson_id)
            except Lesson.DoesNotExist as e:
                raise PersistenceConflict(f"Lesson {lesson_id} no longer exists") from e
            apply(lesson)
            lesson.save()
        return lesson

    def _rollback_to_draft(self, lesson_id: int) -> None:
        updated = Lesson.objects.filter(pk=lesson_id).update(status=Lesson.Status.DRAFT)
        if not updated:
            logger.warning(f"Lesson {lesson_id} vanished before rollback")

    # =========================================================================
    # Entry points
    # =========================================================================

    def start_generation(self, lesson_id: int, profile: Optional[UserProfile] = None):
        """Mark the lesson as processing and submit the generation job."""
        def mark_processing(lesson: Lesson) -> None:
            lesson.status = Lesson.Status.PROCESSING

        self._commit_stage(lesson_id, mark_processing)
        return self.runner.submit(lesson_id, self.generate_lesson, lesson_id, profile)

    def generate_lesson(self, lesson_id: int, profile: Optional[UserProfile] = None) -> Dict[str, Any]:
        """
        Run stages 1-2 synchronously, then detach stage 3.

        Returns:
            The content document persisted at intro_ready

        Raises:
            Whatever stage 1-2 raised, after the lesson was rolled back to draft
            and an error event was published
        """
        try:
            lesson = Lesson.objects.get(pk=lesson_id)
            logger.info(f"=== Starting progressive generation for lesson {lesson_id}: {lesson.title} ===")

            self.publisher.send_progress(
                lesson_id, 10, 'Génération du plan de cours...', stage=Lesson.Status.PROCESSING,
            )
            plan = self.planner.generate_plan(lesson.title, profile)
            self._plan_ready(lesson_id, plan)
            content = self._intro_ready(lesson_id, plan)
        except Exception as e:
            logger.error(f"Lesson {lesson_id} generation failed: {e}", exc_info=True)
            self._rollback_to_draft(lesson_id)
            self.publisher.send_error(lesson_id, str(e), stage=Lesson.Status.DRAFT)
            raise

        self.runner.submit(lesson_id, self.complete_lesson, lesson_id, plan)
        return content

    # =========================================================================
    # Stages
    # =========================================================================

    def _plan_ready(self, lesson_id: int, plan: LessonPlan) -> None:
        logger.info("Stage 1: resolving images for the first section...")
        queries = first_section_queries(plan)
        if not queries:
            logger.warning("⚠️ Plan has no first section to illustrate")
        first_images = self.resolver.resolve_many(queries)
        logger.info(f"First section images: {sum(1 for i in first_images if i)}/{len(first_images)}")

        content = build_plan_content(plan, first_images)

        def apply(lesson: Lesson) -> None:
            lesson.description = plan.description
            lesson.plan = plan_summary(plan)
            lesson.content = content
            lesson.status = Lesson.Status.PLAN_READY

        self._commit_stage(lesson_id, apply)
        self.publisher.send_progress(
            lesson_id, 30, "Plan prêt ! Génération de l'introduction...", stage=Lesson.Status.PLAN_READY,
        )

    def _intro_ready(self, lesson_id: int, plan: LessonPlan) -> Dict[str, Any]:
        logger.info("Stage 2: synthesizing the introduction...")
        intro_url = self.synthesizer.synthesize_to_url(intro_text(plan.title, plan.description), 'intro')

        def apply(lesson: Lesson) -> None:
            lesson.content = merge_audio(lesson.content, {'intro': intro_url})
            lesson.status = Lesson.Status.INTRO_READY

        lesson = self._commit_stage(lesson_id, apply)
        self.publisher.send_progress(
            lesson_id, 50, 'Introduction prête ! Vous pouvez commencer...', stage=Lesson.Status.INTRO_READY,
        )
        return lesson.content

    def _optimized_images(self, lesson_id: int, plan: LessonPlan) -> Dict[ImagePosition, LessonImage]:
        positions = remaining_image_positions(plan)
        queries = [plan.sections[i].subsections[j].image_query for i, j in positions]
        logger.info(f"Resolving {len(queries)} remaining images...")
        self.publisher.send_progress(lesson_id, 60, 'Images en cours...', stage=Lesson.Status.INTRO_READY)
        resolved = self.resolver.resolve_many(queries)

        found: List[Tuple[ImagePosition, LessonImage]] = [
            (position, image) for position, image in zip(positions, resolved) if image is not None
        ]
        logger.info(f"Optimizing {len(found)} valid images...")
        self.publisher.send_progress(lesson_id, 70, 'Optimisation...', stage=Lesson.Status.INTRO_READY)
        stored = self.media_store.optimize_many([image for _, image in found])

        images: Dict[ImagePosition, LessonImage] = {}
        for (position, image), asset in zip(found, stored):
            url = asset.url if asset is not None else image.url
            images[position] = LessonImage(url=url, title=image.title, description=image.description)
        return images

    def complete_lesson(self, lesson_id: int, plan: LessonPlan) -> Optional[Dict[str, Any]]:
        """
        Stage 3: remaining images and all audio, then mark the lesson ready.

        Failures are published on the progress channel and leave the lesson
        at intro_ready. Returns the final content, or None on failure.
        """
        logger.info(f"Stage 3: completing lesson {lesson_id} in the background")
        try:
            new_images = self._optimized_images(lesson_id, plan)

            current = Lesson.objects.get(pk=lesson_id).content or {}
            existing_audio = set((current.get('audioFiles') or {}).keys())

            self.publisher.send_progress(
                lesson_id, 80, 'Génération audio des sections...', stage=Lesson.Status.INTRO_READY,
            )
            audio_files = self.synthesizer.synthesize_lesson_audio(plan, skip_keys=existing_audio)

            def apply(lesson: Lesson) -> None:
                merged = merge_final_content(lesson.content, plan, new_images)
                lesson.content = merge_audio(merged, audio_files)
                lesson.status = Lesson.Status.READY

            lesson = self._commit_stage(lesson_id, apply)
        except Exception as e:
            logger.error(f"Background completion failed for lesson {lesson_id}: {e}", exc_info=True)
            self.publisher.send_error(lesson_id, str(e), stage=Lesson.Status.INTRO_READY)
            return None

        self.publisher.send_ready(lesson_id, lesson.content)
        logger.info(f"=== Lesson {lesson_id} fully generated ===")
        return lesson.content


# Global orchestrator instance
_orchestrator = None


def get_orchestrator() -> LessonGenerationOrchestrator:
    """Get or create global orchestrator"""
    global _orchestrator
    if _orchestrator is None:
        _orchestrator = LessonGenerationOrchestrator()
    return _orchestrator


def start_lesson_generation(lesson_id: int, profile: Optional[UserProfile] = None):
    """Convenience function used by the HTTP layer"""
    return get_orchestrator().start_generation(lesson_id, profile)
