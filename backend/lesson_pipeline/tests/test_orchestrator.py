"""
Integration-style tests for lesson_pipeline/pipelines/orchestrator.py

Runs the full progressive pipeline against the test database with mocked
external services:
- ContentPlanner (no model calls)
- MediaResolver (no Wikipedia requests)
- SpeechSynthesizer (no Text-to-Speech calls)
- MediaStore (no downloads or storage writes)
- ProgressPublisher (events are recorded on a MagicMock)

Jobs run through ImmediateRunner so every stage finishes before assertions.

Run with: python -m pytest lesson_pipeline/tests/test_orchestrator.py -v
"""
from unittest.mock import MagicMock

from django.db.models.signals import post_save
from django.test import TestCase

from lessons.models import Lesson
from lesson_pipeline.errors import GenerationFailure, SynthesisFailure
from lesson_pipeline.types import LessonImage, LessonPlan, Section, StoredAsset, Subsection
from lesson_pipeline.pipelines.background import ImmediateRunner
from lesson_pipeline.pipelines.orchestrator import LessonGenerationOrchestrator
from lesson_pipeline.services.speech import build_audio_tasks


# =============================================================================
# Test Fixtures
# =============================================================================

def make_photosynthesis_plan() -> LessonPlan:
    """Three sections with 2, 2 and 1 subsections."""
    def sub(title, query):
        return Subsection(title=title, content=f"Explication : {title}.", image_query=query)

    return LessonPlan(
        title="La photosynthèse",
        description="Comment les plantes transforment la lumière en énergie.",
        sections=[
            Section(title="Définition", subsections=[sub("Principe", "photosynthèse"), sub("Équation", "glucose")]),
            Section(title="Phase claire", subsections=[sub("Thylakoïdes", "thylakoïde"), sub("ATP", "ATP")]),
            Section(title="Cycle de Calvin", subsections=[sub("Fixation du CO2", "cycle de Calvin")]),
        ],
        conclusion="Sans photosynthèse, pas de vie sur Terre.",
    )


def make_mock_planner(plan: LessonPlan = None, error: Exception = None) -> MagicMock:
    planner = MagicMock()
    if error is not None:
        planner.generate_plan.side_effect = error
    else:
        planner.generate_plan.return_value = plan or make_photosynthesis_plan()
    return planner


def make_mock_resolver(missing=()) -> MagicMock:
    """Resolver returning a wiki image per query, None for queries in missing."""
    resolver = MagicMock()
    resolver.resolve_many.side_effect = lambda queries: [
        None if q in missing else LessonImage(url=f"https://wiki.example/{q}.jpg", title=q)
        for q in queries
    ]
    return resolver


def make_mock_media_store(failing=()) -> MagicMock:
    """Store that moves images to the CDN, None for titles in failing."""
    store = MagicMock()
    store.optimize_many.side_effect = lambda images: [
        None if image.title in failing
        else StoredAsset(url=image.url.replace("wiki.example", "cdn.example"), public_id=image.title)
        for image in images
    ]
    return store


def make_mock_synthesizer() -> MagicMock:
    synthesizer = MagicMock()
    synthesizer.synthesize_to_url.return_value = "https://cdn.example/audio/intro.mp3"
    synthesizer.synthesize_lesson_audio.side_effect = lambda plan, skip_keys=None: {
        task.key: f"https://cdn.example/audio/{task.key}.mp3"
        for task in build_audio_tasks(plan)
        if task.key not in (skip_keys or set())
    }
    return synthesizer


# =============================================================================
# Test Cases
# =============================================================================

class OrchestratorTestCase(TestCase):
    """Shared setup: mocked collaborators and a status recorder."""

    def setUp(self):
        self.planner = make_mock_planner()
        self.resolver = make_mock_resolver()
        self.media_store = make_mock_media_store()
        self.synthesizer = make_mock_synthesizer()
        self.publisher = MagicMock()

        self.statuses = []
        post_save.connect(self._record_status, sender=Lesson)
        self.addCleanup(post_save.disconnect, self._record_status, sender=Lesson)

        self.lesson = Lesson.objects.create(title="La photosynthèse")

    def _record_status(self, sender, instance, **kwargs):
        self.statuses.append(instance.status)

    def make_orchestrator(self) -> LessonGenerationOrchestrator:
        return LessonGenerationOrchestrator(
            planner=self.planner,
            resolver=self.resolver,
            synthesizer=self.synthesizer,
            media_store=self.media_store,
            publisher=self.publisher,
            runner=ImmediateRunner(),
        )

    def progress_values(self):
        return [c.args[1] for c in self.publisher.send_progress.call_args_list]


class TestProgressiveGeneration(OrchestratorTestCase):
    """End-to-end happy path."""

    def test_photosynthesis_end_to_end(self):
        """Status should walk draft -> processing -> plan_ready -> intro_ready -> ready."""
        future = self.make_orchestrator().start_generation(self.lesson.id)

        self.assertIsNone(future.exception())
        self.assertEqual(self.statuses, ['draft', 'processing', 'plan_ready', 'intro_ready', 'ready'])

        lesson = Lesson.objects.get(pk=self.lesson.id)
        content = lesson.content
        self.assertEqual(lesson.status, Lesson.Status.READY)
        self.assertEqual(lesson.description, "Comment les plantes transforment la lumière en énergie.")
        self.assertEqual(lesson.plan, {'sections': [
            {'title': 'Définition'}, {'title': 'Phase claire'}, {'title': 'Cycle de Calvin'},
        ]})

        # 1 intro + 3 section intros + 5 subsections + conclusion
        self.assertEqual(len(content['audioFiles']), 10)
        self.assertEqual(content['audioFiles']['intro'], "https://cdn.example/audio/intro.mp3")

        # Section 0 keeps its resolver URLs, later sections use optimised URLs
        self.assertEqual(
            content['sections'][0]['subsections'][0]['image']['url'], "https://wiki.example/photosynthèse.jpg",
        )
        self.assertEqual(
            content['sections'][2]['subsections'][0]['image']['url'], "https://cdn.example/cycle de Calvin.jpg",
        )
        self.assertTrue(all(section['id'] for section in content['sections']))

    def test_progress_events(self):
        """Progress should be published at each milestone, then ready with the content."""
        self.make_orchestrator().start_generation(self.lesson.id)

        self.assertEqual(self.progress_values(), [10, 30, 50, 60, 70, 80])
        self.publisher.send_ready.assert_called_once()
        lesson_id, content = self.publisher.send_ready.call_args.args
        self.assertEqual(lesson_id, self.lesson.id)
        self.assertEqual(content, Lesson.objects.get(pk=self.lesson.id).content)
        self.publisher.send_error.assert_not_called()

    def test_intro_audio_is_not_synthesized_twice(self):
        """Stage 3 should skip the intro slot persisted at stage 2."""
        self.make_orchestrator().start_generation(self.lesson.id)

        skip_keys = self.synthesizer.synthesize_lesson_audio.call_args.kwargs['skip_keys']
        self.assertEqual(skip_keys, {'intro'})

    def test_missing_and_unoptimised_images(self):
        """A miss leaves the slot empty; an optimisation failure keeps the original URL."""
        self.resolver = make_mock_resolver(missing={"ATP"})
        self.media_store = make_mock_media_store(failing={"thylakoïde"})

        self.make_orchestrator().start_generation(self.lesson.id)

        content = Lesson.objects.get(pk=self.lesson.id).content
        phase = content['sections'][1]['subsections']
        self.assertEqual(phase[0]['image']['url'], "https://wiki.example/thylakoïde.jpg")
        self.assertNotIn('image', phase[1])

    def test_stage_three_merges_into_latest_row(self):
        """Edits committed while stage 3 runs must survive the final merge."""
        original = self.synthesizer.synthesize_lesson_audio.side_effect

        def concurrent_edit(plan, skip_keys=None):
            lesson = Lesson.objects.get(pk=self.lesson.id)
            lesson.content['sections'][0]['check_understanding'] = True
            lesson.content['audioFiles']['extra'] = "https://cdn.example/audio/extra.mp3"
            lesson.save()
            return original(plan, skip_keys=skip_keys)

        self.synthesizer.synthesize_lesson_audio.side_effect = concurrent_edit

        self.make_orchestrator().start_generation(self.lesson.id)

        content = Lesson.objects.get(pk=self.lesson.id).content
        self.assertTrue(content['sections'][0]['check_understanding'])
        self.assertEqual(content['audioFiles']['extra'], "https://cdn.example/audio/extra.mp3")
        self.assertIn('conclusion', content['audioFiles'])


class TestGenerationFailures(OrchestratorTestCase):
    """Failure paths for each stage."""

    def test_plan_failure_rolls_back_to_draft(self):
        """A planner failure should reset the lesson to draft and publish an error."""
        self.planner = make_mock_planner(error=GenerationFailure("quota"))

        future = self.make_orchestrator().start_generation(self.lesson.id)

        self.assertIsInstance(future.exception(), GenerationFailure)
        self.assertEqual(Lesson.objects.get(pk=self.lesson.id).status, Lesson.Status.DRAFT)
        self.publisher.send_error.assert_called_once()
        self.assertEqual(self.publisher.send_error.call_args.kwargs['stage'], 'draft')
        self.synthesizer.synthesize_lesson_audio.assert_not_called()

    def test_intro_failure_rolls_back_to_draft(self):
        """An intro synthesis failure should also reset the lesson to draft."""
        self.synthesizer.synthesize_to_url.side_effect = SynthesisFailure("tts down")

        future = self.make_orchestrator().start_generation(self.lesson.id)

        self.assertIsInstance(future.exception(), SynthesisFailure)
        self.assertEqual(Lesson.objects.get(pk=self.lesson.id).status, Lesson.Status.DRAFT)
        self.assertEqual(self.progress_values(), [10, 30])

    def test_background_failure_keeps_intro_ready(self):
        """A stage 3 failure should leave the lesson usable at intro_ready."""
        self.synthesizer.synthesize_lesson_audio.side_effect = RuntimeError("batch exploded")

        future = self.make_orchestrator().start_generation(self.lesson.id)

        self.assertIsNone(future.exception())
        lesson = Lesson.objects.get(pk=self.lesson.id)
        self.assertEqual(lesson.status, Lesson.Status.INTRO_READY)
        self.assertEqual(lesson.content['audioFiles'], {'intro': "https://cdn.example/audio/intro.mp3"})
        self.assertEqual(self.publisher.send_error.call_args.kwargs['stage'], 'intro_ready')
        self.publisher.send_ready.assert_not_called()

    def test_deleted_lesson_is_reported(self):
        """Generating a lesson deleted mid-flight should fail without crashing the runner."""
        orchestrator = self.make_orchestrator()
        lesson_id = self.lesson.id

        def delete_then_plan(title, profile=None):
            Lesson.objects.filter(pk=lesson_id).delete()
            return make_photosynthesis_plan()

        self.planner.generate_plan.side_effect = delete_then_plan

        future = orchestrator.start_generation(lesson_id)

        self.assertIsNotNone(future.exception())
        self.publisher.send_error.assert_called_once()

    def test_lesson_deleted_before_job_runs_is_reported(self):
        """A job whose lesson is already gone should publish an error and skip planning."""
        orchestrator = self.make_orchestrator()
        lesson_id = self.lesson.id
        Lesson.objects.filter(pk=lesson_id).delete()

        with self.assertRaises(Lesson.DoesNotExist):
            orchestrator.generate_lesson(lesson_id)

        self.planner.generate_plan.assert_not_called()
        self.publisher.send_error.assert_called_once()
        self.assertEqual(self.publisher.send_error.call_args.args[0], lesson_id)
