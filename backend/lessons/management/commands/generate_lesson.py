import json
from pathlib import Path

from django.core.management.base import BaseCommand, CommandError

from lesson_pipeline.pipelines.background import ImmediateRunner
from lesson_pipeline.pipelines.orchestrator import LessonGenerationOrchestrator
from lessons.models import Lesson, UserProfile
from lessons.serializers import profile_context


class Command(BaseCommand):
    help = "Generate a lesson end to end in the foreground: plan, intro audio, images, all audio."

    def add_arguments(self, parser):
        parser.add_argument("title", help="Lesson title, e.g. \"La photosynthèse\"")
        parser.add_argument(
            "--device",
            default=None,
            help="Device id; its stored profile is used as generation context",
        )
        parser.add_argument(
            "--output",
            default=None,
            help="Write the final content document to this JSON file",
        )

    def handle(self, *args, **options):
        title = options["title"].strip()
        if not 3 <= len(title) <= 200:
            raise CommandError("Title must be between 3 and 200 characters.")

        device_id = options["device"]
        profile = None
        if device_id:
            stored = UserProfile.objects.filter(device_id=device_id).first()
            if stored is None:
                self.stderr.write(f"No profile for device {device_id}, generating without one.")
            else:
                profile = profile_context(stored)

        lesson = Lesson.objects.create(title=title, device_id=device_id)
        self.stdout.write(f"Lesson {lesson.id} created: {title}")

        orchestrator = LessonGenerationOrchestrator(runner=ImmediateRunner())
        future = orchestrator.start_generation(lesson.id, profile)
        error = future.exception()
        if error is not None:
            raise CommandError(f"Generation failed: {error}")

        lesson.refresh_from_db()
        self.stdout.write(f"Lesson {lesson.id} finished with status {lesson.status}")
        if lesson.status != Lesson.Status.READY:
            self.stderr.write("Background completion failed; the lesson kept its intro.")

        if options["output"]:
            path = Path(options["output"])
            path.write_text(json.dumps(lesson.content, ensure_ascii=False, indent=2), encoding="utf-8")
            self.stdout.write(self.style.SUCCESS(f"Content written to {path}"))
