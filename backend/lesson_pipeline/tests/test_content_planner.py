"""
Tests for lesson_pipeline/services/content_planner.py and the retry policy
in lesson_pipeline/services/text_model.py

The text model is mocked and ``sleep`` is injected, so no provider call is
made and no test actually waits.

Run with: python -m pytest lesson_pipeline/tests/test_content_planner.py -v
"""
import json
import unittest
from unittest.mock import MagicMock, patch

from lesson_pipeline.errors import GenerationFailure
from lesson_pipeline.types import UserProfile
from lesson_pipeline.services.content_planner import ContentPlanner, describe_profile
from lesson_pipeline.services.text_model import (
    backoff_seconds,
    error_status,
    is_retryable,
    retry_after_seconds,
    run_with_retries,
)


# =============================================================================
# Test Fixtures
# =============================================================================

class ProviderError(Exception):
    """Stand-in for an SDK error carrying an HTTP status."""

    def __init__(self, code: int, headers=None):
        super().__init__(f"provider error {code}")
        self.code = code
        self.response = MagicMock(status_code=code, headers=headers or {})


def make_plan_json(title: str = "La photosynthèse") -> str:
    """A valid plan, fenced the way models usually answer."""
    plan = {
        "title": title,
        "description": "Comment les plantes fabriquent leur nourriture.",
        "sections": [
            {
                "title": "Les bases",
                "subsections": [
                    {"title": "Définition", "content": "Processus...", "imageQuery": "photosynthèse"},
                ],
            },
        ],
        "conclusion": "À retenir.",
    }
    return f"```json\n{json.dumps(plan, ensure_ascii=False)}\n```"


def make_mock_text_model(*responses) -> MagicMock:
    """Text model whose generate_text yields the given responses (or raises them)."""
    model = MagicMock()
    model.generate_text.side_effect = list(responses)
    return model


# =============================================================================
# Test Cases
# =============================================================================

class TestDescribeProfile(unittest.TestCase):
    """Tests for the learner description injected in prompts."""

    def test_no_profile(self):
        self.assertEqual(describe_profile(None), "Apprenant (niveau non précisé)")

    def test_pupil(self):
        profile = UserProfile(profile_type='pupil', education_level='Terminale', series='S')
        self.assertEqual(describe_profile(profile), "Élève de Terminale S")

    def test_student(self):
        profile = UserProfile(
            profile_type='student', institution_name='UCAD', specialty='Biologie', study_year='L2',
        )
        self.assertEqual(describe_profile(profile), "Étudiant à UCAD en Biologie (L2)")

    def test_professional(self):
        profile = UserProfile(profile_type='professional', specialty='Agronomie')
        self.assertEqual(describe_profile(profile), "Professionnel en Agronomie")


class TestRetryHelpers(unittest.TestCase):
    """Tests for status extraction and backoff."""

    def test_error_status_from_attribute_and_response(self):
        self.assertEqual(error_status(ProviderError(429)), 429)
        error = Exception("boom")
        error.response = MagicMock(status_code=503)
        self.assertEqual(error_status(error), 503)
        self.assertIsNone(error_status(ValueError("plain")))

    def test_is_retryable(self):
        """Rate limits, unavailability and JSON failures should be retried."""
        self.assertTrue(is_retryable(ProviderError(429)))
        self.assertTrue(is_retryable(ProviderError(503)))
        self.assertTrue(is_retryable(json.JSONDecodeError("bad", "{", 0)))
        self.assertFalse(is_retryable(ProviderError(401)))
        self.assertFalse(is_retryable(ValueError("other")))

    def test_retry_after_header_wins(self):
        """A retry-after header should be used verbatim."""
        error = ProviderError(429, headers={'retry-after': '7'})
        self.assertEqual(retry_after_seconds(error), 7.0)
        self.assertEqual(backoff_seconds(1, error), 7.0)

    def test_fractional_retry_after(self):
        """Fractional retry-after values should be honoured, garbage ignored."""
        self.assertEqual(retry_after_seconds(ProviderError(429, headers={'retry-after': '1.5'})), 1.5)
        self.assertEqual(backoff_seconds(1, ProviderError(429, headers={'retry-after': '0.25'})), 0.25)
        self.assertIsNone(retry_after_seconds(ProviderError(429, headers={'retry-after': 'soon'})))

    @patch('lesson_pipeline.services.text_model.random.randint', return_value=0)
    def test_exponential_backoff(self, mock_randint):
        """Without retry-after, waits should double from one second."""
        error = ProviderError(429)
        self.assertEqual(backoff_seconds(1, error), 1.0)
        self.assertEqual(backoff_seconds(2, error), 2.0)
        self.assertEqual(backoff_seconds(3, error), 4.0)

    def test_backoff_jitter_is_bounded(self):
        """Jitter should add at most one second."""
        for _ in range(20):
            wait = backoff_seconds(1, ProviderError(429))
            self.assertGreaterEqual(wait, 1.0)
            self.assertLessEqual(wait, 2.0)

    def test_gives_up_after_max_attempts(self):
        """Should raise GenerationFailure chained to the last error."""
        sleeps = []
        operation = MagicMock(side_effect=ProviderError(429))

        with self.assertRaises(GenerationFailure) as ctx:
            run_with_retries(operation, "op", max_attempts=5, sleep=sleeps.append)

        self.assertEqual(operation.call_count, 5)
        self.assertEqual(len(sleeps), 4)
        self.assertIsInstance(ctx.exception.__cause__, ProviderError)


class TestContentPlanner(unittest.TestCase):
    """Tests for plan generation with a mocked text model."""

    def test_parses_fenced_plan(self):
        """A fenced valid plan should produce a LessonPlan in one call."""
        model = make_mock_text_model(make_plan_json())
        planner = ContentPlanner(text_model=model, sleep=lambda s: None)

        plan = planner.generate_plan("photosynthèse")

        self.assertEqual(plan.title, "La photosynthèse")
        self.assertEqual(plan.sections[0].subsections[0].image_query, "photosynthèse")
        self.assertEqual(model.generate_text.call_count, 1)

    def test_rate_limited_twice_then_succeeds(self):
        """Two 429s followed by a valid plan should take exactly three calls."""
        sleeps = []
        model = make_mock_text_model(ProviderError(429), ProviderError(429), make_plan_json())
        planner = ContentPlanner(text_model=model, sleep=sleeps.append)

        plan = planner.generate_plan("photosynthèse")

        self.assertEqual(plan.title, "La photosynthèse")
        self.assertEqual(model.generate_text.call_count, 3)
        self.assertEqual(len(sleeps), 2)

    def test_non_retryable_error_fails_after_one_call(self):
        """An authentication error should not be retried."""
        model = make_mock_text_model(ProviderError(401))
        planner = ContentPlanner(text_model=model, sleep=lambda s: None)

        with self.assertRaises(GenerationFailure):
            planner.generate_plan("photosynthèse")
        self.assertEqual(model.generate_text.call_count, 1)

    def test_malformed_json_is_retried(self):
        """A response without a sections list should be retried like a parse failure."""
        model = make_mock_text_model('{"title": "Sans sections"}', make_plan_json())
        planner = ContentPlanner(text_model=model, sleep=lambda s: None)

        plan = planner.generate_plan("photosynthèse")

        self.assertEqual(len(plan.sections), 1)
        self.assertEqual(model.generate_text.call_count, 2)

    def test_missing_title_falls_back_to_request(self):
        """A plan without title should use the requested title."""
        model = make_mock_text_model('{"sections": []}')
        planner = ContentPlanner(text_model=model, sleep=lambda s: None)

        plan = planner.generate_plan("Les volcans")

        self.assertEqual(plan.title, "Les volcans")
        self.assertEqual(plan.sections, [])

    def test_prompt_mentions_title_and_country(self):
        """The prompt should carry the title, the learner and the country."""
        planner = ContentPlanner(text_model=MagicMock(), sleep=lambda s: None)
        profile = UserProfile(profile_type='pupil', education_level='Terminale', country='Sénégal')

        prompt = planner.build_prompt("La photosynthèse", profile)

        self.assertIn("La photosynthèse", prompt)
        self.assertIn("Élève de Terminale", prompt)
        self.assertIn("Sénégal", prompt)


if __name__ == '__main__':
    unittest.main()
