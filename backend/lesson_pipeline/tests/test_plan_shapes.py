"""
Unit tests for lesson_pipeline/utils/plan_shapes.py

Covers the shape adapters (nested plan, French part keys) and the back-fill
that guarantees every plan field is non-empty.

Run with: python -m pytest lesson_pipeline/tests/test_plan_shapes.py -v
"""
import unittest

from lesson_pipeline.errors import PlanParseError
from lesson_pipeline.types import LessonPlan
from lesson_pipeline.utils.plan_shapes import (
    hoist_nested_plan,
    map_main_parts,
    normalize_plan_shape,
    build_lesson_plan,
)


# =============================================================================
# Test Fixtures
# =============================================================================

def make_canonical_plan() -> dict:
    """A plan already in the canonical shape."""
    return {
        "title": "La photosynthèse",
        "description": "Comment les plantes produisent leur énergie.",
        "sections": [
            {
                "title": "Introduction",
                "subsections": [
                    {"title": "Définition", "content": "La photosynthèse...", "imageQuery": "photosynthèse"},
                    {"title": "Histoire", "content": "Découverte...", "imageQuery": "Jan Ingenhousz"},
                ],
            },
            {
                "title": "Mécanismes",
                "subsections": [
                    {"title": "Phase claire", "content": "Lumière...", "imageQuery": "thylakoïde"},
                ],
            },
        ],
        "conclusion": "Les plantes nourrissent la planète.",
    }


def make_french_parts_plan() -> dict:
    """A plan using the French "grandes parties" keys."""
    return {
        "titre_lecon": "Les volcans",
        "grandes_parties": [
            {
                "titre": "Formation",
                "sous_parties": [
                    {"titre": "Magma", "contenu": "Le magma remonte...", "mots_cles_image": "magma chamber"},
                    {"titre_sous_partie": "Cratère", "texte": "Le cratère..."},
                ],
            },
            {"nom": "Éruptions", "sous_parties": []},
        ],
    }


# =============================================================================
# Test Cases
# =============================================================================

class TestShapeAdapters(unittest.TestCase):
    """Tests for individual adapters."""

    def test_adapters_skip_canonical_plans(self):
        """Plans that already have sections should not be remapped."""
        plan = make_canonical_plan()
        self.assertIsNone(hoist_nested_plan(plan))
        self.assertIsNone(map_main_parts(plan))

    def test_hoist_nested_plan_keeps_root_title(self):
        """A nested plan should be lifted, inheriting the root title when missing."""
        data = {"title": "Cours", "plan_de_cours": {"sections": []}}
        hoisted = hoist_nested_plan(data)
        self.assertEqual(hoisted, {"sections": [], "title": "Cours"})

    def test_map_main_parts(self):
        """French part keys should become sections/subsections with defaults."""
        mapped = map_main_parts(make_french_parts_plan())

        self.assertEqual(mapped["title"], "Les volcans")
        self.assertEqual(mapped["description"], "Leçon sur Les volcans")
        self.assertEqual(len(mapped["sections"]), 2)

        first = mapped["sections"][0]
        self.assertEqual(first["title"], "Formation")
        self.assertEqual(first["subsections"][0]["imageQuery"], "magma chamber")
        self.assertEqual(first["subsections"][1]["title"], "Cratère")
        self.assertEqual(first["subsections"][1]["content"], "Le cratère...")
        self.assertEqual(first["subsections"][1]["imageQuery"], "image")

        self.assertEqual(mapped["sections"][1]["title"], "Éruptions")
        self.assertEqual(mapped["sections"][1]["subsections"], [])

    def test_normalize_chains_adapters(self):
        """A nested plan with French part keys should go through both adapters."""
        data = {"course_plan": make_french_parts_plan()}
        normalized = normalize_plan_shape(data)
        self.assertEqual(normalized["title"], "Les volcans")
        self.assertEqual(len(normalized["sections"]), 2)

    def test_normalize_accepts_custom_adapters(self):
        """The adapter list should be pluggable."""
        def add_sections(data):
            return None if "sections" in data else dict(data, sections=[])

        self.assertEqual(normalize_plan_shape({"x": 1}, (add_sections,)), {"x": 1, "sections": []})


class TestBuildLessonPlan(unittest.TestCase):
    """Tests for back-filling into a LessonPlan."""

    def test_canonical_plan(self):
        """A complete plan should map field by field."""
        plan = build_lesson_plan(make_canonical_plan(), "photosynthèse")

        self.assertIsInstance(plan, LessonPlan)
        self.assertEqual(plan.title, "La photosynthèse")
        self.assertEqual(len(plan.sections), 2)
        self.assertEqual(plan.sections[0].subsections[1].image_query, "Jan Ingenhousz")
        self.assertEqual(plan.conclusion, "Les plantes nourrissent la planète.")

    def test_missing_sections_raises(self):
        """A plan without a sections list should raise PlanParseError."""
        with self.assertRaises(PlanParseError):
            build_lesson_plan({"title": "X"})
        with self.assertRaises(PlanParseError):
            build_lesson_plan({"title": "X", "sections": "none"})

    def test_backfills_empty_fields(self):
        """Empty titles, content and image queries should get placeholders."""
        data = {
            "sections": [
                {"subsections": [{"content": "", "imageQuery": ""}]},
                {"title": "Deux", "subsections": [{"title": "Sous", "content": "undefined"}]},
            ],
        }
        plan = build_lesson_plan(data, "Titre demandé")

        self.assertEqual(plan.title, "Titre demandé")
        first = plan.sections[0]
        self.assertEqual(first.title, "Section 1")
        self.assertEqual(first.subsections[0].title, "Sous-section 1")
        self.assertEqual(first.subsections[0].content, "Contenu en cours de rédaction pour Sous-section 1.")
        self.assertEqual(first.subsections[0].image_query, "Sous-section 1")

        second = plan.sections[1].subsections[0]
        self.assertEqual(second.content, "Contenu en cours de rédaction pour Sous.")
        self.assertEqual(second.image_query, "Sous")

    def test_every_subsection_has_non_empty_fields(self):
        """No subsection should end up with an empty title, content or image query."""
        plan = build_lesson_plan(normalize_plan_shape(make_french_parts_plan()), "Volcans")
        for section in plan.sections:
            self.assertTrue(section.title)
            for sub in section.subsections:
                self.assertTrue(sub.title)
                self.assertTrue(sub.content)
                self.assertTrue(sub.image_query)


if __name__ == '__main__':
    unittest.main()
