"""
Unit tests for lesson_pipeline/utils/json_extraction.py

Run with: python -m pytest lesson_pipeline/tests/test_json_extraction.py -v
"""
import unittest

from lesson_pipeline.errors import PlanParseError
from lesson_pipeline.utils.json_extraction import (
    strip_code_fences,
    extract_json_object,
    parse_json_object,
)


class TestStripCodeFences(unittest.TestCase):
    """Tests for markdown fence removal."""

    def test_strips_json_fence(self):
        """Should remove ```json and trailing ``` markers."""
        text = '```json\n{"title": "X"}\n```'
        self.assertEqual(strip_code_fences(text), '{"title": "X"}\n')

    def test_leaves_plain_text_untouched(self):
        """Text without fences should only be stripped of outer whitespace."""
        self.assertEqual(strip_code_fences('  {"a": 1}  '), '{"a": 1}')


class TestExtractJsonObject(unittest.TestCase):
    """Tests for balanced-brace object isolation."""

    def test_ignores_surrounding_prose(self):
        """Should return only the object between the prose."""
        text = 'Voici le plan : {"title": "Cours"} Bonne lecture !'
        self.assertEqual(extract_json_object(text), '{"title": "Cours"}')

    def test_fenced_block_between_prose(self):
        """A fenced object wrapped in prose should come out byte-identical."""
        expected = '{"title": "La photosynthèse", "sections": [{"title": "Partie 1", "subsections": []}]}'
        text = f"Voici le plan demandé :\n```json\n{expected}\n```\nN'hésitez pas à demander des précisions."

        self.assertEqual(strip_code_fences(text), text.strip())
        self.assertEqual(extract_json_object(strip_code_fences(text)), expected)
        self.assertEqual(parse_json_object(text)["sections"][0]["title"], "Partie 1")

    def test_nested_objects(self):
        """Should stop at the brace that closes the outermost object."""
        text = '{"a": {"b": {"c": 1}}} trailing {"x": 2}'
        self.assertEqual(extract_json_object(text), '{"a": {"b": {"c": 1}}}')

    def test_braces_inside_strings_are_ignored(self):
        """Braces and escaped quotes inside strings should not affect balance."""
        text = '{"content": "utilise { et } avec \\"guillemets\\" {"} fin'
        self.assertEqual(extract_json_object(text), '{"content": "utilise { et } avec \\"guillemets\\" {"}')

    def test_no_object_raises(self):
        """Text with no opening brace should raise PlanParseError."""
        with self.assertRaises(PlanParseError):
            extract_json_object("Désolé, je ne peux pas répondre.")

    def test_unbalanced_returns_remainder(self):
        """An object that never closes should return everything from the first brace."""
        text = 'prefix {"title": "X", "sections": ['
        self.assertEqual(extract_json_object(text), '{"title": "X", "sections": [')


class TestParseJsonObject(unittest.TestCase):
    """Tests for the full fence/extract/parse chain."""

    def test_fenced_response(self):
        """Should parse a fenced JSON object."""
        parsed = parse_json_object('```json\n{"title": "Photosynthèse", "sections": []}\n```')
        self.assertEqual(parsed, {"title": "Photosynthèse", "sections": []})

    def test_invalid_json_raises_parse_error(self):
        """Malformed JSON should surface as PlanParseError, not JSONDecodeError."""
        with self.assertRaises(PlanParseError):
            parse_json_object('{"title": "X",}')

    def test_truncated_object_raises_parse_error(self):
        """A truncated object should fail to parse."""
        with self.assertRaises(PlanParseError):
            parse_json_object('{"title": "X", "sections": [')


if __name__ == '__main__':
    unittest.main()
