"""
Tests for text decoding, statistics and tokenization.
"""

from django.test import TestCase

from textanalysis.services.text import (
    compute_statistics,
    count_paragraphs,
    count_words,
    decode_text,
    text_hash,
    tokenize,
)


class StatisticsTests(TestCase):

    def test_example_text(self):
        text = "Hello world.\n\nThis is a test."

        stats = compute_statistics(text)

        self.assertEqual(stats.paragraphs, 2)
        self.assertEqual(stats.words, 6)
        self.assertEqual(stats.characters, len(text))

    def test_single_newline_does_not_split_paragraphs(self):
        self.assertEqual(count_paragraphs("line one\nline two"), 1)

    def test_whitespace_only_lines_separate_paragraphs(self):
        self.assertEqual(count_paragraphs("first\n   \n\t\nsecond\r\n\r\nthird"), 3)

    def test_surrounding_blank_lines_are_ignored(self):
        self.assertEqual(count_paragraphs("\n\n  only one  \n\n"), 1)

    def test_blank_text_has_no_paragraphs(self):
        self.assertEqual(count_paragraphs(""), 0)
        self.assertEqual(count_paragraphs(" \n\n \n"), 0)

    def test_words_are_alphanumeric_runs(self):
        self.assertEqual(count_words("snake_case, CamelCase... 42 times!"), 4)

    def test_words_include_non_ascii_letters(self):
        self.assertEqual(count_words("Привет, мир! naïve café"), 4)

    def test_characters_count_code_points_not_bytes(self):
        text = "naïve ✓"

        stats = compute_statistics(text)

        self.assertEqual(stats.characters, 7)
        self.assertGreater(len(text.encode('utf-8')), stats.characters)


class DecodeTests(TestCase):

    def test_utf8_is_decoded(self):
        self.assertEqual(decode_text("naïve ✓".encode('utf-8')), "naïve ✓")

    def test_non_utf8_bytes_are_decoded_without_error(self):
        data = ("Ceci est un texte en français, écrit avec des accents. " * 5).encode('latin-1')

        text = decode_text(data)

        self.assertIn("Ceci est un texte en fran", text)

    def test_hash_is_deterministic_and_text_based(self):
        self.assertEqual(text_hash("abc"), text_hash("abc"))
        self.assertNotEqual(text_hash("abc"), text_hash("abd"))
        self.assertEqual(len(text_hash("abc")), 64)


class TokenizeTests(TestCase):

    def test_case_folds_and_strips_punctuation(self):
        self.assertEqual(tokenize("Hello, World! HELLO?"), ['hello', 'world', 'hello'])

    def test_underscore_separates_tokens(self):
        self.assertEqual(tokenize("hello_world"), ['hello', 'world'])

    def test_newlines_and_runs_collapse_to_single_separator(self):
        self.assertEqual(tokenize("one...two\n\nthree -- four"), ['one', 'two', 'three', 'four'])

    def test_keeps_digits_and_non_ascii_letters(self):
        self.assertEqual(tokenize("Straße 42, Ünïcode"), ['strasse', '42', 'ünïcode'])

    def test_empty_text(self):
        self.assertEqual(tokenize("  ,.;  "), [])
