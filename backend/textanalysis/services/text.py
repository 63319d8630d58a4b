"""
Text helpers for the Analysis Engine.

Decoding, hashing, statistics and word-cloud tokenization of stored text.
All functions are pure: the same bytes always give the same results.
"""

import hashlib
import logging
import re
from dataclasses import dataclass

import chardet

logger = logging.getLogger(__name__)

# A paragraph boundary is a newline, any whitespace-only lines, and another newline
PARAGRAPH_BOUNDARY = re.compile(r'\r?\n\s*\r?\n')
WORD = re.compile(r'\w+')
# Everything that is not a letter, a digit or whitespace, underscore included
NON_WORD_RUN = re.compile(r'[\W_]+')


@dataclass(frozen=True)
class TextStatistics:
    paragraphs: int
    words: int
    characters: int


def decode_text(data: bytes) -> str:
    """
    Decode stored bytes as text.

    UTF-8 is tried first (most common). Otherwise the encoding is
    detected with chardet and undecodable bytes are replaced.
    """
    try:
        return data.decode('utf-8')
    except UnicodeDecodeError:
        detected = chardet.detect(data)
        encoding = detected.get('encoding') or 'utf-8'
        confidence = detected.get('confidence') or 0

        if confidence < 0.7:
            logger.warning(
                f"Low encoding confidence ({confidence:.2f}), detected: {encoding}"
            )

        try:
            return data.decode(encoding, errors='replace')
        except LookupError:
            logger.warning(f"Unknown encoding {encoding}, falling back to UTF-8")
            return data.decode('utf-8', errors='replace')


def text_hash(text: str) -> str:
    """SHA-256 hex digest of the UTF-8 encoding of text."""
    return hashlib.sha256(text.encode('utf-8')).hexdigest()


def count_paragraphs(text: str) -> int:
    stripped = text.strip()
    if not stripped:
        return 0
    return len(PARAGRAPH_BOUNDARY.split(stripped))


def count_words(text: str) -> int:
    return len(WORD.findall(text))


def compute_statistics(text: str) -> TextStatistics:
    """
    Count paragraphs, words and characters of decoded text.

    Characters are code points, not bytes: a multi-byte character counts once.
    """
    return TextStatistics(
        paragraphs=count_paragraphs(text),
        words=count_words(text),
        characters=len(text),
    )


def tokenize(text: str) -> list[str]:
    """
    Normalize text into the token stream sent to the word-cloud renderer.

    Case-folds, turns every run of punctuation-class characters into a
    single separator and splits on whitespace.
    """
    return NON_WORD_RUN.sub(' ', text.casefold()).split()
