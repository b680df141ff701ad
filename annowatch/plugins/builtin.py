"""Annotators shipped with annowatch."""

import asyncio
import logging
import re
import xml.etree.ElementTree as ET
from typing import List, Tuple

from ..errors import AnnotationError
from ..models import Artifact
from .base import Annotator

logger = logging.getLogger(__name__)

TOKEN_RE = re.compile(r"\w+(?:[-'’]\w+)*|[^\w\s]")
SENTENCE_END = {".", "!", "?"}
XML_DECLARATION = '<?xml version="1.0" encoding="UTF-8"?>\n'

Token = Tuple[str, int, int]


def tokenize(text: str) -> List[Token]:
    """Split text into (word, begin, end) tokens."""
    return [(m.group(), m.start(), m.end()) for m in TOKEN_RE.finditer(text)]


def split_sentences(tokens: List[Token]) -> List[List[Token]]:
    """Group tokens into sentences ending at terminal punctuation."""
    sentences: List[List[Token]] = []
    current: List[Token] = []
    for token in tokens:
        current.append(token)
        if token[0] in SENTENCE_END:
            sentences.append(current)
            current = []
    if current:
        sentences.append(current)
    return sentences


class SentenceAnnotator(Annotator):
    """Tokenizes text and splits it into sentences, rendered as XML."""

    name = "sentences"
    display_name = "Sentence Splitter"
    description = "Tokenizes text and splits sentences into an XML document"
    version = "1.0.0"

    default_config = {
        "include_offsets": True,
        "indent": True,
        "max_chars": 0,
    }

    async def process(self, text: str) -> Artifact:
        max_chars = self.get_config("max_chars", 0)
        if max_chars and len(text) > max_chars:
            raise AnnotationError(f"text has {len(text)} characters, limit is {max_chars}")

        return await asyncio.to_thread(self.annotate, text)

    def annotate(self, text: str) -> Artifact:
        """Synchronous annotation; safe to run in a worker thread."""
        sentences = split_sentences(tokenize(text))

        root = ET.Element("root")
        document = ET.SubElement(root, "document")
        sentences_el = ET.SubElement(document, "sentences")

        token_count = 0
        for sentence_id, sentence in enumerate(sentences, start=1):
            sentence_el = ET.SubElement(sentences_el, "sentence", id=str(sentence_id))
            tokens_el = ET.SubElement(sentence_el, "tokens")
            for token_id, (word, begin, end) in enumerate(sentence, start=1):
                token_el = ET.SubElement(tokens_el, "token", id=str(token_id))
                ET.SubElement(token_el, "word").text = word
                if self.get_config("include_offsets", True):
                    ET.SubElement(token_el, "CharacterOffsetBegin").text = str(begin)
                    ET.SubElement(token_el, "CharacterOffsetEnd").text = str(end)
            token_count += len(sentence)

        if self.get_config("indent", True):
            ET.indent(root)

        content = XML_DECLARATION + ET.tostring(root, encoding="unicode") + "\n"
        return Artifact(
            content=content,
            metadata={"tokens": token_count, "sentences": len(sentences)},
        )


BUILTIN_ANNOTATORS = [SentenceAnnotator]
