"""
Word Counter Annotator

An annotator that:
1. Counts words, lines, and characters in the input text
2. Optionally counts unique words and the most frequent ones
3. Renders the statistics as an XML artifact
"""

import logging
import re
import xml.etree.ElementTree as ET
from collections import Counter

from annowatch.models import Artifact
from annowatch.plugins.base import Annotator

logger = logging.getLogger(__name__)

WORD_RE = re.compile(r"\b\w+\b")


class WordCounterAnnotator(Annotator):
    """Counts words and generates statistics."""

    name = "word_counter"
    display_name = "Word Counter"
    description = "Counts words, lines and characters"
    version = "1.0.0"

    default_config = {
        "count_unique_words": True,
        "top_n": 10,
    }

    async def on_load(self) -> None:
        logger.info(f"WordCounter initialized: count_unique={self.get_config('count_unique_words')}")

    async def process(self, text: str) -> Artifact:
        """Count words and render the statistics."""
        lines = text.split("\n")
        words = WORD_RE.findall(text.lower())

        stats = {
            "line_count": len(lines),
            "word_count": len(words),
            "char_count": len(text),
            "avg_word_length": round(sum(len(w) for w in words) / len(words), 2) if words else 0,
        }

        root = ET.Element("stats")
        for key, value in stats.items():
            ET.SubElement(root, key).text = str(value)

        if self.get_config("count_unique_words", True):
            word_freq = Counter(words)
            stats["unique_word_count"] = len(word_freq)
            ET.SubElement(root, "unique_word_count").text = str(len(word_freq))
            top = ET.SubElement(root, "top_words")
            for word, count in word_freq.most_common(self.get_config("top_n", 10)):
                ET.SubElement(top, "word", count=str(count)).text = word

        ET.indent(root)
        content = '<?xml version="1.0" encoding="UTF-8"?>\n' + ET.tostring(root, encoding="unicode") + "\n"

        return Artifact(
            content=content,
            metadata={"words": stats["word_count"], "lines": stats["line_count"]},
        )
