"""
Text Extraction
===============

Turns a raw eCFR title document into normalized plain text.

Only section nodes are walked, so front matter, headings, authority and source
notes and appendix divisions never reach the text. Within a section,
paragraphs under editorial notes, notes and footnotes are skipped, and a
nested section contributes its paragraphs only once, as its own entry. Two
section grammars are recognized:

- eCFR versioner XML: ``<DIV8 N="§ 1.1" TYPE="SECTION">`` with ``<P>``/``<FP>``
  paragraphs
- the simplified grammar: ``<section label="§ 1.1">`` with ``<paragraph>``
  children

Each section renders as its label followed by its paragraphs (one per line),
trimmed; sections are joined by a blank line in document order. When no
section node exists the raw document itself becomes the text and the result is
flagged DEGRADED, since markup noise skews the density metrics.

Version: 0.1.0
"""

import re
from collections.abc import Iterator
from dataclasses import dataclass
from enum import Enum

from lxml import etree

from services.ecfr_metrics.errors import MalformedDocument
from shared.logging import get_logger


logger = get_logger(__name__)


SECTION_SEPARATOR = "\n\n"
PARAGRAPH_TAGS = frozenset({"p", "fp", "paragraph"})

# Containers whose paragraphs are annotations, not regulatory text
NOTE_TAGS = frozenset({"ednote", "note", "ftnt"})

_WHITESPACE = re.compile(r"\s+")


class ExtractionStatus(str, Enum):
    """Outcome of extraction."""

    EXTRACTED = "extracted"
    DEGRADED = "degraded"  # fallback to raw document text
    UNPARSEABLE = "unparseable"  # signalled by MalformedDocument


@dataclass(frozen=True)
class ExtractionResult:
    """Normalized text plus how it was obtained."""

    text: str
    status: ExtractionStatus
    section_count: int = 0
    title: str | None = None

    @property
    def degraded(self) -> bool:
        return self.status == ExtractionStatus.DEGRADED


def _localname(element: etree._Element) -> str:
    return etree.QName(element).localname.lower()


def _is_section(element: etree._Element) -> bool:
    name = _localname(element)
    if name == "section":
        return True
    return name == "div8" and element.get("TYPE", "").upper() == "SECTION"


def _text_of(element: etree._Element) -> str:
    return "".join(element.itertext()).strip()


class TextExtractor:
    """
    Extracts normalized text from eCFR XML.

    Extraction is deterministic: the same bytes always yield the same text,
    which keeps fingerprints reproducible.
    """

    def __init__(self) -> None:
        # Full titles exceed libxml2's default size limits
        self._parser_options = {
            "recover": True,
            "resolve_entities": False,
            "no_network": True,
            "huge_tree": True,
            "remove_comments": True,
            "remove_pis": True,
        }

    def _parse(self, raw: bytes) -> etree._Element:
        parser = etree.XMLParser(**self._parser_options)
        try:
            root = etree.fromstring(raw, parser)
        except etree.XMLSyntaxError as e:
            raise MalformedDocument(f"Document is not parseable XML: {e}") from e

        if root is None:
            raise MalformedDocument("Document is not parseable XML: no root element")

        return root

    def _render_section(self, section: etree._Element) -> str:
        label = section.get("label") or section.get("N") or ""
        paragraphs = list(self._paragraphs(section))
        return (label + " " + "\n".join(paragraphs)).strip()

    def _paragraphs(self, node: etree._Element) -> Iterator[str]:
        """
        Paragraph texts owned by a section, in document order.

        Does not descend into nested sections or note containers.
        """
        for child in node.iterchildren(etree.Element):
            name = _localname(child)
            if _is_section(child) or name in NOTE_TAGS:
                continue
            if name in PARAGRAPH_TAGS:
                yield _text_of(child)
            else:
                yield from self._paragraphs(child)

    def _find_title(self, root: etree._Element) -> str | None:
        if root.get("title"):
            return root.get("title")

        title_div = root if root.get("TYPE") == "TITLE" else root.find(".//*[@TYPE='TITLE']")
        if title_div is None:
            return None

        head = title_div.find("HEAD")
        if head is None:
            return None

        title = _WHITESPACE.sub(" ", _text_of(head))
        return title or None

    def extract(self, raw: bytes | str) -> ExtractionResult:
        """
        Extract normalized text from a raw document.

        Args:
            raw: Raw XML document

        Returns:
            ExtractionResult with status EXTRACTED or DEGRADED

        Raises:
            MalformedDocument: Input is not recognizable as XML at all
        """
        data = raw.encode("utf-8") if isinstance(raw, str) else raw
        root = self._parse(data)

        sections = [el for el in root.iter(etree.Element) if _is_section(el)]
        title = self._find_title(root)

        if not sections:
            logger.warning(
                "extraction_degraded",
                reason="no section nodes found",
                root=_localname(root),
            )
            return ExtractionResult(
                text=data.decode("utf-8", errors="replace"),
                status=ExtractionStatus.DEGRADED,
                section_count=0,
                title=title,
            )

        rendered = [self._render_section(section) for section in sections]
        text = SECTION_SEPARATOR.join(part for part in rendered if part)

        return ExtractionResult(
            text=text,
            status=ExtractionStatus.EXTRACTED,
            section_count=len(sections),
            title=title,
        )
