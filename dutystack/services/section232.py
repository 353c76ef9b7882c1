"""
Section 232 National Security Tariff Classifier

Static HTS-prefix tables classifying a product as steel, aluminum or
automobiles. No I/O.

Rates are flat 25% constants. They are compiled into the catalog, not stored
per record, so a change in the underlying proclamations is a code change.
Tests (or a future rate schedule) can pass an alternate Section232Catalog.
"""

from dataclasses import dataclass
from typing import Optional, FrozenSet, Dict, Any

from dutystack.services.hts import clean_hts_code, chapter_of, heading_of

SECTION_232_LEGAL_REFERENCE = "Trade Expansion Act of 1962, Section 232"


@dataclass(frozen=True)
class Section232Result:
    """Result of Section 232 classification."""
    applies: bool
    rate: float = 0.0
    product: Optional[str] = None

    def as_dict(self) -> Dict[str, Any]:
        return {
            "applies": self.applies,
            "rate": self.rate,
            "product": self.product,
        }


NOT_APPLICABLE = Section232Result(applies=False, rate=0.0, product=None)


@dataclass(frozen=True)
class Section232Catalog:
    """Compiled Section 232 coverage tables."""
    steel_chapters: FrozenSet[str] = frozenset({"72"})
    steel_headings: FrozenSet[str] = frozenset({
        "7301", "7302", "7303", "7304", "7305", "7306", "7307", "7308",
        "7309", "7310", "7311", "7312", "7313", "7317", "7318", "7320",
        "7321", "7322", "7323", "7324", "7325", "7326",
    })
    aluminum_chapters: FrozenSet[str] = frozenset({"76"})
    automobile_headings: FrozenSet[str] = frozenset({"8703", "8704"})
    steel_rate: float = 25.0
    aluminum_rate: float = 25.0
    automobile_rate: float = 25.0

    def classify(self, hts_code: str) -> Section232Result:
        """
        Classify an HTS code for Section 232.

        Checked in order: steel (chapter 72 or listed chapter 73 headings),
        aluminum (chapter 76), automobiles (headings 8703/8704).
        """
        clean = clean_hts_code(hts_code)
        chapter = chapter_of(clean)
        heading = heading_of(clean)

        if chapter in self.steel_chapters or heading in self.steel_headings:
            return Section232Result(applies=True, rate=self.steel_rate, product="Steel")

        if chapter in self.aluminum_chapters:
            return Section232Result(applies=True, rate=self.aluminum_rate, product="Aluminum")

        if heading in self.automobile_headings:
            return Section232Result(applies=True, rate=self.automobile_rate, product="Automobiles")

        return NOT_APPLICABLE


DEFAULT_CATALOG = Section232Catalog()


def classify_section_232(hts_code: str, catalog: Section232Catalog = DEFAULT_CATALOG) -> Section232Result:
    """
    Classify an HTS code against the Section 232 tables.

    Example:
        classify_section_232("7318.15.00")  # Section232Result(True, 25.0, "Steel")
        classify_section_232("6109.10.00")  # Section232Result(False, 0.0, None)
    """
    return catalog.classify(hts_code)
