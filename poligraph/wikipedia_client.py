"""French Wikipedia client locating judicial sections of politician pages."""

from typing import List, Optional

from .http_client import MediaWikiClient
from .models import JudicialSection, KnowledgeGraphConfig
from .utils import strip_accents

JUDICIAL_SECTION_KEYWORDS = (
    "affaire",
    "judiciaire",
    "condamnation",
    "controverse",
    "démêlé",
    "poursuite",
    "mise en examen",
    "procès",
    "justice",
    "juridique",
    "pénal",
)

MIN_SECTION_CHARS = 50


def _normalize(text: str) -> str:
    return strip_accents(text.lower())


_NORMALIZED_KEYWORDS = tuple(_normalize(k) for k in JUDICIAL_SECTION_KEYWORDS)


def is_judicial_heading(heading: str) -> bool:
    """True if a section heading mentions a judicial topic (accent-insensitive)."""
    normalized = _normalize(heading)
    return any(keyword in normalized for keyword in _NORMALIZED_KEYWORDS)


class WikipediaClient(MediaWikiClient):
    """Reads section lists and section wikitext through ``action=parse``."""

    service_name = "Wikipedia FR"

    def __init__(self, config: KnowledgeGraphConfig = None, **kwargs):
        config = config or KnowledgeGraphConfig()
        super().__init__(config.wikipedia_api_url, config=config, **kwargs)

    def get_sections(self, page_title: str) -> List[dict]:
        """Sections of a page as ``{"index", "title", "level"}`` dicts.

        A missing page yields an empty list.
        """
        data = self.get(action="parse", page=page_title, prop="sections", redirects="1")
        if "error" in data:
            self.logger.debug(f"No sections for '{page_title}': {data['error'].get('code')}")
            return []
        return [
            {"index": s["index"], "title": s["line"], "level": int(s.get("level", 0))}
            for s in data.get("parse", {}).get("sections", [])
        ]

    def get_section_content(self, page_title: str, section_index: str) -> Optional[str]:
        data = self.get(
            action="parse",
            page=page_title,
            prop="wikitext",
            section=section_index,
            redirects="1",
        )
        if "error" in data:
            return None
        return data.get("parse", {}).get("wikitext", {}).get("*")

    def find_judicial_sections(self, page_title: str) -> List[JudicialSection]:
        """Judicial sections of a page with at least 50 characters of wikitext."""
        results = []
        for section in self.get_sections(page_title):
            if not is_judicial_heading(section["title"]):
                continue
            wikitext = self.get_section_content(page_title, section["index"])
            if wikitext and len(wikitext) >= MIN_SECTION_CHARS:
                results.append(JudicialSection(heading=section["title"], raw_text=wikitext))
        return results
