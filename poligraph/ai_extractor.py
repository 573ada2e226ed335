"""AI integration for extracting judicial affairs from Wikipedia sections."""

import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

from .error_handling import ConfigurationError, ExternalServiceError, RateLimitError
from .models import (
    AffairCategory,
    AffairStatus,
    AIConfig,
    ExtractedAffair,
    Involvement,
    JudicialSection,
)

logger = logging.getLogger(__name__)

TOOL_NAME = "extract_wikipedia_affairs"
TRUNCATION_MARKER = "\n[...texte tronqué...]"

EXTRACTION_TOOL = {
    "name": TOOL_NAME,
    "description": (
        "Extrait les affaires judiciaires mentionnées dans une section Wikipedia "
        "d'un politicien français."
    ),
    "input_schema": {
        "type": "object",
        "properties": {
            "affairs": {
                "type": "array",
                "description": (
                    "Liste des affaires judiciaires distinctes extraites de la section "
                    "Wikipedia. Tableau vide si aucune affaire judiciaire."
                ),
                "items": {
                    "type": "object",
                    "properties": {
                        "title": {
                            "type": "string",
                            "description": (
                                "Titre court de l'affaire (ex: 'Affaire Bygmalion', "
                                "'Affaire des emplois fictifs du MoDem')"
                            ),
                        },
                        "description": {
                            "type": "string",
                            "description": (
                                "Description factuelle en 2-3 phrases basée uniquement "
                                "sur le texte Wikipedia"
                            ),
                        },
                        "category": {
                            "type": "string",
                            "enum": [c.value for c in AffairCategory],
                            "description": "Catégorie juridique de l'affaire",
                        },
                        "status": {
                            "type": "string",
                            "enum": [s.value for s in AffairStatus],
                            "description": (
                                "Statut judiciaire le plus récent mentionné dans le "
                                "texte Wikipedia"
                            ),
                        },
                        "involvement": {
                            "type": "string",
                            "enum": [i.value for i in Involvement],
                            "description": (
                                "Niveau d'implication du politicien. DIRECT = mis en "
                                "cause, poursuivi, condamné. INDIRECT = témoin ou acteur "
                                "secondaire. MENTIONED_ONLY = simplement cité sans lien "
                                "direct avec l'affaire. VICTIM = le politicien est "
                                "victime de l'infraction. PLAINTIFF = le politicien a "
                                "déposé plainte."
                            ),
                        },
                        "facts_date": {
                            "type": ["string", "null"],
                            "description": (
                                "Date des faits si mentionnée (format YYYY-MM-DD), null "
                                "sinon. Si seule l'année est connue, utiliser YYYY-01-01."
                            ),
                        },
                        "court": {
                            "type": ["string", "null"],
                            "description": (
                                "Juridiction mentionnée (ex: 'Tribunal correctionnel de "
                                "Paris'), null sinon"
                            ),
                        },
                        "charges": {
                            "type": "array",
                            "items": {"type": "string"},
                            "description": "Chefs d'accusation ou infractions mentionnés",
                        },
                        "confidence_score": {
                            "type": "integer",
                            "minimum": 0,
                            "maximum": 100,
                            "description": (
                                "Score de confiance (0-100) que cette affaire est "
                                "correctement identifiée et attribuée au politicien. "
                                "90+ = certain. 70-89 = probable. 50-69 = incertain. "
                                "<50 = peu fiable."
                            ),
                        },
                        "source_urls": {
                            "type": "array",
                            "items": {"type": "string"},
                            "description": (
                                "URLs extraites des balises <ref> du wikitext qui "
                                "soutiennent spécifiquement cette affaire."
                            ),
                        },
                    },
                    "required": [
                        "title", "description", "category", "status", "involvement",
                        "facts_date", "court", "charges", "confidence_score",
                        "source_urls",
                    ],
                },
            },
        },
        "required": ["affairs"],
    },
}

SYSTEM_PROMPT = """Tu es un analyste juridique spécialisé en affaires judiciaires politiques françaises. Tu analyses des sections Wikipedia pour en extraire les informations sur les affaires judiciaires.

Le texte fourni est du wikitext Wikipedia. Il peut contenir :
- Des [[liens internes]] vers d'autres articles Wikipedia
- Des {{modèles}} Wikipedia (infobox, références, etc.)
- Des balises <ref> contenant des URLs de sources (articles de presse, documents officiels)
- Du formatage wiki (''' gras ''', '' italique '', == titres ==)

RÈGLES STRICTES :
1. PRÉSOMPTION D'INNOCENCE : toute mise en examen est une MISE_EN_EXAMEN, pas une condamnation
2. CONDAMNATION_DEFINITIVE : UNIQUEMENT si le texte mentionne EXPLICITEMENT que le pourvoi en cassation a été rejeté OU que les délais de recours sont expirés. En cas de doute → CONDAMNATION_PREMIERE_INSTANCE ou APPEL_EN_COURS
3. CATÉGORIES SENSIBLES (AGRESSION_SEXUELLE, HARCELEMENT_SEXUEL) : UNIQUEMENT si les faits reprochés sont EXPLICITEMENT décrits dans le texte
4. NE JAMAIS INVENTER d'informations absentes du texte Wikipedia
5. En cas de doute sur la catégorie → AUTRE
6. En cas de doute sur le statut → choisir la valeur MOINS GRAVE
7. Chaque affaire DISTINCTE = une entrée séparée dans le tableau
8. Le niveau d'implication par défaut est MENTIONED_ONLY. Utiliser DIRECT uniquement si le politicien est explicitement mis en cause, poursuivi ou condamné
9. Si la section ne contient aucune affaire judiciaire, retourner un tableau vide

EXTRACTION DES SOURCES :
- Chercher les URLs dans les balises <ref> du wikitext
- Inclure uniquement les URLs qui soutiennent spécifiquement chaque affaire
- Ne PAS inclure d'URLs inventées"""


def _enum_or_default(enum_cls, value, default):
    try:
        return enum_cls(value)
    except ValueError:
        return default


def parse_extracted_affair(data: Dict[str, Any]) -> ExtractedAffair:
    """Map one tool_use item onto ExtractedAffair, defaulting unknown enum values."""
    confidence = data.get("confidence_score")
    if isinstance(confidence, bool) or not isinstance(confidence, (int, float)):
        confidence = 50
    charges = data.get("charges")
    source_urls = data.get("source_urls")
    return ExtractedAffair(
        title=str(data.get("title") or ""),
        description=str(data.get("description") or ""),
        category=_enum_or_default(AffairCategory, data.get("category"), AffairCategory.AUTRE),
        status=_enum_or_default(
            AffairStatus, data.get("status"), AffairStatus.ENQUETE_PRELIMINAIRE
        ),
        involvement=_enum_or_default(
            Involvement, data.get("involvement"), Involvement.MENTIONED_ONLY
        ),
        facts_date=str(data["facts_date"]) if data.get("facts_date") else None,
        court=str(data["court"]) if data.get("court") else None,
        charges=[str(c) for c in charges] if isinstance(charges, list) else [],
        confidence_score=int(confidence),
        source_urls=[str(u) for u in source_urls] if isinstance(source_urls, list) else [],
    )


def truncate_section(text: str, max_chars: int) -> str:
    if len(text) <= max_chars:
        return text
    return text[:max_chars] + TRUNCATION_MARKER


class AIProvider(ABC):
    """Base class for AI providers."""

    @abstractmethod
    def extract_affairs(
        self, subject_name: str, heading: str, raw_text: str, page_url: str
    ) -> List[ExtractedAffair]:
        """Extract affairs from one encyclopedia section."""
        pass


class ClaudeProvider(AIProvider):
    """Claude provider using forced tool use for structured output."""

    def __init__(self, api_key: str, config: Optional[AIConfig] = None):
        self.api_key = api_key
        self.config = config or AIConfig()

        # Lazy import to avoid dependency if not using Claude
        try:
            import anthropic

            self._anthropic = anthropic
            self.client = anthropic.Anthropic(api_key=api_key)
        except ImportError:
            raise ImportError(
                "anthropic package required for Claude provider. Install with: pip install anthropic"
            )

    def _build_prompt(self, subject_name: str, heading: str, raw_text: str, page_url: str) -> str:
        return (
            f"Analyse cette section Wikipedia du politicien {subject_name} pour en "
            f"extraire les affaires judiciaires.\n\n"
            f"Section : {heading}\n"
            f"Page Wikipedia : {page_url}\n\n"
            f"Wikitext :\n{truncate_section(raw_text, self.config.max_section_chars)}"
        )

    def extract_affairs(
        self, subject_name: str, heading: str, raw_text: str, page_url: str
    ) -> List[ExtractedAffair]:
        """Call the Messages API with the extraction tool forced.

        Raises:
            RateLimitError: When the API answers 429
            ExternalServiceError: On other API or transport failures
        """
        anthropic = self._anthropic
        try:
            response = self.client.messages.create(
                model=self.config.model,
                max_tokens=self.config.max_tokens,
                temperature=self.config.temperature,
                system=SYSTEM_PROMPT,
                tools=[EXTRACTION_TOOL],
                tool_choice={"type": "tool", "name": TOOL_NAME},
                messages=[
                    {
                        "role": "user",
                        "content": self._build_prompt(subject_name, heading, raw_text, page_url),
                    }
                ],
            )
        except anthropic.RateLimitError as e:
            retry_after = None
            headers = getattr(getattr(e, "response", None), "headers", None) or {}
            if headers.get("retry-after"):
                try:
                    retry_after = float(headers["retry-after"])
                except ValueError:
                    retry_after = None
            raise RateLimitError(f"Anthropic API rate limit: {e}", retry_after=retry_after) from e
        except anthropic.APIStatusError as e:
            raise ExternalServiceError(
                f"Anthropic API error: {e.status_code}",
                error_code="api_error",
                status_code=e.status_code,
            ) from e
        except anthropic.APIConnectionError as e:
            raise ExternalServiceError(
                f"Anthropic API unreachable: {e}", error_code="transport_error"
            ) from e

        return self._parse_response(response, subject_name)

    def _parse_response(self, response, subject_name: str) -> List[ExtractedAffair]:
        """Read the tool_use block; a malformed answer yields no affairs."""
        tool_input = None
        for block in response.content:
            if getattr(block, "type", None) == "tool_use":
                tool_input = block.input
                break

        if not isinstance(tool_input, dict):
            logger.warning(f"No tool_use content in response for {subject_name}")
            return []

        affairs = []
        for item in tool_input.get("affairs") or []:
            if not isinstance(item, dict):
                continue
            affair = parse_extracted_affair(item)
            if affair.title:
                affairs.append(affair)
        return affairs


class AIExtractor:
    """AI extraction client: encyclopedia section lookup plus affair extraction."""

    def __init__(
        self,
        provider: str,
        api_key: Optional[str],
        wikipedia_client=None,
        config: Optional[AIConfig] = None,
    ):
        """Initialize AI extractor.

        Args:
            provider: AI provider name (only "claude" is supported)
            api_key: API key for the provider
            wikipedia_client: Client exposing ``find_judicial_sections``
            config: Model and prompt settings
        """
        self.config = config or AIConfig()
        self.provider_name = provider.lower()
        self.wikipedia_client = wikipedia_client

        if not api_key:
            raise ConfigurationError(
                "An AI API key is required for text extraction", config_key="ai.api_key"
            )

        if self.provider_name == "claude":
            self.provider = ClaudeProvider(api_key, self.config)
        else:
            raise ValueError(f"Unsupported AI provider: {provider}")

    def find_judicial_sections(self, subject_name: str) -> List[JudicialSection]:
        if self.wikipedia_client is None:
            raise ConfigurationError("No Wikipedia client configured")
        return self.wikipedia_client.find_judicial_sections(subject_name)

    def extract(
        self, subject_name: str, heading: str, raw_text: str, page_url: str
    ) -> List[ExtractedAffair]:
        """Extract affairs from one section.

        Args:
            subject_name: Politician the page is about
            heading: Section heading
            raw_text: Section wikitext
            page_url: Public URL of the page

        Returns:
            Affairs found in the section (possibly none)
        """
        return self.provider.extract_affairs(subject_name, heading, raw_text, page_url)
