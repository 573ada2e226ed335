"""Wikidata knowledge-graph client."""

from typing import Any, Dict, Iterable, List

from .error_handling import ExternalServiceError
from .http_client import MediaWikiClient
from .models import ClaimKind, KnowledgeGraphClaim, KnowledgeGraphConfig

BATCH_SIZE = 50
LABEL_LANGUAGES = ("fr", "en")


class WikidataClient(MediaWikiClient):
    """Reads claims and labels through ``wbgetentities``."""

    service_name = "Wikidata"

    def __init__(self, config: KnowledgeGraphConfig = None, **kwargs):
        config = config or KnowledgeGraphConfig()
        super().__init__(config.wikidata_api_url, config=config, **kwargs)

    def get_entities(self, ids: Iterable[str], props: str = "labels|claims") -> Dict[str, Dict[str, Any]]:
        """Fetch entities in batches of 50.

        Args:
            ids: Entity Q-IDs
            props: wbgetentities ``props`` value

        Returns:
            Map of Q-ID to raw entity JSON (missing entities omitted)
        """
        ids = list(dict.fromkeys(ids))
        entities = {}
        for start in range(0, len(ids), BATCH_SIZE):
            batch = ids[start:start + BATCH_SIZE]
            data = self.get(
                action="wbgetentities",
                ids="|".join(batch),
                props=props,
                languages="|".join(LABEL_LANGUAGES),
            )
            if "error" in data:
                error = data["error"]
                raise ExternalServiceError(
                    f"Wikidata error: {error.get('info', error.get('code'))}",
                    error_code=error.get("code"),
                )
            for qid, entity in data.get("entities", {}).items():
                if "missing" not in entity:
                    entities[qid] = entity
        return entities

    def get_claims(
        self, external_id: str, relation_kinds: Iterable[ClaimKind]
    ) -> List[KnowledgeGraphClaim]:
        """Claims of the given kinds whose value is an entity."""
        entity = self.get_entities([external_id], props="claims").get(external_id)
        if entity is None:
            return []

        claims = []
        for kind in relation_kinds:
            for claim in entity.get("claims", {}).get(kind.value, []):
                value = claim.get("mainsnak", {}).get("datavalue", {}).get("value")
                if isinstance(value, dict) and value.get("id"):
                    claims.append(KnowledgeGraphClaim(relation=kind, value_id=value["id"]))
        return claims

    def get_entity_labels(self, ids: Iterable[str]) -> Dict[str, str]:
        """French label of each entity, falling back to English."""
        labels = {}
        for qid, entity in self.get_entities(ids, props="labels").items():
            entity_labels = entity.get("labels", {})
            for language in LABEL_LANGUAGES:
                if language in entity_labels:
                    labels[qid] = entity_labels[language]["value"]
                    break
        return labels
