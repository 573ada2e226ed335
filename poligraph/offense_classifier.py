"""
Offense Classifier

Maps Wikidata offense entities (targets of "convicted of" / "charge" claims)
to internal affair categories and proceeding statuses.
"""

from typing import Dict, NamedTuple

from .models import AffairCategory, AffairStatus, ClaimKind


class OffenseClassification(NamedTuple):
    """Category and status assigned to a knowledge-graph claim."""

    category: AffairCategory
    status: AffairStatus


# Status implied by the claim kind, whatever the offense.
CLAIM_KIND_STATUS: Dict[ClaimKind, AffairStatus] = {
    ClaimKind.CONVICTED_OF: AffairStatus.CONDAMNATION_DEFINITIVE,
    ClaimKind.CHARGED_WITH: AffairStatus.MISE_EN_EXAMEN,
}

# Wikidata Q-ID -> (category, French label)
OFFENSE_MAP: Dict[str, tuple] = {
    # Corruption & influence
    "Q852973": (AffairCategory.CORRUPTION, "Corruption"),
    "Q17144338": (AffairCategory.CORRUPTION_PASSIVE, "Corruption passive"),
    "Q1138405": (AffairCategory.TRAFIC_INFLUENCE, "Trafic d'influence"),
    "Q3066193": (AffairCategory.FAVORITISME, "Favoritisme"),
    "Q16544000": (AffairCategory.CORRUPTION, "Corruption et trafic d'influence"),
    # Public funds & financial
    "Q3402696": (AffairCategory.PRISE_ILLEGALE_INTERETS, "Prise illégale d'intérêts"),
    "Q3403900": (AffairCategory.PRISE_ILLEGALE_INTERETS, "Prise illégale d'intérêts"),
    "Q2727313": (AffairCategory.DETOURNEMENT_FONDS_PUBLICS, "Détournement de fonds publics"),
    "Q3045366": (AffairCategory.DETOURNEMENT_FONDS_PUBLICS, "Détournement de fonds publics"),
    "Q157833": (AffairCategory.DETOURNEMENT_FONDS_PUBLICS, "Détournement de fonds"),
    "Q179126": (AffairCategory.FRAUDE_FISCALE, "Fraude fiscale"),
    "Q165513": (AffairCategory.BLANCHIMENT, "Blanchiment d'argent"),
    "Q2819748": (AffairCategory.ABUS_BIENS_SOCIAUX, "Abus de biens sociaux"),
    "Q338193": (AffairCategory.ABUS_CONFIANCE, "Abus de confiance"),
    # Employment & campaign finance
    "Q2362986": (AffairCategory.EMPLOI_FICTIF, "Emploi fictif"),
    "Q112107068": (
        AffairCategory.FINANCEMENT_ILLEGAL_CAMPAGNE,
        "Financement illégal de campagne",
    ),
    "Q105440629": (
        AffairCategory.FINANCEMENT_ILLEGAL_CAMPAGNE,
        "Financement illégal de campagne électorale",
    ),
    # Harassment & violence
    "Q1133481": (AffairCategory.HARCELEMENT_MORAL, "Harcèlement moral"),
    "Q331953": (AffairCategory.HARCELEMENT_SEXUEL, "Harcèlement sexuel"),
    "Q188681": (AffairCategory.AGRESSION_SEXUELLE, "Agression sexuelle"),
    "Q365680": (AffairCategory.VIOLENCE, "Voie de fait"),
    "Q5467425": (AffairCategory.VIOLENCE, "Violence"),
    "Q111341728": (AffairCategory.VIOLENCE, "Violences volontaires en réunion"),
    "Q5153528": (AffairCategory.VIOLENCE, "Violences conjugales"),
    "Q113630214": (AffairCategory.VIOLENCE, "Violences sur mineur par ascendant"),
    # Fraud & forgery
    "Q28140925": (AffairCategory.FAUX_ET_USAGE_FAUX, "Faux et usage de faux"),
    "Q1393907": (AffairCategory.RECEL, "Recel"),
    # Speech offenses
    "Q182688": (AffairCategory.DIFFAMATION, "Diffamation"),
    "Q191783": (AffairCategory.DIFFAMATION, "Diffamation"),
    "Q11789033": (AffairCategory.DIFFAMATION, "Diffamation (droit français)"),
    "Q3086119": (AffairCategory.INJURE, "Injure"),
    "Q274907": (AffairCategory.INCITATION_HAINE, "Incitation à la haine"),
    "Q43442": (AffairCategory.INCITATION_HAINE, "Incitation à la haine raciale"),
    # Misc
    "Q3627314": (AffairCategory.AUTRE, "Association de malfaiteurs"),
    "Q97667559": (AffairCategory.AUTRE, "Conduite en état d'ivresse"),
}


class OffenseClassifier:
    """Pure lookup from offense identifiers to category/status pairs.

    Unknown identifiers fall into ``AffairCategory.AUTRE`` so that gaps in
    the taxonomy never stop a sync.
    """

    def __init__(self, offense_map: Dict[str, tuple] = None):
        self.offense_map = dict(OFFENSE_MAP if offense_map is None else offense_map)

    def is_known(self, offense_id: str) -> bool:
        return offense_id in self.offense_map

    def classify(self, offense_id: str, claim_kind: ClaimKind) -> OffenseClassification:
        """Map an offense Q-ID and claim kind to (category, status).

        Args:
            offense_id: Wikidata entity ID, e.g. "Q852973"
            claim_kind: The relation the claim was found under

        Returns:
            OffenseClassification for building the candidate affair
        """
        status = CLAIM_KIND_STATUS[claim_kind]
        entry = self.offense_map.get(offense_id)
        if entry is None:
            return OffenseClassification(AffairCategory.AUTRE, status)
        return OffenseClassification(entry[0], status)

    def label(self, offense_id: str) -> str:
        """French label for an offense, or a placeholder naming the ID."""
        entry = self.offense_map.get(offense_id)
        return entry[1] if entry else f"Infraction inconnue ({offense_id})"
