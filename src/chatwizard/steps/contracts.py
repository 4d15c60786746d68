"""Contract kinds and their specific fields."""

from __future__ import annotations

from typing import Any

from .base import SubStep
from .options import ChoiceOption, FieldGroup, Option, TextOption, Variant

COMPENSATION_PROMPT = "Rémunération"


class VolunteeringInfos(FieldGroup):
    """Volunteering asks nothing more."""

    def __init__(self):
        super().__init__()


class GratificationDetails(FieldGroup):
    def __init__(self):
        super().__init__(
            TextOption(
                "compensation",
                "Quelle est la gratification ? (4,35€/h minimum pour un stage de plus de 10 semaines)",
            )
        )


class InternshipInfos(SubStep):
    """Internship: duration, then whether it is paid and how much."""

    def __init__(self):
        self.duration = TextOption("duration", "Durée du stage")
        self.paid = ChoiceOption(
            "paid",
            "Le stage est-il rémunéré ?",
            [
                Variant("yes", "Oui", GratificationDetails),
                Variant("no", "Non"),
            ],
        )

    def options(self) -> list[Option]:
        return [self.duration, self.paid]

    def to_document(self) -> dict[str, Any]:
        document: dict[str, Any] = {
            "duration": self.duration.require(),
            "paid": self.paid.require() == "yes",
        }
        if self.paid.detail is not None:
            document.update(self.paid.detail.to_document())
        return document


class FreelanceInfos(FieldGroup):
    def __init__(self):
        super().__init__(
            TextOption("duration", "Durée de la mission"),
            TextOption("compensation", COMPENSATION_PROMPT),
        )


class WorkStudyInfos(FieldGroup):
    def __init__(self):
        super().__init__(
            TextOption("duration", "Durée du contrat"),
            TextOption("compensation", COMPENSATION_PROMPT),
        )


class FixedTermInfos(FieldGroup):
    def __init__(self):
        super().__init__(
            TextOption("duration", "Durée du contrat"),
            TextOption("compensation", COMPENSATION_PROMPT),
        )


class OpenEndedInfos(FieldGroup):
    def __init__(self):
        super().__init__(TextOption("compensation", COMPENSATION_PROMPT))


CONTRACT_VARIANTS = [
    Variant("volunteering", "🤝 Bénévolat (non rémunéré)", VolunteeringInfos),
    Variant("internship", "🪂 Stage", InternshipInfos),
    Variant("work_study", "🤓 Alternance (rémunéré)", WorkStudyInfos),
    Variant("freelance", "🧐 Freelance", FreelanceInfos),
    Variant("fixed_term", "😎 CDD (rémunéré)", FixedTermInfos),
    Variant("open_ended", "🤯 CDI (rémunéré)", OpenEndedInfos),
]

CONTRACT_LABELS = {variant.key: variant.label for variant in CONTRACT_VARIANTS}
