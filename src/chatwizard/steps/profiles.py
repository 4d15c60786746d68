"""Recruiter and job seeker profiles."""

from __future__ import annotations

from functools import partial
from typing import Any

from .base import SubStep
from .options import ChoiceOption, FieldGroup, Option, TextOption, Variant


class CityDetails(FieldGroup):
    """City or region of an on-site position."""

    def __init__(self, prompt: str):
        super().__init__(TextOption("city", prompt))


RECRUITER_LOCATIONS = [
    Variant("remote", "🌍 Distanciel"),
    Variant("flex", "🤷‍♀️ Télétravail possible", partial(CityDetails, "Quelle est ta ville / région ?")),
    Variant("on_site", "🏣 Présentiel uniquement", partial(CityDetails, "Quelle est ta ville / région ?")),
]

WORKER_LOCATIONS = [
    Variant("remote", "🌍 Distanciel"),
    Variant("anywhere", "🤷‍♀️ Télétravail possible", partial(CityDetails, "Indique ta ville / région")),
    Variant("on_site", "🏣 Présentiel uniquement", partial(CityDetails, "Indique ta ville / région")),
]


class RecruiterInfos(SubStep):
    """Someone offering a position."""

    def __init__(self):
        self.location = ChoiceOption(
            "location", "Quelles sont les modalités de travail ?", RECRUITER_LOCATIONS
        )
        self.studio = TextOption("studio", "Quel est le nom de ton entreprise / studio ?")
        self.responsibilities = TextOption(
            "responsibilities",
            "Quelles sont les responsabilités demandées ?",
            modal=True,
            multiline=True,
        )
        self.qualifications = TextOption(
            "qualifications", "Quelles sont les compétences requises ?", modal=True, multiline=True
        )

    def options(self) -> list[Option]:
        return [self.location, self.studio, self.responsibilities, self.qualifications]

    def to_document(self) -> dict[str, Any]:
        return {
            "location": self.location.to_document(),
            "studio": self.studio.require(),
            "responsibilities": self.responsibilities.require(),
            "qualifications": self.qualifications.require(),
        }


class WorkerInfos(SubStep):
    """Someone looking for a position."""

    def __init__(self):
        self.location = ChoiceOption(
            "location", "Souhaites-tu travailler à distance ou en présentiel ?", WORKER_LOCATIONS
        )
        self.skills = TextOption(
            "skills", "Quelles sont tes compétences ?", modal=True, multiline=True
        )

    def options(self) -> list[Option]:
        return [self.location, self.skills]

    def to_document(self) -> dict[str, Any]:
        return {
            "location": self.location.to_document(),
            "skills": self.skills.require(),
        }


PROFILE_VARIANTS = [
    Variant("worker", "🔧 Je cherche du travail", WorkerInfos),
    Variant("recruiter", "🕵️‍♀️ Je recrute", RecruiterInfos),
]
