"""Job advertisement form.

The root of the tree asks, in order: title, description, contract kind (then
the contract's own fields), whether the author recruits or looks for work
(then the profile's fields), how to get in touch, and other useful links.

``to_document`` turns a complete tree into a plain dictionary, and
``render_advertisement`` formats that dictionary as the published post.
"""

from __future__ import annotations

from typing import Any

from .base import SubStep
from .contracts import CONTRACT_LABELS, CONTRACT_VARIANTS
from .options import (
    MESSAGE_LIMIT,
    ChoiceOption,
    FieldGroup,
    Option,
    TextOption,
    Variant,
    quote,
    truncate_text,
)
from .profiles import PROFILE_VARIANTS

MISSING = "[Donnée manquante]"


class ContactDetails(FieldGroup):
    def __init__(self):
        super().__init__(
            TextOption("details", "Indique au moins un moyen de contact (mail etc...)")
        )


CONTACT_VARIANTS = [
    Variant("discord", "Discord"),
    Variant("other", "Autre", ContactDetails),
]


class AdvertisementSteps(SubStep):
    """Root of the advertisement form."""

    def __init__(self):
        self.title = TextOption("title", "Donne un titre à ton annonce")
        self.description = TextOption(
            "description",
            "Décris ton annonce, en quoi elle consiste, qui tu es etc...",
            modal=True,
            multiline=True,
        )
        self.kind = ChoiceOption("kind", "Quel type de contrat recherches-tu ?", CONTRACT_VARIANTS)
        self.profile = ChoiceOption(
            "profile", "Recrutes-tu ou cherches-tu du travail ?", PROFILE_VARIANTS
        )
        self.contact = ChoiceOption("contact", "Comment peut-on te contacter ?", CONTACT_VARIANTS)
        self.other_urls = TextOption("other_urls", "Précises d'autres liens utiles")

    def options(self) -> list[Option]:
        return [
            self.title,
            self.description,
            self.kind,
            self.profile,
            self.contact,
            self.other_urls,
        ]

    def to_document(self) -> dict[str, Any]:
        return {
            "title": self.title.require(),
            "description": self.description.require(),
            "contract": self.kind.to_document(),
            "profile": self.profile.to_document(),
            "contact": self.contact.to_document(),
            "links": self.other_urls.require(),
        }


def _location_text(location: dict[str, Any]) -> str:
    kind = location.get("kind")
    city = location.get("city", MISSING)
    if kind == "remote":
        return "🌍 Distanciel uniquement"
    if kind in ("flex", "anywhere"):
        return f"{city} (🤷‍♀️ Télétravail possible)"
    if kind == "on_site":
        return f"{city} (🏣 sur site)"
    return MISSING


def _compensation_text(contract: dict[str, Any]) -> str | None:
    if contract.get("kind") == "volunteering":
        return None
    if contract.get("kind") == "internship" and not contract.get("paid"):
        return "Non rémunéré"
    return contract.get("compensation", MISSING)


def render_advertisement(document: dict[str, Any], author_id: str) -> str:
    """Format a composed advertisement as the text of the published post.

    Args:
        document: Result of ``AdvertisementSteps.to_document``
        author_id: Platform id of the author, mentioned in the post

    Returns:
        The post content, cut to the platform message limit
    """
    contract = document.get("contract", {})
    profile = document.get("profile", {})
    contact = document.get("contact", {})
    author = f"<@{author_id}>"

    lines = [
        f"# {document.get('title', MISSING)}",
        f"Annonce de {author}",
        quote(document.get("description", MISSING)),
        "",
        f"**Contrat** : {CONTRACT_LABELS.get(contract.get('kind', ''), MISSING)}",
    ]
    if "duration" in contract:
        lines.append(f"**Durée** : {contract['duration']}")
    compensation = _compensation_text(contract)
    if compensation is not None:
        lines.append(f"**Rémunération** : {compensation}")

    lines.append(f"**Emplacement** : {_location_text(profile.get('location', {}))}")
    if profile.get("kind") == "recruiter":
        lines.append(f"**Entreprise** : {profile.get('studio', MISSING)}")
        lines.extend(["**Responsabilités**", quote(profile.get("responsibilities", MISSING))])
        lines.extend(["**Qualifications**", quote(profile.get("qualifications", MISSING))])
    else:
        lines.extend(["**Compétences**", quote(profile.get("skills", MISSING))])

    if contact.get("kind") == "other":
        lines.append(f"**Contact** : {contact.get('details', MISSING)}")
    else:
        lines.append(f"**Contact** : Discord ({author})")
    lines.append(f"**Liens** : {document.get('links', MISSING)}")

    return truncate_text("\n".join(lines), MESSAGE_LIMIT)
