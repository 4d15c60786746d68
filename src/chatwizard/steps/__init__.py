"""Step tree of the advertisement wizard.

Provides:
- SubStep / StepContext / dispatch_event: tree protocol and event traversal
- TextOption / ChoiceOption / Variant: field slots
- AdvertisementSteps: the advertisement form and its rendering
"""

from .advertisement import AdvertisementSteps, ContactDetails, render_advertisement
from .base import StepContext, SubStep, dispatch_event
from .contracts import CONTRACT_VARIANTS, InternshipInfos
from .options import (
    CONTROLS_PER_ROW,
    ChoiceOption,
    FieldGroup,
    Option,
    TextOption,
    Variant,
    batch_controls,
    truncate_text,
)
from .profiles import PROFILE_VARIANTS, RecruiterInfos, WorkerInfos

__all__ = [
    "AdvertisementSteps",
    "CONTRACT_VARIANTS",
    "CONTROLS_PER_ROW",
    "ChoiceOption",
    "ContactDetails",
    "FieldGroup",
    "InternshipInfos",
    "Option",
    "PROFILE_VARIANTS",
    "RecruiterInfos",
    "StepContext",
    "SubStep",
    "TextOption",
    "Variant",
    "WorkerInfos",
    "batch_controls",
    "dispatch_event",
    "render_advertisement",
    "truncate_text",
]
