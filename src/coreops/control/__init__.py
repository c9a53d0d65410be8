# ──────────────────────────────────────────────────────────────────────
# CoreOps — Control Primitives
# © 1998–2026 Miroslav Šotek. All rights reserved.
# Contact: www.anulum.li | protoscience@anulum.li
# ORCID: https://orcid.org/0009-0009-3560-0851
# License: GNU AGPL v3 | Commercial licensing available
# ──────────────────────────────────────────────────────────────────────
from .power_profile import AsiBandTable, PowerProfile, asi_band_table, load_follow_profile, scenario_profile
from .rods import FULL_TRAVEL_CM, RodCatalogue, RodDirection, RodGroup, RodMove, RodSequencer
from .schedule import TimeStepSchedule

__all__ = [
    "asi_band_table",
    "AsiBandTable",
    "FULL_TRAVEL_CM",
    "load_follow_profile",
    "PowerProfile",
    "RodCatalogue",
    "RodDirection",
    "RodGroup",
    "RodMove",
    "RodSequencer",
    "scenario_profile",
    "TimeStepSchedule",
]
