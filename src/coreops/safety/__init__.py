# ──────────────────────────────────────────────────────────────────────
# CoreOps — Safety Analyses
# © 1998–2026 Miroslav Šotek. All rights reserved.
# Contact: www.anulum.li | protoscience@anulum.li
# ORCID: https://orcid.org/0009-0009-3560-0851
# License: GNU AGPL v3 | Commercial licensing available
# ──────────────────────────────────────────────────────────────────────
from .shutdown_margin import ShutdownMarginAnalyzer, combine_margin, derate_worth, governing_stuck_rod

__all__ = ["combine_margin", "derate_worth", "governing_stuck_rod", "ShutdownMarginAnalyzer"]
