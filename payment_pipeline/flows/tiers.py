"""
Pricing tier -> contract template mapping.

Upper bounds are inclusive and in minor units: 35000 is still basic,
35001 is premium. Re-check these whenever pricing changes.
"""

from __future__ import annotations

from payment_pipeline.integrations.contracts.interfaces import ContractTier
from payment_pipeline.utils.config_loader import TemplateConfig

BASIC_MAX_MINOR_UNITS = 35_000          # $350
PREMIUM_MAX_MINOR_UNITS = 1_000_000     # $10,000


def tier_for(amount_minor_units: int) -> ContractTier:
    if amount_minor_units < 0:
        raise ValueError(f"amount must be non-negative, got {amount_minor_units}")
    if amount_minor_units <= BASIC_MAX_MINOR_UNITS:
        return ContractTier.BASIC
    if amount_minor_units <= PREMIUM_MAX_MINOR_UNITS:
        return ContractTier.PREMIUM
    return ContractTier.ENTERPRISE


def classify(amount_minor_units: int, templates: TemplateConfig) -> str:
    """Return the contract template id for the amount's pricing tier."""
    return getattr(templates, tier_for(amount_minor_units).value)
