"""
Organization chart used to label roster members.

Groups may have portfolios; a portfolio is only meaningful inside its group.
"""

from typing import Optional

GROUP_PORTFOLIOS: dict[str, tuple[str, ...]] = {
    "Security": (),
    "SBO": (),
    "Products": ("Spec Ops", "Support", "Logistics", "MOSS"),
    "Enterprise": ("Atlas", "Forge"),
    "Stan/Eval": (),
}


def is_valid_group(value: object) -> bool:
    """Check whether the value names a known group."""
    return isinstance(value, str) and value in GROUP_PORTFOLIOS


def portfolios_for_group(group: Optional[str]) -> tuple[str, ...]:
    """Portfolios belonging to a group (empty for unknown or missing groups)."""
    if not group:
        return ()
    return GROUP_PORTFOLIOS.get(group, ())


def is_valid_portfolio_for_group(group: Optional[str], portfolio: object) -> bool:
    """Check whether the portfolio belongs to the given group."""
    if not group or not isinstance(portfolio, str):
        return False
    return portfolio in portfolios_for_group(group)


def normalize_org_labels(group: object, portfolio: object) -> tuple[Optional[str], Optional[str]]:
    """
    Coerce raw group/portfolio labels onto the org chart.

    Unknown groups become None; a portfolio that does not belong to the
    (normalized) group becomes None.
    """
    normalized_group = group if is_valid_group(group) else None
    normalized_portfolio = portfolio if is_valid_portfolio_for_group(normalized_group, portfolio) else None
    return normalized_group, normalized_portfolio
