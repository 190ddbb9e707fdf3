"""Human labels and postcodes derived from an admin hierarchy."""

from __future__ import annotations

from typing import Sequence

from geoimport.admin.geofinder import Admin


def format_label(admins: Sequence[Admin], city_level: int, name: str) -> str:
    city = next((admin for admin in admins if admin.level == city_level), None)
    if city is None:
        return name
    return f"{name} ({city.name})"


def zip_codes_from_admins(admins: Sequence[Admin]) -> tuple[str, ...]:
    """Zip codes of the deepest admin level that has any."""

    levels = [admin.level for admin in admins if admin.zip_codes]
    if not levels:
        return ()
    deepest = max(levels)
    return tuple(
        code
        for admin in admins
        if admin.level == deepest
        for code in admin.zip_codes
    )
