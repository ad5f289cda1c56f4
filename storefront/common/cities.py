"""Municipalities served by the shop and their delivery fees."""

from __future__ import annotations

from decimal import Decimal
from typing import Final

AMMAN_DELIVERY_FEE: Final = Decimal("2")
DEFAULT_DELIVERY_FEE: Final = Decimal("3")

# Latin name -> Arabic name. Lookups accept either script.
CITIES: Final[dict[str, str]] = {
    "Amman": "عمان",
    "Ajloun": "عجلون",
    "Aqaba": "العقبة",
    "Irbid": "إربد",
    "Madaba": "مادبا",
    "Jerash": "جرش",
    "Petra": "البتراء",
    "Salt": "السلط",
    "Karak": "الكرك",
    "Ma'an": "معان",
    "Tafilah": "الطفيلة",
    "Zarqa": "الزرقاء",
    "Al Husn": "الحصن",
    "Azraq": "الأزرق",
    "Wadi Rum": "وادي رم",
    "Dead Sea": "البحر الميت",
    "Umm Qais": "أم قيس",
    "Wadi Al-Seer": "وادي السير",
    "Russeifa": "الرصيفة",
    "Al-'aqabah": "العقبة",
}

_LOOKUP: Final[dict[str, str]] = {latin.casefold(): latin for latin in CITIES}
for _latin, _arabic in CITIES.items():
    _LOOKUP.setdefault(_arabic, _latin)


def canonical_city(name: str) -> str | None:
    """Return the Latin name of a listed city, matching case-insensitively in either script."""

    return _LOOKUP.get(" ".join(name.split()).casefold())


def delivery_fee(city: str) -> Decimal:
    """Fee shown at checkout: 2 for Amman, 3 for other listed cities, 0 when unknown."""

    canonical = canonical_city(city)
    if canonical is None:
        return Decimal("0")
    return AMMAN_DELIVERY_FEE if canonical == "Amman" else DEFAULT_DELIVERY_FEE


def suggested_shipping_fee(city: str | None) -> Decimal:
    """Fee an admin would charge for ``city``: 2 anywhere in Amman, 3 elsewhere."""

    if not city:
        return DEFAULT_DELIVERY_FEE
    lowered = city.strip().casefold()
    if "amman" in lowered or CITIES["Amman"] in lowered:
        return AMMAN_DELIVERY_FEE
    return DEFAULT_DELIVERY_FEE
