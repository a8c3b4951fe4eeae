"""Booking packages and add-ons offered on the site.

Pizza Records bookings pick one in-house venue package. External bookings
pick a PA rig and any number of add-ons.
"""

from __future__ import annotations

from pydantic import BaseModel

PIZZA_RECORDS = "Pizza Records"
EXTERNAL = "External"
BOOKING_TYPES = (PIZZA_RECORDS, EXTERNAL)


class Package(BaseModel):
    """A bookable service package."""

    title: str
    price: str
    features: list[str]
    popular: bool = False


class AddOn(BaseModel):
    """An optional extra for External bookings."""

    key: str
    label: str


PIZZA_PACKAGES: list[Package] = [
    Package(title="Pizza Records – Basic", price="$250", features=["Venue space and sound"]),
    Package(title="Pizza Records – Preferred", price="$300", features=["Venue space", "Sound", "Lighting"]),
    Package(
        title="Pizza Records – Preferred PLUS",
        price="$350",
        popular=True,
        features=["Venue Space", "Sound", "Lighting", "Multi-track sound recording (No mastering, only files)"],
    ),
    Package(
        title="Pizza Records – Premium",
        price="$450",
        features=[
            "Venue space",
            "Sound",
            "Lighting",
            "Projected Visuals",
            "Multi-track sound recording with Mastering",
            "Video recording and editing",
        ],
    ),
]

EXTERNAL_PACKAGES: list[Package] = [
    Package(
        title="External – Compact PA",
        price="$250/day",
        features=[
            "2× QSC K12.2 tops",
            "1× QSC KS118 sub",
            "2 floor monitors",
            "2 wireless mics",
            "Basic mixer",
            "Delivery & setup included",
            "Operator included",
        ],
    ),
    Package(
        title="External – Full PA",
        price="$350/day",
        popular=True,
        features=[
            "2× QSC K12.2 tops",
            "2× QSC KS118 subs",
            "4 floor monitors",
            "Full mic kit",
            "TouchMix 16 with operator",
            "Delivery & setup included",
            "Operator included",
        ],
    ),
    Package(
        title="External – Festival Rig",
        price="$400/day",
        features=[
            "2× QSC K12.2 tops",
            "3× QSC KS118 subs",
            "4 floor monitors",
            "Full mic kit",
            "TouchMix 16 with operator",
            "Delivery & setup included",
            "Operator included",
        ],
    ),
]

EXTERNAL_ADD_ONS: list[AddOn] = [
    AddOn(key="Standard Lighting — $50", label="Standard Lighting — $50 (4 small PARs, 2 thick PARs, DMX control)"),
    AddOn(
        key="Moving Lights & Special FX — $100",
        label="Moving Lights & Special FX — $100 (incl. Standard, +2 moving heads, 2 spider lights, laser box, fog)",
    ),
    AddOn(key="Full Lighting Show — $150", label="Full Lighting Show — $150 (all above + 4 DJ boxes, 15 ft truss)"),
    AddOn(key="Projected Visuals — $150", label="Projected Visuals — $150 (1080p UST projector & screen)"),
    AddOn(
        key="Live Multitrack Recording — $50",
        label="Live Multitrack Recording — $50 (per-channel capture for post mix/master)",
    ),
]

DEFAULT_SERVICE = {
    PIZZA_RECORDS: PIZZA_PACKAGES[0].title,
    EXTERNAL: EXTERNAL_PACKAGES[0].title,
}


def booking_type_for_package(title: str) -> str | None:
    """Return the booking type a package belongs to, or None if unknown."""
    if any(p.title == title for p in PIZZA_PACKAGES):
        return PIZZA_RECORDS
    if any(p.title == title for p in EXTERNAL_PACKAGES):
        return EXTERNAL
    return None
