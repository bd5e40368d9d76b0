"""Ideological axes and vote directions.

Every categorized voting event lands on exactly one of six axes.  Scores on
each axis run from -1 to +1 with a fixed polarity:

==============  =================  ==================
Axis            -1                 +1
==============  =================  ==================
Economy         left               right / market
Values          liberal            conservative
Environment     exploitation       protection
Regional        urban              rural
International   national           global
Security        soft line          hard line
==============  =================  ==================
"""

from __future__ import annotations

from enum import Enum


class Axis(str, Enum):
    """Policy category of a voting event.

    Inherits from ``str`` so values compare equal to plain strings
    (e.g. ``Axis.ECONOMY == "Economy"``).  ``OTHER`` is a category but never
    an axis: votes tagged with it carry no ideological signal.
    """

    ECONOMY = "Economy"
    VALUES = "Values"
    ENVIRONMENT = "Environment"
    REGIONAL = "Regional"
    INTERNATIONAL = "International"
    SECURITY = "Security"
    OTHER = "Other"

    @property
    def is_axis(self) -> bool:
        return self is not Axis.OTHER


# Enumeration order: vector layout and deterministic tie-breaking.
AXES: tuple[Axis, ...] = (
    Axis.ECONOMY,
    Axis.VALUES,
    Axis.ENVIRONMENT,
    Axis.REGIONAL,
    Axis.INTERNATIONAL,
    Axis.SECURITY,
)

_CATEGORY_ALIASES: dict[str, Axis] = {
    # Finnish labels used by the Eduskunta data and the classifier prompts
    "talous": Axis.ECONOMY,
    "arvot": Axis.VALUES,
    "ympäristö": Axis.ENVIRONMENT,
    "aluepolitiikka": Axis.REGIONAL,
    "kansainvälisyys": Axis.INTERNATIONAL,
    "turvallisuus": Axis.SECURITY,
    "muu": Axis.OTHER,
    # Short forms
    "economic": Axis.ECONOMY,
    "liberal": Axis.VALUES,
    "env": Axis.ENVIRONMENT,
    "urban": Axis.REGIONAL,
    "global": Axis.INTERNATIONAL,
}


def parse_category(raw: str | Axis | None) -> Axis:
    """Map free-form category text onto an :class:`Axis`.

    Matching is case-insensitive against canonical names and known aliases.
    Anything unrecognised (including ``None`` and the empty string) is
    ``Axis.OTHER``.
    """
    if isinstance(raw, Axis):
        return raw
    if not raw:
        return Axis.OTHER
    key = raw.strip().lower()
    for axis in Axis:
        if axis.value.lower() == key:
            return axis
    return _CATEGORY_ALIASES.get(key, Axis.OTHER)


class VoteType(str, Enum):
    AYE = "aye"
    NAY = "nay"
    ABSTAIN = "abstain"

    @property
    def value_sign(self) -> int:
        """+1 for aye, -1 for nay, 0 for abstain."""
        return _VOTE_VALUES[self]


_VOTE_VALUES: dict[VoteType, int] = {
    VoteType.AYE: 1,
    VoteType.NAY: -1,
    VoteType.ABSTAIN: 0,
}

_AYE_TOKENS: frozenset[str] = frozenset({"aye", "yes", "yea", "y", "jaa"})
_NAY_TOKENS: frozenset[str] = frozenset({"nay", "no", "n", "ei"})


def parse_vote_type(raw: str | VoteType) -> VoteType:
    """Normalise a vote label.  Present / not voting / blank all abstain."""
    if isinstance(raw, VoteType):
        return raw
    key = (raw or "").strip().lower()
    if key in _AYE_TOKENS:
        return VoteType.AYE
    if key in _NAY_TOKENS:
        return VoteType.NAY
    return VoteType.ABSTAIN


def vote_value(vote_type: VoteType | str) -> int:
    return parse_vote_type(vote_type).value_sign
