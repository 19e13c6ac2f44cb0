"""Venue matching for onboarding.

After a GHL location installs the app we know its owner email and its
location name. Venue names typed into the captive-portal directory and GHL
location names are rarely identical, so matching goes from most to least
specific and stops at the first strategy that succeeds:

1. hospitality group whose group name contains the location name
2. venue whose name equals / contains / is contained in the location name,
   or contains its first word
3. the only venue owned by that email
4. any venue sharing a word (3+ chars) with the location name

Nothing here touches the database; callers pass in a directory snapshot.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import Iterable, Sequence

logger = logging.getLogger(__name__)

_TOKEN_SPLIT = re.compile(r"[\s\-]+")


@dataclass(frozen=True)
class VenueRecord:
    venue_id: str
    display_name: str
    group_name: str | None = None
    owner_emails: frozenset[str] = field(default_factory=frozenset)
    device_ids: tuple[str, ...] = ()
    address: str | None = None

    @classmethod
    def from_model(cls, venue) -> "VenueRecord":
        return cls(
            venue_id=venue.venue_id,
            display_name=venue.display_name,
            group_name=venue.group_name,
            owner_emails=frozenset(e.strip().lower() for e in (venue.owner_emails or [])),
            device_ids=tuple(venue.device_ids or ()),
            address=venue.address,
        )

    def owned_by(self, email: str) -> bool:
        return email in {e.strip().lower() for e in self.owner_emails}


@dataclass(frozen=True)
class NoMatch:
    kind: str = "none"


@dataclass(frozen=True)
class SingleMatch:
    venue: VenueRecord
    kind: str = "single"


@dataclass(frozen=True)
class GroupMatch:
    group_name: str
    venues: tuple[VenueRecord, ...]
    kind: str = "group"


MatchResult = NoMatch | SingleMatch | GroupMatch


def _tokens(text: str) -> list[str]:
    return [w for w in _TOKEN_SPLIT.split(text) if len(w) > 2]


def _name_matches(site_name: str, name: str) -> bool:
    if site_name == name or name in site_name or site_name in name:
        return True
    first_word = name.split()[0]
    return first_word in site_name


def _tokens_overlap(site_name: str, name: str) -> bool:
    site_words = _tokens(site_name)
    return any(
        sw in word or word in sw
        for word in _tokens(name)
        for sw in site_words
    )


def match(email: str, location_name: str, venues: Iterable[VenueRecord]) -> MatchResult:
    """Resolve an (email, location name) pair against a venue directory."""
    email = (email or "").strip().lower()
    name = (location_name or "").strip().lower()
    owned: Sequence[VenueRecord] = [v for v in venues if email and v.owned_by(email)]

    if not owned:
        return NoMatch()

    if name:
        in_group = [v for v in owned if v.group_name and name in v.group_name.lower()]
        if len(in_group) > 1:
            in_group.sort(key=lambda v: v.display_name)
            logger.info(
                "Matched hospitality group %r with %d venues", in_group[0].group_name, len(in_group)
            )
            return GroupMatch(group_name=in_group[0].group_name, venues=tuple(in_group))

        for venue in owned:
            if _name_matches(venue.display_name.lower(), name):
                logger.info("Matched venue by name: %s", venue.display_name)
                return SingleMatch(venue)

    if len(owned) == 1:
        logger.info("Matched only venue for email: %s", owned[0].display_name)
        return SingleMatch(owned[0])

    if name:
        for venue in owned:
            if _tokens_overlap(venue.display_name.lower(), name):
                logger.info("Matched venue by word overlap: %s", venue.display_name)
                return SingleMatch(venue)

    logger.info(
        "No venue match for %r among %s", location_name, [v.display_name for v in owned]
    )
    return NoMatch()
