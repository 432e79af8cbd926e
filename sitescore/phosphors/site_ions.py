"""
Site-determining ions: theoretical fragment m/z values that differ between
modification profiles.
"""

import logging
from typing import Dict, Iterable, Set

from .fragments import FragmentIonSet
from .profiles import Profile

logger = logging.getLogger(__name__)


def get_site_determining_ions(
    profile_fragments: Dict[Profile, FragmentIonSet],
    profiles: Iterable[Profile],
) -> Dict[float, Set[Profile]]:
    """
    Return every site-determining ion m/z with the profiles where it occurs.

    Profiles are inspected in order, the first one seeding the common ions.
    An m/z absent from the common set is
    site-determining for the current profile; a common m/z missing from the
    current profile becomes site-determining for the profiles that had it.
    Ions common to all profiles are dropped.

    Args:
        profile_fragments: Fragment ions of each profile's peptide variant
        profiles: Profiles in generation order

    Returns:
        Map m/z -> set of profiles
    """
    site_determining: Dict[float, Set[Profile]] = {}
    common: Dict[float, Set[Profile]] = {}

    first = True
    for profile in profiles:
        mzs = profile_fragments[profile].mz_values()

        if first:
            common = {mz: {profile} for mz in mzs}
            first = False
            continue

        for mz in mzs:
            if mz not in common:
                site_determining.setdefault(mz, set()).add(profile)

        for mz in list(common):
            if mz not in mzs:
                site_determining.setdefault(mz, set()).update(common.pop(mz))
            else:
                common[mz].add(profile)

    logger.debug(
        f"{len(site_determining)} site-determining ions, {len(common)} common ions"
    )
    return site_determining


def site_determining_ions_in_window(
    site_determining: Dict[float, Set[Profile]], min_mz: float, max_mz: float
) -> Dict[Profile, frozenset]:
    """Site-determining ion m/z values with min_mz < m/z <= max_mz, per profile."""
    result: Dict[Profile, Set[float]] = {}
    for mz, profiles in site_determining.items():
        if min_mz < mz <= max_mz:
            for profile in profiles:
                result.setdefault(profile, set()).add(mz)
    return {profile: frozenset(mzs) for profile, mzs in result.items()}
