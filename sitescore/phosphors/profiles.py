"""
Modification profile generation.

A profile is one assignment of all indistinguishable modifications to sites,
stored as a strictly increasing tuple of site indices (0 = N-terminus,
L + 1 = C-terminus, 1..L = residues).
"""

from math import comb
from typing import List, Sequence, Tuple

from .errors import InvalidInput

Profile = Tuple[int, ...]


def get_possible_modification_profiles(
    possible_sites: Sequence[int], n_ptms: int
) -> List[Profile]:
    """
    Return every combination of n_ptms sites, in increasing order.

    Singleton profiles are seeded first, then each profile of size i - 1 is
    extended by every site greater than its last site. The number of
    profiles is C(m, n_ptms); bound m and n_ptms upstream.

    Args:
        possible_sites: Sorted, unique candidate sites
        n_ptms: Number of modifications to place

    Returns:
        List of profiles
    """
    if n_ptms < 1:
        raise InvalidInput(f"At least one modification is required, got {n_ptms}.")
    result = [(site,) for site in possible_sites]
    for _ in range(2, n_ptms + 1):
        result = [
            profile + (site,)
            for profile in result
            for site in possible_sites
            if site > profile[-1]
        ]
    return result


def count_profiles(n_sites: int, n_ptms: int) -> int:
    """Number of profiles generated for n_sites candidate sites."""
    return comb(n_sites, n_ptms)
