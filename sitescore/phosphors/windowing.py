"""
Window-by-window spectrum reduction.

The spectrum is split into m/z windows; in each window only the most
intense peaks are kept, the number of peaks (depth) being chosen so that
site-determining ions best separate the modification profiles.
"""

import logging
import math
from dataclasses import dataclass
from typing import Dict, List, Sequence, Set, Tuple

from .constants import MAX_DEPTH, MIN_DEPTH, WINDOW_SIZE
from .errors import check_probability_range
from .fragments import FragmentIonSet
from .profiles import Profile
from .site_ions import site_determining_ions_in_window
from .spectrum import Spectrum, get_reduced_spectra

logger = logging.getLogger(__name__)


def floor_double(value: float, n_decimals: int) -> float:
    """Floor value to n_decimals decimals."""
    if n_decimals <= 0:
        return float(math.floor(value))
    factor = 10.0**n_decimals
    return math.floor(value * factor) / factor


def get_n_decimals(d: float, w: float) -> int:
    """Decimals used to floor p: int(-log10(d / w)) + 1."""
    if d <= 0 or w <= 0:
        return 0
    return int(-math.log10(d / w)) + 1


def getp(n_peaks: int, w: float, d: float, n_decimals: int) -> float:
    """
    Probability for a theoretical fragment to match one of the peaks by chance.

    Args:
        n_peaks: Number of peaks in the spectrum
        w: m/z range considered
        d: m/z tolerance in Da
        n_decimals: Decimals kept when flooring

    Returns:
        min(1, d * n_peaks / w) floored, 1.0 when w == 0 or n_peaks <= 1
    """
    if w == 0.0:
        return 1.0
    if n_peaks <= 1:
        return 1.0
    p = d * n_peaks / w
    if p > 1:
        p = 1.0
    return floor_double(p, n_decimals)


def select_depth_by_delta(deltas: Sequence[Sequence[float]]) -> int:
    """
    Index of the depth with the largest delta.

    Ranks are scanned in increasing order and, within a rank, depths in
    increasing order; the scan stops after the first rank giving a non-zero
    maximum. The first maximum found wins.

    This is not the largest delta over all ranks: a larger delta at a later
    rank is ignored once an earlier rank has a non-zero maximum.
    """
    n_deltas = max((len(d) for d in deltas), default=0)
    best_i = 0
    largest_delta = 0.0
    for j in range(n_deltas):
        if largest_delta != 0.0:
            break
        for i, current in enumerate(deltas):
            if j < len(current) and current[j] > largest_delta:
                largest_delta = current[j]
                best_i = i
    return best_i


def clamp_depth_index(best_i: int, n_spectra: int, min_depth: int, max_depth: int) -> int:
    if best_i < min_depth - 1 and min_depth - 1 < n_spectra:
        best_i = min_depth - 1
    if best_i > max_depth - 1:
        best_i = max_depth - 1
    return best_i


def get_deltas(big_ps: List[float]) -> List[float]:
    """Ratios of consecutive probabilities sorted ascending (NaN for 0/0)."""
    big_ps = sorted(big_ps)
    deltas = []
    for p_j, p_next in zip(big_ps, big_ps[1:]):
        deltas.append(p_j / p_next if p_next > 0 else math.nan)
    return deltas


@dataclass(frozen=True)
class WindowChoice:
    """Depth selected in one window."""

    min_mz: float
    n_peaks: int
    depth: int
    site_determining: bool


class SpectrumReducer:
    """
    Reduces a spectrum window by window.

    Args:
        scorer: BinomialScorer used to score profiles at each depth
        settings: Scoring AnnotationSettings
        window_size: Width of the m/z windows
        min_depth: Minimal number of peaks kept per window
        max_depth: Maximal number of peaks kept per window
    """

    def __init__(
        self,
        scorer,
        settings,
        window_size: float = WINDOW_SIZE,
        min_depth: int = MIN_DEPTH,
        max_depth: int = MAX_DEPTH,
    ):
        self.scorer = scorer
        self.settings = settings
        self.window_size = window_size
        self.min_depth = min_depth
        self.max_depth = max_depth

    def window_tolerance(self, min_mz: float) -> Tuple[float, int]:
        """Tolerance d in Da and flooring decimals for the window starting at min_mz."""
        d = self.settings.tolerance_in_da(min_mz + self.window_size / 2)
        return d, get_n_decimals(d, self.window_size)

    def reduce(
        self,
        spectrum: Spectrum,
        profiles: Sequence[Profile],
        profile_fragments: Dict[Profile, FragmentIonSet],
        site_determining: Dict[float, Set[Profile]],
        no_mod_fragments: FragmentIonSet,
    ) -> Tuple[Spectrum, List[WindowChoice]]:
        """
        Reduce the spectrum to the best depth of every window.

        Args:
            spectrum: Filtered spectrum
            profiles: Modification profiles in generation order
            profile_fragments: Fragment ions of every profile's variant
            site_determining: Site-determining ion m/z -> profiles
            no_mod_fragments: Fragment ions of the peptide without the scored modifications

        Returns:
            Reduced spectrum and the depth chosen in every non-empty window
        """
        kept_mz = []
        kept_intensity = []
        choices = []
        if spectrum.is_empty:
            return spectrum.derive(kept_mz, kept_intensity, f"{spectrum.title}_phosphoRS"), choices

        min_mz = spectrum.min_mz
        max_mz = spectrum.max_mz
        while min_mz < max_mz:
            temp_max = min_mz + self.window_size
            d, n_decimals = self.window_tolerance(min_mz)
            window = spectrum.sub_spectrum(min_mz, temp_max)

            if not window.is_empty:
                spectra = get_reduced_spectra(window, self.max_depth)
                profile_ions = site_determining_ions_in_window(
                    site_determining, min_mz, temp_max
                )
                if profile_ions:
                    best_i = self._best_depth_by_delta(
                        spectra, profiles, profile_fragments, profile_ions, d, n_decimals
                    )
                else:
                    best_i = self._best_depth_by_probability(
                        spectra, no_mod_fragments, d, n_decimals
                    )
                best_i = clamp_depth_index(
                    best_i, len(spectra), self.min_depth, self.max_depth
                )
                best = spectra[best_i]
                kept_mz.extend(best.mz)
                kept_intensity.extend(best.intensity)
                choices.append(
                    WindowChoice(min_mz, len(window), best_i + 1, bool(profile_ions))
                )
                logger.debug(
                    f"Window {min_mz:.2f}-{temp_max:.2f}: {len(window)} peaks, depth {best_i + 1}"
                    f"{' (site-determining ions)' if profile_ions else ''}"
                )

            min_mz = temp_max

        return (
            spectrum.derive(kept_mz, kept_intensity, f"{spectrum.title}_phosphoRS"),
            choices,
        )

    def _best_depth_by_delta(
        self, spectra, profiles, profile_fragments, profile_ions, d, n_decimals
    ) -> int:
        deltas = []
        for current in spectra:
            current_p = getp(len(current), self.window_size, d, n_decimals)
            big_ps = []
            scored = []
            no_ion_profile_scored = False
            for profile in profiles:
                ions = profile_ions.get(profile)
                if ions is None:
                    if no_ion_profile_scored:
                        continue
                    no_ion_profile_scored = True
                elif ions in scored:
                    continue
                else:
                    scored.append(ions)
                fragments = profile_fragments[profile]
                big_p = self.scorer.score(
                    fragments, current, current_p, fragments.n_expected, self.settings
                )
                big_ps.append(check_probability_range(big_p))
            deltas.append(get_deltas(big_ps))
        return select_depth_by_delta(deltas)

    def _best_depth_by_probability(self, spectra, fragments, d, n_decimals) -> int:
        best_i = 0
        best_p = math.inf
        for i, current in enumerate(spectra):
            current_p = getp(len(current), self.window_size, d, n_decimals)
            big_p = self.scorer.score(
                fragments, current, current_p, fragments.n_expected, self.settings
            )
            check_probability_range(big_p)
            if big_p < best_p:
                best_p = big_p
                best_i = i
        return best_i
