"""
PhosphoRS modification site localization.

Estimates, for one group of indistinguishable modifications (same mass), the
probability of every possible site as described in
http://www.ncbi.nlm.nih.gov/pubmed/22073976. Sites are indexed 1..L on the
residues, 0 for the N-terminus and L + 1 for the C-terminus.

The calculation is slow for multiply modified peptides, peptides with many
possible sites and noisy spectra.
"""

import logging
from typing import Dict, List, Optional, Sequence

import numpy as np
from scipy.special import logsumexp

from .binomial import BinomialDistribution, BinomialScorer, DistributionCache
from .config import PhosphoRSConfig
from .errors import (
    EmptySpectrum,
    IncompleteCoverage,
    InvalidInput,
    LocalizationResult,
    NormalizationFailure,
    PhosphoRSError,
    check_probability_range,
)
from .fragments import FragmentIonPredictor, SpectrumAnnotator
from .peptide import PTM, ModificationMatch, Peptide, as_str
from .profiles import Profile, get_possible_modification_profiles
from .settings import AnnotationSettings, SequenceMatchingPreferences
from .site_ions import get_site_determining_ions
from .spectrum import Spectrum, filter_spectrum
from .windowing import SpectrumReducer, get_n_decimals, getp

logger = logging.getLogger(__name__)


def get_possible_sites(
    peptide: Peptide,
    ptms: Sequence[PTM],
    matching: Optional[SequenceMatchingPreferences] = None,
) -> List[int]:
    """Sorted sites where any of the modifications may be located."""
    length = len(peptide)
    sites = set()
    for ptm in ptms:
        potential = peptide.get_potential_modification_sites(ptm, matching)
        if ptm.is_n_term:
            if 1 in potential:
                sites.add(0)
        elif ptm.is_c_term:
            if length in potential:
                sites.add(length + 1)
        else:
            sites.update(potential)
    return sorted(sites)


def get_possible_peptides(
    peptide: Peptide, ptms: Sequence[PTM], profiles: Sequence[Profile]
) -> Dict[Profile, Peptide]:
    """
    Peptide variant of every profile.

    Each variant is built from the peptide without the scored modifications
    and carries a modification of the group at every profile site: the first
    one specific to the site's residue, else the representative (first) one.
    The N- and C-terminal sites map to residues 1 and L.
    """
    length = len(peptide)
    base = peptide.without_modifications(ptm.name for ptm in ptms)
    result = {}
    for profile in profiles:
        matches = []
        for site in profile:
            if site == 0:
                name = _site_ptm(ptms, peptide.sequence[0], n_term=True).name
                matches.append(ModificationMatch(name, True, 1, terminal="N"))
            elif site == length + 1:
                name = _site_ptm(ptms, peptide.sequence[-1], c_term=True).name
                matches.append(ModificationMatch(name, True, length, terminal="C"))
            else:
                name = _site_ptm(ptms, peptide.sequence[site - 1]).name
                matches.append(ModificationMatch(name, True, site))
        result[profile] = base.with_modifications(matches)
    return result


def _site_ptm(ptms, residue: str, n_term: bool = False, c_term: bool = False) -> PTM:
    for ptm in ptms:
        if ptm.is_n_term != n_term or ptm.is_c_term != c_term:
            continue
        if "X" in ptm.residues or residue in ptm.residues:
            return ptm
    return ptms[0]


def normalize_profile_scores(big_ps: Dict[Profile, float]) -> Dict[Profile, float]:
    """
    Convert PhosphoRS probabilities into percentages.

    A profile scores 100 * (1 / P) / sum(1 / P), computed in log space.
    Profiles whose P underflowed to 0 share 100 equally.
    """
    if not big_ps:
        raise NormalizationFailure("No profile to normalize.")
    profiles = list(big_ps)
    values = np.array([big_ps[profile] for profile in profiles], dtype=float)
    zero = values == 0.0
    if zero.any():
        fractions = np.where(zero, 1.0 / zero.sum(), 0.0)
    else:
        log_inverse = -np.log(values)
        log_total = logsumexp(log_inverse)
        if not np.isfinite(log_total):
            raise NormalizationFailure(f"PhosphoRS probability sum is invalid: {log_total}")
        fractions = np.exp(log_inverse - log_total)

    scores = {}
    for profile, fraction in zip(profiles, fractions):
        check_probability_range(float(fraction))
        scores[profile] = float(fraction) * 100.0
    return scores


def aggregate_site_scores(
    profile_scores: Dict[Profile, float], possible_sites: Sequence[int]
) -> Dict[int, float]:
    """Sum the percentages of the profiles containing every site."""
    scores: Dict[int, float] = {}
    for profile, score in profile_scores.items():
        for site in profile:
            scores[site] = scores.get(site, 0.0) + score
    for site in possible_sites:
        if site not in scores:
            raise IncompleteCoverage(f"Site {site} not scored.")
    return scores


class PhosphoRS:
    """
    PhosphoRS scorer.

    The distribution cache is the only state shared between calls; one
    instance can score many peptide/spectrum pairs concurrently.

    Args:
        config: PhosphoRSConfig or dictionary of configuration values
        cache: Distribution cache, created from the configuration when None
        predictor: Fragment ion predictor
        annotator: Spectrum annotator
        distribution_factory: Callable (n, p) -> BinomialDistribution
    """

    def __init__(
        self,
        config=None,
        cache: Optional[DistributionCache] = None,
        predictor: Optional[FragmentIonPredictor] = None,
        annotator: Optional[SpectrumAnnotator] = None,
        distribution_factory=BinomialDistribution,
    ):
        if not isinstance(config, PhosphoRSConfig):
            config = PhosphoRSConfig(config)
        self.config = config.validate()
        if cache is None:
            cache = DistributionCache(self.config["distribution_cache_size"])
        self.cache = cache
        self.predictor = predictor or FragmentIonPredictor()
        self.annotator = annotator or SpectrumAnnotator()
        self.scorer = BinomialScorer(cache, self.annotator, distribution_factory)
        self.window_size = float(self.config["window_size"])
        self.min_depth = int(self.config["min_depth"])
        self.max_depth = int(self.config["max_depth"])

    def default_settings(self) -> AnnotationSettings:
        return AnnotationSettings.from_config(self.config)

    def get_sequence_probabilities(
        self,
        peptide: Peptide,
        ptms: Sequence[PTM],
        spectrum: Spectrum,
        settings: Optional[AnnotationSettings] = None,
        account_neutral_losses: bool = True,
        matching: Optional[SequenceMatchingPreferences] = None,
    ) -> Dict[int, float]:
        """
        Return the PhosphoRS probability (in percent) of every possible site.

        Args:
            peptide: Peptide carrying the modifications as variable matches
            ptms: Modifications of the same mass scored together, the first
                one is used to build the peptide variants
            spectrum: The spectrum of the peptide
            settings: Annotation settings, defaults from the configuration
            account_neutral_losses: Whether neutral losses are used for scoring;
                losses of the modification mass are always ignored
            matching: Residue matching preferences

        Returns:
            Map site -> probability in percent
        """
        if not ptms:
            raise InvalidInput("No PTM given for PhosphoRS calculation.")
        settings = settings or self.default_settings()
        if matching is None:
            matching = SequenceMatchingPreferences(match_i_l=bool(self.config["match_i_l"]))

        ptm_names = [ptm.name for ptm in ptms]
        n_ptm = peptide.count_variable(ptm_names)
        if n_ptm == 0:
            raise InvalidInput("Given PTMs not found in the peptide for PhosphoRS calculation.")

        ptm_mass = ptms[0].mass
        if any(abs(ptm.mass - ptm_mass) > 1e-6 for ptm in ptms):
            logger.warning(
                f"Scoring modifications of different masses together: {ptm_names}"
            )

        possible_sites = get_possible_sites(peptide, ptms, matching)

        if len(possible_sites) > n_ptm:
            profile_scores = self._score_profiles(
                peptide, ptms, spectrum, settings, account_neutral_losses, possible_sites, n_ptm
            )
        elif len(possible_sites) == n_ptm:
            profile_scores = {tuple(possible_sites): 100.0}
        else:
            raise InvalidInput(
                f"Found less potential modification sites than PTMs during PhosphoRS "
                f"calculation. Peptide: {peptide}"
            )

        return aggregate_site_scores(profile_scores, possible_sites)

    def _score_profiles(
        self, peptide, ptms, spectrum, settings, account_neutral_losses, possible_sites, n_ptm
    ) -> Dict[Profile, float]:
        if spectrum.is_empty:
            raise EmptySpectrum(f"Spectrum {spectrum.title} contains no peaks.")

        scoring_settings = settings.scoring_settings(
            ptms[0].mass, spectrum.max_mz, account_neutral_losses
        )
        spectrum = filter_spectrum(spectrum, scoring_settings, self.window_size)

        profiles = get_possible_modification_profiles(possible_sites, n_ptm)
        variants = get_possible_peptides(peptide, ptms, profiles)
        fragments = {
            profile: self.predictor.predict(variants[profile], scoring_settings)
            for profile in profiles
        }
        no_mod_peptide = peptide.without_modifications(ptm.name for ptm in ptms)
        no_mod_fragments = self.predictor.predict(no_mod_peptide, scoring_settings)
        site_determining = get_site_determining_ions(fragments, profiles)
        logger.debug(
            f"{peptide}: {len(possible_sites)} possible sites, {n_ptm} modifications, "
            f"{len(profiles)} profiles"
        )

        reducer = SpectrumReducer(
            self.scorer, scoring_settings, self.window_size, self.min_depth, self.max_depth
        )
        reduced, _ = reducer.reduce(
            spectrum, profiles, fragments, site_determining, no_mod_fragments
        )

        w = spectrum.max_mz - spectrum.min_mz
        d = scoring_settings.tolerance_in_da(spectrum.min_mz + w / 2)
        current_p = getp(len(reduced), w, d, get_n_decimals(d, w))

        big_ps = {}
        for profile in profiles:
            big_p = self.scorer.score(
                fragments[profile], reduced, current_p, fragments[profile].n_expected,
                scoring_settings,
            )
            big_ps[profile] = check_probability_range(big_p)
        return normalize_profile_scores(big_ps)

    def localize(self, peptide, ptms, spectrum, **kwargs) -> LocalizationResult:
        """Like get_sequence_probabilities, returning failures as a result value."""
        try:
            return LocalizationResult.success(
                self.get_sequence_probabilities(peptide, ptms, spectrum, **kwargs)
            )
        except PhosphoRSError as e:
            logger.debug(f"Localization failed for {peptide}: {e.kind}: {e}")
            return LocalizationResult.from_error(e)


DEFAULT_SCORER = PhosphoRS()


def get_sequence_probabilities(peptide, ptms, spectrum, **kwargs) -> Dict[int, float]:
    """Score with the process-wide default scorer."""
    return DEFAULT_SCORER.get_sequence_probabilities(peptide, ptms, spectrum, **kwargs)


def group_ptms_by_mass(ptms: Sequence[PTM], tolerance: float = 1e-6) -> List[List[PTM]]:
    """Group modifications of the same mass, keeping the given order."""
    groups: List[List[PTM]] = []
    for ptm in ptms:
        for group in groups:
            if abs(group[0].mass - ptm.mass) <= tolerance:
                group.append(ptm)
                break
        else:
            groups.append([ptm])
    return groups


def peptide_from_hit(hit, variable_names: Sequence[str]) -> Peptide:
    """Peptide of a pyOpenMS PeptideHit, protein termini read from its evidences."""
    protein_n_term = False
    protein_c_term = False
    for evidence in hit.getPeptideEvidences():
        if as_str(evidence.getAABefore()) == "[":
            protein_n_term = True
        if as_str(evidence.getAAAfter()) == "]":
            protein_c_term = True
    return Peptide.from_aasequence(
        hit.getSequence(),
        variable_names=variable_names,
        protein_n_term=protein_n_term,
        protein_c_term=protein_c_term,
    )


def localize_peptide_hit(
    hit,
    spectrum,
    target_modifications: Sequence[str] = ("Phospho (S)", "Phospho (T)", "Phospho (Y)"),
    scorer: Optional[PhosphoRS] = None,
    settings: Optional[AnnotationSettings] = None,
    account_neutral_losses: bool = True,
) -> Dict[int, float]:
    """
    Localize the target modifications of a pyOpenMS PeptideHit.

    Args:
        hit: pyOpenMS PeptideHit
        spectrum: pyOpenMS MSSpectrum or Spectrum
        target_modifications: Full ids of modifications of the same mass
        scorer: PhosphoRS instance, the default scorer when None
        settings: Annotation settings

    Returns:
        Map site -> probability in percent
    """
    scorer = scorer or DEFAULT_SCORER
    ptms = [PTM.from_openms(name) for name in target_modifications]
    if not isinstance(spectrum, Spectrum):
        spectrum = Spectrum.from_openms(spectrum)
    peptide = peptide_from_hit(hit, [ptm.name for ptm in ptms])
    return scorer.get_sequence_probabilities(
        peptide, ptms, spectrum, settings=settings,
        account_neutral_losses=account_neutral_losses,
    )
