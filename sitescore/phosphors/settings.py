"""
Annotation and sequence matching settings.
"""

from dataclasses import dataclass, replace
from typing import Optional, Tuple, FrozenSet

from .constants import BACKBONE_ION_TYPES, PPM
from .errors import InvalidInput


@dataclass(frozen=True)
class AnnotationSettings:
    """
    Settings used to predict and match fragment ions.

    Attributes:
        fragment_tolerance: Fragment tolerance, in Da or ppm
        fragment_ppm: Whether fragment_tolerance is in ppm
        ion_types: Backbone ion series to predict (subset of a, b, c, x, y, z)
        charges: Fragment charges to predict
        account_neutral_losses: Whether neutral losses are predicted at all
        neutral_losses: Loss formulas to keep (e.g. "H2O1"), None keeps every loss
        excluded_loss_masses: Loss masses never used for scoring
        excluded_loss_tolerance: Tolerance in Da for excluded_loss_masses
    """

    fragment_tolerance: float = 0.05
    fragment_ppm: bool = False
    ion_types: Tuple[str, ...] = ("b", "y")
    charges: Tuple[int, ...] = (1,)
    account_neutral_losses: bool = True
    neutral_losses: Optional[FrozenSet[str]] = None
    excluded_loss_masses: Tuple[float, ...] = ()
    excluded_loss_tolerance: float = 0.0

    def __post_init__(self):
        if self.fragment_tolerance <= 0:
            unit = "PPM" if self.fragment_ppm else "Dalton"
            raise InvalidInput(f"{unit} tolerance must be positive.")
        unknown = [t for t in self.ion_types if t not in BACKBONE_ION_TYPES]
        if unknown:
            raise InvalidInput(f"Unsupported fragment ion types: {unknown}")
        if not self.charges or min(self.charges) < 1:
            raise InvalidInput(f"Invalid fragment charges: {self.charges}")

    @classmethod
    def from_config(cls, config) -> "AnnotationSettings":
        losses = config.get("neutral_losses")
        return cls(
            fragment_tolerance=float(config["fragment_mass_tolerance"]),
            fragment_ppm=config["fragment_mass_unit"] == "ppm",
            ion_types=tuple(config["ion_types"]),
            charges=tuple(sorted(set(int(c) for c in config["fragment_charges"]))),
            account_neutral_losses=bool(config["account_neutral_losses"]),
            neutral_losses=frozenset(losses) if losses is not None else None,
        )

    def tolerance_in_da(self, ref_mz: float) -> float:
        """Fragment tolerance in Da at the given reference m/z."""
        if self.fragment_ppm:
            return ref_mz * self.fragment_tolerance * PPM
        return self.fragment_tolerance

    def scoring_settings(
        self, ptm_mass: float, max_mz: float, account_neutral_losses: bool
    ) -> "AnnotationSettings":
        """
        Settings used for scoring one modification-mass group.

        Neutral losses matching the modification mass are excluded; the others
        are kept only when account_neutral_losses is set.
        """
        return replace(
            self,
            account_neutral_losses=self.account_neutral_losses and account_neutral_losses,
            excluded_loss_masses=(ptm_mass,),
            excluded_loss_tolerance=self.tolerance_in_da(max_mz),
        )

    def is_excluded_loss(self, loss_mass: float) -> bool:
        return any(
            abs(abs(loss_mass) - abs(m)) <= self.excluded_loss_tolerance
            for m in self.excluded_loss_masses
        )


@dataclass(frozen=True)
class SequenceMatchingPreferences:
    """How modification residue specificities are matched against a sequence."""

    match_i_l: bool = False

    def residue_matches(self, residue: str, targets) -> bool:
        if "X" in targets or residue in targets:
            return True
        if self.match_i_l and residue in ("I", "L"):
            return "I" in targets or "L" in targets
        return False
