"""
Peptide module.

This module contains the PTM, ModificationMatch and Peptide values used by the
PhosphoRS scorer, and their conversion from and to pyOpenMS objects.
"""

import logging
from dataclasses import dataclass, field, replace
from typing import FrozenSet, Iterable, List, Optional, Tuple

from pyopenms import AASequence, ModificationsDB

from .constants import (
    TERM_ANYWHERE,
    TERM_C,
    TERM_N,
    TERM_PROTEIN_C,
    TERM_PROTEIN_N,
)
from .errors import CollaboratorError
from .settings import SequenceMatchingPreferences

logger = logging.getLogger(__name__)

_TERM_NAMES = {
    "none": TERM_ANYWHERE,
    "anywhere": TERM_ANYWHERE,
    "N-term": TERM_N,
    "C-term": TERM_C,
    "Protein N-term": TERM_PROTEIN_N,
    "Protein C-term": TERM_PROTEIN_C,
}


def as_str(value) -> str:
    if isinstance(value, bytes):
        return value.decode()
    return str(value)


@dataclass(frozen=True)
class PTM:
    """A post-translational modification definition."""

    name: str
    short_name: str
    mass: float
    residues: FrozenSet[str] = frozenset({"X"})
    term: str = TERM_ANYWHERE

    @property
    def is_n_term(self) -> bool:
        return self.term in (TERM_N, TERM_PROTEIN_N)

    @property
    def is_c_term(self) -> bool:
        return self.term in (TERM_C, TERM_PROTEIN_C)

    @classmethod
    def from_openms(cls, name: str) -> "PTM":
        """
        Resolve a modification by name in the pyOpenMS ModificationsDB.

        Args:
            name: Full modification id, e.g. "Phospho (S)"

        Returns:
            PTM instance
        """
        try:
            mod = ModificationsDB().getModification(name)
        except Exception as e:
            raise CollaboratorError(f"Unknown modification '{name}': {e}") from e
        if mod is None or as_str(mod.getName()) == "unknown modification":
            raise CollaboratorError(f"Unknown modification '{name}'")
        try:
            # ANYWHERE is reported as "none"
            term_name = as_str(mod.getTermSpecificityName(mod.getTermSpecificity()))
        except Exception as e:
            raise CollaboratorError(
                f"Cannot read term specificity of '{name}': {e}"
            ) from e
        origin = as_str(mod.getOrigin())
        if len(origin) != 1 or not origin.isalpha():
            origin = "X"
        return cls(
            name=as_str(mod.getFullId()),
            short_name=as_str(mod.getId()),
            mass=float(mod.getDiffMonoMass()),
            residues=frozenset({origin}),
            term=_TERM_NAMES.get(term_name, TERM_ANYWHERE),
        )


@dataclass(frozen=True)
class ModificationMatch:
    """
    A modification placed on a peptide.

    Attributes:
        name: Full modification id
        variable: Whether the modification is variable
        site: 1-based residue index; terminal modifications sit on 1 or L
        terminal: "N", "C" or None for residue modifications
    """

    name: str
    variable: bool
    site: int
    terminal: Optional[str] = None

    @property
    def openms_name(self) -> str:
        # "Phospho (S)" -> "Phospho", pyOpenMS resolves the residue itself
        return self.name.split(" (")[0]


@dataclass(frozen=True)
class Peptide:
    """An immutable peptide: sequence, modification matches and protein context."""

    sequence: str
    modifications: Tuple[ModificationMatch, ...] = field(default_factory=tuple)
    protein_n_term: bool = False
    protein_c_term: bool = False

    def __len__(self) -> int:
        return len(self.sequence)

    def count_variable(self, ptm_names: Iterable[str]) -> int:
        names = set(ptm_names)
        return sum(1 for m in self.modifications if m.variable and m.name in names)

    def without_modifications(self, ptm_names: Iterable[str]) -> "Peptide":
        """Return a copy without any match of the given modifications."""
        names = set(ptm_names)
        kept = tuple(m for m in self.modifications if m.name not in names)
        return replace(self, modifications=kept)

    def with_modifications(self, matches: Iterable[ModificationMatch]) -> "Peptide":
        return replace(self, modifications=self.modifications + tuple(matches))

    def get_potential_modification_sites(
        self,
        ptm: PTM,
        matching: Optional[SequenceMatchingPreferences] = None,
    ) -> List[int]:
        """
        Return the 1-based residue indices where the modification may be located.

        Terminal modifications can only be located on the first or last residue,
        protein terminal ones only when the peptide is at the protein terminus.
        """
        matching = matching or SequenceMatchingPreferences()
        length = len(self.sequence)
        if length == 0:
            return []
        if ptm.term in (TERM_N, TERM_PROTEIN_N):
            if ptm.term == TERM_PROTEIN_N and not self.protein_n_term:
                return []
            if matching.residue_matches(self.sequence[0], ptm.residues):
                return [1]
            return []
        if ptm.term in (TERM_C, TERM_PROTEIN_C):
            if ptm.term == TERM_PROTEIN_C and not self.protein_c_term:
                return []
            if matching.residue_matches(self.sequence[-1], ptm.residues):
                return [length]
            return []
        return [
            i + 1
            for i, aa in enumerate(self.sequence)
            if matching.residue_matches(aa, ptm.residues)
        ]

    def to_string(self) -> str:
        """OpenMS bracket notation, e.g. ".(Acetyl)PEPS(Phospho)TIDE"."""
        n_term = ""
        c_term = ""
        residue_mods = {}
        for match in self.modifications:
            if match.terminal == "N":
                n_term = f".({match.openms_name})"
            elif match.terminal == "C":
                c_term = f".({match.openms_name})"
            else:
                residue_mods[match.site] = match.openms_name
        parts = [n_term]
        for i, aa in enumerate(self.sequence, start=1):
            parts.append(aa)
            if i in residue_mods:
                parts.append(f"({residue_mods[i]})")
        parts.append(c_term)
        return "".join(parts)

    def to_aasequence(self) -> AASequence:
        try:
            return AASequence.fromString(self.to_string())
        except Exception as e:
            raise CollaboratorError(
                f"Could not build peptide sequence '{self.to_string()}': {e}"
            ) from e

    def __str__(self) -> str:
        return self.to_string()

    @classmethod
    def from_aasequence(
        cls,
        sequence: AASequence,
        variable_names: Iterable[str] = (),
        protein_n_term: bool = False,
        protein_c_term: bool = False,
    ) -> "Peptide":
        """
        Build a peptide from a pyOpenMS AASequence.

        Modifications whose full or short id is in variable_names are variable,
        the others are fixed.
        """
        variable = set(variable_names)
        matches = []
        try:
            unmodified = as_str(sequence.toUnmodifiedString())
            length = sequence.size()
            if sequence.hasNTerminalModification():
                mod = sequence.getNTerminalModification()
                name = as_str(mod.getFullId())
                matches.append(
                    ModificationMatch(
                        name, _is_variable(name, variable), 1, terminal="N"
                    )
                )
            for i in range(length):
                residue = sequence.getResidue(i)
                if residue.isModified():
                    name = as_str(residue.getModification().getFullId())
                    matches.append(
                        ModificationMatch(name, _is_variable(name, variable), i + 1)
                    )
            if sequence.hasCTerminalModification():
                mod = sequence.getCTerminalModification()
                name = as_str(mod.getFullId())
                matches.append(
                    ModificationMatch(
                        name, _is_variable(name, variable), length, terminal="C"
                    )
                )
        except Exception as e:
            raise CollaboratorError(f"Could not read peptide sequence: {e}") from e
        return cls(
            sequence=unmodified,
            modifications=tuple(matches),
            protein_n_term=protein_n_term,
            protein_c_term=protein_c_term,
        )


def _is_variable(full_name: str, variable: set) -> bool:
    return full_name in variable or full_name.split(" (")[0] in variable
