"""
Spectrum module.

This module contains the immutable Spectrum value used by the PhosphoRS
scorer, and the peak selection steps applied before scoring: pre-filtering
and depth reduction.
"""

import logging
from typing import List, Optional, Sequence, Tuple

import numpy as np
from pyopenms import MSSpectrum, Precursor

from .constants import (
    FILTER_MAX_PEAKS,
    FILTER_TOLERANCE_LIMIT,
    FILTER_WINDOW_FACTOR,
    MAX_DEPTH,
    WINDOW_SIZE,
)
from .errors import CollaboratorError, EmptySpectrum, OverFiltered

logger = logging.getLogger(__name__)


class Spectrum:
    """
    Class representing an MS/MS spectrum.

    Peaks are kept sorted by m/z in read-only NumPy arrays. Every operation
    returns a new Spectrum, peaks are never modified in place.
    """

    __slots__ = [
        "mz", "intensity", "ms_level", "precursor_mz", "precursor_charge",
        "title", "file_name",
    ]

    def __init__(
        self,
        mz_array=None,
        intensity_array=None,
        ms_level: int = 2,
        precursor_mz: float = 0.0,
        precursor_charge: int = 0,
        title: str = "",
        file_name: str = "",
    ):
        mz = np.asarray(mz_array if mz_array is not None else [], dtype=float)
        intensity = np.asarray(
            intensity_array if intensity_array is not None else [], dtype=float
        )
        if mz.shape != intensity.shape:
            raise ValueError(
                f"m/z and intensity arrays differ in length: {mz.shape} != {intensity.shape}"
            )
        order = np.argsort(mz, kind="stable")
        self.mz = mz[order]
        self.intensity = intensity[order]
        self.mz.setflags(write=False)
        self.intensity.setflags(write=False)
        self.ms_level = ms_level
        self.precursor_mz = float(precursor_mz)
        self.precursor_charge = int(precursor_charge)
        self.title = title
        self.file_name = file_name

    def __len__(self) -> int:
        return len(self.mz)

    @property
    def is_empty(self) -> bool:
        return len(self.mz) == 0

    @property
    def min_mz(self) -> float:
        return float(self.mz[0])

    @property
    def max_mz(self) -> float:
        return float(self.mz[-1])

    def get_peaks(self) -> Tuple[np.ndarray, np.ndarray]:
        return self.mz, self.intensity

    def derive(self, mz_array, intensity_array, title: str) -> "Spectrum":
        """New spectrum with the same metadata and the given peaks."""
        return Spectrum(
            mz_array,
            intensity_array,
            ms_level=self.ms_level,
            precursor_mz=self.precursor_mz,
            precursor_charge=self.precursor_charge,
            title=title,
            file_name=self.file_name,
        )

    def select(self, indexes: Sequence[int], title: str) -> "Spectrum":
        indexes = np.asarray(sorted(indexes), dtype=int)
        return self.derive(self.mz[indexes], self.intensity[indexes], title)

    def sub_spectrum(self, min_mz: float, max_mz: float) -> "Spectrum":
        """Peaks with min_mz <= m/z < max_mz."""
        start = int(np.searchsorted(self.mz, min_mz, side="left"))
        end = int(np.searchsorted(self.mz, max_mz, side="left"))
        return self.derive(
            self.mz[start:end], self.intensity[start:end], f"{self.title}_minMZ_{min_mz}"
        )

    @classmethod
    def from_openms(cls, spectrum: MSSpectrum, file_name: str = "") -> "Spectrum":
        """Create a spectrum from a pyOpenMS MSSpectrum."""
        try:
            mz, intensity = spectrum.get_peaks()
            precursor_mz = 0.0
            precursor_charge = 0
            precursors = spectrum.getPrecursors()
            if precursors:
                precursor_mz = precursors[0].getMZ()
                precursor_charge = precursors[0].getCharge()
            title = spectrum.getNativeID()
            if isinstance(title, bytes):
                title = title.decode()
            return cls(
                mz,
                intensity,
                ms_level=spectrum.getMSLevel(),
                precursor_mz=precursor_mz,
                precursor_charge=precursor_charge,
                title=title,
                file_name=file_name,
            )
        except Exception as e:
            raise CollaboratorError(f"Could not read spectrum: {e}") from e

    def to_openms(self) -> MSSpectrum:
        spectrum = MSSpectrum()
        spectrum.setMSLevel(self.ms_level)
        spectrum.setNativeID(self.title)
        if self.precursor_mz > 0:
            precursor = Precursor()
            precursor.setMZ(self.precursor_mz)
            precursor.setCharge(self.precursor_charge)
            spectrum.setPrecursors([precursor])
        spectrum.set_peaks(
            (np.array(self.mz, dtype=np.float64), np.array(self.intensity, dtype=np.float64))
        )
        return spectrum

    def __repr__(self) -> str:
        return f"Spectrum(title={self.title!r}, peaks={len(self)})"


def _intensity_order(spectrum: Spectrum, indexes: Optional[Sequence[int]] = None) -> List[int]:
    """Peak indexes by decreasing intensity, ties by increasing m/z."""
    if indexes is None:
        indexes = range(len(spectrum))
    return sorted(indexes, key=lambda i: (-spectrum.intensity[i], spectrum.mz[i]))


def get_reduced_spectra(spectrum: Spectrum, max_depth: int = MAX_DEPTH) -> List[Spectrum]:
    """
    Return spectra containing only the most intense peaks.

    The spectrum at index i holds the i + 1 most intense peaks (depth i + 1),
    up to min(number of peaks, max_depth).
    """
    if spectrum.is_empty:
        raise EmptySpectrum("Attempting to extract peaks from an empty spectrum.")
    order = _intensity_order(spectrum)
    reduced = []
    for depth in range(1, min(len(order), max_depth) + 1):
        reduced.append(spectrum.select(order[:depth], f"{spectrum.title}_{depth}"))
    return reduced


def filter_spectrum(spectrum: Spectrum, settings, window_size: float = WINDOW_SIZE) -> Spectrum:
    """
    Filter the spectrum so that p stays below 1.

    Retains the most intense peaks in windows of 10 times the fragment
    tolerance (10 peaks per window), or of window_size when the tolerance
    exceeds 10 Da (window_size / tolerance peaks per window). The input
    spectrum is returned unchanged when no peak is removed.
    """
    if spectrum.is_empty:
        return spectrum

    ms2_tolerance = settings.tolerance_in_da(spectrum.max_mz)
    if ms2_tolerance <= FILTER_TOLERANCE_LIMIT:
        window = FILTER_WINDOW_FACTOR * ms2_tolerance
        max_peaks = FILTER_MAX_PEAKS
    else:
        window = window_size
        max_peaks = int(window / ms2_tolerance)

    if max_peaks < 1:
        raise OverFiltered("All peaks removed by filtering.")

    kept = []
    current = []
    ref_mz = None

    def flush():
        if len(current) <= max_peaks:
            kept.extend(current)
        else:
            kept.extend(_intensity_order(spectrum, current)[:max_peaks])
        current.clear()

    for i, mz in enumerate(spectrum.mz):
        if ref_mz is None:
            ref_mz = mz
        elif mz > ref_mz + window:
            flush()
            ref_mz += window
        current.append(i)
    flush()

    if len(kept) == len(spectrum):
        return spectrum
    logger.debug(
        f"Filtered {spectrum.title}: {len(spectrum)} -> {len(kept)} peaks "
        f"(window {window:.4f}, max {max_peaks} peaks)"
    )
    return spectrum.select(kept, f"{spectrum.title}_filtered")
