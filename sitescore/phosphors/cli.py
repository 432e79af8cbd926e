#!/usr/bin/env python
# -*- coding: utf-8 -*-

import os
import sys
import time
import logging
import traceback
from datetime import datetime
from bisect import bisect_left
from concurrent.futures import ThreadPoolExecutor

import click
from pyopenms import (
    FileHandler,
    IdXMLFile,
    MSExperiment,
    PeptideHit,
    PeptideIdentification,
    PeptideIdentificationList,
)

from .config import PhosphoRSConfig
from .errors import CollaboratorError, InvalidInput, PhosphoRSError
from .peptide import PTM, as_str
from .phosphors import (
    PhosphoRS,
    get_possible_peptides,
    get_possible_sites,
    group_ptms_by_mass,
    peptide_from_hit,
)
from .profiles import count_profiles
from .settings import AnnotationSettings, SequenceMatchingPreferences
from .spectrum import Spectrum

logger = logging.getLogger(__name__)

MANAGED_META_VALUES = [
    "search_engine_sequence",
    "PhosphoRS_site_probs",
    "PhosphoRS_best_sequence",
    "PhosphoRS_error",
]


@click.command()
@click.option(
    "-in",
    "--in-file",
    "in_file",
    required=True,
    help="Input mzML file path",
    type=click.Path(exists=True),
)
@click.option(
    "-id",
    "--id-file",
    "id_file",
    required=True,
    help="Input idXML file path",
    type=click.Path(exists=True),
)
@click.option(
    "-out",
    "--out-file",
    "out_file",
    required=True,
    help="Output idXML file path",
    type=click.Path(),
)
@click.option(
    "--fragment-mass-tolerance",
    "fragment_mass_tolerance",
    type=float,
    default=None,
    help="Fragment mass tolerance value (default: 0.05)",
)
@click.option(
    "--fragment-mass-unit",
    "fragment_mass_unit",
    type=click.Choice(["Da", "ppm"]),
    default=None,
    help="Tolerance unit (default: Da)",
)
@click.option(
    "--target-modifications",
    "target_modifications",
    multiple=True,
    default=None,
    help="Modifications to localize (default: Phospho (S), Phospho (T), Phospho (Y))",
)
@click.option(
    "--add-decoys",
    "add_decoys",
    is_flag=True,
    default=False,
    help="Include A (PhosphoDecoy) as potential phosphorylation site",
)
@click.option(
    "--ion-types",
    "ion_types",
    type=str,
    default=None,
    help="Comma separated backbone ion types (default: b,y)",
)
@click.option(
    "--max-fragment-charge",
    "max_fragment_charge",
    type=int,
    default=None,
    help="Maximal fragment ion charge (default: 1)",
)
@click.option(
    "--no-neutral-losses",
    "no_neutral_losses",
    is_flag=True,
    default=False,
    help="Do not account for neutral losses when scoring",
)
@click.option(
    "--max-profiles",
    "max_profiles",
    type=int,
    default=None,
    help="Skip peptides with more modification profiles (default: 16384)",
)
@click.option(
    "--threads",
    "threads",
    type=int,
    default=None,
    help="Number of parallel threads (default: 1)",
)
@click.option(
    "--config",
    "config_file",
    type=click.Path(exists=True),
    default=None,
    help="JSON configuration file, command line options take precedence",
)
@click.option(
    "--debug", "debug", is_flag=True, help="Enable debug output and write debug log"
)
@click.option(
    "--log-file",
    "log_file",
    type=str,
    default=None,
    help="Log file path (only used in debug mode, default: {output_base}_debug.log)",
)
def phosphors(
    in_file,
    id_file,
    out_file,
    fragment_mass_tolerance,
    fragment_mass_unit,
    target_modifications,
    add_decoys,
    ion_types,
    max_fragment_charge,
    no_neutral_losses,
    max_profiles,
    threads,
    config_file,
    debug,
    log_file,
):
    """
    Phosphorylation site localization scoring tool using PhosphoRS algorithm.

    This tool processes MS/MS spectra and peptide identifications to localize
    phosphorylation sites using the PhosphoRS algorithm.
    """
    try:
        setup_logging(debug, log_file, out_file)

        config = PhosphoRSConfig.from_json(config_file) if config_file else PhosphoRSConfig()
        config.update(
            build_overrides(
                fragment_mass_tolerance=fragment_mass_tolerance,
                fragment_mass_unit=fragment_mass_unit,
                target_modifications=list(target_modifications) or None,
                ion_types=ion_types,
                max_fragment_charge=max_fragment_charge,
                no_neutral_losses=no_neutral_losses,
                max_profiles=max_profiles,
                threads=threads,
            )
        )
        if add_decoys and "PhosphoDecoy (A)" not in config["target_modifications"]:
            config["target_modifications"] = list(config["target_modifications"]) + [
                "PhosphoDecoy (A)"
            ]
        config.validate()

        logger.debug("PhosphoRS Debug Log")
        logger.debug(f"Start time: {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}")
        logger.debug(f"Input file: {in_file}")
        logger.debug(f"Identification file: {id_file}")
        logger.debug(f"Output file: {out_file}")
        logger.debug(f"Configuration: {config}")

        exp = load_spectra(in_file)
        protein_ids, peptide_ids = load_identifications(id_file)
        index = SpectrumIndex(exp, os.path.basename(in_file))

        scorer = PhosphoRS(config)
        ptm_groups = group_ptms_by_mass(resolve_modifications(config["target_modifications"]))

        stats = {"total": len(peptide_ids), "processed": 0, "localized": 0, "errors": 0}
        start_time = time.time()

        def run(pid):
            return process_peptide_identification(pid, index, scorer, ptm_groups, config)

        workers = max(1, int(config["threads"]))
        logger.info(
            f"Processing {len(peptide_ids)} peptide identifications with {workers} thread(s)"
        )
        if workers == 1:
            results = [run(pid) for pid in peptide_ids]
        else:
            with ThreadPoolExecutor(max_workers=workers) as executor:
                results = list(executor.map(run, peptide_ids))

        processed_peptide_ids = []
        for result in results:
            if result["status"] == "success":
                processed_peptide_ids.append(result["new_pid"])
                stats["processed"] += 1
                stats["localized"] += result["localized"]
                stats["errors"] += result["failed"]
            else:
                stats["errors"] += 1
                logger.warning(f"Error processing identification: {result['reason']}")

        elapsed = time.time() - start_time
        click.echo("\nProcessing Complete:")
        click.echo(f"  Total identifications: {stats['total']}")
        click.echo(f"  Successfully processed: {stats['processed']}")
        click.echo(f"  Localized hits: {stats['localized']}")
        click.echo(f"  Processing errors: {stats['errors']}")
        click.echo(f"  Time elapsed: {elapsed:.2f} seconds")
        logger.debug(f"Final statistics: {stats}")
        logger.debug(f"Distribution cache entries: {scorer.cache.n_entries()}")

        save_identifications(out_file, protein_ids, processed_peptide_ids)

    except KeyboardInterrupt:
        click.echo("\nOperation cancelled by user", err=True)
        sys.exit(1)
    except Exception as e:
        click.echo(f"Fatal error: {str(e)}", err=True)
        logger.debug(traceback.format_exc())
        sys.exit(1)


def build_overrides(
    fragment_mass_tolerance=None,
    fragment_mass_unit=None,
    target_modifications=None,
    ion_types=None,
    max_fragment_charge=None,
    no_neutral_losses=False,
    max_profiles=None,
    threads=None,
):
    """Configuration values given on the command line."""
    overrides = {}
    if fragment_mass_tolerance is not None:
        overrides["fragment_mass_tolerance"] = fragment_mass_tolerance
    if fragment_mass_unit is not None:
        overrides["fragment_mass_unit"] = fragment_mass_unit
    if target_modifications:
        overrides["target_modifications"] = list(target_modifications)
    if ion_types:
        overrides["ion_types"] = [t.strip() for t in ion_types.split(",") if t.strip()]
    if max_fragment_charge is not None:
        overrides["fragment_charges"] = list(range(1, max_fragment_charge + 1))
    if no_neutral_losses:
        overrides["account_neutral_losses"] = False
    if max_profiles is not None:
        overrides["max_profiles"] = max_profiles
    if threads is not None:
        overrides["threads"] = threads
    return overrides


def resolve_modifications(names):
    """Resolve modification names, skipping the ones unknown to ModificationsDB."""
    ptms = []
    for name in names:
        try:
            ptms.append(PTM.from_openms(name))
        except CollaboratorError as e:
            logger.warning(f"Skipping modification: {e}")
    if not ptms:
        raise InvalidInput(f"No valid target modifications found in {list(names)}")
    return ptms


def setup_logging(debug, log_file, output):
    """Setup logging configuration"""
    log_format = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    formatter = logging.Formatter(log_format)

    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG if debug else logging.INFO)

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    console_handler = logging.StreamHandler()
    console_handler.setLevel(logging.DEBUG if debug else logging.INFO)
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    # Only configure file handler in debug mode
    if debug:
        output_base = os.path.splitext(output)[0]
        log_file_path = log_file or f"{output_base}_debug.log"
        file_handler = logging.FileHandler(log_file_path, mode="w", encoding="utf-8")
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(formatter)
        root_logger.addHandler(file_handler)

    logging.getLogger("numpy").setLevel(logging.WARNING)
    logging.getLogger("scipy").setLevel(logging.WARNING)
    logging.getLogger("pyopenms").setLevel(logging.WARNING)


def load_spectra(mzml_file):
    """Load MS/MS spectra"""
    logger.info(f"Loading spectra from {mzml_file}")
    exp = MSExperiment()
    FileHandler().loadExperiment(mzml_file, exp)
    logger.info(f"Loaded {exp.size()} spectra")
    return exp


def load_identifications(idxml_file):
    """Load identification results"""
    logger.info(f"Loading identifications from {idxml_file}")
    protein_ids = []
    peptide_ids = PeptideIdentificationList()
    IdXMLFile().load(idxml_file, protein_ids, peptide_ids)
    peptide_ids = list(peptide_ids)
    logger.info(f"Loaded {len(peptide_ids)} peptide identifications")
    return protein_ids, peptide_ids


def save_identifications(out_file, protein_ids, peptide_ids):
    """Save results"""
    logger.info(f"Saving results to {out_file}")
    id_list = PeptideIdentificationList()
    for pid in peptide_ids:
        id_list.push_back(pid)
    IdXMLFile().store(out_file, protein_ids, id_list)
    logger.info(f"Successfully saved {len(peptide_ids)} identifications to {out_file}")


class SpectrumIndex:
    """
    MS2 spectra of an experiment, looked up by native id or precursor m/z.

    Built once, read-only afterwards, so it can be shared between threads.
    """

    def __init__(self, exp, file_name=""):
        self.by_native_id = {}
        self.by_mz = []
        for spec in exp:
            if spec.getMSLevel() != 2:
                continue
            spectrum = Spectrum.from_openms(spec, file_name)
            self.by_native_id[spectrum.title] = spectrum
            if spectrum.precursor_mz > 0:
                self.by_mz.append((spectrum.precursor_mz, spectrum))
        self.by_mz.sort(key=lambda x: x[0])
        self._mzs = [mz for mz, _ in self.by_mz]

    def find(self, pid):
        """Spectrum referenced by the identification, else the closest precursor m/z."""
        if pid.metaValueExists("spectrum_reference"):
            native_id = as_str(pid.getMetaValue("spectrum_reference"))
            if native_id in self.by_native_id:
                return self.by_native_id[native_id]
        return self.find_by_mz(pid.getMZ())

    def find_by_mz(self, target_mz):
        if not self.by_mz:
            return None
        i = bisect_left(self._mzs, target_mz)
        candidates = [j for j in (i - 1, i) if 0 <= j < len(self.by_mz)]
        best = min(candidates, key=lambda j: abs(self._mzs[j] - target_mz))
        return self.by_mz[best][1]


def localize_hit(hit, spectrum, scorer, ptm_groups, config):
    """
    Localize every modification group of a hit.

    Returns a new PeptideHit and whether every group was localized.
    """
    new_hit = PeptideHit(hit)
    for key in MANAGED_META_VALUES:
        if new_hit.metaValueExists(key):
            new_hit.removeMetaValue(key)
    original_seq_str = as_str(hit.getSequence().toString())
    new_hit.setMetaValue("search_engine_sequence", original_seq_str)

    all_names = [ptm.name for group in ptm_groups for ptm in group]
    peptide = peptide_from_hit(hit, all_names)
    settings = AnnotationSettings.from_config(config)
    matching = SequenceMatchingPreferences(match_i_l=bool(config["match_i_l"]))

    site_probs = {}
    best_peptide = peptide
    lowest = None
    errors = []
    for group in ptm_groups:
        names = [ptm.name for ptm in group]
        n_ptm = peptide.count_variable(names)
        if n_ptm == 0:
            continue
        n_sites = len(get_possible_sites(peptide, group, matching))
        if n_sites >= n_ptm and count_profiles(n_sites, n_ptm) > config["max_profiles"]:
            errors.append(f"too_many_profiles: {count_profiles(n_sites, n_ptm)}")
            logger.warning(f"Skipping {original_seq_str}: too many modification profiles")
            continue

        result = scorer.localize(peptide, group, spectrum, settings=settings, matching=matching)
        if not result.ok:
            errors.append(f"{result.kind}: {result.message}")
            continue

        best_sites = tuple(
            sorted(sorted(result.scores, key=lambda s: -result.scores[s])[:n_ptm])
        )
        best_peptide = get_possible_peptides(best_peptide, group, [best_sites])[best_sites]
        site_probs.update({site: round(score, 4) for site, score in result.scores.items()})
        group_lowest = min(result.scores[s] for s in best_sites)
        lowest = group_lowest if lowest is None else min(lowest, group_lowest)

    if site_probs:
        best_sequence = best_peptide.to_aasequence()
        new_hit.setSequence(best_sequence)
        new_hit.setMetaValue("PhosphoRS_best_sequence", as_str(best_sequence.toString()))
        new_hit.setMetaValue("PhosphoRS_site_probs", str(site_probs))
        new_hit.setScore(float(lowest))
    else:
        new_hit.setScore(-1.0)
    if errors:
        new_hit.setMetaValue("PhosphoRS_error", "; ".join(errors))
    return new_hit, bool(site_probs), bool(errors)


def process_peptide_identification(pid, index, scorer, ptm_groups, config):
    """Process a single peptide identification with error handling"""
    try:
        new_pid = PeptideIdentification(pid)
        new_pid.setScoreType("PhosphoRSScore")
        new_pid.setHigherScoreBetter(True)
        new_pid.setSignificanceThreshold(0.0)

        spectrum = index.find(pid)
        if spectrum is None:
            return {"status": "error", "reason": f"spectrum_not_found for MZ {pid.getMZ()}"}

        new_hits = []
        localized = 0
        failed = 0
        for hit in pid.getHits():
            new_hit, ok, has_errors = localize_hit(hit, spectrum, scorer, ptm_groups, config)
            localized += int(ok)
            failed += int(has_errors)
            new_hits.append(new_hit)
        new_pid.setHits(new_hits)
        return {"status": "success", "new_pid": new_pid, "localized": localized, "failed": failed}

    except PhosphoRSError as e:
        logger.error(f"Error processing identification: {e}")
        return {"status": "error", "reason": str(e)}


def main():
    """Entry point for standalone PhosphoRS CLI."""
    phosphors()


if __name__ == "__main__":
    main()
