"""
ROR GAZETTEER MATCHING PIPELINE
Rural Observatory Network household survey, Madagascar

Two-phase batch job:
    MATCH → Extract survey locations, load GADM, match names, export review sheet
    (analyst reviews the sheet and saves the corrections file)
    APPLY → Overlay corrections, merge onto locations, check duplicate keys, export

USAGE:
    ror-pipeline --phase match                 # Phase 1
    ror-pipeline --phase match --dictionary    # Phase 1 + chunked variable dictionary
    ror-pipeline --phase apply                 # Phase 2 (needs the corrections file)
    ror-pipeline --phase match --threshold 30  # Flag matches above 30% for review

OUTPUTS:
    - outputs/review/municipality_review.xlsx (to review by hand)
    - outputs/locations_gadm.csv (latest)
    - outputs/locations_gadm_YYYYMMDD_HHMMSS.csv (versioned)
    - outputs/duplicate_keys.csv
    - qa_reports/QA_Pipeline_YYYYMMDD_HHMMSS.txt (quality report)
"""

import argparse
import sys
from datetime import datetime, UTC
from typing import Optional

import pandas as pd

from ror_gazetteer.io_paths import SURVEY_FILENAME, IOPaths
from ror_gazetteer.pipeline.extract.gadm import fetch_gadm, load_gazetteer
from ror_gazetteer.pipeline.extract.survey import (
    discover_survey_files,
    extract_locations,
    read_survey_file,
    survey_counts,
)
from ror_gazetteer.pipeline.extract.variable_dictionary import build_variable_dictionary
from ror_gazetteer.pipeline.load.export import DEFAULT_ROWS_PER_FILE, ExportManager
from ror_gazetteer.pipeline.transform.matching import (
    DEFAULT_REVIEW_THRESHOLD,
    MatchReport,
    match_municipalities,
)
from ror_gazetteer.pipeline.transform.merge import (
    attach_hierarchy,
    duplicate_report,
    merge_matches,
)
from ror_gazetteer.pipeline.transform.overrides import (
    OverrideReport,
    apply_corrections,
    build_review_sheet,
    load_corrections,
)
from ror_gazetteer.qa import QASignals

TEXT_COLUMNS = [
    "observatory_code", "observatory_name", "municipality_code", "municipality_raw",
    "municipality_norm", "village_code", "village_name", "site_code",
    "match_name", "match_gid", "match_status",
]


def read_table(path) -> pd.DataFrame:
    """Read a CSV written by a previous phase, keeping codes as text."""
    header = pd.read_csv(path, nrows=0).columns
    dtypes = {col: "string" for col in TEXT_COLUMNS if col in header}
    dtypes.update({col: "Int64" for col in ("distance", "similarity") if col in header})
    df = pd.read_csv(path, dtype=dtypes, keep_default_na=False, na_values=[""])
    if "municipality_norm" in df.columns:
        df["municipality_norm"] = df["municipality_norm"].fillna("")
    return df


class PipelineOrchestrator:
    """Orchestrate both pipeline phases with QA tracking."""

    def __init__(
        self,
        paths: IOPaths,
        review_threshold: float = DEFAULT_REVIEW_THRESHOLD,
        build_dictionary: bool = False,
        rows_per_file: int = DEFAULT_ROWS_PER_FILE
    ):
        """
        Initialize pipeline orchestrator.

        Args:
            paths (IOPaths): Input/output configuration
            review_threshold (float): Relative distance (%) flagged for review
            build_dictionary (bool): Also export the variable dictionary
            rows_per_file (int): Chunk size of the variable dictionary export
        """
        self.paths = paths
        self.review_threshold = review_threshold
        self.build_dictionary = build_dictionary
        self.rows_per_file = rows_per_file

        self.export_manager = ExportManager(self.paths)

        # QA tracking
        self.extraction_qa = QASignals("EXTRACTION QA SIGNALS")
        self.gadm_qa = QASignals("GADM QA SIGNALS")
        self.match_report: Optional[MatchReport] = None
        self.override_report: Optional[OverrideReport] = None

        self.start_time = datetime.now(UTC)

    def print_header(self, stage: str):
        """Print stage header."""
        print("\n" + "="*60)
        print(f"STAGE: {stage}")
        print("="*60)

    def load_gazetteer(self) -> pd.DataFrame:
        """EXTRACT: Fetch (or reuse) and load the GADM gazetteer."""
        gadm_path = fetch_gadm(
            self.paths.country,
            self.paths.gadm_level,
            self.paths.gadm_file,
            self.gadm_qa,
        )
        return load_gazetteer(gadm_path, self.paths.gadm_level, self.gadm_qa)

    def extract(self) -> tuple[pd.DataFrame, pd.DataFrame]:
        """
        EXTRACT: Read survey locations and the gazetteer.

        Returns:
            tuple[pd.DataFrame, pd.DataFrame]: locations, gazetteer
        """
        self.print_header("EXTRACT - Survey Locations & GADM")

        files = discover_survey_files(
            self.paths.survey_dir, self.paths.years, qa_signals=self.extraction_qa
        )
        if not files:
            print(f"\n❌ ERROR: No survey files under {self.paths.survey_dir}")
            print(f"Expected layout: <year>/{SURVEY_FILENAME}")
            sys.exit(1)

        frames = {year: read_survey_file(path) for year, path in files.items()}
        locations = extract_locations(frames, self.extraction_qa)

        if self.build_dictionary:
            dictionary = build_variable_dictionary(files)
            self.export_manager.export_variable_dictionary(dictionary, self.rows_per_file)

        gazetteer = self.load_gazetteer()

        self.export_manager.export_locations(locations)
        self.export_manager.export_survey_counts(survey_counts(locations))

        print(f"\n✓ EXTRACT complete: {len(locations)} location-years, {len(gazetteer)} GADM units")
        return locations, gazetteer

    def match(self, locations: pd.DataFrame, gazetteer: pd.DataFrame) -> pd.DataFrame:
        """
        TRANSFORM (Phase 1): Match names and export the review sheet.

        Returns:
            pd.DataFrame: Match candidates
        """
        self.print_header("TRANSFORM - Approximate Matching")

        candidates, self.match_report = match_municipalities(
            locations, gazetteer, self.review_threshold
        )

        print("\n[SAVING MATCH OUTPUTS]")
        self.export_manager.export_match_candidates(candidates)
        self.match_report.save_low_confidence(self.paths.low_confidence_matches)
        self.export_manager.export_review_sheet(
            build_review_sheet(candidates, self.review_threshold)
        )
        self.export_manager.export_qa_report(self.match_report.generate_report(), "matching")
        self.export_manager.export_qa_report(self.extraction_qa.report(), "extraction")

        print(self.match_report.generate_report())
        return candidates

    def apply(self) -> pd.DataFrame:
        """
        TRANSFORM (Phase 2): Overlay corrections and merge onto locations.

        Returns:
            pd.DataFrame: Merged locations
        """
        self.print_header("TRANSFORM - Manual Corrections & Merge")

        for required in (self.paths.locations, self.paths.match_candidates):
            if not required.is_file():
                print(f"\n❌ ERROR: File not found: {required}")
                print("Run the match phase first: ror-pipeline --phase match")
                sys.exit(1)

        if not self.paths.corrections.is_file():
            print(f"\n❌ ERROR: Corrections file not found: {self.paths.corrections}")
            print("Review the matches and save your corrections:")
            print(f"  1. Open {self.paths.review_sheet}")
            print("  2. Fill corrected_name / corrected_gid / correction_source where needed")
            print(f"  3. Save as {self.paths.corrections}")
            sys.exit(1)

        locations = read_table(self.paths.locations)
        candidates = read_table(self.paths.match_candidates)
        gazetteer = self.load_gazetteer()

        corrections = load_corrections(self.paths.corrections)
        corrected, self.override_report = apply_corrections(candidates, corrections, gazetteer)
        corrected = attach_hierarchy(corrected, gazetteer)

        merged = merge_matches(locations, corrected)
        duplicates = duplicate_report(locations, merged)

        self.export_manager.export_corrected_matches(corrected)
        self.export_manager.export_duplicate_report(duplicates)

        print(self.override_report.generate_report())

        if self.override_report.unknown_keys:
            print("⚠️ Some corrections were ignored, see the overrides QA report")

        print(f"\n✓ TRANSFORM (Corrections) complete: {len(merged)} location-years")
        return merged

    def load(self, merged: pd.DataFrame):
        """
        LOAD: Export final outputs and reports.

        Args:
            merged (pd.DataFrame): Locations with GADM matches
        """
        self.print_header("LOAD - Exporting Outputs & Reports")

        self.export_manager.export_merged_locations(merged)

        print("\n[Saving QA Reports]")
        self.export_manager.export_qa_report(self.override_report.generate_report(), "overrides")
        self.export_manager.export_qa_report(self.generate_pipeline_summary(merged), "pipeline")
        self.export_manager.save_export_summary()

        print(f"\n✓ LOAD complete: All outputs saved")

    def generate_pipeline_summary(self, merged: pd.DataFrame) -> str:
        """
        Generate pipeline summary report for the apply phase.

        Args:
            merged (pd.DataFrame): Final merged data

        Returns:
            str: Formatted pipeline summary
        """
        end_time = datetime.now(UTC)
        duration = (end_time - self.start_time).total_seconds()

        summary = ["="*60]
        summary.append("ROR GAZETTEER PIPELINE - SUMMARY REPORT")
        summary.append("="*60)
        summary.append(f"Run Timestamp: {self.paths.run_timestamp}")
        summary.append(f"Duration: {duration:.2f} seconds")
        summary.append(f"Gazetteer: GADM {self.paths.country} level {self.paths.gadm_level}")

        summary.append("\n[GADM]")
        for key, value in self.gadm_qa.signals.items():
            summary.append(f"  {key}: {value}")

        if self.override_report:
            summary.append("\n[CORRECTIONS]")
            summary.append(f"  Corrections applied: {self.override_report.corrections_applied}")
            summary.append(f"  Corrections ignored: {len(self.override_report.unknown_keys)}")

        summary.append("\n[OUTPUT]")
        summary.append(f"  Location-years: {len(merged)}")
        if "match_source" in merged.columns:
            for source, count in merged["match_source"].value_counts(dropna=False).items():
                label = source if pd.notna(source) else "no match"
                summary.append(f"  {label}: {count}")

        summary.append("\n[KEY OUTPUT FILES]")
        summary.append(f"  Main Output: {self.paths.merged_locations_latest}")
        summary.append(f"  Versioned: {self.paths.merged_locations_versioned}")
        summary.append(f"  Duplicates: {self.paths.duplicate_report}")

        summary.append("\n" + "="*60)
        summary.append("PIPELINE COMPLETE")
        summary.append("="*60)

        return "\n".join(summary)

    def run_match(self):
        """Execute phase 1."""
        locations, gazetteer = self.extract()
        self.match(locations, gazetteer)

        print("\n" + "="*60)
        print("✓ MATCH PHASE COMPLETED")
        print("="*60)
        print(f"\nReview sheet:")
        print(f"  → {self.paths.review_sheet}")
        print(f"Save your corrections as:")
        print(f"  → {self.paths.corrections}")
        print("then run: ror-pipeline --phase apply\n")

    def run_apply(self):
        """Execute phase 2."""
        merged = self.apply()
        self.load(merged)

        print("\n" + "="*60)
        print("✓ PIPELINE COMPLETED SUCCESSFULLY")
        print("="*60)
        print(f"\nMain output file:")
        print(f"  → {self.paths.merged_locations_latest}\n")

    def run(self, phase: str):
        """Execute one phase, 'match' or 'apply'."""
        print("\n" + "="*60)
        print("ROR GAZETTEER MATCHING PIPELINE")
        print("="*60)
        print(f"Run Timestamp: {self.paths.run_timestamp}")
        print(f"Phase: {phase}")
        print(f"Review Threshold: {self.review_threshold}%")

        self.paths.create_directories()

        try:
            if phase == "match":
                self.run_match()
            elif phase == "apply":
                self.run_apply()
            else:
                raise ValueError(f"Unknown phase: {phase}")

        except KeyboardInterrupt:
            print("\n\n⚠️ Pipeline interrupted by user")
            sys.exit(1)
        except Exception as e:
            print(f"\n\n❌ PIPELINE FAILED")
            print(f"Error: {str(e)}")
            print("\nFor debugging, check:")
            print(f"  1. Survey files exist under {self.paths.survey_dir}")
            print(f"  2. GADM file or internet connection: {self.paths.gadm_file}")
            print(f"  3. Corrections file columns: {self.paths.corrections}")
            raise


def parse_years(text: str) -> range:
    """Parse 'YYYY-YYYY' (inclusive) or a single year."""
    if "-" in text:
        start, end = text.split("-", 1)
        return range(int(start), int(end) + 1)
    return range(int(text), int(text) + 1)


def main(argv=None):
    """Main entry point with command-line argument parsing."""
    parser = argparse.ArgumentParser(
        description="ROR survey locations to GADM matching pipeline",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  ror-pipeline --phase match                 # Match and export the review sheet
  ror-pipeline --phase apply                 # Apply corrections and merge
  ror-pipeline --phase match --years 1995-2014 --dictionary

Output Files:
  - outputs/review/municipality_review.xlsx (requires review)
  - outputs/locations_gadm.csv (main output)
  - qa_reports/QA_Pipeline_YYYYMMDD_HHMMSS.txt (quality report)
        """
    )

    parser.add_argument("--phase", choices=["match", "apply"], required=True,
                        help="Pipeline phase to run")
    parser.add_argument("--base-dir", default=None,
                        help="Project data root (default: $ROR_DATA_DIR or current directory)")
    parser.add_argument("--country", default="MDG", help="ISO3 country code (default: MDG)")
    parser.add_argument("--level", type=int, default=4, help="GADM level (default: 4)")
    parser.add_argument("--years", type=parse_years, default=None, metavar="YYYY-YYYY",
                        help="Survey years to read (default: 1995-2015)")
    parser.add_argument("--threshold", type=float, default=DEFAULT_REVIEW_THRESHOLD,
                        metavar="PCT",
                        help=f"Relative distance flagged for review (default: {DEFAULT_REVIEW_THRESHOLD})")
    parser.add_argument("--dictionary", action="store_true",
                        help="Also export the chunked variable dictionary (match phase)")
    parser.add_argument("--rows-per-file", type=int, default=DEFAULT_ROWS_PER_FILE, metavar="N",
                        help=f"Rows per variable dictionary file (default: {DEFAULT_ROWS_PER_FILE})")

    args = parser.parse_args(argv)

    if args.threshold < 0:
        print("❌ ERROR: --threshold must be positive")
        sys.exit(1)
    if args.rows_per_file < 1:
        print("❌ ERROR: --rows-per-file must be at least 1")
        sys.exit(1)

    path_kwargs = {"base_dir": args.base_dir, "country": args.country, "gadm_level": args.level}
    if args.years is not None:
        path_kwargs["years"] = args.years

    pipeline = PipelineOrchestrator(
        IOPaths(**path_kwargs),
        review_threshold=args.threshold,
        build_dictionary=args.dictionary,
        rows_per_file=args.rows_per_file,
    )
    pipeline.run(args.phase)


if __name__ == "__main__":
    main()
