# io_paths.py

"""
IO PATHS MODULE FOR THE ROR GAZETTEER MATCHING PIPELINE

Centralized configuration for all input/output paths, directory creation,
and file naming with timestamps.

Ensures consistent file organization across both pipeline phases
(automatic matching, then correction + merge).
"""

import os
from datetime import datetime, UTC
from pathlib import Path
from typing import Iterable, Optional, Union

# Survey years covered by the ROR household survey
DEFAULT_YEARS = tuple(range(1995, 2016))

SURVEY_FILENAME = "res_deb.dta"


class IOPaths:
    """Manage all file paths and directories for the pipeline."""

    def __init__(
        self,
        base_dir: Optional[Union[str, Path]] = None,
        country: str = "MDG",
        gadm_level: int = 4,
        years: Iterable[int] = DEFAULT_YEARS,
    ):
        """
        Initialize all file paths with timestamp.

        Args:
            base_dir (str | Path, optional): Project data root. Defaults to
                $ROR_DATA_DIR, then the current working directory.
            country (str): ISO3 code of the gazetteer country
            gadm_level (int): Finest GADM subdivision level to match against
            years (Iterable[int]): Survey years to look for
        """
        self.run_timestamp = datetime.now(UTC).strftime("%Y%m%d_%H%M%S")
        self.country = country
        self.gadm_level = gadm_level
        self.years = tuple(years)

        if base_dir is None:
            base_dir = os.environ.get("ROR_DATA_DIR", Path.cwd())
        self.base_dir = Path(base_dir)

        self.data_dir = self.base_dir / "data"
        self.survey_dir = self.data_dir / "surveys"
        self.gadm_dir = self.data_dir / "gadm"
        self.output_dir = self.base_dir / "outputs"
        self.review_dir = self.output_dir / "review"
        self.dictionary_dir = self.output_dir / "variable_dictionary"
        self.qa_dir = self.base_dir / "qa_reports"

    def create_directories(self):
        """Create all required output directories."""
        for directory in [self.gadm_dir, self.output_dir, self.review_dir,
                          self.dictionary_dir, self.qa_dir]:
            directory.mkdir(parents=True, exist_ok=True)

    # ==================== INPUT PATHS ====================

    def survey_file(self, year: int) -> Path:
        """Path to the raw survey file of one year."""
        return self.survey_dir / str(year) / SURVEY_FILENAME

    @property
    def gadm_file(self) -> Path:
        """Local cache of the GADM GeoJSON for the configured country/level."""
        return self.gadm_dir / f"gadm41_{self.country}_{self.gadm_level}.json"

    # ==================== MATCHING OUTPUTS ====================

    @property
    def locations(self) -> Path:
        """Per-year location records extracted from the surveys."""
        return self.output_dir / "locations.csv"

    @property
    def match_candidates(self) -> Path:
        """Automatic nearest-gazetteer matches."""
        return self.output_dir / "match_candidates.csv"

    @property
    def low_confidence_matches(self) -> Path:
        """Path for low-confidence matches requiring review."""
        return self.output_dir / "low_confidence_matches.csv"

    @property
    def review_sheet(self) -> Path:
        """Spreadsheet handed to the analyst for manual review."""
        return self.review_dir / "municipality_review.xlsx"

    @property
    def corrections(self) -> Path:
        """Edited copy of the review sheet, required by the apply phase."""
        return self.review_dir / "municipality_corrections.xlsx"

    # ==================== CORRECTED / MERGED OUTPUTS ====================

    @property
    def corrected_matches(self) -> Path:
        return self.output_dir / "corrected_matches.csv"

    @property
    def merged_locations_latest(self) -> Path:
        """Path for latest merged locations (overwrites)."""
        return self.output_dir / "locations_gadm.csv"

    @property
    def merged_locations_versioned(self) -> Path:
        """Path for versioned merged locations."""
        return self.output_dir / f"locations_gadm_{self.run_timestamp}.csv"

    @property
    def duplicate_report(self) -> Path:
        return self.output_dir / "duplicate_keys.csv"

    @property
    def survey_counts(self) -> Path:
        """Per-observatory, per-year survey counts (wide)."""
        return self.output_dir / "survey_counts.csv"

    # ==================== QA REPORT OUTPUTS ====================

    def qa_report(self, report_type: str) -> Path:
        """
        Path for a timestamped QA report.

        Args:
            report_type (str): 'extraction', 'matching', 'overrides' or 'pipeline'
        """
        return self.qa_dir / f"QA_{report_type.capitalize()}_{self.run_timestamp}.txt"

    # ==================== UTILITY METHODS ====================

    def get_all_outputs(self) -> dict:
        """Get dictionary of the main output paths for this run."""
        return {
            "Locations": self.locations,
            "Match Candidates": self.match_candidates,
            "Low Confidence Matches": self.low_confidence_matches,
            "Review Sheet": self.review_sheet,
            "Corrections (analyst)": self.corrections,
            "Corrected Matches": self.corrected_matches,
            "Merged Locations (Latest)": self.merged_locations_latest,
            "Merged Locations (Versioned)": self.merged_locations_versioned,
            "Duplicate Report": self.duplicate_report,
            "Survey Counts": self.survey_counts,
            "Variable Dictionary": self.dictionary_dir,
        }

    def print_summary(self):
        """Print a summary of all configured paths."""
        print("\n" + "="*60)
        print("IO PATHS CONFIGURATION")
        print("="*60)
        print(f"Run Timestamp: {self.run_timestamp}")
        print(f"\nBase Directory: {self.base_dir}")
        print(f"Gazetteer: GADM {self.country} level {self.gadm_level}")
        print(f"\nInput Directories:")
        print(f"  - Surveys: {self.survey_dir}")
        print(f"  - GADM: {self.gadm_dir}")
        print(f"\nOutput Directories:")
        print(f"  - Outputs: {self.output_dir}")
        print(f"  - Review: {self.review_dir}")
        print(f"  - QA Reports: {self.qa_dir}")
        print("="*60 + "\n")


if __name__ == "__main__":
    paths = IOPaths()
    paths.print_summary()

    print("Sample Output Paths:")
    for name, path in paths.get_all_outputs().items():
        print(f"  {name}: {path}")
