# export.py

"""
EXPORT MODULE FOR THE ROR GAZETTEER MATCHING PIPELINE

Handles all file exports, report generation, and output organization.
Part of the LOAD stage.

Functions:
    - export_chunked_csv: Split a table into fixed-size CSV files
    - ExportManager: Every pipeline output, with an export log
"""

from pathlib import Path
from typing import List, Optional, Union

import pandas as pd

from ror_gazetteer.io_paths import IOPaths
from ror_gazetteer.pipeline.transform.overrides import write_spreadsheet

DEFAULT_ROWS_PER_FILE = 1000


def export_chunked_csv(
    df: pd.DataFrame,
    directory: Union[str, Path],
    stem: str,
    rows_per_file: int = DEFAULT_ROWS_PER_FILE
) -> List[Path]:
    """
    Write a table as numbered CSV files of at most rows_per_file rows.

    Files are named <stem>_001.csv, <stem>_002.csv, ... An empty table still
    produces one file holding the header.

    Args:
        df (pd.DataFrame): Table to export
        directory (str | Path): Target directory (created if needed)
        stem (str): File name prefix
        rows_per_file (int): Chunk size

    Returns:
        List[Path]: Written files, in order
    """
    if rows_per_file < 1:
        raise ValueError("rows_per_file must be at least 1")

    directory = Path(directory)
    directory.mkdir(parents=True, exist_ok=True)

    n_chunks = max(1, -(-len(df) // rows_per_file))
    width = max(3, len(str(n_chunks)))

    paths = []
    for i in range(n_chunks):
        chunk = df.iloc[i * rows_per_file:(i + 1) * rows_per_file]
        path = directory / f"{stem}_{i + 1:0{width}d}.csv"
        chunk.to_csv(path, index=False)
        paths.append(path)

    return paths


class ExportManager:
    """Manage all data exports for the pipeline."""

    def __init__(self, paths: IOPaths):
        """
        Initialize export manager with IO paths configuration.

        Args:
            paths (IOPaths): Configured IO paths object
        """
        self.paths = paths
        self.export_log = []

    def _log_export(self, description: str, path, record_count: Optional[int] = None):
        """
        Log an export operation.

        Args:
            description (str): Description of what was exported
            path: File path where data was saved
            record_count (int, optional): Number of records exported
        """
        log_entry = {
            "description": description,
            "path": str(path),
            "record_count": record_count
        }
        self.export_log.append(log_entry)

        if record_count is not None:
            print(f"  ✓ {description}: {path} ({record_count} records)")
        else:
            print(f"  ✓ {description}: {path}")

    def _export_csv(self, df: pd.DataFrame, path: Path, description: str):
        path.parent.mkdir(parents=True, exist_ok=True)
        df.to_csv(path, index=False)
        self._log_export(description, path, len(df))

    def export_locations(self, locations_df: pd.DataFrame):
        """Export the per-year location table."""
        self._export_csv(locations_df, self.paths.locations, "Survey locations")

    def export_match_candidates(self, candidates_df: pd.DataFrame):
        """Export the automatic match candidates."""
        self._export_csv(candidates_df, self.paths.match_candidates, "Match candidates")

    def export_review_sheet(self, review_df: pd.DataFrame):
        """
        Export the spreadsheet handed to the analyst.

        Args:
            review_df (pd.DataFrame): Output of build_review_sheet
        """
        path = self.paths.review_sheet
        path.parent.mkdir(parents=True, exist_ok=True)
        write_spreadsheet(review_df, path)
        self._log_export("Review sheet", path, len(review_df))

    def export_corrected_matches(self, corrected_df: pd.DataFrame):
        self._export_csv(corrected_df, self.paths.corrected_matches, "Corrected matches")

    def export_merged_locations(self, merged_df: pd.DataFrame):
        """
        Export final merged locations (both latest and versioned).

        Args:
            merged_df (pd.DataFrame): Locations with GADM matches
        """
        self._export_csv(merged_df, self.paths.merged_locations_latest,
                         "Merged locations (latest)")
        self._export_csv(merged_df, self.paths.merged_locations_versioned,
                         "Merged locations (versioned)")

    def export_duplicate_report(self, duplicates_df: pd.DataFrame):
        self._export_csv(duplicates_df, self.paths.duplicate_report, "Duplicate keys")

    def export_survey_counts(self, counts_df: pd.DataFrame):
        self._export_csv(counts_df, self.paths.survey_counts, "Survey counts")

    def export_variable_dictionary(
        self,
        dictionary_df: pd.DataFrame,
        rows_per_file: int = DEFAULT_ROWS_PER_FILE
    ):
        """
        Export the variable dictionary in fixed-size chunks.

        Args:
            dictionary_df (pd.DataFrame): Output of build_variable_dictionary
            rows_per_file (int): Rows per CSV file
        """
        files = export_chunked_csv(
            dictionary_df, self.paths.dictionary_dir, "variable_dictionary", rows_per_file
        )
        self._log_export(
            f"Variable dictionary ({len(files)} files)",
            self.paths.dictionary_dir,
            len(dictionary_df),
        )

    def export_qa_report(self, report_content: str, report_type: str = "pipeline"):
        """
        Export QA report to file.

        Args:
            report_content (str): Report content to save
            report_type (str): 'extraction', 'matching', 'overrides' or 'pipeline'
        """
        path = self.paths.qa_report(report_type)
        path.parent.mkdir(parents=True, exist_ok=True)

        with open(path, "w", encoding="utf-8") as f:
            f.write(report_content)

        self._log_export(f"QA Report ({report_type})", path)

    def generate_export_summary(self) -> str:
        """
        Generate summary of all exports performed.

        Returns:
            str: Formatted export summary
        """
        summary = ["\n" + "="*60]
        summary.append("EXPORT SUMMARY")
        summary.append("="*60)
        summary.append(f"Run Timestamp: {self.paths.run_timestamp}")
        summary.append(f"Total Exports: {len(self.export_log)}")
        summary.append("\n[EXPORTED FILES]")

        for i, entry in enumerate(self.export_log, 1):
            if entry["record_count"] is not None:
                summary.append(
                    f"  {i}. {entry['description']} ({entry['record_count']} records)"
                )
            else:
                summary.append(f"  {i}. {entry['description']}")
            summary.append(f"     → {entry['path']}")

        summary.append("="*60 + "\n")
        return "\n".join(summary)

    def save_export_summary(self):
        """Append the export summary to the pipeline QA report."""
        summary = self.generate_export_summary()
        path = self.paths.qa_report("pipeline")
        path.parent.mkdir(parents=True, exist_ok=True)

        with open(path, "a", encoding="utf-8") as f:
            f.write("\n\n" + summary)

        print(summary)
