import pandas as pd
import pytest

from ror_gazetteer.io_paths import IOPaths
from ror_gazetteer.pipeline.load.export import ExportManager, export_chunked_csv


def test_chunked_csv(tmp_path):
    df = pd.DataFrame({"variable": [f"v{i}" for i in range(5)]})

    paths = export_chunked_csv(df, tmp_path / "dictionary", "variable_dictionary", 2)

    assert [p.name for p in paths] == [
        "variable_dictionary_001.csv",
        "variable_dictionary_002.csv",
        "variable_dictionary_003.csv",
    ]
    assert [len(pd.read_csv(p)) for p in paths] == [2, 2, 1]
    assert pd.concat(map(pd.read_csv, paths))["variable"].tolist() == df["variable"].tolist()


def test_chunked_csv_empty_table(tmp_path):
    paths = export_chunked_csv(pd.DataFrame(columns=["variable"]), tmp_path, "empty")

    assert len(paths) == 1
    assert list(pd.read_csv(paths[0]).columns) == ["variable"]


def test_chunked_csv_rejects_zero_rows(tmp_path):
    with pytest.raises(ValueError):
        export_chunked_csv(pd.DataFrame(), tmp_path, "x", 0)


def test_export_manager_logs_exports(tmp_path):
    paths = IOPaths(base_dir=tmp_path)
    manager = ExportManager(paths)
    df = pd.DataFrame({"observatory_code": ["1"], "municipality_raw": ["Ambano"]})

    manager.export_match_candidates(df)
    manager.export_merged_locations(df)
    manager.export_qa_report("QA body", "pipeline")
    manager.save_export_summary()

    assert paths.match_candidates.exists()
    assert paths.merged_locations_latest.exists()
    assert paths.merged_locations_versioned.exists()
    assert len(manager.export_log) == 4

    report = paths.qa_report("pipeline").read_text(encoding="utf-8")
    assert report.startswith("QA body")
    assert "EXPORT SUMMARY" in report


def test_export_review_sheet_as_xlsx(tmp_path):
    paths = IOPaths(base_dir=tmp_path)
    manager = ExportManager(paths)

    manager.export_review_sheet(pd.DataFrame({"observatory_code": ["1"]}))

    assert paths.review_sheet.suffix == ".xlsx"
    assert pd.read_excel(paths.review_sheet, dtype=str)["observatory_code"].tolist() == ["1"]
