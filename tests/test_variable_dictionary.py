from conftest import write_survey
from ror_gazetteer.pipeline.extract.variable_dictionary import (
    build_variable_dictionary,
    read_variable_labels,
)


def test_read_variable_labels(tmp_path):
    path = write_survey(tmp_path / "res_deb.dta", [(1, 10, "Ambano", 1, "Vohitra", 1)])

    labels = read_variable_labels(path)

    assert labels["variable"].tolist() == ["j0", "j1", "j2", "j3", "j4", "j5"]
    assert labels.loc[0, "label"] == "Observatoire"


def test_build_variable_dictionary(tmp_path):
    files = {
        1995: write_survey(tmp_path / "1995" / "res_deb.dta", [(1, 10, "Ambano", 1, "Vohitra", 1)]),
        1996: write_survey(tmp_path / "1996" / "res_deb.dta", [(2, 30, "Ambanu", 4, "Ankazo", 1)]),
    }

    dictionary = build_variable_dictionary(files)

    assert list(dictionary.columns) == ["year", "file", "position", "variable", "label"]
    assert len(dictionary) == 12
    first = dictionary[dictionary["year"] == 1996].iloc[2]
    assert first["variable"] == "j2"
    assert first["position"] == 3
    assert first["label"] == "Commune"
    assert first["file"] == "res_deb.dta"


def test_build_variable_dictionary_without_files():
    assert build_variable_dictionary({}).empty
