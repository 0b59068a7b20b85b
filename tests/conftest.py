import json

import pandas as pd
import pytest


GADM_UNITS = [
    # NAME_1 (province), NAME_2 (region), NAME_3 (district), NAME_4, GID_4
    ("Fianarantsoa", "Amoron'i Mania", "Ambositra", "Ambano", "MDG.2.1.1.1_1"),
    ("Fianarantsoa", "Haute Matsiatra", "Ambohimahasoa", "Ambohimahasoa", "MDG.2.2.1.1_1"),
    ("Antananarivo", "Analamanga", "Manjakandriana", "Feramanga-Avaratra", "MDG.1.1.3.4_1"),
    ("Antananarivo", "Analamanga", "Anjozorobe", "Ambandrika", "MDG.1.1.2.7_1"),
]


def write_geojson(path, units=GADM_UNITS, level=4):
    features = []
    for province, region, district, name, gid in units:
        properties = {"GID_0": "MDG", "COUNTRY": "Madagascar",
                      "NAME_1": province, "NAME_2": region, "NAME_3": district}
        properties[f"NAME_{level}"] = name
        properties[f"GID_{level}"] = gid
        features.append({
            "type": "Feature",
            "properties": properties,
            "geometry": {"type": "Point", "coordinates": [47.0, -19.0]},
        })

    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps({"type": "FeatureCollection", "features": features}),
                    encoding="utf-8")
    return path


def write_survey(path, rows):
    """Write a minimal res_deb-like Stata file with labelled observatories."""
    df = pd.DataFrame(rows, columns=["j0", "j1", "j2", "j3", "j4", "j5"])
    path.parent.mkdir(parents=True, exist_ok=True)
    df.to_stata(
        path,
        write_index=False,
        value_labels={"j0": {1: "Antalaha", 2: "Marovoay", 3: "Tulear"}},
        variable_labels={"j0": "Observatoire", "j2": "Commune"},
    )
    return path


@pytest.fixture
def gadm_file(tmp_path):
    return write_geojson(tmp_path / "gadm41_MDG_4.json")


@pytest.fixture
def gazetteer():
    return pd.DataFrame({
        "gadm_name": ["Ambano", "Ambohimahasoa"],
        "gadm_name_norm": ["AMBANO", "AMBOHIMAHASOA"],
        "gadm_gid": ["MDG.2.1.1.1_1", "MDG.2.2.1.1_1"],
        "district_name": ["Ambositra", "Ambohimahasoa"],
        "region_name": ["Amoron'i Mania", "Haute Matsiatra"],
        "province_name": ["Fianarantsoa", "Fianarantsoa"],
    })
