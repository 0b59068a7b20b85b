"""
GADM GAZETTEER FETCHER AND LOADER
Fetches administrative boundaries from the GADM 4.1 distribution and
reduces them to a name lookup at the finest subdivision level.

Part of the EXTRACT stage.
"""

import io
import json
import zipfile
from pathlib import Path
from typing import Optional

import pandas as pd
import requests

from ror_gazetteer.pipeline.transform.cleaning import add_normalized_names
from ror_gazetteer.qa import QASignals

GADM_URL = "https://geodata.ucdavis.edu/gadm/gadm4.1/json/gadm41_{country}_{level}.json"

GAZETTEER_COLUMNS = [
    "gadm_name",
    "gadm_name_norm",
    "gadm_gid",
    "district_name",
    "region_name",
    "province_name",
    "geometry",
]


def fetch_gadm(
    country: str,
    level: int,
    cache_path: Path,
    qa_signals: Optional[QASignals] = None,
    url_template: str = GADM_URL,
    timeout: int = 120
) -> Path:
    """
    Make sure the GADM GeoJSON for a country/level is available locally.

    An existing cache file is reused as-is. Otherwise the file is downloaded;
    zipped payloads are unpacked. Download errors propagate.

    Args:
        country (str): ISO3 country code (e.g. "MDG")
        level (int): GADM level
        cache_path (Path): Where the GeoJSON is kept
        qa_signals (QASignals, optional): QA collector
        url_template (str): Download URL with {country} and {level}
        timeout (int): HTTP timeout in seconds

    Returns:
        Path: The local GeoJSON path
    """
    if qa_signals is None:
        qa_signals = QASignals("GADM QA SIGNALS")

    cache_path = Path(cache_path)
    qa_signals.add("data_source", "GADM 4.1")
    qa_signals.add("country", country)
    qa_signals.add("level", level)

    if cache_path.is_file():
        qa_signals.add("fetch_method", "Local cache")
        print(f"  → Using cached gazetteer {cache_path}")
        return cache_path

    url = url_template.format(country=country, level=level)
    print(f"  → Downloading {url}...")

    response = requests.get(url, timeout=timeout)
    response.raise_for_status()

    qa_signals.add("fetch_method", "Download")
    qa_signals.add("api_response_status", response.status_code)

    if response.content[:2] == b"PK":
        qa_signals.add("file_format", "ZIP")
        payload = extract_geojson_from_zip(response.content)
    else:
        qa_signals.add("file_format", "JSON")
        payload = response.content

    cache_path.parent.mkdir(parents=True, exist_ok=True)
    cache_path.write_bytes(payload)
    print(f"  ✓ Saved gazetteer to {cache_path}")

    return cache_path


def extract_geojson_from_zip(zip_content: bytes) -> bytes:
    with zipfile.ZipFile(io.BytesIO(zip_content)) as zf:
        json_files = [f for f in zf.namelist() if f.endswith((".json", ".geojson"))]
        if not json_files:
            raise ValueError("No JSON files found in ZIP")
        return zf.read(json_files[0])


def load_gazetteer(
    path: Path,
    level: int,
    qa_signals: Optional[QASignals] = None
) -> pd.DataFrame:
    """
    Read a GADM GeoJSON into the gazetteer table.

    The unit name/identifier come from NAME_<level>/GID_<level>; the parent
    district, region and province names from the three levels above (absent
    levels give missing values).

    Args:
        path (Path): GADM GeoJSON file
        level (int): Finest level present in the file
        qa_signals (QASignals, optional): QA collector

    Returns:
        pd.DataFrame: GAZETTEER_COLUMNS, one row per unit

    Raises:
        ValueError: If the file has no features or lacks the level's columns
    """
    print("\n[LOADING GADM GAZETTEER]")

    with open(path, "r", encoding="utf-8") as f:
        data = json.load(f)

    features = data.get("features", [])
    if not features:
        raise ValueError(f"No features in {path}")

    props = pd.DataFrame([feature.get("properties", {}) for feature in features])
    name_col, gid_col = f"NAME_{level}", f"GID_{level}"
    if name_col not in props.columns or gid_col not in props.columns:
        raise ValueError(f"{path} has no {name_col}/{gid_col} columns")

    def parent(offset: int) -> pd.Series:
        col = f"NAME_{level - offset}"
        if level - offset >= 1 and col in props.columns:
            return props[col].astype("string")
        return pd.Series(pd.NA, index=props.index, dtype="string")

    gazetteer = pd.DataFrame({
        "gadm_name": props[name_col].astype("string"),
        "gadm_gid": props[gid_col].astype("string"),
        "district_name": parent(1),
        "region_name": parent(2),
        "province_name": parent(3),
        "geometry": [feature.get("geometry") for feature in features],
    })

    gazetteer = add_normalized_names(gazetteer, "gadm_name", "gadm_name_norm")
    gazetteer = gazetteer[GAZETTEER_COLUMNS]

    ambiguous = gazetteer["gadm_name_norm"].duplicated(keep=False).sum()
    print(f"✓ Loaded {len(gazetteer)} level-{level} units")
    if ambiguous > 0:
        print(f"  ⚠️ {ambiguous} units share their normalized name with another unit")

    if qa_signals is not None:
        qa_signals.add("units_loaded", len(gazetteer))
        qa_signals.add("ambiguous_names", int(ambiguous))

    return gazetteer
