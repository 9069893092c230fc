"""Load the card catalog into memory once per session.

Raw rows follow the catalog export order::

    [name, version, set_code, set_name, cn, cost, ink, rarity, types, image_url]

``types`` is a comma-separated string. Files may be CSV with a header row, or
JSON holding either those raw arrays or objects keyed by the column names.
"""

from pathlib import Path
from typing import Any, Iterable, List, Optional, Sequence, Tuple, Union

import pandas as pd

from ..core.types import CatalogEntry
from ..utils.error_handler import (
    CatalogError,
    ConfigurationError,
    ErrorContext,
    validate_required_fields,
)
from ..utils.log import get_logger
from ..utils.validation import validate_file_path

logger = get_logger(__name__)

CATALOG_COLUMNS = [
    "name",
    "version",
    "set_code",
    "set_name",
    "cn",
    "cost",
    "ink",
    "rarity",
    "types",
    "image_url",
]
REQUIRED_COLUMNS = ["name", "set_code", "cn", "ink"]


def _text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    return str(value).strip()


def _cost(value: Any) -> int:
    try:
        return int(float(value))
    except (TypeError, ValueError):
        return 0


def _number_key(value: str) -> Optional[int]:
    try:
        return int(value, 10)
    except ValueError:
        return None


def _sort_key(card: CatalogEntry) -> Tuple:
    # Numeric set codes first in numeric order, then the rest alphabetically
    set_number = _number_key(card.set_code)
    cn_number = _number_key(card.cn)
    return (
        0 if set_number is not None else 1,
        set_number if set_number is not None else 0,
        card.set_code,
        cn_number if cn_number is not None else float("inf"),
        card.cn,
    )


def _entry_from_row(row: dict) -> CatalogEntry:
    name = _text(row.get("name"))
    version = _text(row.get("version"))
    cn = _text(row.get("cn")).lstrip("0") or "0"
    types = _text(row.get("types"))
    image_url = _text(row.get("image_url")) or None
    return CatalogEntry(
        name=name,
        version=version,
        display=f"{name} – {version}" if version else name,
        set_code=_text(row.get("set_code")),
        set_name=_text(row.get("set_name")),
        cn=cn,
        cost=_cost(row.get("cost")),
        ink=_text(row.get("ink")),
        rarity=_text(row.get("rarity")),
        types=tuple(part.strip() for part in types.split(",") if part.strip()),
        image_url=image_url,
    )


def parse_cards(raw_rows: Optional[Iterable[Union[Sequence[Any], dict]]]) -> List[CatalogEntry]:
    """Build sorted catalog entries from raw arrays or column dicts."""
    if raw_rows is None:
        return []

    context = ErrorContext(operation="parse catalog", module=__name__, function="parse_cards")
    cards = []
    for index, raw in enumerate(raw_rows):
        if isinstance(raw, dict):
            row = dict(raw)
        else:
            row = dict(zip(CATALOG_COLUMNS, raw))
        for key in REQUIRED_COLUMNS:
            if key in row and _text(row[key]) == "":
                row[key] = None

        try:
            validate_required_fields(row, REQUIRED_COLUMNS, context)
        except CatalogError as e:
            e.details["row"] = index
            raise
        cards.append(_entry_from_row(row))

    cards.sort(key=_sort_key)
    return cards


def _read_frame(path: Path) -> pd.DataFrame:
    suffix = path.suffix.lower()
    if suffix == ".csv":
        return pd.read_csv(path, dtype=str, keep_default_na=False)
    if suffix == ".json":
        frame = pd.read_json(path, dtype=False)
        if isinstance(frame.columns, pd.RangeIndex):
            # Raw arrays: name columns positionally
            frame.columns = CATALOG_COLUMNS[:len(frame.columns)]
        return frame
    raise CatalogError(
        f"Unsupported catalog format: {suffix or path.name}",
        details={"path": str(path), "supported": [".csv", ".json"]},
    )


def load_catalog(path: Union[str, Path]) -> List[CatalogEntry]:
    """Read a CSV or JSON catalog file."""
    try:
        catalog_path = validate_file_path(path, must_exist=True)
    except ConfigurationError as e:
        raise CatalogError(f"Catalog file not found: {path}", details={"path": str(path)}) from e

    try:
        frame = _read_frame(catalog_path)
    except CatalogError:
        raise
    except (ValueError, OSError, pd.errors.ParserError) as e:
        raise CatalogError(
            f"Could not read catalog: {catalog_path.name}",
            details={"path": str(catalog_path), "error": str(e)},
        ) from e

    frame = frame.astype(object).where(frame.notna(), None)
    cards = parse_cards(frame.to_dict(orient="records"))

    logger.info(
        "Catalog loaded",
        path=str(catalog_path),
        cards=len(cards),
        sets=len({card.set_code for card in cards}),
    )
    return cards
