# ============================================================================
# CSV Import / Export
# ============================================================================
import csv
import io
from typing import Any, Dict, Iterable, List, Sequence, Tuple

def parse_csv(text: str, required_fields: Sequence[str]) -> Tuple[List[Dict[str, str]], List[str]]:
    """
    Parse a CSV document with a header row.

    Returns ``(rows, errors)``. Values are stripped; every row missing a
    required value yields one error naming its spreadsheet row number
    (the header is row 1).
    """
    reader = csv.DictReader(io.StringIO(text.lstrip("\ufeff")))
    header = [h.strip() for h in (reader.fieldnames or [])]
    missing_columns = [f for f in required_fields if f not in header]
    if missing_columns:
        return [], [f"Missing required columns: {', '.join(missing_columns)}"]

    rows: List[Dict[str, str]] = []
    errors: List[str] = []
    for row_number, raw in enumerate(reader, start=2):
        row = {
            (key or "").strip(): (value or "").strip()
            for key, value in raw.items()
            if key is not None and not isinstance(value, list)
        }
        if not any(row.values()):
            continue
        missing = [f for f in required_fields if not row.get(f)]
        if missing:
            errors.append(f"Row {row_number}: missing {', '.join(missing)}")
            continue
        row["_row"] = str(row_number)
        rows.append(row)
    return rows, errors

def rows_to_csv(rows: Iterable[Dict[str, Any]], headers: Sequence[str]) -> str:
    output = io.StringIO()
    writer = csv.DictWriter(output, fieldnames=list(headers), extrasaction="ignore")
    writer.writeheader()
    for row in rows:
        writer.writerow({h: "" if row.get(h) is None else row.get(h) for h in headers})
    return output.getvalue()
