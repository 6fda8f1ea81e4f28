import csv
import io
from pathlib import Path

from tripcheck.schemas import InvalidRecord, StoreSpec, TestResult


INPUT_COLUMNS = ("store_id", "store_name", "xfas_url", "merchant_site_url", "network_id")
REQUIRED_COLUMNS = ("store_id", "store_name", "xfas_url", "merchant_site_url")
REPORT_COLUMNS = (
    "store_id",
    "store_name",
    "xfas_url",
    "merchant_site_url",
    "network_id",
    "test_url",
    "status",
    "actual_landing_url",
    "error_details",
    "screenshot_path",
    "tested_date",
)
# Free-text columns are always quoted in the report.
QUOTED_COLUMNS = frozenset({"store_name", "actual_landing_url", "error_details", "screenshot_path"})


class StoreRecordError(ValueError):
    def __init__(self, invalid_records: list[InvalidRecord]) -> None:
        self.invalid_records = invalid_records
        lines = ", ".join(str(invalid.line_number) for invalid in invalid_records)
        super().__init__(f"{len(invalid_records)} invalid store record(s) on line(s) {lines}")


def parse_store_csv(text: str) -> tuple[list[StoreSpec], list[InvalidRecord]]:
    stores: list[StoreSpec] = []
    invalid: list[InvalidRecord] = []

    reader = csv.reader(io.StringIO(text.lstrip("\ufeff")))
    header_seen = False
    for row in reader:
        line_number = reader.line_num
        values = [value.strip() for value in row]
        if not any(values):
            continue
        # The first non-blank row is the header.
        if not header_seen:
            header_seen = True
            continue

        fields = dict(zip(INPUT_COLUMNS, values))
        missing = [column for column in REQUIRED_COLUMNS if not fields.get(column)]
        if missing:
            invalid.append(InvalidRecord(line_number, row, f"missing required field(s): {', '.join(missing)}"))
            continue

        stores.append(
            StoreSpec(
                store_id=fields["store_id"],
                store_name=fields["store_name"],
                xfas_url=fields["xfas_url"],
                merchant_site_url=fields["merchant_site_url"],
                network_id=fields.get("network_id") or "N/A",
            )
        )

    return stores, invalid


def load_stores(text: str) -> list[StoreSpec]:
    stores, invalid = parse_store_csv(text)
    if invalid:
        raise StoreRecordError(invalid)
    return stores


def read_store_csv(path: Path) -> list[StoreSpec]:
    if not path.exists():
        raise FileNotFoundError(f"store list not found: {path}")
    return load_stores(path.read_text(encoding="utf-8"))


def _format_field(value: str, quoted: bool) -> str:
    if quoted or any(char in value for char in ',"\r\n'):
        return '"' + value.replace('"', '""') + '"'
    return value


def write_report(path: Path, results: list[TestResult]) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("w", encoding="utf-8", newline="") as outfile:
        outfile.write(",".join(REPORT_COLUMNS))
        outfile.write("\n")
        for result in results:
            row = result.as_dict()
            outfile.write(",".join(_format_field(row[column], column in QUOTED_COLUMNS) for column in REPORT_COLUMNS))
            outfile.write("\n")


def read_report(path: Path) -> list[dict[str, str]]:
    with path.open("r", encoding="utf-8", newline="") as infile:
        return list(csv.DictReader(infile))
