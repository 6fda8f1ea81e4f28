from pathlib import Path

import pytest

from tripcheck.records import (
    REPORT_COLUMNS,
    StoreRecordError,
    load_stores,
    parse_store_csv,
    read_report,
    read_store_csv,
    write_report,
)
from tripcheck.schemas import StoreSpec, TestResult, TestStatus


def test_parse_trims_fields_and_skips_blank_lines() -> None:
    text = (
        "store_id,store_name,xfas_url,merchant_site_url,network_id\n"
        " 1 , Acme , https://www.rakuten.com/xfas/acme , https://www.acme.com , 7 \n"
        "\n"
        "2,\"Bolt, Inc\",https://www.rakuten.com/xfas/bolt,https://bolt.io\n"
    )

    stores, invalid = parse_store_csv(text)

    assert invalid == []
    assert stores == [
        StoreSpec("1", "Acme", "https://www.rakuten.com/xfas/acme", "https://www.acme.com", "7"),
        StoreSpec("2", "Bolt, Inc", "https://www.rakuten.com/xfas/bolt", "https://bolt.io", "N/A"),
    ]


def test_parse_treats_first_non_blank_row_as_header() -> None:
    text = (
        "\n"
        "store_id,store_name,xfas_url,merchant_site_url,network_id\n"
        "1,Acme,https://www.rakuten.com/xfas/acme,https://www.acme.com,7\n"
        "2,Bolt,,https://bolt.io,3\n"
    )

    stores, invalid = parse_store_csv(text)

    assert [store.store_id for store in stores] == ["1"]
    assert [record.line_number for record in invalid] == [4]


def test_parse_reports_rows_missing_required_fields() -> None:
    text = (
        "store_id,store_name,xfas_url,merchant_site_url,network_id\n"
        "1,Acme,https://www.rakuten.com/xfas/acme,https://www.acme.com,7\n"
        "2,Bolt,,https://bolt.io,3\n"
    )

    stores, invalid = parse_store_csv(text)

    assert [store.store_id for store in stores] == ["1"]
    assert len(invalid) == 1
    assert invalid[0].line_number == 3
    assert invalid[0].reason == "missing required field(s): xfas_url"

    with pytest.raises(StoreRecordError) as excinfo:
        load_stores(text)
    assert excinfo.value.invalid_records == invalid


def test_read_store_csv_missing_file(tmp_path: Path) -> None:
    with pytest.raises(FileNotFoundError):
        read_store_csv(tmp_path / "missing.csv")


def test_report_round_trip(tmp_path: Path) -> None:
    statuses = [TestStatus.PASS, TestStatus.FAIL, TestStatus.PENDING, TestStatus.MANUAL_REVIEW, TestStatus.ERROR]
    results = []
    for index, status in enumerate(statuses):
        store = StoreSpec(str(index), f"Store, No. {index}", f"https://t.example/{index}", "https://m.example", "1")
        result = TestResult.start(store, f"https://t.example/{index}?sourceName=Web-Desktop")
        result.resolve(status, landing_url=f"https://m.example/?a=1,b={index}", details='said "hello", then left')
        results.append(result)

    path = tmp_path / "results" / "run.csv"
    write_report(path, results)
    rows = read_report(path)

    assert path.read_text(encoding="utf-8").splitlines()[0] == ",".join(REPORT_COLUMNS)
    assert len(rows) == len(results)
    assert [(row["store_id"], row["status"]) for row in rows] == [
        (result.store_id, result.status.value) for result in results
    ]
    assert rows[0]["store_name"] == "Store, No. 0"
    assert rows[1]["error_details"] == 'said "hello", then left'


def test_report_quotes_free_text_columns(tmp_path: Path) -> None:
    store = StoreSpec("9", "Plain", "https://t.example/9", "https://m.example", "1")
    result = TestResult.start(store, "https://t.example/9?x=1")
    result.resolve(TestStatus.PASS, landing_url="https://m.example/", details="Successfully redirected")

    path = tmp_path / "run.csv"
    write_report(path, [result])

    line = path.read_text(encoding="utf-8").splitlines()[1]
    assert line.startswith('9,"Plain",https://t.example/9,https://m.example,1,https://t.example/9?x=1,PASS,')
    assert '"https://m.example/","Successfully redirected",""' in line
