from __future__ import annotations

import json
from pathlib import Path

import pytest
from typer.testing import CliRunner

from spend_tracker.cli import app
from spend_tracker.tabular import read_csv
from tests.helpers.db import stored_categories
from tests.helpers.mail import notification_body, write_eml

runner = CliRunner()


@pytest.fixture
def inbox(tmp_path: Path) -> Path:
    d = tmp_path / "inbox"
    write_eml(d, "001.eml", message_id="<a@bank>", body=notification_body(merchant="UBER TRIP"))
    write_eml(
        d, "002.eml", message_id="<b@bank>", body=notification_body(merchant="JUMBO", amount="35.990")
    )
    write_eml(d, "003.eml", message_id="<c@bank>", body="Tu estado de cuenta está disponible.")
    return d


def _invoke(db_url: str, *args: str):
    return runner.invoke(app, ["--database-url", db_url, *args])


def test_ingest_recategorize_and_report(db_url: str, inbox: Path, tmp_path: Path):
    result = _invoke(db_url, "ingest", "--eml-dir", str(inbox))
    assert result.exit_code == 0, result.output
    assert "Appended 2 purchases" in result.output
    assert "not notifications 1" in result.output

    again = _invoke(db_url, "ingest", "--eml-dir", str(inbox))
    assert again.exit_code == 0, again.output
    assert "No new purchases" in again.output

    seeded = _invoke(db_url, "rules", "seed-defaults")
    assert "Seeded 5 default rules" in seeded.output

    swept = _invoke(db_url, "recategorize")
    assert swept.exit_code == 0, swept.output
    assert "Recategorized 2 purchases" in swept.output
    assert stored_categories(database_url=db_url) == {
        "a@bank": "Transporte",
        "b@bank": "Supermercado",
    }

    top = _invoke(db_url, "report", "top", "-n", "1")
    assert top.exit_code == 0, top.output
    assert "$35.990" in top.output

    prompt = _invoke(db_url, "report", "breakdown", "--prompt")
    assert "Gasto Total: $55.780" in prompt.output

    out = tmp_path / "export.csv"
    exported = _invoke(db_url, "export", "--csv-path", str(out))
    assert exported.exit_code == 0, exported.output
    assert [r.source_id for r in read_csv(out)] == ["a@bank", "b@bank"]


def test_limit_option_bounds_the_run(db_url: str, inbox: Path):
    result = _invoke(db_url, "ingest", "--eml-dir", str(inbox), "--limit", "1")

    assert result.exit_code == 0, result.output
    assert "Appended 1 purchases (fetched 1" in result.output


def test_rules_import_json_and_csv(db_url: str, tmp_path: Path):
    json_file = tmp_path / "rules.json"
    json_file.write_text(
        json.dumps({"rules": [{"keyword": "Lider", "category": "Supermercado"}]}),
        encoding="utf-8",
    )
    result = _invoke(db_url, "rules", "import", "--file", str(json_file))
    assert result.exit_code == 0, result.output
    assert "Imported 1 rules" in result.output

    csv_file = tmp_path / "rules.csv"
    csv_file.write_text("Keyword,Category\nCopec,Bencina\nUber,Transporte\n", encoding="utf-8")
    result = _invoke(db_url, "rules", "import", "--file", str(csv_file), "--csv")
    assert "Imported 2 rules" in result.output

    listed = _invoke(db_url, "rules", "list")
    assert "copec" in listed.output and "lider" not in listed.output


def test_invalid_rule_file_is_an_error(db_url: str, tmp_path: Path):
    bad = tmp_path / "rules.json"
    bad.write_text('{"rules": [{"keyword": "x"}]}', encoding="utf-8")

    result = _invoke(db_url, "rules", "import", "--file", str(bad))

    assert result.exit_code == 1
    assert "Error:" in result.output


def test_ingest_without_a_source_is_an_error(db_url: str):
    result = _invoke(db_url, "ingest")

    assert result.exit_code == 1
    assert "Error: no message source" in result.output


def test_missing_eml_directory_is_an_error(db_url: str, tmp_path: Path):
    result = _invoke(db_url, "ingest", "--eml-dir", str(tmp_path / "missing"))

    assert result.exit_code == 1
    assert "message directory not found" in result.output


def test_missing_database_url_is_an_error():
    result = runner.invoke(app, ["recategorize"])

    assert result.exit_code == 1
    assert "DATABASE_URL is not set" in result.output


def test_init_db_creates_schema(tmp_path: Path):
    url = f"sqlite+pysqlite:///{tmp_path / 'fresh.sqlite3'}"

    result = _invoke(url, "init-db")
    assert result.exit_code == 0, result.output

    listed = _invoke(url, "rules", "list")
    assert "No rules configured." in listed.output


def test_breakdown_prompt_without_purchases_reports_empty_store(db_url: str):
    result = _invoke(db_url, "report", "breakdown", "--prompt")

    assert result.exit_code == 0, result.output
    assert "No purchases stored." in result.output
    assert "Gasto Total" not in result.output
