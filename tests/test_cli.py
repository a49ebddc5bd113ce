import json

from click.testing import CliRunner

from contractscan.cli import cli

from conftest import CONTRACT


def test_invalid_address_json_error():
    res = CliRunner().invoke(cli, ["analyze", "0x1234", "--json", "--rpc", "http://unused.test"])
    assert res.exit_code == 1
    out = json.loads(res.output)
    assert out["success"] is False
    assert out["status"] == 400


def test_invalid_date_is_reported():
    res = CliRunner().invoke(cli, ["events", CONTRACT, "--from-date", "last tuesday", "--rpc", "http://unused.test"])
    assert res.exit_code == 1
    assert "Invalid date" in res.output


def test_bad_override_is_a_usage_error():
    res = CliRunner().invoke(cli, ["analyze", CONTRACT, "--concurrency", "0"])
    assert res.exit_code == 2
    assert "concurrency" in res.output


def test_queries_lists_and_prints(tmp_path):
    path = tmp_path / "queries.jsonl"
    rec = {"query_id": "q1", "kind": "events", "contract_address": CONTRACT, "from_date": None,
           "to_date": None, "created_at": 1_700_000_000.0, "payload": {"success": True, "data": {"total_events": 4}}}
    path.write_text(json.dumps(rec) + "\n")

    listed = CliRunner().invoke(cli, ["queries", str(path)])
    assert listed.exit_code == 0
    assert "q1" in listed.output and "events" in listed.output

    shown = CliRunner().invoke(cli, ["queries", str(path), "--id", "q1"])
    assert shown.exit_code == 0
    assert json.loads(shown.output)["data"]["total_events"] == 4

    missing = CliRunner().invoke(cli, ["queries", str(path), "--id", "nope"])
    assert missing.exit_code == 1
