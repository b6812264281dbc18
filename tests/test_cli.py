from __future__ import annotations

import json
import pathlib
import sys

import pytest

sys.path.insert(0, str(pathlib.Path(__file__).resolve().parents[1]))

pytest.importorskip("pandas")

import gridquery.cli as cli


@pytest.fixture()
def workspace(tmp_path, monkeypatch):
    monkeypatch.setattr(cli, "start_log", lambda **kwargs: None)
    (tmp_path / "data.csv").write_text("x,label\n1,<a>\n2,b\n3,c\n", encoding="utf-8")
    (tmp_path / "grid.yaml").write_text(
        "data:\n  path: data.csv\ncolumns:\n  label:\n    type: text\n", encoding="utf-8"
    )
    return tmp_path


def _request(term: str) -> dict:
    return {
        "draw": 4,
        "columns": [
            {"searchable": True, "orderable": True, "search": {"value": term}},
            {"searchable": True, "orderable": True, "search": {"value": ""}},
        ],
        "order": [{"column": 0, "dir": "desc"}],
        "start": 0,
        "length": 2,
    }


def test_cli_writes_json_response(workspace):
    (workspace / "req.json").write_text(json.dumps(_request("...2")), encoding="utf-8")
    out = workspace / "out.json"

    status = cli.main(
        ["--config", str(workspace / "grid.yaml"), "--request", str(workspace / "req.json"), "--output", str(out)]
    )

    assert status == 0
    payload = json.loads(out.read_text(encoding="utf-8"))
    assert payload["draw"] == 4
    assert payload["recordsFiltered"] == 2
    assert payload["data"] == [[2, "b"], [1, "&lt;a&gt;"]]
    assert payload["DT_rows_all"] == [2, 1]


def test_cli_reports_request_errors(workspace, capsys):
    (workspace / "req.json").write_text(json.dumps(_request("1...2...3")), encoding="utf-8")

    status = cli.main(["--config", str(workspace / "grid.yaml"), "--request", str(workspace / "req.json")])

    assert status == 2
    assert "error:" in capsys.readouterr().err


def test_cli_requires_data_section(tmp_path, monkeypatch, capsys):
    monkeypatch.setattr(cli, "start_log", lambda **kwargs: None)
    (tmp_path / "grid.yaml").write_text("engine:\n  escape: false\n", encoding="utf-8")
    status = cli.main(["--config", str(tmp_path / "grid.yaml"), "--request", str(tmp_path / "none.json")])
    assert status == 2
    assert "data" in capsys.readouterr().err
