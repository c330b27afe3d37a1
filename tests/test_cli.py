import json
import textwrap
from pathlib import Path

from typer.testing import CliRunner

from routescribe.cli import app

runner = CliRunner()

APP_JS = textwrap.dedent(
    """
    const express = require('express');
    const app = express();

    app.get('/orders', listOrders);
    app.delete('/orders/:id', auth, removeOrder);

    app.listen(3000);
    """
)


def make_repo(root: Path) -> Path:
    src = root / "src"
    src.mkdir(parents=True)
    (src / "app.js").write_text(APP_JS, encoding="utf-8")
    return src


def test_scan_without_ai_writes_json_spec(tmp_path: Path):
    src = make_repo(tmp_path)
    out = tmp_path / "docs"

    result = runner.invoke(app, ["scan", str(src), "--no-ai", "-o", str(out)])

    assert result.exit_code == 0, result.output
    assert "Routes found" in result.output
    doc = json.loads((out / "openapi.json").read_text(encoding="utf-8"))
    assert sorted(doc["paths"]) == ["/orders", "/orders/{id}"]
    assert doc["paths"]["/orders/{id}"]["delete"]["x-middleware"] == ["auth"]


def test_scan_yaml_with_custom_title(tmp_path: Path):
    src = make_repo(tmp_path)
    out = tmp_path / "docs"

    result = runner.invoke(
        app, ["scan", str(src), "--no-ai", "-o", str(out), "-f", "yaml", "--title", "Orders API"]
    )

    assert result.exit_code == 0, result.output
    text = (out / "openapi.yaml").read_text(encoding="utf-8")
    assert "title: Orders API" in text


def test_scan_rejects_unknown_format(tmp_path: Path):
    src = make_repo(tmp_path)
    result = runner.invoke(app, ["scan", str(src), "--no-ai", "-f", "xml"])
    assert result.exit_code != 0


def test_scan_missing_directory_fails(tmp_path: Path):
    result = runner.invoke(app, ["scan", str(tmp_path / "missing"), "--no-ai"])
    assert result.exit_code != 0


def test_scan_with_ai_but_no_key_fails(tmp_path: Path, monkeypatch):
    monkeypatch.delenv("GROQ_API_KEY", raising=False)
    src = make_repo(tmp_path)
    result = runner.invoke(app, ["scan", str(src), "--ai", "-o", str(tmp_path / "docs")])
    assert result.exit_code != 0
    assert not (tmp_path / "docs" / "openapi.json").exists()


def test_routes_table_and_filters(tmp_path: Path):
    src = make_repo(tmp_path)

    result = runner.invoke(app, ["routes", str(src)])
    assert result.exit_code == 0, result.output
    assert "Routes:" in result.output
    assert "/orders" in result.output

    result = runner.invoke(app, ["routes", str(src), "--method", "delete", "--format", "json"])
    assert result.exit_code == 0, result.output
    assert '"method": "DELETE"' in result.output
    assert '"method": "GET"' not in result.output
