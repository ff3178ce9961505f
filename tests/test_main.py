import json
import logging

import httpx
import pytest
from click.testing import CliRunner

from listscanner import main
from listscanner.scanner import ListScanner

from conftest import landing_page, widget_response


@pytest.fixture(autouse=True)
def reset_logging():
    yield
    for name in ['listscanner', '__main__']:
        logging.getLogger(name).handlers.clear()


@pytest.fixture
def workdir(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    (tmp_path / "table_list.txt").write_text("kb_knowledge\nincident\n")
    return tmp_path


@pytest.fixture
def mock_target(monkeypatch):
    record = {"number": "KB0010001"}

    def handler(request):
        if request.method == "GET":
            return httpx.Response(200, text=landing_page("T1"))
        if request.url.params["t"] == "kb_knowledge":
            return widget_response([record])
        return httpx.Response(404)

    transport = httpx.MockTransport(handler)
    monkeypatch.setattr(main, "ListScanner", lambda config: ListScanner(config, transport=transport))
    return record


def test_missing_target_exits_1(workdir):
    result = CliRunner().invoke(main.app, ["scan"])

    assert result.exit_code == 1
    assert "Either --url or --file must be specified." in result.output


def test_missing_table_list_exits_1(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)

    result = CliRunner().invoke(main.app, ["scan", "--url", "https://a.example"])

    assert result.exit_code == 1
    assert "Error reading table names from file" in result.output


def test_invalid_concurrency_exits_1(workdir):
    result = CliRunner().invoke(main.app, ["scan", "--url", "https://a.example", "--concurrency", "0"])

    assert result.exit_code == 1
    assert "concurrency limit must be positive" in result.output


def test_scan_end_to_end_exits_0_with_findings(workdir, mock_target):
    result = CliRunner().invoke(main.app, ["scan", "--url", "https://a.example"])

    assert result.exit_code == 0
    assert "Scanning completed. Vulnerable URLs found." in result.output
    artifact = workdir / "result" / "a" / "kb_knowledge.json"
    assert json.loads(artifact.read_text()) == [mock_target]


def test_fail_on_findings_sets_exit_code(workdir, mock_target):
    result = CliRunner().invoke(main.app, ["scan", "--url", "https://a.example", "--fail-on-findings"])

    assert result.exit_code == main.EXIT_FINDINGS


def test_scan_writes_report(workdir, mock_target):
    hosts = workdir / "hosts.txt"
    hosts.write_text("https://a.example\nnot a url\n")

    result = CliRunner().invoke(main.app, [
        "scan", "--file", str(hosts), "--report", "out/report.json", "--output-dir", "leaks"
    ])

    assert result.exit_code == 0
    report = json.loads((workdir / "out" / "report.json").read_text())
    assert report["summary"]["vulnerable"] is True
    assert report["summary"]["jobs_dispatched"] == 2
    assert report["summary"]["leaking_tables"] == 1
    assert report["summary"]["errors"] == 1
    assert list(report["skipped_hosts"]) == ["not a url"]
    assert (workdir / "leaks" / "a" / "kb_knowledge.json").exists()


def test_no_findings_verdict(workdir, monkeypatch):
    def handler(request):
        if request.method == "GET":
            return httpx.Response(200, text=landing_page("T1"))
        return widget_response([])

    transport = httpx.MockTransport(handler)
    monkeypatch.setattr(main, "ListScanner", lambda config: ListScanner(config, transport=transport))

    result = CliRunner().invoke(main.app, ["scan", "--url", "https://a.example", "--fail-on-findings"])

    assert result.exit_code == 0
    assert "Scanning completed. No vulnerable URLs found." in result.output
    assert not (workdir / "result").exists()


def test_version():
    result = CliRunner().invoke(main.app, ["version"])

    assert result.exit_code == 0
    assert "List Scanner v" in result.output


def test_empty_table_list_exits_0(workdir, mock_target):
    (workdir / "table_list.txt").write_text("\n")

    result = CliRunner().invoke(main.app, ["scan", "--url", "https://a.example"])

    assert result.exit_code == 0
    assert "Scanning completed. No vulnerable URLs found." in result.output
    assert not (workdir / "result").exists()


def test_blank_host_file_exits_0(workdir, mock_target):
    hosts = workdir / "hosts.txt"
    hosts.write_text("\n  \n")

    result = CliRunner().invoke(main.app, ["scan", "--file", str(hosts)])

    assert result.exit_code == 0
    assert "Scanning completed. No vulnerable URLs found." in result.output
