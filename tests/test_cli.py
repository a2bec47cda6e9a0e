"""Tests for the command-line interface."""
import json
import socket

import pytest

from linkcrawler.cli import build_parser, config_from_args, main


def _run(site, *extra):
    return main([str(site), "--engine", "http", "--port", "0", *extra])


def test_defaults():
    args = build_parser().parse_args([])
    config = config_from_args(args)

    assert config.max_concurrent_checks == 5
    assert config.protocol_timeout_ms == 30000
    assert config.page_load_timeout_ms == 60000
    assert config.port == 3000
    assert config.ignore_statuses == frozenset()
    assert config.dry_run is False
    assert config.engine == "browser"
    assert config.document_suffixes == (".md",)
    assert config.excluded_documents == ("_sidebar.md",)
    assert config.context is None


def test_option_parsing(tmp_path):
    context_file = tmp_path / "vars.json"
    context_file.write_text('{"host": "http://x"}', encoding="utf-8")
    args = build_parser().parse_args([
        str(tmp_path),
        "--ignore-statuses", "401, 403,",
        "--max-concurrent-checks", "2",
        "--context", str(context_file),
        "--document-suffixes", ".md,.json",
        "--exclude-documents", "_sidebar.md,_navbar.md",
        "--dry-run",
    ])
    config = config_from_args(args)

    assert config.ignore_statuses == {401, 403}
    assert config.max_concurrent_checks == 2
    assert config.context == {"host": "http://x"}
    assert config.document_suffixes == (".md", ".json")
    assert config.excluded_documents == ("_sidebar.md", "_navbar.md")
    assert config.dry_run is True


@pytest.mark.parametrize("bad", [
    ["--ignore-statuses", "40x"],
    ["--max-concurrent-checks", "0"],
    ["--port", "70000"],
    ["--port", "-1"],
    ["--quiet", "--verbose"],
])
def test_invalid_options_exit_2(bad):
    with pytest.raises(SystemExit) as exc:
        build_parser().parse_args(bad)

    assert exc.value.code == 2


def test_clean_site_exits_0(clean_site, capsys):
    assert _run(clean_site) == 0

    err = capsys.readouterr().err
    assert "All checks passed" in err
    assert "Broken links:    0" in err


def test_broken_site_exits_1(broken_site, capsys):
    assert _run(broken_site) == 1

    err = capsys.readouterr().err
    assert "Broken links were detected:" in err
    assert "/missing.html" in err


def test_broken_site_dry_run_exits_0(broken_site):
    assert _run(broken_site, "--dry-run") == 0


def test_ignored_status(tmp_path, capsys):
    (tmp_path / "index.html").write_text('<a href="missing.html">m</a>', encoding="utf-8")

    assert _run(tmp_path, "--ignore-statuses", "404") == 0

    err = capsys.readouterr().err
    assert "Ignored links:\n- http://localhost:" in err


def test_default_output_lists_each_link(broken_site, capsys):
    _run(broken_site)

    err = capsys.readouterr().err
    assert "Starting link check with the following configuration:" in err
    assert "Engine:                http" in err
    assert "  ✗ BROKEN http://localhost:" in err
    assert "[round 1]" not in err


def test_verbose_output(clean_site, capsys):
    _run(clean_site, "--verbose")

    err = capsys.readouterr().err
    assert "Starting link check with the following configuration:" in err
    assert "[round 1]" in err
    assert "page2.html" in err


def test_quiet_output(broken_site, capsys):
    assert _run(broken_site, "--quiet") == 1

    err = capsys.readouterr().err
    assert "Starting link check" not in err
    assert "✗ BROKEN" not in err
    assert "Broken links were detected:" in err


def test_json_report(broken_site, tmp_path, capsys):
    out = tmp_path / "report.json"

    _run(broken_site, "--out", str(out), "--pretty")

    data = json.loads(out.read_text(encoding="utf-8"))
    assert len(data["broken"]) == 1
    assert data["broken"][0].endswith("/missing.html")
    assert data["checked"] == data["found"]


def test_missing_directory_exits_2(tmp_path, capsys):
    assert _run(tmp_path / "nope") == 2

    assert "Not a directory" in capsys.readouterr().err


def test_missing_context_file_exits_2(clean_site, tmp_path, capsys):
    assert _run(clean_site, "--context", str(tmp_path / "nope.json")) == 2

    assert "Context file not found" in capsys.readouterr().err


def test_undecodable_context_file_exits_2(clean_site, tmp_path, capsys):
    context_file = tmp_path / "vars.json"
    context_file.write_bytes(b'{"a": "\xff\xfe"}')

    assert _run(clean_site, "--context", str(context_file)) == 2

    assert "Cannot read context file" in capsys.readouterr().err


def test_port_in_use_exits_2(clean_site, capsys):
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.bind(("localhost", 0))
        sock.listen()
        port = sock.getsockname()[1]

        code = main([str(clean_site), "--engine", "http", "--port", str(port)])

    assert code == 2
    assert "already in use" in capsys.readouterr().err


def test_version(capsys):
    with pytest.raises(SystemExit) as exc:
        main(["--version"])

    assert exc.value.code == 0
    assert "1.0.0" in capsys.readouterr().out
