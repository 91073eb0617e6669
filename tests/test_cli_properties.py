"""
Tests for the command-line interface.

Drives ``main`` with argument lists against registry files in a temporary
directory; no command here touches the network.
"""

import json
from pathlib import Path

import pytest

from cname_registry.cache_store import CacheStore
from cname_registry.cli import create_parser, main


HEADER = "/*\n * Registry of subdomains.\n */"
FOOTER = "/*\n   * Add new entries above this comment.\n   */"


def build_file(lines: list[str]) -> str:
    """Wrap data lines in the registry file layout."""
    body = "\n".join(lines)
    return f"{HEADER}\n\nvar cnames_active = {{\n{body}\n  {FOOTER}\n}}\n"


CANONICAL = build_file([
    '  "alpha": "alpha.github.io",',
    '  "beta": "beta.github.io"',
])
UNSORTED = build_file([
    '  "beta": "beta.github.io/",',
    '  "alpha": "alpha.github.io"',
])


@pytest.fixture(autouse=True)
def isolated_env(monkeypatch, tmp_path: Path) -> Path:
    """Point the cache at a temporary directory and disable CI detection."""
    cache_dir = tmp_path / "cache"
    monkeypatch.setenv("CNAME_REGISTRY_CACHE_DIR", str(cache_dir))
    monkeypatch.delenv("GITHUB_ACTIONS", raising=False)
    monkeypatch.delenv("CNAME_REGISTRY_DOMAIN", raising=False)
    monkeypatch.delenv("CNAME_REGISTRY_LANG", raising=False)
    monkeypatch.delenv("CNAME_REGISTRY_PROBE_TIMEOUT", raising=False)
    monkeypatch.chdir(tmp_path)
    return cache_dir


def write_registry(tmp_path: Path, content: str) -> Path:
    path = tmp_path / "cnames_active.js"
    path.write_bytes(content.encode("utf-8"))
    return path


class TestValidateCommand:
    """The 'validate' command and its exit codes."""

    def test_canonical_file_exits_zero(self, tmp_path: Path, capsys) -> None:
        path = write_registry(tmp_path, CANONICAL)
        assert main(["validate", str(path)]) == 0
        assert "is correctly formatted and sorted" in capsys.readouterr().out

    def test_unsorted_file_exits_one(self, tmp_path: Path, capsys) -> None:
        path = write_registry(tmp_path, UNSORTED)
        assert main(["validate", str(path)]) == 1
        err = capsys.readouterr().err
        assert "does not match its canonical form" in err

    def test_fix_rewrites_file(self, tmp_path: Path) -> None:
        path = write_registry(tmp_path, UNSORTED)
        assert main(["validate", str(path), "--fix"]) == 0
        assert path.read_bytes().decode("utf-8") == CANONICAL
        assert main(["validate", str(path)]) == 0

    def test_german_output(self, tmp_path: Path, capsys) -> None:
        path = write_registry(tmp_path, CANONICAL)
        assert main(["validate", str(path), "--language", "de"]) == 0
        assert "korrekt formatiert" in capsys.readouterr().out

    def test_structural_error_exits_one(self, tmp_path: Path, capsys) -> None:
        path = write_registry(tmp_path, "var other = {\n}\n")
        assert main(["validate", str(path)]) == 1
        assert "Could not locate the var declaration" in capsys.readouterr().err


class TestRegenerateCommand:
    """The 'regenerate' command."""

    def test_prints_canonical_content(self, tmp_path: Path, capsys) -> None:
        path = write_registry(tmp_path, UNSORTED)
        assert main(["regenerate", str(path)]) == 0
        assert capsys.readouterr().out == CANONICAL

    def test_writes_output_file(self, tmp_path: Path) -> None:
        path = write_registry(tmp_path, UNSORTED)
        output = tmp_path / "out.js"
        assert main(["regenerate", str(path), "-o", str(output)]) == 0
        assert output.read_bytes().decode("utf-8") == CANONICAL
        assert path.read_bytes().decode("utf-8") == UNSORTED


class TestProbeCommand:
    """The 'probe' command without network access."""

    def test_zero_limit_writes_empty_partitions(self, tmp_path: Path, capsys) -> None:
        path = write_registry(tmp_path, CANONICAL)
        output = tmp_path / "results" / "probe.json"
        assert main(["probe", str(path), "--limit", "0", "-o", str(output), "--clear-cache"]) == 0
        assert json.loads(output.read_text(encoding="utf-8")) == {"failed": {}, "passed": {}}
        assert "Summary: 0 failed, 0 passed" in capsys.readouterr().out

    def test_missing_file_exits_one(self, tmp_path: Path) -> None:
        assert main(["probe", str(tmp_path / "absent.js")]) == 1


class TestCacheCommand:
    """The 'cache' command."""

    def test_list_empty(self, capsys) -> None:
        assert main(["cache", "list"]) == 0
        assert "No cache entries found." in capsys.readouterr().out

    def test_show_and_clear(self, isolated_env: Path, capsys) -> None:
        CacheStore(isolated_env).put("validateCNAMEs", {"results": {}})

        assert main(["cache", "list"]) == 0
        assert "validateCNAMEs" in capsys.readouterr().out

        assert main(["cache", "show"]) == 0
        assert json.loads(capsys.readouterr().out) == {"results": {}}

        assert main(["cache", "clear"]) == 0
        assert "Cache 'validateCNAMEs' cleared." in capsys.readouterr().out
        assert not CacheStore(isolated_env).exists("validateCNAMEs")

    def test_show_missing(self, capsys) -> None:
        assert main(["cache", "show", "nightly"]) == 1
        assert "No cache stored under 'nightly'." in capsys.readouterr().out

    def test_invalid_name_exits_one(self) -> None:
        assert main(["cache", "show", "../escape"]) == 1


class TestConfigCommand:
    """The 'config' command."""

    def test_init_show_validate(self, tmp_path: Path, capsys) -> None:
        path = tmp_path / "config.json"
        assert main(["config", "init", "--path", str(path), "--language", "de"]) == 0
        assert main(["config", "init", "--path", str(path)]) == 1
        assert main(["config", "init", "--path", str(path), "--force"]) == 0
        assert main(["config", "show", "--path", str(path)]) == 0
        assert main(["config", "validate", "--path", str(path)]) == 0
        assert "Registry domain: js.org" in capsys.readouterr().out

    def test_show_missing_config(self, tmp_path: Path) -> None:
        assert main(["config", "show", "--path", str(tmp_path / "absent.json")]) == 1

    def test_messages_follow_config_language(self, tmp_path: Path, capsys) -> None:
        path = tmp_path / "config.json"
        assert main(["config", "init", "--path", str(path), "--language", "de"]) == 0
        assert main(["config", "show", "--path", str(path)]) == 0
        assert main(["config", "validate", "--path", str(path)]) == 0
        out = capsys.readouterr().out
        assert "Konfiguration erstellt unter:" in out
        assert "Registry-Domain: js.org" in out
        assert "ist gültig" in out

        assert main(["config", "show", "--path", str(path), "--language", "en"]) == 0
        assert "Registry domain: js.org" in capsys.readouterr().out

    def test_missing_config_message_is_translated(self, tmp_path: Path, capsys) -> None:
        absent = str(tmp_path / "absent.json")
        assert main(["config", "show", "--path", absent, "--language", "de"]) == 1
        assert "Keine Konfiguration gefunden unter:" in capsys.readouterr().out


class TestParser:
    """Argument parsing."""

    def test_no_command_prints_help(self, capsys) -> None:
        assert main([]) == 0
        assert "usage" in capsys.readouterr().out.lower()

    def test_probe_arguments(self) -> None:
        args = create_parser().parse_args([
            "probe", "--limit", "5", "--policy", "either", "--concurrency", "3", "--timeout", "2",
        ])
        assert args.file is None
        assert args.limit == 5
        assert args.policy == "either"
        assert args.concurrency == 3
        assert args.timeout == 2.0

    @pytest.mark.parametrize("value", ["-1", "-50"])
    def test_negative_limit_rejected(self, value: str) -> None:
        with pytest.raises(SystemExit):
            create_parser().parse_args(["probe", "--limit", value])

    def test_zero_limit_accepted(self) -> None:
        assert create_parser().parse_args(["probe", "--limit", "0"]).limit == 0
