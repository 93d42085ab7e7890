"""Tests for laxpipe.cli argument handling and the status command."""

from __future__ import annotations

import json

import pytest

from laxpipe import cli
from laxpipe.manifest import ManifestStore


@pytest.fixture
def parser():
    return cli.build_parser(["mll", "nll"])


class TestOptions:
    def test_defaults(self, parser):
        args = parser.parse_args(["mll"])
        options = cli.options_from_args(args)
        assert options.skip_existing is True
        assert options.max_age_hours is None
        assert options.include_schedule is False
        assert args.year is None and args.all is False

    def test_force_and_schedule(self, parser):
        options = cli.options_from_args(parser.parse_args(["mll", "--force", "--with-schedule"]))
        assert options.skip_existing is False
        assert options.include_schedule is True

    def test_incremental_is_24_hours(self, parser):
        options = cli.options_from_args(parser.parse_args(["mll", "--incremental"]))
        assert options.max_age_hours == 24

    def test_explicit_max_age_wins(self, parser):
        args = parser.parse_args(["mll", "--incremental", "--max-age=6"])
        assert cli.options_from_args(args).max_age_hours == 6

    def test_year_and_all_are_exclusive(self, parser):
        with pytest.raises(SystemExit):
            parser.parse_args(["mll", "--year", "2019", "--all"])

    def test_unknown_source(self, parser):
        with pytest.raises(SystemExit):
            parser.parse_args(["pll"])

    def test_all_with_range(self, parser):
        args = parser.parse_args(["mll", "--all", "--start-year", "2005", "--end-year", "2010"])
        options = cli.options_from_args(args)
        assert (options.start_year, options.end_year) == (2005, 2010)


class TestMain:
    def test_status(self, tmp_path, monkeypatch, capsys):
        monkeypatch.setenv("EXTRACT_OUTPUT_DIR", str(tmp_path))
        store = ManifestStore("mll", ("teams", "players", "standings", "schedule"), tmp_path)
        manifest = store.load()
        store.mark_complete(manifest, 2019, "teams", count=8, duration_ms=3)
        store.save(manifest)

        code = cli.main(["mll", "--status", "--config", str(tmp_path / "missing.yml")])

        out = capsys.readouterr().out
        assert code == cli.EXIT_OK
        assert "teams: ✓ 8 items" in out

    def test_invalid_year_is_fatal(self, tmp_path, monkeypatch):
        monkeypatch.setenv("EXTRACT_OUTPUT_DIR", str(tmp_path))
        code = cli.main(["mll", "--year", "1990", "--config", str(tmp_path / "missing.yml")])
        assert code == cli.EXIT_FATAL

    def test_missing_source_config_is_fatal(self, tmp_path, monkeypatch):
        monkeypatch.setenv("EXTRACT_OUTPUT_DIR", str(tmp_path))
        monkeypatch.delenv("NLL_API_BASE_URL", raising=False)
        code = cli.main(["nll", "--config", str(tmp_path / "missing.yml")])
        assert code == cli.EXIT_FATAL


def test_summary_lines(capsys):
    from laxpipe.models import EntityOutcome, ExtractionManifest, RunSummary

    summary = RunSummary(
        manifest=ExtractionManifest(source="mll"),
        outcomes=[
            EntityOutcome(season="2019", entity="teams", status="extracted", count=8, duration_ms=12),
            EntityOutcome(season="2019", entity="players", status="skipped", count=100),
            EntityOutcome(season="2019", entity="standings", status="failed", duration_ms=3, error="HttpError: 500"),
        ],
        duration_ms=20,
    )
    cli._print_summary(summary)
    out = capsys.readouterr().out
    assert "✓ 2019 teams: 8 items (12ms)" in out
    assert "✗ 2019 standings: HttpError: 500" in out
    assert "1 extracted, 1 skipped, 1 failed" in out
    assert json.loads(json.dumps(summary.manifest.to_json_dict()))["version"] == 1
