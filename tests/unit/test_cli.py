"""Tests for the command line interface."""

import json
from pathlib import Path

import fitz
import pytest

import visionmd.cli as cli
from conftest import FakeOCR, FakeStorage, make_response, make_result_file
from visionmd.config import AppConfig, JobOptions, load_config
from visionmd.orchestrator import JobOrchestrator


@pytest.fixture
def config_path(tmp_path):
    return tmp_path / "settings" / "config.json"


@pytest.fixture
def fake_orchestrator(monkeypatch):
    """Make run_job use in-memory clients."""
    storage = FakeStorage()
    shards = {"output-1-to-1.json": make_result_file(make_response("cli text"))}

    def _factory(events, show_progress):
        return JobOrchestrator(
            storage_factory=lambda k: storage,
            ocr_factory=lambda k: FakeOCR(storage, shards),
            events=events,
            show_progress=show_progress,
            sleep=lambda s: None,
        )

    monkeypatch.setattr(cli, "JobOrchestrator", _factory)
    return storage


class TestArgumentParsing:
    def test_run_subcommand(self):
        args = cli._parse_args(["run", "book.pdf", "-b", "bkt", "--split-spread", "--left-to-right"])
        assert args.command == "run"
        assert args.file == Path("book.pdf")
        assert args.bucket == "bkt"
        assert args.split_spread and args.left_to_right

    def test_legacy_mode(self):
        args = cli._parse_args(["book.pdf", "--remove-ruby"])
        assert args.command == "run"
        assert args.remove_ruby


class TestBuildJob:
    def test_flags_override_config(self, tmp_path):
        cfg = AppConfig(bucket_name="from-config", output_dir=tmp_path, polling_interval_ms=4000)
        args = cli._parse_args(["run", "book.pdf", "-b", "from-flag", "--timeout-ms", "5000"])
        job = cli._build_job(args, cfg)
        assert job.bucket == "from-flag"
        assert job.timeout_ms == 5000
        assert job.polling_interval_ms == 4000
        assert job.output_dir == tmp_path
        assert job.options.right_to_left is True

    def test_persisted_switches_apply(self, tmp_path):
        cfg = AppConfig(bucket_name="b", output_dir=tmp_path, normalize_line_breaks=True)
        job = cli._build_job(cli._parse_args(["run", "book.pdf", "--left-to-right"]), cfg)
        assert job.options.normalize_line_breaks is True
        assert job.options.remove_ruby is False
        assert job.options.right_to_left is False


class TestRunJob:
    def test_success(self, fake_orchestrator, make_pdf, make_job, tmp_path):
        job = make_job(make_pdf([(300, 400)]))
        assert cli.run_job(job, show_progress=False) == 0
        assert "cli text" in (tmp_path / "out" / "doc.md").read_text(encoding="utf-8")

    def test_failure_exit_code(self, fake_orchestrator, make_job, tmp_path):
        assert cli.run_job(make_job(tmp_path / "missing.pdf"), show_progress=False) == 1

    def test_corrupt_pdf_exit_code(self, fake_orchestrator, make_job, tmp_path):
        bad = tmp_path / "bad.pdf"
        bad.write_bytes(b"%PDF-1.4 garbage")
        job = make_job(bad, options=JobOptions(split_spread=True))
        assert cli.run_job(job, show_progress=False) == 1


class TestConfigCommand:
    def test_show_creates_defaults(self, config_path, capsys):
        assert cli.main(["config", "--config", str(config_path), "show"]) == 0
        shown = json.loads(capsys.readouterr().out)
        assert shown["bucket_name"] == ""
        assert config_path.exists()

    def test_set_values(self, config_path):
        assert cli.main(["config", "--config", str(config_path), "set", "bucket_name", "my-bucket"]) == 0
        assert cli.main(["config", "--config", str(config_path), "set", "remove_ruby", "yes"]) == 0
        assert cli.main(["config", "--config", str(config_path), "set", "timeout_ms", "120000"]) == 0
        cfg = load_config(config_path)
        assert cfg.bucket_name == "my-bucket"
        assert cfg.remove_ruby is True
        assert cfg.timeout_ms == 120000

    @pytest.mark.parametrize("key,value", [
        ("no_such_key", "1"),
        ("timeout_ms", "soon"),
        ("timeout_ms", "-1"),
        ("remove_ruby", "maybe"),
    ])
    def test_rejects_bad_values(self, config_path, capsys, key, value):
        assert cli.main(["config", "--config", str(config_path), "set", key, value]) == 1
        assert "Configuration error" in capsys.readouterr().err


class TestSplitCommand:
    def test_split(self, make_pdf, tmp_path, capsys):
        src = make_pdf([(300, 400), (600, 400)])
        out = tmp_path / "result" / "split.pdf"
        out.parent.mkdir()
        assert cli.main(["split", str(src), "-o", str(out)]) == 0
        with fitz.open(out) as doc:
            assert len(doc) == 3
        assert "3 pages, 1 spreads split" in capsys.readouterr().out
        assert [p.name for p in out.parent.iterdir()] == ["split.pdf"]

    def test_default_output_name(self, make_pdf):
        src = make_pdf([(600, 400)], name="book.pdf")
        assert cli.main(["split", str(src)]) == 0
        assert (src.parent / "book-split.pdf").exists()

    def test_corrupt_input(self, tmp_path, capsys):
        bad = tmp_path / "bad.pdf"
        bad.write_bytes(b"%PDF-1.4 garbage")
        assert cli.main(["split", str(bad)]) == 1
        assert "Split failed" in capsys.readouterr().err
        assert not (tmp_path / "bad-split.pdf").exists()

    def test_missing_input(self, tmp_path, capsys):
        assert cli.main(["split", str(tmp_path / "nope.pdf")]) == 1
        assert "not found" in capsys.readouterr().err
