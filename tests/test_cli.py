import asyncio
from pathlib import Path

import pytest
from PIL import Image

import main
from conftest import make_image_bytes


def test_reconcile_arguments():
    args = main.build_parser().parse_args(
        ["reconcile", "--source", "directory", "--dir", "shows", "--dry-run", "--limit", "3"]
    )
    assert args.command == "reconcile"
    assert args.source == "directory"
    assert args.dirs == [Path("shows")]
    assert args.dry_run and not args.skip_existing and not args.fallback
    assert args.limit == 3


def test_command_is_required():
    with pytest.raises(SystemExit):
        main.build_parser().parse_args([])


def test_transcode_command_writes_asset(tmp_path, monkeypatch: pytest.MonkeyPatch):
    source = tmp_path / "in.png"
    source.write_bytes(make_image_bytes(1200, 800, fmt="PNG"))
    monkeypatch.setattr(main.settings, "output_dir", tmp_path / "out")

    exit_code = asyncio.run(
        main.main(["transcode", str(source), "--id", "5", "--name", "Bluey"])
    )

    assert exit_code == 0
    assert Image.open(tmp_path / "out" / "show-5-bluey.jpg").size == (400, 600)


def test_transcode_command_reports_missing_source(tmp_path, monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setattr(main.settings, "output_dir", tmp_path / "out")
    monkeypatch.setattr(main.settings, "public_dir", tmp_path)
    monkeypatch.setattr(main.settings, "candidate_dirs", [])

    exit_code = asyncio.run(main.main(["transcode", "/nope.jpg", "--id", "5"]))

    assert exit_code == 1
