"""Tests for the command line entry point."""

import pytest
from conftest import FileTextConverter

from file_crawler.cli import build_parser, main
from file_crawler.config import Settings


def bare_settings(**overrides) -> Settings:
    values = {
        "openai_api_key": None,
        "openai_url": None,
        "openai_model": None,
        "qdrant_url": None,
    }
    values.update(overrides)
    return Settings(_env_file=None, **values)


def test_parser_defaults():
    args = build_parser().parse_args([])
    assert args.directory == "data"
    assert args.since is None
    assert args.index is True
    assert args.search is None
    assert args.force is False
    assert args.reindex is False


def test_preview_turns_indexing_off():
    args = build_parser().parse_args(["-d", "docs", "--preview", "--since", "1700000000"])
    assert args.index is False
    assert args.since == 1700000000.0


@pytest.mark.parametrize(
    "argv",
    [
        ["--since", "yesterday"],
        ["--preview", "--search", "q"],
        ["--embed", "--search", "q"],
    ],
)
def test_invalid_arguments_exit_with_usage_error(argv):
    with pytest.raises(SystemExit) as excinfo:
        main(argv, settings=bare_settings())
    assert excinfo.value.code == 2


def test_search_without_openai_config_exits_nonzero(capsys):
    code = main(["--search", "quarterly revenue"], settings=bare_settings(qdrant_url="http://localhost:6333"))

    assert code == 1
    assert "OPENAI_API_KEY" in capsys.readouterr().out


def test_ingest_without_qdrant_url_exits_nonzero(tmp_path, capsys):
    code = main(["-d", str(tmp_path)], settings=bare_settings(), converter=FileTextConverter())

    assert code == 1
    assert "QDRANT_URL" in capsys.readouterr().out


def test_missing_directory_exits_nonzero(tmp_path, capsys):
    code = main(
        ["-d", str(tmp_path / "absent"), "--preview"],
        settings=bare_settings(),
        converter=FileTextConverter(),
    )

    assert code == 1
    assert "Directory not found" in capsys.readouterr().out


def test_preview_prints_converted_text_without_config(tmp_path, capsys):
    (tmp_path / "notes.md").write_text("Quarterly revenue grew twelve percent.", encoding="utf-8")
    (tmp_path / "ignored.bin").write_bytes(b"\x00\x01")
    converter = FileTextConverter()

    code = main(["-d", str(tmp_path), "--preview"], settings=bare_settings(), converter=converter)

    assert code == 0
    assert [p.endswith("notes.md") for p in converter.converted] == [True]
    assert "Quarterly revenue grew twelve percent." in capsys.readouterr().out


def test_preview_reports_conversion_failure_and_continues(tmp_path, capsys):
    (tmp_path / "a.md").write_text("First document.", encoding="utf-8")
    (tmp_path / "b.md").write_text("Second document.", encoding="utf-8")

    code = main(
        ["-d", str(tmp_path), "--preview"],
        settings=bare_settings(),
        converter=FileTextConverter(failing=["a.md"]),
    )

    out = capsys.readouterr().out
    assert code == 0
    assert "Conversion failed" in out
    assert "Second document." in out


def test_embed_flag_previews_instead_of_indexing(tmp_path, capsys):
    (tmp_path / "notes.md").write_text("Budget review moved to Friday.", encoding="utf-8")
    converter = FileTextConverter()

    code = main(["-d", str(tmp_path), "--embed"], settings=bare_settings(), converter=converter)

    assert code == 0
    assert len(converter.converted) == 1
    out = capsys.readouterr().out
    assert "Budget review moved to Friday." in out
    assert "QDRANT_URL" not in out
