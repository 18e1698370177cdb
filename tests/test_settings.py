from __future__ import annotations

import os

from settings import DEFAULT_SETTINGS_TEXT, load_settings, parse_settings_text


def test_parse_settings_text_skips_comments_and_strips_quotes() -> None:
    text = '# comment\n\ndownloadPath = "/tmp/scripts"\nother=\'x\'\nbroken line\n'

    assert parse_settings_text(text) == {"downloadPath": "/tmp/scripts", "other": "x"}


def test_load_settings_creates_default_file(tmp_path) -> None:
    path = tmp_path / "config.ini"

    settings = load_settings(str(path))

    assert path.read_text(encoding="utf-8") == DEFAULT_SETTINGS_TEXT
    assert settings["download_path"] == os.path.abspath(".")


def test_load_settings_reads_download_path(tmp_path) -> None:
    path = tmp_path / "config.ini"
    target = tmp_path / "scripts"
    path.write_text(f'downloadPath = "{target}"\n', encoding="utf-8")

    assert load_settings(str(path))["download_path"] == str(target)


def test_load_settings_empty_value_keeps_default(tmp_path) -> None:
    path = tmp_path / "config.ini"
    path.write_text('downloadPath = ""\n', encoding="utf-8")

    assert load_settings(str(path))["download_path"] == os.path.abspath(".")
