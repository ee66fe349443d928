from datetime import datetime

import pytest
from pydantic import ValidationError

from dispatcher import main as cli
from dispatcher.config import (
    ConfigError,
    Settings,
    collect_urls,
    default_output_path,
    load_urls_from_file,
)


@pytest.mark.parametrize(
    "content, expected",
    [
        (
            "http://example.com/1\nhttp://example.com/2\nhttp://example.com/3",
            ["http://example.com/1", "http://example.com/2", "http://example.com/3"],
        ),
        (
            "\n# This is a comment\nhttp://example.com/1\n\n  http://example.com/2  \n# Another comment\n",
            ["http://example.com/1", "http://example.com/2"],
        ),
        ("", []),
    ],
    ids=["plain", "comments-and-blanks", "empty"],
)
def test_load_urls_from_file(tmp_path, content, expected):
    path = tmp_path / "urls.txt"
    path.write_text(content, encoding="utf-8")

    assert load_urls_from_file(str(path)) == expected


def test_load_urls_missing_file(tmp_path):
    with pytest.raises(ConfigError, match="not found"):
        load_urls_from_file(str(tmp_path / "non_existent_file.txt"))


def test_settings_validation():
    s = Settings(api_key=" key ", input_url="https://www.goodreads.com/book/show/1")
    assert s.api_key == "key"
    assert s.concurrency >= 1

    for bad in ({"api_key": ""}, {"api_key": "xxxxxx"}, {"api_key": "k", "concurrency": 0}, {"api_key": "k", "max_reviews": 0}):
        with pytest.raises(ValidationError):
            Settings(**bad)


def test_collect_urls_precedence(tmp_path):
    path = tmp_path / "urls.txt"
    path.write_text("https://www.goodreads.com/book/show/2\n", encoding="utf-8")

    single = Settings(api_key="k", input_url="https://www.goodreads.com/book/show/1", input_file=str(path))
    assert collect_urls(single) == ["https://www.goodreads.com/book/show/1"]

    from_file = Settings(api_key="k", input_file=str(path))
    assert collect_urls(from_file) == ["https://www.goodreads.com/book/show/2"]

    with pytest.raises(ConfigError):
        collect_urls(Settings(api_key="k"))


def test_default_output_path():
    path = default_output_path(datetime(2025, 3, 4, 5, 6, 7))
    assert path.endswith("goodreads_reviews_20250304_050607.csv")


def test_parse_args_flags():
    args = cli.parse_args(
        ["-api", "k", "-c", "3", "-m", "20", "-l", "en", "-o", "x.csv", "--verbose",
         "https://www.goodreads.com/book/show/1"]
    )
    settings = cli.build_settings(args)

    assert settings.concurrency == 3
    assert settings.max_reviews == 20
    assert settings.language == "en"
    assert settings.output_file == "x.csv"
    assert settings.input_url == "https://www.goodreads.com/book/show/1"
    assert settings.verbose is True


def test_main_requires_api_key(monkeypatch):
    called = []
    monkeypatch.setattr(cli, "harvest", lambda *a: called.append(a))

    assert cli.main(["-api", "", "https://www.goodreads.com/book/show/1"]) == 1
    assert called == []


def test_main_requires_input(monkeypatch):
    called = []
    monkeypatch.setattr(cli, "harvest", lambda *a: called.append(a))

    assert cli.main(["-api", "k"]) == 1
    assert called == []


def test_main_missing_url_file(monkeypatch, tmp_path):
    called = []
    monkeypatch.setattr(cli, "harvest", lambda *a: called.append(a))

    assert cli.main(["-api", "k", "-f", str(tmp_path / "missing.txt")]) == 1
    assert called == []


def test_main_runs_harvest(monkeypatch, tmp_path):
    seen = {}

    async def fake_harvest(settings, urls):
        seen["settings"] = settings
        seen["urls"] = urls
        return 1, 1

    monkeypatch.setattr(cli, "harvest", fake_harvest)

    code = cli.main(["-api", "k", "-o", str(tmp_path / "o.csv"), "https://www.goodreads.com/book/show/1"])

    assert code == 0
    assert seen["urls"] == ["https://www.goodreads.com/book/show/1"]
    assert seen["settings"].output_file == str(tmp_path / "o.csv")


def test_load_urls_rejects_non_utf8(tmp_path):
    path = tmp_path / "urls.txt"
    path.write_bytes("# liste de lectures \xe9t\xe9\nhttps://www.goodreads.com/book/show/1\n".encode("latin-1"))

    with pytest.raises(ConfigError, match="UTF-8"):
        load_urls_from_file(str(path))


def test_main_non_utf8_url_file_is_fatal(monkeypatch, tmp_path):
    called = []
    monkeypatch.setattr(cli, "harvest", lambda *a: called.append(a))
    path = tmp_path / "urls.txt"
    path.write_bytes("# liste de lectures \xe9t\xe9\n".encode("latin-1"))

    assert cli.main(["-api", "k", "-f", str(path)]) == 1
    assert called == []


@pytest.mark.asyncio
async def test_build_scraper_uses_settings():
    args = cli.parse_args(["-api", "k", "--timeout", "12.5", "--page-delay", "0.25",
                           "https://www.goodreads.com/book/show/1"])
    settings = cli.build_settings(args)

    scraper = cli.build_scraper(settings)

    assert settings.timeout == 12.5
    assert scraper.page_delay == 0.25
    assert scraper.client.timeout.read == 12.5
    await scraper.close()


def test_settings_rejects_non_positive_timeout():
    with pytest.raises(ValidationError):
        Settings(api_key="k", timeout=0)
