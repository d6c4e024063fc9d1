from __future__ import annotations

from pathlib import Path

from restock_monitor import cli
from restock_monitor.state import load_state


PAGES = {"https://shop.test/in": ("Add to cart",), "https://shop.test/out": ("Sold out",)}


class FakePage:
    def __init__(self) -> None:
        self.texts: tuple[str, ...] = ()

    def goto(self, url, *, timeout):
        self.texts = PAGES[url]

    def wait_for_element(self, selector, pattern, *, timeout):
        pass

    def wait_for_network_idle(self, *, timeout):
        pass

    def contains_text(self, phrase, *, timeout):
        return phrase in self.texts

    def screenshot(self, path, *, timeout):
        return path

    def close(self):
        pass


class FakeProber:
    def __enter__(self):
        return self

    def __exit__(self, *exc):
        pass

    def new_page(self):
        return FakePage()


def _args(tmp_path: Path, *extra: str) -> list[str]:
    return [
        "--targets",
        str(tmp_path / "urls.csv"),
        "--state",
        str(tmp_path / "instock.csv"),
        "--screenshots",
        str(tmp_path / "shots"),
        "--log-file",
        str(tmp_path / "logs" / "logfile.txt"),
        "--debug-file",
        str(tmp_path / "logs" / "debug.txt"),
        "--dry-run",
        *extra,
    ]


def test_single_run_fires_and_persists(monkeypatch, tmp_path):
    (tmp_path / "urls.csv").write_text(
        "https://shop.test/in,Sold out,,,Console\nhttps://shop.test/out,Sold out,,,Controller\n",
        encoding="utf-8",
    )
    (tmp_path / "instock.csv").write_text("https://shop.test/out,1\n", encoding="utf-8")
    monkeypatch.setattr(cli, "setup_logging", lambda **kwargs: None)
    monkeypatch.setattr(cli, "_prober_factory", lambda args, timeouts: FakeProber)

    assert cli.main(_args(tmp_path)) == 0

    alerts = load_state(tmp_path / "instock.csv").active_alerts()
    assert list(alerts) == ["https://shop.test/in"]


def test_missing_target_list_is_fatal(monkeypatch, tmp_path):
    monkeypatch.setattr(cli, "setup_logging", lambda **kwargs: None)
    monkeypatch.setattr(cli, "_prober_factory", lambda args, timeouts: FakeProber)

    assert cli.main(_args(tmp_path)) == 1
    assert not (tmp_path / "instock.csv").exists()


def test_missing_credentials_abort_before_probing(monkeypatch, tmp_path):
    (tmp_path / "urls.csv").write_text("https://shop.test/in,Sold out,,,Console\n", encoding="utf-8")
    monkeypatch.delenv("TELEGRAM_BOT_TOKEN", raising=False)
    monkeypatch.delenv("TELEGRAM_CHAT_ID", raising=False)
    monkeypatch.setattr(cli, "setup_logging", lambda **kwargs: None)

    def _no_probing(args, timeouts):
        raise AssertionError("probing must not start")

    monkeypatch.setattr(cli, "_prober_factory", _no_probing)

    (tmp_path / "instock.csv").write_text("https://shop.test/in,1\n", encoding="utf-8")

    args = [a for a in _args(tmp_path) if a != "--dry-run"]
    assert cli.main(args) == 1
    assert (tmp_path / "instock.csv").read_text(encoding="utf-8") == "https://shop.test/in,1\n"


def test_missing_state_file_is_fatal_without_init(monkeypatch, tmp_path):
    (tmp_path / "urls.csv").write_text("https://shop.test/in,Sold out,,,Console\n", encoding="utf-8")
    monkeypatch.setattr(cli, "setup_logging", lambda **kwargs: None)
    monkeypatch.setattr(cli, "_prober_factory", lambda args, timeouts: FakeProber)

    assert cli.main(_args(tmp_path)) == 1
    assert not (tmp_path / "instock.csv").exists()

    assert cli.main(_args(tmp_path, "--init-state")) == 0
    assert list(load_state(tmp_path / "instock.csv").active_alerts()) == ["https://shop.test/in"]
