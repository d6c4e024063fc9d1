from __future__ import annotations

import pytest

from restock_monitor.errors import StateStoreError
from restock_monitor.state import AlertStateStore, load_state, parse_state_lines, save_state


def test_round_trip_keeps_active_alerts_and_counters(tmp_path):
    path = tmp_path / "instock.csv"
    store = AlertStateStore(
        {"https://a.test/p": 1700000000000000001, "https://b.test/p": 1700000000000000002},
        {"microsoft": 2},
    )

    save_state(path, store)
    loaded = load_state(path)

    assert loaded.active_alerts() == store.active_alerts()
    assert loaded.counters() == {"microsoft": 2}


def test_cleared_alerts_and_zero_counters_are_not_written(tmp_path):
    path = tmp_path / "instock.csv"
    store = AlertStateStore({"https://a.test/p": 1, "https://b.test/p": 2}, {"microsoft": 3})
    store.clear_alert("https://a.test/p")
    store.reset_counter("microsoft")

    save_state(path, store)

    assert path.read_text(encoding="utf-8") == "https://b.test/p,2\n"
    assert not (tmp_path / "instock.csv.tmp").exists()


def test_save_replaces_previous_file(tmp_path):
    path = tmp_path / "instock.csv"
    path.write_text("https://stale.test/p,5\n", encoding="utf-8")

    save_state(path, AlertStateStore({"https://new.test/p": 7}))

    assert load_state(path).active_alerts() == {"https://new.test/p": 7}


def test_missing_file_is_fatal(tmp_path):
    with pytest.raises(StateStoreError, match="--init-state"):
        load_state(tmp_path / "nope.csv")


def test_missing_file_is_empty_store_when_allowed(tmp_path):
    store = load_state(tmp_path / "nope.csv", allow_missing=True)
    assert store.active_alerts() == {}
    assert store.counters() == {}


def test_unreadable_file_is_fatal(tmp_path):
    with pytest.raises(StateStoreError):
        load_state(tmp_path)


def test_malformed_lines_are_tolerated():
    store = parse_state_lines(
        [
            "",
            "https://a.test/p,100",
            "https://b.test/p,not-a-number",
            "counter:microsoft,2",
            "https://c.test/p",
            "https://d.test/p,400",
        ]
    )
    # The single-field line ends parsing.
    assert store.active_alerts() == {"https://a.test/p": 100}
    assert store.counters() == {"microsoft": 2}


def test_counter_keys_do_not_collide_with_urls():
    store = parse_state_lines(["counter:microsoft,1", "microsoft,5"])
    assert store.counters() == {"microsoft": 1}
    assert store.active_alerts() == {"microsoft": 5}


def test_bump_counter_crosses_threshold_and_resets():
    store = AlertStateStore()
    assert store.bump_counter("src", 3) == (False, 1)
    assert store.bump_counter("src", 3) == (False, 2)
    assert store.bump_counter("src", 3) == (True, 3)
    assert store.counter("src") == 0


def test_threshold_of_one_crosses_immediately():
    store = AlertStateStore()
    assert store.bump_counter("src", 1) == (True, 1)
    assert store.counter("src") == 0
