from __future__ import annotations

from services.baseline import BaselineStore, build_default_baseline_store
from models.records import Baseline


def _store(root) -> BaselineStore:
    return BaselineStore(root / "sgp30_co2.txt", root / "sgp30_tvoc.txt")


def test_save_then_load_round_trip(tmp_path) -> None:
    store = _store(tmp_path / "state")

    assert store.save(Baseline(co2_reference=400, voc_reference=20)) is True

    assert (tmp_path / "state" / "sgp30_co2.txt").read_text() == "400"
    assert (tmp_path / "state" / "sgp30_tvoc.txt").read_text() == "20"
    assert store.load() == Baseline(co2_reference=400, voc_reference=20)


def test_missing_files_mean_uncalibrated(tmp_path) -> None:
    store = _store(tmp_path)
    (tmp_path / "sgp30_co2.txt").write_text("400")

    assert store.load() is None


def test_non_numeric_contents_are_rejected(tmp_path) -> None:
    store = _store(tmp_path)
    (tmp_path / "sgp30_co2.txt").write_text("four hundred")
    (tmp_path / "sgp30_tvoc.txt").write_text("20")

    assert store.load() is None


def test_out_of_range_contents_are_rejected(tmp_path) -> None:
    store = _store(tmp_path)
    (tmp_path / "sgp30_co2.txt").write_text("70000")
    (tmp_path / "sgp30_tvoc.txt").write_text("20")

    assert store.load() is None


def test_surrounding_whitespace_is_tolerated(tmp_path) -> None:
    store = _store(tmp_path)
    (tmp_path / "sgp30_co2.txt").write_text("35000\n")
    (tmp_path / "sgp30_tvoc.txt").write_text(" 35200 ")

    assert store.load() == Baseline(co2_reference=35000, voc_reference=35200)


def test_save_failure_reports_false(tmp_path) -> None:
    blocker = tmp_path / "not-a-dir"
    blocker.write_text("")
    store = _store(blocker)

    assert store.save(Baseline(co2_reference=1, voc_reference=2)) is False


def test_default_store_uses_configured_directory(tmp_path) -> None:
    build_default_baseline_store.cache_clear()
    try:
        store = build_default_baseline_store(str(tmp_path))
        assert store.co2_path == tmp_path / "sgp30_co2.txt"
        assert store.voc_path == tmp_path / "sgp30_tvoc.txt"
    finally:
        build_default_baseline_store.cache_clear()
