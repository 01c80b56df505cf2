from __future__ import annotations

import threading
import zipfile
from concurrent.futures import ThreadPoolExecutor

import pytest

from btvault.adapters.storage import read_entries
from btvault.core.exceptions import ArchiveError, ResultDecodeError
from btvault.core.models import BacktestModel, CompletionStatus
from btvault.services.results import ResultIngest, ResultStore, decode_result
from support.factories import result_json


def _finished(name="demo", **kwargs):
    values = {
        "status": CompletionStatus.SUCCESS,
        "logs": "run started\nrun done",
        "result": result_json(),
    }
    values.update(kwargs)
    return BacktestModel(name=name, **values)


def test_persist_then_load(data_dir):
    store = ResultStore()
    model = _finished()

    relative = store.persist(model)

    assert relative == "Backtests/backtest1.zip"
    assert model.zip_file == relative
    assert model.result == ""
    assert model.logs == ""
    assert model.statistics["Score"] == 1
    assert list(model.statistics) == sorted(model.statistics)

    contents = ResultIngest().load(relative)
    assert contents is not None
    assert contents.logs == "run started\nrun done"
    assert sorted(contents.result.orders) == [1, 2, 3]
    assert len(contents.result.total_performance.closed_trades) == 1


def test_archive_entries_hold_raw_texts(data_dir):
    text = result_json()
    relative = ResultStore().write_archive("log text", text)

    entries = read_entries(data_dir / relative)

    assert entries == {"Logs.log": "log text", "Result.json": text}


def test_persist_without_result_is_a_no_op(data_dir):
    model = BacktestModel(name="demo", logs="only logs")

    assert ResultStore().persist(model) is None
    assert model.zip_file is None
    assert model.logs == "only logs"
    assert not (data_dir / "Backtests").exists()


def test_successive_archives_get_new_names(data_dir):
    store = ResultStore()

    first = store.persist(_finished("one"))
    second = store.persist(_finished("two"))

    assert (first, second) == ("Backtests/backtest1.zip", "Backtests/backtest2.zip")


def test_folder_and_template_overrides(tmp_path):
    store = ResultStore(tmp_path, folder="Runs", template="run.zip")

    assert store.write_archive("", "{}") == "Runs/run1.zip"
    assert (tmp_path / "Runs" / "run1.zip").is_file()


def test_undecodable_result_is_archived_then_raises(data_dir):
    model = _finished(result="{not json")

    with pytest.raises(ResultDecodeError):
        ResultStore().persist(model)

    assert model.zip_file == "Backtests/backtest1.zip"
    assert (data_dir / model.zip_file).is_file()


def test_concurrent_writers_get_unique_archives(data_dir):
    store = ResultStore()
    barrier = threading.Barrier(8)

    def _write(n):
        barrier.wait()
        return store.write_archive(f"log {n}", "{}")

    with ThreadPoolExecutor(max_workers=8) as pool:
        names = list(pool.map(_write, range(8)))

    assert len(set(names)) == 8
    assert len(list((data_dir / "Backtests").glob("backtest*.zip"))) == 8


def test_load_missing_inputs_return_none(data_dir):
    ingest = ResultIngest()

    assert ingest.load(None) is None
    assert ingest.load("") is None
    assert ingest.load("Backtests/missing.zip") is None
    assert ingest.load_logs("Backtests/missing.zip") is None


@pytest.mark.parametrize("result", [None, "", "null", "  null \n"])
def test_load_empty_result_document_returns_none(data_dir, result):
    relative = ResultStore().write_archive("some logs", result)
    ingest = ResultIngest()

    assert ingest.load(relative) is None
    assert ingest.load_logs(relative) == "some logs"


def test_load_absolute_path(tmp_path):
    relative = ResultStore(tmp_path).write_archive("abs", result_json())

    contents = ResultIngest(tmp_path / "elsewhere").load(tmp_path / relative)

    assert contents is not None
    assert contents.logs == "abs"


def test_load_invalid_document_raises(data_dir):
    relative = ResultStore().write_archive("", '{"Orders": {"1": {"Type": 99, "Symbol": "SPY"}}}')

    with pytest.raises(ResultDecodeError):
        ResultIngest().load(relative)


@pytest.mark.parametrize("text", ["{", "[1, 2]", '{"Charts": 5}'])
def test_decode_result_errors(text):
    with pytest.raises(ResultDecodeError):
        decode_result(text)


def test_logs_starting_with_bom_survive_round_trip(data_dir):
    relative = ResultStore().write_archive("\ufeffL", result_json())

    contents = ResultIngest().load(relative)

    assert contents.logs == "\ufeffL"
    assert ResultIngest().load_logs(relative) == "\ufeffL"


def test_result_document_with_bom_decodes(data_dir):
    relative = ResultStore().write_archive("", "\ufeff" + result_json())

    contents = ResultIngest().load(relative)

    assert sorted(contents.result.orders) == [1, 2, 3]


def test_bom_null_document_is_empty(data_dir):
    relative = ResultStore().write_archive("", "\ufeffnull")

    assert ResultIngest().load(relative) is None


def test_non_utf8_logs_raise_archive_error(data_dir):
    path = data_dir / "Backtests" / "latin1.zip"
    path.parent.mkdir(parents=True)
    with zipfile.ZipFile(path, "w") as zf:
        zf.writestr("Logs.log", b"caf\xe9")
        zf.writestr("Result.json", result_json())

    with pytest.raises(ArchiveError):
        ResultIngest().load("Backtests/latin1.zip")
