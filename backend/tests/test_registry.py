# backend/tests/test_registry.py
import threading

from backend.app.services.registry import Registry


def _insight(i, dataset_id="d", user_id="u"):
    return {
        "id": f"ins_{i}",
        "dataset_id": dataset_id,
        "user_id": user_id,
        "type": "trend",
        "category": "trend_analysis",
        "created_at": f"2024-01-01T00:00:{i % 60:02d}",
    }


def test_reads_return_copies(tmp_path):
    reg = Registry(str(tmp_path / "registry.json"))
    reg.upsert_dataset({"id": "d", "name": "Sales", "path": "sales.csv", "user_id": "u"})
    reg.add_insights([_insight(0)])

    reg.get_dataset("d")["name"] = "changed"
    reg.list_datasets("u")[0]["name"] = "changed"
    reg.list_insights("d", "u")[0]["type"] = "anomaly"
    reg.get_insight("d", "ins_0", "u")["category"] = "other"

    assert reg.get_dataset("d")["name"] == "Sales"
    insight = reg.get_insight("d", "ins_0", "u")
    assert insight["type"] == "trend"
    assert insight["category"] == "trend_analysis"


def test_reads_are_safe_while_writers_run(tmp_path):
    reg = Registry(str(tmp_path / "registry.json"))
    reg.upsert_dataset({"id": "d", "name": "Sales", "path": "sales.csv", "user_id": "u"})
    stop = threading.Event()
    errors = []

    def writer():
        for i in range(300):
            if stop.is_set():
                return
            reg.add_insights([_insight(i)])
            reg.upsert_dataset({"id": f"d{i}", "name": f"Extra {i}", "path": f"extra{i}.csv", "user_id": "u"})

    thread = threading.Thread(target=writer)
    thread.start()
    try:
        while thread.is_alive():
            try:
                reg.list_insights("d", "u")
                reg.list_datasets("u")
                reg.get_insight("d", "ins_0", "u")
            except RuntimeError as exc:
                errors.append(str(exc))
    finally:
        stop.set()
        thread.join()

    assert errors == []
    assert len(reg.list_insights("d", "u")) == 300
    assert len(reg.list_datasets("u")) == 301
