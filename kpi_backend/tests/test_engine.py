"""
Query execution against the record store.
Covers insert/upsert/update/delete/select semantics, loose filter matching
and the error channel.
"""
import pytest

from conftest import run
from kpi_backend.domain.engine import QueryEngine, apply_ordering, loose_equals
from kpi_backend.domain.query import Ordering, QueryBuilder, QueryRequest
from kpi_backend.repository.record_store import MemoryRecordStore, StoreError


def _entries(bare, *rows):
    return run(bare.table("kpi_entries").insert(list(rows)))


def _three_days(bare):
    _entries(
        bare,
        {"user_id": "u2", "date": "2024-01-02", "errors": 0},
        {"user_id": "u2", "date": "2024-01-01", "errors": 1},
        {"user_id": "u3", "date": "2024-01-03", "errors": 0},
    )


class TestInsert:
    def test_assigns_unique_ids(self, bare):
        res = _entries(bare, {"user_id": "u2", "date": "2024-01-01"}, {"user_id": "u2", "date": "2024-01-02"})
        assert res.error is None
        ids = [r["id"] for r in res.data]
        assert all(ids) and len(set(ids)) == 2
        stored = run(bare.table("kpi_entries").select()).data
        assert [r["id"] for r in stored] == ids

    def test_generated_id_skips_existing(self):
        store = MemoryRecordStore({"t": [{"id": "dup"}]})
        ids = iter(["dup", "dup", "fresh"])
        engine = QueryEngine(store, id_factory=lambda: next(ids))
        res = run(QueryBuilder(executor=engine, request=QueryRequest("t")).insert({"v": 1}))
        assert res.data == [{"v": 1, "id": "fresh"}]
        assert [r["id"] for r in store.read("t")] == ["dup", "fresh"]

    def test_keeps_supplied_id(self, bare):
        res = _entries(bare, {"id": "u2-2024-01-01", "user_id": "u2", "date": "2024-01-01"})
        assert res.data[0]["id"] == "u2-2024-01-01"

    def test_duplicate_id_is_error_and_table_untouched(self, bare):
        _entries(bare, {"id": "x", "user_id": "u2", "date": "2024-01-01"})
        res = _entries(bare, {"id": "x", "user_id": "u3", "date": "2024-01-01"})
        assert res.data is None and "duplicate" in res.error
        assert len(run(bare.table("kpi_entries").select()).data) == 1

    def test_empty_payload_leaves_table_absent(self, bare):
        for rows in ([], ()):
            res = run(bare.table("bonus_rules").insert(rows))
            assert res.data == [] and res.error is None
        assert bare.store.exists("bonus_rules") is False

    def test_invalid_field_value_goes_to_error(self, bare):
        res = _entries(bare, {"user_id": "u2", "date": "01/01/2024"})
        assert res.data is None and res.error
        assert bare.store.exists("kpi_entries") is False


class TestUpsert:
    def test_merges_fields_of_existing_record(self, bare):
        _entries(bare, {"id": "e1", "user_id": "u2", "date": "2024-01-01", "errors": 0, "notes": "ok"})
        res = run(bare.table("kpi_entries").upsert({"id": "e1", "errors": 2}))
        assert res.error is None and res.data == [{"id": "e1", "errors": 2}]
        row = run(bare.table("kpi_entries").select().eq("id", "e1").single()).data
        assert row == {"id": "e1", "user_id": "u2", "date": "2024-01-01", "errors": 2, "notes": "ok"}

    def test_new_or_missing_id_creates(self, bare):
        run(bare.table("bonus_rules").upsert([{"id": "b9", "name": "Nuevo"}, {"name": "Sin id"}]))
        rows = run(bare.table("bonus_rules").select()).data
        assert len(rows) == 2
        assert rows[0]["id"] == "b9"
        assert rows[1]["id"] and rows[1]["name"] == "Sin id"

    def test_empty_payload_leaves_table_absent(self, bare):
        res = run(bare.table("bonus_rules").upsert([]))
        assert res.data == [] and res.error is None
        assert bare.store.exists("bonus_rules") is False

    def test_numeric_id_matches_string_id(self, bare):
        run(bare.table("t").insert({"id": "5", "v": 1}))
        run(bare.table("t").upsert({"id": 5, "v": 2}))
        assert run(bare.table("t").select()).data == [{"id": "5", "v": 2}]


class TestUpdateDelete:
    def test_update_scenario_only_touches_matches(self, bare):
        _three_days(bare)
        res = run(bare.table("kpi_entries").update({"errors": 5}).eq("user_id", "u2"))
        assert res.data is None and res.error is None
        rows = run(bare.table("kpi_entries").select()).data
        assert [r["errors"] for r in rows if r["user_id"] == "u2"] == [5, 5]
        assert [r["errors"] for r in rows if r["user_id"] == "u3"] == [0]
        # untouched fields survive
        assert {r["date"] for r in rows if r["user_id"] == "u2"} == {"2024-01-01", "2024-01-02"}

    def test_update_never_rewrites_id(self, bare):
        _entries(bare, {"id": "e1", "user_id": "u2", "date": "2024-01-01"})
        run(bare.table("kpi_entries").update({"id": "zzz", "errors": 1}).eq("id", "e1"))
        assert run(bare.table("kpi_entries").select().eq("id", "e1").single()).data["errors"] == 1

    def test_filters_combine_with_and(self, bare):
        _three_days(bare)
        run(bare.table("kpi_entries").update({"notes": "hit"}).eq("user_id", "u2").eq("date", "2024-01-01"))
        hit = run(bare.table("kpi_entries").select().eq("notes", "hit")).data
        assert [(r["user_id"], r["date"]) for r in hit] == [("u2", "2024-01-01")]

    def test_no_match_is_not_an_error(self, bare):
        _three_days(bare)
        assert run(bare.table("kpi_entries").update({"errors": 9}).eq("user_id", "nobody")).error is None
        assert run(bare.table("kpi_entries").delete().eq("user_id", "nobody")).error is None
        assert len(run(bare.table("kpi_entries").select()).data) == 3

    def test_delete_scenario(self, bare):
        _entries(
            bare,
            {"id": "x", "user_id": "u2", "date": "2024-01-01"},
            {"id": "y", "user_id": "u2", "date": "2024-01-02"},
        )
        res = run(bare.table("kpi_entries").delete().eq("id", "x"))
        assert res.data is None and res.error is None
        gone = run(bare.table("kpi_entries").select().eq("id", "x"))
        assert gone.data == [] and gone.error is None
        assert [r["id"] for r in run(bare.table("kpi_entries").select()).data] == ["y"]

    def test_delete_with_neq(self, bare):
        _three_days(bare)
        run(bare.table("kpi_entries").delete().neq("user_id", "u3"))
        rows = run(bare.table("kpi_entries").select()).data
        assert [r["user_id"] for r in rows] == ["u3"]


class TestSelect:
    def test_order_then_limit_scenario(self, bare):
        _three_days(bare)
        res = run(bare.table("kpi_entries").select().order("date", ascending=False).limit(1))
        assert [r["date"] for r in res.data] == ["2024-01-03"]

    def test_order_is_stable(self, bare):
        _entries(
            bare,
            {"id": "a", "user_id": "u2", "date": "2024-01-01", "errors": 1},
            {"id": "b", "user_id": "u3", "date": "2024-01-01", "errors": 0},
            {"id": "c", "user_id": "u4", "date": "2024-01-01", "errors": 1},
        )
        asc = run(bare.table("kpi_entries").select().order("errors")).data
        assert [r["id"] for r in asc] == ["b", "a", "c"]
        desc = run(bare.table("kpi_entries").select().order("errors", ascending=False)).data
        assert [r["id"] for r in desc] == ["a", "c", "b"]

    def test_nulls_sort_last_ascending(self):
        rows = [{"id": 1, "v": None}, {"id": 2, "v": 3}, {"id": 3, "v": 1}]
        assert [r["id"] for r in apply_ordering(rows, Ordering("v"))] == [3, 2, 1]
        assert [r["id"] for r in apply_ordering(rows, Ordering("v", False))] == [1, 2, 3]

    def test_single_collapses(self, bare):
        _three_days(bare)
        row = run(bare.table("kpi_entries").select().eq("user_id", "u3").single()).data
        assert isinstance(row, dict) and row["date"] == "2024-01-03"

    def test_single_on_no_match_is_null(self, bare):
        _three_days(bare)
        res = run(bare.table("kpi_entries").select().eq("user_id", "u9").single())
        assert res.data is None and res.error is None

    def test_select_on_absent_table(self, bare):
        res = run(bare.table("kpi_entries").select())
        assert res.data == [] and res.error is None

    def test_loose_filter_match(self, bare):
        run(bare.table("t").insert([{"id": 1, "user_id": 2}, {"id": 2, "user_id": "u2"}, {"id": 3, "user_id": "2"}]))
        assert [r["id"] for r in run(bare.table("t").select().eq("user_id", "2")).data] == [1, 3]
        assert [r["id"] for r in run(bare.table("t").select().eq("user_id", "u2")).data] == [2]
        assert [r["id"] for r in run(bare.table("t").select().eq("id", "1")).data] == [1]

    def test_column_projection(self, bare):
        _three_days(bare)
        rows = run(bare.table("kpi_entries").select("user_id, date").eq("user_id", "u3")).data
        assert rows == [{"user_id": "u3", "date": "2024-01-03"}]


class TestTargetsSingleton:
    def test_partial_upsert_keeps_one_row(self, client):
        run(client.table("app_targets").upsert({"id": 1, "monthly_devices": 80}))
        res = run(client.table("app_targets").select().single())
        assert res.error is None
        assert res.data["monthly_devices"] == 80
        assert res.data["monthly_sales_amount"] == 450000
        assert len(run(client.table("app_targets").select()).data) == 1

    def test_other_id_is_rejected(self, client):
        res = run(client.table("app_targets").upsert({"id": 2, "max_errors": 1}))
        assert res.data is None and "singleton" in res.error
        assert len(run(client.table("app_targets").select()).data) == 1

    def test_second_insert_is_rejected(self, client):
        res = run(client.table("app_targets").insert({"max_errors": 3}))
        assert res.error and "duplicate" in res.error
        assert run(client.table("app_targets").select().single()).data["max_errors"] == 0


class _BrokenStore(MemoryRecordStore):
    def write(self, table, records):
        raise StoreError("disk full")


def test_persistence_failure_goes_to_error_channel():
    engine = QueryEngine(_BrokenStore({"t": [{"id": "a"}]}))
    q = QueryBuilder(executor=engine, request=QueryRequest("t"))
    for built in (q.insert({"v": 1}), q.upsert({"id": "a"}), q.update({"v": 2}), q.delete()):
        res = run(built)
        assert res.data is None
        assert res.error == "disk full"


class _ReadBrokenStore(MemoryRecordStore):
    def read(self, table):
        raise StoreError("medium gone")


def test_read_failure_goes_to_error_channel():
    engine = QueryEngine(_ReadBrokenStore({"t": [{"id": "a"}]}))
    q = QueryBuilder(executor=engine, request=QueryRequest("t"))
    for built in (q.select(), q.select().eq("id", "a").single()):
        res = run(built)
        assert res.data is None
        assert res.error == "medium gone"


@pytest.mark.parametrize(
    "a,b,expected",
    [
        (5, "5", True),
        ("5.0", 5, True),
        (True, 1, True),
        ("u2", "u2", True),
        ("u2", "U2", False),
        (None, None, True),
        (None, "None", False),
        (0, None, False),
        ("abc", 3, False),
    ],
)
def test_loose_equals(a, b, expected):
    assert loose_equals(a, b) is expected
