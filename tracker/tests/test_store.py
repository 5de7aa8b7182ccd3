import json
import os
import tempfile
import threading
import unittest

from tracker.errors import RecordNotFoundError, StorageWriteError
from tracker.records import RecordKind, sort_tasks_by_time
from tracker.store import (
    InMemoryRecordStore,
    JsonFileMapping,
    JsonFileRecordStore,
    KeyValueRecordStore,
    _CollectionStore,
)


class RecordStoreContract:
    """Checks shared by every store implementation."""

    def make_store(self):
        raise NotImplementedError

    def setUp(self):
        self.store = self.make_store()

    def test_create_habit_sets_id_and_empty_dates(self):
        habit = self.store.create(
            RecordKind.HABIT, {"userId": "u1", "title": "Read", "goal": 5}
        )
        self.assertTrue(habit["id"])
        self.assertEqual(habit["completedDates"], [])
        self.assertEqual(habit["userId"], "u1")
        self.assertEqual(habit["title"], "Read")
        self.assertEqual(habit["goal"], 5)

    def test_create_task_defaults_to_not_completed(self):
        task = self.store.create(
            RecordKind.TASK, {"userId": "u1", "title": "Call", "time": "09:00"}
        )
        self.assertIs(task["completed"], False)
        self.assertEqual(task["time"], "09:00")

    def test_create_ignores_caller_id_and_defaults(self):
        habit = self.store.create(
            RecordKind.HABIT,
            {"userId": "u1", "id": "mine", "completedDates": ["2024-01-01"]},
        )
        self.assertNotEqual(habit["id"], "mine")
        self.assertEqual(habit["completedDates"], [])

    def test_consecutive_creates_get_distinct_ids(self):
        ids = {
            self.store.create(RecordKind.TASK, {"userId": "u1"})["id"]
            for _ in range(20)
        }
        self.assertEqual(len(ids), 20)

    def test_list_by_user_filters_exactly(self):
        self.store.create(RecordKind.HABIT, {"userId": "u1", "title": "A"})
        self.store.create(RecordKind.HABIT, {"userId": "U1", "title": "B"})
        self.store.create(RecordKind.HABIT, {"userId": "u2", "title": "C"})

        titles = [h["title"] for h in self.store.list_by_user(RecordKind.HABIT, "u1")]
        self.assertEqual(titles, ["A"])
        self.assertEqual(self.store.list_by_user(RecordKind.HABIT, "nobody"), [])

    def test_list_on_empty_store(self):
        self.assertEqual(self.store.list_by_user(RecordKind.TASK, "u1"), [])

    def test_kinds_are_separate_collections(self):
        self.store.create(RecordKind.HABIT, {"userId": "u1"})
        self.assertEqual(self.store.list_by_user(RecordKind.TASK, "u1"), [])

    def test_created_record_is_listed_intact(self):
        created = self.store.create(
            RecordKind.TASK, {"userId": "u1", "title": "Gym", "time": "18:00"}
        )
        self.assertIn(created, self.store.list_by_user(RecordKind.TASK, "u1"))

    def test_update_changes_only_named_fields(self):
        task = self.store.create(
            RecordKind.TASK, {"userId": "u1", "title": "Gym", "time": "18:00"}
        )
        updated = self.store.update(RecordKind.TASK, task["id"], {"completed": True})

        self.assertIs(updated["completed"], True)
        self.assertEqual({**task, "completed": True}, updated)
        self.assertEqual(self.store.get(RecordKind.TASK, task["id"]), updated)

    def test_update_unknown_id_raises_not_found(self):
        with self.assertRaises(RecordNotFoundError) as ctx:
            self.store.update(RecordKind.HABIT, "missing", {"title": "x"})
        self.assertEqual(str(ctx.exception), "Habit not found")

    def test_update_reaches_records_of_any_user(self):
        habit = self.store.create(RecordKind.HABIT, {"userId": "u2", "title": "A"})
        self.store.update(RecordKind.HABIT, habit["id"], {"title": "B"})
        self.assertEqual(self.store.list_by_user(RecordKind.HABIT, "u2")[0]["title"], "B")

    def test_delete_removes_record(self):
        keep = self.store.create(RecordKind.TASK, {"userId": "u1", "title": "keep"})
        drop = self.store.create(RecordKind.TASK, {"userId": "u1", "title": "drop"})
        self.store.delete(RecordKind.TASK, drop["id"])
        self.assertEqual(self.store.list_by_user(RecordKind.TASK, "u1"), [keep])

    def test_delete_unknown_id_leaves_collection_unchanged(self):
        self.store.create(RecordKind.HABIT, {"userId": "u1", "title": "A"})
        before = self.store.list_by_user(RecordKind.HABIT, "u1")
        self.assertIsNone(self.store.delete(RecordKind.HABIT, "missing"))
        self.assertEqual(self.store.list_by_user(RecordKind.HABIT, "u1"), before)

    def test_get_unknown_returns_none(self):
        self.assertIsNone(self.store.get(RecordKind.TASK, "missing"))


class InMemoryRecordStoreTests(RecordStoreContract, unittest.TestCase):
    def make_store(self):
        return InMemoryRecordStore()

    def test_reset_clears_collections(self):
        self.store.create(RecordKind.HABIT, {"userId": "u1"})
        self.store.reset()
        self.assertEqual(self.store.list_by_user(RecordKind.HABIT, "u1"), [])


class JsonFileRecordStoreTests(RecordStoreContract, unittest.TestCase):
    def make_store(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.addCleanup(self._tmp.cleanup)
        self.data_dir = os.path.join(self._tmp.name, "data")
        return JsonFileRecordStore(self.data_dir)

    def _read_file(self, kind):
        with open(self.store.path_for(kind), encoding="utf-8") as f:
            return f.read()

    def _write_file(self, kind, text):
        os.makedirs(self.data_dir, exist_ok=True)
        with open(self.store.path_for(kind), "w", encoding="utf-8") as f:
            f.write(text)

    def test_files_are_pretty_printed_arrays(self):
        habit = self.store.create(RecordKind.HABIT, {"userId": "u1", "title": "Read"})
        text = self._read_file(RecordKind.HABIT)
        self.assertEqual(json.loads(text), [habit])
        self.assertIn('\n  {\n    "userId": "u1"', text)
        self.assertTrue(self.store.path_for(RecordKind.HABIT).endswith("habits.json"))
        self.assertTrue(self.store.path_for(RecordKind.TASK).endswith("tasks.json"))

    def test_records_survive_a_new_store_instance(self):
        task = self.store.create(RecordKind.TASK, {"userId": "u1", "title": "x"})
        reopened = JsonFileRecordStore(self.data_dir)
        self.assertEqual(reopened.list_by_user(RecordKind.TASK, "u1"), [task])

    def test_corrupt_file_reads_as_empty(self):
        self._write_file(RecordKind.HABIT, "{not json")
        with self.assertLogs("tracker.store", level="ERROR"):
            self.assertEqual(self.store.list_by_user(RecordKind.HABIT, "u1"), [])

    def test_non_array_file_reads_as_empty(self):
        self._write_file(RecordKind.TASK, '{"id": "1"}')
        with self.assertLogs("tracker.store", level="ERROR"):
            self.assertEqual(self.store.list_by_user(RecordKind.TASK, "u1"), [])

    def test_write_after_corrupt_file_replaces_it(self):
        self._write_file(RecordKind.TASK, "garbage")
        with self.assertLogs("tracker.store", level="ERROR"):
            task = self.store.create(RecordKind.TASK, {"userId": "u1"})
        self.assertEqual(json.loads(self._read_file(RecordKind.TASK)), [task])

    def test_legacy_field_names_are_normalized(self):
        self._write_file(
            RecordKind.HABIT,
            json.dumps([{"id": "h1", "userId": "u1", "doneDates": ["2024-05-01"]}]),
        )
        self._write_file(
            RecordKind.TASK, json.dumps([{"id": "t1", "userId": "u1", "done": True}])
        )
        habit = self.store.list_by_user(RecordKind.HABIT, "u1")[0]
        task = self.store.list_by_user(RecordKind.TASK, "u1")[0]
        self.assertEqual(habit["completedDates"], ["2024-05-01"])
        self.assertNotIn("doneDates", habit)
        self.assertIs(task["completed"], True)

    def test_concurrent_creates_keep_every_record(self):
        count = 40
        barrier = threading.Barrier(count)

        def worker(n):
            barrier.wait()
            self.store.create(RecordKind.TASK, {"userId": "u1", "title": f"t{n}"})

        threads = [threading.Thread(target=worker, args=(n,)) for n in range(count)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        tasks = self.store.list_by_user(RecordKind.TASK, "u1")
        self.assertEqual(len(tasks), count)
        self.assertEqual({t["title"] for t in tasks}, {f"t{n}" for n in range(count)})
        self.assertEqual(len({t["id"] for t in tasks}), count)

    def test_delete_on_missing_file_writes_empty_array(self):
        self.store.delete(RecordKind.HABIT, "missing")
        self.assertEqual(json.loads(self._read_file(RecordKind.HABIT)), [])


class KeyValueRecordStoreTests(RecordStoreContract, unittest.TestCase):
    def make_store(self):
        self.mapping = {}
        return KeyValueRecordStore(self.mapping)

    def test_collections_live_under_fixed_keys(self):
        self.store.create(RecordKind.HABIT, {"userId": "u1"})
        self.store.create(RecordKind.TASK, {"userId": "u1"})
        self.assertEqual(set(self.mapping), {"simple_habits", "simple_tasks"})

    def test_local_ids_use_random_suffix(self):
        habit = self.store.create(RecordKind.HABIT, {"userId": "u1"})
        self.assertRegex(habit["id"], r"^id[0-9a-z]{6}$")

    def test_unparseable_value_reads_as_empty(self):
        self.mapping["simple_tasks"] = "[oops"
        with self.assertLogs("tracker.store", level="ERROR"):
            self.assertEqual(self.store.list_by_user(RecordKind.TASK, "u1"), [])


class JsonFileMappingTests(unittest.TestCase):
    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.addCleanup(self._tmp.cleanup)
        self.path = os.path.join(self._tmp.name, "local", "storage.json")

    def test_values_persist_across_instances(self):
        mapping = JsonFileMapping(self.path)
        mapping["theme"] = "dark"
        mapping["gone"] = "x"
        del mapping["gone"]

        reopened = JsonFileMapping(self.path)
        self.assertEqual(dict(reopened), {"theme": "dark"})
        self.assertEqual(len(reopened), 1)

    def test_missing_file_is_empty(self):
        self.assertEqual(len(JsonFileMapping(self.path)), 0)

    def test_unwritable_directory_raises_storage_error(self):
        blocker = os.path.join(self._tmp.name, "blocker")
        with open(blocker, "w", encoding="utf-8") as f:
            f.write("not a directory")
        mapping = JsonFileMapping(os.path.join(blocker, "storage.json"))

        with self.assertLogs("tracker.store", level="ERROR"):
            with self.assertRaises(StorageWriteError):
                mapping["theme"] = "dark"


class CollectionStoreBaseTests(unittest.TestCase):
    def test_base_requires_read_and_write_hooks(self):
        with self.assertRaises(TypeError):
            _CollectionStore()


class SortTasksTests(unittest.TestCase):
    def test_sorts_by_time_string(self):
        tasks = [
            {"id": "b", "time": "14:30"},
            {"id": "a", "time": "09:00"},
            {"id": "c", "time": "23:15"},
        ]
        self.assertEqual([t["id"] for t in sort_tasks_by_time(tasks)], ["a", "b", "c"])


if __name__ == "__main__":
    unittest.main()
