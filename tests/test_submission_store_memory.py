import unittest
from unittest.mock import patch

from apar_admission.submission_store import memory
from apar_admission.submission_store.memory import InMemorySubmissionStore


class TestInMemorySubmissionStore(unittest.TestCase):
    def test_second_claim_is_rejected_until_release(self):
        store = InMemorySubmissionStore(ttl_seconds=60)
        self.assertTrue(store.try_acquire("inspection:asset:1", "a"))
        self.assertFalse(store.try_acquire("inspection:asset:1", "b"))
        self.assertTrue(store.is_held("inspection:asset:1"))

        store.release("inspection:asset:1", "a")
        self.assertFalse(store.is_held("inspection:asset:1"))
        self.assertTrue(store.try_acquire("inspection:asset:1", "b"))

    def test_release_with_wrong_token_keeps_claim(self):
        store = InMemorySubmissionStore()
        store.try_acquire("k", "owner")
        store.release("k", "intruder")
        self.assertTrue(store.is_held("k"))

    def test_claims_are_per_key(self):
        store = InMemorySubmissionStore()
        self.assertTrue(store.try_acquire("inspection:asset:1", "a"))
        self.assertTrue(store.try_acquire("inspection:asset:2", "b"))

    def test_expired_claim_is_evicted(self):
        store = InMemorySubmissionStore(ttl_seconds=10)
        with patch.object(memory.time, "monotonic", return_value=100.0):
            store.try_acquire("k", "a")
        with patch.object(memory.time, "monotonic", return_value=111.0):
            self.assertFalse(store.is_held("k"))
            self.assertTrue(store.try_acquire("k", "b"))

    def test_clear(self):
        store = InMemorySubmissionStore()
        store.try_acquire("a", "1")
        store.try_acquire("b", "2")
        store.clear()
        self.assertFalse(store.is_held("a"))
        self.assertFalse(store.is_held("b"))


if __name__ == "__main__":
    unittest.main()
