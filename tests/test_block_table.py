import itertools
import unittest

from engine import BlockTable
from exceptions import BlockTableError, CapacityExceeded, DuplicateIdentifier


class BlockTableTests(unittest.TestCase):
    def setUp(self) -> None:
        self.table = BlockTable(1000)

    def test_starts_with_single_free_block(self) -> None:
        self.assertEqual(len(self.table), 1)
        block = self.table[0]
        self.assertEqual((block.start, block.end, block.size), (0, 1000, 1000))
        self.assertTrue(block.is_free)
        self.table.check_invariants()

    def test_split_inserts_remainder_after_block(self) -> None:
        remainder = self.table.split(0, 300)
        self.assertEqual(len(self.table), 2)
        self.assertEqual((self.table[0].start, self.table[0].end), (0, 300))
        self.assertIs(self.table[1], remainder)
        self.assertEqual((remainder.start, remainder.end), (300, 1000))
        self.assertTrue(remainder.is_free)
        self.table.check_invariants()

    def test_split_rejects_bad_sizes(self) -> None:
        for size in (0, -5, 1000, 1500):
            with self.assertRaises(BlockTableError):
                self.table.split(0, size)
        self.assertEqual(len(self.table), 1)

    def test_out_of_range_index(self) -> None:
        with self.assertRaises(BlockTableError):
            self.table.split(3, 10)
        with self.assertRaises(BlockTableError):
            self.table.mark(-1, free=False, process_id="p")
        with self.assertRaises(BlockTableError):
            self.table.remove(1)

    def test_mark_requires_consistent_owner(self) -> None:
        with self.assertRaises(BlockTableError):
            self.table.mark(0, free=False)
        with self.assertRaises(BlockTableError):
            self.table.mark(0, free=True, process_id="p")
        self.table.mark(0, free=False, process_id="p")
        self.assertEqual(self.table[0].process_id, "p")
        with self.assertRaises(BlockTableError):
            self.table.mark(0, free=False, process_id="q")

    def test_cannot_split_occupied_block(self) -> None:
        self.table.mark(0, free=False, process_id="p")
        with self.assertRaises(BlockTableError):
            self.table.split(0, 10)

    def test_remove_folds_into_left_neighbour(self) -> None:
        self.table.split(0, 400)
        self.table.split(1, 100)
        self.table.mark(2, free=False, process_id="p")
        removed = self.table.remove(1)
        self.assertEqual((removed.start, removed.end), (400, 500))
        self.assertEqual(len(self.table), 2)
        self.assertEqual((self.table[0].start, self.table[0].end), (0, 500))
        self.table.check_invariants()

    def test_remove_requires_two_free_blocks(self) -> None:
        self.table.split(0, 400)
        self.table.mark(1, free=False, process_id="p")
        with self.assertRaises(BlockTableError):
            self.table.remove(1)
        with self.assertRaises(BlockTableError):
            self.table.remove(0)

    def test_max_blocks_bound(self) -> None:
        table = BlockTable(100, max_blocks=2)
        table.split(0, 10)
        with self.assertRaises(CapacityExceeded):
            table.split(1, 10)
        self.assertEqual(len(table), 2)
        table.check_invariants()

    def test_duplicate_block_ids_are_rejected(self) -> None:
        ids = itertools.cycle(["block-a", "block-b"])
        table = BlockTable(100, id_factory=lambda: next(ids))
        table.split(0, 10)
        with self.assertRaises(DuplicateIdentifier):
            table.split(1, 10)

    def test_index_at(self) -> None:
        self.table.split(0, 100)
        self.table.split(1, 200)
        self.assertEqual(self.table.index_at(0), 0)
        self.assertEqual(self.table.index_at(100), 1)
        self.assertEqual(self.table.index_at(299), 1)
        self.assertEqual(self.table.index_at(300), 2)
        self.assertEqual(self.table.index_at(1000), 0)

    def test_check_invariants_detects_gap(self) -> None:
        self.table.split(0, 100)
        self.table[1].start = 150
        with self.assertRaises(BlockTableError):
            self.table.check_invariants()


if __name__ == "__main__":
    unittest.main()
