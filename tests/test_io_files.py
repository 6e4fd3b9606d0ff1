import json
import os
import tempfile
import unittest

from config import CFG
from io_files import write_boards_text, write_state_space_json
from models import Board


class WriteOutputsTestCase(unittest.TestCase):
    def setUp(self) -> None:
        self.tmpdir = tempfile.TemporaryDirectory()
        self.addCleanup(self.tmpdir.cleanup)
        self._orig_json = CFG.EXPORT_JSON
        self._orig_boards = CFG.BOARDS_TXT

    def tearDown(self) -> None:
        CFG.EXPORT_JSON = self._orig_json
        CFG.BOARDS_TXT = self._orig_boards

    def test_write_state_space_json_uses_configured_relative_path(self) -> None:
        CFG.EXPORT_JSON = "outputs/space.json"
        payload = {"states": ["1,0", "0,1"], "graph": {"1,0": ["0,1"], "0,1": ["1,0"]}}

        path = write_state_space_json(payload, self.tmpdir.name)

        expected = os.path.join(self.tmpdir.name, "outputs", "space.json")
        self.assertEqual(path, expected)
        with open(path, "r", encoding="utf-8") as fh:
            self.assertEqual(json.load(fh), payload)

    def test_write_boards_text_accepts_absolute_path(self) -> None:
        target = os.path.join(self.tmpdir.name, "txt", "boards.txt")
        CFG.BOARDS_TXT = target

        path = write_boards_text(Board(3, 1), ["1,2,0", "1,0,2"], self.tmpdir.name)

        self.assertEqual(path, target)
        with open(path, "r", encoding="utf-8") as fh:
            contents = fh.read()
        self.assertIn("2 states on 3×1", contents)
        self.assertIn("#0 1,2,0\n12.", contents)
        self.assertIn("#1 1,0,2\n1.2", contents)

    def test_write_boards_text_without_states(self) -> None:
        CFG.BOARDS_TXT = "empty.txt"
        path = write_boards_text(Board(2, 2), [], self.tmpdir.name)
        with open(path, "r", encoding="utf-8") as fh:
            self.assertEqual(fh.read(), "No states\n")


if __name__ == "__main__":
    unittest.main()
