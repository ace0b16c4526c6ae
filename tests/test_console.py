from __future__ import annotations

import io
import unittest

from robuild.core.console import BuildConsole, Console


class ConsoleTests(unittest.TestCase):
    def setUp(self) -> None:
        self.out = io.StringIO()
        self.err = io.StringIO()

    def make(self, level: str) -> Console:
        return Console(level, stream=self.out, error_stream=self.err)

    def test_levels_filter_output(self) -> None:
        console = self.make("warn")
        console.info("hidden")
        console.verbose("hidden too")
        console.warn("careful")
        console.error("broken")

        self.assertEqual(self.out.getvalue(), "")
        self.assertEqual(self.err.getvalue(), "[WARN] careful\n[ERROR] broken\n")

    def test_log_prints_without_prefix(self) -> None:
        console = self.make("info")
        console.log("  Size: 1 kB")
        console.info("done")
        self.assertEqual(self.out.getvalue(), "  Size: 1 kB\n[INFO] done\n")

    def test_silent_still_counts_warnings(self) -> None:
        console = self.make("silent")
        console.warn("one")
        console.warn("two")

        self.assertEqual(self.err.getvalue(), "")
        self.assertEqual(console.warning_count, 2)
        self.assertTrue(console.should_fail_on_warnings(True))
        self.assertFalse(console.should_fail_on_warnings(False))

        console.reset_counts()
        self.assertFalse(console.should_fail_on_warnings(True))

    def test_unknown_level(self) -> None:
        with self.assertRaises(ValueError):
            Console("loud")

    def test_satisfies_protocol(self) -> None:
        self.assertIsInstance(self.make("info"), BuildConsole)


if __name__ == "__main__":
    unittest.main()
