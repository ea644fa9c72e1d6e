"""Tests for procbench.bench.command — command string tokenizing."""

from __future__ import annotations

import os
import unittest

from procbench.bench.command import split_command
from procbench.bench.errors import ConfigurationError


class TestSplitCommand(unittest.TestCase):
    def test_simple(self) -> None:
        self.assertEqual(split_command("sleep 0.1"), ["sleep", "0.1"])

    def test_single_word(self) -> None:
        self.assertEqual(split_command("true"), ["true"])

    @unittest.skipIf(os.name == "nt", "POSIX quoting rules")
    def test_quoted_argument(self) -> None:
        self.assertEqual(
            split_command("grep 'hello world' file.txt"),
            ["grep", "hello world", "file.txt"],
        )

    def test_extra_whitespace(self) -> None:
        self.assertEqual(split_command("  ls   -l  "), ["ls", "-l"])

    def test_empty(self) -> None:
        with self.assertRaises(ConfigurationError):
            split_command("")

    def test_blank(self) -> None:
        with self.assertRaises(ConfigurationError):
            split_command("   ")

    @unittest.skipIf(os.name == "nt", "POSIX quoting rules")
    def test_unbalanced_quotes(self) -> None:
        with self.assertRaises(ConfigurationError):
            split_command("echo 'oops")

    def test_configuration_error_is_value_error(self) -> None:
        with self.assertRaises(ValueError):
            split_command("")


class TestShellWrapping(unittest.TestCase):
    def test_posix_shell(self) -> None:
        self.assertEqual(
            split_command("ls | wc -l", shell="/bin/bash"),
            ["/bin/bash", "-c", "ls | wc -l"],
        )

    def test_cmd_exe(self) -> None:
        self.assertEqual(
            split_command("dir", shell="C:\\Windows\\System32\\cmd.exe"),
            ["C:\\Windows\\System32\\cmd.exe", "/c", "dir"],
        )

    def test_cmd_bare_name(self) -> None:
        self.assertEqual(split_command("dir", shell="CMD")[1], "/c")

    def test_shell_does_not_parse_quotes(self) -> None:
        self.assertEqual(split_command("echo 'oops", shell="sh")[2], "echo 'oops")

    def test_shell_with_empty_command(self) -> None:
        with self.assertRaises(ConfigurationError):
            split_command(" ", shell="sh")


if __name__ == "__main__":
    unittest.main()
