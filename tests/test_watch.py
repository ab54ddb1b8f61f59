# Copyright (c) 2023, Menno Smits
# Released subject to the New BSD License
# Please see http://en.wikipedia.org/wiki/BSD_licenses

import io
import unittest
from unittest.mock import patch

from imapwatch.watch import command_line, main


@patch("imapwatch.watch.logging.basicConfig")
class TestCommandLine(unittest.TestCase):
    def test_defaults(self, _):
        conf = command_line(["-H", "imap.example.com", "-u", "someuser", "-p", "secret"])

        self.assertEqual(conf.host, "imap.example.com")
        self.assertEqual(conf.port, 993)
        self.assertEqual(conf.protocol, "imaps")
        self.assertEqual(conf.username, "someuser")
        self.assertEqual(conf.password, "secret")
        self.assertEqual(conf.folder, "INBOX")

    def test_starttls(self, _):
        conf = command_line(
            ["-H", "imap.example.com", "-u", "u", "-p", "p", "--protocol", "imap"]
        )
        self.assertEqual(conf.port, 143)
        self.assertEqual(conf.protocol, "imap")

    def test_explicit_port_and_folder(self, _):
        conf = command_line(
            ["-H", "h", "-u", "u", "-p", "p", "-P", "1993", "--folder", "Alerts"]
        )
        self.assertEqual(conf.port, 1993)
        self.assertEqual(conf.folder, "Alerts")

    @patch("imapwatch.watch.getpass", return_value="prompted")
    def test_password_prompt(self, getpass, _):
        conf = command_line(["-H", "h", "-u", "u"])
        self.assertEqual(conf.password, "prompted")

    @patch("sys.stderr", new_callable=io.StringIO)
    def test_file_excludes_other_options(self, stderr, _):
        with self.assertRaises(SystemExit):
            command_line(["-f", "watch.ini", "-H", "h"])

    @patch("sys.stderr", new_callable=io.StringIO)
    def test_file_excludes_folder(self, stderr, _):
        with self.assertRaises(SystemExit):
            command_line(["-f", "watch.ini", "--folder", "Alerts"])
        self.assertIn("no other options", stderr.getvalue())

    @patch("sys.stderr", new_callable=io.StringIO)
    def test_host_required(self, stderr, _):
        with self.assertRaises(SystemExit):
            command_line(["-u", "u", "-p", "p"])

    @patch("imapwatch.watch.parse_config_file")
    def test_file(self, parse_config_file, _):
        self.assertIs(command_line(["-f", "watch.ini"]), parse_config_file.return_value)
        parse_config_file.assert_called_once_with("watch.ini")


@patch("imapwatch.watch.logging.basicConfig")
class TestMain(unittest.TestCase):
    @patch("sys.stderr", new_callable=io.StringIO)
    def test_invalid_config(self, stderr, _):
        self.assertEqual(main(["-H", "h", "-u", "u", "-p", "p", "-P", "0"]), 2)
        self.assertIn("port", stderr.getvalue())

    @patch("imapwatch.watch.signal.signal")
    @patch("imapwatch.watch.IMAPListener")
    def test_run(self, IMAPListener, signal, _):
        listener = IMAPListener.return_value
        listener.join.side_effect = [False, True]

        self.assertEqual(main(["-H", "h", "-u", "u", "-p", "p"]), 0)

        listener.start.assert_called_once_with()
        listener.stop.assert_called_once_with()
        self.assertEqual(listener.join.call_count, 2)

    @patch("imapwatch.watch.signal.signal")
    @patch("imapwatch.watch.IMAPListener")
    def test_interrupted(self, IMAPListener, signal, _):
        listener = IMAPListener.return_value
        listener.join.side_effect = KeyboardInterrupt()

        self.assertEqual(main(["-H", "h", "-u", "u", "-p", "p"]), 0)
        listener.stop.assert_called_once_with()
