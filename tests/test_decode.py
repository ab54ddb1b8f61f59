# Copyright (c) 2023, Menno Smits
# Released subject to the New BSD License
# Please see http://en.wikipedia.org/wiki/BSD_licenses

import unittest

from imapwatch.decode import decode_message, DecodedMessage

PLAIN = b"""\
From: alice@example.com
To: bob@example.com
Subject: Lunch
Content-Type: text/plain; charset="utf-8"

See you at noon.
"""

MULTIPART = b"""\
From: alice@example.com
Subject: Report
MIME-Version: 1.0
Content-Type: multipart/mixed; boundary="XXX"

--XXX
Content-Type: text/html; charset="utf-8"

<p>Ignored</p>
--XXX
Content-Type: text/plain; charset="utf-8"

The report is attached.
--XXX
Content-Type: text/plain; charset="utf-8"

Second text part.
--XXX--
"""

NO_TEXT_PART = b"""\
Subject: Picture
MIME-Version: 1.0
Content-Type: multipart/mixed; boundary="XXX"

--XXX
Content-Type: text/html

<p>Hello</p>
--XXX
Content-Type: image/png
Content-Transfer-Encoding: base64

iVBORw0KGgo=
--XXX--
"""

NESTED = b"""\
Subject: Nested
MIME-Version: 1.0
Content-Type: multipart/mixed; boundary="OUTER"

--OUTER
Content-Type: multipart/alternative; boundary="INNER"

--INNER
Content-Type: text/plain

Hidden inside.
--INNER--
--OUTER--
"""

BAD_CHARSET = b"""\
Subject: Broken
Content-Type: text/plain; charset="no-such-charset"

Hello
"""


class TestDecodeMessage(unittest.TestCase):
    def test_plain_text(self):
        self.assertEqual(
            decode_message(PLAIN), DecodedMessage("Lunch", "See you at noon.\n")
        )

    def test_plain_text_str(self):
        self.assertEqual(decode_message(PLAIN.decode("ascii")).body, "See you at noon.\n")

    def test_no_content_type_is_plain_text(self):
        message = decode_message(b"Subject: Hi\n\nJust text\n")
        self.assertEqual(message.body, "Just text\n")

    def test_encoded_body(self):
        raw = (
            b"Subject: =?utf-8?q?Caf=C3=A9?=\n"
            b"Content-Type: text/plain; charset=utf-8\n"
            b"Content-Transfer-Encoding: quoted-printable\n"
            b"\n"
            b"Un caf=C3=A9 ?\n"
        )
        self.assertEqual(decode_message(raw), DecodedMessage("Caf\xe9", "Un caf\xe9 ?\n"))

    def test_multipart_first_text_part(self):
        message = decode_message(MULTIPART)
        self.assertEqual(message.subject, "Report")
        self.assertEqual(message.body, "The report is attached.")

    def test_multipart_without_text_part(self):
        self.assertEqual(decode_message(NO_TEXT_PART), DecodedMessage("Picture", ""))

    def test_nested_multipart_not_searched(self):
        self.assertEqual(decode_message(NESTED).body, "")

    def test_html_only(self):
        raw = b"Subject: Hi\nContent-Type: text/html\n\n<p>Hi</p>\n"
        self.assertEqual(decode_message(raw).body, "")

    def test_no_subject(self):
        message = decode_message(b"Content-Type: text/plain\n\nBody\n")
        self.assertIsNone(message.subject)
        self.assertEqual(message.body, "Body\n")

    def test_unknown_charset(self):
        with self.assertLogs("imapwatch.decode", level="WARNING"):
            message = decode_message(BAD_CHARSET)
        self.assertEqual(message, DecodedMessage("Broken", ""))

    def test_not_a_message(self):
        for raw in (None, 42, object()):
            with self.subTest(raw=raw):
                self.assertEqual(decode_message(raw), DecodedMessage(None, ""))

    def test_multipart_without_boundary(self):
        raw = b"Subject: Odd\nContent-Type: multipart/mixed\n\nNo boundary here\n"
        self.assertEqual(decode_message(raw), DecodedMessage("Odd", ""))
