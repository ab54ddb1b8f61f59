# Copyright (c) 2023, Menno Smits
# Released subject to the New BSD License
# Please see http://en.wikipedia.org/wiki/BSD_licenses

"""
Extract the subject and the plain text body of newly arrived messages.
"""

import email
import email.policy
from collections import namedtuple
from email.message import EmailMessage
from logging import getLogger
from typing import Optional, Union

from .exceptions import DecodeError

logger = getLogger(__name__)

DecodedMessage = namedtuple("DecodedMessage", ["subject", "body"])


def decode_message(raw: Union[bytes, str]) -> DecodedMessage:
    """Return the subject and plain text body of the RFC 822 message
    *raw*.

    The subject is ``None`` when the message has none. The body is the
    message content if the message itself is ``text/plain``, otherwise
    the content of the first ``text/plain`` part found directly inside
    a multipart message. Nested multiparts are not searched.

    This function never raises: if the message can't be parsed or its
    text can't be decoded the body is an empty string.
    """
    try:
        message = parse_message(raw)
    except DecodeError as e:
        logger.warning("Could not parse message: %s", e)
        return DecodedMessage(None, "")

    subject = _get_subject(message)
    try:
        body = get_text(message)
    except DecodeError as e:
        logger.warning("Could not decode body of message %r: %s", subject, e)
        body = ""
    except Exception:
        logger.exception("Unexpected error decoding message %r", subject)
        body = ""
    return DecodedMessage(subject, body)


def parse_message(raw: Union[bytes, str]) -> EmailMessage:
    try:
        if isinstance(raw, bytes):
            return email.message_from_bytes(raw, policy=email.policy.default)
        if isinstance(raw, str):
            return email.message_from_string(raw, policy=email.policy.default)
    except Exception as e:
        raise DecodeError("unparsable message: %s" % e) from e
    raise DecodeError("expected bytes or str, got %s" % type(raw).__name__)


def get_text(message: EmailMessage) -> str:
    if message.get_content_type() == "text/plain":
        return _get_part_text(message)

    if message.is_multipart():
        for part in message.iter_parts():
            if part.get_content_type() == "text/plain":
                return _get_part_text(part)
    return ""


def _get_part_text(part: EmailMessage) -> str:
    try:
        content = part.get_content()
    except (LookupError, UnicodeError, ValueError, KeyError) as e:
        raise DecodeError("can't decode %s content: %s" % (part.get_content_type(), e)) from e
    if not isinstance(content, str):
        raise DecodeError("unexpected %s content" % type(content).__name__)
    return content


def _get_subject(message: EmailMessage) -> Optional[str]:
    try:
        subject = message.get("Subject")
    except Exception as e:
        # Header parsing in email.policy.default is lazy and can fail here
        logger.warning("Could not decode message subject: %s", e)
        return None
    if subject is None:
        return None
    return str(subject)
