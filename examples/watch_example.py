# Watch a mailbox and print the subject of every new message until ^c

import logging

from imapwatch import ConnectionConfig, IMAPListener

HOST = "imap.host.com"
USERNAME = "someuser"
PASSWORD = "password"


def on_message(subject, body):
    print("New message:", subject)
    print(body)


def main():
    logging.basicConfig(level=logging.INFO)

    config = ConnectionConfig(
        host=HOST,
        port=993,
        username=USERNAME,
        password=PASSWORD,
        protocol="imaps",
    )

    with IMAPListener(config, on_message=on_message) as listener:
        print("Waiting for new messages, quit with ^c")
        try:
            while not listener.join(timeout=1):
                pass
        except KeyboardInterrupt:
            pass


if __name__ == "__main__":
    main()
