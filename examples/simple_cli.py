"""
Simple interactive CLI for pysleek.

Demonstrates:
- local identity persistence (identity.json)
- recent contacts with unread markers
- reading and decrypting a conversation (NIP-04 and NIP-17)
- sending gift-wrapped or legacy DMs
- read-state sync
"""

from __future__ import annotations

import argparse
import asyncio
import contextlib
import logging
from pathlib import Path

from pysleek import ClientConfig, DirectMessageClient, PysleekError
from pysleek.messages import ChatMessage, ContactSummary


async def _ainput(prompt: str) -> str:
    return await asyncio.to_thread(input, prompt)


def _short(s: str | None, n: int = 80) -> str:
    if not s:
        return ""
    return s if len(s) <= n else (s[: n - 3] + "...")


def _print_message(client: DirectMessageClient, m: ChatMessage) -> None:
    who = "me" if m.is_from_me else "them"
    text = client.aggregator.display_content(m)
    print(f"  [{m.timestamp}] {who} ({m.scheme.value}): {_short(text, 200)}")


def _print_pubkey_qr(pubkey: str) -> None:
    with contextlib.suppress(Exception):
        import qrcode  # optional extra

        qr = qrcode.QRCode(border=1)
        qr.add_data(f"nostr:{pubkey}")
        qr.make(fit=True)
        qr.print_ascii(invert=True)


async def main() -> None:
    ap = argparse.ArgumentParser(prog="simple_cli.py")
    ap.add_argument("--keys", default="./keys", help="identity folder (default: ./keys)")
    ap.add_argument("--relay", action="append", help="relay url (repeatable)")
    ap.add_argument("--qr", action="store_true", help="print own pubkey as a QR code")
    ap.add_argument("-v", "--verbose", action="store_true")
    args = ap.parse_args()

    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.WARNING)

    config = ClientConfig()
    if args.relay:
        config.relays = list(args.relay)

    key_dir = Path(args.keys).expanduser().resolve()
    client, _keys = await DirectMessageClient.from_key_folder(key_dir, config=config)
    print("me:", client.pubkey)
    if args.qr and client.pubkey:
        _print_pubkey_qr(client.pubkey)

    async def on_contacts(contacts: list[ContactSummary]) -> None:
        unread = set(client.unread_contacts(contacts))
        if unread:
            print(f"\n[contacts] {len(unread)} conversation(s) with unread messages")

    client.on("contacts.update", on_contacts)
    client.poll_contacts()

    print(
        "\nCommands: help, contacts, open <pubkey>, send <pubkey> <text>,"
        " legacy <pubkey> <text>, read <pubkey>, readall, me, quit\n"
    )

    try:
        while True:
            try:
                line = (await _ainput("> ")).strip()
            except (EOFError, KeyboardInterrupt):
                line = "quit"

            if not line:
                continue

            cmd, *rest = line.split(" ", 1)
            cmd = cmd.lower()
            argstr = rest[0] if rest else ""

            if cmd in ("quit", "exit"):
                break

            if cmd == "help":
                print("contacts")
                print("open <pubkey>  (show and decrypt the conversation)")
                print("send <pubkey> <text>  (NIP-17 gift wrap)")
                print("legacy <pubkey> <text>  (NIP-04)")
                print("read <pubkey>")
                print("readall")
                print("me")
                print("quit")
                continue

            if cmd == "me":
                print("me:", client.pubkey)
                continue

            try:
                if cmd == "contacts":
                    await client.read_state.refresh()
                    contacts = await client.recent_contacts()
                    if not contacts:
                        print("(no conversations yet)")
                        continue
                    unread = set(client.unread_contacts(contacts))
                    for c in contacts:
                        mark = "*" if c.pubkey in unread else " "
                        print(f"{mark} {c.pubkey} last={c.timestamp}")
                    continue

                if cmd == "open":
                    contact = argstr.strip()
                    messages = await client.conversation(contact)
                    await client.decrypt_messages(messages, contact)
                    if not messages:
                        print("(no messages)")
                    for m in messages:
                        _print_message(client, m)
                    if messages:
                        await client.mark_read(contact, messages[-1].timestamp)
                    continue

                if cmd in ("send", "legacy"):
                    contact, _, text = argstr.partition(" ")
                    scheme = "nip17" if cmd == "send" else "nip04"
                    event = await client.send_message(contact, text, scheme=scheme)
                    print("sent", event.id)
                    continue

                if cmd == "read":
                    await client.mark_read(argstr.strip())
                    print("ok")
                    continue

                if cmd == "readall":
                    contacts = await client.recent_contacts()
                    await client.mark_all_read([c.pubkey for c in contacts])
                    print("ok")
                    continue
            except (PysleekError, ValueError) as e:
                print("error:", e)
                continue

            print("unknown command (try: help)")
    finally:
        await client.close()


if __name__ == "__main__":
    asyncio.run(main())
