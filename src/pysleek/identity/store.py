from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Any

from ..crypto.curve import DefaultSecp256k1Provider
from ..crypto.keys import KeyPair
from ..exceptions import KeyStoreError
from ..util import json as nostrjson
from .signer import LocalSigner

_FILE_LOCKS: dict[Path, asyncio.Lock] = {}

KEY_FILE_NAME = "identity.json"


def _lock_for(path: Path) -> asyncio.Lock:
    lock = _FILE_LOCKS.get(path)
    if lock is None:
        lock = asyncio.Lock()
        _FILE_LOCKS[path] = lock
    return lock


async def _read_text(path: Path) -> str:
    return await asyncio.to_thread(path.read_text, "utf-8")


async def _write_text(path: Path, data: str) -> None:
    await asyncio.to_thread(path.write_text, data, "utf-8")


def _key_pair_from_dict(d: Any) -> KeyPair:
    if not isinstance(d, dict) or not isinstance(d.get("secret_key"), str):
        raise TypeError("identity file did not contain a secret_key")
    keys = DefaultSecp256k1Provider().keypair_from_secret(bytes.fromhex(d["secret_key"]))
    pubkey = d.get("pubkey")
    if pubkey is not None and pubkey != keys.pubkey:
        raise ValueError("stored pubkey does not match secret_key")
    return keys


class KeyFileStore:
    """
    Local identity persisted as `identity.json` inside a folder.

    The file holds the hex secret key and, for convenience, the public key.
    A new identity is generated on first load.
    """

    def __init__(self, folder: Path, keys: KeyPair) -> None:
        self.folder = folder
        self.keys = keys

    @classmethod
    async def load(cls, folder: str | Path) -> KeyFileStore:
        p = Path(folder).expanduser()
        await asyncio.to_thread(p.mkdir, parents=True, exist_ok=True)

        key_path = p / KEY_FILE_NAME
        if key_path.exists():
            try:
                async with _lock_for(key_path):
                    raw = await _read_text(key_path)
                keys = _key_pair_from_dict(nostrjson.loads(raw))
            except Exception as e:
                raise KeyStoreError(f"failed to load identity from {key_path}: {e}") from e
            return cls(p, keys)

        store = cls(p, DefaultSecp256k1Provider().generate_keypair())
        await store.save()
        return store

    async def save(self) -> None:
        key_path = self.folder / KEY_FILE_NAME
        data = {"pubkey": self.keys.pubkey, "secret_key": self.keys.private.hex()}
        async with _lock_for(key_path):
            await _write_text(key_path, nostrjson.dumps(data, indent=2))

    def signer(self, **kwargs: bool) -> LocalSigner:
        return LocalSigner(self.keys.private, **kwargs)
