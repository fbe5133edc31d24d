from __future__ import annotations


class PysleekError(Exception):
    """Base error for the pysleek library."""


class AuthenticationMissingError(PysleekError):
    """No signer/identity is available for an operation that needs one."""


class UnsupportedCipherError(PysleekError):
    """
    The signer lacks a required pairwise-cipher profile.

    `profile` is `"nip04"` or `"nip44"`.
    """

    def __init__(self, profile: str, message: str | None = None) -> None:
        super().__init__(message or f"signer does not support {profile} encryption")
        self.profile = profile


class DecryptionError(PysleekError):
    """Wrong key, malformed ciphertext or counterparty mismatch."""


class MalformedEnvelopeError(PysleekError):
    """A decrypted payload does not have the expected seal/message shape."""


class SigningError(PysleekError):
    """Signing or encrypting an outgoing event failed."""


class TransportError(PysleekError):
    """WebSocket transport-level failure."""


class RelayError(PysleekError):
    """
    A relay refused an event or reported a problem.

    Relays answer `["OK", <id>, false, "<reason>"]` or send a `NOTICE`.
    """

    def __init__(self, *, relay: str, reason: str) -> None:
        super().__init__(f"relay {relay} rejected request: {reason}")
        self.relay = relay
        self.reason = reason


class KeyStoreError(PysleekError):
    """Key file store failure."""
