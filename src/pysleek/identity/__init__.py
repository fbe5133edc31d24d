from __future__ import annotations

from .signer import CipherProfile, IdentitySigner, LocalPairwiseCipher, LocalSigner, PairwiseCipher
from .store import KeyFileStore

__all__ = [
    "CipherProfile",
    "IdentitySigner",
    "KeyFileStore",
    "LocalPairwiseCipher",
    "LocalSigner",
    "PairwiseCipher",
]
