"""
Execution proof for signed licenses.

The proof binds the canonical terms hash to every party's signature so
a later change to the terms invalidates it.
"""
import hashlib
from typing import Iterable

from licenses.domain.metadata import SignatureRecord


def signature_proof(terms_hash: str, signatures: Iterable[SignatureRecord]) -> str:
    """SHA-256 of the terms hash followed by the sorted signature tokens."""
    tokens = sorted(s.proof_token() for s in signatures)
    return hashlib.sha256(f"{terms_hash}:{'|'.join(tokens)}".encode()).hexdigest()


def verify_proof(proof: str, terms_hash: str, signatures: Iterable[SignatureRecord]) -> bool:
    signatures = list(signatures)
    if not proof or not signatures:
        return False
    if any(s.terms_hash != terms_hash for s in signatures):
        return False
    return proof == signature_proof(terms_hash, signatures)
