"""Identifier helpers."""

from __future__ import annotations

import uuid


def generate_message_id() -> str:
    """Return a client-chosen message identifier, stable across pending and confirmed."""
    return str(uuid.uuid4())


def generate_attachment_id() -> str:
    return str(uuid.uuid4())


def generate_document_id() -> str:
    """Return an identifier for documents whose id the store assigns."""
    return uuid.uuid4().hex
