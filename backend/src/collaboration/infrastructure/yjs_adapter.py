from collections.abc import Iterable

from pycrdt import Doc, Text


def create_doc() -> Doc:
    doc = Doc()
    doc["content"] = Text()
    return doc


def apply_update(doc: Doc, update: bytes) -> None:
    doc.apply_update(update)


def encode_state_as_update(doc: Doc) -> bytes:
    return doc.get_update()


def get_text(doc: Doc) -> str:
    return str(doc["content"])


def replay(fragments: Iterable[bytes]) -> Doc:
    """Rebuild a document by applying fragments, in order, to a fresh doc."""
    doc = create_doc()
    for fragment in fragments:
        apply_update(doc, fragment)
    return doc


def merge_updates(updates: list[bytes]) -> bytes:
    """Collapse several updates into one equivalent state update."""
    return encode_state_as_update(replay(updates))
