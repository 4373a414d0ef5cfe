from collaboration.infrastructure.yjs_adapter import (
    apply_update,
    create_doc,
    encode_state_as_update,
    get_text,
    merge_updates,
    replay,
)


def _type(doc, text: str) -> None:
    content = doc["content"]
    with doc.transaction():
        content += text


def test_create_doc():
    doc = create_doc()
    assert get_text(doc) == ""


def test_encode_and_restore():
    doc1 = create_doc()
    _type(doc1, "Some text")

    update = encode_state_as_update(doc1)
    assert isinstance(update, bytes)
    assert len(update) > 0

    doc2 = create_doc()
    apply_update(doc2, update)
    assert get_text(doc2) == "Some text"


def test_replay_incremental_fragments():
    author = create_doc()
    fragments = []
    for word in ["Hello", ",", " world"]:
        before = author.get_state()
        _type(author, word)
        fragments.append(author.get_update(before))

    assert get_text(replay(fragments)) == "Hello, world"


def test_replay_is_repeatable():
    author = create_doc()
    fragments = []
    for word in ["one", " two", " three"]:
        before = author.get_state()
        _type(author, word)
        fragments.append(author.get_update(before))

    first = get_text(replay(fragments))
    second = get_text(replay(fragments))
    assert first == second == "one two three"


def test_merge_updates():
    doc1 = create_doc()
    _type(doc1, "Hello")
    update1 = encode_state_as_update(doc1)

    _type(doc1, " World")
    update2 = encode_state_as_update(doc1)

    merged = merge_updates([update1, update2])
    doc_restored = create_doc()
    apply_update(doc_restored, merged)
    assert get_text(doc_restored) == "Hello World"


def test_concurrent_edits_merge():
    """Two independent docs editing concurrently converge."""
    doc_a = create_doc()
    doc_b = create_doc()

    _type(doc_a, "A")
    update_a = encode_state_as_update(doc_a)

    _type(doc_b, "B")
    update_b = encode_state_as_update(doc_b)

    apply_update(doc_a, update_b)
    apply_update(doc_b, update_a)

    text_a = get_text(doc_a)
    assert text_a == get_text(doc_b)
    assert "A" in text_a
    assert "B" in text_a
