from mindgraph.services.chunker import chunk_text, split_sentences


def _sentences(n):
    return "".join(f"Alpha {i} beta gamma. " for i in range(n))


def test_empty_and_whitespace_text_yield_no_chunks():
    assert chunk_text("", 100, 0.15) == []
    assert chunk_text("   \n\t ", 100, 0.15) == []


def test_short_text_is_a_single_chunk():
    text = "Cells divide. Tissues grow."
    assert chunk_text(text, 1500, 0.15) == [text]


def test_each_chunk_opens_with_the_previous_chunks_last_sentence():
    chunks = chunk_text(_sentences(6), 50, 0.15)

    assert len(chunks) > 1
    assert chunks[0] == "Alpha 0 beta gamma. Alpha 1 beta gamma."
    assert chunks[1].startswith("Alpha 1 beta gamma.")
    for previous, current in zip(chunks, chunks[1:]):
        last_sentence = previous.split(". ")[-1].rstrip(".") + "."
        assert current.startswith(last_sentence)


def test_every_sentence_is_covered():
    chunks = chunk_text(_sentences(12), 70, 0.15)
    joined = " ".join(chunks)
    for i in range(12):
        assert f"Alpha {i} beta gamma." in joined


def test_chunking_is_deterministic():
    text = _sentences(25)
    first = chunk_text(text, 90, 0.3)
    second = chunk_text(text, 90, 0.3)
    assert first == second


def test_oversized_sentence_is_not_cut_and_terminates():
    text = "This is a very long sentence. Short."
    chunks = chunk_text(text, 10, 0.15)
    assert chunks == ["This is a very long sentence.", "This is a very long sentence. Short."]


def test_text_without_terminators_is_one_chunk():
    text = "A phrase without any punctuation at all"
    assert chunk_text(text, 1500, 0.15) == [text]


def test_punctuation_only_text_falls_back_to_lines():
    assert split_sentences("...") == ["...\n"]
    assert chunk_text("?!.", 1500, 0.15) == ["?!."]
