from __future__ import annotations

import json

from agent_chat.services.chat_stream import (
    cumulative_word_chunks,
    encode_sse_event,
    error_event,
    flatten_message_content,
    thinking_event,
    word_deltas,
)


def test_cumulative_word_chunks_grow_by_whole_words() -> None:
    chunks = list(cumulative_word_chunks("The answer is 42"))

    assert chunks == [
        ("The", True),
        ("The answer", True),
        ("The answer is", True),
        ("The answer is 42", False),
    ]


def test_cumulative_word_chunks_are_strict_prefixes_ending_in_full_text() -> None:
    text = "Multiple  spaces\nand newlines stay intact"
    prefixes = [prefix for prefix, _ in cumulative_word_chunks(text)]

    for shorter, longer in zip(prefixes, prefixes[1:]):
        assert longer.startswith(shorter)
        assert len(longer) > len(shorter)
    assert prefixes[-1] == text


def test_cumulative_word_chunks_of_empty_text_is_single_final_chunk() -> None:
    assert list(cumulative_word_chunks("")) == [("", False)]


def test_word_deltas_concatenate_to_original_text() -> None:
    text = "Hello  there, general  Kenobi"

    assert "".join(word_deltas(text)) == text
    assert list(word_deltas("")) == []


def test_flatten_message_content_passes_plain_text_through() -> None:
    assert flatten_message_content("Calculate 15 * 23 + 7") == "Calculate 15 * 23 + 7"


def test_flatten_message_content_joins_text_and_counts_images() -> None:
    message = [
        {"type": "text", "text": "What is in"},
        {"type": "image_url", "image_url": {"url": "data:image/png;base64,AAAA"}},
        {"type": "text", "text": "these pictures?"},
        {"type": "image_url", "image_url": "https://example.com/cat.png"},
    ]

    assert flatten_message_content(message) == "What is in these pictures? [2 image(s) attached]"


def test_encode_sse_event_frames_json_payload() -> None:
    frame = encode_sse_event({"type": "content", "content": "The answer", "partial": True})

    assert frame.startswith("data: ")
    assert frame.endswith("\n\n")
    assert json.loads(frame[len("data: ") :]) == {"type": "content", "content": "The answer", "partial": True}


def test_event_builders_match_wire_shapes() -> None:
    assert thinking_event() == {"type": "thinking", "content": "Processing your request..."}
    assert error_event("Thread not found") == {"type": "error", "content": "Thread not found"}
