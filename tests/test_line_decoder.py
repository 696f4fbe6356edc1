import pytest

from vmixember.bridge.protocol import LineDecoder
from vmixember.errors import LineTooLongError

STREAM = b"TALLY OK 0120\r\nACTS OK Recording 1\r\n\r\nVERSION OK 27.0.0.49\r\n"
EXPECTED = ["TALLY OK 0120", "ACTS OK Recording 1", "", "VERSION OK 27.0.0.49"]


def test_single_chunk_multiple_lines():
    decoder = LineDecoder()
    assert decoder.feed(STREAM) == EXPECTED
    assert decoder.pending == 0


def test_partial_line_is_kept_until_terminated():
    decoder = LineDecoder()
    assert decoder.feed(b"TALLY OK 01") == []
    assert decoder.pending == len(b"TALLY OK 01")
    assert decoder.feed(b"20\r\nACTS") == ["TALLY OK 0120"]
    assert decoder.feed(b" OK Streaming 0\r\n") == ["ACTS OK Streaming 0"]


def test_terminator_split_between_chunks():
    decoder = LineDecoder()
    assert decoder.feed(b"SUBSCRIBE OK TALLY\r") == []
    assert decoder.feed(b"\nTALLY OK 1\r\n") == ["SUBSCRIBE OK TALLY", "TALLY OK 1"]


@pytest.mark.parametrize("size", [1, 2, 3, 5, 7, 16])
def test_fixed_size_chunking_matches_unsplit_stream(size):
    decoder = LineDecoder()
    lines = []
    for i in range(0, len(STREAM), size):
        lines.extend(decoder.feed(STREAM[i:i + size]))
    assert lines == EXPECTED


def test_every_two_way_split_matches_unsplit_stream():
    for cut in range(len(STREAM) + 1):
        decoder = LineDecoder()
        lines = decoder.feed(STREAM[:cut]) + decoder.feed(STREAM[cut:])
        assert lines == EXPECTED, f"split at {cut}"


def test_bare_lf_is_not_a_terminator():
    decoder = LineDecoder()
    assert decoder.feed(b"A\nB\r\n") == ["A\nB"]


def test_reset_drops_partial_line():
    decoder = LineDecoder()
    decoder.feed(b"TALLY OK 11")
    decoder.reset()
    assert decoder.feed(b"2\r\n") == ["2"]


def test_invalid_utf8_is_replaced():
    decoder = LineDecoder()
    (line,) = decoder.feed(b"OK \xff\r\n")
    assert line.startswith("OK ")


def test_unbounded_by_default():
    decoder = LineDecoder()
    assert decoder.feed(b"x" * 100_000) == []
    assert decoder.pending == 100_000


def test_max_buffer_guard():
    decoder = LineDecoder(max_buffer=8)
    assert decoder.feed(b"1234\r\n12345678") == ["1234"]
    with pytest.raises(LineTooLongError) as info:
        decoder.feed(b"9")
    assert info.value.size == 9
    assert decoder.pending == 0
