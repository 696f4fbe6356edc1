import pytest

from vmixember.bridge.protocol import (
    ActivityFlag,
    TallyState,
    TallyVector,
    Unrecognized,
    encode_command,
    interpret_line,
)
from vmixember.errors import MalformedLineError


def test_tally_digit_mapping():
    fact = interpret_line("TALLY OK 0123x")
    assert isinstance(fact, TallyVector)
    assert fact.states == (
        TallyState.OFF,
        TallyState.PROGRAM,
        TallyState.PREVIEW,
        TallyState.OFF,
        TallyState.OFF,
    )


def test_tally_truncated_to_input_count():
    fact = interpret_line("TALLY OK " + "1" * 40)
    assert len(fact) == 32
    fact = interpret_line("TALLY OK 2222", input_count=2)
    assert fact.states == (TallyState.PREVIEW, TallyState.PREVIEW)


def test_tally_without_digits_is_empty():
    assert interpret_line("TALLY OK") == TallyVector(())


@pytest.mark.parametrize(
    "line,category,active",
    [
        ("ACTS OK Recording 1", "Recording", True),
        ("ACTS OK MultiCorder 0", "MultiCorder", False),
        ("ACTS OK Streaming 1", "Streaming", True),
        ("ACTS OK Streaming 2", "Streaming", False),
        ("ACTS OK Input 1 extra", "Input", True),
    ],
)
def test_activity_lines(line, category, active):
    assert interpret_line(line) == ActivityFlag(category, active)


def test_activity_with_three_tokens_is_malformed():
    with pytest.raises(MalformedLineError) as info:
        interpret_line("ACTS OK Recording")
    assert info.value.line == "ACTS OK Recording"
    assert isinstance(info.value, ValueError)


@pytest.mark.parametrize(
    "line",
    ["SUBSCRIBE OK TALLY", "FUNCTION OK Completed", "", "tally ok 111", "XML 123"],
)
def test_other_lines_are_unrecognized(line):
    assert interpret_line(line) == Unrecognized(line)


def test_encode_command_appends_crlf():
    assert encode_command("FUNCTION STINGER2") == b"FUNCTION STINGER2\r\n"
