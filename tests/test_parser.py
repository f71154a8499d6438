from __future__ import annotations

from datetime import datetime, timezone

from core.parser import (
    build_source_tag_pattern,
    extract_links,
    format_date,
    format_time,
    parse_message,
)


def _ts(*args: int) -> int:
    return int(datetime(*args, tzinfo=timezone.utc).timestamp())


def test_parses_reporter_content_and_links() -> None:
    text = "Reporter Name\nline one\nhttps://a.test/x line two"
    record = parse_message(text, _ts(2024, 2, 10, 12, 0))

    assert record.reporter == "Reporter Name"
    assert record.content == "line one\nhttps://a.test/x line two"
    assert record.date == "10/02/2024"
    assert record.time == "12:00"
    assert record.links == ("https://a.test/x",)
    assert record.has_media is False
    assert record.sender == ""


def test_parses_hebrew_message_and_drops_source_tag() -> None:
    text = (
        "בן גולדפריינד\n"
        "לאחר התנהגותו במשחק מול ארצות הברית, שחקן הכדורסל האמריקאי נענש בהשעיה של משחק אחד.\n"
        "צ'אט הכתבים N12"
    )
    record = parse_message(text, _ts(2024, 2, 10, 14, 30))

    assert record.reporter == "בן גולדפריינד"
    assert record.content == (
        "לאחר התנהגותו במשחק מול ארצות הברית, שחקן הכדורסל האמריקאי נענש בהשעיה של משחק אחד."
    )
    assert record.time == "14:30"
    assert record.links == ()


def test_source_tag_removed_from_any_position() -> None:
    text = "דני קושמרו\nשורה ראשונה\nקבוצת חדשות\nשורה שנייה\nNews CHAT"
    record = parse_message(text, _ts(2024, 2, 10, 15, 0))

    assert record.content == "שורה ראשונה\nשורה שנייה"


def test_message_with_only_source_tag_after_reporter_has_empty_content() -> None:
    record = parse_message("אורית פרל\nצ'אט הכתבים", _ts(2024, 2, 10, 17, 0), True)

    assert record.reporter == "אורית פרל"
    assert record.content == ""
    assert record.links == ()
    assert record.has_media is True


def test_reporter_only_message() -> None:
    record = parse_message("  Solo Reporter  ", _ts(2024, 2, 10, 18, 0))

    assert record.reporter == "Solo Reporter"
    assert record.content == ""
    assert record.links == ()


def test_empty_and_non_text_bodies_degrade_to_empty_fields() -> None:
    timestamp = _ts(2024, 2, 10, 18, 0)
    for text in ("", "   \n\t  ", None, 42):
        record = parse_message(text, timestamp, True)
        assert record.reporter == ""
        assert record.content == ""
        assert record.links == ()
        assert record.date == "10/02/2024"
        assert record.time == "18:00"
        assert record.has_media is True


def test_blank_lines_are_dropped_including_interior_ones() -> None:
    record = parse_message("R\n\nfirst\n   \n\nsecond\n", _ts(2024, 2, 10, 9, 0))

    assert record.content == "first\nsecond"


def test_windows_line_endings() -> None:
    record = parse_message("R\r\nfirst\r\nsecond", _ts(2024, 2, 10, 9, 0))

    assert record.reporter == "R"
    assert record.content == "first\nsecond"


def test_links_keep_order_and_duplicates() -> None:
    text = "R\nsee https://b.test/2 and http://a.test/1\nagain https://b.test/2"
    record = parse_message(text, _ts(2024, 2, 10, 9, 0))

    assert record.links == ("https://b.test/2", "http://a.test/1", "https://b.test/2")


def test_links_only_come_from_content_not_reporter() -> None:
    record = parse_message("https://reporter.test\nbody", _ts(2024, 2, 10, 9, 0))

    assert record.links == ()


def test_sender_is_carried_through() -> None:
    record = parse_message("R\nbody", _ts(2024, 2, 10, 9, 0), sender="12345")

    assert record.sender == "12345"


def test_custom_source_tags() -> None:
    pattern = build_source_tag_pattern(["Desk Feed"])
    record = parse_message("R\nkeep this chat line\nvia desk feed", _ts(2024, 2, 10, 9, 0), tag_pattern=pattern)

    assert record.content == "keep this chat line"


def test_no_source_tags_keeps_every_line() -> None:
    assert build_source_tag_pattern([]) is None
    record = parse_message("R\nchat line", _ts(2024, 2, 10, 9, 0), tag_pattern=None)

    assert record.content == "chat line"


def test_format_date_and_time_pad_fields() -> None:
    timestamp = _ts(2024, 1, 5, 3, 7)

    assert format_date(timestamp) == "05/01/2024"
    assert format_time(timestamp) == "03:07"


def test_format_uses_utc_across_midnight() -> None:
    timestamp = _ts(2023, 12, 31, 23, 59)

    assert format_date(timestamp) == "31/12/2023"
    assert format_time(timestamp) == "23:59"


def test_unusable_timestamps_never_raise() -> None:
    for timestamp in (None, "soon", 10**20, True):
        record = parse_message("R\nbody", timestamp)
        assert record.date == ""
        assert record.time == ""
        assert record.content == "body"


def test_extract_links_stops_at_whitespace() -> None:
    assert extract_links("a https://x.test/a?b=1\tc") == ("https://x.test/a?b=1",)
