from birthday_tracker.models import BirthRecord, merge_record, new_identifier, record_from_row, record_to_row


def test_merge_record_keeps_identifier_and_replaces_the_rest() -> None:
    existing = BirthRecord(
        identifier="abc",
        name="Mum",
        day=5,
        month=5,
        year=1985,
        timezone="Asia/Tokyo",
        photo_url="https://example.com/mum.jpg",
    )
    changes = BirthRecord(identifier="other", name="Mother", day=6, month=5, year=None, timezone="UTC")

    merged = merge_record(existing, changes)

    assert merged == BirthRecord(identifier="abc", name="Mother", day=6, month=5, year=None, timezone="UTC")


def test_row_conversion_maps_photo_url() -> None:
    record = BirthRecord(identifier="abc", name="Mum", day=5, month=5, year=None, timezone="Asia/Tokyo")

    row = record_to_row(record)

    assert row["photo_url"] is None
    assert row["year"] is None
    assert record_from_row(row) == record
    assert record_from_row({**row, "photo_url": ""}).photo_url is None


def test_new_identifier_is_unique() -> None:
    assert len({new_identifier() for _ in range(100)}) == 100
