"""Tests for feed form decoding."""

import pytest

from reddit_feeds.web.admin.forms import decode_form, parse_item_id

from conftest import CHANNELS


def test_valid_create_form():
    form, errors = decode_form({"subreddit": " gifs ", "channel": "c1"}, CHANNELS)

    assert errors == []
    assert form.subreddit == " gifs "
    assert form.channel == "c1"
    assert form.id == 0


def test_empty_channel_is_allowed():
    form, errors = decode_form({"subreddit": "aww", "channel": ""}, CHANNELS)

    assert errors == []
    assert form.channel == ""


def test_missing_subreddit_is_rejected():
    form, errors = decode_form({"channel": "c1"}, CHANNELS)

    assert form is None
    assert errors == ["subreddit: must be between 1 and 100 characters"]


def test_subreddit_length_bounds():
    ok, _ = decode_form({"subreddit": "x" * 100}, CHANNELS)
    too_long, errors = decode_form({"subreddit": "x" * 101}, CHANNELS)

    assert ok is not None
    assert too_long is None
    assert errors == ["subreddit: must be between 1 and 100 characters"]


def test_channel_must_belong_to_guild():
    form, errors = decode_form({"subreddit": "aww", "channel": "elsewhere"}, CHANNELS)

    assert form is None
    assert errors == ["channel: unknown channel"]


def test_id_is_parsed():
    form, errors = decode_form({"subreddit": "aww", "channel": "c2", "id": "7"}, CHANNELS)

    assert errors == []
    assert form.id == 7


def test_blank_id_falls_back_to_default():
    form, errors = decode_form({"subreddit": "aww", "id": ""}, CHANNELS)

    assert errors == []
    assert form.id == 0


def test_every_failed_field_is_reported():
    form, errors = decode_form({"subreddit": "", "channel": "nope", "id": "x"}, CHANNELS)

    assert form is None
    assert len(errors) == 3
    assert errors[1] == "channel: unknown channel"
    assert errors[2].startswith("id: ")


def test_id_must_be_plain_decimal():
    for raw in ("1_0", "+3", " 3", "3 ", "٣", "0x1"):
        form, errors = decode_form({"subreddit": "aww", "id": raw}, CHANNELS)

        assert form is None, raw
        assert errors == [f"id: invalid id {raw!r}"]


def test_id_must_fit_in_32_bits():
    form, errors = decode_form({"subreddit": "aww", "id": "2147483648"}, CHANNELS)
    assert form is None
    assert errors == ["id: id '2147483648' out of range"]

    form, errors = decode_form({"subreddit": "aww", "id": "-2147483648"}, CHANNELS)
    assert form.id == -2147483648


def test_parse_item_id_rejects_loose_numbers():
    assert parse_item_id("42") == 42
    assert parse_item_id("-7") == -7
    with pytest.raises(ValueError):
        parse_item_id("1_0")
    with pytest.raises(ValueError):
        parse_item_id("+3")
