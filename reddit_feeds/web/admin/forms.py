"""Form decoding for the subreddit feed views."""

from __future__ import annotations

import re
from typing import Any, Iterable, List, Mapping, Optional, Tuple

from pydantic import BaseModel, ConfigDict, ValidationError, ValidationInfo, field_validator

from reddit_feeds.web.admin.discord import GuildChannel

SUBREDDIT_MIN_LENGTH = 1
SUBREDDIT_MAX_LENGTH = 100

FORM_FIELDS = ("subreddit", "channel", "id")

ITEM_ID_PATTERN = re.compile(r"-?[0-9]+")
ITEM_ID_MIN = -(2 ** 31)
ITEM_ID_MAX = 2 ** 31 - 1


def parse_item_id(value: Any) -> int:
    """Parse a feed id given as plain decimal digits within the 32-bit range.

    Raises:
        ValueError: If the value is not such a number
    """
    if isinstance(value, int) and not isinstance(value, bool):
        item_id = value
    elif isinstance(value, str) and ITEM_ID_PATTERN.fullmatch(value):
        item_id = int(value)
    else:
        raise ValueError(f"invalid id {value!r}")

    if not ITEM_ID_MIN <= item_id <= ITEM_ID_MAX:
        raise ValueError(f"id {value!r} out of range")
    return item_id


class WatchItemForm(BaseModel):
    """Submitted feed form.

    ``subreddit`` keeps the raw submitted value; views trim it. Channel
    validation needs the active guild's channel ids passed as validation
    context under ``channel_ids``.
    """

    model_config = ConfigDict(validate_default=True)

    subreddit: str = ""
    channel: str = ""
    id: int = 0

    @field_validator("id", mode="before")
    @classmethod
    def check_id(cls, value: Any) -> int:
        return parse_item_id(value)

    @field_validator("subreddit")
    @classmethod
    def check_subreddit_length(cls, value: str) -> str:
        length = len(value.strip())
        if length < SUBREDDIT_MIN_LENGTH or length > SUBREDDIT_MAX_LENGTH:
            raise ValueError(
                f"must be between {SUBREDDIT_MIN_LENGTH} and {SUBREDDIT_MAX_LENGTH} characters"
            )
        return value

    @field_validator("channel")
    @classmethod
    def check_channel(cls, value: str, info: ValidationInfo) -> str:
        value = value.strip()
        if not value:
            return value
        channel_ids = (info.context or {}).get("channel_ids", set())
        if value not in channel_ids:
            raise ValueError("unknown channel")
        return value


def _format_error(error: Mapping[str, Any]) -> str:
    field = ".".join(str(part) for part in error["loc"]) or "form"
    if error["type"] == "value_error":
        message = str(error["ctx"]["error"])
    else:
        message = error["msg"]
    return f"{field}: {message}"


def decode_form(
    data: Mapping[str, Any],
    channels: Iterable[GuildChannel]
) -> Tuple[Optional[WatchItemForm], List[str]]:
    """Validate submitted form data.

    Returns:
        The bound form, or None together with a message per failed field
    """
    values = {}
    for key in FORM_FIELDS:
        value = data.get(key)
        if value is None or (key == "id" and value == ""):
            continue
        values[key] = value

    try:
        form = WatchItemForm.model_validate(
            values,
            context={"channel_ids": {ch.id for ch in channels}}
        )
    except ValidationError as e:
        return None, [_format_error(error) for error in e.errors()]

    return form, []
