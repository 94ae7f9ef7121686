"""Tests for process-wide configuration."""
from datetime import timedelta, timezone

import pytest

from typedstore import (
    DateCaster,
    HstoreCodec,
    JSONCodec,
    Store,
    get_date_formats,
    get_default_codec,
    get_default_timezone,
    reset_config,
    set_date_formats,
    set_datetime_formats,
    get_datetime_formats,
    set_default_codec,
    set_default_timezone,
)
from typedstore.config import DEFAULT_DATE_FORMATS


class TestTimezone:

    def test_default_is_utc(self):
        assert get_default_timezone() is timezone.utc

    def test_set_and_reset(self):
        tz = timezone(timedelta(hours=-5))
        set_default_timezone(tz)
        assert get_default_timezone() is tz
        reset_config()
        assert get_default_timezone() is timezone.utc

    def test_rejects_non_tzinfo(self):
        with pytest.raises(TypeError):
            set_default_timezone("UTC")


class TestFormats:

    def test_date_formats(self):
        assert get_date_formats() == DEFAULT_DATE_FORMATS
        set_date_formats(["%Y%m%d"])
        assert get_date_formats() == ("%Y%m%d",)
        assert DateCaster().cast("20190717").isoformat() == "2019-07-17"

    def test_datetime_formats(self):
        set_datetime_formats(["%Y%m%d %H%M"])
        assert get_datetime_formats() == ("%Y%m%d %H%M",)


class TestDefaultCodec:

    def test_json_by_default(self):
        assert isinstance(get_default_codec(), JSONCodec)
        assert isinstance(Store().codec, JSONCodec)

    def test_custom_default_codec(self):
        set_default_codec(HstoreCodec())
        assert isinstance(Store().codec, HstoreCodec)

    def test_reset_with_codec(self):
        codec = HstoreCodec()
        reset_config(default_codec=codec)
        assert get_default_codec() is codec
