"""
Tests for tweet URL handling.
"""

import pytest

from stream_control.utils.tweet_renderer import extract_tweet_id


@pytest.mark.parametrize("url,expected", [
    ("https://twitter.com/someone/status/1234567890", "1234567890"),
    ("https://x.com/someone/status/42?s=20", "42"),
    ("https://www.twitter.com/someone/status/7", "7"),
    ("https://twitter.com/someone", None),
    ("https://example.com/someone/status/1", None),
    ("", None),
])
def test_extract_tweet_id(url, expected):
    assert extract_tweet_id(url) == expected
