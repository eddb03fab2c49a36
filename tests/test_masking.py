"""Unit Tests for mask_string"""

from src.tool_vectors.masking import mask_string


def test_masks_middle():
    assert mask_string("sk-abcdefgh1234") == "sk-a*******1234"


def test_keeps_length():
    secret = "sk-proj-0123456789abcdef"
    assert len(mask_string(secret)) == len(secret)


def test_short_string_fully_masked():
    assert mask_string("abcd1234") == "********"
    assert mask_string("abc") == "***"


def test_empty_string():
    assert mask_string("") == ""


def test_custom_visibility_and_char():
    assert mask_string("0123456789", visible_start=2, visible_end=0, mask_char="#") == "01########"
