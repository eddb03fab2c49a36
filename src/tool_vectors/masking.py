"""Secret masking for log output."""


def mask_string(
    text: str,
    visible_start: int = 4,
    visible_end: int = 4,
    mask_char: str = "*",
) -> str:
    """
    Mask the middle of a string, keeping a few characters visible.

    Args:
        text: Value to mask (API keys, tokens)
        visible_start: Characters left visible at the start
        visible_end: Characters left visible at the end
        mask_char: Replacement character

    Returns:
        Masked string of the same length. Strings too short to keep
        both visible ends are masked completely.
    """
    if not text:
        return ""
    if len(text) <= visible_start + visible_end:
        return mask_char * len(text)

    start = text[:visible_start]
    end = text[-visible_end:] if visible_end > 0 else ""
    hidden = mask_char * (len(text) - visible_start - visible_end)
    return start + hidden + end
