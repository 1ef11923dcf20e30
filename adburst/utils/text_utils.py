"""Text utility functions for voiceover scripts."""


def estimate_spoken_duration(text: str, words_per_second: float = 2.5) -> float:
    """
    Estimate the spoken duration of text in seconds.

    Args:
        text: Text to estimate duration for.
        words_per_second: Average speaking rate (default 2.5 words/s, i.e. 150 WPM).

    Returns:
        Estimated duration in seconds.
    """
    word_count = len(text.split())
    return word_count / words_per_second


def script_word_budget(target_seconds: float, words_per_second: float = 2.5) -> tuple[int, int]:
    """
    Word range a voiceover script should land in for a video of target_seconds.

    The upper bound is the speaking-rate budget; the lower bound leaves room for pauses.

    Returns:
        (min_words, max_words)
    """
    max_words = max(5, int(target_seconds * words_per_second))
    min_words = max(3, int(max_words * 0.75))
    return min_words, max_words


def truncate_to_target_duration(text: str, target_seconds: float, words_per_second: float = 2.5) -> str:
    """
    Truncate text to approximately match a target spoken duration.

    Args:
        text: Text to truncate.
        target_seconds: Target duration in seconds.
        words_per_second: Average speaking rate.

    Returns:
        Truncated text that should be close to target duration.
    """
    target_words = int(target_seconds * words_per_second)
    words = text.split()
    if len(words) <= target_words:
        return text
    truncated_text = " ".join(words[:target_words])
    # Prefer ending on a sentence boundary
    last_boundary = max(truncated_text.rfind("."), truncated_text.rfind("!"), truncated_text.rfind("?"))
    if last_boundary > len(truncated_text) * 0.7:
        truncated_text = truncated_text[: last_boundary + 1]
    return truncated_text
