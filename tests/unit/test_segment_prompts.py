"""Tests for segment prompt building."""

import pytest

from adburst.services.segment_prompts import (
    CLOSING_PROMPT,
    DEMONSTRATION_PROMPT,
    FEATURE_PROMPT,
    OPENING_PROMPT,
    build_all_prompts,
    build_segment_prompt,
    position_prompt,
)


def test_first_and_last_positions():
    assert position_prompt(0, 3) == OPENING_PROMPT
    assert position_prompt(2, 3) == CLOSING_PROMPT
    assert position_prompt(1, 3) == FEATURE_PROMPT


def test_single_segment_is_an_opening():
    assert position_prompt(0, 1) == OPENING_PROMPT


def test_two_segments_have_no_middle():
    assert [position_prompt(i, 2) for i in range(2)] == [OPENING_PROMPT, CLOSING_PROMPT]


def test_middle_segments_split_between_features_and_demonstration():
    """Test the first half of the middles highlight features, the rest demonstrate."""
    prompts = [position_prompt(i, 5) for i in range(5)]
    assert prompts == [OPENING_PROMPT, FEATURE_PROMPT, DEMONSTRATION_PROMPT, DEMONSTRATION_PROMPT, CLOSING_PROMPT]

    prompts = [position_prompt(i, 4) for i in range(4)]
    assert prompts == [OPENING_PROMPT, FEATURE_PROMPT, DEMONSTRATION_PROMPT, CLOSING_PROMPT]


def test_prompt_includes_brief_and_format():
    prompt = build_segment_prompt(
        0, 3, "AeroMug", description="a self-heating travel mug", audience="commuters", aspect_ratio="9:16"
    )

    assert prompt.startswith("Professional AeroMug video advertisement showcasing a self-heating travel mug for commuters.")
    assert OPENING_PROMPT in prompt
    assert "9:16 vertical format" in prompt


def test_prompt_without_optional_fields():
    prompt = build_segment_prompt(1, 2, "AeroMug", aspect_ratio="1:1")

    assert prompt.startswith("Professional AeroMug video advertisement.")
    assert "showcasing" not in prompt
    assert "1:1 square format" in prompt


def test_out_of_range_index_raises():
    with pytest.raises(ValueError):
        build_segment_prompt(3, 3, "AeroMug")


def test_build_all_prompts_one_per_segment():
    prompts = build_all_prompts(3, "AeroMug")
    assert len(prompts) == 3
    assert CLOSING_PROMPT in prompts[-1]
