"""Segment Prompts - position-aware generation prompts for each image segment."""

from typing import Optional

FORMAT_LABELS = {
    "9:16": "9:16 vertical format",
    "16:9": "16:9 horizontal format",
    "1:1": "1:1 square format",
}

OPENING_PROMPT = (
    "Opening segment with attention-grabbing introduction. "
    "Elegant zoom in and smooth camera movement focusing on main product features."
)
FEATURE_PROMPT = (
    "Feature highlight segment showing product details with slow, professional camera pan. "
    "Reveal key benefit with smooth movement."
)
DEMONSTRATION_PROMPT = (
    "Product demonstration segment with elegant transitions and professional lighting. "
    "Show the product in use with premium camera work."
)
CLOSING_PROMPT = (
    "Final segment with strong call-to-action. "
    "Dynamic camera movement emphasizing product benefits and brand value. Cinematic closing shot."
)


def position_prompt(index: int, total: int) -> str:
    """
    Pick the camera/narrative direction for a segment by its position.

    The first half of the middle segments highlight features, the second half demonstrate use.
    A single segment is treated as the opening.
    """
    if index == 0:
        return OPENING_PROMPT
    if index == total - 1:
        return CLOSING_PROMPT
    total_middle = total - 2
    if index <= total_middle / 2:
        return FEATURE_PROMPT
    return DEMONSTRATION_PROMPT


def build_segment_prompt(
    index: int,
    total: int,
    product_name: str,
    description: Optional[str] = None,
    audience: Optional[str] = None,
    aspect_ratio: str = "9:16",
) -> str:
    """
    Build the image-to-video prompt for segment `index` of `total`.

    Args:
        index: 0-based segment position
        total: Number of segments in the run
        product_name: Product being advertised
        description: Optional product description
        audience: Optional target audience
        aspect_ratio: Output aspect ratio named in the style guidance

    Returns:
        Prompt string
    """
    if total <= 0 or not 0 <= index < total:
        raise ValueError(f"Segment index {index} out of range for {total} segments")

    base_prompt = f"Professional {product_name} video advertisement"
    if description:
        base_prompt += f" showcasing {description}"
    if audience:
        base_prompt += f" for {audience}"

    format_label = FORMAT_LABELS.get(aspect_ratio, f"{aspect_ratio} format")
    style_prompt = (
        "High-end commercial quality with cinematic color grading, premium lighting, "
        f"and professional camera movement. {format_label} optimized for social media."
    )

    return f"{base_prompt}. {position_prompt(index, total)} {style_prompt}"


def build_all_prompts(
    count: int,
    product_name: str,
    description: Optional[str] = None,
    audience: Optional[str] = None,
    aspect_ratio: str = "9:16",
) -> list[str]:
    return [
        build_segment_prompt(i, count, product_name, description, audience, aspect_ratio)
        for i in range(count)
    ]
