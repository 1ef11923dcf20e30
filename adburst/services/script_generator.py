"""Script Generator - voiceover ad copy sized to the planned video length."""

import re
from typing import Any, Optional

from adburst.core.config import Settings
from adburst.core.errors import ScriptGenerationError
from adburst.utils.text_utils import script_word_budget, truncate_to_target_duration

SYSTEM_PROMPT = (
    "You are an award-winning advertising copywriter. You write short, compelling voiceover "
    "scripts for vertical social video ads that drive audience engagement and action."
)


class ScriptGenerator:
    """Generates the voiceover script with Anthropic, OpenAI, or a local template."""

    def __init__(self, settings: Settings, logger: Any):
        """
        Initialize script generator.

        Args:
            settings: Application settings
            logger: Logger instance
        """
        self.settings = settings
        self.logger = logger
        self.provider = self._detect_provider()
        self._client = None

    def _detect_provider(self) -> str:
        """Detect which LLM provider to use based on available credentials."""
        if self.settings.anthropic_api_key:
            return "anthropic"
        elif self.settings.openai_api_key:
            return "openai"
        else:
            return "template"

    def build_prompt(
        self,
        product_name: str,
        description: Optional[str],
        audience: Optional[str],
        duration_seconds: float,
    ) -> str:
        min_words, max_words = script_word_budget(duration_seconds, self.settings.words_per_second)
        lines = [
            f"Write a concise, engaging {duration_seconds:g}-second advertisement voiceover script "
            f"({min_words}-{max_words} words) for:",
            "",
            f"Product: {product_name}",
        ]
        if description:
            lines.append(f"Description: {description}")
        if audience:
            lines.append(f"Target Audience: {audience}")
        lines += [
            "",
            "The script should:",
            "- Start with a compelling hook",
            "- Clearly communicate the main benefit",
            "- End with a call-to-action",
            "- Be conversational and natural-sounding when read aloud",
            f"- Be no more than {max_words} words so it fits the video",
            "",
            "Return ONLY the script text, nothing else.",
        ]
        return "\n".join(lines)

    def generate(
        self,
        product_name: str,
        description: Optional[str] = None,
        audience: Optional[str] = None,
        duration_seconds: float = 20.0,
    ) -> str:
        """
        Generate a voiceover script whose spoken length fits duration_seconds.

        Args:
            product_name: Product being advertised
            description: Optional product description
            audience: Optional target audience
            duration_seconds: Planned video duration

        Returns:
            Script text

        Raises:
            ScriptGenerationError: If generation fails or returns nothing
        """
        if not product_name or not product_name.strip():
            raise ScriptGenerationError("Product name cannot be empty")

        self.logger.info(f"Generating {duration_seconds:g}s voiceover script using {self.provider} provider...")

        try:
            if self.provider == "anthropic":
                raw = self._generate_anthropic(self.build_prompt(product_name, description, audience, duration_seconds))
            elif self.provider == "openai":
                raw = self._generate_openai(self.build_prompt(product_name, description, audience, duration_seconds))
            else:
                raw = self._generate_template(product_name, description, audience)
        except ScriptGenerationError:
            raise
        except Exception as e:
            raise ScriptGenerationError(f"{self.provider} script generation failed: {e}") from e

        script = truncate_to_target_duration(clean_script(raw), duration_seconds, self.settings.words_per_second)
        if not script:
            raise ScriptGenerationError(f"{self.provider} returned an empty script")

        self.logger.info(f"Script generated ({len(script.split())} words)")
        return script

    def _get_client(self):
        """Get or create the LLM client for the detected provider."""
        if self._client is None:
            if self.provider == "anthropic":
                from anthropic import Anthropic

                self._client = Anthropic(api_key=self.settings.anthropic_api_key)
            else:
                from openai import OpenAI

                self._client = OpenAI(api_key=self.settings.openai_api_key)
        return self._client

    def _generate_anthropic(self, prompt: str) -> str:
        client = self._get_client()
        response = client.messages.create(
            model=self.settings.anthropic_model,
            system=SYSTEM_PROMPT,
            max_tokens=1024,
            messages=[{"role": "user", "content": prompt}],
        )
        return "".join(block.text for block in response.content if getattr(block, "type", "") == "text")

    def _generate_openai(self, prompt: str) -> str:
        client = self._get_client()
        response = client.chat.completions.create(
            model=self.settings.openai_model,
            messages=[
                {"role": "system", "content": SYSTEM_PROMPT},
                {"role": "user", "content": prompt},
            ],
            temperature=0.8,
        )
        return response.choices[0].message.content or ""

    def _generate_template(self, product_name: str, description: Optional[str], audience: Optional[str]) -> str:
        self.logger.warning("No LLM configured - using template script")
        sentences = [f"Meet {product_name}."]
        if description:
            sentences.append(f"{description.strip().rstrip('.')}.")
        if audience:
            sentences.append(f"Made for {audience.strip().rstrip('.')}.")
        sentences.append(f"Try {product_name} today.")
        return " ".join(sentences)


def clean_script(text: str) -> str:
    """Strip labels, stage directions and wrapping quotes an LLM may add around the script."""
    text = text.strip()
    text = re.sub(r"^(script|voiceover|voice-over)\s*:\s*", "", text, flags=re.IGNORECASE)
    text = re.sub(r"\[[^\]]*\]|\([^)]*\)", "", text)
    text = text.strip().strip('"“”').strip()
    return re.sub(r"\s+", " ", text)
