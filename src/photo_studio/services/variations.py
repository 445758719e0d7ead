"""Deterministic prompt variations for batch iterations."""

import json
import logging
import re
import unicodedata
from dataclasses import dataclass, field
from pathlib import Path
from uuid import uuid4

_logger = logging.getLogger(__name__)

DEFAULT_OUTFITS: tuple[str, ...] = (
    "wearing a tailored navy business suit",
    "wearing a leather biker jacket and jeans",
    "wearing a futuristic cyberpunk outfit with neon accents",
    "wearing medieval knight armor",
    "wearing a casual summer linen shirt",
    "wearing an elegant black evening gown",
    "wearing a superhero costume with a cape",
    "wearing traditional Japanese kimono",
    "wearing astronaut space suit",
    "wearing a cozy winter coat and scarf",
)

DEFAULT_PERIODS: tuple[str, ...] = (
    "in ancient Egypt, 1300 BC",
    "in ancient Rome, 50 BC",
    "in medieval Europe, 1200 AD",
    "in the Italian Renaissance, 1500",
    "in the Victorian era, 1880",
    "in the roaring twenties, 1925",
    "in the 1950s American diner era",
    "in the 1970s disco era",
)

DEFAULT_MODIFIERS: tuple[str, ...] = (
    "cinematic lighting",
    "watercolor painting style",
    "oil painting style",
    "studio portrait photography",
    "dramatic black and white",
    "vibrant pop art style",
)

_THEME_KEYWORDS: tuple[tuple[str, tuple[str, ...]], ...] = (
    ("outfits", ("avatar",)),
    ("periods", ("historical", "storic")),
)

_SLUG_MAX_LENGTH = 40


@dataclass(frozen=True)
class VariationCatalog:
    """Ordered variant lists keyed by theme."""

    outfits: tuple[str, ...] = DEFAULT_OUTFITS
    periods: tuple[str, ...] = DEFAULT_PERIODS
    modifiers: tuple[str, ...] = DEFAULT_MODIFIERS

    @classmethod
    def load(cls, path: str | Path | None) -> "VariationCatalog":
        """Load a catalog from JSON, falling back to built-ins per missing list."""
        if path is None:
            return cls()
        try:
            raw = json.loads(Path(path).read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            _logger.warning("Variation catalog unavailable (%s): %s", path, exc)
            return cls()
        if not isinstance(raw, dict):
            _logger.warning("Variation catalog %s is not an object", path)
            return cls()
        return cls(
            outfits=_clean_list(raw.get("outfits")) or DEFAULT_OUTFITS,
            periods=_clean_list(raw.get("periods")) or DEFAULT_PERIODS,
            modifiers=_clean_list(raw.get("modifiers")) or DEFAULT_MODIFIERS,
        )

    def theme_for(self, base_prompt: str) -> str:
        """Select the variant list name from keywords in the prompt."""
        lowered = base_prompt.lower()
        for theme, keywords in _THEME_KEYWORDS:
            if any(keyword in lowered for keyword in keywords):
                return theme
        return "modifiers"

    def variants(self, theme: str) -> tuple[str, ...]:
        return getattr(self, theme)


@dataclass
class VariationEngine:
    """Maps (base prompt, iteration) to a reproducible prompt variant."""

    catalog: VariationCatalog = field(default_factory=VariationCatalog)

    def variant_for(self, base_prompt: str, iteration: int) -> str:
        """Return the variant text selected for an iteration (1-based)."""
        if iteration < 1:
            raise ValueError("iteration must be >= 1")
        options = self.catalog.variants(self.catalog.theme_for(base_prompt))
        return options[(iteration - 1) % len(options)]

    def vary_prompt(self, base_prompt: str, iteration: int) -> str:
        """Return the varied prompt for an iteration."""
        variant = self.variant_for(base_prompt, iteration)
        return f"{base_prompt.strip()}, {variant}"

    def create_descriptive_filename(
        self,
        base_prompt: str,
        iteration: int,
        provider: str,
        extension: str = "png",
    ) -> str:
        """Build a collision-free asset name labelled with the chosen variant."""
        slug = slugify(self.variant_for(base_prompt, iteration))
        suffix = uuid4().hex[:8]
        return f"{provider}-{iteration:04d}-{slug}-{suffix}.{extension.lstrip('.')}"


def slugify(text: str) -> str:
    """Convert text to a short lowercase ASCII slug."""
    normalized = unicodedata.normalize("NFKD", text)
    ascii_text = normalized.encode("ascii", "ignore").decode("ascii").lower()
    slug = re.sub(r"[^a-z0-9]+", "-", ascii_text).strip("-")
    slug = slug[:_SLUG_MAX_LENGTH].rstrip("-")
    return slug or "image"


def _clean_list(value: object) -> tuple[str, ...]:
    if not isinstance(value, list):
        return ()
    return tuple(str(item).strip() for item in value if str(item).strip())
