"""Listing normalization: price parsing, category and brand classification.

Category resolution is driven by an explicit, priority-ordered rule list.
Evaluation order is:

1. SPECIFIC_CATEGORY_RULES against the product name. These catch items whose
   names contain a broader part's keyword (a "CPU Cooler" says "cpu", a
   "GPU Support Bracket" says "gpu", "Thermal Paste" is sold under cooling)
   and win over any source category hint.
2. The source category hint, when it maps to a canonical category
   (CATEGORY_HINT_ALIASES).
3. GENERAL_CATEGORY_RULES against the name plus the hint text.
4. PartCategory.OTHER.

Within each list the first matching rule wins, so more specific phrases
must stay above broader ones.
"""

import re
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from functools import lru_cache
from typing import Any, Optional, Pattern, Tuple

import structlog

from partcatalog.core.enums import PartCategory, StockStatus
from partcatalog.scrapers.base import NormalizedListing, RawListing

logger = structlog.get_logger()


@lru_cache(maxsize=1024)
def _phrase_pattern(phrase: str) -> Pattern[str]:
    # Phrase must not be glued to other letters/digits ("ram" must not hit "rampage")
    return re.compile(r"(?<![a-z0-9])" + re.escape(phrase) + r"(?![a-z0-9])")


def contains_phrase(text: str, phrase: str) -> bool:
    """Check whether a lower-cased text contains a phrase on word boundaries."""
    return _phrase_pattern(phrase).search(text) is not None


@dataclass(frozen=True)
class CategoryRule:
    """Maps any of a set of phrases to a category.

    When `requires` is set, one of those phrases must also be present.
    Any exclusion phrase vetoes the rule.
    """

    label: str
    category: PartCategory
    phrases: Tuple[str, ...]
    excludes: Tuple[str, ...] = ()
    requires: Tuple[str, ...] = ()

    def matches(self, text: str) -> bool:
        if not any(contains_phrase(text, p) for p in self.phrases):
            return False
        if self.requires and not any(contains_phrase(text, r) for r in self.requires):
            return False
        return not any(contains_phrase(text, e) for e in self.excludes)


_CARD_NAMES = ("geforce", "radeon", "rtx", "gtx", "rx")

# Boxed processors that ship with a cooler
_BUNDLED_COOLER = ("with cooler", "with stock cooler", "with wraith", "with heatsink")

SPECIFIC_CATEGORY_RULES: Tuple[CategoryRule, ...] = (
    # A card sold together with a holder is still a card
    CategoryRule(
        "card_with_bracket",
        PartCategory.GPU,
        ("with gpu holder", "with gpu bracket", "with gpu support", "with support bracket",
         "with holder", "with bracket", "with anti-sag bracket", "w/ gpu holder", "w/ bracket"),
        requires=_CARD_NAMES,
    ),
    CategoryRule(
        "thermal_compound",
        PartCategory.ACCESSORY,
        ("thermal paste", "thermal compound", "thermal pad", "thermal pads",
         "thermal grease", "thermal putty"),
    ),
    CategoryRule(
        "gpu_support_bracket",
        PartCategory.ACCESSORY,
        ("gpu bracket", "gpu support", "gpu holder", "gpu stand",
         "graphics card bracket", "graphics card support", "graphics card holder",
         "vga bracket", "vga support", "vga holder", "anti-sag", "sag bracket",
         "support bracket"),
    ),
    CategoryRule(
        "storage_enclosure",
        PartCategory.ACCESSORY,
        ("enclosure", "enclosures", "external ssd", "external hdd",
         "external hard drive", "external drive", "docking station"),
    ),
    CategoryRule(
        "cpu_cooler",
        PartCategory.CPU_COOLER,
        ("cpu cooler", "cpu coolers", "cpu cooling", "cpu fan", "processor cooler",
         "cpu air cooler", "cpu tower cooler", "cpu heatsink", "cooler for cpu",
         "aio", "water cooler", "water cooling", "liquid cooler", "liquid cooling",
         "tower cooler", "air cooler"),
        excludes=_BUNDLED_COOLER,
    ),
    CategoryRule(
        "cooler_for_processor",
        PartCategory.CPU_COOLER,
        ("cooler", "coolers", "heatsink", "heat sink"),
        requires=("cpu", "processor", "am4", "am5", "lga1700", "lga 1700", "lga1200", "lga 1200"),
        excludes=_BUNDLED_COOLER,
    ),
    CategoryRule(
        "cable",
        PartCategory.ACCESSORY,
        ("cable", "cables", "sleeved", "extension cable"),
        excludes=("psu", "power supply"),
    ),
    CategoryRule(
        "misc_accessory",
        PartCategory.ACCESSORY,
        ("adapter", "rgb strip", "led strip", "argb strip", "argb hub", "argb controller",
         "fan hub", "fan controller", "cable management", "standoff", "standoffs",
         "riser", "riser cable"),
    ),
)

GENERAL_CATEGORY_RULES: Tuple[CategoryRule, ...] = (
    CategoryRule(
        "motherboard",
        PartCategory.MOTHERBOARD,
        ("motherboard", "motherboards", "mobo", "mainboard"),
    ),
    CategoryRule(
        "cpu",
        PartCategory.CPU,
        ("cpu", "processor", "processors"),
        excludes=("cooler", "cooling", "thermal", "heatsink", "fan", "aio"),
    ),
    CategoryRule(
        "gpu",
        PartCategory.GPU,
        ("gpu", "graphics card", "video card", "geforce", "radeon", "rtx", "gtx", "rx"),
        excludes=("bracket", "support", "mount", "holder"),
    ),
    CategoryRule(
        "storage",
        PartCategory.STORAGE,
        ("ssd", "hdd", "hard drive", "hard disk", "nvme", "m.2", "solid state drive"),
        excludes=("enclosure", "external"),
    ),
    CategoryRule(
        "ram",
        PartCategory.RAM,
        ("ram", "memory", "ddr3", "ddr4", "ddr5", "dimm", "sodimm", "so-dimm"),
    ),
    CategoryRule(
        "psu",
        PartCategory.PSU,
        ("psu", "power supply", "power supplies", "80 plus", "80+"),
    ),
    CategoryRule(
        "case_fan",
        PartCategory.CASE_FAN,
        ("case fan", "case fans", "chassis fan", "pwm fan", "cooling fan",
         "intake fan", "exhaust fan", "120mm", "140mm", "200mm"),
    ),
    CategoryRule(
        "fan_or_radiator",
        PartCategory.CASE_FAN,
        ("fan", "fans", "radiator"),
    ),
    CategoryRule(
        "case",
        PartCategory.CASE,
        ("case", "chassis", "mid tower", "mid-tower", "full tower", "full-tower"),
    ),
    CategoryRule(
        "monitor",
        PartCategory.MONITOR,
        ("monitor", "monitors", "display"),
    ),
    CategoryRule(
        "peripheral",
        PartCategory.PERIPHERAL,
        ("keyboard", "mouse", "mice", "mousepad", "mouse pad", "headset", "headphones",
         "speaker", "speakers", "webcam", "microphone", "gamepad"),
    ),
    CategoryRule(
        "cpu_family",
        PartCategory.CPU,
        ("ryzen", "threadripper", "core i3", "core i5", "core i7", "core i9",
         "core ultra", "xeon", "athlon", "pentium", "celeron"),
        excludes=("cooler", "cooling", "heatsink"),
    ),
)

# Retailer category labels -> canonical category
CATEGORY_HINT_ALIASES = {
    **{c.value: c for c in PartCategory if c is not PartCategory.OTHER},
    "PROCESSOR": PartCategory.CPU,
    "PROCESSORS": PartCategory.CPU,
    "VIDEO_CARD": PartCategory.GPU,
    "VIDEO_CARDS": PartCategory.GPU,
    "GRAPHICS_CARD": PartCategory.GPU,
    "GRAPHICS_CARDS": PartCategory.GPU,
    "MEMORY": PartCategory.RAM,
    "HDD": PartCategory.STORAGE,
    "SSD": PartCategory.STORAGE,
    "POWER_SUPPLY": PartCategory.PSU,
    "CHASSIS": PartCategory.CASE,
    "CPU_COOLER_AIR": PartCategory.CPU_COOLER,
    "CPU_COOLER_AIO": PartCategory.CPU_COOLER,
    "ACCESSORIES": PartCategory.ACCESSORY,
    "PERIPHERALS": PartCategory.PERIPHERAL,
    "MONITORS": PartCategory.MONITOR,
}

KNOWN_BRANDS: Tuple[str, ...] = (
    "AMD", "Intel", "NVIDIA", "ASUS", "MSI", "Gigabyte", "ASRock",
    "Corsair", "G.Skill", "Kingston", "Samsung", "Western Digital",
    "Seagate", "EVGA", "Cooler Master", "NZXT", "Thermaltake",
    "Fractal Design", "be quiet!", "Lian Li", "Razer", "Logitech",
    "SteelSeries", "HyperX", "LG", "Dell", "BenQ", "AOC", "ViewSonic",
    "Noctua", "DeepCool", "Arctic", "Crucial", "TeamGroup", "ADATA",
    "Zotac", "Sapphire", "PowerColor", "Palit", "Seasonic",
)


class PriceNormalizer:
    """Price parsing utilities.

    Handles currency-formatted text from HTML pages and the mixed
    number/string price fields of JSON APIs.
    """

    # Amount right after a peso sign or code, e.g. "₱2,395.00" or "PHP 1,299"
    _CURRENCY_AMOUNT = re.compile(r"(?:₱|PHP|Php)\s*(\d[\d,]*(?:\.\d+)?)")
    _PLAIN_AMOUNT = re.compile(r"(\d[\d,]*(?:\.\d+)?)")

    @classmethod
    def parse_price(cls, text: Optional[str]) -> Decimal:
        """Extract the first currency-formatted amount from text.

        Range-formatted prices resolve to their first amount:
        - "₱2,395.00 – ₱2,495.00" -> 2395.00
        - "₱12,500" -> 12500
        - "Call for price" -> 0

        Args:
            text: Raw price text

        Returns:
            Decimal amount, or Decimal("0") when no amount is found.
            Zero means unusable; callers discard such listings.
        """
        if not text:
            return Decimal("0")

        match = cls._CURRENCY_AMOUNT.search(text) or cls._PLAIN_AMOUNT.search(text)
        if not match:
            return Decimal("0")

        cleaned = match.group(1).replace(",", "").rstrip(".")
        try:
            return Decimal(cleaned)
        except InvalidOperation:
            return Decimal("0")

    @classmethod
    def to_decimal(cls, value: Any) -> Decimal:
        """Coerce a JSON price field (number or string) to Decimal.

        Args:
            value: Raw field value

        Returns:
            Decimal amount, or Decimal("0") when the value is unusable
        """
        if value is None or isinstance(value, bool):
            return Decimal("0")
        if isinstance(value, (int, float)):
            try:
                return Decimal(str(value))
            except InvalidOperation:
                return Decimal("0")
        if isinstance(value, Decimal):
            return value
        if isinstance(value, str):
            return cls.parse_price(value)
        return Decimal("0")


def _resolve_hint(hint: Optional[str]) -> Optional[PartCategory]:
    if not hint:
        return None
    key = re.sub(r"[\s\-/]+", "_", hint.strip().upper())
    return CATEGORY_HINT_ALIASES.get(key)


class CategoryClassifier:
    """Keyword classification of a listing into the canonical part taxonomy."""

    @staticmethod
    def classify(name: Optional[str], hint: Optional[str] = None) -> PartCategory:
        """Resolve the canonical category for a product name.

        Args:
            name: Raw product name
            hint: Optional source category label

        Returns:
            PartCategory, OTHER when nothing matches
        """
        name_lower = (name or "").lower()

        for rule in SPECIFIC_CATEGORY_RULES:
            if rule.matches(name_lower):
                return rule.category

        hinted = _resolve_hint(hint)
        if hinted is not None:
            return hinted

        text = name_lower
        if hint:
            text = f"{name_lower} {hint.lower().replace('_', ' ')}"

        for rule in GENERAL_CATEGORY_RULES:
            if rule.matches(text):
                return rule.category

        return PartCategory.OTHER

    @staticmethod
    def matching_rule(name: Optional[str], hint: Optional[str] = None) -> Optional[str]:
        """Label of the rule that decides the category ("hint" or None for OTHER).

        Useful when debugging a surprising classification.
        """
        name_lower = (name or "").lower()
        for rule in SPECIFIC_CATEGORY_RULES:
            if rule.matches(name_lower):
                return rule.label
        if _resolve_hint(hint) is not None:
            return "hint"
        text = f"{name_lower} {hint.lower().replace('_', ' ')}" if hint else name_lower
        for rule in GENERAL_CATEGORY_RULES:
            if rule.matches(text):
                return rule.label
        return None


class BrandExtractor:
    """Manufacturer detection from a brand hint or the product name."""

    @staticmethod
    def extract(name: Optional[str], hint: Optional[str] = None) -> Optional[str]:
        """Return the hint verbatim if given, else the first known brand in the name."""
        if hint and hint.strip():
            return hint

        name_lower = (name or "").lower()
        for brand in KNOWN_BRANDS:
            if brand.lower() in name_lower:
                return brand
        return None


_MAX_RATING = Decimal("5")


def normalize_rating(value: Any) -> Optional[Decimal]:
    """Star rating out of 5, rounded to 2 places; None when missing or out of range."""
    if value is None or isinstance(value, bool):
        return None
    try:
        rating = Decimal(str(value).strip())
    except InvalidOperation:
        return None
    if not rating.is_finite() or rating <= 0 or rating > _MAX_RATING:
        return None
    return rating.quantize(Decimal("0.01"))


_DISALLOWED_NAME_CHARS = re.compile(r"[^\w\s\-().]")
_WHITESPACE = re.compile(r"\s+")


def clean_product_name(name: Optional[str]) -> str:
    """Clean a product name into a stable cross-run matching key.

    Trims, collapses whitespace and strips characters outside
    word characters, whitespace, hyphen, parentheses and period.
    """
    if not name:
        return ""
    cleaned = _WHITESPACE.sub(" ", name.strip())
    cleaned = _DISALLOWED_NAME_CHARS.sub("", cleaned)
    return _WHITESPACE.sub(" ", cleaned).strip()


def normalize_listing(raw: RawListing) -> NormalizedListing:
    """Classify and clean a raw listing.

    Never raises for malformed field values: unknown categories fall back
    to OTHER, unknown brands to None and unparseable prices to 0.

    Args:
        raw: Listing as extracted by an adapter

    Returns:
        NormalizedListing ready for the catalog merger
    """
    name = raw.name if isinstance(raw.name, str) else str(raw.name or "")
    hint = raw.category_hint if isinstance(raw.category_hint, str) else None
    brand_hint = raw.brand_hint if isinstance(raw.brand_hint, str) else None

    stock_status = StockStatus.IN_STOCK if raw.in_stock else StockStatus.OUT_OF_STOCK

    return NormalizedListing(
        name=clean_product_name(name),
        category=CategoryClassifier.classify(name, hint),
        brand=BrandExtractor.extract(name, brand_hint),
        model=raw.model or None,
        description=raw.description or None,
        image_url=raw.image_url or None,
        price=PriceNormalizer.to_decimal(raw.price),
        url=raw.url or "",
        stock_status=stock_status,
        rating=normalize_rating(raw.rating),
    )
