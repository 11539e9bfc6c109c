"""Tests for listing normalization: prices, categories, brands and names."""

from decimal import Decimal

import pytest

from partcatalog.core.enums import PartCategory, StockStatus
from partcatalog.scrapers.base import RawListing
from partcatalog.scrapers.utils.normalizer import (
    CATEGORY_HINT_ALIASES,
    BrandExtractor,
    CategoryClassifier,
    PriceNormalizer,
    clean_product_name,
    contains_phrase,
    normalize_listing,
    normalize_rating,
)


# ============================================================================
# TESTS: PRICE PARSING
# ============================================================================

class TestPriceNormalizer:
    """Tests for PriceNormalizer."""

    @pytest.mark.parametrize(
        "text,expected",
        [
            ("₱2,395.00 – ₱2,495.00", Decimal("2395.00")),
            ("₱12,500.00", Decimal("12500.00")),
            ("₱12,500", Decimal("12500")),
            ("₱ 899.50", Decimal("899.50")),
            ("PHP 3,450.50", Decimal("3450.50")),
            ("1,299", Decimal("1299")),
        ],
    )
    def test_parse_price_first_amount(self, text, expected):
        assert PriceNormalizer.parse_price(text) == expected

    def test_parse_price_prefers_currency_amount(self):
        """A percentage before the price is not the price."""
        assert PriceNormalizer.parse_price("Save 10%! ₱1,299.00") == Decimal("1299.00")

    @pytest.mark.parametrize("text", ["Call for price", "", None, "₱"])
    def test_parse_price_unusable(self, text):
        assert PriceNormalizer.parse_price(text) == Decimal("0")

    def test_to_decimal(self):
        assert PriceNormalizer.to_decimal(1299) == Decimal("1299")
        assert PriceNormalizer.to_decimal(12.5) == Decimal("12.5")
        assert PriceNormalizer.to_decimal("1,299.00") == Decimal("1299.00")
        assert PriceNormalizer.to_decimal(Decimal("10")) == Decimal("10")
        assert PriceNormalizer.to_decimal(None) == Decimal("0")
        assert PriceNormalizer.to_decimal(True) == Decimal("0")
        assert PriceNormalizer.to_decimal({"amount": 5}) == Decimal("0")


# ============================================================================
# TESTS: CATEGORY CLASSIFICATION
# ============================================================================

class TestCategoryClassifier:
    """Tests for the ordered category rules."""

    @pytest.mark.parametrize(
        "name,hint",
        [
            ("Noctua NH-D15 CPU Cooler", None),
            ("Noctua NH-D15 CPU Cooler", "CPU"),
            ("Deepcool AK400 CPU Air Cooler", None),
            ("Cooler Master MasterLiquid 240L AIO", None),
            ("ARCTIC Liquid Freezer II 280 Liquid Cooler", "CPU"),
        ],
    )
    def test_cooler_never_cpu(self, name, hint):
        assert CategoryClassifier.classify(name, hint) == PartCategory.CPU_COOLER

    @pytest.mark.parametrize(
        "name,hint",
        [
            ("Lian Li GPU Support Bracket", "GPU"),
            ("Cooler Master Universal Graphics Card Holder", None),
            ("Upham VGA Bracket ARGB", "GPU"),
            ("Graphics Card Support Bracket for RTX 40 Series", "GPU"),
            ("Graphics Card Support Bracket for RTX 40 Series", None),
            ("Lian Li GPU Support Bracket for RX 7900 XTX", "GPU"),
        ],
    )
    def test_gpu_bracket_is_accessory(self, name, hint):
        assert CategoryClassifier.classify(name, hint) == PartCategory.ACCESSORY

    @pytest.mark.parametrize("hint", [None, "GPU"])
    def test_card_bundled_with_holder_is_gpu(self, hint):
        name = "ASUS ROG Strix GeForce RTX 4070 with GPU Holder"
        assert CategoryClassifier.classify(name, hint) == PartCategory.GPU
        assert CategoryClassifier.matching_rule(name, hint) == "card_with_bracket"

    def test_holder_without_card_name_is_accessory(self):
        assert CategoryClassifier.classify("Phanteks Vertical Mount with GPU Holder") == PartCategory.ACCESSORY

    @pytest.mark.parametrize(
        "name",
        [
            "AMD Wraith Prism RGB CPU Stock Cooler",
            "Cooler for AMD AM5 CPU",
            "Intel Laminar RM1 Heatsink for LGA1700 Processor",
        ],
    )
    def test_cooler_named_with_socket_or_cpu(self, name):
        assert CategoryClassifier.classify(name) == PartCategory.CPU_COOLER

    def test_cooler_brand_alone_is_not_a_cooler(self):
        assert CategoryClassifier.classify("Cooler Master MWE 650 Bronze PSU") == PartCategory.PSU

    def test_boxed_processor_with_cooler_stays_cpu(self):
        name = "AMD Ryzen 5 5600 Processor with Wraith Stealth Cooler"
        assert CategoryClassifier.classify(name, "CPU") == PartCategory.CPU

    @pytest.mark.parametrize(
        "name,hint",
        [
            ("Arctic MX-4 Thermal Paste 4g", "CPU_COOLER_AIR"),
            ("Thermal Grizzly Kryonaut Thermal Compound for CPU Cooler", None),
            ("Gelid GP-Extreme Thermal Pad 1.0mm", None),
        ],
    )
    def test_thermal_compound_is_accessory(self, name, hint):
        assert CategoryClassifier.classify(name, hint) == PartCategory.ACCESSORY

    @pytest.mark.parametrize(
        "name,hint",
        [
            ("Orico 2.5 inch SSD Enclosure USB 3.0", "SSD"),
            ("Samsung T7 External SSD 1TB", None),
            ("WD Elements External Hard Drive 2TB", "HDD"),
        ],
    )
    def test_enclosure_is_accessory(self, name, hint):
        assert CategoryClassifier.classify(name, hint) == PartCategory.ACCESSORY

    def test_cables(self):
        assert CategoryClassifier.classify("Corsair Premium Sleeved PCIe Cable") == PartCategory.ACCESSORY
        # PSU cables stay with the PSU
        assert CategoryClassifier.classify("Corsair Type 4 PSU Cable") == PartCategory.PSU

    @pytest.mark.parametrize(
        "hint,expected",
        [
            ("HDD", PartCategory.STORAGE),
            ("SSD", PartCategory.STORAGE),
            ("CPU_COOLER_AIR", PartCategory.CPU_COOLER),
            ("CPU_COOLER_AIO", PartCategory.CPU_COOLER),
            ("ACCESSORIES", PartCategory.ACCESSORY),
            ("Graphics Card", PartCategory.GPU),
            ("motherboard", PartCategory.MOTHERBOARD),
        ],
    )
    def test_hint_aliases(self, hint, expected):
        assert CategoryClassifier.classify("Model ZX-100", hint) == expected

    def test_other_is_not_a_hint(self):
        assert "OTHER" not in CATEGORY_HINT_ALIASES
        assert CategoryClassifier.classify("Kingston Fury Beast 16GB DDR5", "OTHER") == PartCategory.RAM

    @pytest.mark.parametrize(
        "name,expected",
        [
            ("Samsung 990 Pro 2TB NVMe M.2 SSD", PartCategory.STORAGE),
            ("Kingston Fury Beast 16GB DDR5 5600MHz", PartCategory.RAM),
            ("Corsair RM850x 850W 80+ Gold Power Supply", PartCategory.PSU),
            ("Lian Li UNI FAN SL120 ARGB 3-Pack", PartCategory.CASE_FAN),
            ("Arctic P12 PWM PST 120mm Case Fan", PartCategory.CASE_FAN),
            ("AMD Ryzen 7 7800X3D Processor", PartCategory.CPU),
            ("Intel Core i5-13400F", PartCategory.CPU),
            ("MSI MAG B650 Tomahawk WiFi Motherboard DDR5", PartCategory.MOTHERBOARD),
            ("Sapphire Pulse Radeon RX 7600 8GB", PartCategory.GPU),
            ("NZXT H5 Flow Mid Tower Case", PartCategory.CASE),
            ("LG UltraGear 27GP850 Gaming Monitor", PartCategory.MONITOR),
            ("Logitech G502 Hero Gaming Mouse", PartCategory.PERIPHERAL),
        ],
    )
    def test_general_rules(self, name, expected):
        assert CategoryClassifier.classify(name) == expected

    def test_hint_text_feeds_general_rules(self):
        # Not an alias, but the words still classify
        assert CategoryClassifier.classify("Corsair K70", "Gaming Keyboard") == PartCategory.PERIPHERAL

    def test_unmatched_is_other(self):
        assert CategoryClassifier.classify("Secretlab Titan Evo", "Gaming Chairs") == PartCategory.OTHER
        assert CategoryClassifier.classify("") == PartCategory.OTHER
        assert CategoryClassifier.classify(None) == PartCategory.OTHER

    def test_word_boundaries(self):
        assert contains_phrase("ddr4 ram kit", "ram")
        assert not contains_phrase("asus rog rampage vi", "ram")
        assert not contains_phrase("hdmi to displayport", "display")
        assert CategoryClassifier.classify("ASUS ROG Rampage VI Extreme Omega") == PartCategory.OTHER

    def test_matching_rule_labels(self):
        assert CategoryClassifier.matching_rule("Arctic MX-4 Thermal Paste", "CPU_COOLER_AIR") == "thermal_compound"
        assert CategoryClassifier.matching_rule("Model ZX-100", "GPU") == "hint"
        assert CategoryClassifier.matching_rule("Intel Core i9-14900K") == "cpu_family"
        assert CategoryClassifier.matching_rule("Mystery Box") is None


# ============================================================================
# TESTS: BRANDS AND NAMES
# ============================================================================

class TestBrandExtractor:
    """Tests for BrandExtractor."""

    def test_hint_used_verbatim(self):
        assert BrandExtractor.extract("ROG Strix B650", "ASUSTeK") == "ASUSTeK"

    def test_lexicon_match(self):
        assert BrandExtractor.extract("G.Skill Trident Z5 32GB") == "G.Skill"
        assert BrandExtractor.extract("be quiet! Pure Rock 2") == "be quiet!"
        assert BrandExtractor.extract("Cooler Master Hyper 212") == "Cooler Master"
        assert BrandExtractor.extract("noctua nh-u12s") == "Noctua"

    def test_blank_hint_falls_back_to_lexicon(self):
        assert BrandExtractor.extract("Corsair 4000D Airflow", "  ") == "Corsair"

    def test_unknown_brand(self):
        assert BrandExtractor.extract("Generic USB Hub") is None
        assert BrandExtractor.extract(None) is None


class TestCleanProductName:
    """Tests for clean_product_name."""

    def test_whitespace_and_symbols(self):
        assert clean_product_name("  Corsair   Vengeance™ RGB 32GB (2x16GB)  ") == "Corsair Vengeance RGB 32GB (2x16GB)"
        assert clean_product_name("Intel® Core™ i9") == "Intel Core i9"
        assert clean_product_name("Samsung 980 PRO 1TB, M.2") == "Samsung 980 PRO 1TB M.2"

    def test_keeps_allowed_punctuation(self):
        assert clean_product_name("NH-D15 chromax.black (Dual Fan)") == "NH-D15 chromax.black (Dual Fan)"

    def test_empty(self):
        assert clean_product_name("") == ""
        assert clean_product_name(None) == ""


# ============================================================================
# TESTS: NORMALIZE LISTING
# ============================================================================

class TestNormalizeListing:
    """Tests for normalize_listing."""

    def test_normalizes_all_fields(self):
        raw = RawListing(
            name="  AMD Ryzen 5 5600X   Processor ",
            price=Decimal("7495.00"),
            url="https://bermorzone.com.ph/product/amd-ryzen-5-5600x/",
            in_stock=False,
            image_url="https://bermorzone.com.ph/img/5600x.jpg",
        )

        normalized = normalize_listing(raw)

        assert normalized.name == "AMD Ryzen 5 5600X Processor"
        assert normalized.category == PartCategory.CPU
        assert normalized.brand == "AMD"
        assert normalized.price == Decimal("7495.00")
        assert normalized.url == raw.url
        assert normalized.image_url == raw.image_url
        assert normalized.stock_status == StockStatus.OUT_OF_STOCK

    def test_hints_and_optional_fields(self):
        raw = RawListing(
            name="ROG Strix B650-A Gaming WiFi",
            price=Decimal("15995"),
            url="https://ecommerce.datablitz.com.ph/products/rog-strix-b650-a",
            brand_hint="ASUS",
            category_hint="Motherboard",
            model="B650-A",
            description="AM5 ATX board",
        )

        normalized = normalize_listing(raw)

        assert normalized.category == PartCategory.MOTHERBOARD
        assert normalized.brand == "ASUS"
        assert normalized.model == "B650-A"
        assert normalized.description == "AM5 ATX board"
        assert normalized.stock_status == StockStatus.IN_STOCK

    def test_never_raises_on_garbage(self):
        raw = RawListing(name=None, price="no price", url=None)

        normalized = normalize_listing(raw)

        assert normalized.name == ""
        assert normalized.category == PartCategory.OTHER
        assert normalized.brand is None
        assert normalized.price == Decimal("0")
        assert normalized.url == ""
        assert normalized.rating is None

    def test_rating_carried_through(self):
        raw = RawListing(
            name="Deepcool AK400 CPU Air Cooler",
            price=Decimal("1850"),
            url="https://bermorzone.com.ph/product/deepcool-ak400/",
            rating=Decimal("4.5"),
        )

        assert normalize_listing(raw).rating == Decimal("4.50")


# ============================================================================
# TESTS: RATINGS
# ============================================================================

class TestNormalizeRating:
    """Tests for normalize_rating."""

    @pytest.mark.parametrize(
        "value,expected",
        [
            ("4.5", Decimal("4.50")),
            (" 5 ", Decimal("5.00")),
            (Decimal("3.667"), Decimal("3.67")),
            (4, Decimal("4.00")),
        ],
    )
    def test_valid(self, value, expected):
        assert normalize_rating(value) == expected

    @pytest.mark.parametrize("value", [None, "", "n/a", "0", "0.00", "-1", "5.5", "NaN", True])
    def test_missing_or_out_of_range(self, value):
        assert normalize_rating(value) is None
