from pathlib import Path

import pytest

from django_reunion.config_loader import load_tier_config


def test_load_tier_config_defaults_kind_and_slug(tmp_path):
    config_file = tmp_path / "tiers.toml"
    config_file.write_text("""[[tiers]]
name = "Keiki (4-10)"
price_cents = 2500
age_min = 4
age_max = 10

[[tiers]]
name = "Reunion T-Shirt (Adult)"
kind = "apparel"
price_cents = 2500
""")

    tiers = load_tier_config(config_file)

    assert tiers[0]["kind"] == "admission"
    assert tiers[0]["slug"] == "keiki-4-10"
    assert tiers[1]["kind"] == "apparel"
    assert tiers[1]["slug"] == "reunion-t-shirt-adult"


def test_load_tier_config_keeps_explicit_slug(tmp_path):
    config_file = tmp_path / "tiers.toml"
    config_file.write_text("""[[tiers]]
name = "General"
slug = "general-11-plus"
price_cents = 3500
""")

    assert load_tier_config(config_file)[0]["slug"] == "general-11-plus"


def test_load_tier_config_rejects_duplicate_generated_slugs(tmp_path):
    config_file = tmp_path / "tiers.toml"
    config_file.write_text("""[[tiers]]
name = "General"
price_cents = 3500

[[tiers]]
name = "General"
price_cents = 4000
""")

    with pytest.raises(ValueError, match="duplicate slugs: general"):
        load_tier_config(config_file)


def test_load_tier_config_file_not_found(tmp_path):
    with pytest.raises(FileNotFoundError, match="Tier config file not found"):
        load_tier_config(tmp_path / "does_not_exist.toml")


def test_load_tier_config_invalid_toml(tmp_path):
    config_file = tmp_path / "tiers.toml"
    config_file.write_text("this is [[[not valid toml")

    with pytest.raises(ValueError, match="Invalid TOML in"):
        load_tier_config(config_file)


def test_load_tier_config_missing_tiers(tmp_path):
    config_file = tmp_path / "tiers.toml"
    config_file.write_text('title = "Reunion"\n')

    with pytest.raises(ValueError, match=r"Missing required \[\[tiers\]\]"):
        load_tier_config(config_file)


def test_load_tier_config_missing_required_field(tmp_path):
    config_file = tmp_path / "tiers.toml"
    config_file.write_text("""[[tiers]]
name = "General"
""")

    with pytest.raises(ValueError, match="missing required fields: price_cents"):
        load_tier_config(config_file)


def test_load_tier_config_rejects_non_table_entry(tmp_path):
    config_file = tmp_path / "tiers.toml"
    config_file.write_text("tiers = [1, 2]\n")

    with pytest.raises(TypeError, match="must be a mapping"):
        load_tier_config(config_file)


def test_load_tier_config_rejects_unknown_kind(tmp_path):
    config_file = tmp_path / "tiers.toml"
    config_file.write_text("""[[tiers]]
name = "Raffle"
kind = "raffle"
price_cents = 500
""")

    with pytest.raises(ValueError, match="kind must be one of"):
        load_tier_config(config_file)


def test_load_tier_config_rejects_negative_price(tmp_path):
    config_file = tmp_path / "tiers.toml"
    config_file.write_text("""[[tiers]]
name = "General"
price_cents = -1
""")

    with pytest.raises(ValueError, match="price_cents must be a non-negative integer"):
        load_tier_config(config_file)


def test_load_tier_config_rejects_inverted_age_range(tmp_path):
    config_file = tmp_path / "tiers.toml"
    config_file.write_text("""[[tiers]]
name = "Backwards"
price_cents = 1000
age_min = 12
age_max = 4
""")

    with pytest.raises(ValueError, match="age_min"):
        load_tier_config(config_file)


def test_example_catalog_loads():
    path = Path(__file__).resolve().parent.parent / "examples" / "tiers.example.toml"
    tiers = load_tier_config(path)

    assert {tier["slug"] for tier in tiers} >= {"reunion-t-shirt-adult-2500", "reunion-t-shirt-youth-1500"}
