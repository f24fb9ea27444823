"""Integration tests for the ensure_ticket_tiers management command."""

from io import StringIO

import pytest
from django.core.management import CommandError, call_command

from django_reunion.registration.models import TicketTier

_CATALOG = """\
[[tiers]]
name = "Keiki (0-3)"
price_cents = 0
age_min = 0
age_max = 3
position = 1

[[tiers]]
name = "General (11+)"
slug = "general"
price_cents = 3500
age_min = 11
position = 3

[[tiers]]
name = "Reunion T-Shirt (Adult)"
slug = "reunion-t-shirt-adult-2500"
kind = "apparel"
price_cents = 2500
inventory = 120
"""


@pytest.fixture
def catalog(tmp_path):
    path = tmp_path / "tiers.toml"
    path.write_text(_CATALOG)
    return path


def _run(*args):
    out = StringIO()
    call_command("ensure_ticket_tiers", *args, stdout=out)
    return out.getvalue()


@pytest.mark.integration
@pytest.mark.django_db
class TestEnsureTicketTiers:
    def test_creates_tiers(self, catalog):
        output = _run(str(catalog))

        assert "Done: 3 created, 0 updated." in output
        assert "Created tier: Keiki (0-3)" in output
        infant = TicketTier.objects.get(slug="keiki-0-3")
        assert infant.kind == TicketTier.Kind.ADMISSION
        assert (infant.age_min, infant.age_max) == (0, 3)
        shirt = TicketTier.objects.get(slug="reunion-t-shirt-adult-2500")
        assert shirt.kind == TicketTier.Kind.APPAREL
        assert shirt.inventory == 120

    def test_rerun_updates_in_place(self, catalog):
        _run(str(catalog))
        TicketTier.objects.filter(slug="general").update(price_cents=9999, description="local note")

        output = _run(str(catalog))

        assert "Done: 0 created, 3 updated." in output
        general = TicketTier.objects.get(slug="general")
        assert general.price_cents == 3500
        assert general.description == "local note"
        assert TicketTier.objects.count() == 3

    def test_dry_run_changes_nothing(self, catalog):
        output = _run(str(catalog), "--dry-run")

        assert "Would create tier: General (11+) (general)" in output
        assert not TicketTier.objects.exists()

    def test_missing_file_is_a_command_error(self, tmp_path):
        with pytest.raises(CommandError, match="not found"):
            _run(str(tmp_path / "nope.toml"))

    def test_invalid_catalog_is_a_command_error(self, tmp_path):
        path = tmp_path / "tiers.toml"
        path.write_text('[[tiers]]\nname = "Broken"\n')

        with pytest.raises(CommandError, match="price_cents"):
            _run(str(path))

    def test_model_validation_errors_roll_back(self, tmp_path):
        path = tmp_path / "tiers.toml"
        path.write_text(
            '[[tiers]]\nname = "Fine"\nprice_cents = 100\n\n'
            '[[tiers]]\nname = "Bad Currency"\nprice_cents = 100\ncurrency = "dollars"\n'
        )

        with pytest.raises(CommandError, match="Invalid tier"):
            _run(str(path))

        assert not TicketTier.objects.exists()
