import pytest

from backend.services.tariffs.schemas import EditableRow, TariffSavePayload, TariffTierPayload
from backend.services.tariffs.validation import (
    TariffValidationError,
    has_invalid_rows,
    invalid_row_keys,
    is_row_invalid,
    validate_save_payload,
)


def _editable(key="r1", duration=None, cost=None, placeholder=False):
    return EditableRow(key=key, order=1, duration_hours=duration, cost=cost, is_placeholder=placeholder)


def _tier(order, duration=1.0, cost=1.0):
    return TariffTierPayload(order=order, duration_hours=duration, cost=cost)


# -------------------------
# row predicate
# -------------------------

@pytest.mark.parametrize(
    "duration, cost, invalid",
    [
        (24, 1.5, False),
        (24, 0, False),
        (None, None, False),
        (24, None, True),
        (None, 1.5, True),
        (0, 1.5, True),
        (-1, 1.5, True),
    ],
)
def test_is_row_invalid(duration, cost, invalid):
    assert is_row_invalid(_editable(duration=duration, cost=cost)) is invalid


def test_placeholder_is_never_invalid():
    assert is_row_invalid(_editable(duration=5, placeholder=True)) is False


def test_has_invalid_rows_and_keys():
    rows = {
        "facility": [_editable("a", 1, 1), _editable("b", 2, None)],
        "section:1": [_editable("c", None, 3), _editable("p", placeholder=True)],
    }

    assert has_invalid_rows(rows)
    assert invalid_row_keys(rows) == ["b", "c"]
    assert not has_invalid_rows({"facility": [_editable("a", 1, 1)]})


# -------------------------
# save payload
# -------------------------

class TestValidateSavePayload:

    def test_accepts_valid_payload(self):
        payload = TariffSavePayload(tiers={
            "facility": [_tier(1), _tier(2, 48, 0)],
            "section:3": [],
            "bikeType:12": [_tier(1)],
        })
        validate_save_payload(payload)

    def test_accepts_flags_only(self):
        validate_save_payload(TariffSavePayload(uniform_across_sections=False))

    def test_rejects_empty_payload(self):
        with pytest.raises(TariffValidationError, match="no changes"):
            validate_save_payload(TariffSavePayload())

    def test_rejects_unknown_scope_key(self):
        with pytest.raises(TariffValidationError, match="Unknown scope key"):
            validate_save_payload(TariffSavePayload(tiers={"zone:1": [_tier(1)]}))

    def test_rejects_too_many_tiers(self):
        payload = TariffSavePayload(tiers={"facility": [_tier(i) for i in range(1, 6)]})

        with pytest.raises(TariffValidationError, match="At most 4"):
            validate_save_payload(payload)

        validate_save_payload(payload, max_tiers=5)

    def test_rejects_gaps_in_order(self):
        with pytest.raises(TariffValidationError, match="order"):
            validate_save_payload(TariffSavePayload(tiers={"facility": [_tier(1), _tier(3)]}))

    def test_rejects_half_filled_row(self):
        with pytest.raises(TariffValidationError, match="both"):
            validate_save_payload(TariffSavePayload(tiers={"facility": [_tier(1, 24, None)]}))

    def test_allows_fully_empty_row(self):
        validate_save_payload(TariffSavePayload(tiers={"facility": [_tier(1, None, None)]}))

    def test_rejects_non_positive_duration(self):
        with pytest.raises(TariffValidationError, match="durationHours must be > 0"):
            validate_save_payload(TariffSavePayload(tiers={"facility": [_tier(1, 0, 1)]}))

    def test_rejects_negative_cost(self):
        with pytest.raises(TariffValidationError, match="cost must be >= 0"):
            validate_save_payload(TariffSavePayload(tiers={"facility": [_tier(1, 1, -0.5)]}))

    def test_error_is_a_value_error(self):
        assert issubclass(TariffValidationError, ValueError)
