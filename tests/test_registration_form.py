from datetime import date

import pytest
from pydantic import ValidationError

from app.schemas.registration import RegistrationForm

BASE = dict(
    name="Asha Rao",
    dob=date(1990, 4, 12),
    age=35,
    gender="female",
    nationality="Kenya",
    occupation="entrepreneur",
)


def test_minimal_form_is_valid():
    form = RegistrationForm(**BASE)

    assert form.state is None
    assert form.resolved_occupation == "entrepreneur"


def test_state_is_required_for_india():
    with pytest.raises(ValidationError, match="Please select your state"):
        RegistrationForm(**{**BASE, "nationality": "India"})

    form = RegistrationForm(**{**BASE, "nationality": "India", "state": " Goa "})
    assert form.state == "Goa"


def test_state_is_discarded_for_other_nationalities():
    form = RegistrationForm(**{**BASE, "state": "Goa"})

    assert form.state is None


def test_other_occupation_needs_a_description():
    with pytest.raises(ValidationError, match="Please specify your occupation"):
        RegistrationForm(**{**BASE, "occupation": "other", "custom_occupation": "  "})

    form = RegistrationForm(**{**BASE, "occupation": "other", "custom_occupation": "Tea taster"})
    assert form.resolved_occupation == "Tea taster"


def test_custom_occupation_ignored_unless_other():
    form = RegistrationForm(**{**BASE, "custom_occupation": "Tea taster"})

    assert form.custom_occupation is None
    assert form.resolved_occupation == "entrepreneur"


@pytest.mark.parametrize("field", ["name", "gender", "nationality", "occupation"])
def test_required_text_cannot_be_blank(field):
    with pytest.raises(ValidationError, match="This field is required"):
        RegistrationForm(**{**BASE, field: "   "})


@pytest.mark.parametrize("age", [0, 121])
def test_age_out_of_range(age):
    with pytest.raises(ValidationError):
        RegistrationForm(**{**BASE, "age": age})
