"""Patient demographics forwarded to the analysis service."""

from dataclasses import dataclass
from datetime import date


@dataclass(frozen=True)
class PatientDemographics:
    """Age and sex used to normalize volumetric results."""

    age: int
    sex: str
    name: str | None = None


def compute_age(birth_date: date, today: date | None = None) -> int:
    """Age in whole years, counting a birthday only once it has passed."""
    today = today or date.today()
    age = today.year - birth_date.year
    if (today.month, today.day) < (birth_date.month, birth_date.day):
        age -= 1
    return age


def resolve_demographics(
    birth_date: date | None,
    sex: str | None,
    name: str | None,
    default_age: int,
    default_sex: str,
    today: date | None = None,
) -> PatientDemographics:
    """Build demographics from a patient row, falling back to defaults."""
    age = compute_age(birth_date, today) if birth_date else default_age
    return PatientDemographics(age=age, sex=sex or default_sex, name=name)
