"""Calendar-year timeline for a projection."""

from __future__ import annotations

from dataclasses import dataclass

from retireplan.config.schema import HouseholdProfile
from retireplan.models.longevity import default_plan_to_age
from retireplan.utils.exceptions import InvalidInputs


@dataclass(frozen=True, slots=True)
class Timeline:
    """Yearly time grid derived from birth years and plan-to ages.

    Attributes:
        start_year: First projected year (the explicit as-of year).
        end_year: Last projected year, inclusive.
        birth_years: Birth year per member, primary first.
        final_years: Last planned year per member (birth year + plan-to age).
    """

    start_year: int
    end_year: int
    birth_years: tuple[int, ...]
    final_years: tuple[int, ...]

    @classmethod
    def from_profile(cls, profile: HouseholdProfile, as_of_year: int) -> Timeline:
        """Build the timeline, validating ages against the as-of year.

        Raises:
            InvalidInputs: If a member is born after ``as_of_year`` or plans to
                an age already passed.
        """
        birth_years: list[int] = []
        final_years: list[int] = []
        for person in profile.household.members:
            birth_year = person.birth_year
            if birth_year > as_of_year:
                raise InvalidInputs(
                    f"birth date {person.birth_date.isoformat()} is after plan start {as_of_year}"
                )
            current_age = as_of_year - birth_year
            plan_to_age = person.plan_to_age
            if plan_to_age is None:
                plan_to_age = default_plan_to_age(birth_year, as_of_year, person.sex)
            if plan_to_age < current_age:
                raise InvalidInputs(
                    f"plan-to age {plan_to_age} is below current age {current_age}"
                )
            birth_years.append(birth_year)
            final_years.append(birth_year + plan_to_age)
        return cls(
            start_year=as_of_year,
            end_year=max(final_years),
            birth_years=tuple(birth_years),
            final_years=tuple(final_years),
        )

    @property
    def n_years(self) -> int:
        return self.end_year - self.start_year + 1

    @property
    def years(self) -> range:
        return range(self.start_year, self.end_year + 1)

    def age_at(self, year: int, member: int = 0) -> int:
        """Age a member attains during ``year``."""
        return year - self.birth_years[member]

    def is_alive(self, year: int, member: int = 0) -> bool:
        """Whether a member is still within their planned lifetime in ``year``."""
        return member < len(self.final_years) and year <= self.final_years[member]

    def first_death_year(self) -> int | None:
        """Final year of the first member to die (None for one-person plans)."""
        if len(self.final_years) < 2:
            return None
        return min(self.final_years)
