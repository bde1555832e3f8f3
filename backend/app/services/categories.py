"""Per-category FHIR search configuration.

Maps each list-backed category to the FHIR resource type it reads and the
search parameters the server should receive. Whether a category is sorted
by clinical date is configuration: some servers reject ``_sort=-date`` for
certain resource types, and the unsorted set comes from settings.
"""

from collections.abc import Iterable
from dataclasses import dataclass, field

from app.schemas.sections import Category

DATE_SORT = "-date"


@dataclass(frozen=True)
class CategoryConfig:
    """How to fetch one category of clinical resources for a patient.

    Args:
        category: The category this config serves.
        resource_type: FHIR resource type searched.
        sort_by_date: Whether to request newest-first ordering.
        includes: ``_include`` values fetched alongside the primary resources.
    """

    category: Category
    resource_type: str
    sort_by_date: bool = True
    includes: tuple[str, ...] = field(default_factory=tuple)

    def search_params(self, patient_id: str) -> list[tuple[str, str]]:
        """Build the query string pairs for a patient-scoped search."""
        params = [("patient", patient_id)]
        if self.sort_by_date:
            params.append(("_sort", DATE_SORT))
        for include in self.includes:
            params.append(("_include", include))
        return params


# Summary is not a list fetch and has no search config
_RESOURCE_TYPES: dict[Category, str] = {
    Category.IMMUNIZATION: "Immunization",
    Category.MEDICATION: "MedicationRequest",
    Category.ALLERGY: "AllergyIntolerance",
    Category.PROCEDURE: "Procedure",
    Category.CONDITION: "Condition",
    Category.APPOINTMENT: "Appointment",
}

_INCLUDES: dict[Category, tuple[str, ...]] = {
    Category.APPOINTMENT: ("Appointment:actor",),
}


def build_category_configs(
    unsorted_categories: Iterable[str | Category] = (),
) -> dict[Category, CategoryConfig]:
    """Build the config table for every list-backed category.

    Args:
        unsorted_categories: Categories fetched without a date sort.

    Returns:
        Dict keyed by Category (summary excluded).

    Raises:
        ValueError: If an unsorted entry is not a known list category.
    """
    unsorted = set()
    for value in unsorted_categories:
        category = Category(value)
        if category not in _RESOURCE_TYPES:
            raise ValueError(f"{category.value} is not a list-backed category")
        unsorted.add(category)

    return {
        category: CategoryConfig(
            category=category,
            resource_type=resource_type,
            sort_by_date=category not in unsorted,
            includes=_INCLUDES.get(category, ()),
        )
        for category, resource_type in _RESOURCE_TYPES.items()
    }
