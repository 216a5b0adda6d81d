"""Closed medical taxonomies used to sanitise classifier output.

Topic types and categories are fixed sets; anything the classifier
returns outside them is discarded by the caller.
"""

from enum import StrEnum

__all__ = [
    "Category",
    "EXTRACTION_FILTERED_TYPES",
    "MANDATORY_TYPE_CATEGORIES",
    "TopicType",
    "VALID_CATEGORIES",
    "VALID_TOPIC_TYPES",
    "canonical_category",
    "canonical_topic_type",
    "is_valid_type_category_pair",
    "mandatory_category_for",
    "should_process_topic_type",
]


class TopicType(StrEnum):
    """Medical topic types.

    ``OTHER`` and ``NON_MEDICAL`` are sentinels, never produced by a
    successful classification.
    """

    DISEASE = "Disease"
    DISORDER = "Disorder"
    SYNDROME = "Syndrome"
    SYMPTOM = "Symptom"
    DRUG = "Drug"
    PROCEDURE = "Procedure"
    DIAGNOSTIC_TEST = "Diagnostic Test"
    VACCINE = "Vaccine"
    ANATOMY = "Anatomy"
    NUTRIENT = "Nutrient"
    MENTAL_HEALTH = "Mental Health"
    LIFESTYLE = "Lifestyle"

    OTHER = "Other"
    """Needs classification (unclassifiable so far)."""

    NON_MEDICAL = "Non-Medical"


class Category(StrEnum):
    """Standard medical categories, loosely following ICD-10 chapters."""

    INFECTIOUS = "Infectious & Parasitic Diseases"
    NEOPLASMS = "Neoplasms"
    BLOOD_IMMUNE = "Blood & Immune System"
    ENDOCRINE = "Endocrine, Nutritional & Metabolic"
    MENTAL = "Mental & Behavioral"
    NERVOUS = "Nervous System"
    EYE_EAR = "Eye & Ear"
    CIRCULATORY = "Circulatory System"
    RESPIRATORY = "Respiratory System"
    DIGESTIVE = "Digestive System"
    SKIN = "Skin & Subcutaneous Tissue"
    MUSCULOSKELETAL = "Musculoskeletal & Connective Tissue"
    GENITOURINARY = "Genitourinary System"
    PREGNANCY = "Pregnancy & Childbirth"
    PERINATAL = "Perinatal & Congenital"
    SYMPTOMS_SIGNS = "Symptoms & Signs"
    INJURY = "Injury & Poisoning"
    EXTERNAL_CAUSES = "External Causes & Factors"
    PREVENTIVE = "Preventive Care & Screening"
    DRUGS = "Drugs & Medications"
    PROCEDURES = "Medical Procedures & Interventions"
    DIAGNOSTIC = "Diagnostic & Laboratory"
    NUTRITION = "Nutrition & Dietary"
    WELLNESS = "Health & Wellness"


_SENTINEL_TYPES = {TopicType.OTHER, TopicType.NON_MEDICAL}

VALID_TOPIC_TYPES: frozenset[str] = frozenset(
    t.value for t in TopicType if t not in _SENTINEL_TYPES
)
VALID_CATEGORIES: frozenset[str] = frozenset(c.value for c in Category)

MANDATORY_TYPE_CATEGORIES: dict[str, str] = {
    TopicType.DRUG: Category.DRUGS,
    TopicType.PROCEDURE: Category.PROCEDURES,
    TopicType.DIAGNOSTIC_TEST: Category.DIAGNOSTIC,
    TopicType.VACCINE: Category.PREVENTIVE,
    TopicType.NUTRIENT: Category.NUTRITION,
    TopicType.LIFESTYLE: Category.WELLNESS,
    TopicType.MENTAL_HEALTH: Category.MENTAL,
}

# Types that never go through structured extraction.
EXTRACTION_FILTERED_TYPES: frozenset[str] = frozenset(
    {
        TopicType.NON_MEDICAL,
        TopicType.OTHER,
        TopicType.ANATOMY,
        TopicType.DRUG,
        TopicType.PROCEDURE,
        TopicType.DIAGNOSTIC_TEST,
        TopicType.VACCINE,
        TopicType.NUTRIENT,
        TopicType.LIFESTYLE,
    }
)

_TYPES_BY_LOWER = {t.lower(): t for t in VALID_TOPIC_TYPES}
_CATEGORIES_BY_LOWER = {c.lower(): c for c in VALID_CATEGORIES}
_FILTERED_LOWER = {t.lower() for t in EXTRACTION_FILTERED_TYPES}
_MANDATORY_LOWER = {t.lower(): c for t, c in MANDATORY_TYPE_CATEGORIES.items()}


def canonical_topic_type(value: str | None) -> str | None:
    """Return the canonical spelling of a valid topic type, or None."""
    if not value:
        return None
    return _TYPES_BY_LOWER.get(value.strip().lower())


def canonical_category(value: str | None) -> str | None:
    """Return the canonical spelling of a valid category, or None."""
    if not value:
        return None
    return _CATEGORIES_BY_LOWER.get(value.strip().lower())


def should_process_topic_type(topic_type: str | None) -> bool:
    """Policy filter: whether a topic of this type gets structured extraction.

    An unknown (None/blank) type is processed with generic field semantics.
    """
    if topic_type is None or not topic_type.strip():
        return True
    return topic_type.strip().lower() not in _FILTERED_LOWER


def mandatory_category_for(topic_type: str | None) -> str | None:
    """Category a topic of this type must carry, if the type has one."""
    if not topic_type:
        return None
    return _MANDATORY_LOWER.get(topic_type.strip().lower())


def is_valid_type_category_pair(topic_type: str | None, category: str) -> bool:
    required = mandatory_category_for(topic_type)
    if required is None:
        return True
    return required.lower() == category.strip().lower()
