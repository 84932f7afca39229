"""Domain enumerations for strong typing & validation.

The three taxonomies are closed: every value stored in ``tasks`` and every
value returned by the classifier must be one of these labels.
"""
from enum import Enum
from typing import Optional, Tuple, Type


class TaskType(str, Enum):
    FOCUS = "Focus"
    FOLLOW_UP = "Follow up"
    SAVE_FOR_LATER = "Save for later"


class TaskCategory(str, Enum):
    MY_QUESTIONS = "My questions"
    QUESTIONS_FOR_ME = "Questions for me"
    MY_ASKS = "My asks"
    ASKS_OF_ME = "Asks of me"
    RECOMMENDATIONS = "Recommendations"
    FINDS = "Finds"
    IDEAS = "Ideas"
    RULES_PROMISES = "Rules / promises"
    TASK = "Task"
    NIGHT_OUT = "Night out"
    DATE_NIGHT = "Date night"
    FAMILY_DAY = "Family day"


class TaskSubcategory(str, Enum):
    HOUSE = "House"
    CAR = "Car"
    BOAT = "Boat"
    TRAVEL = "Travel"
    BOOKS = "Books"
    MOVIES = "Movies"
    SHOWS = "Shows"
    MUSIC = "Music"
    EATS = "Eats"
    PODCASTS = "Podcasts"
    ACTIVITIES = "Activities"
    APPEARANCE = "Appearance"
    CAREER_NETWORK = "Career / network"
    RULES = "Rules"
    FAMILY_FRIENDS = "Family / friends"
    GIFTS = "Gifts"
    FINANCES = "Finances"
    PHILANTHROPY = "Philanthropy"
    SIDE_QUESTS = "Side quests"


class TaxonomyKind(str, Enum):
    TYPE = "type"
    CATEGORY = "category"
    SUBCATEGORY = "subcategory"


_ENUM_BY_KIND = {
    TaxonomyKind.TYPE: TaskType,
    TaxonomyKind.CATEGORY: TaskCategory,
    TaxonomyKind.SUBCATEGORY: TaskSubcategory,
}

# Frozen label tuples in declaration order (used verbatim in prompts and UI filters)
TASK_TYPES: Tuple[str, ...] = tuple(m.value for m in TaskType)
TASK_CATEGORIES: Tuple[str, ...] = tuple(m.value for m in TaskCategory)
TASK_SUBCATEGORIES: Tuple[str, ...] = tuple(m.value for m in TaskSubcategory)

_VALUES_BY_KIND = {
    TaxonomyKind.TYPE: TASK_TYPES,
    TaxonomyKind.CATEGORY: TASK_CATEGORIES,
    TaxonomyKind.SUBCATEGORY: TASK_SUBCATEGORIES,
}


def enum_for(kind: TaxonomyKind) -> Type[Enum]:
    return _ENUM_BY_KIND[TaxonomyKind(kind)]


def values(kind: TaxonomyKind) -> Tuple[str, ...]:
    """Ordered labels of one taxonomy."""
    return _VALUES_BY_KIND[TaxonomyKind(kind)]


def is_valid(kind: TaxonomyKind, value) -> bool:
    if isinstance(value, Enum):
        value = value.value
    if not isinstance(value, str):
        return False
    return value in _VALUES_BY_KIND[TaxonomyKind(kind)]


def is_valid_type(value) -> bool:
    return is_valid(TaxonomyKind.TYPE, value)


def is_valid_category(value) -> bool:
    return is_valid(TaxonomyKind.CATEGORY, value)


def is_valid_subcategory(value) -> bool:
    return is_valid(TaxonomyKind.SUBCATEGORY, value)


def coerce(kind: TaxonomyKind, value) -> Optional[Enum]:
    """Return the enum member for ``value`` or None when it is not a member."""
    if not is_valid(kind, value):
        return None
    return enum_for(kind)(value.value if isinstance(value, Enum) else value)
