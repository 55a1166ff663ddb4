"""
Validation engine: per-entity structural, range and enumeration checks.

Each validator takes a candidate field mapping and raises ValidationError
with the code of the first violated rule. Fields are checked in a fixed
order. Validators never touch storage and never look at the caller.
"""

import math
from collections.abc import Mapping
from decimal import Decimal
from typing import Any

from crowdfund.core.errors import ValidationError
from crowdfund.domain.enums import (
    ApplicationValidationErrorCode,
    CategoryValidationErrorCode,
    ImageValidationErrorCode,
    ProjectStatus,
    ProjectValidationErrorCode,
    TaskValidationErrorCode,
    UserGender,
    UserRole,
    UserValidationErrorCode,
)

MIN_NAME_LENGTH = 3
MIN_PASSWORD_LENGTH = 8
MAX_SUPPORTER_GOAL = 1_000_000_000
# money columns are NUMERIC(13, 2)
MAX_AMOUNT = Decimal("100000000000")
AMOUNT_STEP = Decimal("0.01")
IMAGE_EXTENSIONS = frozenset({"png", "jpg", "jpeg"})


def _is_number(value: Any) -> bool:
    # bool is an int subclass but never a valid amount or coordinate
    if isinstance(value, bool):
        return False
    if isinstance(value, Decimal):
        return value.is_finite()
    if isinstance(value, float):
        return math.isfinite(value)
    return isinstance(value, int)


def _as_decimal(value: int | float | Decimal) -> Decimal:
    # str() keeps the shortest float repr, so 10.55 stays 10.55
    if isinstance(value, float):
        return Decimal(str(value))
    return Decimal(value)


def _check_amount(
    value: Any,
    field: str,
    *,
    not_number: Any,
    negative: Any,
    too_large: Any,
    too_precise: Any,
) -> None:
    if not _is_number(value):
        raise ValidationError(f"{field} must be a number", not_number)
    if value < 0:
        raise ValidationError(f"{field} must be at least zero", negative)
    amount = _as_decimal(value)
    if amount >= MAX_AMOUNT:
        raise ValidationError(f"{field} must be below {MAX_AMOUNT:,.0f}", too_large)
    if amount != amount.quantize(AMOUNT_STEP):
        raise ValidationError(f"{field} must have at most two decimal places", too_precise)


def _is_integer(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _member_of(value: Any, enum_cls: type) -> bool:
    return value in {member.value for member in enum_cls}


def _check_text(
    candidate: Mapping[str, Any],
    field: str,
    *,
    not_string: Any,
    too_short: Any = None,
    min_length: int = MIN_NAME_LENGTH,
) -> None:
    value = candidate.get(field)
    if not isinstance(value, str):
        raise ValidationError(f"{field} must be a string", not_string)
    if too_short is not None and len(value) < min_length:
        raise ValidationError(
            f"{field} must be at least {min_length} characters long.", too_short
        )


def validate_user(candidate: Mapping[str, Any]) -> None:
    """
    Validate a user candidate.

    The password is only checked when the candidate carries one, so a merged
    update that does not touch the password is not re-validated against the
    stored hash.

    Raises:
        ValidationError: With a UserValidationErrorCode
    """
    if "password" in candidate:
        _check_text(
            candidate,
            "password",
            not_string=UserValidationErrorCode.PASSWORD_NOT_STRING,
            too_short=UserValidationErrorCode.PASSWORD_TOO_SHORT,
            min_length=MIN_PASSWORD_LENGTH,
        )

    _check_text(
        candidate,
        "mail",
        not_string=UserValidationErrorCode.MAIL_NOT_STRING,
        too_short=UserValidationErrorCode.MAIL_TOO_SHORT,
    )
    _check_text(
        candidate,
        "fullname",
        not_string=UserValidationErrorCode.FULLNAME_NOT_STRING,
        too_short=UserValidationErrorCode.FULLNAME_TOO_SHORT,
    )

    if not _member_of(candidate.get("role"), UserRole):
        raise ValidationError(
            f"Unknown role: {candidate.get('role')!r}", UserValidationErrorCode.ROLE_INVALID
        )

    if not _member_of(candidate.get("gender"), UserGender):
        raise ValidationError(
            f"Unknown gender: {candidate.get('gender')!r}",
            UserValidationErrorCode.GENDER_INVALID,
        )


def validate_project(candidate: Mapping[str, Any]) -> None:
    """Validate a project candidate (raises ValidationError with a ProjectValidationErrorCode)."""
    _check_text(
        candidate,
        "title",
        not_string=ProjectValidationErrorCode.TITLE_NOT_STRING,
        too_short=ProjectValidationErrorCode.TITLE_TOO_SHORT,
    )
    _check_text(
        candidate, "description", not_string=ProjectValidationErrorCode.DESCRIPTION_NOT_STRING
    )

    if not _member_of(candidate.get("status"), ProjectStatus):
        raise ValidationError(
            f"Unknown status: {candidate.get('status')!r}",
            ProjectValidationErrorCode.STATUS_INVALID,
        )

    _check_amount(
        candidate.get("money_goal"),
        "money_goal",
        not_number=ProjectValidationErrorCode.MONEY_GOAL_NOT_NUMBER,
        negative=ProjectValidationErrorCode.MONEY_GOAL_NEGATIVE,
        too_large=ProjectValidationErrorCode.MONEY_GOAL_TOO_LARGE,
        too_precise=ProjectValidationErrorCode.MONEY_GOAL_TOO_PRECISE,
    )
    _check_amount(
        candidate.get("money_pledged", 0),
        "money_pledged",
        not_number=ProjectValidationErrorCode.MONEY_PLEDGED_NOT_NUMBER,
        negative=ProjectValidationErrorCode.MONEY_PLEDGED_NEGATIVE,
        too_large=ProjectValidationErrorCode.MONEY_PLEDGED_TOO_LARGE,
        too_precise=ProjectValidationErrorCode.MONEY_PLEDGED_TOO_PRECISE,
    )

    lat = candidate.get("lat")
    if not _is_number(lat):
        raise ValidationError("lat must be a number", ProjectValidationErrorCode.LAT_NOT_NUMBER)
    if lat < -90 or lat > 90:
        raise ValidationError(
            "lat must be between -90 and 90", ProjectValidationErrorCode.LAT_OUT_OF_RANGE
        )

    lon = candidate.get("lon")
    if not _is_number(lon):
        raise ValidationError("lon must be a number", ProjectValidationErrorCode.LON_NOT_NUMBER)
    if lon < -180 or lon > 180:
        raise ValidationError(
            "lon must be between -180 and 180", ProjectValidationErrorCode.LON_OUT_OF_RANGE
        )

    if not isinstance(candidate.get("creator_id"), str):
        raise ValidationError(
            "creator_id must reference a user", ProjectValidationErrorCode.CREATOR_INVALID
        )

    category_id = candidate.get("category_id")
    if category_id is not None and not isinstance(category_id, str):
        raise ValidationError(
            "category_id must reference a category", ProjectValidationErrorCode.CATEGORY_INVALID
        )


def validate_category(candidate: Mapping[str, Any]) -> None:
    _check_text(
        candidate,
        "name",
        not_string=CategoryValidationErrorCode.NAME_NOT_STRING,
        too_short=CategoryValidationErrorCode.NAME_TOO_SHORT,
    )

    image_id = candidate.get("image_id")
    if image_id is not None and not isinstance(image_id, str):
        raise ValidationError(
            "image_id must reference an image", CategoryValidationErrorCode.IMAGE_INVALID
        )


def validate_task(candidate: Mapping[str, Any]) -> None:
    _check_text(
        candidate,
        "title",
        not_string=TaskValidationErrorCode.TITLE_NOT_STRING,
        too_short=TaskValidationErrorCode.TITLE_TOO_SHORT,
    )
    _check_text(
        candidate, "description", not_string=TaskValidationErrorCode.DESCRIPTION_NOT_STRING
    )

    supporter_goal = candidate.get("supporter_goal")
    if not _is_integer(supporter_goal):
        raise ValidationError(
            "supporter_goal must be an integer",
            TaskValidationErrorCode.SUPPORTER_GOAL_NOT_NUMBER,
        )
    if supporter_goal < 1 or supporter_goal > MAX_SUPPORTER_GOAL:
        raise ValidationError(
            f"supporter_goal must be between 1 and {MAX_SUPPORTER_GOAL}",
            TaskValidationErrorCode.SUPPORTER_GOAL_OUT_OF_RANGE,
        )


def validate_application(candidate: Mapping[str, Any]) -> None:
    _check_text(candidate, "text", not_string=ApplicationValidationErrorCode.TEXT_NOT_STRING)

    if not isinstance(candidate.get("accepted"), bool):
        raise ValidationError(
            "accepted must be a boolean", ApplicationValidationErrorCode.ACCEPTED_NOT_BOOLEAN
        )


def validate_image(candidate: Mapping[str, Any]) -> None:
    extension = candidate.get("extension")
    if not isinstance(extension, str):
        raise ValidationError(
            "extension must be a string", ImageValidationErrorCode.EXTENSION_NOT_STRING
        )
    if extension.lower() not in IMAGE_EXTENSIONS:
        raise ValidationError(
            f"extension must be one of {sorted(IMAGE_EXTENSIONS)}",
            ImageValidationErrorCode.EXTENSION_INVALID,
        )
