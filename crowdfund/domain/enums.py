"""
Domain enums for the crowdfunding core.

Every closed value set lives here: roles, genders, project statuses,
sort fields and directions, and the validation error codes clients
switch on. These are read-only after import.
"""

from enum import Enum


class UserRole(str, Enum):
    """Role of a user - drives most authorization decisions."""

    SUPPORTER = "SUPPORTER"
    INITIATOR = "INITIATOR"
    ADMIN = "ADMIN"


class UserGender(str, Enum):
    NONE = "NONE"
    FEMALE = "FEMALE"
    MALE = "MALE"


class ProjectStatus(str, Enum):
    """
    Publication status of a project.

    Only PUBLIC projects are visible to callers other than admins and
    the project's creator.
    """

    NEEDS_VERIFICATION = "NEEDS_VERIFICATION"
    UNLISTED = "UNLISTED"
    PUBLIC = "PUBLIC"


class SortDirection(str, Enum):
    ASC = "ASC"
    DESC = "DESC"


# ============================================================================
# Sort fields (one closed enumeration per entity type)
# ============================================================================


class UserSortField(str, Enum):
    ID = "id"
    CREATED = "created_at"
    UPDATED = "updated_at"
    FULLNAME = "fullname"
    MAIL = "mail"
    GENDER = "gender"
    ROLE = "role"


class SessionSortField(str, Enum):
    ID = "id"
    CREATED = "created_at"
    UPDATED = "updated_at"


class ProjectSortField(str, Enum):
    ID = "id"
    CREATED = "created_at"
    UPDATED = "updated_at"
    TITLE = "title"
    STATUS = "status"
    MONEY_GOAL = "money_goal"
    MONEY_PLEDGED = "money_pledged"


class CategorySortField(str, Enum):
    ID = "id"
    CREATED = "created_at"
    UPDATED = "updated_at"
    NAME = "name"


class TaskSortField(str, Enum):
    ID = "id"
    CREATED = "created_at"
    UPDATED = "updated_at"
    TITLE = "title"
    SUPPORTER_GOAL = "supporter_goal"


class ApplicationSortField(str, Enum):
    ID = "id"
    CREATED = "created_at"
    UPDATED = "updated_at"
    ACCEPTED = "accepted"


class ImageSortField(str, Enum):
    ID = "id"
    CREATED = "created_at"
    UPDATED = "updated_at"


# ============================================================================
# Validation error codes (stable, externally observable)
# ============================================================================


class UserValidationErrorCode(str, Enum):
    PASSWORD_NOT_STRING = "PASSWORD_NOT_STRING"
    PASSWORD_TOO_SHORT = "PASSWORD_TOO_SHORT"
    MAIL_NOT_STRING = "MAIL_NOT_STRING"
    MAIL_TOO_SHORT = "MAIL_TOO_SHORT"
    MAIL_ALREADY_USED = "MAIL_ALREADY_USED"
    FULLNAME_NOT_STRING = "FULLNAME_NOT_STRING"
    FULLNAME_TOO_SHORT = "FULLNAME_TOO_SHORT"
    ROLE_INVALID = "ROLE_INVALID"
    GENDER_INVALID = "GENDER_INVALID"


class ProjectValidationErrorCode(str, Enum):
    TITLE_NOT_STRING = "TITLE_NOT_STRING"
    TITLE_TOO_SHORT = "TITLE_TOO_SHORT"
    DESCRIPTION_NOT_STRING = "DESCRIPTION_NOT_STRING"
    STATUS_INVALID = "STATUS_INVALID"
    MONEY_GOAL_NOT_NUMBER = "MONEY_GOAL_NOT_NUMBER"
    MONEY_GOAL_NEGATIVE = "MONEY_GOAL_NEGATIVE"
    MONEY_GOAL_TOO_LARGE = "MONEY_GOAL_TOO_LARGE"
    MONEY_GOAL_TOO_PRECISE = "MONEY_GOAL_TOO_PRECISE"
    MONEY_PLEDGED_NOT_NUMBER = "MONEY_PLEDGED_NOT_NUMBER"
    MONEY_PLEDGED_NEGATIVE = "MONEY_PLEDGED_NEGATIVE"
    MONEY_PLEDGED_TOO_LARGE = "MONEY_PLEDGED_TOO_LARGE"
    MONEY_PLEDGED_TOO_PRECISE = "MONEY_PLEDGED_TOO_PRECISE"
    LAT_NOT_NUMBER = "LAT_NOT_NUMBER"
    LAT_OUT_OF_RANGE = "LAT_OUT_OF_RANGE"
    LON_NOT_NUMBER = "LON_NOT_NUMBER"
    LON_OUT_OF_RANGE = "LON_OUT_OF_RANGE"
    CREATOR_INVALID = "CREATOR_INVALID"
    CATEGORY_INVALID = "CATEGORY_INVALID"
    TOO_MANY_IMAGES = "TOO_MANY_IMAGES"


class CategoryValidationErrorCode(str, Enum):
    NAME_NOT_STRING = "NAME_NOT_STRING"
    NAME_TOO_SHORT = "NAME_TOO_SHORT"
    IMAGE_INVALID = "IMAGE_INVALID"


class TaskValidationErrorCode(str, Enum):
    TITLE_NOT_STRING = "TITLE_NOT_STRING"
    TITLE_TOO_SHORT = "TITLE_TOO_SHORT"
    DESCRIPTION_NOT_STRING = "DESCRIPTION_NOT_STRING"
    SUPPORTER_GOAL_NOT_NUMBER = "SUPPORTER_GOAL_NOT_NUMBER"
    SUPPORTER_GOAL_OUT_OF_RANGE = "SUPPORTER_GOAL_OUT_OF_RANGE"


class ApplicationValidationErrorCode(str, Enum):
    TEXT_NOT_STRING = "TEXT_NOT_STRING"
    ACCEPTED_NOT_BOOLEAN = "ACCEPTED_NOT_BOOLEAN"
    ALREADY_APPLIED = "ALREADY_APPLIED"


class ImageValidationErrorCode(str, Enum):
    EXTENSION_NOT_STRING = "EXTENSION_NOT_STRING"
    EXTENSION_INVALID = "EXTENSION_INVALID"


class ListValidationErrorCode(str, Enum):
    """Codes for malformed list/filter/sort requests."""

    LIST_OPTIONS_INVALID = "LIST_OPTIONS_INVALID"
    FILTER_FIELD_INVALID = "FILTER_FIELD_INVALID"
    SORT_FIELD_INVALID = "SORT_FIELD_INVALID"


class PayloadValidationErrorCode(str, Enum):
    """Codes for create and update payloads that are not field mappings."""

    PAYLOAD_NOT_MAPPING = "PAYLOAD_NOT_MAPPING"
