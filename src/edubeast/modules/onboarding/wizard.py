"""
Onboarding Wizard State Machine

Pure (no I/O) model of the six-step school setup wizard:

    SchoolInfo(1) -> Location(2) -> Branding(3) -> SEO(4) -> Modules(5) -> Activity(6)

Navigation is linear. Moving forward requires the current step's gate to
pass; moving back is always allowed. The service layer persists the wizard
as an ``OnboardingSession`` row between requests.

Derived fields:
- ``slug`` follows ``name`` until the user edits the slug by hand
- ``meta_title`` follows ``name`` until the user edits it by hand
- Clearing either field lets it follow ``name`` again
"""

import re
from dataclasses import asdict, dataclass, field, fields
from enum import IntEnum
from typing import Any

from edubeast.modules.tenants.models import FEATURE_KEYS, SLUG_MAX_LENGTH


class WizardStep(IntEnum):
    """Wizard steps, in order."""

    SCHOOL_INFO = 1
    LOCATION = 2
    BRANDING = 3
    SEO = 4
    MODULES = 5
    ACTIVITY = 6


FIRST_STEP = WizardStep.SCHOOL_INFO
TOTAL_STEPS = len(WizardStep)

# ============================================
# Defaults and option sets
# ============================================

DEFAULT_TIMEZONE = "Asia/Dhaka"
DEFAULT_COUNTRY = "BD"
DEFAULT_THEME = "modern"
DEFAULT_PRIMARY_COLOR = "#3b82f6"
DEFAULT_SECONDARY_COLOR = "#10b981"
DEFAULT_ACCENT_COLOR = "#f59e0b"
DEFAULT_FONT_FAMILY = "Inter"
DEFAULT_FEATURES = ("attendanceManagement", "feeManagement", "studentPortal", "teacherPortal")
DEFAULT_WELCOME_MESSAGE = "Welcome to your school management system!"

TIMEZONES = ("Asia/Dhaka", "Asia/Kolkata", "UTC", "America/New_York", "Europe/London")
COUNTRIES = ("BD", "IN", "US", "UK", "CA")
THEMES = ("modern", "minimal", "classic")
FONT_FAMILIES = ("Inter", "Roboto", "Open Sans", "Poppins", "Lato")

HEX_COLOR_PATTERN = r"^#[0-9a-fA-F]{6}$"

# Fields that must be non-empty before leaving a step. Steps not listed
# (SEO, Activity) always pass; Modules is checked separately.
_STEP_REQUIRED_FIELDS: dict[WizardStep, tuple[str, ...]] = {
    WizardStep.SCHOOL_INFO: ("name", "slug", "contact_email"),
    WizardStep.LOCATION: ("timezone", "country"),
    WizardStep.BRANDING: ("theme", "primary_color", "font_family"),
}

_SLUG_INVALID_CHARS = re.compile(r"[^a-z0-9]+")


def slugify(value: str) -> str:
    """
    Derive a URL slug from a school name, cut to fit ``tenants.slug``.

    >>> slugify("Green Valley High School")
    'green-valley-high-school'
    """
    slug = _SLUG_INVALID_CHARS.sub("-", value.lower()).strip("-")
    return slug[:SLUG_MAX_LENGTH].rstrip("-")


class StepValidationError(ValueError):
    """A step's required fields are missing."""

    def __init__(self, step: int, missing: list[str], message: str | None = None):
        self.step = step
        self.missing = missing
        super().__init__(message or f"Step {step} is missing required fields: {', '.join(missing)}")


class InvalidFeatureKeyError(ValueError):
    """A feature key that is not one of the known tenant features."""

    def __init__(self, key: str):
        self.key = key
        super().__init__(f"Unknown feature: {key}")


@dataclass
class OnboardingData:
    """Form data collected by the wizard."""

    name: str = ""
    slug: str = ""
    address: str = ""
    contact_email: str = ""
    contact_phone: str = ""
    timezone: str = DEFAULT_TIMEZONE
    country: str = DEFAULT_COUNTRY
    theme: str = DEFAULT_THEME
    primary_color: str = DEFAULT_PRIMARY_COLOR
    secondary_color: str = DEFAULT_SECONDARY_COLOR
    accent_color: str = DEFAULT_ACCENT_COLOR
    font_family: str = DEFAULT_FONT_FAMILY
    meta_title: str = ""
    meta_description: str = ""
    features: list[str] = field(default_factory=lambda: list(DEFAULT_FEATURES))
    activity_tracking: bool = True
    welcome_message: str = DEFAULT_WELCOME_MESSAGE

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, raw: dict[str, Any] | None) -> "OnboardingData":
        """Build from stored JSON; unknown keys are ignored, missing keys get defaults."""
        known = {f.name for f in fields(cls)}
        return cls(**{key: value for key, value in (raw or {}).items() if key in known})


class OnboardingWizard:
    """
    Wizard state: form data, current step and the two touched flags.

    Args:
        data: Form data (defaults when omitted)
        current_step: Step the user is on, 1..6
        slug_touched: The slug was edited by hand
        meta_title_touched: The meta title was edited by hand
    """

    def __init__(
        self,
        data: OnboardingData | None = None,
        current_step: int = FIRST_STEP,
        slug_touched: bool = False,
        meta_title_touched: bool = False,
    ):
        if not FIRST_STEP <= current_step <= TOTAL_STEPS:
            raise ValueError(f"current_step must be between {FIRST_STEP} and {TOTAL_STEPS}")
        self.data = data or OnboardingData()
        self.current_step = WizardStep(current_step)
        self.slug_touched = slug_touched
        self.meta_title_touched = meta_title_touched

    # ============================================
    # Field setters
    # ============================================

    def set_name(self, name: str | None) -> None:
        """Set the school name and re-derive untouched slug and meta title."""
        name = name or ""
        self.data.name = name
        if not self.slug_touched:
            self.data.slug = slugify(name)
        if not self.meta_title_touched:
            self.data.meta_title = name

    def set_slug(self, value: str | None) -> None:
        """Store a hand-edited slug. An empty result clears the touched flag."""
        slug = slugify(value or "")
        self.data.slug = slug
        self.slug_touched = bool(slug)

    def set_meta_title(self, value: str | None) -> None:
        """Store a hand-edited meta title. An empty value clears the touched flag."""
        value = value or ""
        self.data.meta_title = value
        self.meta_title_touched = bool(value.strip())

    def toggle_feature(self, key: str, enabled: bool) -> None:
        """
        Enable or disable one feature.

        Raises:
            InvalidFeatureKeyError: If ``key`` is not a known feature
        """
        if key not in FEATURE_KEYS:
            raise InvalidFeatureKeyError(key)

        features = [feature for feature in self.data.features if feature != key]
        if enabled:
            features.append(key)
        self.data.features = features

    def set_features(self, keys: list[str] | None) -> None:
        """Replace the selected features, keeping order and dropping duplicates."""
        for key in keys or []:
            if key not in FEATURE_KEYS:
                raise InvalidFeatureKeyError(key)
        self.data.features = list(dict.fromkeys(keys or []))

    def apply_changes(self, changes: dict[str, Any]) -> None:
        """
        Apply a partial update.

        ``name`` is applied first so that an explicit ``slug`` or ``meta_title``
        in the same update wins over the derived value. A ``None`` value clears
        the field.
        """
        changes = dict(changes)
        if "name" in changes:
            self.set_name(changes.pop("name"))
        if "slug" in changes:
            self.set_slug(changes.pop("slug"))
        if "meta_title" in changes:
            self.set_meta_title(changes.pop("meta_title"))
        if "features" in changes:
            self.set_features(changes.pop("features"))
        if "activity_tracking" in changes:
            self.data.activity_tracking = bool(changes.pop("activity_tracking"))

        known = {f.name for f in fields(OnboardingData)}
        for key, value in changes.items():
            if key not in known:
                raise ValueError(f"Unknown onboarding field: {key}")
            setattr(self.data, key, value or "")

    # ============================================
    # Gates and navigation
    # ============================================

    def missing_fields(self, step: int) -> list[str]:
        """Required fields of ``step`` that are still empty."""
        step = WizardStep(step)
        if step == WizardStep.MODULES:
            return [] if self.data.features else ["features"]

        required = _STEP_REQUIRED_FIELDS.get(step, ())
        return [name for name in required if not str(getattr(self.data, name)).strip()]

    def can_advance(self, step: int | None = None) -> bool:
        """Whether the gate for ``step`` (default: the current step) passes."""
        return not self.missing_fields(self.current_step if step is None else step)

    def next_step(self) -> WizardStep:
        """
        Move forward one step, stopping at the last.

        Raises:
            StepValidationError: If the current step's gate fails
        """
        missing = self.missing_fields(self.current_step)
        if missing:
            raise StepValidationError(self.current_step, missing)

        self.current_step = WizardStep(min(self.current_step + 1, TOTAL_STEPS))
        return self.current_step

    def previous_step(self) -> WizardStep:
        self.current_step = WizardStep(max(self.current_step - 1, FIRST_STEP))
        return self.current_step

    def ensure_complete(self) -> None:
        """
        Check the wizard can be submitted: on the last step with every gate passing.

        Raises:
            StepValidationError: For the first step that is not satisfied
        """
        if self.current_step != WizardStep.ACTIVITY:
            raise StepValidationError(
                self.current_step,
                [],
                message="Finish all steps before completing setup",
            )

        for step in WizardStep:
            missing = self.missing_fields(step)
            if missing:
                raise StepValidationError(step, missing)

    # ============================================
    # Derived values
    # ============================================

    @property
    def progress(self) -> int:
        """Completion percentage for the progress bar."""
        return round(self.current_step / TOTAL_STEPS * 100)

    @property
    def feature_flags(self) -> dict[str, bool]:
        """Every known feature key mapped to whether it is selected."""
        selected = set(self.data.features)
        return {key: key in selected for key in FEATURE_KEYS}
