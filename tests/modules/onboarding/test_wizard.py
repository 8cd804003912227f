"""
Unit tests for the onboarding wizard state machine.
"""

import pytest

from edubeast.modules.onboarding.wizard import (
    DEFAULT_FEATURES,
    TOTAL_STEPS,
    InvalidFeatureKeyError,
    OnboardingData,
    OnboardingWizard,
    StepValidationError,
    WizardStep,
    slugify,
)
from edubeast.modules.onboarding.schemas import OnboardingSessionUpdate
from edubeast.modules.tenants.models import FEATURE_KEYS, SLUG_MAX_LENGTH

LONG_NAME = ("Green Valley International Academy " * 5).strip()


def _wizard_on(step: WizardStep, **data) -> OnboardingWizard:
    wizard = OnboardingWizard(current_step=step)
    wizard.apply_changes(data)
    return wizard


@pytest.fixture
def ready_wizard():
    """A wizard on the last step with every gate satisfied."""
    return _wizard_on(
        WizardStep.ACTIVITY,
        name="Green Valley High School",
        contact_email="office@greenvalley.edu",
    )


class TestSlugify:
    """Tests for slugify."""

    @pytest.mark.parametrize(
        ("name", "slug"),
        [
            ("Green Valley High School", "green-valley-high-school"),
            ("  St. Mary's  ", "st-mary-s"),
            ("ABC---123", "abc-123"),
            ("", ""),
        ],
    )
    def test_slugify(self, name, slug):
        assert slugify(name) == slug

    def test_long_name_fits_column(self):
        slug = slugify(LONG_NAME)

        assert len(LONG_NAME) > SLUG_MAX_LENGTH
        assert len(slug) <= SLUG_MAX_LENGTH
        assert slug.startswith("green-valley-international-academy-")
        assert not slug.endswith("-")


class TestDerivedFields:
    """Slug and meta title follow the name until edited by hand."""

    def test_name_derives_slug_and_meta_title(self):
        wizard = OnboardingWizard()

        wizard.set_name("Green Valley High School")

        assert wizard.data.slug == "green-valley-high-school"
        assert wizard.data.meta_title == "Green Valley High School"

    def test_manual_slug_is_sticky(self):
        wizard = OnboardingWizard()
        wizard.set_name("Green Valley High School")

        wizard.set_slug("gvhs")
        wizard.set_name("Green Valley Academy")

        assert wizard.data.slug == "gvhs"
        assert wizard.slug_touched is True

    def test_manual_slug_is_slugified(self):
        wizard = OnboardingWizard()

        wizard.set_slug("My School!")

        assert wizard.data.slug == "my-school"

    def test_long_manual_slug_is_cut(self):
        wizard = OnboardingWizard()

        wizard.set_slug("x " * 90)

        assert wizard.data.slug == "-".join(["x"] * 50)
        assert wizard.slug_touched is True

    def test_clearing_slug_resumes_derivation(self):
        wizard = OnboardingWizard()
        wizard.set_name("Green Valley High School")
        wizard.set_slug("gvhs")

        wizard.set_slug("")

        assert wizard.data.slug == ""
        assert wizard.slug_touched is False

        wizard.set_name("Green Valley Academy")
        assert wizard.data.slug == "green-valley-academy"

    def test_manual_meta_title_is_sticky(self):
        wizard = OnboardingWizard()
        wizard.set_meta_title("Best school in town")

        wizard.set_name("Green Valley High School")

        assert wizard.data.meta_title == "Best school in town"

    def test_clearing_meta_title_resumes_derivation(self):
        wizard = OnboardingWizard()
        wizard.set_meta_title("Custom")

        wizard.set_meta_title("   ")
        wizard.set_name("Green Valley")

        assert wizard.meta_title_touched is False
        assert wizard.data.meta_title == "Green Valley"

    def test_explicit_slug_wins_over_name_in_same_update(self):
        wizard = OnboardingWizard()

        wizard.apply_changes({"slug": "gvhs", "name": "Green Valley High School"})

        assert wizard.data.slug == "gvhs"
        assert wizard.data.name == "Green Valley High School"


class TestApplyChanges:
    """Tests for apply_changes."""

    def test_none_clears_field(self):
        wizard = OnboardingWizard()

        wizard.apply_changes({"address": "12 Road", "contact_phone": None})
        wizard.apply_changes({"address": None})

        assert wizard.data.address == ""
        assert wizard.data.contact_phone == ""

    def test_unknown_field_rejected(self):
        wizard = OnboardingWizard()

        with pytest.raises(ValueError, match="Unknown onboarding field"):
            wizard.apply_changes({"mascot": "owl"})

    def test_features_deduplicated(self):
        wizard = OnboardingWizard()

        wizard.apply_changes({"features": ["reportCards", "reportCards", "onlineExams"]})

        assert wizard.data.features == ["reportCards", "onlineExams"]

    def test_unknown_feature_rejected(self):
        wizard = OnboardingWizard()

        with pytest.raises(InvalidFeatureKeyError):
            wizard.apply_changes({"features": ["spaceProgram"]})


class TestFeatures:
    """Tests for feature toggles."""

    def test_defaults(self):
        wizard = OnboardingWizard()

        assert wizard.data.features == list(DEFAULT_FEATURES)

    def test_toggle_on_and_off(self):
        wizard = OnboardingWizard()

        wizard.toggle_feature("libraryManagement", True)
        assert "libraryManagement" in wizard.data.features

        wizard.toggle_feature("libraryManagement", False)
        assert "libraryManagement" not in wizard.data.features

    def test_toggle_on_twice_keeps_one_entry(self):
        wizard = OnboardingWizard()

        wizard.toggle_feature("feeManagement", True)

        assert wizard.data.features.count("feeManagement") == 1

    def test_toggle_unknown_key(self):
        wizard = OnboardingWizard()

        with pytest.raises(InvalidFeatureKeyError) as exc_info:
            wizard.toggle_feature("spaceProgram", True)

        assert exc_info.value.key == "spaceProgram"

    def test_feature_flags_cover_every_key(self):
        wizard = OnboardingWizard()

        flags = wizard.feature_flags

        assert set(flags) == set(FEATURE_KEYS)
        assert flags["studentPortal"] is True
        assert flags["transportManagement"] is False


class TestStepGates:
    """Tests for step gating and navigation."""

    def test_school_info_requires_name_slug_and_email(self):
        wizard = OnboardingWizard()

        assert wizard.missing_fields(WizardStep.SCHOOL_INFO) == ["name", "slug", "contact_email"]
        assert wizard.can_advance() is False

    def test_advance_blocked_with_missing_email(self):
        wizard = _wizard_on(WizardStep.SCHOOL_INFO, name="Green Valley")

        with pytest.raises(StepValidationError) as exc_info:
            wizard.next_step()

        assert exc_info.value.step == WizardStep.SCHOOL_INFO
        assert exc_info.value.missing == ["contact_email"]
        assert wizard.current_step == WizardStep.SCHOOL_INFO

    def test_advance_when_gate_passes(self):
        wizard = _wizard_on(
            WizardStep.SCHOOL_INFO, name="Green Valley", contact_email="office@gv.edu"
        )

        assert wizard.next_step() == WizardStep.LOCATION

    def test_location_requires_timezone(self):
        wizard = _wizard_on(WizardStep.LOCATION, timezone=None)

        assert wizard.missing_fields(WizardStep.LOCATION) == ["timezone"]

    def test_branding_requires_primary_color(self):
        wizard = _wizard_on(WizardStep.BRANDING, primary_color="")

        assert wizard.can_advance() is False

    def test_seo_and_activity_always_pass(self):
        wizard = OnboardingWizard(data=OnboardingData(meta_title="", meta_description=""))

        assert wizard.can_advance(WizardStep.SEO) is True
        assert wizard.can_advance(WizardStep.ACTIVITY) is True

    def test_modules_require_one_feature(self):
        wizard = _wizard_on(WizardStep.MODULES, features=[])

        assert wizard.missing_fields(WizardStep.MODULES) == ["features"]
        with pytest.raises(StepValidationError):
            wizard.next_step()

    def test_next_stops_at_last_step(self):
        wizard = OnboardingWizard(current_step=WizardStep.ACTIVITY)

        assert wizard.next_step() == WizardStep.ACTIVITY

    def test_back_is_always_allowed(self):
        wizard = OnboardingWizard(current_step=WizardStep.BRANDING)

        assert wizard.previous_step() == WizardStep.LOCATION

    def test_back_stops_at_first_step(self):
        wizard = OnboardingWizard()

        assert wizard.previous_step() == WizardStep.SCHOOL_INFO

    def test_step_out_of_range(self):
        with pytest.raises(ValueError):
            OnboardingWizard(current_step=TOTAL_STEPS + 1)

    @pytest.mark.parametrize(("step", "progress"), [(1, 17), (3, 50), (6, 100)])
    def test_progress(self, step, progress):
        assert OnboardingWizard(current_step=step).progress == progress


class TestEnsureComplete:
    """Tests for ensure_complete."""

    def test_ready(self, ready_wizard):
        ready_wizard.ensure_complete()

    def test_long_name_completes_with_fitting_slug(self, ready_wizard):
        changes = OnboardingSessionUpdate(name=LONG_NAME).model_dump(exclude_unset=True)
        ready_wizard.apply_changes(changes)

        ready_wizard.ensure_complete()

        assert ready_wizard.data.meta_title == LONG_NAME
        assert 0 < len(ready_wizard.data.slug) <= SLUG_MAX_LENGTH

    def test_not_on_last_step(self):
        wizard = _wizard_on(WizardStep.SEO, name="Green Valley", contact_email="a@gv.edu")

        with pytest.raises(StepValidationError, match="Finish all steps"):
            wizard.ensure_complete()

    def test_earlier_gate_rechecked(self, ready_wizard):
        ready_wizard.apply_changes({"contact_email": None})

        with pytest.raises(StepValidationError) as exc_info:
            ready_wizard.ensure_complete()

        assert exc_info.value.step == WizardStep.SCHOOL_INFO
        assert exc_info.value.missing == ["contact_email"]


class TestOnboardingData:
    """Tests for OnboardingData serialization."""

    def test_from_dict_ignores_unknown_keys(self):
        data = OnboardingData.from_dict({"name": "GV", "legacy": True})

        assert data.name == "GV"
        assert data.timezone == "Asia/Dhaka"

    def test_from_none(self):
        assert OnboardingData.from_dict(None) == OnboardingData()
