"""
Unit tests for onboarding schemas.
"""

import pytest
from pydantic import ValidationError

from edubeast.modules.onboarding.schemas import OnboardingOptionsResponse, OnboardingSessionUpdate


class TestOnboardingSessionUpdate:
    """Tests for the partial update schema."""

    def test_changes_only_include_sent_fields(self):
        update = OnboardingSessionUpdate(name="Green Valley", slug=None)

        assert update.changes() == {"name": "Green Valley", "slug": None}

    def test_unknown_field_rejected(self):
        with pytest.raises(ValidationError):
            OnboardingSessionUpdate(mascot="owl")

    @pytest.mark.parametrize(
        "field_values",
        [
            {"timezone": "Mars/Olympus"},
            {"country": "ZZ"},
            {"theme": "neon"},
            {"font_family": "Comic Sans"},
            {"primary_color": "blue"},
            {"accent_color": "#12345"},
            {"features": ["spaceProgram"]},
        ],
    )
    def test_invalid_values_rejected(self, field_values):
        with pytest.raises(ValidationError):
            OnboardingSessionUpdate(**field_values)

    def test_valid_options_accepted(self):
        update = OnboardingSessionUpdate(
            timezone="UTC",
            country="US",
            theme="classic",
            font_family="Poppins",
            primary_color="#AABBCC",
        )

        assert update.changes()["primary_color"] == "#AABBCC"

    def test_features_deduplicated(self):
        update = OnboardingSessionUpdate(features=["reportCards", "reportCards"])

        assert update.features == ["reportCards"]

    def test_contact_email_lowercased(self):
        update = OnboardingSessionUpdate(contact_email="Office@GreenValley.EDU")

        assert update.contact_email == "office@greenvalley.edu"


class TestOnboardingOptionsResponse:
    """Tests for the options payload."""

    def test_lists_every_feature_with_category(self):
        options = OnboardingOptionsResponse()

        assert len(options.features) == 12
        categories = {f.key: f.category for f in options.features}
        assert categories["onlineExams"] == "core"
        assert categories["messagingSystem"] == "communication"
        assert options.defaults["country"] == "BD"
