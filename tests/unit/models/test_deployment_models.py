"""Unit tests for deployment record models."""

from __future__ import annotations

from collections.abc import Callable

import pytest
from pydantic import ValidationError

from stitch.models.deployment import (
    Deployment,
    DeploymentCredentials,
    DeploymentStatus,
    InstanceDescription,
)


@pytest.mark.unit
class TestDeploymentStatus:
    """Tests for lifecycle status ordering."""

    def test_statuses_ranked_in_lifecycle_order(self) -> None:
        """Ranks follow deployed -> booting -> booted -> validating -> complete."""
        ordered = sorted(DeploymentStatus, key=lambda status: status.rank)

        assert [status.value for status in ordered] == [
            "deployed",
            "booting",
            "booted",
            "validating",
            "complete",
        ]

    def test_only_complete_is_terminal(self) -> None:
        """Complete is the single terminal status."""
        terminal = [status for status in DeploymentStatus if status.is_terminal]

        assert terminal == [DeploymentStatus.COMPLETE]


@pytest.mark.unit
class TestDeployment:
    """Tests for the Deployment record."""

    def test_ids_are_generated_and_unique(
        self, credentials: DeploymentCredentials
    ) -> None:
        """Each record gets its own identifier."""
        first = Deployment(credentials=credentials, service_ref="s", vendor_ref="v")
        second = Deployment(credentials=credentials, service_ref="s", vendor_ref="v")

        assert first.id
        assert first.id != second.id
        assert first.status == DeploymentStatus.DEPLOYED

    def test_render_validation_url(
        self, make_deployment: Callable[..., Deployment]
    ) -> None:
        """The hostname replaces the placeholder."""
        deployment = make_deployment(validation_template="https://{{HOSTNAME}}:8443/ok")

        assert (
            deployment.render_validation_url("host.example.com")
            == "https://host.example.com:8443/ok"
        )

    def test_render_validation_url_without_template(
        self, make_deployment: Callable[..., Deployment]
    ) -> None:
        """No template renders to None."""
        deployment = make_deployment(validation_template=None)

        assert deployment.render_validation_url("host") is None
        assert deployment.has_validation is False

    def test_effective_validation_url_prefers_template(
        self, make_deployment: Callable[..., Deployment]
    ) -> None:
        """With an address, the rendered template is probed."""
        deployment = make_deployment(
            url="http://host:80", public_address="host", status="booted"
        )

        assert deployment.effective_validation_url() == "http://host/health"

    def test_effective_validation_url_falls_back_to_url(
        self, make_deployment: Callable[..., Deployment]
    ) -> None:
        """Without a template, the derived URL is probed."""
        deployment = make_deployment(
            validation_template=None, url="http://host:80", public_address="host"
        )

        assert deployment.effective_validation_url() == "http://host:80"

    def test_public_view_excludes_credentials(
        self, make_deployment: Callable[..., Deployment]
    ) -> None:
        """Serialized views never carry cloud secrets."""
        view = make_deployment().public_view()

        assert "credentials" not in view
        assert "secret-key" not in str(view)
        assert view["status"] == "deployed"

    def test_empty_instance_id_marks_pipeline(
        self, make_deployment: Callable[..., Deployment]
    ) -> None:
        """Pipeline deployments have no compute instance id."""
        assert make_deployment(compute_instance_id="").is_pipeline is True
        assert make_deployment().is_pipeline is False

    def test_unknown_fields_rejected(self, credentials: DeploymentCredentials) -> None:
        """Extra fields are forbidden."""
        with pytest.raises(ValidationError):
            Deployment(
                credentials=credentials,
                service_ref="s",
                vendor_ref="v",
                unexpected="x",  # type: ignore[call-arg]
            )


@pytest.mark.unit
class TestCredentials:
    """Tests for DeploymentCredentials."""

    def test_credentials_are_frozen(self, credentials: DeploymentCredentials) -> None:
        """Credentials are write-once."""
        with pytest.raises(ValidationError):
            credentials.access_key = "other"  # type: ignore[misc]


@pytest.mark.unit
class TestInstanceDescription:
    """Tests for InstanceDescription."""

    @pytest.mark.parametrize(
        ("run_state", "expected"),
        [("running", True), ("pending", False), ("stopped", False)],
    )
    def test_is_running(self, run_state: str, expected: bool) -> None:
        """Only the 'running' state counts as running."""
        description = InstanceDescription(instance_id="i-1", run_state=run_state)

        assert description.is_running is expected
