from __future__ import annotations

from pathlib import Path

import click
import pytest

from depdoctor.config import DepDoctorConfig
from depdoctor.context import DepDoctorContext, pass_context


@pytest.mark.unit
class TestDepDoctorContext:
    """Tests for DepDoctorContext class."""

    def test_default_initialization(self) -> None:
        """Test DepDoctorContext initializes with correct default values."""
        ctx = DepDoctorContext()

        assert ctx.config_path is None
        assert ctx.verbose == 0
        assert ctx.color is True
        assert ctx.config == DepDoctorConfig()

    def test_instances_are_independent(self) -> None:
        """Test multiple DepDoctorContext instances do not share config."""
        ctx1 = DepDoctorContext()
        ctx2 = DepDoctorContext()

        ctx1.verbose = 2
        ctx1.config.exclude_packages.append("typescript")

        assert ctx2.verbose == 0
        assert ctx2.config.exclude_packages == []

    def test_all_attributes_can_be_set(self) -> None:
        """Test all context attributes can be set and retrieved."""
        ctx = DepDoctorContext()
        config = DepDoctorConfig(strategy="aggressive")

        ctx.config_path = Path("/path/to/depdoctor.toml")
        ctx.verbose = 2
        ctx.color = False
        ctx.config = config

        assert ctx.config_path == Path("/path/to/depdoctor.toml")
        assert ctx.verbose == 2
        assert ctx.color is False
        assert ctx.config is config

    def test_slots_prevents_arbitrary_attributes(self) -> None:
        """Test __slots__ prevents setting undefined attributes."""
        ctx = DepDoctorContext()

        with pytest.raises(AttributeError):
            ctx.arbitrary_attribute = "value"  # type: ignore


@pytest.mark.unit
class TestPassContextDecorator:
    """Tests for pass_context decorator."""

    def test_pass_context_injects_existing_context(self) -> None:
        """Test pass_context injects the existing DepDoctorContext."""

        @click.command()
        @pass_context
        def test_command(ctx: DepDoctorContext) -> DepDoctorContext:
            return ctx

        click_ctx = click.Context(click.Command("test"))
        depdoctor_ctx = DepDoctorContext()
        click_ctx.obj = depdoctor_ctx

        assert click_ctx.invoke(test_command) is depdoctor_ctx

    def test_pass_context_creates_context_when_missing(self) -> None:
        """Test pass_context creates a DepDoctorContext when none exists."""

        @click.command()
        @pass_context
        def test_command(ctx: DepDoctorContext) -> DepDoctorContext:
            return ctx

        click_ctx = click.Context(click.Command("test"))

        result = click_ctx.invoke(test_command)

        assert isinstance(result, DepDoctorContext)
        assert result.config.strategy == "balanced"
