"""Tests for autocert.runners.registry."""

from __future__ import annotations

import pytest

from autocert.config.settings import build_settings
from autocert.runners.base import DistributionTarget, TargetConfigError
from autocert.runners.bunnycdn import BunnyCdnTarget
from autocert.runners.registry import available_targets, load_targets
from autocert.runners.stackpath import StackPathTarget


class EchoTarget(DistributionTarget):
    def exec(self, hostnames, record):
        return "echo"


class NotATarget:
    pass


def _settings(enabled):
    return build_settings({"runners": {"enabled": enabled}}).runners


def test_available_targets():
    assert available_targets() == ["bunnycdn", "stackpath"]


def test_loads_in_configured_order():
    targets = load_targets(_settings(["stackpath", "bunnycdn"]))
    assert [type(t) for t in targets] == [StackPathTarget, BunnyCdnTarget]
    assert [t.name for t in targets] == ["stackpath", "bunnycdn"]


def test_comma_separated_string():
    assert len(load_targets(_settings("bunnycdn, stackpath"))) == 2


def test_empty_is_allowed():
    assert load_targets(_settings([])) == []


def test_external_target_named_after_config_entry():
    name = f"ext:{__name__}.EchoTarget"
    (target,) = load_targets(_settings([name]))
    assert isinstance(target, EchoTarget)
    assert target.name == name


@pytest.mark.parametrize(
    "enabled",
    [
        ["bunnycdn", "fastly"],
        ["ext:Bare"],
        ["ext:no.such.module.Target"],
        [f"ext:{__name__}.NotATarget"],
    ],
)
def test_unknown_names_are_fatal(enabled):
    with pytest.raises(TargetConfigError):
        load_targets(_settings(enabled))
