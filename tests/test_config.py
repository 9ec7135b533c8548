from __future__ import annotations

import pytest

from workspace_platform.config import Config, _env_bool


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("1", True),
        ("Yes", True),
        (" on ", True),
        ("0", False),
        ("off", False),
        ("maybe", None),
    ],
)
def test_env_bool(monkeypatch, raw, expected):
    monkeypatch.setenv("WS_TEST_FLAG", raw)
    assert _env_bool("WS_TEST_FLAG") is expected


def test_env_bool_default_when_unset(monkeypatch):
    monkeypatch.delenv("WS_TEST_FLAG", raising=False)
    assert _env_bool("WS_TEST_FLAG", True) is True


def test_product_policy_is_fixed():
    cfg = Config()
    assert (cfg.TRIAL_DAYS, cfg.TRIAL_PLAN_TIER, cfg.TRIAL_PRICE_REFERENCE) == (14, "pro", "trial_pro")
    assert cfg.ONBOARDING_CAMPAIGN_ID == "onboarding"


def test_config_is_immutable():
    cfg = Config()
    with pytest.raises(Exception):
        cfg.DB_DSN = "elsewhere"  # type: ignore[misc]
