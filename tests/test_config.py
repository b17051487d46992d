import pytest

from stelbridge.config import Settings, load_settings
from stelbridge.models import Bortle, Planet


def test_defaults_from_empty_environment():
    settings = load_settings({})
    assert settings == Settings()
    assert settings.base_url == "http://localhost:8090/api"
    assert settings.site.bortle is Bortle.TRULY_DARK
    assert settings.site.planet is Planet.EARTH
    assert settings.failure_threshold == 3


def test_reads_stel_variables():
    settings = load_settings(
        {
            "STEL_HOST": "planetarium.local",
            "STEL_PORT": "8091",
            "STEL_LIVE": "yes",
            "STEL_LIGHT_POLL_INTERVAL": "0.5",
            "STEL_SKY_NAME": "winter",
            "STEL_PLANET": "mars",
            "STEL_LATITUDE": "-33.9",
            "STEL_BORTLE": "7",
            "STEL_NORTH_ANGLE": "1.25",
        }
    )
    assert settings.base_url == "http://planetarium.local:8091/api"
    assert settings.live is True
    assert settings.light_poll_interval == 0.5
    assert settings.sky_name == "winter"
    assert settings.site.planet is Planet.MARS
    assert settings.site.latitude == -33.9
    assert settings.site.bortle is Bortle.SUBURBAN_URBAN_TRANSITION
    assert settings.site.north_angle == 1.25


@pytest.mark.parametrize(
    "env,name",
    [
        ({"STEL_PORT": "eighty"}, "STEL_PORT"),
        ({"STEL_TIMEOUT": "soon"}, "STEL_TIMEOUT"),
        ({"STEL_CONNECT": "maybe"}, "STEL_CONNECT"),
        ({"STEL_BORTLE": "12"}, "STEL_BORTLE"),
        ({"STEL_PLANET": "Vulcan"}, "STEL_PLANET"),
    ],
)
def test_invalid_values_name_the_variable(env, name):
    with pytest.raises(ValueError, match=name):
        load_settings(env)


def test_process_environment_is_used_by_default(monkeypatch):
    monkeypatch.setenv("STEL_SKYBOX_SCRIPT", "custom.ssc")
    monkeypatch.setenv("STEL_FAILURE_THRESHOLD", "5")
    settings = load_settings()
    assert settings.skybox_script == "custom.ssc"
    assert settings.failure_threshold == 5
