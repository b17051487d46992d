import copy

import pytest

FULL_STATE = {
    "actionChanges": {
        "id": 5,
        "changes": {"actionShow_Atmosphere": True, "actionShow_Ground": True},
    },
    "propertyChanges": {
        "id": 10,
        "changes": {
            "StelCore.currentProjectionTypeKey": "ProjectionPerspective",
            "StelSkyDrawer.extinctionCoefficient": 0.2,
            "LandscapeMgr.atmosphereDisplayed": True,
        },
    },
    "time": {
        "jday": 2458000.5,
        "utc": "2017-09-04T00:00:00Z",
        "local": "2017-09-04T02:00:00",
        "isTimeNow": False,
        "timerate": 0.0,
    },
}

SNAPSHOT_TEXT = """\
Sun Altitude: 24.5
Sun Azimuth: 130.25
Sun Magnitude: -26.74
Sun Magnitude (after extinction): -26.5
Sun Longitude: 161.6
Sun Size: 0.531
Moon Altitude: -12.0
Moon Azimuth: 300.0
Moon illumination: 96.0
Moon Magnitude: -12.3
Moon Magnitude (after extinction): -11.9
Moon Size: 0.52
Venus Altitude: 30.0
Venus Azimuth: 110.0
Venus Magnitude: -4.0
Venus Magnitude (after extinction): -3.9
Landscape Brightness: 0.25
JD: 2458000.916667
Date (UTC): 2017-09-04T10:00:00
Date: 2017-09-04T12:00:00
"""

SUN_INFO = {
    "name": "Sun",
    "altitude": 24.5,
    "azimuth": 130.25,
    "vmag": -26.74,
    "vmage": -26.5,
    "diameter": 0.531,
    "ambientInt": 0.25,
    "elong": 161.6,
}
MOON_INFO = {
    "name": "Moon",
    "altitude": -12.0,
    "azimuth": 300.0,
    "vmag": -12.3,
    "vmage": -11.9,
    "diameter": 0.52,
    "ambientInt": 0.25,
    "illumination": 96.0,
}
VENUS_INFO = {
    "name": "Venus",
    "altitude": 30.0,
    "azimuth": 110.0,
    "vmag": -4.0,
    "vmage": -3.9,
    "diameter": 0.0,
    "ambientInt": 0.25,
}
OBJECT_INFO = {"Sun": SUN_INFO, "Moon": MOON_INFO, "Venus": VENUS_INFO}


@pytest.fixture
def full_state():
    return copy.deepcopy(FULL_STATE)


@pytest.fixture
def snapshot_text():
    return SNAPSHOT_TEXT


@pytest.fixture
def object_info():
    return copy.deepcopy(OBJECT_INFO)
