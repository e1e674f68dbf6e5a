"""Provider code tables.

Open-Meteo reports WMO numeric weather codes; AEMET reports string sky-state
codes. The two tables are independent. Codes missing from a table degrade to
``unknown`` and a generic description instead of failing.
"""

from __future__ import annotations

from typing import Final

from .config import Language
from .engines.types import Condition

DEFAULT_ICON: Final[str] = "01d"
ICON_URL_TEMPLATE: Final[str] = (
    "https://openweathermap.org/img/wn/{icon}@{size}.png"
)

# -- Open-Meteo (WMO) ------------------------------------------------------

WMO_DESCRIPTIONS: Final[dict[Language, dict[int, str]]] = {
    "es": {
        0: "Despejado",
        1: "Mayormente despejado",
        2: "Parcialmente nublado",
        3: "Nublado",
        45: "Niebla",
        48: "Niebla con escarcha",
        51: "Llovizna ligera",
        53: "Llovizna moderada",
        55: "Llovizna intensa",
        56: "Llovizna helada ligera",
        57: "Llovizna helada intensa",
        61: "Lluvia ligera",
        63: "Lluvia moderada",
        65: "Lluvia intensa",
        66: "Lluvia helada ligera",
        67: "Lluvia helada intensa",
        71: "Nieve ligera",
        73: "Nieve moderada",
        75: "Nieve intensa",
        77: "Granizo",
        80: "Chubascos ligeros",
        81: "Chubascos moderados",
        82: "Chubascos intensos",
        85: "Chubascos de nieve ligeros",
        86: "Chubascos de nieve intensos",
        95: "Tormenta",
        96: "Tormenta con granizo ligero",
        99: "Tormenta con granizo intenso",
    },
    "en": {
        0: "Clear sky",
        1: "Mainly clear",
        2: "Partly cloudy",
        3: "Overcast",
        45: "Fog",
        48: "Depositing rime fog",
        51: "Light drizzle",
        53: "Moderate drizzle",
        55: "Dense drizzle",
        56: "Light freezing drizzle",
        57: "Dense freezing drizzle",
        61: "Slight rain",
        63: "Moderate rain",
        65: "Heavy rain",
        66: "Light freezing rain",
        67: "Heavy freezing rain",
        71: "Slight snow fall",
        73: "Moderate snow fall",
        75: "Heavy snow fall",
        77: "Snow grains",
        80: "Slight rain showers",
        81: "Moderate rain showers",
        82: "Violent rain showers",
        85: "Slight snow showers",
        86: "Heavy snow showers",
        95: "Thunderstorm",
        96: "Thunderstorm with slight hail",
        99: "Thunderstorm with heavy hail",
    },
}

WMO_FALLBACK_DESCRIPTION: Final[dict[Language, str]] = {
    "es": "Desconocido",
    "en": "Unknown",
}

WMO_ICONS: Final[dict[int, str]] = {
    0: "01d",
    1: "02d",
    2: "03d",
    3: "04d",
    45: "50d",
    48: "50d",
    51: "09d",
    53: "09d",
    55: "09d",
    61: "10d",
    63: "10d",
    65: "10d",
    71: "13d",
    73: "13d",
    75: "13d",
    80: "09d",
    95: "11d",
    96: "11d",
    99: "11d",
}


def wmo_condition(code: int | None) -> Condition:
    if code is None:
        return "unknown"
    if code == 0:
        return "clear"
    if 1 <= code <= 3:
        return "clouds"
    if code in (45, 48):
        return "mist"
    if 51 <= code <= 67:
        return "rain"
    if 71 <= code <= 86:
        return "snow"
    if 95 <= code <= 99:
        return "thunderstorm"
    return "unknown"


def wmo_description(code: int | None, language: Language = "es") -> str:
    table = WMO_DESCRIPTIONS[language]
    if code is None or code not in table:
        return WMO_FALLBACK_DESCRIPTION[language]
    return table[code]


def wmo_icon(code: int | None) -> str:
    if code is None:
        return DEFAULT_ICON
    return WMO_ICONS.get(code, DEFAULT_ICON)


# -- AEMET sky state -------------------------------------------------------

AEMET_CONDITIONS: Final[dict[str, Condition]] = {
    "11": "clear",
    **{code: "clouds" for code in ("12", "13", "14", "15", "16", "17")},
    **{
        code: "rain"
        for code in ("23", "24", "25", "26", "33", "34", "35", "36")
    },
    **{code: "snow" for code in ("43", "44", "45", "46")},
    **{code: "thunderstorm" for code in ("51", "52", "53", "54")},
}

AEMET_DESCRIPTIONS: Final[dict[Language, dict[str, str]]] = {
    "es": {
        "11": "Despejado",
        "12": "Poco nuboso",
        "13": "Intervalos nubosos",
        "14": "Nuboso",
        "15": "Muy nuboso",
        "16": "Cubierto",
        "17": "Nubes altas",
        "23": "Intervalos nubosos con lluvia escasa",
        "24": "Nuboso con lluvia escasa",
        "25": "Muy nuboso con lluvia escasa",
        "26": "Cubierto con lluvia escasa",
        "33": "Intervalos nubosos con lluvia",
        "34": "Nuboso con lluvia",
        "35": "Muy nuboso con lluvia",
        "36": "Cubierto con lluvia",
        "43": "Intervalos nubosos con nieve escasa",
        "44": "Nuboso con nieve escasa",
        "45": "Muy nuboso con nieve escasa",
        "46": "Cubierto con nieve escasa",
        "51": "Intervalos nubosos con tormenta",
        "52": "Nuboso con tormenta",
        "53": "Muy nuboso con tormenta",
        "54": "Cubierto con tormenta",
    },
    "en": {
        "11": "Clear",
        "12": "Slightly cloudy",
        "13": "Cloudy intervals",
        "14": "Cloudy",
        "15": "Very cloudy",
        "16": "Overcast",
        "17": "High clouds",
        "23": "Cloudy intervals with light rain",
        "24": "Cloudy with light rain",
        "25": "Very cloudy with light rain",
        "26": "Overcast with light rain",
        "33": "Cloudy intervals with rain",
        "34": "Cloudy with rain",
        "35": "Very cloudy with rain",
        "36": "Overcast with rain",
        "43": "Cloudy intervals with light snow",
        "44": "Cloudy with light snow",
        "45": "Very cloudy with light snow",
        "46": "Overcast with light snow",
        "51": "Cloudy intervals with storm",
        "52": "Cloudy with storm",
        "53": "Very cloudy with storm",
        "54": "Overcast with storm",
    },
}

AEMET_FALLBACK_DESCRIPTION: Final[dict[Language, str]] = {
    "es": "Condiciones variables",
    "en": "Variable conditions",
}

AEMET_ICONS: Final[dict[str, str]] = {
    "11": "01d",
    "12": "02d",
    "13": "03d",
    "14": "04d",
    "15": "04d",
    "16": "04d",
    "17": "02d",
    **{code: "09d" for code in ("23", "24", "25", "26")},
    **{code: "10d" for code in ("33", "34", "35", "36")},
    **{code: "13d" for code in ("43", "44", "45", "46")},
    **{code: "11d" for code in ("51", "52", "53", "54")},
}


def aemet_condition(code: str) -> Condition:
    return AEMET_CONDITIONS.get(code, "unknown")


def aemet_description(code: str, language: Language = "es") -> str:
    return AEMET_DESCRIPTIONS[language].get(
        code, AEMET_FALLBACK_DESCRIPTION[language]
    )


def aemet_icon(code: str) -> str:
    return AEMET_ICONS.get(code, DEFAULT_ICON)


def icon_url(icon: str, size: str = "2x") -> str:
    """OpenWeatherMap-compatible icon URL for an icon identifier."""

    return ICON_URL_TEMPLATE.format(icon=icon, size=size)
