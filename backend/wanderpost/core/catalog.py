"""
Static reference data: country locale lookups, the country priority lists and the
backup table of known towns used when generated candidates run out.
"""

from collections import namedtuple
from typing import Dict, List

Locale = namedtuple("Locale", ["timezone", "currency", "language"])
BackupCity = namedtuple("BackupCity", ["name", "lat", "lng"])

DEFAULT_LOCALE = Locale("Europe/Belgrade", "EUR", "English")

PRIORITY_COUNTRIES: List[str] = [
    "Serbia", "Croatia", "Italy", "Montenegro", "Bulgaria",
    "Hungary", "Greece", "Romania", "North Macedonia", "Czech Republic",
]

SECONDARY_COUNTRIES: List[str] = [
    "Austria", "Slovenia", "Albania", "Poland", "Slovakia",
]

COUNTRY_LOCALES: Dict[str, Locale] = {
    "Serbia": Locale("Europe/Belgrade", "RSD", "Serbian"),
    "Croatia": Locale("Europe/Zagreb", "EUR", "Croatian"),
    "Italy": Locale("Europe/Rome", "EUR", "Italian"),
    "Montenegro": Locale("Europe/Podgorica", "EUR", "Montenegrin"),
    "Bulgaria": Locale("Europe/Sofia", "BGN", "Bulgarian"),
    "Hungary": Locale("Europe/Budapest", "HUF", "Hungarian"),
    "Greece": Locale("Europe/Athens", "EUR", "Greek"),
    "Romania": Locale("Europe/Bucharest", "RON", "Romanian"),
    "North Macedonia": Locale("Europe/Skopje", "MKD", "Macedonian"),
    "Czech Republic": Locale("Europe/Prague", "CZK", "Czech"),
    "Austria": Locale("Europe/Vienna", "EUR", "German"),
    "Slovenia": Locale("Europe/Ljubljana", "EUR", "Slovenian"),
    "Albania": Locale("Europe/Tirane", "ALL", "Albanian"),
    "Poland": Locale("Europe/Warsaw", "PLN", "Polish"),
    "Slovakia": Locale("Europe/Bratislava", "EUR", "Slovak"),
}

BACKUP_CITIES: Dict[str, List[BackupCity]] = {
    "Serbia": [
        BackupCity("Novi Sad", 45.2671, 19.8335),
        BackupCity("Subotica", 46.1000, 19.6667),
        BackupCity("Niš", 43.3200, 21.9000),
        BackupCity("Kragujevac", 44.0167, 20.9167),
    ],
    "Croatia": [
        BackupCity("Rovinj", 45.0811, 13.6387),
        BackupCity("Split", 43.5081, 16.4402),
        BackupCity("Zadar", 44.1197, 15.2422),
        BackupCity("Dubrovnik", 42.6507, 18.0944),
    ],
    "Italy": [
        BackupCity("Orvieto", 42.7173, 12.1057),
        BackupCity("Lucca", 43.8429, 10.5027),
        BackupCity("Matera", 40.6667, 16.6000),
        BackupCity("Siena", 43.3186, 11.3306),
    ],
    "Montenegro": [
        BackupCity("Kotor", 42.4246, 18.7712),
        BackupCity("Budva", 42.2911, 18.8400),
        BackupCity("Herceg Novi", 42.4531, 18.5375),
        BackupCity("Cetinje", 42.3944, 18.9147),
    ],
    "Bulgaria": [
        BackupCity("Plovdiv", 42.1421, 24.7499),
        BackupCity("Veliko Tarnovo", 43.0822, 25.6325),
        BackupCity("Sozopol", 42.4178, 27.6953),
        BackupCity("Nessebar", 42.6609, 27.7192),
    ],
    "Hungary": [
        BackupCity("Sopron", 47.6817, 16.5845),
        BackupCity("Eger", 47.9025, 20.3772),
        BackupCity("Pécs", 46.0727, 18.2324),
        BackupCity("Szeged", 46.2530, 20.1414),
    ],
    "Greece": [
        BackupCity("Nafplio", 37.5675, 22.8016),
        BackupCity("Ioannina", 39.6650, 20.8536),
        BackupCity("Corfu Town", 39.6243, 19.9217),
        BackupCity("Chania", 35.5138, 24.0180),
    ],
    "Romania": [
        BackupCity("Sibiu", 45.7983, 24.1255),
        BackupCity("Brașov", 45.6427, 25.5887),
        BackupCity("Sighișoara", 46.2197, 24.7922),
        BackupCity("Cluj-Napoca", 46.7712, 23.6236),
    ],
    "North Macedonia": [
        BackupCity("Ohrid", 41.1231, 20.8016),
        BackupCity("Bitola", 41.0297, 21.3292),
        BackupCity("Prilep", 41.3450, 21.5500),
        BackupCity("Kruševo", 41.3689, 21.2489),
    ],
    "Czech Republic": [
        BackupCity("Český Krumlov", 48.8127, 14.3175),
        BackupCity("Karlovy Vary", 50.2333, 12.8833),
        BackupCity("Telč", 49.1822, 15.4536),
        BackupCity("Kutná Hora", 49.9481, 15.2681),
    ],
    "Austria": [
        BackupCity("Hallstatt", 47.5622, 13.6493),
        BackupCity("Innsbruck", 47.2692, 11.4041),
        BackupCity("Salzburg", 47.8095, 13.0550),
        BackupCity("Graz", 47.0707, 15.4395),
    ],
    "Slovenia": [
        BackupCity("Piran", 45.5275, 13.5647),
        BackupCity("Ptuj", 46.4200, 15.8700),
        BackupCity("Škofja Loka", 46.1644, 14.3047),
        BackupCity("Maribor", 46.5547, 15.6467),
    ],
    "Albania": [
        BackupCity("Gjirokastër", 40.0758, 20.1404),
        BackupCity("Berat", 40.7058, 19.9522),
        BackupCity("Korçë", 40.6186, 20.7808),
        BackupCity("Shkodër", 42.0686, 19.5031),
    ],
    "Poland": [
        BackupCity("Zamość", 50.7192, 23.2525),
        BackupCity("Wrocław", 51.1079, 17.0385),
        BackupCity("Toruń", 53.0100, 18.6167),
        BackupCity("Gdańsk", 54.3520, 18.6466),
    ],
    "Slovakia": [
        BackupCity("Banská Štiavnica", 48.4598, 18.8997),
        BackupCity("Levoča", 49.0217, 20.5850),
        BackupCity("Košice", 48.7164, 21.2611),
        BackupCity("Bardejov", 49.2944, 21.2736),
    ],
}


def locale_for(country: str) -> Locale:
    return COUNTRY_LOCALES.get(country, DEFAULT_LOCALE)


def canonical_country(name: str) -> str:
    """Map free-text country names onto the catalog spelling when possible"""
    cleaned = (name or "").strip().strip(".").strip()
    for known in COUNTRY_LOCALES:
        if known.lower() == cleaned.lower():
            return known
    return cleaned
