"""
Riga district lookup table.

The district-scoped feed URLs use the key, listings carry the Latvian label.
"""

from typing import Dict, Optional

# Key used by district feed URLs -> label shown in listing descriptions
RIGA_DISTRICTS: Dict[str, str] = {
    "centre": "Centrs",
    "agenskalns": "Āgenskalns",
    "aplokciems": "Aplokciems",
    "bergi": "Berģi",
    "bierini": "Bieriņi",
    "bolderaya": "Bolderāja",
    "breksi": "Brekši",
    "bukulti": "Bukulti",
    "chiekurkalns": "Čiekurkalns",
    "darzciems": "Dārzciems",
    "darzini": "Dārziņi",
    "daugavgriva": "Daugavgrīva",
    "dreilini": "Dreiliņi",
    "dzeguzhkalns": "Dzegužkalns (Dzirciems)",
    "grizinkalns": "Grīziņkalns",
    "ilguciems": "Iļģuciems",
    "imanta": "Imanta",
    "janjavarti": "Jāņavārti",
    "jaunciems": "Jaunciems",
    "jaunmilgravis": "Jaunmīlgrāvis",
    "yugla": "Jugla",
    "katlakalns": "Katlakalns",
    "kengarags": "Ķengarags",
    "kipsala": "Ķīpsala",
    "kleisti": "Kleisti",
    "kliversala": "Klīversala",
    "krasta-st-area": "Krasta r-ns",
    "kundzinsala": "Kundziņsala",
    "maskavas-priekshpilseta": "Latgales priekšpilsēta",
    "lucavsala": "Lucavsala",
    "mangali": "Mangaļi",
    "mangalsala": "Mangaļsala",
    "mezhapark": "Mežaparks",
    "mezhciems": "Mežciems",
    "plyavnieki": "Pļavnieki",
    "purvciems": "Purvciems",
    "rumbula": "Rumbula",
    "shampeteris-pleskodale": "Šampēteris-Pleskodāle",
    "sarkandaugava": "Sarkandaugava",
    "shkirotava": "Šķirotava",
    "teika": "Teika",
    "tornjakalns": "Torņakalns",
    "trisciems": "Trīsciems",
    "vecaki": "Vecāķi",
    "vecdaugava": "Vecdaugava",
    "vecmilgravis": "Vecmīlgrāvis",
    "vecriga": "Vecrīga",
    "voleri": "Voleri",
    "zakusala": "Zaķusala",
    "zasulauks": "Zasulauks",
    "ziepniekkalns": "Ziepniekkalns",
    "zolitude": "Zolitūde",
    "vef": "VEF",
    "other": "Cits",
}

# Words users type to mean "no district restriction"
ANY_DISTRICT_WORDS = frozenset({"all", "any", "visi"})

_LABEL_TO_KEY = {label.casefold(): key for key, label in RIGA_DISTRICTS.items()}


def district_key(value: Optional[str]) -> Optional[str]:
    """Resolve a district key or label to its feed URL key, if known."""
    if not value:
        return None
    folded = value.strip().casefold()
    if folded in RIGA_DISTRICTS:
        return folded
    return _LABEL_TO_KEY.get(folded)


def normalize_district(value: Optional[str]) -> Optional[str]:
    """
    Canonical form used to compare districts.

    Known keys and labels collapse to the feed key; unknown free text is
    trimmed and casefolded so comparisons are case-insensitive.
    """
    if value is None:
        return None
    stripped = value.strip()
    if not stripped:
        return None
    return district_key(stripped) or stripped.casefold()
