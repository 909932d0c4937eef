import json
import re
import unicodedata
from functools import lru_cache
from pathlib import Path
from types import MappingProxyType
from typing import Any, Dict, FrozenSet, List, Mapping, Optional


UNKNOWN_COLLEGE = "Unknown"

PLACEHOLDER_VALUES: FrozenSet[str] = frozenset({"", "unknown", "n/a", "na", "none", "null", "nan", "-", "--", "?"})

STOP_WORDS: FrozenSet[str] = frozenset({"university", "the", "of", "at"})

NAME_SUFFIXES: FrozenSet[str] = frozenset({"jr", "sr", "ii", "iii", "iv", "v"})

DATA_DIR = Path(__file__).resolve().parent / "data"

CANONICAL_COLLEGES: FrozenSet[str] = frozenset(
    {
        # ACC
        "Boston College", "California", "Clemson", "Duke", "Florida State", "Georgia Tech", "Louisville",
        "Miami (FL)", "NC State", "North Carolina", "Pittsburgh", "SMU", "Stanford", "Syracuse", "Virginia",
        "Virginia Tech", "Wake Forest",
        # Big Ten
        "Illinois", "Indiana", "Iowa", "Maryland", "Michigan", "Michigan State", "Minnesota", "Nebraska",
        "Northwestern", "Ohio State", "Oregon", "Penn State", "Purdue", "Rutgers", "UCLA", "USC", "Washington",
        "Wisconsin",
        # Big 12
        "Arizona", "Arizona State", "Baylor", "BYU", "Cincinnati", "Colorado", "Houston", "Iowa State", "Kansas",
        "Kansas State", "Oklahoma State", "TCU", "Texas Tech", "UCF", "Utah", "West Virginia",
        # SEC
        "Alabama", "Arkansas", "Auburn", "Florida", "Georgia", "Kentucky", "LSU", "Mississippi State", "Missouri",
        "Oklahoma", "Ole Miss", "South Carolina", "Tennessee", "Texas", "Texas A&M", "Vanderbilt",
        # Pac-12, independents
        "Oregon State", "Washington State", "Notre Dame", "UConn", "UMass",
        # American
        "Army", "Charlotte", "East Carolina", "FAU", "Memphis", "Navy", "North Texas", "Rice", "South Florida",
        "Temple", "Tulane", "Tulsa", "UAB", "UTSA",
        # Mountain West
        "Air Force", "Boise State", "Colorado State", "Fresno State", "Hawaii", "Nevada", "New Mexico",
        "San Diego State", "San Jose State", "UNLV", "Utah State", "Wyoming",
        # Sun Belt
        "Appalachian State", "Arkansas State", "Coastal Carolina", "Georgia Southern", "Georgia State",
        "James Madison", "Louisiana", "Louisiana-Monroe", "Marshall", "Old Dominion", "South Alabama",
        "Southern Miss", "Texas State", "Troy",
        # MAC
        "Akron", "Ball State", "Bowling Green", "Buffalo", "Central Michigan", "Eastern Michigan", "Kent State",
        "Miami (OH)", "Northern Illinois", "Ohio", "Toledo", "Western Michigan",
        # Conference USA
        "Delaware", "FIU", "Jacksonville State", "Kennesaw State", "Liberty", "Louisiana Tech", "Middle Tennessee",
        "Missouri State", "New Mexico State", "Sam Houston", "UTEP", "Western Kentucky",
        # FCS
        "Abilene Christian", "Alabama A&M", "Alabama State", "Albany", "Alcorn State", "Austin Peay",
        "Bethune-Cookman", "Brown", "Bucknell", "Cal Poly", "Campbell", "Central Arkansas", "Central Connecticut",
        "Charleston Southern", "Chattanooga", "Colgate", "Columbia", "Cornell", "Dartmouth", "Delaware State",
        "East Tennessee State", "Eastern Illinois", "Eastern Kentucky", "Eastern Washington", "Elon",
        "Florida A&M", "Fordham", "Furman", "Gardner-Webb", "Georgetown", "Grambling State", "Hampton", "Harvard",
        "Holy Cross", "Howard", "Idaho", "Idaho State", "Illinois State", "Incarnate Word", "Indiana State",
        "Jackson State", "Lafayette", "Lehigh", "Lindenwood", "Maine", "McNeese", "Mercer",
        "Mississippi Valley State", "Monmouth", "Montana", "Montana State", "Morgan State", "Murray State",
        "New Hampshire", "Nicholls", "Norfolk State", "North Carolina A&T", "North Carolina Central",
        "North Dakota", "North Dakota State", "Northern Arizona", "Northern Colorado", "Northern Iowa",
        "Northwestern State", "Penn", "Portland State", "Prairie View A&M", "Princeton", "Rhode Island",
        "Richmond", "Sacramento State", "Sacred Heart", "Samford", "South Carolina State", "South Dakota",
        "South Dakota State", "Southeast Missouri State", "Southeastern Louisiana", "Southern",
        "Southern Illinois", "Southern Utah", "Stephen F. Austin", "Stony Brook", "Tarleton State",
        "Tennessee State", "Tennessee Tech", "Texas Southern", "The Citadel", "Towson", "UC Davis", "UT Martin",
        "Villanova", "VMI", "Weber State", "Western Carolina", "Western Illinois", "William & Mary", "Wofford",
        "Yale", "Youngstown State",
        # Division II and below
        "Ferris State", "Grand Valley State", "Hillsdale", "Kutztown", "Minnesota State",
        "Northwest Missouri State", "Pittsburg State", "Shepherd", "Slippery Rock", "Valdosta State",
        "West Alabama", "West Florida", "West Texas A&M",
    }
)

COLLEGE_SYNONYMS: Mapping[str, str] = MappingProxyType({
    "miami": "Miami (FL)",
    "miami fl": "Miami (FL)",
    "miami fla": "Miami (FL)",
    "miami florida": "Miami (FL)",
    "miami hurricanes": "Miami (FL)",
    "miami oh": "Miami (OH)",
    "miami ohio": "Miami (OH)",
    "miami redhawks": "Miami (OH)",
    "texas am": "Texas A&M",
    "texas a m": "Texas A&M",
    "tamu": "Texas A&M",
    "crimson tide": "Alabama",
    "bama": "Alabama",
    "alab": "Alabama",
    "buckeyes": "Ohio State",
    "alabama birmingham": "UAB",
    "texas san antonio": "UTSA",
    "texas el paso": "UTEP",
    "central florida": "UCF",
    "southern california": "USC",
    "southern cal": "USC",
    "southern methodist": "SMU",
    "texas christian": "TCU",
    "brigham young": "BYU",
    "louisiana state": "LSU",
    "mississippi": "Ole Miss",
    "pitt": "Pittsburgh",
    "north carolina state": "NC State",
    "nc st": "NC State",
    "unc": "North Carolina",
    "uva": "Virginia",
    "va tech": "Virginia Tech",
    "ga tech": "Georgia Tech",
    "uga": "Georgia",
    "cal": "California",
    "cal berkeley": "California",
    "california berkeley": "California",
    "california los angeles": "UCLA",
    "california davis": "UC Davis",
    "nevada las vegas": "UNLV",
    "connecticut": "UConn",
    "massachusetts": "UMass",
    "florida international": "FIU",
    "florida intl": "FIU",
    "florida atlantic": "FAU",
    "south florida": "South Florida",
    "usf": "South Florida",
    "ecu": "East Carolina",
    "appalachian": "Appalachian State",
    "app state": "Appalachian State",
    "louisiana lafayette": "Louisiana",
    "ul lafayette": "Louisiana",
    "ulm": "Louisiana-Monroe",
    "ul monroe": "Louisiana-Monroe",
    "southern mississippi": "Southern Miss",
    "middle tennessee state": "Middle Tennessee",
    "mtsu": "Middle Tennessee",
    "wku": "Western Kentucky",
    "niu": "Northern Illinois",
    "jmu": "James Madison",
    "sam houston state": "Sam Houston",
    "ndsu": "North Dakota State",
    "tennessee martin": "UT Martin",
    "tennessee chattanooga": "Chattanooga",
    "pennsylvania": "Penn",
    "citadel": "The Citadel",
    "virginia military institute": "VMI",
    "mcneese state": "McNeese",
    "nicholls state": "Nicholls",
    "stephen f austin state": "Stephen F. Austin",
    "sfa": "Stephen F. Austin",
    "cal poly san luis obispo": "Cal Poly",
    "hawai i": "Hawaii",
    "army west point": "Army",
    "navy midshipmen": "Navy",
    "minnesota mankato": "Minnesota State",
    "northwest missouri": "Northwest Missouri State",
})

# Normalized team nicknames; only these are stripped from the end of a name.
MASCOT_SUFFIXES: FrozenSet[str] = frozenset(
    {
        "aggies", "aztecs", "badgers", "bearcats", "bears", "beavers", "bengals", "bison", "blue devils",
        "blue hens", "boilermakers", "broncos", "bruins", "buckeyes", "buffaloes", "bulldogs", "bulls",
        "cardinal", "cavaliers", "chanticleers", "chippewas", "commodores", "cornhuskers", "cougars",
        "cowboys", "crimson tide", "cyclones", "demon deacons", "ducks", "eagles", "falcons", "fighting illini",
        "fighting irish", "flames", "gamecocks", "gators", "golden bears", "golden eagles", "golden flashes",
        "golden gophers", "golden hurricane", "gophers", "green wave", "hawkeyes", "hilltoppers", "hokies",
        "hoosiers", "horned frogs", "huskies", "jackrabbits", "jaguars", "jayhawks", "knights", "lions",
        "lobos", "longhorns", "mean green", "miners", "minutemen", "mountaineers", "musketeers", "mustangs",
        "nittany lions", "orange", "owls", "panthers", "phoenix", "pirates", "rainbow warriors", "rams",
        "ravens", "razorbacks", "rebels", "red raiders", "red wolves", "redhawks", "roadrunners", "rockets",
        "scarlet knights", "seminoles", "sooners", "spartans", "sun devils", "tar heels", "terrapins",
        "thundering herd", "tigers", "trojans", "utes", "vandals", "volunteers", "warhawks", "wildcats",
        "wolf pack", "wolfpack", "wolverines", "yellow jackets", "zips",
    }
)

_SPLIT_PATTERN = re.compile(r"\s*[;/]\s*")
_PAREN_PATTERN = re.compile(r"\([^)]*\)")


def _fold(text: str) -> str:
    decomposed = unicodedata.normalize("NFKD", text)
    return "".join(ch for ch in decomposed if not unicodedata.combining(ch))


def normalize_college_text(raw: Any) -> str:
    text = _fold(str(raw or "")).lower()
    text = text.replace("'", "").replace("\u2019", "")
    text = text.replace("&", " and ")
    text = re.sub(r"[^a-z0-9]+", " ", text)
    tokens = [token for token in text.split() if token not in STOP_WORDS]
    # "Ohio St." style abbreviations; a leading "st" is a saint.
    tokens = [("state" if token == "st" and index > 0 else token) for index, token in enumerate(tokens)]
    return " ".join(tokens)


def normalize_person_name(raw: Any) -> str:
    text = _fold(str(raw or "")).lower()
    text = text.replace("'", "").replace("\u2019", "").replace(".", "")
    tokens = [token for token in re.sub(r"[^a-z0-9]+", " ", text).split() if token not in NAME_SUFFIXES]
    return " ".join(tokens)


def is_placeholder(raw: Any) -> bool:
    if raw is None:
        return True
    return str(raw).strip().lower() in PLACEHOLDER_VALUES


def _build_index() -> Mapping[str, str]:
    index: Dict[str, str] = {}
    for name in CANONICAL_COLLEGES:
        index[normalize_college_text(name)] = name
    for variant, canonical in COLLEGE_SYNONYMS.items():
        if canonical not in CANONICAL_COLLEGES:
            raise ValueError(f"synonym target is not a canonical college: {canonical}")
        key = normalize_college_text(variant)
        index.setdefault(key, canonical)
    return MappingProxyType(index)


COLLEGE_INDEX: Mapping[str, str] = _build_index()


_MASCOTS_LONGEST_FIRST = tuple(sorted(MASCOT_SUFFIXES, key=lambda mascot: (-len(mascot), mascot)))


def _strip_mascot(key: str) -> Optional[str]:
    for mascot in _MASCOTS_LONGEST_FIRST:
        if key.endswith(" " + mascot):
            match = COLLEGE_INDEX.get(key[: -len(mascot) - 1].strip())
            if match:
                return match
    return None


class CollegeResolver:
    """Resolve free-text school names to one curated display name.

    Table resolution first; when the raw value is a placeholder or does not
    resolve, the player-id table and then the player-name table are consulted.
    Whatever those tables hold is itself canonicalized, so every answer is a
    member of ``CANONICAL_COLLEGES`` or ``UNKNOWN_COLLEGE``.
    """

    def __init__(
        self,
        by_player_id: Optional[Mapping[str, str]] = None,
        by_player_name: Optional[Mapping[str, str]] = None,
    ):
        self.by_player_id: Mapping[str, str] = MappingProxyType(
            {str(key).strip(): str(value) for key, value in dict(by_player_id or {}).items()}
        )
        self.by_player_name: Mapping[str, str] = MappingProxyType(
            {normalize_person_name(key): str(value) for key, value in dict(by_player_name or {}).items()}
        )

    def canonical(self, raw: Any) -> Optional[str]:
        if is_placeholder(raw):
            return None
        text = str(raw)
        kept = normalize_college_text(text.replace("(", " ").replace(")", " "))
        stripped = normalize_college_text(_PAREN_PATTERN.sub(" ", text))

        for key in (kept, stripped):
            if key and key in COLLEGE_INDEX:
                return COLLEGE_INDEX[key]
        for key in (stripped, kept):
            if key:
                match = _strip_mascot(key)
                if match:
                    return match
        return None

    def _from_tables(self, player_id: Any, name: Any) -> Optional[str]:
        if player_id is not None and str(player_id).strip():
            mapped = self.by_player_id.get(str(player_id).strip())
            resolved = self.canonical(mapped)
            if resolved:
                return resolved
        if name:
            mapped = self.by_player_name.get(normalize_person_name(name))
            resolved = self.canonical(mapped)
            if resolved:
                return resolved
        return None

    def resolve(self, raw: Any, player_id: Any = None, name: Any = None) -> str:
        resolved = self.canonical(raw)
        if resolved:
            return resolved
        return self._from_tables(player_id, name) or UNKNOWN_COLLEGE

    def resolve_many(self, raw: Any, player_id: Any = None, name: Any = None) -> List[str]:
        if is_placeholder(raw):
            return [self._from_tables(player_id, name) or UNKNOWN_COLLEGE]
        parts = [part for part in _SPLIT_PATTERN.split(str(raw or "")) if part.strip()]
        schools: List[str] = []
        for part in parts:
            resolved = self.canonical(part)
            if resolved and resolved not in schools:
                schools.append(resolved)
        if schools:
            return schools
        return [self._from_tables(player_id, name) or UNKNOWN_COLLEGE]


def _load_json_mapping(path: Path) -> Dict[str, str]:
    if not path.exists():
        return {}
    payload = json.loads(path.read_text(encoding="utf-8"))
    if not isinstance(payload, dict):
        return {}
    return {str(key): str(value) for key, value in payload.items() if value}


@lru_cache(maxsize=1)
def default_resolver() -> CollegeResolver:
    payload = json.loads((DATA_DIR / "player_colleges.json").read_text(encoding="utf-8"))
    return CollegeResolver(
        by_player_id=payload.get("by_id") or {},
        by_player_name=payload.get("by_name") or {},
    )


def load_resolver(by_id_path: Optional[str] = None, by_name_path: Optional[str] = None) -> CollegeResolver:
    base = default_resolver()
    by_id = dict(base.by_player_id)
    by_name = dict(base.by_player_name)
    if by_id_path:
        by_id.update(_load_json_mapping(Path(by_id_path)))
    if by_name_path:
        by_name.update(_load_json_mapping(Path(by_name_path)))
    return CollegeResolver(by_player_id=by_id, by_player_name=by_name)


def resolve_college(raw: Any, player_id: Any = None, name: Any = None) -> str:
    return default_resolver().resolve(raw, player_id=player_id, name=name)
