import json
import tempfile
from pathlib import Path
from unittest import TestCase

from alumni_fantasy.colleges import (
    CANONICAL_COLLEGES,
    COLLEGE_INDEX,
    COLLEGE_SYNONYMS,
    MASCOT_SUFFIXES,
    UNKNOWN_COLLEGE,
    CollegeResolver,
    default_resolver,
    is_placeholder,
    load_resolver,
    normalize_college_text,
    normalize_person_name,
    resolve_college,
)


class CollegeNormalizationTest(TestCase):
    def test_normalize_college_text(self):
        self.assertEqual(normalize_college_text("The Ohio State University"), "ohio state")
        self.assertEqual(normalize_college_text("Ohio St."), "ohio state")
        self.assertEqual(normalize_college_text("St. John's"), "st johns")
        self.assertEqual(normalize_college_text("Texas A&M"), "texas a and m")
        self.assertEqual(normalize_college_text("San José State"), "san jose state")

    def test_normalize_person_name_drops_suffixes(self):
        self.assertEqual(normalize_person_name("Odell Beckham Jr."), "odell beckham")
        self.assertEqual(normalize_person_name("D'Andre Swift"), "dandre swift")

    def test_placeholders(self):
        for value in (None, "", "  ", "N/A", "unknown", "None", "--"):
            self.assertTrue(is_placeholder(value), value)
        self.assertFalse(is_placeholder("Iowa"))

    def test_every_index_value_is_canonical(self):
        self.assertTrue(set(COLLEGE_INDEX.values()) <= CANONICAL_COLLEGES)
        self.assertTrue(set(COLLEGE_SYNONYMS.values()) <= CANONICAL_COLLEGES)

    def test_tables_are_read_only(self):
        with self.assertRaises(TypeError):
            COLLEGE_SYNONYMS["hogwarts"] = "Alabama"
        self.assertIsInstance(MASCOT_SUFFIXES, frozenset)


class CollegeResolverTest(TestCase):
    def setUp(self):
        self.resolver = CollegeResolver(by_player_id={"12": "University of Michigan"}, by_player_name={"Nico Collins": "Michigan"})

    def test_ohio_state_variants(self):
        for raw in ("The Ohio State", "Ohio State Buckeyes", "Ohio St.", "Ohio State University"):
            self.assertEqual(self.resolver.resolve(raw), "Ohio State", raw)

    def test_miami_variants(self):
        for raw in ("Miami Hurricanes", "Miami", "Miami (FL)", "Miami Fla", "Miami FL"):
            self.assertEqual(self.resolver.resolve(raw), "Miami (FL)", raw)
        self.assertEqual(self.resolver.resolve("Miami (OH)"), "Miami (OH)")

    def test_parenthetical_noise_is_stripped(self):
        self.assertEqual(self.resolver.resolve("Oklahoma Sooners (NCAA)"), "Oklahoma")
        self.assertEqual(self.resolver.resolve("University of Michigan (Ann Arbor, MI)"), "Michigan")

    def test_player_tables_fill_gaps(self):
        self.assertEqual(self.resolver.resolve(None, player_id="12"), "Michigan")
        self.assertEqual(self.resolver.resolve("N/A", name="Nico Collins"), "Michigan")
        self.assertEqual(self.resolver.resolve("", player_id="99", name="Someone Else"), UNKNOWN_COLLEGE)

    def test_every_canonical_college_resolves_to_itself(self):
        for college in sorted(CANONICAL_COLLEGES):
            self.assertEqual(self.resolver.resolve(college), college, college)
            self.assertEqual(self.resolver.resolve(self.resolver.resolve(college)), college, college)

    def test_mascot_suffixes_are_stripped(self):
        self.assertEqual(self.resolver.resolve("Georgia Bulldogs"), "Georgia")
        self.assertEqual(self.resolver.resolve("Penn State Nittany Lions"), "Penn State")
        self.assertEqual(self.resolver.resolve("Texas A&M Aggies"), "Texas A&M")

    def test_distinct_schools_sharing_a_leading_name_stay_distinct(self):
        for raw in ("Arkansas-Pine Bluff", "Texas A&M-Commerce", "Missouri Southern", "Ohio Wesleyan", "Mississippi College"):
            self.assertIsNone(self.resolver.canonical(raw), raw)
            self.assertEqual(self.resolver.resolve(raw), UNKNOWN_COLLEGE, raw)

    def test_unresolvable_text_is_unknown(self):
        self.assertEqual(self.resolver.resolve("Hogwarts School of Witchcraft"), UNKNOWN_COLLEGE)
        self.assertIsNone(self.resolver.canonical("Hogwarts"))

    def test_resolve_many_splits_dual_affiliations(self):
        self.assertEqual(self.resolver.resolve_many("Alabama; Oklahoma"), ["Alabama", "Oklahoma"])
        self.assertEqual(self.resolver.resolve_many("Oklahoma / Oklahoma Sooners"), ["Oklahoma"])
        self.assertEqual(self.resolver.resolve_many("N/A", name="Nico Collins"), ["Michigan"])
        self.assertEqual(self.resolver.resolve_many("Hogwarts"), [UNKNOWN_COLLEGE])


class DefaultResolverTest(TestCase):
    def test_bundled_name_table(self):
        self.assertEqual(resolve_college(None, name="Nico Collins"), "Michigan")
        self.assertEqual(default_resolver().resolve("", name="Tyreek Hill"), "West Alabama")

    def test_load_resolver_layers_override_files(self):
        with tempfile.TemporaryDirectory() as temp_dir:
            by_id = Path(temp_dir) / "by_id.json"
            by_id.write_text(json.dumps({"00-0099999": "Boise St."}))
            resolver = load_resolver(by_id_path=str(by_id), by_name_path=str(Path(temp_dir) / "missing.json"))

        self.assertEqual(resolver.resolve(None, player_id="00-0099999"), "Boise State")
        self.assertEqual(resolver.resolve(None, name="Nico Collins"), "Michigan")
