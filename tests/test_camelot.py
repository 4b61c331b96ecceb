"""Unit tests for the Camelot wheel harmonic key resolver."""

import pytest
from synapse_dj.camelot import CamelotKey, CamelotWheel, KeyMode, are_compatible, compatible_keys


@pytest.fixture
def camelot():
    return CamelotWheel()


class TestParseKey:
    def test_valid_keys(self, camelot):
        assert camelot.parse_key("8A") == (8, "A")
        assert camelot.parse_key("12B") == (12, "B")
        assert camelot.parse_key("1A") == (1, "A")
        assert camelot.parse_key("  8A  ") == (8, "A")

    def test_lowercase(self, camelot):
        assert camelot.parse_key("8a") == (8, "A")
        assert camelot.parse_key("12b") == (12, "B")

    def test_invalid_keys(self, camelot):
        assert camelot.parse_key("") is None
        assert camelot.parse_key(None) is None
        assert camelot.parse_key("13A") is None
        assert camelot.parse_key("0A") is None
        assert camelot.parse_key("8C") is None
        assert camelot.parse_key("ABC") is None

    def test_standard_minor(self, camelot):
        assert camelot.parse_key("Am") == CamelotKey(8, KeyMode.MINOR)
        assert camelot.parse_key("A minor") == CamelotKey(8, KeyMode.MINOR)
        assert camelot.parse_key("Amin") == CamelotKey(8, KeyMode.MINOR)
        assert camelot.parse_key("F#m") == CamelotKey(11, KeyMode.MINOR)
        assert camelot.parse_key("Cm") == CamelotKey(5, KeyMode.MINOR)

    def test_standard_major(self, camelot):
        assert camelot.parse_key("C") == CamelotKey(8, KeyMode.MAJOR)
        assert camelot.parse_key("C major") == CamelotKey(8, KeyMode.MAJOR)
        assert camelot.parse_key("G") == CamelotKey(9, KeyMode.MAJOR)
        assert camelot.parse_key("Eb") == CamelotKey(5, KeyMode.MAJOR)

    def test_enharmonics_agree(self, camelot):
        assert camelot.parse_key("Dbm") == camelot.parse_key("C#m")
        assert camelot.parse_key("G#m") == camelot.parse_key("Abm")
        assert camelot.parse_key("F#") == camelot.parse_key("Gb")


class TestConversion:
    def test_every_position_round_trips(self, camelot):
        for position in range(1, 13):
            for mode in KeyMode:
                key = CamelotKey(position, mode)
                assert camelot.parse_key(camelot.to_standard(key)) == key
                assert camelot.parse_key(camelot.to_camelot(key)) == key

    def test_to_standard_spellings(self, camelot):
        assert camelot.to_standard(CamelotKey(8, KeyMode.MINOR)) == "Am"
        assert camelot.to_standard(CamelotKey(8, KeyMode.MAJOR)) == "C"
        assert camelot.to_standard(CamelotKey(11, KeyMode.MINOR)) == "F#m"


class TestCompatibleKeys:
    def test_camelot_neighbours(self, camelot):
        assert camelot.compatible_keys("8A") == {"8A", "9A", "7A", "8B"}

    def test_wraps_around(self, camelot):
        assert camelot.compatible_keys("12B") == {"12B", "1B", "11B", "12A"}
        assert camelot.compatible_keys("1A") == {"1A", "2A", "12A", "1B"}

    def test_standard_input_gives_standard_output(self, camelot):
        assert camelot.compatible_keys("Am") == {"Am", "Em", "Dm", "C"}

    def test_always_contains_input(self, camelot):
        for key in ("8a", " 8A", "A minor", "Gb", "nonsense"):
            assert key in camelot.compatible_keys(key)

    def test_unknown_key_only_itself(self, camelot):
        assert camelot.compatible_keys("13X") == {"13X"}

    def test_blank_key_is_empty(self, camelot):
        assert camelot.compatible_keys("") == frozenset()
        assert camelot.compatible_keys(None) == frozenset()

    def test_module_level_helper(self):
        assert compatible_keys("8A") == {"8A", "9A", "7A", "8B"}


class TestAreCompatible:
    def test_symmetric(self, camelot):
        keys = [str(CamelotKey(p, m)) for p in range(1, 13) for m in KeyMode]
        for a in keys:
            for b in keys:
                assert camelot.are_compatible(a, b) == camelot.are_compatible(b, a)

    def test_across_notations(self, camelot):
        assert camelot.are_compatible("8A", "Am")
        assert camelot.are_compatible("Em", "8A")
        assert camelot.are_compatible("C", "8A")
        assert not camelot.are_compatible("8A", "4B")

    def test_unknown_keys_exact_match_only(self, camelot):
        assert camelot.are_compatible("weird", "WEIRD")
        assert not camelot.are_compatible("weird", "8A")
        assert not camelot.are_compatible(None, "8A")

    def test_module_level_helper(self):
        assert are_compatible("8A", "9A")
        assert not are_compatible("8A", "10A")


class TestTransitionScore:
    def test_same_key(self, camelot):
        score, rel = camelot.transition_score("8A", "8A")
        assert score == 1.0
        assert rel == "same"

    def test_adjacent_up(self, camelot):
        score, rel = camelot.transition_score("8A", "9A")
        assert score == 0.9
        assert rel == "adjacent_up"

    def test_adjacent_down(self, camelot):
        score, rel = camelot.transition_score("8A", "7A")
        assert score == 0.9
        assert rel == "adjacent_down"

    def test_ring_switch(self, camelot):
        score, rel = camelot.transition_score("8A", "8B")
        assert score == 0.85
        assert rel == "inner_outer"

    def test_energy_boost(self, camelot):
        score, rel = camelot.transition_score("8A", "3A")
        assert score == 0.7
        assert rel == "energy_boost"

    def test_diagonal(self, camelot):
        score, rel = camelot.transition_score("8A", "9B")
        assert score == 0.6
        assert rel == "diagonal_up"

    def test_incompatible(self, camelot):
        score, rel = camelot.transition_score("8A", "4B")
        assert score == 0.1
        assert rel == "incompatible"

    def test_wrap_around(self, camelot):
        # 12A -> 1A should be adjacent_up (wraps)
        score, rel = camelot.transition_score("12A", "1A")
        assert score == 0.9
        assert rel == "adjacent_up"

        score, rel = camelot.transition_score("1A", "12A")
        assert score == 0.9
        assert rel == "adjacent_down"

    def test_invalid_keys_return_zero(self, camelot):
        score, rel = camelot.transition_score("", "8A")
        assert score == 0.0
        assert rel == "unknown"

    def test_mixed_notation(self, camelot):
        score, rel = camelot.transition_score("Am", "9A")
        assert rel == "adjacent_up"
