"""
Camelot Wheel Harmonic Key Resolver

Implements the Camelot wheel for harmonic compatibility between tracks.
The wheel has 12 positions (1-12) and 2 rings: A (minor) and B (major).

Keys arrive in two notations: Camelot codes ("8A") from Mixed In Key and
Rekordbox exports, and conventional names ("Am", "F#m", "Eb") from Discogs and
older Rekordbox libraries. Both are parsed into one canonical CamelotKey;
conversion back to either notation happens only at the edges.

Compatible set (used for the aggregate score):
  same key        (8A -> 8A)
  adjacent +1     (8A -> 9A)
  adjacent -1     (8A -> 7A)
  relative        (8A -> 8B)

Graded transition scores (used for explanations):
  same key        (8A -> 8A)   = 1.0
  adjacent +1/-1  (8A -> 9A)   = 0.9
  ring switch     (8A -> 8B)   = 0.85
  energy boost +7 (8A -> 3A)   = 0.7
  diagonal +1/-1  (8A -> 9B)   = 0.6
  incompatible                  = 0.1
"""

import re
from enum import Enum
from typing import NamedTuple, Optional, Tuple, Dict, FrozenSet


class KeyMode(str, Enum):
    MINOR = "A"
    MAJOR = "B"

    @property
    def other(self) -> "KeyMode":
        return KeyMode.MAJOR if self is KeyMode.MINOR else KeyMode.MINOR


class CamelotKey(NamedTuple):
    """Canonical key: wheel position 1-12 plus mode."""

    position: int
    mode: KeyMode

    def __str__(self) -> str:
        return f"{self.position}{self.mode.value}"


# Valid Camelot key pattern: 1-12 followed by A or B
_KEY_PATTERN = re.compile(r"^(\d{1,2})([ABab])$")

# Conventional key name: note letter, optional accidental, optional mode suffix
_NAME_PATTERN = re.compile(r"^([A-Ga-g])([#♯b♭]?)\s*([A-Za-z]*)$")

_NOTE_SEMITONES: Dict[str, int] = {
    "C": 0, "D": 2, "E": 4, "F": 5, "G": 7, "A": 9, "B": 11,
}
_ACCIDENTALS: Dict[str, int] = {"": 0, "#": 1, "♯": 1, "b": -1, "♭": -1}
_MINOR_SUFFIXES = {"m", "min", "minor"}
_MAJOR_SUFFIXES = {"", "maj", "major"}

# Display names, one per wheel position (spellings follow the library's import tables)
_STANDARD_NAMES: Dict[CamelotKey, str] = {
    CamelotKey(8, KeyMode.MAJOR): "C",    CamelotKey(5, KeyMode.MINOR): "Cm",
    CamelotKey(3, KeyMode.MAJOR): "Db",   CamelotKey(12, KeyMode.MINOR): "C#m",
    CamelotKey(10, KeyMode.MAJOR): "D",   CamelotKey(7, KeyMode.MINOR): "Dm",
    CamelotKey(5, KeyMode.MAJOR): "Eb",   CamelotKey(2, KeyMode.MINOR): "Ebm",
    CamelotKey(12, KeyMode.MAJOR): "E",   CamelotKey(9, KeyMode.MINOR): "Em",
    CamelotKey(7, KeyMode.MAJOR): "F",    CamelotKey(4, KeyMode.MINOR): "Fm",
    CamelotKey(2, KeyMode.MAJOR): "F#",   CamelotKey(11, KeyMode.MINOR): "F#m",
    CamelotKey(9, KeyMode.MAJOR): "G",    CamelotKey(6, KeyMode.MINOR): "Gm",
    CamelotKey(4, KeyMode.MAJOR): "Ab",   CamelotKey(1, KeyMode.MINOR): "G#m",
    CamelotKey(11, KeyMode.MAJOR): "A",   CamelotKey(8, KeyMode.MINOR): "Am",
    CamelotKey(6, KeyMode.MAJOR): "Bb",   CamelotKey(3, KeyMode.MINOR): "Bbm",
    CamelotKey(1, KeyMode.MAJOR): "B",    CamelotKey(10, KeyMode.MINOR): "Bm",
}

# Wheel position of C major / C minor; each fifth up moves one position clockwise
_C_MAJOR_POSITION = 8
_C_MINOR_POSITION = 5


def _wrap(num: int) -> int:
    """Wrap position to 1-12 range."""
    return ((num - 1) % 12) + 1


class CamelotWheel:
    """Implements Camelot wheel logic for harmonic DJ mixing."""

    @staticmethod
    def parse_camelot(key: str) -> Optional[CamelotKey]:
        """
        Parse a Camelot code. '8A' -> (8, 'A'), '12B' -> (12, 'B').
        Returns None for anything else.
        """
        if not key:
            return None
        match = _KEY_PATTERN.match(key.strip())
        if not match:
            return None
        num = int(match.group(1))
        if not (1 <= num <= 12):
            return None
        return CamelotKey(num, KeyMode(match.group(2).upper()))

    @staticmethod
    def parse_standard(key: str) -> Optional[CamelotKey]:
        """Parse a conventional key name ('Am', 'F#m', 'Eb', 'C major')."""
        if not key:
            return None
        match = _NAME_PATTERN.match(key.strip())
        if not match:
            return None
        letter, accidental, suffix = match.groups()
        if suffix == "M":
            minor = False
        elif suffix.lower() in _MINOR_SUFFIXES:
            minor = True
        elif suffix.lower() in _MAJOR_SUFFIXES:
            minor = False
        else:
            return None

        semitone = (_NOTE_SEMITONES[letter.upper()] + _ACCIDENTALS[accidental]) % 12
        fifths = (semitone * 7) % 12
        if minor:
            return CamelotKey(_wrap(_C_MINOR_POSITION + fifths), KeyMode.MINOR)
        return CamelotKey(_wrap(_C_MAJOR_POSITION + fifths), KeyMode.MAJOR)

    @classmethod
    def parse_key(cls, key: Optional[str]) -> Optional[CamelotKey]:
        """Parse either notation. Returns None for unrecognised keys."""
        if not key or not key.strip():
            return None
        return cls.parse_camelot(key) or cls.parse_standard(key)

    @staticmethod
    def to_camelot(key: CamelotKey) -> str:
        return str(key)

    @staticmethod
    def to_standard(key: CamelotKey) -> str:
        return _STANDARD_NAMES[key]

    # ------------------------------------------------------------------
    # Compatibility
    # ------------------------------------------------------------------

    @staticmethod
    def neighbours(key: CamelotKey) -> Tuple[CamelotKey, ...]:
        """Same key, ±1 on the same ring, and the relative major/minor."""
        return (
            key,
            CamelotKey(_wrap(key.position + 1), key.mode),
            CamelotKey(_wrap(key.position - 1), key.mode),
            CamelotKey(key.position, key.mode.other),
        )

    def compatible_keys(self, key: Optional[str]) -> FrozenSet[str]:
        """
        Return the harmonically compatible key descriptors for ``key``.

        Results use the notation of the input (Camelot codes for '8A',
        conventional names for 'Am') and always include the input itself.
        Unrecognised keys are only compatible with themselves.
        """
        if not key or not key.strip():
            return frozenset()
        if self.parse_camelot(key):
            parsed = self.parse_camelot(key)
            render = self.to_camelot
        else:
            parsed = self.parse_standard(key)
            render = self.to_standard
        if parsed is None:
            return frozenset({key})
        return frozenset({key} | {render(k) for k in self.neighbours(parsed)})

    def are_compatible(self, key_a: Optional[str], key_b: Optional[str]) -> bool:
        """True when ``key_b`` sits in the compatible set of ``key_a``, in any notation."""
        if not key_a or not key_b:
            return False
        a = self.parse_key(key_a)
        b = self.parse_key(key_b)
        if a is None or b is None:
            return key_a.strip().upper() == key_b.strip().upper()
        return b in self.neighbours(a)

    def transition_score(self, from_key: Optional[str], to_key: Optional[str]) -> Tuple[float, str]:
        """
        Score a key transition.
        Returns (score, relationship_name).
        """
        from_parsed = self.parse_key(from_key)
        to_parsed = self.parse_key(to_key)

        if not from_parsed or not to_parsed:
            return (0.0, "unknown")

        f_num, f_letter = from_parsed
        t_num, t_letter = to_parsed

        # Same key
        if f_num == t_num and f_letter == t_letter:
            return (1.0, "same")

        # Adjacent (same ring)
        if f_letter == t_letter:
            if t_num == _wrap(f_num + 1):
                return (0.9, "adjacent_up")
            if t_num == _wrap(f_num - 1):
                return (0.9, "adjacent_down")
            if t_num == _wrap(f_num + 7):
                return (0.7, "energy_boost")

        # Ring switch (same number)
        if f_num == t_num:
            return (0.85, "inner_outer")

        # Diagonal (adjacent + ring switch)
        if t_num == _wrap(f_num + 1):
            return (0.6, "diagonal_up")
        if t_num == _wrap(f_num - 1):
            return (0.6, "diagonal_down")

        return (0.1, "incompatible")


RELATION_DESCRIPTIONS: Dict[str, str] = {
    "same": "Same key",
    "adjacent_up": "Key +1 (smooth)",
    "adjacent_down": "Key -1 (smooth)",
    "inner_outer": "Relative major/minor",
    "energy_boost": "Energy boost (+7)",
    "diagonal_up": "Diagonal +1",
    "diagonal_down": "Diagonal -1",
    "incompatible": "Key clash - mix carefully",
    "unknown": "Key unknown",
}

_wheel = CamelotWheel()


def compatible_keys(key: Optional[str]) -> FrozenSet[str]:
    return _wheel.compatible_keys(key)


def are_compatible(key_a: Optional[str], key_b: Optional[str]) -> bool:
    return _wheel.are_compatible(key_a, key_b)
