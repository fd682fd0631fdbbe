"""
API-Football competition ids tracked by the directory.
Fixtures from any other competition are dropped during sync.
"""
from __future__ import annotations

SUPPORTED_LEAGUES: frozenset[int] = frozenset({
    # International
    1,    # World Cup
    2,    # UEFA Champions League
    3,    # UEFA Europa League
    4,    # Euro Championship
    5, 6, 9, 15, 17, 18, 19, 20, 24, 29, 30, 31, 32, 33, 34, 35, 36,
    # England
    39,   # Premier League
    40, 41,
    45,   # FA Cup
    48,
    # Domestic leagues and cups
    54,
    61,   # Ligue 1
    94,
    135,  # Serie A
    140,  # La Liga
    143, 144, 147, 186, 197, 200, 201, 202, 233, 262, 263, 264,
    307, 308, 390, 496, 514, 516, 531, 533, 538, 539, 556,
    714, 720, 768, 801, 807, 822, 826,
    848,  # UEFA Conference League
    860, 895, 934, 953, 1129, 1132, 1163,
})


def is_supported(league_id: object) -> bool:
    """True when the fixture's league id is on the allow-list."""
    return isinstance(league_id, int) and not isinstance(league_id, bool) and league_id in SUPPORTED_LEAGUES
