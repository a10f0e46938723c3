"""Tunable constants of the search-guidance core."""
from dataclasses import dataclass


@dataclass
class SearchConfig:
    # approach level reported when nothing better can be said (timeouts, cycles)
    timeout_approach_level: int = 20
    # random probes before a string is judged to influence the objective
    local_search_probes: int = 10
    # character codes tried by the string operators, [lo, hi)
    char_lo: int = 9
    char_hi: int = 128
    # length bound of randomized strings
    string_length: int = 20
    float32_precision: int = 7
    float64_precision: int = 15
    avm_initial_delta: float = 1.0
    avm_factor: float = 2.0


DEFAULT_CONFIG = SearchConfig()
