"""
Configuration management for the coin placement engine.

Run presets for the standard puzzle variants, named strategy constraints,
and versioned JSON loading/saving of run configurations.

Run config JSON format:
{
    "version": "1.0",
    "run": {
        "max_position": 20,
        "num_markers": 3,
        "trial_count": 200000,
        "success_mode": "any",
        "adjacency_constraint": "no_adjacent",
        "random_seed": 42
    }
}
"""

import json
from copy import deepcopy
from typing import Any, Dict, Optional, Union

from .types import InvalidConfiguration, RunConfig, StrategyConstraint
from .strategies.enumeration import min_gap, no_adjacent


RUN_CONFIG_VERSION = "1.0"


# =============================================================================
# Run Presets
# =============================================================================

CONFIG_PRESETS: Dict[str, Dict[str, Any]] = {
    # One coin anywhere on a 50-square track
    'single_coin': {
        'max_position': 50,
        'num_markers': 1,
        'trial_count': 200000,
        'success_mode': 'any',
    },
    # Two coins, hit either
    'two_coins_any': {
        'max_position': 20,
        'num_markers': 2,
        'trial_count': 200000,
        'success_mode': 'any',
    },
    # Three coins, hit at least one
    'three_coins_any': {
        'max_position': 20,
        'num_markers': 3,
        'trial_count': 200000,
        'success_mode': 'any',
    },
    # Three coins, no two on neighbouring squares
    'three_coins_spread': {
        'max_position': 20,
        'num_markers': 3,
        'trial_count': 200000,
        'success_mode': 'any',
        'adjacency_constraint': 'no_adjacent',
    },
    # Three coins, collect them all
    'three_coins_all': {
        'max_position': 20,
        'num_markers': 3,
        'trial_count': 200000,
        'success_mode': 'all',
    },
}


def get_preset(name: str, **overrides: Any) -> RunConfig:
    """Build a RunConfig from a preset, applying non-None overrides."""
    if name not in CONFIG_PRESETS:
        raise InvalidConfiguration(
            f"Unknown preset '{name}'. Available: {sorted(CONFIG_PRESETS)}"
        )
    params = deepcopy(CONFIG_PRESETS[name])
    for key, value in overrides.items():
        if value is not None:
            params[key] = value
    return RunConfig(**params)


# =============================================================================
# Named Constraints
# =============================================================================

def build_adjacency_constraint(
    constraint: Union[None, str, StrategyConstraint]
) -> Optional[StrategyConstraint]:
    """
    Resolve a constraint name to a predicate.

    Accepted names: "none", "no_adjacent", "min_gap:<g>". Callables pass
    through unchanged.
    """
    if constraint is None or callable(constraint):
        return constraint
    name = constraint.strip().lower()
    if name in ('', 'none'):
        return None
    if name == 'no_adjacent':
        return no_adjacent()
    if name.startswith('min_gap:'):
        try:
            gap = int(name.split(':', 1)[1])
        except ValueError:
            raise InvalidConfiguration(f"Invalid min_gap constraint: '{constraint}'")
        return min_gap(gap)
    raise InvalidConfiguration(
        f"Unknown adjacency constraint '{constraint}'. "
        "Expected 'none', 'no_adjacent' or 'min_gap:<g>'."
    )


# =============================================================================
# JSON Loading Utilities
# =============================================================================

def _validate_version(config: Dict[str, Any]) -> None:
    """Validate run config version."""
    version = config.get('version', RUN_CONFIG_VERSION)
    if version != RUN_CONFIG_VERSION:
        raise InvalidConfiguration(
            f"Unsupported run config version '{version}'. "
            f"Expected '{RUN_CONFIG_VERSION}'."
        )


def load_run_config_from_json(path: str, **overrides: Any) -> RunConfig:
    """
    Load a run configuration from JSON file.

    Args:
        path: Path to run config JSON
        **overrides: Field values replacing those in the file (None ignored)

    Returns:
        Validated RunConfig

    Raises:
        InvalidConfiguration: On unsupported version, unknown or invalid fields
    """
    with open(path, 'r') as f:
        data = json.load(f)

    _validate_version(data)
    params = deepcopy(data.get('run', {}))
    for key, value in overrides.items():
        if value is not None:
            params[key] = value

    try:
        return RunConfig(**params)
    except TypeError as e:
        raise InvalidConfiguration(f"Invalid run config {path}: {e}") from e


def save_run_config_to_json(config: RunConfig, path: str) -> None:
    """Save a run configuration to JSON file."""
    if callable(config.adjacency_constraint):
        raise InvalidConfiguration(
            "Cannot save a run config with a callable adjacency constraint; "
            "use a named constraint instead"
        )
    run = config.to_dict()
    # A defaulted ceiling follows max_position on reload
    if not config.ceiling_explicit:
        run['search_ceiling'] = None
    data = {
        'version': RUN_CONFIG_VERSION,
        'run': run,
    }
    with open(path, 'w') as f:
        json.dump(data, f, indent=2)
