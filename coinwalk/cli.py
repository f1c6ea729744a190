"""
Command-line interface for the coin placement engine.
"""

import click
import csv
import json
import logging

from .types import InvalidConfiguration, RunConfig, SUCCESS_MODES
from .config import CONFIG_PRESETS, get_preset, load_run_config_from_json
from .pipeline import run_strategy_search
from .diagnostics import format_diagnostics, strategies_to_rows


@click.command()
@click.option(
    '--preset', '-p',
    type=click.Choice(sorted(CONFIG_PRESETS.keys())),
    help='Use a preset run configuration'
)
@click.option(
    '--config-file', '-c',
    type=click.Path(exists=True),
    help='Run configuration JSON file'
)
@click.option('--max-position', '-m', type=int, help='Last square on the track')
@click.option('--faces', type=int, help='Die faces (default: 6)')
@click.option('--markers', '-k', type=int, help='Coins per strategy')
@click.option('--trials', '-n', type=int, help='Number of simulated walks')
@click.option(
    '--step-budget',
    type=int,
    help='Rolls per walk (default: sized from --tail-probability)'
)
@click.option(
    '--tail-probability',
    type=float,
    help='Target P(walk ends before passing the track) when sizing the step budget'
)
@click.option('--ceiling', type=int, help='Highest square a coin may be placed on')
@click.option(
    '--mode',
    type=click.Choice(list(SUCCESS_MODES)),
    help='any: land on at least one coin; all: land on every coin'
)
@click.option(
    '--constraint',
    type=str,
    help="Adjacency constraint: none, no_adjacent, or min_gap:<g>"
)
@click.option('--seed', type=int, help='Random seed for reproducibility')
@click.option('--shards', type=int, help='Independent sampling shards')
@click.option('--workers', type=int, help='Worker threads for sampling and scoring')
@click.option(
    '--top',
    type=int,
    default=10,
    help='Strategies to display (default: 10)'
)
@click.option(
    '--output', '-o',
    type=click.Path(),
    help='Write the full ranking to .json or .csv'
)
@click.option(
    '--verbose/--quiet', '-v/-q',
    default=True,
    help='Verbose output'
)
def main(
    preset,
    config_file,
    max_position,
    faces,
    markers,
    trials,
    step_budget,
    tail_probability,
    ceiling,
    mode,
    constraint,
    seed,
    shards,
    workers,
    top,
    output,
    verbose
):
    """
    Find coin placements that a d6 walk is most likely to land on.
    """
    if verbose:
        logging.basicConfig(
            level=logging.INFO,
            format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
        )

    if top <= 0:
        raise click.BadParameter("top must be a positive integer", param_hint="'--top'")
    if preset and config_file:
        raise click.UsageError("Use either --preset or --config-file, not both")

    overrides = {
        'max_position': max_position,
        'face_count': faces,
        'num_markers': markers,
        'trial_count': trials,
        'step_budget': step_budget,
        'tail_probability': tail_probability,
        'search_ceiling': ceiling,
        'success_mode': mode,
        'adjacency_constraint': constraint,
        'random_seed': seed,
        'n_shards': shards,
        'max_workers': workers,
    }

    try:
        if config_file:
            config = load_run_config_from_json(config_file, **overrides)
        elif preset:
            config = get_preset(preset, **overrides)
        else:
            missing = [
                flag for flag, value in (
                    ('--max-position', max_position),
                    ('--markers', markers),
                    ('--trials', trials),
                ) if value is None
            ]
            if missing:
                raise click.UsageError(
                    f"Missing {', '.join(missing)} (or use --preset / --config-file)"
                )
            config = RunConfig(**{k: v for k, v in overrides.items() if v is not None})

        click.echo("Running strategy search...")
        click.echo(f"  Track: 1..{config.max_position} (d{config.face_count})")
        click.echo(f"  Coins: {config.num_markers} (ceiling {config.search_ceiling})")
        click.echo(f"  Mode: {config.success_mode}")
        if config.adjacency_constraint:
            click.echo(f"  Constraint: {config.adjacency_constraint}")
        click.echo(f"  Trials: {config.trial_count}")
        if config.random_seed is not None:
            click.echo(f"  Seed: {config.random_seed}")

        results = run_strategy_search(config)
    except InvalidConfiguration as e:
        raise click.UsageError(str(e))

    ranked = results['ranked']

    click.echo("\n" + "=" * 60)
    click.echo("STRATEGY RESULTS")
    click.echo("=" * 60)
    click.echo(f"\nStep budget: {results['metadata']['step_budget']}")
    click.echo(f"Strategies scored: {len(ranked)}")

    click.echo(f"\nTop {min(top, len(ranked))} strategies:")
    for i, s in enumerate(ranked[:top]):
        flag = " (degenerate)" if s.degenerate else ""
        click.echo(
            f"  {i+1}. {', '.join(str(p) for p in s.positions)} - "
            f"{s.probability:.4f} +/- {s.std_error:.4f}{flag}"
        )

    click.echo("\n" + format_diagnostics(results['diagnostics']))

    if output:
        rows = strategies_to_rows(ranked)
        if output.endswith('.csv'):
            fieldnames = ['rank', 'positions', 'hits', 'n_trials',
                          'probability', 'std_error', 'degenerate']
            with open(output, 'w', newline='') as f:
                writer = csv.DictWriter(f, fieldnames=fieldnames)
                writer.writeheader()
                for row in rows:
                    writer.writerow({
                        **row,
                        'positions': ' '.join(str(p) for p in row['positions'])
                    })
        else:
            output_data = {
                'ranked': rows,
                'diagnostics': results['diagnostics'],
                'metadata': results['metadata'],
            }
            with open(output, 'w') as f:
                json.dump(output_data, f, indent=2, default=str)
        click.echo(f"\nRanking saved to {output}")


if __name__ == '__main__':
    main()
