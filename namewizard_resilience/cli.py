"""Command-line interface for namewizard-resilience."""

import asyncio
import json
import sys
from typing import Optional, Tuple

import click

from . import __version__
from .config import LOG_FORMATS, ResilienceConfig
from .errors import ResilienceError
from .fallback import FallbackChainState, run_with_fallback
from .indicator import render_state
from .logging_config import configure_logging
from .models import AI_MODELS, PLANS, STAGES, model_chain
from .retry import RetryPolicy, backoff_schedule
from .simulation import SimulatedBackend


@click.group()
@click.version_option(version=__version__, prog_name="namewizard-resilience")
@click.option("--verbose", "-v", is_flag=True, help="Debug logging")
@click.option("--log-format", type=click.Choice(LOG_FORMATS), default=None,
              help="Log output format (default from NAMEWIZARD_LOG_FORMAT)")
@click.pass_context
def cli(ctx: click.Context, verbose: bool, log_format: Optional[str]) -> None:
    """Retry and AI model fallback tooling for NameWizard."""
    ctx.ensure_object(dict)
    try:
        config = ResilienceConfig.from_env()
    except ResilienceError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    configure_logging(
        log_level="DEBUG" if verbose else config.log_level,
        log_format=log_format or config.log_format,
    )
    ctx.obj["config"] = config
    ctx.obj["verbose"] = verbose


def policy_options(func):
    """Options overriding the configured retry policy."""
    func = click.option("--max-retries", type=int, help="Retries after the first attempt")(func)
    func = click.option("--initial-delay", type=float, help="Seconds before the first retry")(func)
    func = click.option("--backoff-factor", type=float, help="Delay multiplier per retry")(func)
    func = click.option("--max-delay", type=float, help="Upper bound on a single delay, seconds")(func)
    return func


def build_policy(ctx: click.Context, **overrides: Optional[float]) -> RetryPolicy:
    """Configured policy with any CLI overrides applied."""
    policy: RetryPolicy = ctx.obj["config"].retry_policy
    changes = {name: value for name, value in overrides.items() if value is not None}
    return policy.with_overrides(**changes) if changes else policy


@cli.command()
@click.option("--plan", type=click.Choice(PLANS), help="Show the chain for this plan only")
@click.option("--stage", type=click.Choice(STAGES), default="b", help="Processing stage")
def models(plan: Optional[str], stage: str) -> None:
    """List models and the fallback chain for each plan.

    Example:
        namewizard-resilience models
        namewizard-resilience models --plan pro --stage a
    """
    if plan is None:
        click.echo("Models:")
        for model in AI_MODELS.values():
            capabilities = ", ".join(model.capabilities)
            click.echo(f"  - {model.id} ({model.name}, {model.provider}; {capabilities})")
        click.echo("")

    click.echo(f"Fallback chains (stage {stage}):")
    for plan_name in (plan,) if plan else PLANS:
        click.echo(f"  {plan_name}: {' -> '.join(model_chain(plan_name, stage))}")


@cli.command()
@policy_options
@click.pass_context
def backoff(ctx: click.Context, max_retries: Optional[int], initial_delay: Optional[float],
            backoff_factor: Optional[float], max_delay: Optional[float]) -> None:
    """Print the delay before each retry (jitter adds up to 10%).

    Example:
        namewizard-resilience backoff --max-retries 5 --max-delay 10
    """
    try:
        policy = build_policy(
            ctx,
            max_retries=max_retries,
            initial_delay=initial_delay,
            backoff_factor=backoff_factor,
            max_delay=max_delay,
        )
    except ResilienceError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    schedule = backoff_schedule(policy)
    if not schedule:
        click.echo("No retries: the operation is attempted once.")
        return

    for attempt, delay in enumerate(schedule, start=1):
        upper = min(delay * (1 + policy.jitter), policy.max_delay)
        click.echo(f"retry {attempt}: {delay:.3f}s (up to {upper:.3f}s with jitter)")
    click.echo(f"total: {sum(schedule):.3f}s before the last attempt")


@cli.command()
@click.option("--plan", type=click.Choice(PLANS), help="Use this plan's model chain")
@click.option("--stage", type=click.Choice(STAGES), help="Processing stage for --plan")
@click.option("--primary", help="Primary model id (overrides --plan)")
@click.option("--fallback", "fallbacks", multiple=True, help="Fallback model id, in order")
@click.option("--fail", "failures", multiple=True, metavar="MODEL[:KIND][xCOUNT]",
              help="Make a model fail, e.g. gpt-5-nano:503x2 or gemini-2.5-flash:timeout")
@policy_options
@click.option("--json-output", "-j", is_flag=True, help="Output the outcome as JSON")
@click.pass_context
def simulate(ctx: click.Context, plan: Optional[str], stage: Optional[str], primary: Optional[str],
             fallbacks: Tuple[str, ...], failures: Tuple[str, ...], max_retries: Optional[int],
             initial_delay: Optional[float], backoff_factor: Optional[float],
             max_delay: Optional[float], json_output: bool) -> None:
    """Dry-run a fallback chain against simulated model failures.

    Example:
        namewizard-resilience simulate --fail gemini-2.5-flash:503 --initial-delay 0.01
        namewizard-resilience simulate --primary gpt-5.2 --fallback gpt-5-nano --fail gpt-5.2:invalid
    """
    config: ResilienceConfig = ctx.obj["config"]
    if fallbacks and not primary:
        raise click.UsageError("--fallback requires --primary")

    try:
        policy = build_policy(
            ctx,
            max_retries=max_retries,
            initial_delay=initial_delay,
            backoff_factor=backoff_factor,
            max_delay=max_delay,
        )
        if primary:
            candidates = [primary, *fallbacks]
        elif plan or stage:
            candidates = model_chain(plan or config.plan, stage or config.stage)
        else:
            candidates = config.candidates()
        backend = SimulatedBackend.from_specs(failures)

        def show(state: FallbackChainState) -> None:
            if json_output:
                return
            for line in render_state(state):
                click.echo(line)

        outcome = asyncio.run(
            run_with_fallback(candidates, backend, policy, on_transition=show)
        )
    except ResilienceError as e:
        if ctx.obj["verbose"]:
            import traceback
            click.echo(traceback.format_exc(), err=True)
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    if json_output:
        output = outcome.to_dict()
        output["calls"] = dict(backend.calls)
        click.echo(json.dumps(output, indent=2))
    else:
        click.echo("---")
        click.echo(outcome.summary())

    if not outcome.succeeded:
        sys.exit(1)


def main() -> None:
    """Entry point for CLI."""
    cli(obj={})


if __name__ == "__main__":
    main()
