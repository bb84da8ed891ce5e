"""Command-line entry point for mprobe."""

import os

import click

from mprobe.config import MIN_UPDATE_INTERVAL, Config


@click.command()
@click.option(
    "--update-interval",
    "-i",
    type=click.IntRange(min=MIN_UPDATE_INTERVAL),
    metavar="MS",
    help="Update interval in milliseconds",
)
@click.option("--no-color", is_flag=True, help="Disable colors")
@click.option(
    "--generate-config",
    is_flag=True,
    help="Write a default config file to ~/.config/mprobe/config.toml and exit",
)
@click.option("--config-path", "show_config_path", is_flag=True, help="Show config file path")
@click.version_option(package_name="mprobe")
def main(
    update_interval: int | None,
    no_color: bool,
    generate_config: bool,
    show_config_path: bool,
) -> None:
    """A terminal-based system monitor."""
    if show_config_path:
        click.echo(str(Config().config_path))
        return

    if generate_config:
        path = Config().save()
        click.echo(f"Config file created at: {path}")
        return

    try:
        config = Config.load()
    except ValueError as e:
        click.echo(f"Warning: {e}; using defaults", err=True)
        config = Config()

    # CLI args override config file
    if update_interval is not None:
        config.update_interval = update_interval
    if no_color:
        config.no_color = True

    run(config)


def run(config: Config) -> None:
    """Configure logging and run the dashboard until the user quits."""
    from mprobe.app import MprobeApp
    from mprobe.logging import configure

    configure(config)
    if config.no_color:
        # Honoured by Textual's renderer
        os.environ["NO_COLOR"] = "1"

    MprobeApp(config).run()
