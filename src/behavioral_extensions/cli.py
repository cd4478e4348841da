"""CLI entry point for inspecting the behavioral extension setup."""

from __future__ import annotations

import json

import click

from .core.config import Settings, load_settings
from .core.enums import Feature


@click.group()
@click.option("--log-level", default=None, help="Override log level (DEBUG, INFO, ...)")
@click.pass_context
def main(ctx: click.Context, log_level: str | None) -> None:
    """ORM behavioral extensions."""
    ctx.ensure_object(dict)
    ctx.obj["log_level"] = log_level


def _setup(ctx: click.Context, config: str) -> Settings:
    from .observability.logger import get_logger, setup_logging

    settings = load_settings(config)
    setup_logging(
        level=ctx.obj.get("log_level") or settings.observability.log_level,
        format=settings.observability.log_format,
    )
    get_logger(__name__).debug("settings_loaded", path=config)
    return settings


@main.command("show-config")
@click.option("--config", default="config/extensions.toml", help="Config file path")
@click.pass_context
def show_config(ctx: click.Context, config: str) -> None:
    """Print the effective feature flags."""
    from .core.config import ConfigRepository

    repo = ConfigRepository.from_model(_setup(ctx, config))
    for feature in Feature:
        active = bool(repo.get(f"settings.{feature.value}.active"))
        click.echo(f"{feature.value:<14} {'on' if active else 'off'}")
    transliterator = repo.get("settings.sluggable.transliterator")
    if transliterator:
        click.echo(f"transliterator {transliterator}")


@main.command()
@click.option("--config", default="config/extensions.toml", help="Config file path")
@click.option("--site-config", default="config/site.toml", help="Site config file path")
@click.option("--locale", default=None, help="Request 'locale' parameter")
@click.option("--section", "section_language", default=None, help="Current section language")
@click.option("--default-section", "default_language", default=None,
              help="Language of the site's default section")
@click.option("--user-id", default=None, help="Current user id")
@click.option("--user-name", default=None, help="Current user name")
@click.pass_context
def listeners(
    ctx: click.Context,
    config: str,
    site_config: str,
    locale: str | None,
    section_language: str | None,
    default_language: str | None,
    user_id: str | None,
    user_name: str | None,
) -> None:
    """Show which listeners a request with this context would register."""
    from sqlalchemy.orm import sessionmaker

    from .controller import ListenerController
    from .core.config import ConfigRepository, load_site_settings
    from .core.context import Request, Section, StaticSectionProvider, User
    from .events.manager import EventManager

    settings = _setup(ctx, config)
    user = User(user_id=user_id, user_name=user_name) if user_id or user_name else None
    sections = StaticSectionProvider(
        current=Section(section_language) if section_language else None,
        default=Section(default_language) if default_language else None,
    )
    request = Request(query={"locale": locale} if locale else {})

    controller = ListenerController(
        ConfigRepository.from_model(settings),
        user=user,
        site_config=ConfigRepository.from_model(load_site_settings(site_config)),
        sections=sections,
        request=request,
    )
    controller.register_behavioral_extensions(EventManager(sessionmaker()))

    described = controller.describe()
    if not described:
        click.echo("No listeners registered.")
        return
    click.echo(json.dumps(described, indent=2, default=str))


if __name__ == "__main__":
    main()
