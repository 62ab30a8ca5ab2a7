"""
sec command line — thin click front end over VaultEngine.

    sec [-f FILE] set NAME VALUE
    sec [-f FILE] get NAME
    sec [-f FILE] delete NAME
    sec [-f FILE] list
    sec [-f FILE] set-pin | change-pin | remove-pin
    sec [-f FILE] export
    sec [-f FILE] import PATH
    sec version
"""
import sys
import logging
import functools

import click

from .version import __version__
from .exceptions import PinAlreadySetError, VaultError
from .vault import VaultConfig, VaultEngine, expand_path


def _handle_errors(func):
    """Turn vault errors into a one-line message and exit status 1."""
    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except PinAlreadySetError as err:
            click.echo(str(err), err=True)
        except (VaultError, ValueError) as err:
            raise click.ClickException(str(err)) from err
    return wrapper


def _engine(ctx: click.Context) -> VaultEngine:
    """Build the engine from --file, the environment, and any injected obj."""
    obj = ctx.ensure_object(dict)
    if "engine" not in obj:
        vault_file = obj.get("vault_file")
        config = obj.get("config")
        if config is None:
            config = VaultConfig.from_env(vault_path=vault_file)
        elif vault_file:
            config = config.model_copy(update={"vault_path": expand_path(vault_file)})
        obj["engine"] = VaultEngine(config, pin_source=obj.get("pin_source"))
    return obj["engine"]


def _prompt_new_pin() -> str:
    return click.prompt(
        "Enter new PIN",
        hide_input=True,
        confirmation_prompt="Confirm new PIN",
        show_default=False,
    )


@click.group(context_settings={"help_option_names": ["-h", "--help"]})
@click.option(
    "-f", "--file", "vault_file", default=None, metavar="PATH",
    help="Path to secrets file (default: ~/.sec.enc, or $SEC_FILE).",
)
@click.option("-v", "--verbose", is_flag=True, help="Log vault operations to stderr.")
@click.version_option(__version__, prog_name="sec", message="%(prog)s version %(version)s")
@click.pass_context
def cli(ctx, vault_file, verbose):
    """sec - keep named secrets in a local encrypted vault."""
    if verbose:
        logging.basicConfig(
            level=logging.DEBUG,
            stream=sys.stderr,
            format="%(levelname)s %(name)s: %(message)s",
        )
    ctx.ensure_object(dict)["vault_file"] = vault_file


@cli.command("set")
@click.argument("name")
@click.argument("value")
@click.pass_context
@_handle_errors
def set_secret(ctx, name, value):
    """Set a secret value."""
    engine = _engine(ctx)
    contents = engine.unlock_and_load()
    engine.set(contents, name, value)
    click.echo("Secret set.")


@cli.command("get")
@click.argument("name")
@click.pass_context
@_handle_errors
def get_secret(ctx, name):
    """Get a secret value."""
    engine = _engine(ctx)
    contents = engine.unlock_and_load()
    value = engine.get(contents, name)
    if value is None:
        raise click.ClickException(f"secret {name!r} not found")
    click.echo(value)


@cli.command("delete")
@click.argument("name")
@click.pass_context
@_handle_errors
def delete_secret(ctx, name):
    """Delete a secret."""
    engine = _engine(ctx)
    contents = engine.unlock_and_load()
    engine.delete(contents, name)
    click.echo("Secret deleted.")


@cli.command("list")
@click.pass_context
@_handle_errors
def list_secrets(ctx):
    """List all stored keys."""
    engine = _engine(ctx)
    contents = engine.unlock_and_load()
    for name in engine.list_names(contents):
        click.echo(name)


@cli.command("set-pin")
@click.pass_context
@_handle_errors
def set_pin(ctx):
    """Set a new PIN to lock the vault."""
    engine = _engine(ctx)
    contents = engine.unlock_and_load()
    if engine.guard.is_set(contents):
        raise PinAlreadySetError(
            "PIN already set. Use change-pin or remove-pin instead."
        )
    engine.set_pin(contents, _prompt_new_pin())
    click.echo("PIN set.")


@cli.command("change-pin")
@click.pass_context
@_handle_errors
def change_pin(ctx):
    """Change the current PIN."""
    engine = _engine(ctx)
    contents = engine.unlock_and_load()
    engine.change_pin(contents, _prompt_new_pin())
    click.echo("PIN changed.")


@cli.command("remove-pin")
@click.pass_context
@_handle_errors
def remove_pin(ctx):
    """Remove the current PIN."""
    engine = _engine(ctx)
    contents = engine.unlock_and_load()
    engine.remove_pin(contents)
    click.echo("PIN removed.")


@cli.command("export")
@click.pass_context
@_handle_errors
def export_secrets(ctx):
    """Print all secrets as plaintext JSON."""
    engine = _engine(ctx)
    contents = engine.unlock_and_load()
    click.echo(engine.export_plaintext(contents).decode("utf-8"))


@cli.command("import")
@click.argument("path", metavar="PATH")
@click.pass_context
@_handle_errors
def import_secrets(ctx, path):
    """Merge secrets from a plaintext JSON file."""
    engine = _engine(ctx)
    contents = engine.unlock_and_load()
    count = engine.import_plaintext(contents, path)
    click.echo(f"Imported {count} secret(s).")


@cli.command("version")
def version():
    """Print the version of sec."""
    click.echo(f"sec version {__version__}")


def main():
    cli(prog_name="sec")
