"""azsession command line interface.

Commands:
- login: sign in through az CLI and cache the subscription list
- current: show the active subscription
- subscriptions: list (or refresh) cached subscriptions
- use: switch the active subscription (validated against the live cache)
- prompt: print the prompt string for the active subscription
- token: acquire a bearer token for the billing API
- usage / ratecard: query the Azure billing API
- shell: interactive prompt sharing one session across commands

State lives in memory only. One-shot invocations start disconnected;
inside `azsession shell` every command acts on the same session.
"""

import json
import logging
import os
from dataclasses import dataclass
from datetime import datetime
from typing import Any

import click
from click.shell_completion import CompletionItem
from rich.console import Console
from rich.table import Table

from azsession import __version__
from azsession.azure_auth import AuthenticationError, AzureCliClient
from azsession.billing import GRANULARITIES, BillingClient, BillingError
from azsession.click_group import AzsessionGroup
from azsession.config import ConfigError, SessionConfig
from azsession.models import ServicePrincipalCredential
from azsession.prompt import PromptInstaller, terminal_title_hook
from azsession.session_manager import (
    AzureSession,
    InvalidSelectionError,
    NotConnectedError,
    SessionError,
)
from azsession.token_provider import TOKEN_METHODS, get_auth_header

logger = logging.getLogger(__name__)
console = Console()

DATETIME_FORMATS = ["%Y-%m-%d", "%Y-%m-%dT%H:%M", "%Y-%m-%dT%H:%M:%S"]


@dataclass
class CliState:
    """Objects shared by every command of one process."""

    config: SessionConfig
    session: AzureSession
    in_shell: bool = False

    @classmethod
    def create(cls, config: SessionConfig) -> "CliState":
        backend = AzureCliClient(az_path=config.az_path, timeout=config.command_timeout)
        return cls(config=config, session=AzureSession(backend, PromptInstaller()))


class SubscriptionNameType(click.ParamType):
    """Subscription name restricted to the session's cached names.

    The allowed values are read from the session when the argument is
    converted or completed, never frozen at startup.
    """

    name = "subscription"

    def convert(self, value: Any, param: click.Parameter | None, ctx: click.Context | None) -> str:
        state = ctx.find_object(CliState) if ctx else None
        if state is None or not state.session.connected:
            # The command reports the missing login itself
            return value
        try:
            validate = state.session.subscription_name_validator()
            return validate(value)
        except InvalidSelectionError as e:
            self.fail(str(e), param, ctx)

    def shell_complete(
        self, ctx: click.Context, param: click.Parameter, incomplete: str
    ) -> list[CompletionItem]:
        state = ctx.find_object(CliState)
        if state is None:
            return []
        return [
            CompletionItem(name)
            for name in sorted(state.session.subscription_names)
            if name.startswith(incomplete)
        ]


def _fail(ctx: click.Context, message: str) -> None:
    console.print(f"[red]Error:[/red] {message}")
    ctx.exit(1)


def _resolve_credential(
    ctx: click.Context, client_id: str | None, tenant_id: str | None, client_secret: str | None
) -> ServicePrincipalCredential:
    """Build service principal credentials from options, env and prompt."""
    client_id = client_id or os.environ.get("AZURE_CLIENT_ID")
    tenant_id = tenant_id or os.environ.get("AZURE_TENANT_ID")
    client_secret = client_secret or os.environ.get("AZURE_CLIENT_SECRET")

    if not client_id or not tenant_id:
        _fail(
            ctx,
            "Service principal requires --client-id and --tenant-id "
            "(or AZURE_CLIENT_ID and AZURE_TENANT_ID)",
        )
    if not client_secret:
        client_secret = click.prompt("Client secret", hide_input=True)

    return ServicePrincipalCredential(
        client_id=client_id, client_secret=client_secret, tenant_id=tenant_id
    )


def _sp_options(func):
    """Shared service principal options for token-based commands."""
    func = click.option(
        "--method",
        type=click.Choice(TOKEN_METHODS),
        default="tenant",
        show_default=True,
        help="Token protocol: tenant (Azure Identity) or oauth (client_credentials grant)",
    )(func)
    func = click.option(
        "--client-secret",
        envvar="AZURE_CLIENT_SECRET",
        help="Client secret (prompted when not in AZURE_CLIENT_SECRET)",
    )(func)
    func = click.option("--tenant-id", envvar="AZURE_TENANT_ID", help="Azure tenant ID")(func)
    return click.option("--client-id", envvar="AZURE_CLIENT_ID", help="Application (client) ID")(
        func
    )


def _auth_header(
    ctx: click.Context,
    method: str,
    client_id: str | None,
    tenant_id: str | None,
    client_secret: str | None,
) -> dict[str, str]:
    state = ctx.find_object(CliState)
    credential = _resolve_credential(ctx, client_id, tenant_id, client_secret)
    try:
        return get_auth_header(
            credential,
            method=method,
            resource=state.config.resource,
            token_endpoint=state.config.token_endpoint,
            timeout=state.config.http_timeout,
        )
    except AuthenticationError as e:
        _fail(ctx, str(e))
        return {}


def _billing_client(ctx: click.Context, header: dict[str, str]) -> BillingClient:
    config = ctx.find_object(CliState).config
    return BillingClient(
        header,
        base_url=config.billing_base_url,
        timeout=config.http_timeout,
        usage_api_version=config.usage_api_version,
        ratecard_api_version=config.ratecard_api_version,
    )


def _default_subscription_id(ctx: click.Context, subscription_id: str | None) -> str:
    if subscription_id:
        return subscription_id
    session = ctx.find_object(CliState).session
    if session.connected and session.login_context is not None:
        return session.login_context.subscription.id
    _fail(ctx, "No subscription ID given and not connected. Pass SUBSCRIPTION_ID or run login.")
    return ""


@click.group(
    cls=AzsessionGroup,
    invoke_without_command=True,
    context_settings={"help_option_names": ["--help", "-h"]},
)
@click.option("--verbose", "-v", is_flag=True, help="Show debug logging")
@click.option("--config", "config_path", help="Custom config file path")
@click.version_option(version=__version__)
@click.pass_context
def main(ctx: click.Context, verbose: bool, config_path: str | None) -> None:
    """azsession - Azure subscription session helper.

    Logs in through the Azure CLI, tracks the active subscription and
    queries the Azure billing API.

    \b
    SESSION COMMANDS:
        login          Sign in and cache available subscriptions
        current        Show the active subscription
        subscriptions  List cached subscriptions (--refresh to re-fetch)
        use            Switch the active subscription
        prompt         Print the prompt for the active subscription
        shell          Interactive shell sharing one session

    \b
    BILLING COMMANDS:
        token          Acquire a bearer token
        usage          Query usage aggregates
        ratecard       Query the rate card for an offer

    \b
    CONFIGURATION:
        Config file: ~/.azsession/config.toml ([azsession] table)
        Environment: AZSESSION_<SETTING>, AZURE_CLIENT_ID/SECRET, AZURE_TENANT_ID
    """
    logging.basicConfig(level=logging.INFO, format="%(message)s")
    # Set every time: the shell reuses this process across commands
    logging.getLogger().setLevel(logging.DEBUG if verbose else logging.INFO)

    if ctx.obj is None:
        try:
            ctx.obj = CliState.create(SessionConfig.load(config_path))
        except ConfigError as e:
            _fail(ctx, str(e))

    if ctx.invoked_subcommand is None:
        click.echo(ctx.get_help())
        ctx.exit(0)


@main.command(name="login")
@click.option("--subscription", "-s", "subscription_name", help="Subscription to activate")
@click.option(
    "--service-principal",
    is_flag=True,
    help="Log in as a service principal instead of interactively",
)
@click.option("--client-id", help="Service principal application ID (or AZURE_CLIENT_ID)")
@click.option("--tenant-id", help="Service principal tenant ID (or AZURE_TENANT_ID)")
@click.pass_context
def login(
    ctx: click.Context,
    subscription_name: str | None,
    service_principal: bool,
    client_id: str | None,
    tenant_id: str | None,
) -> None:
    """Sign in and cache the available subscriptions.

    \b
    EXAMPLES:
        $ azsession login
        $ azsession login --subscription Dev
        $ azsession login --service-principal --client-id <id> --tenant-id <id>
    """
    session = ctx.find_object(CliState).session
    if not session.backend.check_az_cli_available():
        _fail(
            ctx,
            "Azure CLI not found. Please install Azure CLI:\n"
            "https://docs.microsoft.com/en-us/cli/azure/install-azure-cli",
        )
        return

    credential = None
    if service_principal:
        credential = _resolve_credential(ctx, client_id, tenant_id, None)

    try:
        context = session.establish(credential=credential, subscription_name=subscription_name)
    except (AuthenticationError, SessionError) as e:
        _fail(ctx, f"Login failed: {e}")
        return

    console.print(f"[green]Connected to subscription:[/green] {context.subscription_name}")
    console.print(f"  Subscription ID: {context.subscription.id}")
    console.print(f"  Available subscriptions: {len(session.subscription_list)}")


@main.command(name="current")
@click.option("--json", "as_json", is_flag=True, help="Print as JSON")
@click.pass_context
def show_current(ctx: click.Context, as_json: bool) -> None:
    """Show the active subscription."""
    session = ctx.find_object(CliState).session
    context = session.get_active_subscription()
    if context is None:
        return

    if as_json:
        data = context.subscription.to_dict()
        data["environmentName"] = context.environment
        click.echo(json.dumps(data, indent=2))
        return

    console.print(f"[green]Active subscription:[/green] {context.subscription_name}")
    console.print(f"  Subscription ID: {context.subscription.id}")
    console.print(f"  Tenant ID: {context.subscription.tenant_id}")
    if context.user_name:
        console.print(f"  User: {context.user_name} ({context.user_type or 'unknown'})")


@main.command(name="subscriptions")
@click.option("--refresh", is_flag=True, help="Re-fetch the list from Azure first")
@click.option("--json", "as_json", is_flag=True, help="Print as JSON")
@click.pass_context
def list_subscriptions(ctx: click.Context, refresh: bool, as_json: bool) -> None:
    """List cached subscriptions. The active one is marked with *."""
    session = ctx.find_object(CliState).session
    subscriptions = session.get_available_subscriptions(refresh=refresh)

    if as_json:
        click.echo(json.dumps([sub.to_dict() for sub in subscriptions], indent=2))
        return

    if not subscriptions:
        console.print("[yellow]No subscriptions cached.[/yellow]")
        console.print("\nLog in with:")
        console.print("  azsession login")
        return

    table = Table(title="Azure Subscriptions")
    table.add_column("Current", style="cyan", width=8)
    table.add_column("Name", style="green")
    table.add_column("Subscription ID", style="blue", width=38)
    table.add_column("State", style="yellow")

    for sub in subscriptions:
        marker = "*" if sub.name == session.active_subscription_name else ""
        table.add_row(marker, sub.name, sub.id, sub.state)

    console.print(table)


@main.command(name="use")
@click.argument("name", type=SubscriptionNameType())
@click.pass_context
def use_subscription(ctx: click.Context, name: str) -> None:
    """Switch the active subscription.

    NAME must be one of the cached subscription names (tab completion
    offers them in the shell).

    \b
    EXAMPLES:
        $ azsession use Prod
        $ azsession use "Visual Studio Enterprise"
    """
    session = ctx.find_object(CliState).session
    try:
        context = session.select_active_subscription(name)
    except (NotConnectedError, InvalidSelectionError, AuthenticationError) as e:
        _fail(ctx, str(e))
        return

    console.print(f"[green]Switched to subscription:[/green] {context.subscription_name}")
    console.print(f"  Subscription ID: {context.subscription.id}")


@main.command(name="prompt")
@click.pass_context
def show_prompt(ctx: click.Context) -> None:
    """Print the prompt string for the active subscription."""
    session = ctx.find_object(CliState).session
    click.echo(session.prompt_text())


@main.command(name="token")
@_sp_options
@click.pass_context
def token(
    ctx: click.Context,
    client_id: str | None,
    tenant_id: str | None,
    client_secret: str | None,
    method: str,
) -> None:
    """Acquire a bearer token and print the Authorization header as JSON."""
    header = _auth_header(ctx, method, client_id, tenant_id, client_secret)
    click.echo(json.dumps(header))


@main.command(name="usage")
@click.argument("subscription_id", required=False)
@click.option("--start", required=True, type=click.DateTime(DATETIME_FORMATS), help="Start time")
@click.option("--end", required=True, type=click.DateTime(DATETIME_FORMATS), help="End time")
@click.option(
    "--granularity",
    type=click.Choice(GRANULARITIES, case_sensitive=False),
    default="Daily",
    show_default=True,
    help="Aggregation bucket size",
)
@click.option("--no-details", is_flag=True, help="Omit instance-level details")
@_sp_options
@click.pass_context
def usage(
    ctx: click.Context,
    subscription_id: str | None,
    start: datetime,
    end: datetime,
    granularity: str,
    no_details: bool,
    client_id: str | None,
    tenant_id: str | None,
    client_secret: str | None,
    method: str,
) -> None:
    """Query usage aggregates and print the provider JSON.

    SUBSCRIPTION_ID defaults to the active subscription when logged in.

    \b
    EXAMPLES:
        $ azsession usage --start 2024-01-01 --end 2024-02-01
        $ azsession usage <id> --start 2024-01-01T00:00 --end 2024-01-02T00:00 --granularity Hourly
    """
    subscription_id = _default_subscription_id(ctx, subscription_id)
    header = _auth_header(ctx, method, client_id, tenant_id, client_secret)
    try:
        result = _billing_client(ctx, header).get_usage(
            subscription_id,
            start,
            end,
            granularity=granularity,
            show_details=not no_details,
        )
    except (ValueError, BillingError) as e:
        _fail(ctx, str(e))
        return
    click.echo(json.dumps(result, indent=2))


@main.command(name="ratecard")
@click.argument("subscription_id", required=False)
@click.option("--offer-id", required=True, help="Offer durable ID, e.g. MS-AZR-0003P")
@click.option("--currency", help="Currency code (default from config, USD)")
@click.option("--locale", help="Locale (default from config, en-US)")
@click.option("--region", help="Region code (default from config, US)")
@_sp_options
@click.pass_context
def ratecard(
    ctx: click.Context,
    subscription_id: str | None,
    offer_id: str,
    currency: str | None,
    locale: str | None,
    region: str | None,
    client_id: str | None,
    tenant_id: str | None,
    client_secret: str | None,
    method: str,
) -> None:
    """Query the rate card for an offer and print the provider JSON."""
    config = ctx.find_object(CliState).config
    subscription_id = _default_subscription_id(ctx, subscription_id)
    header = _auth_header(ctx, method, client_id, tenant_id, client_secret)
    try:
        result = _billing_client(ctx, header).get_rate_card(
            subscription_id,
            offer_id,
            currency=currency or config.default_currency,
            locale=locale or config.default_locale,
            region=region or config.default_region,
        )
    except (ValueError, BillingError) as e:
        _fail(ctx, str(e))
        return
    click.echo(json.dumps(result, indent=2))


@main.command(name="shell")
@click.pass_context
def shell(ctx: click.Context) -> None:
    """Start an interactive shell sharing one session.

    The prompt shows the active subscription; `use <TAB>` completes
    cached subscription names.
    """
    from azsession.shell import start_repl

    state = ctx.find_object(CliState)
    if state.in_shell:
        _fail(ctx, "Already inside azsession shell")
        return

    state.in_shell = True
    state.session.prompt_installer.add_hook(terminal_title_hook)

    def dispatch(args: list[str]) -> None:
        try:
            main.main(args=args, prog_name="azsession", obj=state, standalone_mode=False)
        except click.exceptions.Abort:
            click.echo("Aborted!", err=True)
        except click.ClickException as e:
            e.show()
        except Exception as e:
            console.print(f"[red]Unexpected error:[/red] {e}")
            logger.error(f"Command failed: {e}", exc_info=True)

    try:
        start_repl(state.session, dispatch, main.list_commands(ctx))
    finally:
        state.in_shell = False


if __name__ == "__main__":
    main()
