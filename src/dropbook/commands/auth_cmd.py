"""CLI commands for authentication management."""

from __future__ import annotations

from typing import Annotated

import typer
from rich.console import Console

from dropbook.auth import OAuthClient, complete_login, parse_redirect, start_authorization, token_status
from dropbook.config import load_settings
from dropbook.storage import default_credential_store
from dropbook.utils.errors import handle_error
from dropbook.utils.output import OutputFormat, print_output

console = Console(stderr=True)


def login() -> None:
    """Authenticate with Dropbox (OAuth2 + PKCE) and store the token."""
    settings = load_settings()
    try:
        app_key, app_secret = settings.require_app_credentials()
        request = start_authorization(app_key)
    except Exception as e:
        handle_error(e)
        raise typer.Exit(1)

    console.print("[bold]Dropbook OAuth Login[/bold]\n")
    console.print("Step 1: Visit this URL in your browser:\n")
    console.print(request.url, soft_wrap=True, highlight=False)
    console.print("\nStep 2: After authorizing, you'll be redirected to a URL like:")
    console.print(f"  {request.redirect_hint}", soft_wrap=True, highlight=False)
    console.print("\nStep 3: Paste that redirect URL (or just the code) below.")

    redirect_value = typer.prompt("Redirect URL or code", default="", show_default=False, err=True)
    state = None
    code, redirect_state = parse_redirect(redirect_value)
    if code and redirect_state is None:
        state = typer.prompt("State value from the redirect URL", default="", show_default=False, err=True)

    store = default_credential_store(settings)
    oauth = OAuthClient(app_key, app_secret)
    try:
        console.print("\nExchanging authorization code for access token...", style="yellow")
        _, written = complete_login(request, redirect_value, oauth, store, state=state)
    except Exception as e:
        console.print("[red]Authentication failed.[/red]")
        handle_error(e)
        raise typer.Exit(1)
    finally:
        oauth.close()

    console.print("[green]Successfully authenticated![/green]")
    if "keyring" in written:
        console.print("Token saved to the OS keyring")
    console.print(f"Backup saved to: {store.file.path}")
    console.print("\n[dim]You can now use other dropbook commands without DROPBOX_ACCESS_TOKEN[/dim]")


def logout() -> None:
    """Clear stored OAuth tokens from all storage locations."""
    store = default_credential_store(load_settings())
    try:
        cleared = store.delete()
    except Exception as e:
        handle_error(e)
        raise typer.Exit(1)

    for name in cleared:
        where = "the OS keyring" if name == "keyring" else str(store.file.path)
        console.print(f"Cleared tokens from {where}")

    if cleared:
        console.print("[green]Successfully logged out![/green]")
        console.print("[dim]Run 'dropbook login' to authenticate again[/dim]")
    else:
        console.print("[dim]No stored credentials found[/dim]")


def status(
    output: Annotated[OutputFormat, typer.Option("--output", "-o", help="Output format")] = OutputFormat.TABLE,
) -> None:
    """Show where the active token comes from and when it expires."""
    settings = load_settings()
    try:
        token = token_status(settings, default_credential_store(settings))
    except Exception as e:
        handle_error(e)
        raise typer.Exit(1)

    result = {
        "has_token": token.has_token,
        "source": token.source,
        "has_refresh_token": token.has_refresh_token,
        "is_expired": token.is_expired,
        "expires_at": str(token.expires_at) if token.expires_at else "N/A",
        "seconds_remaining": token.seconds_remaining or 0,
    }
    print_output(result, output, title="Token Status")
