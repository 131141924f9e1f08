#!/usr/bin/env python3

# <~~~~~~~~~~>
#    PARLEY
# <~~~~~~~~~~>

import asyncio
import sys

from rich.live import Live

from parley.api import ApiClient
from parley.cli_controller import CLIController
from parley.config import Config
from parley.conversations import ConversationStore
from parley.dispatcher import MessageDispatcher
from parley.globals import (
    CONSOLE,
    build_key_bindings,
    init_logger,
    log_exception,
    root_prompt,
    setup_keyring_backend,
    spinner_constructor,
)
from parley.models import Message, View
from parley.session_manager import SessionManager
from parley.stats import AdminOverview, StatsStore
from parley.token_store import TokenStore
from parley.ui import GlobalPanels, UIConstructor
from parley.view_state import ViewStateMachine


class Chat:
    """Houses the main application logic for Parley"""

    # <~~INTIALIZATION~~>
    def __init__(
        self,
        config: Config,
        api: ApiClient | None = None,
        tokens: TokenStore | None = None,
    ):
        self.config: Config = config

        # Transport and credentials
        self.api = api or ApiClient(config.base_url, timeout=config.request_timeout)
        self.tokens = tokens or TokenStore()

        # State holders, the view machine subscribes to the session first
        self.session = SessionManager(self.api, self.tokens)
        self.conversations = ConversationStore(self.session)
        self.dispatcher = MessageDispatcher(self.session, self.conversations)
        self.view = ViewStateMachine(self.session)
        self.stats = StatsStore(self.session)
        self.admin = AdminOverview(self.session)

        # Rendering and commands
        self.ui = UIConstructor(config, self.session)
        self.panel = GlobalPanels(self.session, self.ui)
        self.controller = CLIController(
            config,
            self.session,
            self.conversations,
            self.dispatcher,
            self.view,
            self.stats,
            self.panel,
            self.ui,
        )

        # Last screen drawn, as (view, auth mode)
        self.rendered: tuple | None = None
        self.expired: bool = False

        # Escape closes the conversation panel only while it is open
        self.key_bindings = build_key_bindings(lambda: self.view.panel_open)

        self.session.subscribe(self._on_session_change)

    def _on_session_change(self, authenticated: bool, reason: str):
        """Starts and tears down per-user state."""
        if authenticated:
            self.expired = False
            self.stats.start_polling(self.config.stats_refresh_rate)
            return
        self.stats.stop_polling()
        self.dispatcher.clear()
        self.conversations.reset()
        self.expired = reason == "expired"

    # <~~RENDERING~~>
    def _screen(self) -> tuple:
        return (self.view.current, self.view.auth_mode)

    async def render_view(self):
        """Draws the screen the view machine currently points at."""
        current = self.view.current
        if current is View.LANDING:
            self.panel.spawn_landing_panel()
        elif current is View.AUTH:
            if self.expired:
                self.panel.spawn_notice(
                    "Your session has expired. Please sign in again.", ok=False
                )
            CONSOLE.print(
                "[dim]Type [cyan]!login[/cyan] to sign in, or [cyan]!register[/cyan] to create an account.[/dim]\n"
            )
        elif current is View.CHAT:
            if len(self.dispatcher.messages):
                self.panel.spawn_history(self.dispatcher.messages)
                CONSOLE.print()
            else:
                self.panel.spawn_welcome_panel()
        elif current is View.ADMIN:
            with CONSOLE.status(
                "[bold medium_orchid]Loading admin overview...[/bold medium_orchid]",
                spinner="moon",
            ):
                loaded = await self.admin.load()
            if loaded:
                CONSOLE.print(
                    self.ui.admin_panel_constructor(self.admin.dashboard, self.admin.users)
                )
                CONSOLE.print("[dim]Type [cyan]!back[/cyan] to return to chat.[/dim]\n")
            else:
                self.panel.spawn_notice("Could not load the admin overview.", ok=False)
        self.rendered = self._screen()

    # <~~MESSAGING~~>
    def turns(self) -> int:
        return sum(1 for m in self.dispatcher.messages if m.type == "user")

    async def send(self, text: str):
        """Sends one message and draws the exchange."""
        self.panel.spawn_message(Message(type="user", content=text))
        with CONSOLE.status(
            "[bold medium_orchid]AI is thinking...[/bold medium_orchid]", spinner="moon"
        ):
            reply = await self.dispatcher.send_message(text)
        # Dropped replies belong to a chat that is no longer on screen
        if reply is None:
            return
        self.panel.spawn_message(reply)
        self.panel.spawn_status_panel(self.stats.stats, self.turns())

    async def handle(self, user_input: str):
        """Routes one line of input: a command, a chat message, or a hint."""
        if not user_input.strip():
            return
        if not await self.controller.handle_input(user_input):
            current = self.view.current
            if current is View.CHAT:
                await self.send(user_input)
            elif current is View.ADMIN:
                CONSOLE.print("[dim]Type [cyan]!back[/cyan] to return to chat.[/dim]\n")
            else:
                CONSOLE.print(
                    "[dim]Type [cyan]!register[/cyan] to get started or [cyan]!login[/cyan] to sign in.[/dim]\n"
                )
        if self._screen() != self.rendered:
            await self.render_view()

    async def run(self):
        """Helper function for running the application"""
        try:
            with CONSOLE.status(
                "[bold medium_orchid]Restoring session...[/bold medium_orchid]",
                spinner="moon",
            ):
                await self.session.load_session()
            self.view.start()
            await self.render_view()
            while True:
                try:
                    user_input = await root_prompt(key_bindings=self.key_bindings)
                except (KeyboardInterrupt, EOFError):  # Ctrl + c implementation for exiting
                    CONSOLE.print("[yellow]✨ Farewell![/yellow]\n")
                    break
                try:
                    await self.handle(user_input)
                except Exception as e:
                    log_exception(e, "Error in Chat.handle()")
                    self.panel.spawn_error_panel("ERROR", f"{e}")
        finally:
            self.stats.stop_polling()
            await self.api.aclose()


# <~~MAIN FLOW~~>
def main():
    try:
        # Start a spinner, mostly for cold starts
        with Live(
            spinner_constructor("Launching Parley..."),
            refresh_per_second=8,
            console=CONSOLE,
        ):
            config = Config()
            config.load()  # Generates a config file if one does not exist
            init_logger(config.log_level)  # Initialize the log file
            setup_keyring_backend()
            app = Chat(config)
        CONSOLE.clear()  # Clears the viewport
        try:
            asyncio.run(app.run())  # Runs the application
        finally:
            config.save()  # Saves config on exit
    except (KeyboardInterrupt, EOFError):
        CONSOLE.print("[yellow]✨ Farewell![/yellow]\n")
    except Exception as e:
        log_exception(e, "Critical startup error")  # Log any critical errors
        CONSOLE.print(f"[bold red]❌ CRITICAL ERROR[/bold red] {e}\n")
        sys.exit(1)


if __name__ == "__main__":
    main()
