"""Command interactivity logic lives here."""

import inspect
import sys

import pyperclip
from prompt_toolkit import PromptSession
from prompt_toolkit.formatted_text import HTML

from parley.globals import (
    CONSOLE,
    log_exception,
)
from parley.models import AuthMode, AuthResult, View

REGISTRATION_FIELDS = (
    ("first_name", "First name", False),
    ("last_name", "Last name", False),
    ("username", "Username", False),
    ("email", "Email", False),
    ("password", "Password", True),
    ("password2", "Confirm password", True),
)


class CLIController:
    """Handles and supports all command input"""

    def __init__(
        self,
        config,
        session,
        conversations,
        dispatcher,
        view,
        stats,
        panel,
        ui,
    ):
        self.config = config
        self.ui = ui
        self.session = session
        self.conversations = conversations
        self.dispatcher = dispatcher
        self.view = view
        self.stats = stats
        self.panel = panel

        # Command dict
        self.commands = {
            "!h": self.spawn_help_chart,
            "!help": self.spawn_help_chart,
            "!config": self.spawn_settings_chart,
            "!login": self.login,
            "!register": self.register,
            "!google": self.google_login,
            "!logout": self.logout,
            "!new": self.new_chat,
            "!clear": self.clear_chat,
            "!panel": self.toggle_panel,
            "!list": self.list_conversations,
            "!search": self.search_conversations,
            "!open": self.open_conversation,
            "!export": self.export_conversation,
            "!like": self.like,
            "!dislike": self.dislike,
            "!cp": self.copy_last_response,
            "!stats": self.show_stats,
            "!admin": self.open_admin,
            "!back": self.back_to_chat,
            "!q": sys.exit,
            "!quit": sys.exit,
        }

    # <~~HELPERS~~>
    async def _prompt_wrapper(
        self, prefix, cancel_msg="Canceled.", allow_empty=False, **kwargs
    ) -> str | None:
        """Prompt_toolkit wrapper for validating input."""
        try:
            # **kwargs passes completers, styles, is_password, etc automatically
            user_input = await PromptSession().prompt_async(prefix, **kwargs)
            stripped = user_input.strip()
            if not stripped and not allow_empty:
                CONSOLE.print("[dim]No input detected.[/dim]\n")
                return None
            return stripped
        except (KeyboardInterrupt, EOFError):
            CONSOLE.print(f"[dim]{cancel_msg}[/dim]\n")
            return None

    async def handle_input(self, user_input: str):
        """Parse user input for a command & handle it"""
        cmd, _, arg = user_input.strip().partition(" ")
        cmd = cmd.lower()
        if cmd not in self.commands:
            return False  # No command detected
        if cmd in ("!q", "!quit"):
            CONSOLE.print("[yellow]✨ Farewell![/yellow]\n")
            return self.commands[cmd]()
        result = self.commands[cmd](arg.strip())
        if inspect.isawaitable(result):
            result = await result
        return True if result is None else result

    def _in_chat(self) -> bool:
        if self.view.current in (View.CHAT, View.ADMIN):
            return True
        CONSOLE.print("[dim]Sign in first: [cyan]!login[/cyan] or [cyan]!register[/cyan].[/dim]\n")
        return False

    def _pick(self, arg: str):
        """Resolves a panel row number to a conversation summary."""
        displayed = self.conversations.displayed
        try:
            index = int(arg)
        except ValueError:
            CONSOLE.print("[dim]Only valid entry numbers are acceptable.[/dim]\n")
            return None
        if index <= 0 or index > len(displayed):
            CONSOLE.print(f"[red]Entry {index} does not exist.[/red]\n")
            return None
        return displayed[index - 1]

    # <~~CHARTS~~>
    def spawn_help_chart(self, arg: str = ""):
        """Markdown usage chart."""
        CONSOLE.print(self.ui.help_chart_constructor())
        CONSOLE.print()

    def spawn_settings_chart(self, arg: str = ""):
        """Markdown settings chart."""
        CONSOLE.print(self.ui.settings_chart_constructor())
        CONSOLE.print()

    # <~~AUTHENTICATION~~>
    def _finish_auth(self, result: AuthResult) -> bool:
        if result.success:
            self.view.on_auth_success()
            return True
        if result.field_errors:
            self.panel.spawn_field_errors(result.field_errors)
        else:
            self.panel.spawn_error_panel("AUTHENTICATION FAILED", result.error or "")
        return False

    async def login(self, arg: str = ""):
        """Username/password sign in."""
        self.view.sign_in()
        if self.view.current is not View.AUTH:
            CONSOLE.print("[dim]You are already signed in.[/dim]\n")
            return
        self.panel.spawn_auth_panel(AuthMode.LOGIN.value)
        username = arg or await self._prompt_wrapper(
            HTML("Username<seagreen>:</seagreen> ")
        )
        if not username:
            return
        password = await self._prompt_wrapper(
            HTML("Password<seagreen>:</seagreen> "), is_password=True
        )
        if not password:
            return
        with CONSOLE.status(
            "[bold medium_orchid]Signing in...[/bold medium_orchid]", spinner="moon"
        ):
            result = await self.session.login(username, password)
        self._finish_auth(result)

    async def register(self, arg: str = ""):
        """Interactive registration form."""
        if self.view.current is View.LANDING:
            self.view.get_started()
        else:
            self.view.switch_auth_mode(AuthMode.REGISTER)
        if self.view.current is not View.AUTH:
            CONSOLE.print("[dim]You are already signed in.[/dim]\n")
            return
        self.panel.spawn_auth_panel(AuthMode.REGISTER.value)
        fields = {}
        for name, label, secret in REGISTRATION_FIELDS:
            value = await self._prompt_wrapper(
                HTML(f"{label}<seagreen>:</seagreen> "), is_password=secret
            )
            if not value:
                return
            fields[name] = value
        with CONSOLE.status(
            "[bold medium_orchid]Creating account...[/bold medium_orchid]", spinner="moon"
        ):
            result = await self.session.register(fields)
        self._finish_auth(result)

    async def google_login(self, arg: str = ""):
        """Exchanges a Google identity token for a session."""
        self.view.sign_in()
        if self.view.current is not View.AUTH:
            CONSOLE.print("[dim]You are already signed in.[/dim]\n")
            return
        credential = arg or await self._prompt_wrapper(
            HTML("Google ID token<seagreen>:</seagreen> "), is_password=True
        )
        if not credential:
            return
        with CONSOLE.status(
            "[bold medium_orchid]Signing in with Google...[/bold medium_orchid]", spinner="moon"
        ):
            result = await self.session.google_login(credential)
        self._finish_auth(result)

    def logout(self, arg: str = ""):
        if not self.session.is_authenticated:
            CONSOLE.print("[dim]You are not signed in.[/dim]\n")
            return
        self.session.logout()
        self.view.logout()
        CONSOLE.print("[yellow]Signed out.[/yellow]\n")

    # <~~CHAT~~>
    def new_chat(self, arg: str = ""):
        if not self._in_chat():
            return
        self.dispatcher.clear()
        CONSOLE.print("[green]Started a new chat.[/green]\n")

    def clear_chat(self, arg: str = ""):
        if not self._in_chat():
            return
        self.dispatcher.clear()
        CONSOLE.clear()
        CONSOLE.print("[green]🧹 Chat cleared![/green]\n")
        self.panel.spawn_welcome_panel()

    async def _feedback(self, kind: str):
        if not self._in_chat():
            return
        message = self.dispatcher.messages.last_bot()
        if message is None:
            CONSOLE.print("[dim]No response found to rate.[/dim]\n")
            return
        task = self.dispatcher.submit_feedback(message.id, kind)
        if task is None:
            CONSOLE.print("[dim]This response cannot be rated yet.[/dim]\n")
            return
        if await task:
            note = "👍 Thanks for feedback!" if kind == "positive" else "👎 Feedback received"
            self.panel.spawn_notice(note)
        else:
            self.panel.spawn_notice("Failed to save feedback", ok=False)

    async def like(self, arg: str = ""):
        await self._feedback("positive")

    async def dislike(self, arg: str = ""):
        await self._feedback("negative")

    def copy_last_response(self, arg: str = ""):
        """Copies the last assistant message to the clipboard"""
        message = self.dispatcher.messages.last_bot()
        if message is None:
            CONSOLE.print("[dim]No assistant response found to copy from.[/dim]\n")
            return
        try:
            pyperclip.copy(message.content)
            self.panel.spawn_notice("📋 Copied to clipboard.")
        except Exception as e:
            log_exception(e, "Error in copy_last_response()")
            self.panel.spawn_error_panel(
                "CLIPBOARD ERROR", f"Could not copy to clipboard: {e}"
            )

    async def show_stats(self, arg: str = ""):
        if not self._in_chat():
            return
        with CONSOLE.status(
            "[bold medium_orchid]Fetching statistics...[/bold medium_orchid]", spinner="moon"
        ):
            stats = await self.stats.refresh()
        if stats is None:
            self.panel.spawn_notice("Statistics are unavailable right now.", ok=False)
            return
        CONSOLE.print(self.ui.stats_table_constructor(stats))
        CONSOLE.print()

    # <~~CONVERSATIONS~~>
    async def toggle_panel(self, arg: str = ""):
        if arg == "close":
            self.view.close_panel()
            return
        if not self._in_chat():
            return
        if self.view.toggle_panel():
            await self.list_conversations()
        else:
            CONSOLE.print("[dim]Conversation panel hidden.[/dim]\n")

    async def list_conversations(self, arg: str = ""):
        if not self._in_chat():
            return
        self.conversations.clear_search()
        if not await self.conversations.list_conversations():
            self.panel.spawn_notice("Could not load conversations.", ok=False)
            return
        self.panel.spawn_conversations(
            self.conversations.displayed,
            self.conversations.active_conversation_id,
            searching=False,
        )

    async def search_conversations(self, arg: str = ""):
        if not self._in_chat():
            return
        query = arg or await self._prompt_wrapper(
            HTML("Search conversations<seagreen>:</seagreen> "), allow_empty=True
        )
        if query is None:
            return
        await self.conversations.search(query)
        if not self.conversations.is_searching and not self.conversations.conversations:
            await self.conversations.list_conversations()
        self.panel.spawn_conversations(
            self.conversations.displayed,
            self.conversations.active_conversation_id,
            searching=self.conversations.is_searching,
        )

    async def open_conversation(self, arg: str = ""):
        if not self._in_chat():
            return
        if not self.conversations.displayed:
            await self.conversations.list_conversations()
            self.panel.spawn_conversations(
                self.conversations.displayed,
                self.conversations.active_conversation_id,
                searching=False,
            )
        choice = arg or await self._prompt_wrapper(
            HTML("Enter a conversation number<seagreen>:</seagreen> ")
        )
        if not choice:
            return
        summary = self._pick(choice)
        if summary is None:
            return
        with CONSOLE.status(
            "[bold medium_orchid]Loading conversation...[/bold medium_orchid]", spinner="moon"
        ):
            opened = await self.dispatcher.open_conversation(summary.id)
        if not opened:
            self.panel.spawn_notice("Could not load that conversation.", ok=False)
            return
        CONSOLE.clear()
        CONSOLE.print(f"[cyan]Conversation:[/cyan] {summary.title}\n")
        self.panel.spawn_history(self.dispatcher.messages)
        CONSOLE.print()

    async def export_conversation(self, arg: str = ""):
        if not self._in_chat():
            return
        choice = arg or await self._prompt_wrapper(
            HTML("Enter a conversation number to export<seagreen>:</seagreen> ")
        )
        if not choice:
            return
        summary = self._pick(choice)
        if summary is None:
            return
        path = await self.conversations.export_conversation(summary.id, "txt")
        if path:
            self.panel.spawn_notice(f"Conversation exported to: {path}")
        else:
            self.panel.spawn_notice("Export failed.", ok=False)

    # <~~ADMIN~~>
    async def open_admin(self, arg: str = ""):
        if not self._in_chat():
            return
        if not self.view.open_admin():
            CONSOLE.print("[dim]The admin overview is restricted to staff accounts.[/dim]\n")

    def back_to_chat(self, arg: str = ""):
        self.view.back_to_chat()
