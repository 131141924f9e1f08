"""Builds and spawns UI objects. UIConstructor and GlobalPanels live here."""

import os
import textwrap
from datetime import datetime

from rich import box
from rich.console import Group
from rich.markdown import Markdown
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from parley import __version__
from parley.globals import CONFIG_FILE, CONSOLE, EXPORTS_DIR, LOG_DIR
from parley.models import ConversationSummary, DashboardStats, Message


def short_time(timestamp: str | None) -> str:
    """Local HH:MM for a message timestamp, or an empty string."""
    if not timestamp:
        return ""
    try:
        stamp = datetime.fromisoformat(timestamp.replace("Z", "+00:00"))
    except ValueError:
        return ""
    if stamp.tzinfo is not None:
        stamp = stamp.astimezone()
    return stamp.strftime("%H:%M")


class UIConstructor:
    """Constructs and returns various UI objects"""

    def __init__(self, config, session):
        self.config = config
        self.session = session

    def landing_panel_constructor(self) -> Panel:
        landing_text = Text.assemble(
            ("Chat with an AI assistant from your terminal.\n\n", "italic"),
            ("!register", "bold cyan"),
            ("  Get started with a new account\n"),
            ("!login", "bold cyan"),
            ("     Sign in\n"),
            ("!google", "bold cyan"),
            ("    Sign in with a Google identity token\n"),
            ("!q", "bold cyan"),
            ("         Quit"),
        )
        return Panel(
            landing_text,
            title=Text(f"🤖 Parley {__version__}", "bold medium_orchid"),
            title_align="left",
            border_style="medium_orchid",
            box=box.HORIZONTALS,
            padding=(0, 0),
        )

    def auth_panel_constructor(self, mode: str) -> Panel:
        if mode == "register":
            title, subtitle = "🚀 Create Account", "Join our AI community!"
        else:
            title, subtitle = "🔑 Welcome Back!", "Login to continue chatting"
        return Panel(
            Text(subtitle, style="italic"),
            title=Text(title, style="bold cyan"),
            title_align="left",
            border_style="cyan",
            box=box.HORIZONTALS,
            padding=(0, 0),
        )

    def welcome_panel_constructor(self) -> Panel:
        user = self.session.user
        name = user.display_name if user else "there"
        welcome_text = Text.assemble(
            (f"Hi {name}! 👋\n", "bold"),
            ("How can I help you today?\n\n"),
            ("Try asking: ", "dim"),
            ("Explain quantum computing", "italic"),
            (" · ", "dim"),
            ("Write a Python function", "italic"),
            (" · ", "dim"),
            ("Tell me a joke", "italic"),
        )
        return Panel(
            welcome_text,
            title=Text("💬 New chat", style="bold green"),
            title_align="left",
            border_style="green",
            box=box.HORIZONTALS,
            padding=(0, 0),
        )

    def user_panel_constructor(self, message: Message) -> Panel:
        return Panel(
            message.content,
            box=box.HORIZONTALS,
            padding=(0, 0),
            title=Text(f"👤 You {short_time(message.timestamp)}", style="bold blue"),
            title_align="left",
            border_style="blue",
            style="default",
        )

    def bot_panel_constructor(self, message: Message) -> Panel:
        footer = None
        if message.intent:
            footer = Text(message.intent, style="dim")
            if message.confidence is not None:
                footer.append(f" {message.confidence:.0%}")
        return Panel(
            Markdown(message.content, code_theme=self.config.rich_code_theme),
            title=Text(f"🤖 Assistant {short_time(message.timestamp)}", style="bold green"),
            title_align="left",
            subtitle=footer,
            subtitle_align="right",
            border_style="green",
            style="default",
            width=None,
            box=box.HORIZONTALS,
            padding=(0, 0),
        )

    def conversation_table_constructor(
        self,
        conversations: list[ConversationSummary],
        active_id,
        searching: bool,
    ) -> Table | Text:
        if not conversations:
            return Text(
                "🔍 No results found" if searching else "💭 No conversations yet",
                style="dim",
            )
        table = Table(box=box.SIMPLE_HEAD, expand=False, title_justify="left")
        table.add_column("#", style="cyan", justify="right")
        table.add_column("Title")
        table.add_column("Preview", style="dim")
        table.add_column("Created", style="dim")
        for i, conv in enumerate(conversations, start=1):
            marker = "● " if conv.id == active_id else ""
            preview = conv.matched_message or f"{conv.message_count} messages"
            created = (conv.created_at or "")[:10]
            table.add_row(str(i), f"{marker}{conv.title}", preview, created)
        return table

    def status_panel_constructor(self, stats: DashboardStats | None, turns: int) -> Panel:
        status_text = Text.assemble(
            (" ", "cyan"),
            (f"Turn: {turns}"),
        )
        if stats and stats.today:
            status_text.append(f" | Today: {stats.today.get('messages', 0)} msgs")
            status_text.append(f", {stats.today.get('active_users', 0)} active")
        if stats and stats.overall:
            status_text.append(
                f" | Total: {stats.overall.get('total_conversations', 0)} conversations"
            )
        return Panel(
            status_text,
            border_style="dim",
            style="dim",
            expand=False,
        )

    def stats_table_constructor(self, stats: DashboardStats) -> Table:
        table = Table(box=box.SIMPLE_HEAD, expand=False)
        table.add_column("Metric")
        table.add_column("Value", justify="right")
        for section, values in (("Today", stats.today), ("Overall", stats.overall)):
            for key, value in values.items():
                label = key.replace("_", " ").capitalize()
                table.add_row(f"{section}: {label}", str(value))
        return table

    def admin_panel_constructor(self, dashboard: dict, users: list[dict]) -> Panel:
        table = Table(box=box.SIMPLE_HEAD, expand=False)
        table.add_column("User")
        table.add_column("Email", style="dim")
        table.add_column("Staff", justify="center")
        table.add_column("Active", justify="center")
        for u in users:
            table.add_row(
                str(u.get("username", "")),
                str(u.get("email", "")),
                "✓" if u.get("is_staff") else "",
                "✓" if u.get("is_active", True) else "✗",
            )
        summary = Text()
        for key, value in dashboard.items():
            if isinstance(value, (int, float, str)):
                summary.append(f"{key.replace('_', ' ')}: ", style="bold sandy_brown")
                summary.append(f"{value}\n")
        return Panel(
            Group(summary, table),
            title=Text("🔧 Admin", style="bold orange1"),
            title_align="left",
            border_style="orange1",
            box=box.HORIZONTALS,
            padding=(0, 0),
        )

    def error_panel_constructor(self, error: str, exception: str) -> Panel:
        return Panel(
            exception,
            title=Text(f"❌ {error}", style="bold red"),
            title_align="left",
            border_style="red",
            expand=False,
        )

    def field_errors_constructor(self, field_errors: dict[str, list[str]]) -> Text:
        text = Text()
        for field, messages in field_errors.items():
            label = field.replace("_", " ").capitalize()
            text.append(f"{label}: ", style="bold red")
            text.append(f"{messages[0] if messages else ''}\n")
        return text

    def help_chart_constructor(self) -> Markdown:
        return Markdown(
            textwrap.dedent("""
            | **Account** | *Sign in and out* |
            | --- | ----------- |
            | `!login` | Sign in with a username and password. |
            | `!register` | Create an account. |
            | `!google` | Sign in with a Google identity token. |
            | `!logout` | Sign out and return to the landing screen. |

            | **Chat** | *The active conversation* |
            | --- | ----------- |
            | `!new` | Start a new chat. |
            | `!clear` or `Ctrl + K` | Clear the chat. |
            | `!like` / `!dislike` | Rate the last response. |
            | `!cp` | Copy the last response to your clipboard. |
            | `!stats` | Show usage statistics. |

            | **Conversations** | *Past conversations* |
            | --- | ----------- |
            | `!panel` or `Ctrl + /` | Show or hide the conversation panel. `Esc` hides it. |
            | `!list` | Refresh and show your conversations. |
            | `!search` | Search conversations (2+ characters). |
            | `!open` | Open a conversation by its number in the panel. |
            | `!export` | Export a conversation as a text file. |

            | **Other** | |
            | --- | ----------- |
            | `!admin` / `!back` | Open the admin overview (staff only) / return to chat. |
            | `!config` | Display your current configuration. |
            | `!q` or `!quit` | Exit Parley. |
            """)
        )

    def settings_chart_constructor(self) -> Markdown:
        return Markdown(
            textwrap.dedent(f"""
            | **Current Settings** | *Your current persistent settings* |
            | --- | ----------- |
            | **API URL**: | *{self.config.base_url}* |
            | | |
            | **Google Client ID**: | *{self.config.google_client_id or 'not set'}* |
            | | |
            | **Request Timeout**: | *{self.config.request_timeout}s* |
            | | |
            | **Stats Refresh Rate**: | *{self.config.stats_refresh_rate}s* |
            | | |
            | **Markdown Theme**: | *{self.config.rich_code_theme}* |
            - Your configuration file is located at: `{CONFIG_FILE}`
            - Your exports are located at:           `{EXPORTS_DIR}`
            - Your error logs are located at:        `{LOG_DIR}`
            - The current working directory is:      `{os.getcwd()}`
            """)
        )


class GlobalPanels:
    """Global panel spawner"""

    def __init__(self, session, ui: UIConstructor):
        self.session = session
        self.ui: UIConstructor = ui

    def spawn_landing_panel(self):
        CONSOLE.print(self.ui.landing_panel_constructor())
        CONSOLE.print()

    def spawn_auth_panel(self, mode: str):
        CONSOLE.print(self.ui.auth_panel_constructor(mode))

    def spawn_welcome_panel(self):
        CONSOLE.print(self.ui.welcome_panel_constructor())
        CONSOLE.print(Markdown("Type `!h` for a list of commands."))
        CONSOLE.print()

    def spawn_message(self, message: Message):
        if message.type == "user":
            CONSOLE.print()
            CONSOLE.print(self.ui.user_panel_constructor(message))
            CONSOLE.print()
        else:
            CONSOLE.print(self.ui.bot_panel_constructor(message))

    def spawn_history(self, messages):
        for message in messages:
            self.spawn_message(message)

    def spawn_conversations(self, conversations, active_id, searching: bool):
        heading = "[cyan]Search results:[/cyan]" if searching else "[cyan]Conversations:[/cyan]"
        CONSOLE.print(heading)
        CONSOLE.print(self.ui.conversation_table_constructor(conversations, active_id, searching))
        CONSOLE.print()

    def spawn_status_panel(self, stats, turns: int):
        CONSOLE.print(self.ui.status_panel_constructor(stats, turns))
        CONSOLE.print()

    def spawn_error_panel(self, error: str, exception: str):
        """Error panel template, used for anything the user has to act on"""
        CONSOLE.print(self.ui.error_panel_constructor(error, exception))
        CONSOLE.print()

    def spawn_field_errors(self, field_errors: dict[str, list[str]]):
        CONSOLE.print(self.ui.field_errors_constructor(field_errors))

    def spawn_notice(self, message: str, ok: bool = True):
        """Transient one-line notice"""
        color = "green" if ok else "red"
        CONSOLE.print(f"[{color}]{message}[/{color}]\n")
