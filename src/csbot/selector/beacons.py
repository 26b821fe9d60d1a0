"""Beacon listing, filtering and interactive selection."""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass, field, fields
from datetime import UTC, datetime, timedelta

from rich.console import Console
from rich.markup import escape
from rich.table import Table

from csbot.errors import BeaconSelectionError

logger = logging.getLogger(__name__)

# REST field names mapped to Beacon attributes
_FIELD_ALIASES = {
    "isAdmin": "is_admin",
    "lastCheckinTime": "last_checkin",
    "systemArch": "system_arch",
    "beaconArch": "beacon_arch",
}


def _parse_time(value) -> datetime:
    if isinstance(value, datetime):
        moment = value
    elif isinstance(value, (int, float)):
        moment = datetime.fromtimestamp(value, UTC)
    else:
        moment = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    return moment if moment.tzinfo else moment.replace(tzinfo=UTC)


@dataclass
class Beacon:
    """Metadata of one beacon session as reported by the team server."""

    bid: str
    user: str = ""
    computer: str = ""
    pid: int = 0
    internal: str = ""
    external: str = ""
    process: str = ""
    os: str = ""
    version: str = ""
    build: int = 0
    system_arch: str = ""
    beacon_arch: str = ""
    is_admin: bool = False
    alive: bool = True
    listener: str = ""
    session: str = "beacon"
    sleep: int = 0
    jitter: int = 0
    impersonated: str = ""
    note: str = ""
    last_checkin: datetime = field(default_factory=lambda: datetime.now(UTC))

    @classmethod
    def from_dict(cls, data: Mapping) -> Beacon:
        """Build from a REST payload; unknown keys are ignored."""
        known = {f.name for f in fields(cls)}
        values = {}
        for key, value in data.items():
            name = _FIELD_ALIASES.get(key, key)
            if name == "sleep" and isinstance(value, Mapping):
                values["sleep"] = int(value.get("sleep", 0))
                values["jitter"] = int(value.get("jitter", 0))
            elif name in known:
                values[name] = value
        if "last_checkin" in values:
            values["last_checkin"] = _parse_time(values["last_checkin"])
        return cls(**values)


@dataclass
class BeaconFilter:
    """Filtering criteria; empty or zero fields do not filter."""

    user: str = ""
    hostname: str = ""
    admin_only: bool = False
    alive_only: bool = False
    minutes_ago: int = 0

    @property
    def active(self) -> bool:
        return bool(
            self.user or self.hostname or self.admin_only or self.alive_only or self.minutes_ago > 0
        )

    def matches(self, beacon: Beacon, now: datetime | None = None) -> bool:
        if self.user and self.user.lower() not in beacon.user.lower():
            return False
        if self.hostname and self.hostname.lower() not in beacon.computer.lower():
            return False
        if self.admin_only and not beacon.is_admin:
            return False
        if self.alive_only and not beacon.alive:
            return False
        if self.minutes_ago > 0:
            now = now or datetime.now(UTC)
            if now - beacon.last_checkin > timedelta(minutes=self.minutes_ago):
                return False
        return True

    def describe(self) -> list[str]:
        lines = []
        if self.user:
            lines.append(f"User contains: {self.user}")
        if self.hostname:
            lines.append(f"Hostname contains: {self.hostname}")
        if self.admin_only:
            lines.append("Admin only: yes")
        if self.alive_only:
            lines.append("Alive only: yes")
        if self.minutes_ago > 0:
            lines.append(f"Last check-in within: {self.minutes_ago} minutes")
        return lines


def filter_beacons(
    beacons: Iterable[Beacon], beacon_filter: BeaconFilter | None = None, now: datetime | None = None
) -> list[Beacon]:
    if beacon_filter is None:
        return list(beacons)
    return [beacon for beacon in beacons if beacon_filter.matches(beacon, now)]


def sort_beacons(beacons: Iterable[Beacon]) -> list[Beacon]:
    """Most recent check-in first."""
    return sorted(beacons, key=lambda b: b.last_checkin, reverse=True)


def format_time_ago(delta: timedelta) -> str:
    seconds = max(int(delta.total_seconds()), 0)
    if seconds < 60:
        return f"{seconds}s ago"
    if seconds < 3600:
        return f"{seconds // 60}m ago"
    if seconds < 86400:
        return f"{seconds // 3600}h ago"
    return f"{seconds // 86400}d ago"


def truncate(text: str, max_len: int) -> str:
    if len(text) <= max_len:
        return text
    return text[: max_len - 2] + ".."


def render_beacon_table(beacons: list[Beacon], now: datetime | None = None) -> Table:
    now = now or datetime.now(UTC)
    table = Table(title="Available Beacons", show_lines=False)
    for column in (
        "#",
        "Beacon ID",
        "User",
        "Hostname",
        "PID",
        "Internal IP",
        "Last Check-in",
        "Sleep",
        "Jitter",
        "Admin",
        "Alive",
    ):
        table.add_column(column, no_wrap=True)

    for i, beacon in enumerate(beacons, 1):
        table.add_row(
            str(i),
            truncate(beacon.bid, 10),
            escape(truncate(beacon.user, 20)),
            escape(truncate(beacon.computer, 15)),
            str(beacon.pid),
            beacon.internal,
            format_time_ago(now - beacon.last_checkin),
            f"{beacon.sleep}s",
            f"{beacon.jitter}%",
            "✓" if beacon.is_admin else "",
            "✓" if beacon.alive else "",
        )
    return table


async def _fetch(client, beacon_filter: BeaconFilter | None, console: Console) -> list[Beacon]:
    list_fn = getattr(client, "list_beacons", None)
    if list_fn is None:
        raise BeaconSelectionError("Remote client cannot list beacons")
    try:
        raw = await list_fn()
    except Exception as e:
        raise BeaconSelectionError(f"Failed to list beacons: {e}") from e

    all_beacons = [b if isinstance(b, Beacon) else Beacon.from_dict(b) for b in raw]
    beacons = sort_beacons(filter_beacons(all_beacons, beacon_filter))

    if not beacons:
        if beacon_filter is not None and beacon_filter.active:
            raise BeaconSelectionError("No beacons match the filter criteria")
        raise BeaconSelectionError("No beacons available")

    if beacon_filter is not None and beacon_filter.active:
        console.print("\n[bold]Active Filters:[/bold]")
        for line in beacon_filter.describe():
            console.print(f"  - {line}")
        console.print(f"  - Results: {len(beacons)}/{len(all_beacons)} beacons")

    console.print(render_beacon_table(beacons))
    return beacons


async def list_beacons(
    client, beacon_filter: BeaconFilter | None = None, console: Console | None = None
) -> list[Beacon]:
    """Print a table of (filtered) beacons and return them.

    Raises:
        BeaconSelectionError: If listing fails or nothing matches
    """
    console = console or Console()
    beacons = await _fetch(client, beacon_filter, console)
    console.print(f"\nTotal: {len(beacons)} beacons")
    return beacons


async def select_beacon(
    client,
    beacon_filter: BeaconFilter | None = None,
    console: Console | None = None,
    input_func: Callable[[str], str] = input,
) -> str:
    """Show beacons and prompt the operator for one.

    Returns:
        The selected beacon ID

    Raises:
        BeaconSelectionError: On empty listings, end of input, or ``q``
    """
    console = console or Console()
    beacons = await _fetch(client, beacon_filter, console)

    while True:
        try:
            choice = input_func("\nSelect beacon number (or 'q' to quit): ").strip()
        except EOFError:
            raise BeaconSelectionError("No selection made (end of input)") from None
        if choice.lower() == "q":
            raise BeaconSelectionError("Selection cancelled by user")
        try:
            index = int(choice)
        except ValueError:
            index = 0
        if 1 <= index <= len(beacons):
            break
        console.print(f"Invalid selection. Please enter a number between 1 and {len(beacons)}.")

    selected = beacons[index - 1]
    console.print(
        "\n[green]✓[/green] Selected beacon: "
        + escape(f"{selected.bid} ({selected.user}@{selected.computer})")
        + "\n"
    )
    logger.info(f"Selected beacon {selected.bid}")
    return selected.bid


async def display_beacon_details(client, bid: str, console: Console | None = None) -> Beacon:
    """Print full details of one beacon.

    Raises:
        BeaconSelectionError: If the client cannot fetch it
    """
    console = console or Console()
    try:
        raw = await client.get_beacon(bid)
    except Exception as e:
        raise BeaconSelectionError(f"Failed to get beacon details: {e}") from e
    beacon = raw if isinstance(raw, Beacon) else Beacon.from_dict(raw)

    rows = [
        ("Beacon ID", beacon.bid),
        ("User", beacon.user),
        ("Impersonated", beacon.impersonated),
        ("Hostname", beacon.computer),
        ("Internal IP", beacon.internal),
        ("External IP", beacon.external),
        ("Process", f"{beacon.process} (PID: {beacon.pid})"),
        ("OS", f"{beacon.os} {beacon.version} (Build {beacon.build})"),
        ("Architecture", f"{beacon.system_arch} (Beacon: {beacon.beacon_arch})"),
        ("Admin", str(beacon.is_admin)),
        ("Listener", beacon.listener),
        ("Session Type", beacon.session),
        ("Sleep", f"{beacon.sleep}s (Jitter: {beacon.jitter}%)"),
        ("Last Check-in", beacon.last_checkin.strftime("%Y-%m-%d %H:%M:%S")),
        ("Alive", str(beacon.alive)),
        ("Note", beacon.note),
    ]
    table = Table(title="Beacon Details", show_header=False)
    table.add_column("Field", style="bold")
    table.add_column("Value")
    for label, value in rows:
        if label in ("Impersonated", "Note") and not value:
            continue
        table.add_row(label, value)
    console.print(table)
    return beacon
