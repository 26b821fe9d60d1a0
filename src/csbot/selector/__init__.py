"""Beacon discovery and operator selection."""

from csbot.selector.beacons import (
    Beacon,
    BeaconFilter,
    display_beacon_details,
    filter_beacons,
    format_time_ago,
    list_beacons,
    render_beacon_table,
    select_beacon,
    sort_beacons,
    truncate,
)

__all__ = [
    "Beacon",
    "BeaconFilter",
    "display_beacon_details",
    "filter_beacons",
    "format_time_ago",
    "list_beacons",
    "render_beacon_table",
    "select_beacon",
    "sort_beacons",
    "truncate",
]
