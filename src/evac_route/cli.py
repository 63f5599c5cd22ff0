from __future__ import annotations

import argparse
import json
import logging
from pathlib import Path
from typing import List, Optional

from rich.console import Console
from rich.table import Table

from evac_route.config import settings
from evac_route.core.models import Coordinate, EmergencyKind, LocationSample, StartMode, TravelProfile
from evac_route.core.session import InlineExecutor, RouteSession
from evac_route.providers.factory import build_provider


def _parse_latlon(text: str) -> Coordinate:
    try:
        lat_s, lon_s = text.split(",", 1)
        return Coordinate(lat=float(lat_s), lon=float(lon_s))
    except ValueError as e:
        raise argparse.ArgumentTypeError(f"expected LAT,LON, got '{text}'") from e


def _read_track(path: Path) -> List[LocationSample]:
    data = json.loads(path.read_text(encoding="utf-8"))
    return [LocationSample(**row) for row in data]


def _save_json(path: Path, obj) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(obj, indent=2), encoding="utf-8")


def _build_session(args) -> RouteSession:
    session = RouteSession.from_datasets(
        build_provider(args.provider),
        hazards_path=Path(args.hazards),
        destinations_path=Path(args.destinations),
        executor=InlineExecutor(),
    )
    session.set_travel_profile(TravelProfile(args.profile))
    session.set_emergency_kind(EmergencyKind(args.emergency))
    return session


def cmd_route(args, console: Console) -> int:
    session = _build_session(args)
    session.set_start_mode(StartMode.MANUAL_POINT)
    session.set_manual_start_point(args.start)

    if args.destination is not None:
        match = [d for d in session.destinations if d.id == args.destination]
        if not match:
            console.print(f"[red]Unknown destination id {args.destination}[/red]")
            return 2
        session.select_destination(match[0])
    else:
        session.start_evacuation()

    state = session.state
    route = session.active_route

    table = Table(title="Evacuation route")
    table.add_column("Field")
    table.add_column("Value")
    table.add_row("Start", f"{args.start.lat:.5f}, {args.start.lon:.5f}")
    table.add_row("Profile", args.profile)
    table.add_row("Emergency", args.emergency)
    table.add_row("Active hazards", str(len(session.active_hazards)))
    table.add_row("Destination", state.destination.name if state.destination else "-")
    table.add_row("Phase", state.phase.value)
    table.add_row("Route points", str(len(route)))
    table.add_row("Error", state.last_error.value if state.last_error else "")
    console.print(table)

    if args.save:
        _save_json(Path(args.save), [c.model_dump() for c in route])
        console.print(f"Saved: {Path(args.save).resolve()}")
    return 0 if route else 1


def cmd_simulate(args, console: Console) -> int:
    samples = _read_track(Path(args.track))
    if not samples:
        console.print("[red]Empty track[/red]")
        return 2

    session = _build_session(args)
    session.on_location(samples[0])
    session.start_evacuation()

    table = Table(title=f"Evacuation replay: {Path(args.track).name}")
    table.add_column("#")
    table.add_column("Lat")
    table.add_column("Lon")
    table.add_column("Phase")
    table.add_column("Left")
    table.add_column("Nearest m")
    table.add_column("Flags")

    rows: List[dict] = []
    for i, sample in enumerate(samples[1:], start=1):
        step = session.on_location(sample)
        state = session.state
        flags = [name for name, on in (
            ("off-route", state.off_route),
            ("recalc", step is not None and step.recalculate),
            ("arrived", state.arrived),
        ) if on]
        if state.last_error:
            flags.append(state.last_error.value)
        dist: Optional[float] = step.distance_m if step is not None else None

        table.add_row(
            str(i),
            f"{sample.lat:.6f}",
            f"{sample.lon:.6f}",
            state.phase.value,
            str(len(session.active_route)),
            f"{dist:.1f}" if dist is not None else "",
            ", ".join(flags),
        )
        rows.append({
            "i": i,
            "lat": sample.lat,
            "lon": sample.lon,
            "phase": state.phase.value,
            "remaining": len(session.active_route),
            "distance_m": dist,
            "flags": flags,
        })

    console.print(table)
    if args.save:
        _save_json(Path(args.save), rows)
        console.print(f"Saved: {Path(args.save).resolve()}")
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    ap = argparse.ArgumentParser(prog="evac-route")
    ap.add_argument("--hazards", default=settings.hazards_path, help="Hazard GeoJSON file")
    ap.add_argument("--destinations", default=settings.destinations_path, help="Destination catalog JSON")
    ap.add_argument("--provider", default="mock", help="ors | mock")
    ap.add_argument("--profile", default="walk", choices=[p.value for p in TravelProfile])
    ap.add_argument("--emergency", default="flood", choices=[k.value for k in EmergencyKind])
    ap.add_argument("--save", default=None, help="Write the result as JSON")
    ap.add_argument("--debug", action="store_true")
    sub = ap.add_subparsers(dest="command", required=True)

    ap_route = sub.add_parser("route", help="Compute one route")
    ap_route.add_argument("--start", required=True, type=_parse_latlon, help="LAT,LON")
    ap_route.add_argument("--destination", type=int, default=None, help="Destination id (default: nearest meeting point)")

    ap_sim = sub.add_parser("simulate", help="Replay a GPS track through an evacuation")
    ap_sim.add_argument("--track", default="data/sample_track.json", help="JSON list of {lat, lon} samples")

    args = ap.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.debug else logging.WARNING,
        format="%(asctime)s [evac-route] %(levelname)s %(name)s: %(message)s",
    )

    console = Console()
    if args.command == "route":
        return cmd_route(args, console)
    return cmd_simulate(args, console)


if __name__ == "__main__":
    raise SystemExit(main())
