"""Command-line interface for Lorcana Scanner."""

import asyncio
from pathlib import Path
from typing import List, Optional

import cv2
import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from .capture.camera import CameraCapture, StillImageSource
from .capture.overlay import scanner_overlay
from .catalog.loader import load_catalog
from .core.constants import ALL_SETS
from .core.types import CatalogEntry, PipelineState, TickResult
from .ocr.regexes import parse_collector_number
from .scanner.controller import ScannerController
from .ui.notifier import notifier
from .utils.config import ensure_diagnostics_dir, settings
from .utils.error_handler import CardScannerError
from .utils.log import configure_logging, get_logger
from .vision.ink import ink_classifier

# Configure logging
configure_logging()
logger = get_logger(__name__)

# Rich console
console = Console()

app = typer.Typer(
    name="lorcana-scanner",
    help="Lorcana Card Scanner - identify cards from the collector number and ink",
    add_completion=False,
)

WINDOW_TITLE = "Lorcana Scanner - ESC to exit"
KEY_ESC = 27


def _load_catalog_or_exit(catalog_path: Optional[str]) -> List[CatalogEntry]:
    path = catalog_path or settings.CATALOG_PATH
    if not path:
        console.print("[red]❌ No catalog given; pass --catalog or set CATALOG_PATH[/red]")
        raise typer.Exit(1)
    try:
        cards = load_catalog(path)
    except CardScannerError as e:
        console.print(f"[red]❌ {e.message}[/red]")
        raise typer.Exit(1)
    console.print(f"[green]✓ Catalog loaded: {len(cards)} cards[/green]")
    return cards


def _tick_table(result: TickResult, title: str) -> Table:
    table = Table(title=title)
    table.add_column("Field", style="cyan")
    table.add_column("Value", style="white")

    table.add_row("Outcome", result.outcome.value)
    if result.recognition is not None:
        table.add_row("OCR Text", result.recognition.text or "[red]-[/red]")
        table.add_row("OCR Confidence", f"{result.recognition.confidence:.1f}%")
        table.add_row("Latency", f"{result.recognition.latency_ms:.0f}ms")
    if result.parsed is not None:
        table.add_row("Collector Number", result.parsed.label)
        table.add_row("Set Number", result.parsed.set_number or "-")
    if result.ink is not None:
        table.add_row("Ink", f"{result.ink.label or '-'} ({result.ink.confidence:.2f})")
    if result.match is not None and result.match.is_accepted:
        card = result.match.card
        table.add_row("Card", card.display)
        table.add_row("Set", f"{card.set_name} ({card.set_code}) #{card.cn}")
        table.add_row("Rarity", card.rarity)
        table.add_row("Method", result.match_method or "-")
    elif result.match is not None and result.match.candidates:
        for i, card in enumerate(result.match.candidates, 1):
            table.add_row(f"Candidate {i}", f"{card.display} [{card.set_code} #{card.cn}]")
        if result.match.suppressed:
            table.add_row("Suppressed", f"+{result.match.suppressed} more")
    if result.error:
        table.add_row("Error", f"[red]{result.error}[/red]")
    return table


def _save_debug_captures(controller: ScannerController) -> Optional[Path]:
    captures = controller.capture_debug_frame()
    if captures is None:
        return None
    out_dir = ensure_diagnostics_dir()
    stamp = int(asyncio.get_running_loop().time() * 1000)
    for key, image in captures.items():
        if image.size:
            cv2.imwrite(str(out_dir / f"debug-{stamp}-{key}.png"), image)
    return out_dir


async def _scan_loop(controller: ScannerController):
    if not await controller.open():
        console.print(f"[red]❌ {controller.error_message}[/red]")
        return

    console.print("\n[bold]Scanning Instructions:[/bold]")
    console.print("• Hold a card inside the guide frame")
    console.print("• Press [bold]1-6[/bold] to choose between candidates")
    console.print("• Press [bold]D[/bold] for a debug capture, [bold]E[/bold] to export diagnostics")
    console.print("• Press [bold]ESC[/bold] to exit")

    try:
        while controller.state != PipelineState.IDLE:
            frame = controller.camera.read()
            if frame is not None:
                view = frame
                crops = controller.crop_rects(frame)
                if crops is not None:
                    view = scanner_overlay.draw_regions(view, crops, controller.state)
                info = controller.debug_info
                view = scanner_overlay.draw_status_panel(view, {
                    "State": controller.state.value,
                    "Scans": str(controller.scan_count),
                    "OCR": (info.last_ocr_text if info else "") or "-",
                    "CN": info.parsed_cn if info else "-",
                    "Ink": info.detected_ink if info else "-",
                    "Result": (info.match_result if info else "") or "-",
                })
                if controller.state == PipelineState.DISAMBIGUATING:
                    view = scanner_overlay.draw_candidates(
                        view, controller.candidates, controller.suppressed_candidates
                    )
                elif controller.last_match is not None:
                    view = scanner_overlay.draw_match_banner(view, controller.last_match, controller.match_method)
                view = scanner_overlay.draw_instructions(view)
                cv2.imshow(WINDOW_TITLE, view)

            key = cv2.waitKey(1) & 0xFF
            if key == KEY_ESC:
                break
            elif key in (ord("d"), ord("D")):
                out_dir = _save_debug_captures(controller)
                if out_dir is not None:
                    console.print(f"[green]✓ Debug captures saved to {out_dir}[/green]")
            elif key in (ord("e"), ord("E")):
                path = controller.write_diagnostics()
                console.print(f"[green]✓ Diagnostics exported: {path}[/green]")
            elif ord("1") <= key <= ord("6") and controller.state == PipelineState.DISAMBIGUATING:
                index = key - ord("1")
                if index < len(controller.candidates):
                    controller.select_candidate(controller.candidates[index])

            # Yield so the frame timer and recognition calls can run
            await asyncio.sleep(0.03)
    finally:
        scans = controller.scan_count
        await controller.close()
        cv2.destroyAllWindows()
        console.print(f"\n[bold]Scanning Session Complete[/bold]\nCards scanned: {scans}")


@app.command()
def scan(
    catalog: Optional[str] = typer.Option(None, "--catalog", "-c", help="Catalog file (CSV or JSON)"),
    set_filter: str = typer.Option(ALL_SETS, "--set", "-s", help="Restrict matching to one set code"),
    camera_index: Optional[int] = typer.Option(None, "--camera", help="Camera device index"),
):
    """Scan cards continuously from the camera."""
    console.print(Panel.fit(
        "[bold blue]Lorcana Card Scanner[/bold blue]\n"
        "[dim]collector number → ink → catalog[/dim]",
        border_style="blue",
    ))

    cards = _load_catalog_or_exit(catalog)

    def on_match(card: CatalogEntry):
        console.print(f"[green]✓ {card.display}[/green] [dim]{card.set_name} #{card.cn} · {card.ink} · {card.rarity}[/dim]")
        notifier.card_matched(card)

    try:
        controller = ScannerController(
            camera=CameraCapture(camera_index=camera_index),
            on_card_matched=on_match,
            catalog=cards,
            set_filter=set_filter,
        )
        controller.set_viewport(settings.VIEWPORT_WIDTH, settings.VIEWPORT_HEIGHT)
        asyncio.run(_scan_loop(controller))
    except KeyboardInterrupt:
        console.print("\n[yellow]⚠ Scanning interrupted by user[/yellow]")
    except CardScannerError as e:
        console.print(f"\n[red]❌ Error during scanning: {e.message}[/red]")
        logger.error("Scanning error", error=str(e))
        raise typer.Exit(1)


@app.command()
def parse(text: str = typer.Argument(..., help="OCR text to parse, e.g. '130/204 EN 7'")):
    """Show how a piece of OCR text parses as a collector number."""
    parsed = parse_collector_number(text)
    if parsed is None:
        console.print(f"[red]❌ No collector number in {text!r}[/red]")
        raise typer.Exit(1)

    table = Table(title="Collector Number")
    table.add_column("Field", style="cyan")
    table.add_column("Value", style="white")
    table.add_row("cn", parsed.cn)
    table.add_row("total", parsed.total or "-")
    table.add_row("set number", parsed.set_number or "-")
    table.add_row("raw", parsed.raw)
    console.print(table)


async def _identify_once(controller: ScannerController) -> Optional[TickResult]:
    if not await controller.open():
        console.print(f"[red]❌ {controller.error_message}[/red]")
        return None
    try:
        return await controller.process_frame()
    finally:
        await controller.close()


@app.command()
def identify(
    image: str = typer.Argument(..., help="Photo of a card filling the guide frame"),
    catalog: Optional[str] = typer.Option(None, "--catalog", "-c", help="Catalog file (CSV or JSON)"),
    set_filter: str = typer.Option(ALL_SETS, "--set", "-s", help="Restrict matching to one set code"),
):
    """Run the recognition pipeline once over a still image."""
    cards = _load_catalog_or_exit(catalog)
    controller = ScannerController(camera=StillImageSource(path=image), catalog=cards, set_filter=set_filter)

    result = asyncio.run(_identify_once(controller))
    if result is None:
        raise typer.Exit(1)

    console.print(_tick_table(result, title=Path(image).name))
    if not result.ok:
        raise typer.Exit(1)


@app.command()
def ink(image: str = typer.Argument(..., help="Crop of an ink banner")):
    """Classify the ink colour of an image crop."""
    region = cv2.imread(image)
    if region is None:
        console.print(f"[red]❌ Could not read image: {image}[/red]")
        raise typer.Exit(1)

    votes, avg = ink_classifier.vote(region)
    detection = ink_classifier.classify(region)

    table = Table(title=f"Ink: {detection.label or 'unknown'} ({detection.confidence:.2f})")
    table.add_column("Ink", style="cyan")
    table.add_column("Votes", justify="right")
    for name, count in sorted(votes.items(), key=lambda item: -item[1]):
        table.add_row(name, str(count))
    table.caption = f"average RGB {avg}"
    console.print(table)


if __name__ == "__main__":
    app()
