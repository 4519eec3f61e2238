import logging
from dataclasses import dataclass, field
from typing import Optional, Sequence

from .models import Chunk

logger = logging.getLogger(__name__)

DEFAULT_LABELS = {
    "front": "Front",
    "back": "Back",
    "left_repeater": "Left",
    "right_repeater": "Right",
}

# top-left, top-right, bottom-left, bottom-right
MAX_TILES = 4


@dataclass(frozen=True)
class CompositionSpec:
    """How the secondary cameras are laid over the primary one."""
    resolution: str = "256x192"
    padding: int = 30
    labels: dict = field(default_factory=lambda: dict(DEFAULT_LABELS))
    font_size: int = 20
    duration_s: int = 60
    codec: str = "libx264"
    preset: str = "ultrafast"
    container: str = "mpegts"

    @property
    def tile_size(self) -> tuple[int, int]:
        w, h = self.resolution.lower().split("x")
        return int(w), int(h)

    def label_for(self, camera: str) -> str:
        return self.labels.get(camera, camera.replace("_", " ").title())


def _escape_drawtext(text: str) -> str:
    return text.replace("\\", "\\\\").replace(":", "\\:").replace("'", "\\'")


def _tile_positions(spec: CompositionSpec) -> list[tuple[str, str]]:
    w, h = spec.tile_size
    p = spec.padding
    return [
        (f"{p}", f"{p}"),
        (f"W-{w}-{p}", f"{p}"),
        (f"{p}", f"H-{h}-{p}"),
        (f"W-{w}-{p}", f"H-{h}-{p}"),
    ]


def build_composite_command(ffmpeg: str,
                            chunk: Chunk,
                            primary: str,
                            secondaries: Sequence[str],
                            spec: Optional[CompositionSpec] = None,
                            output: str = "-") -> list[str]:
    """
    Build the FFmpeg command that renders one chunk as a single stream.

    The primary camera fills the frame. Each secondary camera becomes a
    labelled tile in a corner, in order. A tile whose camera is the primary or
    has no segment in this chunk is fed from a black ``lavfi`` source instead.

    Args:
        ffmpeg: Path of the ffmpeg executable
        chunk: Chunk to render
        primary: Camera shown full frame; must be present in the chunk
        secondaries: Up to four cameras for the corner tiles
        spec: Layout and encoding parameters
        output: Output path or URL

    Returns:
        The argument list, ready for subprocess
    """
    spec = spec or CompositionSpec()
    primary_segment = chunk.get(primary)
    if primary_segment is None:
        raise ValueError(f"Chunk {chunk.timestamp} has no '{primary}' segment")

    tiles = list(secondaries)[:MAX_TILES]
    if len(secondaries) > MAX_TILES:
        logger.warning(f"Only {MAX_TILES} tiles fit, dropping {list(secondaries)[MAX_TILES:]}")

    cmd = [ffmpeg, "-y", "-nostdin", "-i", primary_segment.path]

    for camera in tiles:
        segment = chunk.get(camera)
        if segment is None or camera == primary:
            logger.debug(f"Adding black square for {camera}")
            cmd.extend(["-f", "lavfi", "-i", f"color=c=black:s={spec.resolution}"])
        else:
            logger.debug(f"Adding file stream for {camera}")
            cmd.extend(["-i", segment.path])

    filters = []
    last = "[0:v]"
    positions = _tile_positions(spec)
    for i, camera in enumerate(tiles):
        n = i + 1
        label = _escape_drawtext(spec.label_for(camera))
        filters.append(f"[{n}:v]scale={spec.resolution}[t{n}s]")
        filters.append(
            f"[t{n}s]drawtext=text='{label}':x=5:y=h-25:"
            f"fontsize={spec.font_size}:fontcolor=white[t{n}]")
        x, y = positions[i]
        out = "[output]" if n == len(tiles) else f"[o{n}]"
        filters.append(f"{last}[t{n}]overlay={x}:{y}:shortest=1{out}")
        last = out

    if tiles:
        cmd.extend(["-filter_complex", ";".join(filters), "-map", "[output]"])
    else:
        cmd.extend(["-map", "0:v"])

    cmd.extend([
        "-map", "0:a?",
        "-c:v", spec.codec,
        "-preset", spec.preset,
        "-t", str(spec.duration_s),
        "-f", spec.container,
        output,
    ])
    return cmd


def describe_command(cmd: list[str]) -> str:
    """One-line rendering of a command for logs."""
    return " ".join(f'"{part}"' if " " in part else part for part in cmd)
