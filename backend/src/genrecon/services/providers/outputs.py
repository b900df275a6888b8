"""Output extraction from completed provider payloads.

Providers nest result URLs differently per media type and per API generation.
Each family has an ordered list of candidate paths; the first non-empty string
wins. Order is most specific first and must stay stable.
"""

import json
from dataclasses import dataclass, field
from typing import Any

from genrecon.models.generation_job import MediaClass, ProviderFamily

# A path is a sequence of dict keys (str) and list indexes (int)
Path = tuple[str | int, ...]

KIE_RESULT_JSON_PATHS: tuple[Path, ...] = (
    ("resultUrls", 0),
    ("resultUrl",),
    ("imageUrl",),
    ("videoUrl",),
    ("audioUrl",),
)

KIE_OUTPUT_PATHS: tuple[Path, ...] = (
    ("response", "resultImageUrl"),
    ("response", "resultUrl"),
    ("response", "imageUrl"),
    ("response", "image_url"),
    ("response", "audioUrl"),
    ("response", "audio_url"),
    ("response", "videoUrl"),
    ("response", "video_url"),
    ("response", "resultUrls", 0),
    ("output_url",),
    ("image_url",),
    ("audio_url",),
    ("video_url",),
    ("url",),
    ("resultImageUrl",),
    ("resultUrl",),
    ("resultUrls", 0),
)

SUNO_AUDIO_PATHS: tuple[Path, ...] = (("audioUrl",), ("sourceAudioUrl",))

FAL_OUTPUT_PATHS: tuple[Path, ...] = (
    ("video", "url"),
    ("output", "video", "url"),
    ("result", "video", "url"),
    ("data", "video", "url"),
    ("video_url",),
    ("output_url",),
    ("url",),
    ("video",),
    ("images", 0, "url"),
    ("image", "url"),
    ("audio_file", "url"),
    ("audio", 0, "url"),
    ("audio", "url"),
    ("audio_url",),
)

FAL_THUMBNAIL_PATHS: tuple[Path, ...] = (
    ("thumbnail", "url"),
    ("video", "thumbnail_url"),
    ("output", "thumbnail_url"),
)


@dataclass(frozen=True)
class ResultItem:
    """One additional result of a multi-result task."""

    url: str
    title: str | None = None
    thumbnail_url: str | None = None
    # 1-based position in the provider's result list
    variation_number: int = 1


@dataclass(frozen=True)
class ExtractedOutputs:
    primary_url: str | None = None
    thumbnail_url: str | None = None
    title: str | None = None
    additional_results: list[ResultItem] = field(default_factory=list)


def dig(payload: Any, path: Path) -> Any:
    """Follow a path through nested dicts and lists; None when any step is missing."""
    current = payload
    for step in path:
        if isinstance(step, int):
            if not isinstance(current, list) or len(current) <= step:
                return None
        elif not isinstance(current, dict):
            return None
        current = current[step] if isinstance(step, int) else current.get(step)
    return current


def first_url(payload: Any, paths: tuple[Path, ...]) -> str | None:
    """Return the first non-empty string found along the candidate paths."""
    for path in paths:
        value = dig(payload, path)
        if isinstance(value, str) and value:
            return value
    return None


def _parse_result_json(payload: dict[str, Any]) -> dict[str, Any] | None:
    raw = payload.get("resultJson")
    if not isinstance(raw, str):
        return None
    try:
        parsed = json.loads(raw)
    except ValueError:
        return None
    return parsed if isinstance(parsed, dict) else None


def _extract_kie(payload: dict[str, Any], media_class: MediaClass) -> ExtractedOutputs:
    thumbnail_for_image = media_class == MediaClass.IMAGE

    # Marketplace jobs encode the result as a JSON document inside a string
    parsed = _parse_result_json(payload)
    if parsed is not None:
        url = first_url(parsed, KIE_RESULT_JSON_PATHS)
        if url:
            return ExtractedOutputs(primary_url=url, thumbnail_url=url if thumbnail_for_image else None)

    songs = dig(payload, ("response", "sunoData"))
    if isinstance(songs, list) and songs and isinstance(songs[0], dict):
        first_song_url = first_url(songs[0], SUNO_AUDIO_PATHS)
        if first_song_url:
            additional = []
            if media_class == MediaClass.MUSIC:
                for index, song in enumerate(songs[1:], start=2):
                    song_url = first_url(song, SUNO_AUDIO_PATHS) if isinstance(song, dict) else None
                    if not song_url:
                        continue
                    additional.append(
                        ResultItem(
                            url=song_url,
                            title=song.get("title") or None,
                            thumbnail_url=song.get("imageUrl") or None,
                            variation_number=index,
                        )
                    )
            return ExtractedOutputs(
                primary_url=first_song_url,
                thumbnail_url=songs[0].get("imageUrl") or None,
                title=songs[0].get("title") or None,
                additional_results=additional,
            )

    url = first_url(payload, KIE_OUTPUT_PATHS)
    return ExtractedOutputs(
        primary_url=url,
        thumbnail_url=url if thumbnail_for_image else None,
    )


def _extract_fal(payload: dict[str, Any], media_class: MediaClass) -> ExtractedOutputs:
    url = first_url(payload, FAL_OUTPUT_PATHS)
    if url is None:
        return ExtractedOutputs()

    thumbnail = first_url(payload, FAL_THUMBNAIL_PATHS)
    if thumbnail is None and media_class == MediaClass.IMAGE:
        thumbnail = url
    return ExtractedOutputs(primary_url=url, thumbnail_url=thumbnail)


def extract_outputs(
    raw_payload: dict[str, Any] | None,
    media_class: MediaClass,
    family: ProviderFamily,
) -> ExtractedOutputs:
    """Locate the published result URLs in a completed provider payload.

    A payload without any known result field yields primary_url=None: the
    provider reported completion before publishing output.

    Args:
        raw_payload: Payload carried by Completed
        media_class: Job media class (music enables multi-result fan-out)
        family: Provider family that produced the payload

    Returns:
        ExtractedOutputs with primary URL, thumbnail, title and extra results
    """
    if not raw_payload:
        return ExtractedOutputs()
    if family == ProviderFamily.KIE:
        return _extract_kie(raw_payload, media_class)
    return _extract_fal(raw_payload, media_class)
