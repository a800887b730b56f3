# app/domain/images.py
from __future__ import annotations

import re
from dataclasses import dataclass, replace
from typing import Any, Iterable, Sequence
from urllib.parse import urlsplit, urlunsplit

from .listing import RawImage

CDN_HOST_SUFFIX = "muscache.com"
LARGE_POLICY = "aki_policy=large"
_POLICY_RE = re.compile(r"aki_policy=[^&]*")

# Shown when upstream has nothing for us (not found / rate limited) so the UI never breaks.
STOCK_IMAGE_URL = (
    "https://a0.muscache.com/im/pictures/hosting/"
    "Hosting-U3RheVN1cHBseUxpc3Rpbmc6MTM3MTA0ODcyMzEzMzYyMjM5NA==/original/"
    "e68a4732-3aa3-4d57-8f77-aba7d0e70d90.jpeg"
)


@dataclass(frozen=True)
class NormalizedImage:
    url: str
    thumbnail_url: str
    position: int
    caption: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "url": self.url,
            "thumbnail_url": self.thumbnail_url,
            "caption": self.caption,
            "position": self.position,
        }

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> "NormalizedImage":
        return cls(
            url=d["url"],
            thumbnail_url=d.get("thumbnail_url") or d["url"],
            position=int(d.get("position") or 0),
            caption=d.get("caption"),
        )


def _is_cdn(url: str) -> bool:
    host = urlsplit(url).hostname or ""
    return host == CDN_HOST_SUFFIX or host.endswith("." + CDN_HOST_SUFFIX)


def optimize_image_url(url: str) -> str:
    """
    muscache URLs encode a resize policy: /im/ serves a scaled copy and
    aki_policy picks the size. Point at the direct path and ask for "large".
    Everything else passes through untouched.
    """
    if not url or not _is_cdn(url):
        return url

    parts = urlsplit(url)
    path = parts.path
    if path.startswith("/im/"):
        path = path[len("/im"):]
    else:
        path = path.replace("/im/", "/", 1)

    query = parts.query
    if _POLICY_RE.search(query):
        query = _POLICY_RE.sub(LARGE_POLICY, query)
    elif query:
        query = f"{query}&{LARGE_POLICY}"
    else:
        query = LARGE_POLICY

    return urlunsplit((parts.scheme, parts.netloc, path, query, parts.fragment))


def normalize_images(raw_images: Iterable[RawImage]) -> list[NormalizedImage]:
    """Pure: same input, same output. Keeps upstream's explicit position when given."""
    out: list[NormalizedImage] = []
    for index, img in enumerate(raw_images):
        url = optimize_image_url(img.url)
        thumb = img.thumbnail_url or url
        out.append(
            NormalizedImage(
                url=url,
                thumbnail_url=thumb,
                position=img.position if img.position is not None else index,
                caption=img.caption,
            )
        )
    return out


def split_for_storage(images: Sequence[NormalizedImage]) -> tuple[str, list[str]]:
    """
    Order by position and drop empty URLs. First becomes image_url, the rest
    additional_images, so stored positions are contiguous from 0.
    """
    ordered = sorted((i for i in images if i.url), key=lambda i: i.position)
    if not ordered:
        return "", []
    return ordered[0].url, [i.url for i in ordered[1:]]


def images_from_property(image_url: str | None, additional_images: Sequence[str] | None) -> list[NormalizedImage]:
    if not image_url:
        return []
    urls = [image_url, *[u for u in (additional_images or []) if u]]
    return [NormalizedImage(url=u, thumbnail_url=u, position=idx) for idx, u in enumerate(urls)]


def pick_position(images: Sequence[NormalizedImage], position: int) -> NormalizedImage | None:
    """Exact position if we have it, else wrap around so every slot gets a picture."""
    if not images:
        return None
    for img in images:
        if img.position == position:
            return img
    return replace(images[position % len(images)], position=position)


def fallback_images(position: int | None = None) -> list[NormalizedImage]:
    pos = position if position is not None else 0
    return [NormalizedImage(url=STOCK_IMAGE_URL, thumbnail_url=STOCK_IMAGE_URL, position=pos)]
