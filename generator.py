"""Candidate URL generation from the known CDN naming templates."""

from __future__ import annotations

import re
from typing import Dict, List, Sequence, Tuple, TypedDict

from constants import CDN_BASE_URL, INDICES, REGIONS
from models import Candidate, CategoryConfig

__all__ = [
    "InvalidNameError",
    "UnknownCategoryError",
    "CATEGORY_TEMPLATES",
    "STORE_ASSETS",
    "IND_STORE_ASSETS",
    "PRIORITY_SET_SIZE",
    "STORE_SET_SIZE",
    "normalize_name",
    "list_categories",
    "generate_candidates",
]

SubAsset = Tuple[str, str]


class CategoryTemplate(TypedDict):
    """How one category code expands into candidate URLs."""

    label: str
    sub_assets: Tuple[SubAsset, ...]
    store_only: bool


class InvalidNameError(ValueError):
    """Raised when the asset name is empty once whitespace is removed."""


class UnknownCategoryError(ValueError):
    """Raised for a category code outside the known set."""


_WHITESPACE = re.compile(r"\s+")

SPLASH_ASSET: SubAsset = ("Splash", "jpg")
STORE_ASSETS: Tuple[SubAsset, ...] = (
    ("Icon", "png"),
    ("Banner", "jpg"),
    ("Tab", "jpg"),
    ("BG", "jpg"),
    ("Title", "png"),
)
IND_STORE_ASSETS: Tuple[SubAsset, ...] = (
    ("Icon", "png"),
    ("Banner", "jpg"),
    ("Tab", "jpg"),
    ("BG", "jpg"),
)

STORE_SET_SIZE = len(STORE_ASSETS) + len(IND_STORE_ASSETS)
PRIORITY_SET_SIZE = 1 + STORE_SET_SIZE

# Insertion order is the order of the category buttons in the UI.
CATEGORY_TEMPLATES: Dict[str, CategoryTemplate] = {
    "TW": {
        "label": "Token Wheel (TW)",
        "sub_assets": (("Tab", "jpg"), ("Title", "png"), ("LobbyBG", "jpg"), ("BG", "png")),
        "store_only": False,
    },
    "FW": {
        "label": "Faded Wheel (FW)",
        "sub_assets": (("Tab", "jpg"), ("BG", "jpg"), ("Title", "png")),
        "store_only": False,
    },
    "DW": {
        "label": "Step Up (DW)",
        "sub_assets": (("Tab", "jpg"), ("Title", "png"), ("BG", "jpg")),
        "store_only": False,
    },
    "O": {
        "label": "Other Royale (O)",
        "sub_assets": (),
        "store_only": True,
    },
}


def normalize_name(name: str) -> str:
    """Remove every whitespace character from the asset name."""
    return _WHITESPACE.sub("", name)


def list_categories() -> List[CategoryConfig]:
    """Return the selectable categories in display order."""
    return [{"code": code, "label": tpl["label"]} for code, tpl in CATEGORY_TEMPLATES.items()]


def _candidate(url: str, region: str, category: str, priority: bool) -> Candidate:
    return {"url": url, "region": region, "category": category, "priority": priority}


def _splash_candidates(name: str, base_url: str) -> List[Candidate]:
    label, ext = SPLASH_ASSET
    url = f"{base_url}/web_event/splash/{name}_{label}_en.{ext}"
    return [_candidate(url, "Splash", label, True)]


def _store_candidates(name: str, base_url: str) -> List[Candidate]:
    candidates = [
        _candidate(f"{base_url}/web_event/store/{name}_{label}.{ext}", "Store", label, True)
        for label, ext in STORE_ASSETS
    ]
    candidates.extend(
        _candidate(f"{base_url}/Local/IND/store/{name}_{label}IND.{ext}", "IND Store", label, True)
        for label, ext in IND_STORE_ASSETS
    )
    return candidates


def _wheel_candidates(
    name: str, code: str, sub_assets: Sequence[SubAsset], base_url: str
) -> List[Candidate]:
    candidates: List[Candidate] = []
    for region in REGIONS:
        for index in INDICES:
            prefix = f"{base_url}/Local/{region}/config/{code}{index}_{name}"
            for label, ext in sub_assets:
                url = f"{prefix}{label}{region}_en.{ext}"
                candidates.append(_candidate(url, region, label, False))
    return candidates


def generate_candidates(name: str, category: str, *, base_url: str = CDN_BASE_URL) -> List[Candidate]:
    """Build the ordered candidate list for an asset name and category code.

    Priority candidates (splash banner, global and IND store art) come
    first, followed by the region x index cross-product for wheel-style
    codes. Store-only codes skip both the splash banner and the
    cross-product. The output is never deduplicated.
    """
    clean = normalize_name(name)
    if not clean:
        raise InvalidNameError("Asset name must not be empty")

    template = CATEGORY_TEMPLATES.get(category)
    if template is None:
        raise UnknownCategoryError(f"Unknown category code: {category!r}")

    if template["store_only"]:
        return _store_candidates(clean, base_url)

    candidates = _splash_candidates(clean, base_url)
    candidates.extend(_store_candidates(clean, base_url))
    candidates.extend(_wheel_candidates(clean, category, template["sub_assets"], base_url))
    return candidates
