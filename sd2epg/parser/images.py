"""
Series image selection for sd2epg

Picks one representative image per aspect ratio from the artwork returned
by the provider, using a fixed category priority.
"""

import json
import logging
from collections import OrderedDict
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional

# Highest priority first
CATEGORY_PRIORITY = (
    "banner",       # source-provided image, usually cast ensemble with text
    "banner-l1",    # same as banner
    "banner-l2",    # source-provided image with plain text
    "banner-lo",    # banner with logo only
    "logo",         # official logo for program, sports organization or station
    "banner-l3",    # stock photo image with plain text
    "iconic",       # representative series/season/episode image, no text
    "staple",       # generic image for programs without a unique banner
)

ACCEPTED_SIZE = "md"
ACCEPTED_TIERS = ("series", "sport", "sport event", "sport-event")


@dataclass
class ImageCandidate:
    uri: str
    aspect: str
    size: str
    category: str
    tier: Optional[str] = None
    width: Optional[int] = None
    height: Optional[int] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> Optional["ImageCandidate"]:
        if not isinstance(data, dict):
            return None
        return cls(
            uri=data.get("uri") or "",
            aspect=data.get("aspect") or "",
            size=data.get("size") or "",
            category=data.get("category") or "",
            tier=data.get("tier"),
            width=_to_int(data.get("width")),
            height=_to_int(data.get("height")),
        )

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "uri": self.uri,
            "aspect": self.aspect,
            "size": self.size,
            "category": self.category,
        }
        if self.tier:
            data["tier"] = self.tier
        if self.width:
            data["width"] = self.width
        if self.height:
            data["height"] = self.height
        return data


def _to_int(value: Any) -> Optional[int]:
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


class ImageSelector:
    """Deterministic choice of one image per aspect ratio"""

    def __init__(self, image_base_url: str):
        self.image_base_url = image_base_url

    def is_eligible(self, image: ImageCandidate) -> bool:
        if not (image.category and image.aspect and image.size and image.uri):
            return False
        if image.size.lower() != ACCEPTED_SIZE:
            return False
        return not image.tier or image.tier.lower() in ACCEPTED_TIERS

    def absolute_uri(self, uri: str) -> str:
        if uri.lower().startswith("http"):
            return uri
        return f"{self.image_base_url}image/{uri.lower()}"

    def select_representative(self, candidates: Iterable[Any]) -> "OrderedDict[str, ImageCandidate]":
        """
        Select the highest priority image for every aspect ratio

        Args:
            candidates: ImageCandidate objects or provider image records

        Returns:
            OrderedDict: aspect -> chosen image, in first-seen aspect order
        """
        groups: "OrderedDict[str, List[ImageCandidate]]" = OrderedDict()

        for candidate in candidates:
            image = candidate if isinstance(candidate, ImageCandidate) else ImageCandidate.from_dict(candidate)
            if image is None or not self.is_eligible(image):
                continue
            image.uri = self.absolute_uri(image.uri)
            groups.setdefault(image.aspect.lower(), []).append(image)

        selected: "OrderedDict[str, ImageCandidate]" = OrderedDict()
        for aspect, images in groups.items():
            chosen = self._pick_by_priority(images)
            if chosen is not None:
                selected[aspect] = chosen

        return selected

    @staticmethod
    def _pick_by_priority(images: List[ImageCandidate]) -> Optional[ImageCandidate]:
        first_by_category: Dict[str, ImageCandidate] = {}
        for image in images:
            first_by_category.setdefault(image.category.lower(), image)

        for category in CATEGORY_PRIORITY:
            if category in first_by_category:
                return first_by_category[category]
        return None

    def select_images(self, candidates: Iterable[Any]) -> List[ImageCandidate]:
        return list(self.select_representative(candidates).values())

    @staticmethod
    def select_guide_image(images: Iterable[ImageCandidate], poster_art: bool = False) -> Optional[ImageCandidate]:
        """Image used as guide image: 2x3 poster art or 4x3 banner"""
        aspect = "2x3" if poster_art else "4x3"
        for image in images:
            if image.aspect.lower() == aspect:
                return image
        return None

    @staticmethod
    def serialize(images: Iterable[ImageCandidate]) -> str:
        return json.dumps([image.to_dict() for image in images])

    @staticmethod
    def deserialize(text: str) -> Optional[List[ImageCandidate]]:
        """Parse a cached image list, None when the payload is malformed"""
        try:
            data = json.loads(text)
        except ValueError as e:
            logging.debug("Invalid cached image list: %s", str(e))
            return None

        if not isinstance(data, list):
            return None
        images = [ImageCandidate.from_dict(item) for item in data]
        return [image for image in images if image is not None]
