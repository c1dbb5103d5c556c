import logging
import os
from dataclasses import dataclass
from typing import Iterable, List, Optional

from django.db.models import Q

from apps.utils.exceptions import NotFound
from .models import Photo, RecapPhoto

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PhotoSnapshot:
    """
    Purchase-time view of a photo. Copied onto order items.
    """
    photo_id: int
    price: int
    url: str
    start_no: str
    class_name: str
    event_id: int
    event_name: str
    owner_account_id: Optional[int]


@dataclass(frozen=True)
class CartLineResolution:
    photo_id: int
    variant: int
    snapshot: Optional[PhotoSnapshot]

    @property
    def resolved(self) -> bool:
        return self.snapshot is not None


@dataclass(frozen=True)
class VariantAsset:
    file: object
    url: str
    filename: str
    is_fallback: bool


def _snapshot(photo: Photo) -> PhotoSnapshot:
    return PhotoSnapshot(
        photo_id=photo.id,
        price=int(photo.price),
        url=photo.url,
        start_no=photo.start_no or "",
        class_name=photo.class_name or "",
        event_id=photo.event_id,
        event_name=photo.event.name if photo.event_id else "",
        owner_account_id=photo.owner_account_id,
    )


class CatalogService:
    """
    Read-only access to the catalog for the checkout flow.
    Safe to call inside an open transaction.
    """

    @staticmethod
    def owned_by(account, prefix: str = "") -> Q:
        """
        Filter for photos credited to `account`: the photo creator, or the
        event creator when the photo has none. `prefix` is the lookup path
        to a Photo, e.g. "items__photo__" from Order.
        """
        return (
            Q(**{f"{prefix}created_by": account})
            | Q(**{f"{prefix}created_by__isnull": True, f"{prefix}event__created_by": account})
        )

    @staticmethod
    def get_photo(photo_id: int) -> PhotoSnapshot:
        try:
            photo = Photo.objects.select_related("event").get(pk=photo_id)
        except Photo.DoesNotExist:
            raise NotFound(f"Photo {photo_id} not found.")
        return _snapshot(photo)

    @staticmethod
    def resolve_cart_lines(lines: Iterable[dict]) -> List[CartLineResolution]:
        """
        One result per cart line, in input order.
        Lines pointing at a missing photo come back unresolved.
        """
        lines = list(lines)
        photo_ids = [line["photo_id"] for line in lines]
        photos = Photo.objects.select_related("event").in_bulk(photo_ids)

        results = []
        for line in lines:
            photo = photos.get(line["photo_id"])
            if photo is None:
                logger.warning(f"Cart line references missing photo {line['photo_id']}")
            results.append(CartLineResolution(
                photo_id=line["photo_id"],
                variant=line.get("variant") or 1,
                snapshot=_snapshot(photo) if photo else None,
            ))
        return results

    @staticmethod
    def resolve_variant_asset(photo: Optional[Photo], variant: int, label: str = "") -> Optional[VariantAsset]:
        """
        File delivered for a purchased (photo, variant).

        Looks up the recap for that variant number; when there is none the
        base photo file is used and `is_fallback` is set.
        """
        if photo is None:
            return None

        label = label or str(photo.pk)
        recap = RecapPhoto.objects.filter(photo_id=photo.pk, variant_number=variant).first()

        if recap is not None and recap.image:
            ext = os.path.splitext(recap.image.name)[1] or ".jpg"
            return VariantAsset(
                file=recap.image,
                url=recap.url,
                filename=f"foto-{label}-v{variant}{ext}",
                is_fallback=False,
            )

        if not photo.image:
            return None

        ext = os.path.splitext(photo.image.name)[1] or ".jpg"
        return VariantAsset(
            file=photo.image,
            url=photo.url,
            filename=f"foto-{label}{ext}",
            is_fallback=True,
        )
