from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Protocol

from battleplan.domain.entities.owner import OwnerKind, OwnerWithImages
from battleplan.domain.services.carousel import CarouselController, DisplayState, IntervalScheduler
from battleplan.domain.services.fallback_resolver import ResolvedCandidates, resolve_owner
from battleplan.domain.services.refresh_bus import RefreshBus
from battleplan.domain.services.visibility import DEFAULT_THRESHOLD, VisibilityTrigger

logger = logging.getLogger(__name__)


class OwnerImageSource(Protocol):
    """What a display needs from the persistence layer.

    ``OwnerRepository`` satisfies it for both battles and collections.
    """

    kind: OwnerKind

    def get_with_images(self, owner_id: str) -> OwnerWithImages | None: ...

    def list_child_images(self, owner_id: str) -> list[str]: ...


@dataclass
class DisplaySnapshot:
    image_src: str
    is_carousel: bool
    loading: bool
    all_images: list[str]
    current_index: int
    total_images: int
    is_fallback: bool
    state: DisplayState
    on_mouse_enter: Callable[[], None] = field(repr=False, compare=False)
    on_mouse_leave: Callable[[], None] = field(repr=False, compare=False)
    fetch_images: Callable[[], Awaitable[None]] = field(repr=False, compare=False)


class OwnerImageDisplay:
    """Image state of one battle or collection card.

    Lifecycle: the card reports visibility; the first time it is visible
    enough the owner's images are fetched once. The fetched data goes
    through the fallback cascade and, when there are several images, the
    carousel rotates through them until the pointer rests on the card.
    Changing the refresh key, or a refresh published for this owner, drops
    everything and re-arms the lazy fetch. ``unmount`` stops the timer and
    makes late fetch results a no-op.
    """

    def __init__(
        self,
        source: OwnerImageSource,
        owner_id: str,
        *,
        scheduler: IntervalScheduler,
        game_image: str | None = None,
        game_icon: str | None = None,
        force_carousel: bool | None = None,
        refresh_key: Any = None,
        bus: RefreshBus | None = None,
        interval_ms: int | None = None,
        visibility_threshold: float = DEFAULT_THRESHOLD,
    ) -> None:
        self.source = source
        self.kind = source.kind
        self.owner_id = str(owner_id)
        self.game_image = game_image
        self.game_icon = game_icon
        self.force_carousel = force_carousel
        self._refresh_key = refresh_key
        self._carousel = CarouselController(scheduler, interval_ms)
        self._trigger = VisibilityTrigger(self.fetch_images, visibility_threshold)
        self._owner: OwnerWithImages | None = None
        self._child_images: list[str] = []
        self._loading = False
        self._has_loaded = False
        self._generation = 0
        self._mounted = True
        self._unsubscribe = bus.subscribe(self.kind.name, self.owner_id, self.invalidate) if bus else None
        self._carousel.set_total(len(self._resolve().urls))

    @property
    def state(self) -> DisplayState:
        if not self._has_loaded:
            return DisplayState.LOADING if self._loading else DisplayState.IDLE
        return DisplayState.READY_CAROUSEL if self._resolve().is_carousel else DisplayState.READY_STATIC

    @property
    def mounted(self) -> bool:
        return self._mounted

    @property
    def carousel(self) -> CarouselController:
        return self._carousel

    async def fetch_images(self) -> None:
        """Load the owner's images once.

        A second call while a fetch is in flight, or after one completed,
        does nothing. Failures are logged and treated as "no images".
        """
        if self._has_loaded or self._loading or not self._mounted:
            return
        self._loading = True
        generation = self._generation

        owner: OwnerWithImages | None = None
        child_images: list[str] = []
        try:
            try:
                owner = await asyncio.to_thread(self.source.get_with_images, self.owner_id)
            except Exception:
                logger.exception("Failed to fetch images for %s %s", self.kind.label, self.owner_id)
            if self.kind.has_children and self._is_current(generation):
                try:
                    child_images = await asyncio.to_thread(self.source.list_child_images, self.owner_id)
                except Exception:
                    logger.exception("Failed to fetch model images for %s %s", self.kind.label, self.owner_id)

            if not self._is_current(generation):
                logger.debug("Dropping stale image fetch for %s %s", self.kind.label, self.owner_id)
                return
            self._owner = owner
            self._child_images = child_images
            self._has_loaded = True
            self._carousel.set_total(len(self._resolve().urls))
        finally:
            # also reached on cancellation
            if generation == self._generation:
                self._loading = False

    async def on_visibility_change(self, ratio: float) -> None:
        pending = self._trigger.notify(ratio)
        if pending is not None:
            await pending

    def on_mouse_enter(self) -> None:
        self._carousel.pause()

    def on_mouse_leave(self) -> None:
        self._carousel.resume()

    def set_refresh_key(self, refresh_key: Any) -> None:
        if refresh_key != self._refresh_key:
            self._refresh_key = refresh_key
            self.invalidate()

    def invalidate(self) -> None:
        """Forget fetched data and go back to ``idle``."""
        self._generation += 1
        self._owner = None
        self._child_images = []
        self._loading = False
        self._has_loaded = False
        self._carousel.reset()
        if self._mounted:
            self._trigger.rearm()
            self._carousel.set_total(len(self._resolve().urls))

    def unmount(self) -> None:
        self._mounted = False
        self._generation += 1
        self._loading = False
        self._carousel.dispose()
        self._trigger.disconnect()
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None

    def snapshot(self) -> DisplaySnapshot:
        resolved = self._resolve()
        total = len(resolved.urls)
        index = self._carousel.current_index % total if resolved.is_carousel else 0
        return DisplaySnapshot(
            image_src=resolved.urls[index],
            is_carousel=resolved.is_carousel,
            loading=self._loading,
            all_images=list(resolved.urls),
            current_index=index,
            total_images=total,
            is_fallback=resolved.is_fallback,
            state=self.state,
            on_mouse_enter=self.on_mouse_enter,
            on_mouse_leave=self.on_mouse_leave,
            fetch_images=self.fetch_images,
        )

    def _is_current(self, generation: int) -> bool:
        return self._mounted and generation == self._generation

    def _resolve(self) -> ResolvedCandidates:
        return resolve_owner(
            self._owner,
            child_images=self._child_images,
            force_carousel=self.force_carousel,
            game_image=self.game_image,
            game_icon=self.game_icon,
        )
