"""In-memory sound button collection, seeded with the default buttons."""
import logging
from typing import Iterable, List, Optional

from soundboard.models.track import ButtonKind, SoundButton, SourceKind, Track

logger = logging.getLogger(__name__)


def _local(name: str) -> Track:
    return Track(display_name=name, source_kind=SourceKind.LOCAL)


DEFAULT_BUTTONS = (
    SoundButton(
        id="1",
        name="Epic Combat",
        kind=ButtonKind.PLAYLIST,
        tracks=(_local("Battle Theme 1"), _local("Boss Fight"), _local("Victory Fanfare")),
        color="bg-red-500",
    ),
    SoundButton(
        id="2",
        name="Tavern Ambience",
        kind=ButtonKind.PLAYLIST,
        tracks=(_local("Medieval Tavern"), _local("Cheerful Crowd")),
        color="bg-amber-500",
    ),
    SoundButton(
        id="3",
        name="Thunder Sound",
        kind=ButtonKind.SINGLE,
        tracks=(_local("Thunder Sound"),),
        color="bg-blue-500",
    ),
)


class ButtonLibrary:
    """Buttons live for the lifetime of the process; nothing is written to disk."""

    def __init__(self, buttons: Optional[Iterable[SoundButton]] = None) -> None:
        self._buttons: List[SoundButton] = list(DEFAULT_BUTTONS if buttons is None else buttons)

    def list(self) -> List[SoundButton]:
        return list(self._buttons)

    def get(self, button_id: str) -> Optional[SoundButton]:
        """Return button by id or None."""
        for b in self._buttons:
            if b.id == button_id:
                return b
        return None

    def _next_id(self) -> str:
        numeric = [int(b.id) for b in self._buttons if b.id.isdigit()]
        return str(max(numeric, default=0) + 1)

    def add(
        self,
        name: str,
        tracks: Iterable[Track],
        kind: ButtonKind = ButtonKind.SINGLE,
        color: Optional[str] = None,
    ) -> SoundButton:
        """Append a new button with the next free numeric id."""
        button = SoundButton(
            id=self._next_id(),
            name=name,
            kind=kind,
            tracks=tuple(tracks),
            color=color,
        )
        self._buttons.append(button)
        logger.info("Added button %s (%s)", button.id, button.name)
        return button

    def update(
        self,
        button_id: str,
        *,
        name: Optional[str] = None,
        tracks: Optional[Iterable[Track]] = None,
        kind: Optional[ButtonKind] = None,
        color: Optional[str] = None,
    ) -> Optional[SoundButton]:
        """Replace fields of a button. Returns the updated button or None."""
        for i, b in enumerate(self._buttons):
            if b.id == button_id:
                updated = SoundButton(
                    id=b.id,
                    name=name if name is not None else b.name,
                    kind=kind if kind is not None else b.kind,
                    tracks=tuple(tracks) if tracks is not None else b.tracks,
                    color=color if color is not None else b.color,
                )
                self._buttons[i] = updated
                return updated
        return None

    def delete(self, button_id: str) -> bool:
        """Remove button by id. Returns True if found and removed."""
        for i, b in enumerate(self._buttons):
            if b.id == button_id:
                self._buttons.pop(i)
                return True
        return False
