"""
EditBuffer holding the in-progress transcript of one open document.

Mutations are synchronous and total: out-of-range indices are ignored instead
of raising, so the buffer always holds a valid segment list. Persistence is
driven elsewhere (see ``scribe_sync_app.core.sync``) and observed only through
the save state.
"""
import logging
import re
import typing as t

from PySide6.QtCore import QObject, Signal

from scribe_sync_app.core.models import SaveState, Segment

logger = logging.getLogger(__name__)

_WHITESPACE_RUN = re.compile(r"(\s+)")


class EditBuffer(QObject):
    """Authoritative client-side segment list for one transcript.

    Every accepted mutation replaces the segment list, bumps ``revision``,
    sets the save state to UNSAVED and emits ``dirty``.
    """
    dirty = Signal()
    segmentsChanged = Signal(object)    # list[Segment]
    saveStateChanged = Signal(object)   # SaveState

    def __init__(self, segments: t.Optional[t.Iterable[Segment]] = None, parent: t.Optional[QObject] = None):
        """Initialize the buffer.

        Args:
            segments: Already-persisted segments; the buffer starts SAVED
            parent: Optional Qt parent
        """
        super().__init__(parent)
        self._segments: list[Segment] = list(segments or [])
        self._revision = 0
        self._save_state = SaveState.SAVED
        self.last_error: t.Optional[Exception] = None

    # queries ---------------------------------------------------------
    @property
    def segments(self) -> list[Segment]:
        return list(self._segments)

    @property
    def revision(self) -> int:
        return self._revision

    @property
    def save_state(self) -> SaveState:
        return self._save_state

    def speakers(self) -> list[str]:
        """Distinct speaker labels in order of first appearance."""
        return list(dict.fromkeys(seg.speaker for seg in self._segments))

    def snapshot(self) -> tuple[int, list[Segment]]:
        """Return the current revision together with a copy of the segments."""
        return self._revision, list(self._segments)

    # mutations -------------------------------------------------------
    def rename_speaker(self, old: str, new: str) -> int:
        """Rename every segment spoken by ``old``.

        Args:
            old: Current speaker label
            new: Replacement label

        Returns:
            Number of segments changed (0 means nothing happened)
        """
        new = (new or "").strip()
        if not new or new == old:
            return 0

        changed = 0
        updated = []
        for seg in self._segments:
            if seg.speaker == old:
                updated.append(seg.model_copy(update={"speaker": new}))
                changed += 1
            else:
                updated.append(seg)

        if changed:
            logger.debug("rename_speaker: %r -> %r (%d segments)", old, new, changed)
            self._accept(updated)
        return changed

    def edit_word(self, segment_index: int, word_index: int, new_word: str) -> bool:
        """Replace one word of a segment's text.

        The text is split on whitespace runs, the separators are kept, and
        the ``word_index``-th word is swapped for ``new_word``.

        Args:
            segment_index: Index of the segment in the buffer
            word_index: Index of the word within the segment text
            new_word: Replacement text, may be empty

        Returns:
            True if the buffer changed
        """
        if not 0 <= segment_index < len(self._segments):
            logger.debug("edit_word: segment index %d out of range", segment_index)
            return False

        seg = self._segments[segment_index]
        tokens = _WHITESPACE_RUN.split(seg.text)
        word_positions = [i for i, tok in enumerate(tokens) if tok and not tok.isspace()]
        if not 0 <= word_index < len(word_positions):
            logger.debug("edit_word: word index %d out of range in segment %d", word_index, segment_index)
            return False

        position = word_positions[word_index]
        new_word = new_word or ""
        if tokens[position] == new_word:
            return False
        tokens[position] = new_word

        updated = list(self._segments)
        updated[segment_index] = seg.model_copy(update={"text": "".join(tokens)})
        self._accept(updated)
        return True

    def replace_segments(self, segments: t.Iterable[Segment]) -> None:
        """Replace the whole segment list (used to seed a new transcript)."""
        self._accept(list(segments))

    def _accept(self, segments: list[Segment]) -> None:
        self._segments = segments
        self._revision += 1
        self._set_save_state(SaveState.UNSAVED)
        self.segmentsChanged.emit(list(segments))
        self.dirty.emit()

    # save state hooks (driven by SyncScheduler) ----------------------
    def mark_saving(self) -> None:
        self._set_save_state(SaveState.SAVING)

    def mark_saved(self, revision: int) -> None:
        """Record a successful write of ``revision``.

        The buffer only becomes SAVED when that write included the latest
        mutation; otherwise it stays UNSAVED until a later write lands.
        """
        if revision == self._revision:
            self.last_error = None
            self._set_save_state(SaveState.SAVED)
        else:
            self._set_save_state(SaveState.UNSAVED)

    def mark_error(self, error: Exception) -> None:
        self.last_error = error
        self._set_save_state(SaveState.ERROR)

    def _set_save_state(self, state: SaveState) -> None:
        if state is self._save_state:
            return
        logger.debug("save state %s -> %s", self._save_state.value, state.value)
        self._save_state = state
        self.saveStateChanged.emit(state)
