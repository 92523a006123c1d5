# services/tradebook/client/grid.py
"""Grid synchronization controller for the trade journal view.

Owns the editable grid's interaction contract: selection, inline cell edits
with optimistic display and rollback, the multi-tab form for new and existing
trades, deletion, the image carousel, and post-trade review.

Every user action handles its own failure: store errors are reported through
the notifier and never leave the grid showing an unconfirmed value.
"""

from enum import Enum
from typing import Any, Callable, Dict, Iterable, List, Optional

from shared.logutil import LogUtil
from services.tradebook.intel.metrics import DisplayRow
from services.tradebook.intel.models import Trade
from services.tradebook.intel.projection import EDITABLE_COLUMNS, RowProjection, parse_cell

from .draft import DraftValidationError, EditDraft
from .store_client import ImageUploadError, StoreError


class GridState(Enum):
    NO_SELECTION = 'no_selection'
    ROW_SELECTED = 'row_selected'
    EDITING_CELL = 'editing_cell'
    FORM_EDITING_EXISTING = 'form_editing_existing'
    FORM_CREATING_NEW = 'form_creating_new'


FORM_STATES = (GridState.FORM_EDITING_EXISTING, GridState.FORM_CREATING_NEW)


class GridStateError(RuntimeError):
    """The requested action is not available in the current state."""


class GridController:
    """
    Headless controller driven by UI callbacks.

    ``notifier`` shows a message to the user, ``confirm`` asks a yes/no
    question (deletion is refused unless it returns True).
    """

    def __init__(
        self,
        store,
        notifier: Optional[Callable[[str], Any]] = None,
        confirm: Optional[Callable[[str], bool]] = None,
        image_host=None,
        id_factory: Callable[[], str] = Trade.new_id,
        logger=None,
    ):
        self.store = store
        self.notify = notifier or (lambda message: None)
        self.confirm = confirm or (lambda message: False)
        self.image_host = image_host
        self.id_factory = id_factory
        self.logger = logger or LogUtil("tradebook-grid")

        self.trades: List[Trade] = []
        self.projection = RowProjection()
        self.state = GridState.NO_SELECTION
        self.selected: Optional[Trade] = None
        self.draft: Optional[EditDraft] = None
        self.image_index = 0
        self.busy = False
        self.last_invalid_field: Optional[str] = None

    # ---------------------------------------------------------------
    # Collection
    # ---------------------------------------------------------------

    @property
    def rows(self) -> List[DisplayRow]:
        return self.projection.visible()

    def _reproject(self):
        self.projection.refresh(self.trades)

    def _find(self, trade_id: str) -> Optional[Trade]:
        for trade in self.trades:
            if trade.id == trade_id:
                return trade
        return None

    def _patch_local(self, trade_id: str, updates: Dict[str, Any]):
        for index, trade in enumerate(self.trades):
            if trade.id == trade_id:
                self.trades[index] = trade.with_updates(updates)
                if self.selected is not None and self.selected.id == trade_id:
                    self.selected = self.trades[index]
                break
        self._reproject()
        self._clamp_image_index()

    def _resting_state(self) -> GridState:
        return GridState.ROW_SELECTED if self.selected is not None else GridState.NO_SELECTION

    async def load(self) -> bool:
        """Reload the whole collection. On failure the previous rows stay."""
        try:
            trades = await self.store.list()
        except StoreError as e:
            self.logger.warn(f"trade load failed: {e}")
            self.notify(f"Failed to load trades: {e}")
            return False

        self.trades = trades
        self._reproject()

        if self.selected is not None:
            self.selected = self._find(self.selected.id)
            self._clamp_image_index()
        if self.state not in FORM_STATES:
            self.state = self._resting_state()
        return True

    # ---------------------------------------------------------------
    # Selection
    # ---------------------------------------------------------------

    def _require_grid(self):
        if self.state in FORM_STATES:
            raise GridStateError('the trade form is open')

    def select_row(self, trade_id: str) -> Trade:
        self._require_grid()
        trade = self._find(trade_id)
        if trade is None:
            raise KeyError(trade_id)
        if self.selected is None or self.selected.id != trade_id:
            self.image_index = 0
        self.selected = trade
        self.state = GridState.ROW_SELECTED
        return trade

    def clear_selection(self):
        self._require_grid()
        self.selected = None
        self.image_index = 0
        self.state = GridState.NO_SELECTION

    def set_date_filter(self, day: Optional[str]):
        self.projection.set_date_filter(day)

    def dates(self) -> List[str]:
        return self.projection.dates()

    # ---------------------------------------------------------------
    # Inline cell edits
    # ---------------------------------------------------------------

    async def edit_cell(self, trade_id: str, column: str, new_value: Any) -> bool:
        """
        Commit an inline edit.

        The cell shows the new value before the store call. On success the
        local record is patched in place; on failure the cell is restored to
        its pre-edit value and the user is told.
        """
        self._require_grid()
        field = EDITABLE_COLUMNS.get(column)
        if field is None:
            raise KeyError(f"column '{column}' is not editable")

        old_value = self.projection.get_cell(trade_id, column)
        value = parse_cell(column, new_value, old_value)
        if value == old_value:
            return True

        self.state = GridState.EDITING_CELL
        self.projection.set_cell(trade_id, column, value)
        try:
            await self.store.update(trade_id, {field: value})
        except StoreError as e:
            self.projection.set_cell(trade_id, column, old_value)
            self.state = self._resting_state()
            self.logger.warn(f"cell edit {trade_id}.{field} rolled back: {e}")
            self.notify(f"Failed to update trade: {e}")
            return False

        self._patch_local(trade_id, {field: value})
        self.state = self._resting_state()
        return True

    # ---------------------------------------------------------------
    # Form
    # ---------------------------------------------------------------

    def open_edit_form(self, trade_id: Optional[str] = None) -> EditDraft:
        """Row double-click: edit the selected (or given) trade in the form."""
        if trade_id is not None:
            self.select_row(trade_id)
        self._require_grid()
        if self.selected is None:
            raise GridStateError('no trade selected')
        self.draft = EditDraft.from_trade(self.selected)
        self.state = GridState.FORM_EDITING_EXISTING
        return self.draft

    def open_new_form(self, today=None) -> EditDraft:
        self._require_grid()
        self.draft = EditDraft.new(today)
        self.state = GridState.FORM_CREATING_NEW
        return self.draft

    def cancel_form(self):
        if self.state not in FORM_STATES:
            raise GridStateError('the trade form is not open')
        self.draft = None
        self.last_invalid_field = None
        self.state = self._resting_state()

    async def save_form(self) -> Optional[Trade]:
        """
        Validate and persist the draft, then reload the whole collection.

        Returns the saved trade as reloaded, or None when nothing was saved
        (validation failure, store failure, or a save already in flight).
        """
        if self.state not in FORM_STATES:
            raise GridStateError('the trade form is not open')
        if self.busy:
            self.notify('A save is already in progress')
            return None

        try:
            self.draft.validate()
        except DraftValidationError as e:
            self.last_invalid_field = e.field
            self.notify(str(e))
            return None
        self.last_invalid_field = None

        self.busy = True
        try:
            if self.state == GridState.FORM_CREATING_NEW:
                trade = self.draft.to_trade(self.id_factory())
                await self.store.create(trade)
                saved_id = trade.id
            else:
                saved_id = self.draft.editing_id
                await self.store.update(saved_id, self.draft.to_fields())
        except StoreError as e:
            self.logger.warn(f"trade save failed: {e}")
            self.notify(f"Failed to save trade: {e}")
            return None
        finally:
            self.busy = False

        self.logger.info(f"saved trade {saved_id}", emoji="💾")
        self.draft = None
        self.state = self._resting_state()
        await self.load()

        saved = self._find(saved_id)
        if saved is not None:
            if self.selected is None or self.selected.id != saved_id:
                self.image_index = 0
            self.selected = saved
        self._clamp_image_index()
        self.state = self._resting_state()
        return saved

    # ---------------------------------------------------------------
    # Deletion and review
    # ---------------------------------------------------------------

    async def delete_selected(self) -> bool:
        self._require_grid()
        if self.selected is None:
            return False

        trade = self.selected
        prompt = (f"Are you sure you want to delete the trade for {trade.pair or 'this pair'}?"
                  "\n\nThis action cannot be undone.")
        if not self.confirm(prompt):
            return False

        try:
            await self.store.remove(trade.id)
        except StoreError as e:
            self.logger.warn(f"delete {trade.id} failed: {e}")
            self.notify('Failed to delete trade. Please try again.')
            return False

        self.trades = [t for t in self.trades if t.id != trade.id]
        self._reproject()
        self.selected = None
        self.image_index = 0
        self.state = GridState.NO_SELECTION
        return True

    async def save_review(self, review: Dict[str, Any]) -> bool:
        """Attach a post-trade review to the selected trade and close it."""
        if self.selected is None:
            raise GridStateError('no trade selected')

        updates = {'review': review, 'status': 'closed'}
        try:
            await self.store.update(self.selected.id, updates)
        except StoreError as e:
            self.notify(f"Failed to save review: {e}")
            return False

        self._patch_local(self.selected.id, updates)
        return True

    # ---------------------------------------------------------------
    # Image carousel
    # ---------------------------------------------------------------

    @property
    def images(self) -> List[str]:
        return list(self.selected.images) if self.selected is not None else []

    @property
    def current_image(self) -> Optional[str]:
        """The displayed image URL, or None for the "no images" state."""
        images = self.images
        if not images:
            return None
        return images[self.image_index]

    def _clamp_image_index(self):
        self.image_index = min(self.image_index, max(len(self.images) - 1, 0))

    def next_image(self) -> int:
        self.image_index = min(max(len(self.images) - 1, 0), self.image_index + 1)
        return self.image_index

    def previous_image(self) -> int:
        self.image_index = max(0, self.image_index - 1)
        return self.image_index

    async def _write_images(self, images: List[str]) -> bool:
        try:
            await self.store.update(self.selected.id, {'images': images})
        except StoreError as e:
            self.notify(f"Failed to update images: {e}")
            return False
        self._patch_local(self.selected.id, {'images': images})
        return True

    async def remove_image(self, index: int) -> bool:
        if self.selected is None:
            raise GridStateError('no trade selected')
        images = self.images
        if not 0 <= index < len(images):
            raise IndexError(f"no image at position {index}")

        return await self._write_images(images[:index] + images[index + 1:])

    async def _upload(self, blobs: Iterable) -> Optional[List[str]]:
        if self.image_host is None:
            raise GridStateError('no image host configured')
        try:
            return await self.image_host.upload(blobs)
        except ImageUploadError as e:
            self.logger.warn(f"image upload failed: {e}")
            self.notify(f"Failed to upload images: {e}")
            return None

    async def add_images(self, blobs: Iterable) -> List[str]:
        """Upload local images and append their URLs to the selected trade."""
        if self.selected is None:
            raise GridStateError('no trade selected')
        urls = await self._upload(blobs)
        if not urls:
            return []
        if not await self._write_images(self.images + urls):
            return []
        return urls

    async def replace_current_image(self, blob) -> Optional[str]:
        """Swap the displayed image for an edited version."""
        if self.current_image is None:
            raise GridStateError('no image to replace')
        urls = await self._upload([blob])
        if not urls:
            return None
        images = self.images
        images[self.image_index] = urls[0]
        if not await self._write_images(images):
            return None
        return urls[0]
