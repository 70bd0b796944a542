"""
State Store

Loads, repairs and persists the single state document.

DESIGN DECISION: save() is the one funnel through which a mutation
becomes durable. It normalizes, stamps meta.lastModified, writes the
whole document and then tells its listeners (the Sync Coordinator)
that a push may be needed. Nothing else writes local storage, except
the two replacement paths that must NOT look like a local edit:
- overwrite(): a newer remote document replacing local state
- import_json(): a user-supplied backup, kept with its own stamp

KNOWN RISK: a stored document that fails to parse is treated as
absent and silently replaced by defaults. The corrupt bytes are lost.
The repair is logged (and audited), but there is no partial recovery.
"""

import json
from collections.abc import Callable
from typing import Any, Optional, Union

import structlog

from car_fund.audit import AuditLogger
from car_fund.models.state import (
    StateDocument,
    StateMeta,
    default_document,
    normalize_document,
    now_ms,
)
from car_fund.services.storage import LocalStateStorage


logger = structlog.get_logger(__name__)

# Stamp for a freshly created default document: older than any real
# edit, so an existing remote copy wins the first reconcile.
DEFAULTS_LAST_MODIFIED = 1

SaveListener = Callable[[StateDocument], None]


class ImportRejectedError(Exception):
    """An import document could not be used. Local state is unchanged."""
    pass


class StateStore:
    """
    Owner of the persisted state document.

    Args:
        storage: Local durable storage backend
        audit_logger: Optional audit trail
        clock: Source of epoch milliseconds (injectable for tests)
    """

    def __init__(
        self,
        storage: LocalStateStorage,
        audit_logger: Optional[AuditLogger] = None,
        clock: Callable[[], int] = now_ms,
    ):
        self._storage = storage
        self._audit_logger = audit_logger
        self._clock = clock
        self._listeners: list[SaveListener] = []

    def add_save_listener(self, listener: SaveListener) -> Callable[[], None]:
        """
        Call `listener` with every document that save() or import_json() writes.

        A store with no listeners is a local-only store: nothing is ever
        scheduled for sync.

        Returns:
            A function that removes the listener
        """
        self._listeners.append(listener)

        def remove() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return remove

    # -------------------------------------------------------------------------
    # Read path
    # -------------------------------------------------------------------------

    def load(self) -> StateDocument:
        """
        Read the persisted document.

        - Nothing stored: defaults are created, persisted and returned
        - Unparseable: the record is discarded and defaults recreated
        - Otherwise: the document is normalized (and the repaired form
          written back if normalization changed anything)
        """
        raw = self._storage.read()
        if raw is None:
            return self._create_defaults()

        try:
            data = json.loads(raw)
            if not isinstance(data, dict):
                raise ValueError("stored state is not a JSON object")
        except ValueError as e:
            logger.warning("state_corrupt_replaced", error=str(e))
            if self._audit_logger:
                self._audit_logger.log_state_repaired(str(e))
            self._storage.delete()
            return self._create_defaults()

        state = self.normalize(data)
        if state.to_dict() != data:
            # Persist the repair so the next load sees the same stamp
            self._storage.write(state.to_json())
        return state

    def normalize(self, raw: Any) -> StateDocument:
        """Repair any object into a valid document. Idempotent."""
        return normalize_document(raw, now=self._clock())

    def _create_defaults(self) -> StateDocument:
        state = default_document(now=DEFAULTS_LAST_MODIFIED)
        self._storage.write(state.to_json())
        logger.info("state_created", cash=state.cash)
        if self._audit_logger:
            self._audit_logger.log_state_created(state.cash)
        return state

    # -------------------------------------------------------------------------
    # Write path
    # -------------------------------------------------------------------------

    def save(self, state: Union[StateDocument, dict]) -> StateDocument:
        """
        Persist a mutated document.

        Normalizes, stamps meta.lastModified with the current time
        (always later than the stamp it replaces), writes, then notifies
        listeners. Returns the document as written.
        """
        normalized = self.normalize(state)
        stamp = max(self._clock(), normalized.last_modified + 1)
        stamped = normalized.model_copy(update={"meta": StateMeta(last_modified=stamp)})

        self._storage.write(stamped.to_json())
        logger.debug("state_saved", last_modified=stamp, entries=len(stamped.entries))

        self._notify(stamped)
        return stamped

    def overwrite(self, state: Union[StateDocument, dict]) -> StateDocument:
        """
        Replace local state wholesale, keeping the document's own stamp.

        Listeners are NOT notified: this is how a newer remote copy lands
        locally, and echoing it back to the remote would be pointless.
        """
        normalized = self.normalize(state)
        self._storage.write(normalized.to_json())
        logger.info("state_overwritten", last_modified=normalized.last_modified)
        return normalized

    def reset_all(self) -> None:
        """
        Erase the persisted document. Irreversible.

        The caller must have confirmed this with the user.
        The next load() recreates defaults.
        """
        self._storage.delete()
        logger.warning("state_reset")
        if self._audit_logger:
            self._audit_logger.log_state_reset()

    # -------------------------------------------------------------------------
    # Export / import
    # -------------------------------------------------------------------------

    def export_json(self) -> str:
        """The full normalized document as JSON text."""
        state = self.load()
        if self._audit_logger:
            self._audit_logger.log_state_exported(len(state.entries))
        return state.to_json()

    def import_json(self, payload: Union[str, bytes]) -> StateDocument:
        """
        Replace local state with a user-supplied document.

        The document is normalized (a missing stamp becomes "now") and
        written as-is; listeners are notified so it gets pushed.

        Raises:
            ImportRejectedError: If the payload is not a JSON object.
                Local state is left untouched.
        """
        try:
            data = json.loads(payload)
        except (ValueError, TypeError) as e:
            raise self._import_rejected(f"Invalid JSON file: {e}") from e
        if not isinstance(data, dict):
            raise self._import_rejected("Invalid JSON file: expected an object at the top level.")

        state = self.normalize(data)
        self._storage.write(state.to_json())
        logger.info("state_imported", entries=len(state.entries))
        if self._audit_logger:
            self._audit_logger.log_state_imported(len(state.entries))

        self._notify(state)
        return state

    def _import_rejected(self, reason: str) -> ImportRejectedError:
        logger.warning("import_rejected", reason=reason)
        if self._audit_logger:
            self._audit_logger.log_import_rejected(reason)
        return ImportRejectedError(reason)

    def _notify(self, state: StateDocument) -> None:
        for listener in list(self._listeners):
            try:
                listener(state)
            except Exception as e:
                # The write already happened; a listener can't undo it
                logger.error("save_listener_failed", error=str(e))
                if self._audit_logger:
                    self._audit_logger.log_error("save_listener_failed", str(e))
