"""
JSON File Storage Implementation

DESIGN DECISION: The default backend keeps one JSON document per owner
on local disk. A personal ledger is small, so reading and rewriting the
whole document on every mutation is fine.

Atomicity comes from writing a temp file in the same directory and
os.replace()-ing it over the old document. Readers see either the old
ledger or the new one, never a mix.
"""

import hashlib
import json
import os
import tempfile
from pathlib import Path
from typing import Sequence, Union

from pydantic import ValidationError

from profit_pilot.logger import get_logger
from profit_pilot.models.ledger import LedgerSnapshot, Partner, Sale, Settlement
from profit_pilot.services.storage.interface import (
    LedgerStoreInterface,
    NotFoundError,
    StorageError,
)

logger = get_logger(__name__)


class JsonFileLedgerStore(LedgerStoreInterface):
    """
    Stores each owner's ledger as ``<data_dir>/<hash>.json``.

    File names are a hash of the owner id so that any id is a safe name.
    The owner id itself is kept inside the document.
    """

    def __init__(self, data_dir: Union[str, Path]):
        self._data_dir = Path(data_dir)

    def _path_for(self, owner_id: str) -> Path:
        digest = hashlib.sha256(owner_id.encode("utf-8")).hexdigest()[:32]
        return self._data_dir / f"{digest}.json"

    async def load(self, owner_id: str) -> LedgerSnapshot:
        """Read and validate an owner's document."""
        path = self._path_for(owner_id)
        try:
            raw = path.read_text(encoding="utf-8")
        except FileNotFoundError:
            raise NotFoundError(f"No ledger for owner: {owner_id}") from None
        except OSError as e:
            logger.error("ledger_load_failed", owner_id=owner_id, error=str(e))
            raise StorageError(f"Failed to read ledger: {e}") from e

        try:
            document = json.loads(raw)
            snapshot = LedgerSnapshot.model_validate(
                {
                    "sales": document.get("sales", []),
                    "partners": document.get("partners", []),
                    "settlements": document.get("settlements", []),
                }
            )
        except (ValueError, AttributeError, ValidationError) as e:
            logger.error("ledger_corrupt", owner_id=owner_id, path=str(path), error=str(e))
            raise StorageError(f"Ledger file is corrupt: {path}") from e

        logger.debug("ledger_loaded", owner_id=owner_id, path=str(path))
        return snapshot

    async def save(
        self,
        owner_id: str,
        sales: Sequence[Sale],
        partners: Sequence[Partner],
        settlements: Sequence[Settlement],
    ) -> bool:
        """Write the whole document, then atomically swap it in."""
        snapshot = LedgerSnapshot(
            sales=tuple(sales),
            partners=tuple(partners),
            settlements=tuple(settlements),
        )
        document = {"owner_id": owner_id, **snapshot.model_dump(mode="json")}
        path = self._path_for(owner_id)

        tmp_name = None
        try:
            self._data_dir.mkdir(parents=True, exist_ok=True)
            with tempfile.NamedTemporaryFile(
                "w",
                encoding="utf-8",
                dir=self._data_dir,
                prefix=".ledger-",
                suffix=".tmp",
                delete=False,
            ) as tmp:
                tmp_name = tmp.name
                json.dump(document, tmp, indent=2)
                tmp.flush()
                os.fsync(tmp.fileno())
            os.replace(tmp_name, path)
        except OSError as e:
            if tmp_name and os.path.exists(tmp_name):
                os.unlink(tmp_name)
            logger.error("ledger_save_failed", owner_id=owner_id, error=str(e))
            raise StorageError(f"Failed to save ledger: {e}") from e

        logger.debug("ledger_saved", owner_id=owner_id, path=str(path))
        return True
