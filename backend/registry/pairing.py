"""Pairing directory: pairing codes to durable source identities."""

import logging

from registry.errors import DuplicateCodeError, UnknownCodeError

logger = logging.getLogger(__name__)


class PairingDirectory:
    """One-to-one map of pairing codes to durable ids.

    Codes never expire and are never revoked while the process runs.
    The directory does no locking of its own; it is only reached through
    ``ConnectionRegistry``, which serializes every mutation.
    """

    def __init__(self) -> None:
        self._codes: dict[str, str] = {}

    def resolve(self, code: str) -> str:
        """Return the durable id bound to ``code``."""
        try:
            return self._codes[code]
        except KeyError:
            raise UnknownCodeError(code) from None

    def bind(self, code: str, durable_id: str) -> None:
        """Bind ``code`` to ``durable_id``; a code can only be bound once."""
        if code in self._codes:
            raise DuplicateCodeError(code)
        self._codes[code] = durable_id
        logger.debug(f"Bound pairing code to {durable_id}")

    def __contains__(self, code: object) -> bool:
        return code in self._codes

    def __len__(self) -> int:
        return len(self._codes)
