"""Scoped holder for decrypted private key material."""

from __future__ import annotations


class SecretKey:
    """A private key held in a mutable buffer that is zeroed on exit.

    Use it as a context manager so the buffer is wiped on every path out of
    the block, including exceptions::

        with SecretKey(raw) as key:
            client.submit_transfer(key.material, ...)

    The buffer is a ``bytearray`` so it can be overwritten in place.  Libraries
    that receive :attr:`material` may make their own immutable copies, which
    Python gives us no way to scrub; keeping the scope short is what bounds
    their lifetime.
    """

    __slots__ = ("_buf",)

    def __init__(self, raw: bytes | bytearray) -> None:
        if len(raw) != 32:
            raise ValueError("Private key must be exactly 32 bytes")
        self._buf = bytearray(raw)
        if isinstance(raw, bytearray):
            raw[:] = b"\x00" * len(raw)

    @property
    def material(self) -> bytearray:
        if self.wiped:
            raise RuntimeError("Private key has already been wiped")
        return self._buf

    @property
    def wiped(self) -> bool:
        return not any(self._buf)

    def wipe(self) -> None:
        for i in range(len(self._buf)):
            self._buf[i] = 0

    def __enter__(self) -> SecretKey:
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.wipe()

    def __repr__(self) -> str:
        state = "wiped" if self.wiped else "live"
        return f"<SecretKey {state}>"

    __str__ = __repr__

    def __reduce__(self):
        raise TypeError("SecretKey cannot be pickled")
