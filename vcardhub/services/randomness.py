from __future__ import annotations

import secrets


class Randomness:
    """Source of verification tokens. Production uses the OS CSPRNG."""

    def token_hex(self, nbytes: int) -> str:
        raise NotImplementedError


class SystemRandomness(Randomness):
    def token_hex(self, nbytes: int) -> str:
        return secrets.token_hex(nbytes)
