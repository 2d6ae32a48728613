"""
Constants and small helpers shared by the API tests.
"""

PASSWORD = "correct-horse-9"
TEST_TTL = 3600


class FakeClock:
    """Mutable wall clock handed to every component through ``get_clock``."""

    def __init__(self, now: float = 1_700_000_000) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def bearer(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}
