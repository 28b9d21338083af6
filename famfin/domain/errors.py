"""
Base error for input/validation failures surfaced to callers.
"""


class CoreError(ValueError):
    """ValueError with a stable machine-readable code."""

    def __init__(self, code: str, message: str):
        super().__init__(message)
        self.code = code
        self.message = message

    def to_dict(self) -> dict:
        return {"code": self.code, "message": self.message}
