"""
Success-or-error envelope

Used where a failure is an expected outcome rather than a bug, such as
decoding a share code typed in by a user, and as the JSON body of
endpoints that report success explicitly.
"""

from typing import Generic, Optional, TypeVar

from pydantic import BaseModel, ConfigDict

T = TypeVar('T')


class Result(BaseModel, Generic[T]):
    """Either ``data`` (success) or an ``error`` message"""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    success: bool
    data: Optional[T] = None
    error: Optional[str] = None

    @classmethod
    def ok(cls, data: T) -> 'Result[T]':
        return cls(success=True, data=data)

    @classmethod
    def err(cls, error: str) -> 'Result[T]':
        return cls(success=False, error=error)

    def is_ok(self) -> bool:
        return self.success

    def is_err(self) -> bool:
        return not self.success

    def unwrap(self) -> T:
        """Return the payload; raises ValueError for an error result"""
        if not self.success:
            raise ValueError(f"Cannot unwrap error result: {self.error}")
        return self.data
