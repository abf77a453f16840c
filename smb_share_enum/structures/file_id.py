from __future__ import annotations
from dataclasses import dataclass
from typing import ByteString, ClassVar


@dataclass(frozen=True)
class FileId:
    """
    The opaque handle of an open, as returned in a CREATE response.

    https://docs.microsoft.com/en-us/openspecs/windows_protocols/ms-smb2/f1d9b40d-e335-45fc-9d0b-199a31ede4c3
    """

    STRUCTURE_SIZE: ClassVar[int] = 16

    persistent: bytes
    volatile: bytes

    @classmethod
    def from_bytes(cls, data: ByteString, base_offset: int = 0) -> FileId:
        data = memoryview(data)[base_offset:base_offset+cls.STRUCTURE_SIZE]

        return cls(persistent=bytes(data[:8]), volatile=bytes(data[8:16]))

    def __bytes__(self) -> bytes:
        return self.persistent + self.volatile

    def __len__(self) -> int:
        return self.STRUCTURE_SIZE

    def __str__(self) -> str:
        return bytes(self).hex()
