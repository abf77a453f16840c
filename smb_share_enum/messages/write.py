from __future__ import annotations
from dataclasses import dataclass
from struct import pack as struct_pack
from typing import ClassVar, Iterable

from smb_share_enum.header import Command
from smb_share_enum.messages import RequestMessage
from smb_share_enum.session import Session
from smb_share_enum.structures.file_id import FileId


@dataclass
@RequestMessage.register
class WriteRequest(RequestMessage):
    COMMAND: ClassVar[Command] = Command.SMB2_WRITE
    STRUCTURE_SIZE: ClassVar[int] = 49
    BODY_SIZE: ClassVar[int] = 48

    _CHANNEL: ClassVar[bytes] = bytes(4)
    _WRITE_CHANNEL_INFO_OFFSET: ClassVar[bytes] = bytes(2)
    _WRITE_CHANNEL_INFO_LENGTH: ClassVar[bytes] = bytes(2)

    file_id: FileId
    write_data: bytes
    offset: int = 0
    remaining_bytes: int = 0
    flags: int = 0

    @classmethod
    def _from_session(cls, session: Session, payload: bytes) -> WriteRequest:
        return cls(file_id=session.file_id, write_data=payload)

    @property
    def payload(self) -> bytes:
        return self.write_data

    def _body_chunks(self) -> Iterable[bytes]:
        return [
            struct_pack('<H', self.STRUCTURE_SIZE),
            struct_pack('<H', self.buffer_offset()),
            struct_pack('<I', len(self.write_data)),
            struct_pack('<Q', self.offset),
            bytes(self.file_id),
            self._CHANNEL,
            struct_pack('<I', self.remaining_bytes),
            self._WRITE_CHANNEL_INFO_OFFSET,
            self._WRITE_CHANNEL_INFO_LENGTH,
            struct_pack('<I', self.flags)
        ]
