from __future__ import annotations
from dataclasses import dataclass
from struct import pack as struct_pack, unpack_from as struct_unpack_from
from typing import ClassVar, Iterable, ByteString

from smb_share_enum.header import Command
from smb_share_enum.messages import RequestMessage, ResponseMessage
from smb_share_enum.session import Session
from smb_share_enum.structures.file_id import FileId


@dataclass
@RequestMessage.register
class ReadRequest(RequestMessage):
    COMMAND: ClassVar[Command] = Command.SMB2_READ
    # NOTE: The structure size counts the one-byte buffer, which must be present even though it is unused.
    STRUCTURE_SIZE: ClassVar[int] = 49
    BODY_SIZE: ClassVar[int] = 49

    _PADDING: ClassVar[int] = 0x00
    _FLAGS: ClassVar[int] = 0x00
    _CHANNEL: ClassVar[bytes] = bytes(4)
    _READ_CHANNEL_INFO_OFFSET: ClassVar[bytes] = bytes(2)
    _READ_CHANNEL_INFO_LENGTH: ClassVar[bytes] = bytes(2)
    _BUFFER: ClassVar[bytes] = bytes(1)

    file_id: FileId
    length: int = 1024
    offset: int = 0
    minimum_count: int = 0
    remaining_bytes: int = 0

    @classmethod
    def _from_session(cls, session: Session, payload: bytes) -> ReadRequest:
        return cls(file_id=session.file_id)

    def _body_chunks(self) -> Iterable[bytes]:
        return [
            struct_pack('<H', self.STRUCTURE_SIZE),
            struct_pack('<B', self._PADDING),
            struct_pack('<B', self._FLAGS),
            struct_pack('<I', self.length),
            struct_pack('<Q', self.offset),
            bytes(self.file_id),
            struct_pack('<I', self.minimum_count),
            self._CHANNEL,
            struct_pack('<I', self.remaining_bytes),
            self._READ_CHANNEL_INFO_OFFSET,
            self._READ_CHANNEL_INFO_LENGTH,
            self._BUFFER
        ]


@dataclass
class ReadResponse(ResponseMessage):
    STRUCTURE_SIZE: ClassVar[int] = 17

    data: bytes
    data_remaining_length: int

    @classmethod
    def from_body(cls, body: ByteString) -> ReadResponse:
        cls._check_structure_size(body=body)

        data_offset: int = struct_unpack_from('<B', body, 2)[0]
        data_length: int = struct_unpack_from('<I', body, 4)[0]

        return cls(
            data=cls._buffer_from_body(body=body, offset=data_offset, length=data_length),
            data_remaining_length=struct_unpack_from('<I', body, 8)[0]
        )
