from __future__ import annotations
from dataclasses import dataclass, field
from enum import IntEnum, IntFlag
from struct import pack as struct_pack, unpack_from as struct_unpack_from
from typing import ClassVar, Iterable, ByteString

from msdsalgs.utils import Mask

from smb_share_enum.header import Command
from smb_share_enum.messages import RequestMessage, ResponseMessage
from smb_share_enum.session import Session
from smb_share_enum.structures.file_id import FileId


class CtlCode(IntEnum):
    FSCTL_PIPE_PEEK = 0x0011400C
    FSCTL_PIPE_WAIT = 0x00110018
    FSCTL_PIPE_TRANSCEIVE = 0x0011C017


class IoctlFlagMask(IntFlag):
    SMB2_0_IOCTL_IS_FSCTL = 0x00000001


# An empty mask means the request is an IOCTL.
IoctlFlag = Mask.make_class(IoctlFlagMask, prefix='SMB2_0_IOCTL_')


@dataclass
@RequestMessage.register
class IoctlRequest(RequestMessage):
    COMMAND: ClassVar[Command] = Command.SMB2_IOCTL
    STRUCTURE_SIZE: ClassVar[int] = 57
    BODY_SIZE: ClassVar[int] = 56

    _RESERVED: ClassVar[bytes] = bytes(2)
    _RESERVED_2: ClassVar[bytes] = bytes(4)

    file_id: FileId
    input_data: bytes
    ctl_code: CtlCode = CtlCode.FSCTL_PIPE_TRANSCEIVE
    max_input_response: int = 0
    max_output_response: int = 8196
    flags: IoctlFlag = field(default_factory=lambda: IoctlFlag(is_fsctl=True))

    @classmethod
    def _from_session(cls, session: Session, payload: bytes) -> IoctlRequest:
        return cls(file_id=session.file_id, input_data=payload)

    @property
    def payload(self) -> bytes:
        return self.input_data

    def _body_chunks(self) -> Iterable[bytes]:
        return [
            struct_pack('<H', self.STRUCTURE_SIZE),
            self._RESERVED,
            struct_pack('<I', self.ctl_code.value),
            bytes(self.file_id),
            struct_pack('<I', self.buffer_offset()),
            struct_pack('<I', len(self.input_data)),
            struct_pack('<I', self.max_input_response),
            # No output buffer is sent.
            struct_pack('<I', 0),
            struct_pack('<I', 0),
            struct_pack('<I', self.max_output_response),
            struct_pack('<I', int(self.flags)),
            self._RESERVED_2
        ]


@dataclass
class IoctlResponse(ResponseMessage):
    STRUCTURE_SIZE: ClassVar[int] = 49

    ctl_code: int
    file_id: FileId
    output: bytes

    @classmethod
    def from_body(cls, body: ByteString) -> IoctlResponse:
        cls._check_structure_size(body=body)

        output_offset: int = struct_unpack_from('<I', body, 32)[0]
        output_count: int = struct_unpack_from('<I', body, 36)[0]

        return cls(
            ctl_code=struct_unpack_from('<I', body, 4)[0],
            file_id=FileId.from_bytes(data=body, base_offset=8),
            output=cls._buffer_from_body(body=body, offset=output_offset, length=output_count)
        )
