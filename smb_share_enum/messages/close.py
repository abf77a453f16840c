from __future__ import annotations
from dataclasses import dataclass, field
from enum import IntFlag
from struct import pack as struct_pack
from typing import ClassVar, Iterable

from msdsalgs.utils import Mask

from smb_share_enum.header import Command
from smb_share_enum.messages import RequestMessage
from smb_share_enum.session import Session
from smb_share_enum.structures.file_id import FileId


class CloseFlagMask(IntFlag):
    SMB2_CLOSE_FLAG_POSTQUERY_ATTRIB = 0x0001


CloseFlag = Mask.make_class(CloseFlagMask, prefix='SMB2_CLOSE_FLAG_')


@dataclass
@RequestMessage.register
class CloseRequest(RequestMessage):
    COMMAND: ClassVar[Command] = Command.SMB2_CLOSE
    STRUCTURE_SIZE: ClassVar[int] = 24
    BODY_SIZE: ClassVar[int] = 24

    _RESERVED: ClassVar[bytes] = bytes(4)

    file_id: FileId
    flags: CloseFlag = field(default_factory=CloseFlag)

    @classmethod
    def _from_session(cls, session: Session, payload: bytes) -> CloseRequest:
        return cls(file_id=session.file_id)

    def _body_chunks(self) -> Iterable[bytes]:
        return [
            struct_pack('<H', self.STRUCTURE_SIZE),
            struct_pack('<H', int(self.flags)),
            self._RESERVED,
            bytes(self.file_id)
        ]
