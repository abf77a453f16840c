from __future__ import annotations
from dataclasses import dataclass
from struct import pack as struct_pack
from typing import ClassVar, Iterable

from smb_share_enum.header import Command
from smb_share_enum.messages import RequestMessage
from smb_share_enum.session import Session


@dataclass
@RequestMessage.register
class TreeConnectRequest(RequestMessage):
    COMMAND: ClassVar[Command] = Command.SMB2_TREE_CONNECT
    STRUCTURE_SIZE: ClassVar[int] = 9
    BODY_SIZE: ClassVar[int] = 8

    _FLAGS: ClassVar[bytes] = bytes(2)

    # The UTF-16LE encoded share path, e.g. `\\host\IPC$`.
    path: bytes

    @classmethod
    def _from_session(cls, session: Session, payload: bytes) -> TreeConnectRequest:
        return cls(path=payload)

    @staticmethod
    def encode_path(host: str, share_name: str) -> bytes:
        return f'\\\\{host}\\{share_name}'.encode(encoding='utf-16-le')

    @property
    def payload(self) -> bytes:
        return self.path

    def _body_chunks(self) -> Iterable[bytes]:
        return [
            struct_pack('<H', self.STRUCTURE_SIZE),
            self._FLAGS,
            struct_pack('<H', self.buffer_offset()),
            struct_pack('<H', len(self.path))
        ]
