from __future__ import annotations
from abc import ABC, abstractmethod
from dataclasses import dataclass
from struct import unpack_from as struct_unpack_from
from typing import ClassVar, Dict, Type, Iterable, ByteString

from smb_share_enum.header import Header, Command
from smb_share_enum.session import Session
from smb_share_enum.exceptions import MalformedMessageError


@dataclass
class RequestMessage(ABC):
    """
    The body of an SMB2 request: a fixed-size structure followed by an optional variable-length payload.

    Subclasses name each field of the fixed structure in `_body_chunks`; the concatenation is checked against
    `BODY_SIZE` so that a change to a field cannot silently shift the offsets of the ones after it.
    """

    COMMAND: ClassVar[Command] = NotImplemented
    STRUCTURE_SIZE: ClassVar[int] = NotImplemented
    BODY_SIZE: ClassVar[int] = NotImplemented

    _COMMAND_TO_CLASS: ClassVar[Dict[Command, Type[RequestMessage]]] = {}

    @classmethod
    def buffer_offset(cls) -> int:
        """The offset of the variable-length payload from the beginning of the SMB2 header."""
        return Header.STRUCTURE_SIZE + cls.BODY_SIZE

    @classmethod
    def from_command(cls, command: Command, session: Session, payload: bytes = b'') -> RequestMessage:
        return cls._COMMAND_TO_CLASS[command]._from_session(session=session, payload=payload)

    @classmethod
    @abstractmethod
    def _from_session(cls, session: Session, payload: bytes) -> RequestMessage:
        pass

    @property
    def payload(self) -> bytes:
        return b''

    @abstractmethod
    def _body_chunks(self) -> Iterable[bytes]:
        pass

    def body(self) -> bytes:
        body_bytes = b''.join(self._body_chunks())
        if len(body_bytes) != self.BODY_SIZE:
            raise MalformedMessageError(
                message_header=f'Bad {self.COMMAND.name} request body size.',
                observed_value=len(body_bytes),
                expected_value=self.BODY_SIZE
            )
        return body_bytes

    def __bytes__(self) -> bytes:
        return self.body() + self.payload

    def __len__(self) -> int:
        return self.BODY_SIZE + len(self.payload)

    @staticmethod
    def register(cls: Type[RequestMessage]) -> Type[RequestMessage]:
        RequestMessage._COMMAND_TO_CLASS[cls.COMMAND] = cls
        return cls


@dataclass
class ResponseMessage(ABC):
    """A view of the body of an SMB2 response, i.e. the bytes following the header."""

    STRUCTURE_SIZE: ClassVar[int] = NotImplemented

    @classmethod
    def _check_structure_size(cls, body: ByteString) -> None:
        # An odd structure size counts the first byte of the variable-length buffer.
        fixed_size: int = cls.STRUCTURE_SIZE & ~1
        if len(body) < fixed_size:
            raise MalformedMessageError(
                message_header=f'Truncated {cls.__name__} body.',
                observed_value=len(body),
                expected_value=fixed_size,
                expected_label='Expected at least'
            )

        structure_size: int = struct_unpack_from('<H', body, 0)[0]
        if structure_size != cls.STRUCTURE_SIZE:
            raise MalformedMessageError(
                message_header=f'Bad {cls.__name__} structure size.',
                observed_value=structure_size,
                expected_value=cls.STRUCTURE_SIZE
            )

    @staticmethod
    def _buffer_from_body(body: ByteString, offset: int, length: int) -> bytes:
        """
        Extract a buffer located by an offset counted from the beginning of the SMB2 header.

        :param body: The response body.
        :param offset: The offset of the buffer, from the beginning of the header.
        :param length: The length of the buffer.
        :return: The buffer bytes.
        :raises MalformedMessageError: The buffer extends beyond the body.
        """

        body_offset = offset - Header.STRUCTURE_SIZE
        if length and (body_offset < 0 or body_offset + length > len(body)):
            raise MalformedMessageError(
                message_header='Buffer outside of the response body.',
                observed_value=f'offset {offset}, length {length}',
                expected_value=f'at most {Header.STRUCTURE_SIZE + len(body)} bytes from the header',
                expected_label='Expected'
            )

        return bytes(memoryview(body)[body_offset:body_offset+length])

    @classmethod
    @abstractmethod
    def from_body(cls, body: ByteString) -> ResponseMessage:
        pass


def _register_messages() -> None:
    # Import the message modules so that the request classes are registered in the map.
    from smb_share_enum.messages import negotiate, session_setup, tree_connect, create, write, read, ioctl, close


_register_messages()
